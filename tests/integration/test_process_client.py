"""Integration tests: McpClient over a real child process.

Runs tests/integration/fake_server.py with the current interpreter and
drives it through ProcessTransport, verifying:
- Handshake and server info
- Tool calls and remote errors
- Capability-gated roots round trip
- Notifications from the server
- Graceful shutdown and launch failures
"""

import asyncio
import json
import sys
from pathlib import Path

import pytest

from minimcp import (
    ClientCapabilities,
    ClientState,
    Implementation,
    McpClient,
    ProcessTransport,
    RemoteError,
    Root,
    TransportConfig,
    TransportError,
)

pytestmark = pytest.mark.integration

FAKE_SERVER = Path(__file__).parent / "fake_server.py"
CLIENT_INFO = Implementation(name="integration-client", version="0.0.1")


def make_transport(timeout: float = 5.0) -> ProcessTransport:
    return ProcessTransport(
        sys.executable,
        [str(FAKE_SERVER)],
        config=TransportConfig(timeout=timeout),
    )


# =============================================================================
# Tests: Handshake and requests
# =============================================================================


class TestProcessClient:
    """Full client flow against the scripted server."""

    @pytest.mark.asyncio
    async def test_handshake(self):
        client = McpClient(CLIENT_INFO)
        transport = make_transport()

        result = await asyncio.wait_for(client.connect(transport), 10)

        assert client.state == ClientState.READY
        assert result.serverInfo is not None
        assert result.serverInfo.name == "fake-server"
        assert client.server_capabilities.supports("roots")
        assert transport.pid is not None

        await client.close_gracefully(timeout=5)
        assert client.state == ClientState.CLOSED

    @pytest.mark.asyncio
    async def test_tools(self):
        client = McpClient(CLIENT_INFO)
        await asyncio.wait_for(client.connect(make_transport()), 10)

        try:
            tools = await client.list_tools()
            assert [t.name for t in tools.tools] == ["echo"]

            result = await client.call_tool("echo", {"b": 2, "a": "x"})
            assert result.content[0].text == json.dumps({"a": "x", "b": 2}, sort_keys=True)

            with pytest.raises(RemoteError) as exc_info:
                await client.call_tool("missing")
            assert exc_info.value.code == -32602
            assert "Unknown tool" in exc_info.value.message

            with pytest.raises(RemoteError, match="Method not found"):
                await client.request("bogus", timeout=5)
        finally:
            await client.close_gracefully(timeout=5)

    @pytest.mark.asyncio
    async def test_roots_round_trip(self):
        client = McpClient(CLIENT_INFO, ClientCapabilities(roots=True))
        await asyncio.wait_for(client.connect(make_transport()), 10)

        try:
            assert await client.list_roots() == []

            await client.add_root(Root(uri="file:///workspace", description="Workspace"))
            roots = await client.list_roots()
            assert roots == [Root(uri="file:///workspace", description="Workspace")]

            await client.remove_root("file:///workspace")
            assert await client.list_roots() == []
        finally:
            await client.close_gracefully(timeout=5)

    @pytest.mark.asyncio
    async def test_log_notification(self):
        client = McpClient(CLIENT_INFO)
        received = asyncio.Event()
        logs: list[dict] = []

        def on_log(params: dict) -> None:
            logs.append(params)
            received.set()

        client.on("log", on_log)
        await asyncio.wait_for(client.connect(make_transport()), 10)

        try:
            await asyncio.wait_for(received.wait(), 5)
            assert logs == [{"data": "ready"}]
        finally:
            await client.close_gracefully(timeout=5)


# =============================================================================
# Tests: Failures
# =============================================================================


class TestProcessFailures:
    """Launch and lifecycle failures."""

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        client = McpClient(CLIENT_INFO)
        transport = ProcessTransport("/nonexistent/minimcp-server")

        with pytest.raises(TransportError, match="Failed to launch"):
            await client.connect(transport)

        assert client.state == ClientState.UNCONNECTED
        assert client.transport is None

    @pytest.mark.asyncio
    async def test_close_terminates_silent_server(self):
        # Child that never answers; close() must still return
        transport = ProcessTransport(
            sys.executable,
            ["-c", "import time; time.sleep(60)"],
            config=TransportConfig(timeout=2.0),
        )
        await transport.start()
        assert transport.returncode is None

        await asyncio.wait_for(transport.close(), 10)

        assert transport.pid is None

    @pytest.mark.asyncio
    async def test_reconnect_after_close(self):
        client = McpClient(CLIENT_INFO)

        await asyncio.wait_for(client.connect(make_transport()), 10)
        await client.close_gracefully(timeout=5)
        await asyncio.wait_for(client.connect(make_transport()), 10)

        assert client.state == ClientState.READY
        await client.close_gracefully(timeout=5)
