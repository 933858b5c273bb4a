"""Pytest configuration and shared fixtures."""

import pytest

from minimcp import ClientCapabilities, Implementation, McpClient, MockTransport

CLIENT_INFO = Implementation(name="test-client", version="0.0.1")


@pytest.fixture
def transport() -> MockTransport:
    """Mock transport that completes the handshake with roots enabled."""
    mock = MockTransport()
    mock.set_response("initialize", {"capabilities": {"roots": True}})
    mock.set_response("shutdown", {})
    return mock


@pytest.fixture
def client() -> McpClient:
    """Unconnected client declaring the roots capability."""
    return McpClient(CLIENT_INFO, ClientCapabilities(roots=True))
