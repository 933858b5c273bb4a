"""In-memory transport for tests and embedding.

Records every envelope sent, replies to requests from canned responses, and
lets the caller inject inbound envelopes. No I/O.

Usage:
    transport = MockTransport()
    transport.set_response("initialize", {"capabilities": {"roots": True}})
    transport.set_response("listTools", {"tools": []})

    client = McpClient(Implementation(name="test", version="0.0.1"))
    await client.connect(transport)
    await client.list_tools()

    assert transport.sent_methods == ["initialize", "listTools"]
"""

from __future__ import annotations

import asyncio
from typing import Any

from .base import BaseTransport, Message


class MockTransport(BaseTransport):
    """Transport that keeps everything in memory."""

    def __init__(self) -> None:
        super().__init__()
        self._sent: list[Message] = []
        self._responses: dict[str, Message] = {}
        self.send_error: Exception | None = None
        self.send_calls = 0
        self.close_count = 0
        self.closed = False

    @property
    def sent(self) -> list[Message]:
        """All envelopes sent through this transport."""
        return self._sent.copy()

    @property
    def sent_methods(self) -> list[str]:
        return [m["method"] for m in self._sent if "method" in m]

    @property
    def send_count(self) -> int:
        return len(self._sent)

    def set_response(
        self,
        method: str,
        result: Any = None,
        error: dict[str, Any] | None = None,
    ) -> None:
        """Set the canned reply for a method.

        Requests for methods without a canned reply stay unanswered until the
        test injects a response.
        """
        self._responses[method] = {"error": error} if error is not None else {"result": result}

    def inject(self, message: Message) -> None:
        """Deliver an inbound envelope to the handler right away."""
        self._deliver(message)

    def respond(self, request_id: int, result: Any = None) -> None:
        self.inject({"jsonrpc": "2.0", "id": request_id, "result": result})

    def respond_error(self, request_id: int, message: str, code: int | None = None) -> None:
        error: dict[str, Any] = {"message": message}
        if code is not None:
            error["code"] = code
        self.inject({"jsonrpc": "2.0", "id": request_id, "error": error})

    def clear(self) -> None:
        """Clear recorded envelopes and canned replies."""
        self._sent.clear()
        self._responses.clear()

    async def send(self, message: Message) -> None:
        self.send_calls += 1
        if self.send_error is not None:
            raise self.send_error
        self._sent.append(message)

        canned = self._responses.get(message.get("method", ""))
        if canned is not None and "id" in message:
            reply = {"jsonrpc": "2.0", "id": message["id"], **canned}
            # Reply on the next loop iteration, like a real peer
            asyncio.get_running_loop().call_soon(self._deliver, reply)

    async def close(self) -> None:
        self.close_count += 1
        self.closed = True
        self._reset_traffic()
