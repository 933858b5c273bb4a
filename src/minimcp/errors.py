"""Exception hierarchy for the minimcp client.

Every failure the client raises derives from McpClientError, so callers can
catch the whole family at once or pick a single category:

- TransportError: the byte channel is missing or refused the message
- ProtocolStateError: the call is not allowed in the client's current state
- CapabilityError: a capability-gated call that one side has not declared
- RemoteError: the server answered with an error descriptor
- InvalidResponseError: a result could not be read as the expected type
- RequestTimeoutError: the caller's deadline passed before the response

Malformed inbound data is never raised; transports log and drop it.
"""

from __future__ import annotations

from typing import Any


class McpClientError(Exception):
    """Base class for all minimcp errors."""


class TransportError(McpClientError, ConnectionError):
    """The transport could not deliver a message."""


class HTTPStatusError(TransportError):
    """The server answered an HTTP request with a non-success status."""

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(message or f"HTTP error: {status_code}")


class TransportClosedError(TransportError):
    """The connection was torn down while a request was still waiting."""


class ProtocolStateError(McpClientError):
    """The operation is not valid in the client's current state."""


class NotConnectedError(ProtocolStateError, TransportError):
    """No transport is attached to the client."""

    def __init__(self, message: str = "Transport not connected"):
        super().__init__(message)


class NotInitializedError(ProtocolStateError):
    """A request was issued before the handshake completed."""

    def __init__(self, message: str = "Client not initialized"):
        super().__init__(message)


class CapabilityError(McpClientError):
    """A capability required by the operation is not declared.

    Attributes:
        capability: Name of the missing capability (e.g. "roots")
        side: "client" or "server", whichever did not declare it
    """

    def __init__(self, capability: str, side: str):
        self.capability = capability
        self.side = side
        super().__init__(f"{side.capitalize()} does not support {capability} capability")


class RemoteError(McpClientError):
    """The server replied with an error descriptor."""

    def __init__(self, message: str, code: int | None = None, data: Any = None):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(message)

    @classmethod
    def from_descriptor(cls, descriptor: Any) -> RemoteError:
        """Build an error from a response's ``error`` member.

        Missing or malformed descriptors yield a generic "Unknown error".
        """
        if not isinstance(descriptor, dict):
            return cls("Unknown error")

        message = descriptor.get("message")
        if not isinstance(message, str) or not message:
            message = "Unknown error"

        code = descriptor.get("code")
        if not isinstance(code, int) or isinstance(code, bool):
            code = None

        return cls(message, code=code, data=descriptor.get("data"))

    def __repr__(self) -> str:
        return f"RemoteError(message={self.message!r}, code={self.code!r})"


class InvalidResponseError(McpClientError):
    """A result did not have the shape the helper expects."""

    def __init__(self, method: str, detail: str):
        self.method = method
        super().__init__(f"Invalid {method} response: {detail}")


class RequestTimeoutError(McpClientError, TimeoutError):
    """No response arrived before the caller's deadline."""

    def __init__(self, method: str, request_id: int, timeout: float):
        self.method = method
        self.request_id = request_id
        self.timeout = timeout
        super().__init__(f"Request {method!r} (id={request_id}) timed out after {timeout}s")
