"""minimcp - a small client for the Model Context Protocol.

Pluggable transports (stdio, child process, HTTP + SSE), id-correlated
requests, capability negotiation and notification listeners.

    from minimcp import HttpSseTransport, Implementation, McpClient

    client = McpClient(Implementation(name="my-client", version="1.0.0"))
    await client.connect(HttpSseTransport("http://localhost:8080/mcp"))
    print(await client.list_tools())
    await client.close_gracefully()
"""

from .client import INITIALIZED, ClientState, McpClient, create_client
from .errors import (
    CapabilityError,
    HTTPStatusError,
    InvalidResponseError,
    McpClientError,
    NotConnectedError,
    NotInitializedError,
    ProtocolStateError,
    RemoteError,
    RequestTimeoutError,
    TransportClosedError,
    TransportError,
)
from .events import EventEmitter
from .transport import (
    BaseTransport,
    HttpSseTransport,
    MockTransport,
    ProcessTransport,
    StdioTransport,
    Transport,
    TransportConfig,
)
from .types import (
    PROTOCOL_VERSION,
    CallToolResult,
    ClientCapabilities,
    Implementation,
    InitializeResult,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceResult,
    Root,
    ServerCapabilities,
    ServerInfo,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "McpClient",
    "ClientState",
    "create_client",
    "INITIALIZED",
    "EventEmitter",
    # Transports
    "Transport",
    "BaseTransport",
    "TransportConfig",
    "StdioTransport",
    "ProcessTransport",
    "HttpSseTransport",
    "MockTransport",
    # Types
    "PROTOCOL_VERSION",
    "Implementation",
    "ClientCapabilities",
    "ServerCapabilities",
    "ServerInfo",
    "InitializeResult",
    "ListResourcesResult",
    "ReadResourceResult",
    "ListToolsResult",
    "CallToolResult",
    "Root",
    # Errors
    "McpClientError",
    "TransportError",
    "HTTPStatusError",
    "TransportClosedError",
    "ProtocolStateError",
    "NotConnectedError",
    "NotInitializedError",
    "CapabilityError",
    "RemoteError",
    "InvalidResponseError",
    "RequestTimeoutError",
]
