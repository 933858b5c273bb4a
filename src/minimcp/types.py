"""Message and data types shared by the client and its transports.

Field names use camelCase where they appear on the wire (``clientInfo``,
``uriTemplate``...). Result models accept unknown fields so servers that send
more than the minimum still validate.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# Protocol version sent in the initialize handshake
PROTOCOL_VERSION = "0.1.0"

JSONRPC_VERSION = "2.0"


class McpModel(BaseModel):
    """Base model for protocol payloads that tolerate extra fields."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Method(str, Enum):
    """Method names issued by the client."""

    INITIALIZE = "initialize"
    SHUTDOWN = "shutdown"
    LIST_RESOURCES = "listResources"
    READ_RESOURCE = "readResource"
    LIST_TOOLS = "listTools"
    CALL_TOOL = "callTool"
    ADD_ROOT = "addRoot"
    REMOVE_ROOT = "removeRoot"
    LIST_ROOTS = "listRoots"


# =============================================================================
# Handshake
# =============================================================================


class Implementation(BaseModel):
    """Identifies the client to the remote peer."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str


class ClientCapabilities(BaseModel):
    """Capabilities the client declares. Everything defaults to off."""

    roots: bool = False
    sampling: bool = False


class ServerCapabilities(McpModel):
    """Capabilities the server declared in its initialize response.

    A capability counts as declared when it is ``true`` or an object (even an
    empty one). ``false``, ``null`` and absent all mean undeclared.
    """

    roots: Any = None
    sampling: Any = None
    resources: Any = None
    tools: Any = None
    prompts: Any = None
    logging: Any = None

    def supports(self, name: str) -> bool:
        """Check whether the server declared the named capability."""
        if name in type(self).model_fields:
            value = getattr(self, name)
        else:
            value = (self.model_extra or {}).get(name)
        return isinstance(value, dict) or bool(value)


class InitializeParams(BaseModel):
    """Params of the initialize request."""

    clientInfo: Implementation
    capabilities: ClientCapabilities
    protocolVersion: str = PROTOCOL_VERSION


class ServerInfo(McpModel):
    """Identifies the server. Servers may omit any of these fields."""

    name: str | None = None
    version: str | None = None


class InitializeResult(McpModel):
    """Result of the initialize request.

    Only ``capabilities`` matters to the client. A missing or non-object
    ``capabilities`` means nothing was declared, and a ``serverInfo`` that does
    not validate is ignored.
    """

    capabilities: ServerCapabilities = Field(default_factory=ServerCapabilities)
    serverInfo: ServerInfo | None = None
    protocolVersion: Any = None

    @field_validator("capabilities", mode="before")
    @classmethod
    def _capabilities_object(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("serverInfo", mode="before")
    @classmethod
    def _server_info_object(cls, value: Any) -> ServerInfo | None:
        try:
            return ServerInfo.model_validate(value)
        except ValidationError:
            return None


# =============================================================================
# JSON-RPC envelopes
# =============================================================================


class JsonRpcRequest(BaseModel):
    """Request envelope. The id is assigned by the client."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class JsonRpcNotification(BaseModel):
    """Notification envelope (no id, no response expected)."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Resources, tools and roots
# =============================================================================


class Resource(McpModel):
    """A resource advertised by the server."""

    name: str | None = None
    uriTemplate: str | None = None
    uri: str | None = None
    description: str | None = None


class ListResourcesResult(McpModel):
    resources: list[Resource] = Field(default_factory=list)


class ResourceContents(McpModel):
    """Content of one resource."""

    uri: str
    text: str | None = None
    mimeType: str | None = None


class ReadResourceResult(McpModel):
    contents: list[ResourceContents] = Field(default_factory=list)


class Tool(McpModel):
    """A tool advertised by the server."""

    name: str
    description: str | None = None
    parameterSchema: dict[str, Any] | None = None


class ListToolsResult(McpModel):
    tools: list[Tool] = Field(default_factory=list)


class Content(McpModel):
    """One content block in a tool result."""

    type: str
    text: str | None = None


class CallToolResult(McpModel):
    content: list[Content] = Field(default_factory=list)
    isError: bool | None = None


class Root(BaseModel):
    """A filesystem-like root the client exposes to the server."""

    uri: str
    description: str = ""
