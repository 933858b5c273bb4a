"""Protocol client.

Transport-agnostic core of minimcp:
- assigns request ids and correlates responses by id
- drives the initialize handshake and stores the server's capabilities
- re-emits server notifications to listeners keyed by method name
- exposes typed request helpers and capability-gated root management
- shuts down gracefully

State machine:
    UNCONNECTED -> HANDSHAKING -> READY -> CLOSING -> CLOSED
CLOSED behaves like UNCONNECTED: the same client can connect again.

Usage:
    client = McpClient(
        Implementation(name="my-client", version="1.0.0"),
        ClientCapabilities(roots=True),
    )
    await client.connect(HttpSseTransport("http://localhost:8080/mcp"))

    client.on("log", lambda params: print(params["data"]))
    tools = await client.list_tools()

    await client.close_gracefully()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import (
    CapabilityError,
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
from .events import EventEmitter, Listener
from .transport.base import Message, Transport
from .types import (
    PROTOCOL_VERSION,
    CallToolResult,
    ClientCapabilities,
    Implementation,
    InitializeParams,
    InitializeResult,
    JsonRpcNotification,
    JsonRpcRequest,
    ListResourcesResult,
    ListToolsResult,
    Method,
    ReadResourceResult,
    Root,
    ServerCapabilities,
    ServerInfo,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Event emitted once the handshake completes, with the raw initialize result
INITIALIZED = "initialized"


class ClientState(str, Enum):
    """Connection state machine."""

    UNCONNECTED = "unconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


class McpClient:
    """Client for the MCP request/response protocol over any Transport."""

    def __init__(
        self,
        client_info: Implementation,
        capabilities: ClientCapabilities | None = None,
        *,
        protocol_version: str = PROTOCOL_VERSION,
    ):
        """Create a client.

        Args:
            client_info: Name and version announced to the server
            capabilities: Capabilities the client declares (all off by default)
            protocol_version: Version string sent in the handshake
        """
        self.client_info = client_info
        self.capabilities = capabilities or ClientCapabilities()
        self.protocol_version = protocol_version

        self._transport: Transport | None = None
        self._state = ClientState.UNCONNECTED
        self._request_id = 0
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._server_capabilities = ServerCapabilities()
        self._server_info: ServerInfo | None = None
        self._events = EventEmitter()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state == ClientState.READY

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def server_capabilities(self) -> ServerCapabilities:
        """Capabilities declared by the server (empty before the handshake)."""
        return self._server_capabilities

    @property
    def server_info(self) -> ServerInfo | None:
        return self._server_info

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a response."""
        return len(self._pending)

    # =========================================================================
    # Listeners
    # =========================================================================

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Listen for a notification method or the "initialized" event.

        Returns:
            Unsubscribe function
        """
        return self._events.on(event, listener)

    def once(self, event: str, listener: Listener) -> Callable[[], None]:
        return self._events.once(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self._events.off(event, listener)

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self, transport: Transport) -> InitializeResult:
        """Attach a transport and perform the initialize handshake.

        Raises:
            ProtocolStateError: If already connected or connecting
            McpClientError: If the handshake fails; the client is left
                unconnected and the transport is closed
        """
        if self._state in (ClientState.HANDSHAKING, ClientState.READY, ClientState.CLOSING):
            raise ProtocolStateError(f"Cannot connect while {self._state.value}")

        transport.set_message_handler(self._handle_message)
        self._transport = transport
        self._state = ClientState.HANDSHAKING

        try:
            return await self._initialize()
        except BaseException:
            await self._teardown(ClientState.UNCONNECTED)
            raise

    async def _initialize(self) -> InitializeResult:
        params = InitializeParams(
            clientInfo=self.client_info,
            capabilities=self.capabilities,
            protocolVersion=self.protocol_version,
        )
        response = await self.request(Method.INITIALIZE, params.model_dump())

        # Anything that is not an object declares nothing
        result = parse_result(
            InitializeResult,
            Method.INITIALIZE,
            response if isinstance(response, dict) else {},
        )

        self._server_capabilities = result.capabilities
        self._server_info = result.serverInfo
        self._state = ClientState.READY

        info = result.serverInfo
        if info and info.name:
            logger.info(f"Initialized with {info.name} {info.version or ''}".rstrip())
        else:
            logger.info("Initialized")

        self._events.emit(INITIALIZED, response)
        return result

    async def close_gracefully(self, timeout: float | None = None) -> None:
        """Send shutdown, then close the transport.

        Does nothing unless the client is READY, so repeated calls send a
        single shutdown. The transport is closed even if shutdown fails.

        Args:
            timeout: Seconds to wait for the shutdown response
        """
        if self._state != ClientState.READY:
            return

        self._state = ClientState.CLOSING
        try:
            await self.request(Method.SHUTDOWN, timeout=timeout)
        finally:
            await self._teardown(ClientState.CLOSED)

    async def _teardown(self, final_state: ClientState) -> None:
        """Close the transport and fail whatever is still pending."""
        transport = self._transport
        self._transport = None

        if transport is not None:
            try:
                await transport.close()
            except Exception as e:
                logger.warning(f"Error closing transport: {e}")

        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(TransportClosedError("Connection closed"))

        self._server_capabilities = ServerCapabilities()
        self._server_info = None
        self._state = final_state
        logger.debug(f"Client {final_state.value}")

    async def __aenter__(self) -> McpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close_gracefully()

    # =========================================================================
    # Requests
    # =========================================================================

    def _check_sendable(self, method: str) -> Transport:
        """Return the transport if ``method`` may be sent in the current state."""
        transport = self._transport
        if transport is None:
            raise NotConnectedError()

        if method == Method.INITIALIZE.value:
            if self._state != ClientState.HANDSHAKING:
                raise ProtocolStateError("initialize is only sent by connect()")
        elif method == Method.SHUTDOWN.value and self._state == ClientState.CLOSING:
            pass
        elif self._state != ClientState.READY:
            raise NotInitializedError()

        return transport

    async def request(
        self,
        method: str | Method,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for the correlated response.

        Args:
            method: Method name
            params: Request params (defaults to an empty object)
            timeout: Seconds to wait for the response; None waits forever

        Returns:
            The response's result

        Raises:
            NotConnectedError: No transport attached
            NotInitializedError: Handshake not complete
            TransportError: The transport failed to send
            RemoteError: The server returned an error
            RequestTimeoutError: No response within ``timeout``
        """
        method = method.value if isinstance(method, Method) else method
        transport = self._check_sendable(method)

        self._request_id += 1
        request_id = self._request_id
        envelope = JsonRpcRequest(id=request_id, method=method, params=params or {}).model_dump()

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        logger.debug(f"Sending {method} (id={request_id})")

        try:
            try:
                await transport.send(envelope)
            except McpClientError:
                raise
            except Exception as e:
                raise TransportError(f"Failed to send {method}: {e}") from e

            if timeout is None:
                return await future
            try:
                return await asyncio.wait_for(future, timeout)
            except TimeoutError:
                raise RequestTimeoutError(method, request_id, timeout) from None
        finally:
            # Covers response, send failure, timeout and cancellation
            self._pending.pop(request_id, None)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification (no id, no response)."""
        transport = self._check_sendable(method)
        envelope = JsonRpcNotification(method=method, params=params or {}).model_dump()
        await transport.send(envelope)

    def _handle_message(self, message: Message) -> None:
        """Route one inbound envelope to its pending request or to listeners."""
        request_id = message.get("id")
        is_int_id = isinstance(request_id, int) and not isinstance(request_id, bool)

        if is_int_id and request_id in self._pending:
            future = self._pending.pop(request_id)
            if future.done():
                return
            if message.get("error") is not None:
                future.set_exception(RemoteError.from_descriptor(message["error"]))
            else:
                future.set_result(message.get("result"))
            return

        method = message.get("method")
        if isinstance(method, str):
            params = message.get("params")
            self._events.emit(method, params if params is not None else {})
            return

        if request_id is not None:
            logger.debug(f"Dropping response for unknown request id {request_id!r}")

    # =========================================================================
    # Resources and tools
    # =========================================================================

    async def list_resources(self) -> ListResourcesResult:
        result = await self.request(Method.LIST_RESOURCES, {})
        return parse_result(ListResourcesResult, Method.LIST_RESOURCES, result)

    async def read_resource(self, uri: str) -> ReadResourceResult:
        result = await self.request(Method.READ_RESOURCE, {"uri": uri})
        return parse_result(ReadResourceResult, Method.READ_RESOURCE, result)

    async def list_tools(self) -> ListToolsResult:
        result = await self.request(Method.LIST_TOOLS, {})
        return parse_result(ListToolsResult, Method.LIST_TOOLS, result)

    async def call_tool(
        self,
        name: str,
        parameters: dict[str, Any] | None = None,
    ) -> CallToolResult:
        """Call a tool on the server.

        Args:
            name: Tool name
            parameters: Tool arguments
        """
        result = await self.request(
            Method.CALL_TOOL,
            {"name": name, "parameters": parameters or {}},
        )
        return parse_result(CallToolResult, Method.CALL_TOOL, result)

    # =========================================================================
    # Roots (require the roots capability on both sides)
    # =========================================================================

    def _require_capability(self, name: str) -> None:
        if not getattr(self.capabilities, name, False):
            raise CapabilityError(name, "client")
        if not self._server_capabilities.supports(name):
            raise CapabilityError(name, "server")

    async def add_root(self, root: Root) -> Any:
        self._require_capability("roots")
        return await self.request(Method.ADD_ROOT, root.model_dump())

    async def remove_root(self, uri: str) -> Any:
        self._require_capability("roots")
        return await self.request(Method.REMOVE_ROOT, {"uri": uri})

    async def list_roots(self) -> list[Root]:
        """List the roots known to the server.

        Accepts either a bare list or ``{"roots": [...]}`` as the result.
        """
        self._require_capability("roots")
        result = await self.request(Method.LIST_ROOTS, {})
        if isinstance(result, dict):
            result = result.get("roots", [])
        if result is None:
            return []
        if not isinstance(result, list):
            raise InvalidResponseError(Method.LIST_ROOTS.value, "expected a list of roots")
        return [parse_result(Root, Method.LIST_ROOTS, r) for r in result]


async def create_client(
    transport: Transport,
    client_info: Implementation,
    capabilities: ClientCapabilities | None = None,
) -> McpClient:
    """Create a client and connect it to ``transport``.

    Returns:
        A READY client
    """
    client = McpClient(client_info, capabilities)
    await client.connect(transport)
    return client


def parse_result(model: type[ModelT], method: Method, result: Any) -> ModelT:
    """Validate a response result as ``model``.

    A missing (null) result reads as an empty object.

    Raises:
        InvalidResponseError: If the result does not fit the model
    """
    if result is None:
        result = {}
    try:
        return model.model_validate(result)
    except ValidationError as e:
        raise InvalidResponseError(method.value, str(e)) from e
