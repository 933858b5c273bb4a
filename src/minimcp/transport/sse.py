"""HTTP + Server-Sent Events transport.

Outbound envelopes are POSTed as application/json to a fixed URL. Inbound
envelopes arrive as the data of server-sent events streamed from a GET on
the same URL. The stream is opened lazily by the first send and reopened
with backoff if it drops after a successful open.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

import httpx

from ..errors import HTTPStatusError, TransportError
from .base import ENCODING, BaseTransport, Message, TransportConfig, encode_message

logger = logging.getLogger(__name__)


@dataclass
class ServerSentEvent:
    """One dispatched server-sent event."""

    event: str = "message"
    data: str = ""
    id: str | None = None


class SSEDecoder:
    """Incremental decoder for the text/event-stream format.

    Feed it one line at a time (without the line terminator). A blank line
    dispatches the accumulated event. ``retry`` holds the last reconnection
    delay (milliseconds) announced by the server.
    """

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []
        self._last_event_id = ""
        self.retry: int | None = None

    @property
    def last_event_id(self) -> str:
        return self._last_event_id

    def decode(self, line: str) -> ServerSentEvent | None:
        if not line:
            return self._dispatch()

        if line.startswith(":"):
            # Comment / keep-alive
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self.retry = int(value)
        else:
            logger.debug(f"Ignoring unknown SSE field: {name}")
        return None

    def _dispatch(self) -> ServerSentEvent | None:
        if not self._data:
            self._event = ""
            return None

        event = ServerSentEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._last_event_id or None,
        )
        self._event = ""
        self._data = []
        return event


class HttpSseTransport(BaseTransport):
    """Transport over HTTP POST + Server-Sent Events.

    Usage:
        transport = HttpSseTransport("http://localhost:8080/mcp")
        await client.connect(transport)

    Errors while opening the stream fail the send that triggered it. Errors
    after the stream opened are logged and the stream is reopened (when
    ``config.reconnect`` is set), sending Last-Event-ID.
    """

    def __init__(
        self,
        url: str,
        config: TransportConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the transport.

        Args:
            url: Endpoint used both for POSTing envelopes and for the event stream
            config: Transport configuration
            client: Pre-built HTTP client (not closed by this transport)
        """
        super().__init__()
        self.url = url
        self.config = config or TransportConfig()
        self._client = client
        self._owns_client = client is None
        self._connected = False
        self._stream_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._last_event_id: str | None = None
        self._base_delay = self.config.reconnect_delay
        self._reconnect_delay = self.config.reconnect_delay

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def last_event_id(self) -> str | None:
        return self._last_event_id

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def connect(self) -> None:
        """Open the event stream and wait until it reports open.

        Concurrent callers share one connection attempt.

        Raises:
            HTTPStatusError: If the stream request got a non-success status
            TransportError: If the stream could not be opened
        """
        if self._connected:
            return

        async with self._lock:
            if self._connected:
                return

            opened: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._stream_task = asyncio.create_task(self._run_stream(opened))
            try:
                await opened
            except BaseException:
                await self._cancel_stream()
                raise

    async def send(self, message: Message) -> None:
        """POST one envelope, opening the event stream first if needed."""
        content = encode_message(message).encode(ENCODING)
        await self.connect()

        client = self._ensure_client()
        headers = {**self.config.headers, "Content-Type": "application/json"}
        try:
            response = await client.post(
                self.url,
                content=content,
                headers=headers,
                timeout=self.config.timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"POST {self.url} failed: {e}") from e

        if not response.is_success:
            raise HTTPStatusError(response.status_code)

    async def close(self) -> None:
        """Close the event stream. Idempotent; a later send reconnects."""
        await self._cancel_stream()
        self._connected = False
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        self._reset_traffic()

    async def _cancel_stream(self) -> None:
        task = self._stream_task
        self._stream_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run_stream(self, opened: asyncio.Future[None]) -> None:
        """Read the event stream, reopening it after errors once it has opened."""
        while True:
            try:
                await self._read_stream(opened)
                raise TransportError("Event stream closed by server")
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, TransportError) as e:
                if not opened.done():
                    if isinstance(e, TransportError):
                        error = e
                    else:
                        error = TransportError(f"Failed to open event stream: {e}")
                        error.__cause__ = e
                    opened.set_exception(error)
                    return

                logger.error(f"SSE connection error: {e}")
                if not self.config.reconnect:
                    self._connected = False
                    return

                logger.warning(f"Reconnecting event stream in {self._reconnect_delay}s...")
                await asyncio.sleep(self._reconnect_delay)
                self._reconnect_delay = min(
                    self._reconnect_delay * self.config.reconnect_backoff,
                    self.config.max_reconnect_delay,
                )

    async def _read_stream(self, opened: asyncio.Future[None]) -> None:
        client = self._ensure_client()
        headers = {
            **self.config.headers,
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id

        decoder = SSEDecoder()
        async with client.stream(
            "GET",
            self.url,
            headers=headers,
            # No read timeout: the stream idles between events
            timeout=httpx.Timeout(self.config.timeout, read=None),
        ) as response:
            if not response.is_success:
                raise HTTPStatusError(response.status_code)

            self._connected = True
            self._reconnect_delay = self._base_delay
            if not opened.done():
                opened.set_result(None)
            logger.info(f"Event stream open: {self.url}")

            async for line in response.aiter_lines():
                event = decoder.decode(line)
                if decoder.retry is not None:
                    self._base_delay = decoder.retry / 1000
                    self._reconnect_delay = self._base_delay
                    decoder.retry = None
                if event is None:
                    continue

                if event.id is not None:
                    self._last_event_id = event.id
                if event.event != "message":
                    logger.debug(f"Skipping named SSE event: {event.event}")
                    continue

                self._deliver_text(event.data)
