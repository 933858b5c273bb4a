"""Transport contract for the protocol client.

A transport is a byte pipe that moves whole envelopes (JSON objects):

- send: serialize and transmit one envelope, raise TransportError on failure
- close: release resources; idempotent, safe if never connected
- set_message_handler: register the single callback for inbound envelopes

The client only depends on the Transport protocol; BaseTransport carries the
bookkeeping every concrete transport shares (handler registration, envelope
parsing, the "no handler swap once traffic started" rule).
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..errors import TransportError

logger = logging.getLogger(__name__)

Message = dict[str, Any]
MessageHandler = Callable[[Message], None]

# All envelopes are UTF-8 JSON
ENCODING = "utf-8"


@dataclass
class TransportConfig:
    """Configuration shared by the concrete transports."""

    # Request timeout for HTTP calls, and the grace period when stopping
    # a child process
    timeout: float = 30.0

    # Extra HTTP headers sent with every request
    headers: dict[str, str] = field(default_factory=dict)

    # Push-stream reconnection (HTTP+SSE)
    reconnect: bool = True
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    reconnect_backoff: float = 2.0

    # Bytes requested per read from a pipe
    read_size: int = 65536


@runtime_checkable
class Transport(Protocol):
    """Protocol every client transport satisfies."""

    async def send(self, message: Message) -> None:
        """Transmit one envelope.

        Raises:
            TransportError: If the underlying channel is unavailable
        """
        ...

    async def close(self) -> None:
        """Release channel resources. Idempotent."""
        ...

    def set_message_handler(self, handler: MessageHandler) -> None:
        """Register the callback invoked once per inbound envelope."""
        ...


def encode_message(message: Message) -> str:
    """Serialize an envelope to a compact JSON document."""
    try:
        return json.dumps(message, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise TransportError(f"Message is not JSON serializable: {e}") from e


def decode_message(text: str) -> Message | None:
    """Parse one JSON document into an envelope.

    Returns None (after logging) for anything that is not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse message: {e} (data: {text[:80]})")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Discarding non-object message: {text[:80]}")
        return None

    return data


class BaseTransport(ABC):
    """Base class for transports with handler bookkeeping."""

    def __init__(self) -> None:
        self._handler: MessageHandler | None = None
        self._traffic_started = False

    def set_message_handler(self, handler: MessageHandler) -> None:
        """Register the inbound-envelope callback.

        Raises:
            TransportError: If a different handler is already installed and
                inbound traffic has begun
        """
        if self._traffic_started and self._handler is not None and self._handler != handler:
            raise TransportError("Cannot replace message handler after traffic has started")
        self._handler = handler
        self._on_handler_set()

    def _on_handler_set(self) -> None:
        """Hook for transports that start reading once a handler exists."""

    def _deliver_text(self, text: str) -> None:
        """Parse one complete document and hand it to the handler."""
        message = decode_message(text)
        if message is not None:
            self._deliver(message)

    def _deliver(self, message: Message) -> None:
        self._traffic_started = True
        if self._handler is None:
            logger.debug(f"No handler installed, dropping message: {message}")
            return
        try:
            self._handler(message)
        except Exception:
            logger.exception("Message handler raised")

    def _reset_traffic(self) -> None:
        self._traffic_started = False

    @abstractmethod
    async def send(self, message: Message) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    async def __aenter__(self) -> BaseTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
