"""Client transports.

- StdioTransport: JSON lines over this process's stdin/stdout
- ProcessTransport: JSON lines over a child process's pipes
- HttpSseTransport: HTTP POST out, Server-Sent Events in
- MockTransport: in-memory, for tests
"""

from .base import BaseTransport, Message, MessageHandler, Transport, TransportConfig
from .memory import MockTransport
from .sse import HttpSseTransport, ServerSentEvent, SSEDecoder
from .stdio import JsonLineTransport, ProcessTransport, StdioTransport

__all__ = [
    # Contract
    "Transport",
    "BaseTransport",
    "TransportConfig",
    "Message",
    "MessageHandler",
    # Line-delimited JSON
    "JsonLineTransport",
    "StdioTransport",
    "ProcessTransport",
    # HTTP + SSE
    "HttpSseTransport",
    "SSEDecoder",
    "ServerSentEvent",
    # Testing
    "MockTransport",
]
