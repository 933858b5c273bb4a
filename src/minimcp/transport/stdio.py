"""Newline-delimited JSON transports.

Wire format (UTF-8):
- Each envelope is one JSON document followed by exactly one LF
- Input accepts LF or CRLF, and a leading BOM on a line is ignored
- Blank lines are skipped; lines that fail to parse are logged and dropped

StdioTransport talks over the host process's own stdin/stdout (the process
is the MCP peer's child). ProcessTransport launches the peer as a child
process and talks over its pipes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
from collections.abc import Sequence
from typing import BinaryIO

from ..errors import TransportError
from .base import ENCODING, BaseTransport, Message, TransportConfig, decode_message, encode_message

logger = logging.getLogger(__name__)

NEWLINE = "\n"
NEWLINE_BYTES = b"\n"
BOM = "\ufeff"


class JsonLineTransport(BaseTransport):
    """Line framing shared by the stdio-style transports.

    Raw input is fed in arbitrary chunks through ``feed_data``; a line split
    across chunks is reassembled before parsing, and one chunk may complete
    any number of lines. Each complete line is decoded as strict UTF-8, so a
    multi-byte character split across chunks is fine but invalid bytes drop
    the line.
    """

    def __init__(self, config: TransportConfig | None = None):
        super().__init__()
        self.config = config or TransportConfig()
        self._buffer = b""

    @staticmethod
    def frame(message: Message) -> bytes:
        """Serialize an envelope to one newline-terminated UTF-8 line."""
        return (encode_message(message) + NEWLINE).encode(ENCODING)

    def feed_data(self, chunk: bytes | str) -> int:
        """Append raw input and deliver every complete line.

        Returns:
            Number of envelopes delivered to the handler
        """
        if isinstance(chunk, str):
            chunk = chunk.encode(ENCODING)
        self._buffer += chunk

        delivered = 0
        while (index := self._buffer.find(NEWLINE_BYTES)) != -1:
            raw = self._buffer[:index]
            self._buffer = self._buffer[index + 1 :]

            try:
                line = raw.decode(ENCODING).strip()
            except UnicodeDecodeError as e:
                logger.warning(f"Discarding line that is not valid UTF-8: {e}")
                continue

            if line.startswith(BOM):
                line = line[1:].strip()
            if not line:
                continue

            message = decode_message(line)
            if message is not None:
                self._deliver(message)
                delivered += 1
        return delivered

    def feed_eof(self) -> None:
        """Mark the end of input. An unterminated tail is dropped."""
        if self._buffer.strip():
            logger.warning(f"Discarding unterminated input at EOF: {self._buffer[:80]!r}")
        self._buffer = b""

    def _reset_buffer(self) -> None:
        self._buffer = b""


class StdioTransport(JsonLineTransport):
    """Transport over this process's stdin/stdout.

    The pipes belong to the host process: close() stops delivering input but
    never closes them.

    Usage:
        transport = StdioTransport()
        client = McpClient(Implementation(name="my-client", version="1.0.0"))
        await client.connect(transport)
    """

    def __init__(
        self,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
        config: TransportConfig | None = None,
    ):
        """Initialize stdio transport.

        Args:
            stdin: Binary input stream (default: sys.stdin.buffer)
            stdout: Binary output stream (default: sys.stdout.buffer)
            config: Transport configuration
        """
        super().__init__(config)
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._reader_task: asyncio.Task[None] | None = None
        self._eof = False

    async def send(self, message: Message) -> None:
        """Write one envelope as a JSON line to stdout."""
        data = self.frame(message)
        self._ensure_reader()
        try:
            self._stdout.write(data)
            self._stdout.flush()
        except (OSError, ValueError) as e:
            raise TransportError(f"stdout unavailable: {e}") from e

    async def close(self) -> None:
        """Stop reading stdin. The pipes themselves stay open."""
        if self._reader_task is not None:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None
        self._reset_buffer()
        self._reset_traffic()

    async def wait_for_eof(self) -> None:
        """Wait until stdin reaches EOF (or the reader is stopped)."""
        self._ensure_reader()
        if self._reader_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task

    def _on_handler_set(self) -> None:
        self._ensure_reader()

    def _ensure_reader(self) -> None:
        if self._eof or (self._reader_task is not None and not self._reader_task.done()):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the reader starts on the first send
            return
        self._reader_task = loop.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        """Pull chunks from stdin until EOF."""
        loop = asyncio.get_running_loop()
        read = getattr(self._stdin, "read1", self._stdin.read)
        try:
            while True:
                # Blocking read runs in the default executor
                chunk = await loop.run_in_executor(None, read, self.config.read_size)
                if not chunk:
                    logger.debug("stdin closed")
                    self._eof = True
                    self.feed_eof()
                    break
                self.feed_data(chunk)
        except asyncio.CancelledError:
            pass
        except (OSError, ValueError) as e:
            logger.warning(f"Error reading stdin: {e}")


class ProcessTransport(JsonLineTransport):
    """Transport over a child process's stdin/stdout.

    The child is launched on the first send (or an explicit start()) and
    terminated by close(). Its stderr is forwarded to the debug log.

    Usage:
        transport = ProcessTransport("node", ["server.js"])
        await client.connect(transport)
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        config: TransportConfig | None = None,
    ):
        super().__init__(config)
        self.command = command
        self.args = list(args)
        self.env = env
        self.cwd = cwd
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    async def start(self) -> None:
        """Launch the child process if it has not been started yet."""
        async with self._lock:
            if self._process is not None:
                return

            env = None
            if self.env:
                env = {**os.environ, **self.env}

            try:
                self._process = await asyncio.create_subprocess_exec(
                    self.command,
                    *self.args,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=self.cwd,
                    env=env,
                )
            except OSError as e:
                raise TransportError(f"Failed to launch {self.command}: {e}") from e

            self._reset_buffer()
            self._reader_task = asyncio.create_task(self._read_stdout())
            self._stderr_task = asyncio.create_task(self._read_stderr())

            logger.info(
                f"Launched subprocess: {' '.join([self.command, *self.args])} "
                f"(pid={self._process.pid})"
            )

    async def send(self, message: Message) -> None:
        """Write one envelope as a JSON line to the child's stdin."""
        data = self.frame(message)
        await self.start()

        process = self._process
        if process is None or process.stdin is None:
            raise TransportError("Process not running")
        if process.returncode is not None:
            raise TransportError(f"Process exited with code {process.returncode}")

        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (ConnectionError, OSError) as e:
            raise TransportError(f"Failed to write to process: {e}") from e

    async def close(self) -> None:
        """Terminate the child process."""
        async with self._lock:
            for task in (self._stderr_task, self._reader_task):
                if task is not None:
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
            self._stderr_task = None
            self._reader_task = None

            process = self._process
            self._process = None
            self._reset_buffer()
            self._reset_traffic()

            if process is None:
                return

            if process.returncode is None:
                if process.stdin is not None:
                    process.stdin.close()
                with contextlib.suppress(ProcessLookupError):
                    process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.config.timeout)
                except TimeoutError:
                    with contextlib.suppress(ProcessLookupError):
                        process.kill()
                    await process.wait()
            logger.info(f"Subprocess terminated (pid={process.pid})")

    async def _read_stdout(self) -> None:
        process = self._process
        if process is None or process.stdout is None:
            return

        try:
            while True:
                chunk = await process.stdout.read(self.config.read_size)
                if not chunk:
                    break
                self.feed_data(chunk)
            self.feed_eof()
            logger.info(f"Subprocess stdout closed (pid={process.pid})")
        except asyncio.CancelledError:
            pass

    async def _read_stderr(self) -> None:
        """Read and log stderr output."""
        process = self._process
        if process is None or process.stderr is None:
            return

        try:
            while True:
                line = await process.stderr.readline()
                if not line:
                    break
                logger.debug(f"[{self.command} stderr] {line.decode(ENCODING, 'replace').rstrip()}")
        except asyncio.CancelledError:
            pass
