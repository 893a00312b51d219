import asyncio
import logging
from typing import Any

from respwire.core.errors import RespError, UnexpectedEof
from respwire.core.facade import serialize
from respwire.core.models.config import DEFAULT_CONFIG, CodecConfig
from respwire.core.models.value import RespValue
from respwire.core.protocol.parser import Parser
from respwire.core.protocol.writer import encode
from respwire.core.transport.addr import get_remote_addr


class RespProtocol(asyncio.Protocol):
    """
    asyncio protocol speaking RESP over one connection, client or server
    side alike.

    Incoming chunks are fed to a Parser as they arrive, in whatever sizes
    the transport delivers them. Every complete value is pushed into a
    queue consumed through `receive()`; a value split across chunks simply
    waits in the parser until its last byte arrives.

    Malformed input, or more unconsumed input than the configured buffer
    limit, closes the connection: the stream cannot be resynchronized. When
    the connection is lost, `receive()` returns None.

    Outgoing values are encoded completely before anything is written.
    While the transport reports its buffer full (`pause_writing()`),
    senders wait; a value is never split across a pause.
    """
    def __init__(self, config: CodecConfig | None = None) -> None:
        self._transport: asyncio.Transport = None   # type: ignore[assignment]

        self._config = config or DEFAULT_CONFIG
        self._parser = Parser(self._config)
        self.queue: asyncio.Queue[RespValue | None] = asyncio.Queue()
        self._peer: tuple[str, int] | None = None
        self._write_paused = False
        self._writable = asyncio.Event()
        self._writable.set()
        self._logger = logging.getLogger("core.transport.protocol")

    def _who(self) -> str:
        return "%s:%d" % self._peer if self._peer else "local"

    @property
    def write_paused(self) -> bool:
        return self._write_paused

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]
        self._peer = get_remote_addr(transport)
        self._logger.debug(f"{self._who()} - Connection made")

    def connection_lost(self, exc: Exception | None) -> None:
        self._logger.debug(f"{self._who()} - Connection lost.")

        # release pending senders; they find the transport closing
        self._write_paused = False
        self._writable.set()
        if exc is None and self._transport is not None:
            self._transport.close()

        self._parser.reset()
        self.queue.put_nowait(None)

    def eof_received(self) -> bool | None:
        self._parser.feed_eof()
        try:
            self._parser.get_value()
        except UnexpectedEof as exc:
            self._logger.warning(f"{self._who()} - Peer closed in the middle of a value: {exc}")
        return None

    def data_received(self, data: bytes) -> None:
        try:
            self._parser.feed(data)
            for value in self._parser:
                self.queue.put_nowait(value)
        except RespError as exc:
            self._logger.warning(f"{self._who()} - Protocol error, closing connection: {exc}")
            self._transport.close()

    def pause_writing(self) -> None:
        self._write_paused = True
        self._writable.clear()

    def resume_writing(self) -> None:
        self._write_paused = False
        self._writable.set()

    async def receive(self) -> RespValue | None:
        return await self.queue.get()

    async def send(self, obj: Any) -> None:
        """Bridge `obj` to a protocol value and write its encoding."""
        # encode before waiting: an invalid object fails without touching the wire
        await self._write(serialize(obj, self._config))

    async def send_many(self, values: list[RespValue]) -> None:
        """Write already built protocol values as one pipelined chunk."""
        data = b"".join(encode(value) for value in values)
        if data:
            await self._write(data)

    async def _write(self, data: bytes) -> None:
        if self._write_paused:
            await self._writable.wait()
        if self._transport.is_closing():
            raise ConnectionResetError(f"{self._who()} - connection is closed")
        self._transport.write(data)

    def shutdown(self) -> None:
        self._transport.close()
