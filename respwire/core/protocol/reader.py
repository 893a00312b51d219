import asyncio
from collections.abc import Iterator

from respwire.core.models.config import CodecConfig
from respwire.core.models.value import RespValue
from respwire.core.ports.stream import ByteSource
from respwire.core.protocol.parser import NEED_MORE, Parser

DEFAULT_CHUNK_SIZE = 64 * 1024


class StreamReader:
    """
    Pulls protocol values out of a blocking byte source.

    A single Parser is kept across calls, so bytes of the next value that
    arrived together with the current one are never lost.
    """
    def __init__(
        self,
        source: ByteSource,
        config: CodecConfig | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._source = source
        self._parser = Parser(config)
        self._chunk_size = chunk_size
        self._eof = False

    def read(self) -> RespValue | None:
        """
        Return the next value, or None once the source ended cleanly
        between two values. Ending inside a value raises UnexpectedEof.
        """
        while True:
            value = self._parser.get_value()
            if value is not NEED_MORE:
                return value
            if self._eof:
                return None

            chunk = self._source.read(self._chunk_size)
            if chunk:
                self._parser.feed(chunk)
            else:
                self._eof = True
                self._parser.feed_eof()

    def __iter__(self) -> Iterator[RespValue]:
        while (value := self.read()) is not None:
            yield value


async def read_value_async(
    reader: asyncio.StreamReader,
    parser: Parser,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RespValue | None:
    """
    Await the next value from an asyncio stream.

    The only suspension point is the read issued when the parser reports
    NEED_MORE. Cancelling the coroutine there is safe: the parser keeps what
    it has consumed and the next call resumes it. Returns None when the
    stream ends cleanly between two values.
    """
    while True:
        value = parser.get_value()
        if value is not NEED_MORE:
            return value

        chunk = await reader.read(chunk_size)
        if not chunk:
            parser.feed_eof()
            # raises UnexpectedEof when a value was left incomplete
            parser.get_value()
            return None
        parser.feed(chunk)
