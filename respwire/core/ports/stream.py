from typing import Protocol


class ByteSource(Protocol):
    """
    Anything the codec can pull bytes from: a socket file, a BytesIO,
    a pipe.

    `read(n)` returns at most `n` bytes and blocks until at least one is
    available. An empty result means end-of-data.
    """

    def read(self, n: int) -> bytes:
        """Return up to n bytes, or b"" once the source is exhausted."""


class ByteSink(Protocol):
    """Anything the codec can hand encoded bytes to."""

    def write(self, data: bytes) -> object:
        """Accept the whole byte sequence."""
