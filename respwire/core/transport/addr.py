from typing import Any


def _as_addr(info: Any) -> tuple[str, int] | None:
    if (
        isinstance(info, tuple)
        and len(info) >= 2
        and isinstance(info[0], str)
        and isinstance(info[1], int)
    ):
        return info[0], info[1]
    return None


def get_remote_addr(transport: Any) -> tuple[str, int] | None:
    """
    Host and port of the peer, or None when the transport is not an IP
    connection (unix sockets, pipes) or does not report one.
    """
    sock = transport.get_extra_info("socket")
    if sock is not None:
        try:
            return _as_addr(sock.getpeername())
        except OSError:
            return None
    return _as_addr(transport.get_extra_info("peername"))
