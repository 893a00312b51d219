from dataclasses import dataclass
from enum import StrEnum


class FloatPolicy(StrEnum):
    """
    How the bridge maps a float onto the protocol, which has no float kind.
    Integral floats (``3.0``) always map to Integer; the policy only decides
    what happens to the others.
    """
    reject = "reject"
    truncate = "truncate"


@dataclass(frozen=True)
class CodecConfig:
    """
    Resource limits and mapping policy shared by the parser, the writer
    and the generic bridge.

    The limits protect a process reading from an untrusted peer: a corrupt
    or malicious length prefix must never turn into an attacker-sized
    allocation.
    """
    max_bulk_length: int = 512 * 1024 * 1024  # 512MB
    """
    Largest accepted bulk string payload, in bytes.
    """

    max_array_length: int = (1 << 32) - 1
    """
    Largest accepted element count in an array header.
    """

    max_line_length: int = 64 * 1024  # 64KB
    """
    Longest accepted line field (simple string, error, integer or length
    prefix) before its CRLF terminator.
    """

    max_depth: int = 128
    """
    Deepest accepted array nesting. A top-level array has depth 1.
    """

    max_buffer_size: int = 512 * 1024 * 1024 + 64 * 1024
    """
    Maximum amount of received but not yet consumed bytes the parser keeps.
    """

    float_policy: FloatPolicy = FloatPolicy.reject
    """
    Treatment of non-integral floats by the bridge.
    """


DEFAULT_CONFIG = CodecConfig()
