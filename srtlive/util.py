"""Small helpers shared across the server: clocks, hashing, strings, paths."""

from __future__ import annotations

import os
import socket
import time
from collections.abc import Iterable

_TIME_BUF_LEN = 31  # formatted times are cut to this many characters


def now_us() -> int:
    """Return the wall-clock time in microseconds."""
    return time.time_ns() // 1000


def now_ms() -> int:
    """Return the wall-clock time in milliseconds."""
    return now_us() // 1000


def format_time(seconds: int | float, fmt: str) -> str:
    """Format a Unix time in local time with a strftime pattern."""
    return time.strftime(fmt, time.localtime(seconds))[:_TIME_BUF_LEN]


def default_time_string() -> str:
    """Return the current local time as 'YYYY-MM-DD HH:MM:SS'."""
    return format_time(now_us() // 1_000_000, "%Y-%m-%d %H:%M:%S")


def hash_key(data: str | bytes) -> int:
    """Return the 32-bit multiplicative (x31) hash of a string or bytes.

    Bytes above 0x7F count as negative values, as signed chars would.
    """
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    key = 0
    for byte in raw:
        signed = byte - 256 if byte >= 0x80 else byte
        key = (key * 31 + signed) & 0xFFFFFFFF
    return key


def remove_marks(text: str) -> str:
    """Strip one pair of matching single or double quotes around ``text``."""
    if len(text) < 2:
        return text
    if text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text


def mkdir_p(path: str | os.PathLike[str]) -> None:
    """Create ``path`` and any missing parents with mode 0755.

    An existing directory is accepted; an existing non-directory raises.
    """
    os.makedirs(path, mode=0o755, exist_ok=True)


def split_string(text: str, separator: str, count: int = -1) -> list[str]:
    """Split ``text`` on ``separator`` at most ``count`` times.

    A ``count`` of zero or below means no limit.
    """
    if not separator:
        raise ValueError("separator must not be empty")
    return text.split(separator, count if count > 0 else -1)


def find_string(items: Iterable[str], needle: str) -> str:
    """Return the first item containing ``needle``, or an empty string."""
    return next((item for item in items if needle in item), "")


def resolve_host(hostname: str) -> str:
    """Resolve ``hostname`` to its first IPv4 address.

    Raises ``OSError`` (``socket.gaierror``) when it cannot be resolved.
    """
    return socket.gethostbyname(hostname)