"""A fixed-size ring buffer with independent reader cursors."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from .util import now_ms

logger = logging.getLogger(__name__)

DEFAULT_MAX_DATA_SIZE = 1024 * 1316  # about 5 Mbps for 2 seconds


@dataclass
class ReadCursor:
    """A reader's position in a :class:`RecycleArray`."""

    read_pos: int = 0
    data_count: int = 0
    first: bool = True


class RecycleArray:
    """Ring buffer that one writer fills and many readers follow.

    Old data is overwritten; a reader that falls a full lap behind
    silently loses what was overwritten.
    """

    def __init__(self, size: int = DEFAULT_MAX_DATA_SIZE) -> None:
        if size <= 0:
            raise ValueError("size must be positive")
        self._lock = threading.RLock()
        self._size = size
        self._buf = bytearray(size)
        self._write_pos = 0
        self._data_count = 0
        self.last_read_time = now_ms()

    @property
    def size(self) -> int:
        return self._size

    def set_size(self, n: int) -> None:
        """Reallocate the buffer; call before any put or get."""
        if n <= 0:
            raise ValueError("size must be positive")
        with self._lock:
            self._size = n
            self._write_pos = 0
            self._buf = bytearray(n)

    def count(self) -> int:
        """Return the total number of bytes ever written."""
        with self._lock:
            return self._data_count

    def put(self, data: bytes) -> int:
        """Append ``data``, wrapping around; return its length."""
        length = len(data)
        if length <= 0:
            raise ValueError("no data to put")
        if length > self._size:
            raise ValueError(
                f"data length {length} is bigger than buffer size {self._size}"
            )
        with self._lock:
            pos = self._write_pos
            room = self._size - pos
            if room >= length:
                self._buf[pos:pos + length] = data
                pos += length
            else:
                self._buf[pos:] = data[:room]
                self._buf[:length - room] = data[room:]
                pos = length - room
            self._write_pos = 0 if pos == self._size else pos
            self._data_count += length
        logger.debug(
            "put len=%d write_pos=%d count=%d size=%d",
            length, self._write_pos, self._data_count, self._size,
        )
        return length

    def get(self, size: int, cursor: ReadCursor, aligned: int = 0) -> bytes:
        """Read up to ``size`` new bytes for ``cursor``.

        The first call only places the cursor at the current write
        position and returns nothing. With ``aligned`` above zero the
        amount read is rounded down to a multiple of it.
        """
        if cursor.first:
            with self._lock:
                cursor.read_pos = self._write_pos
                cursor.data_count = self._data_count
            cursor.first = False
            return b""

        with self._lock:
            if (cursor.read_pos == self._write_pos
                    and cursor.data_count == self._data_count):
                return b""

            self.last_read_time = now_ms()
            read_pos = cursor.read_pos
            if read_pos < self._write_pos:
                ready = self._write_pos - read_pos
            else:
                ready = self._size - read_pos + self._write_pos
            copy_len = min(ready, size)
            if aligned > 0:
                copy_len = copy_len // aligned * aligned

            out = b""
            if copy_len > 0:
                end = read_pos + copy_len
                if end <= self._size:
                    out = bytes(self._buf[read_pos:end])
                    read_pos = end
                else:
                    head = self._size - read_pos
                    out = bytes(self._buf[read_pos:]) + bytes(
                        self._buf[:copy_len - head]
                    )
                    read_pos = copy_len - head

            if read_pos == self._size:
                read_pos = 0
            elif read_pos > self._size:
                logger.warning(
                    "read_pos=%d beyond buffer size=%d", read_pos, self._size
                )
                read_pos = 0
            cursor.read_pos = read_pos
            cursor.data_count = self._data_count
        return out