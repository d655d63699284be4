"""Read a TS file paced by timestamps, via a cached ``.rts`` index file.

An ``.rts`` file is a sequence of records, each an 8-byte little-endian
timestamp on the 90 kHz clock followed by one 1316-byte UDP payload.
"""

from __future__ import annotations

import logging
import os
import struct
from collections.abc import Iterator
from typing import BinaryIO

from .ts import (
    INVALID_DTS_PTS,
    INVALID_PID,
    TS_PACK_LEN,
    TS_UDP_LEN,
    TsInfo,
    null_udp_packet,
    parse_ts_packet,
)

logger = logging.getLogger(__name__)

RTS_STAMP = struct.Struct("<q")
RTS_PACK_LEN = TS_UDP_LEN + RTS_STAMP.size
RTS_BUF_SIZE = RTS_PACK_LEN * 100


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def _drain(buf: bytearray, count: int) -> Iterator[bytes]:
    """Take ``count`` UDP payloads off the front of ``buf``."""
    for _ in range(count):
        chunk = bytes(buf[:TS_UDP_LEN])
        del buf[:TS_UDP_LEN]
        yield chunk


class TSFileTimeReader:
    """Serves UDP payloads of a TS file together with their times in ms."""

    def __init__(self) -> None:
        self.file_name = ""
        self.loop = True
        self.dts_pid = INVALID_PID
        self.dts = INVALID_DTS_PTS
        self.pts = INVALID_DTS_PTS
        self.udp_duration = 0
        self.read_count = 0
        self._file: BinaryIO | None = None
        self._pending = bytearray()

    def __enter__(self) -> TSFileTimeReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self, ts_file_name: str, loop: bool = True) -> None:
        """Prepare the ``.rts`` file for ``ts_file_name`` and open it."""
        if not ts_file_name:
            raise ValueError("empty ts file name")
        try:
            self.generate_rts_file(ts_file_name)
        except OSError as exc:
            logger.info("generate rts file for '%s' failed: %s", ts_file_name, exc)
            self.file_name = f"{ts_file_name}.rts"
        self.close()
        self._file = open(self.file_name, "rb")
        self._pending.clear()
        self.loop = loop
        self.read_count = 0
        logger.info("opened '%s', loop=%s", self.file_name, loop)

    def close(self) -> None:
        """Close the ``.rts`` file if it is open."""
        if self._file is not None:
            logger.info("closing '%s'", self.file_name)
            self._file.close()
            self._file = None

    def _refill(self) -> None:
        assert self._file is not None
        chunk = self._file.read(RTS_BUF_SIZE)
        if not chunk:
            if not self.loop:
                raise EOFError(f"end of file '{self.file_name}'")
            logger.info("loop, reopening '%s'", self.file_name)
            self._file.close()
            self._file = open(self.file_name, "rb")
            self.read_count = 0
            chunk = self._file.read(RTS_BUF_SIZE)
            if not chunk:
                raise EOFError(f"no data in '{self.file_name}'")
        self._pending += chunk

    def get(self, size: int = TS_UDP_LEN) -> tuple[bytes, int]:
        """Return the next payload of ``size`` bytes and its time in ms."""
        if self._file is None:
            raise RuntimeError("no rts file is open")
        if not self._pending:
            self._refill()

        stamp = bytes(self._pending[:RTS_STAMP.size])
        del self._pending[:RTS_STAMP.size]
        if len(stamp) != RTS_STAMP.size:
            raise ValueError(f"truncated timestamp in '{self.file_name}'")
        (rts,) = RTS_STAMP.unpack(stamp)
        tm_ms = _trunc_div(rts, 90)  # 90 kHz clock

        data = bytes(self._pending[:size])
        del self._pending[:size]
        self.read_count += len(data)
        if len(data) != size:
            raise ValueError(
                f"short payload in '{self.file_name}': {len(data)}, not {size}"
            )
        return data, tm_ms

    def generate_rts_file(self, ts_file_name: str) -> str:
        """Write ``<ts_file_name>.rts`` unless it exists; return its path."""
        rts_path = f"{ts_file_name}.rts"
        self.file_name = rts_path
        if os.path.exists(rts_path):
            logger.info("'%s' exists", rts_path)
            return rts_path

        pending = bytearray()
        info = TsInfo()
        with open(ts_file_name, "rb") as ts_file, open(rts_path, "wb") as out:

            def emit(stamp: int, chunk: bytes) -> None:
                out.write(RTS_STAMP.pack(stamp))
                out.write(chunk)

            while len(packet := ts_file.read(TS_PACK_LEN)) == TS_PACK_LEN:
                parse_ts_packet(packet, info)
                if info.dts == INVALID_DTS_PTS:
                    pending += packet
                    continue
                if self.dts == INVALID_DTS_PTS:
                    self.dts = info.dts
                    self.pts = info.pts
                    self.dts_pid = info.es_pid
                    info.dts = info.pts = INVALID_DTS_PTS
                    pending += packet
                    continue

                udp_count = len(pending) // TS_UDP_LEN
                if udp_count > 0:
                    self.udp_duration = _trunc_div(info.dts - self.dts, udp_count)
                    rts = self.dts
                    for chunk in _drain(pending, udp_count):
                        emit(rts, chunk)
                        rts += self.udp_duration
                    self.dts = info.dts
                    self.pts = info.pts
                logger.debug("dts_pid=%d, dts=%d", self.dts_pid, info.dts)
                info.dts = info.pts = INVALID_DTS_PTS
                pending += packet

            rts = self.dts
            udp_count = len(pending) // TS_UDP_LEN
            if udp_count > 0:
                for chunk in _drain(pending, udp_count):
                    emit(rts, chunk)
                    rts += self.udp_duration
                if pending:
                    remainder = bytes(pending)
                    emit(rts, remainder + null_udp_packet()[len(remainder):])
                    pending.clear()

        logger.info("generated '%s'", rts_path)
        return rts_path