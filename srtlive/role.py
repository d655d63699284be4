"""The base of every stream endpoint: publisher, player, listener, relay."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import Any, Protocol

from .hls import HlsRecorder
from .recycle_array import ReadCursor
from .ts import TS_UDP_LEN
from .util import now_ms as _now_ms

logger = logging.getLogger(__name__)

DATA_BUFF_SIZE = 100 * 1316
UNLIMITED_TIMEOUT = -1


class _Transport(Protocol):
    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...

    def is_broken(self) -> bool: ...

    def peer_address(self) -> tuple[str, int]: ...


class _MapData(Protocol):
    def put(self, key: str, data: bytes) -> Any: ...

    def get(self, key: str, size: int, cursor: ReadCursor, aligned: int) -> bytes: ...


class RoleState(enum.IntEnum):
    UNINIT = 0
    INITED = 1
    INVALID = 2


class Role:
    """One connected endpoint moving TS data between a socket and map data.

    ``srt`` is the connection: it reads and writes bytes, closes, tells
    whether it is broken and names its peer. ``map_data`` holds the
    published streams by key.
    """

    def __init__(
        self,
        srt: _Transport | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.srt = srt
        self._clock = clock
        self.is_write = True  # listener and publisher: False, player: True
        self.invalid_begin_tm = clock()
        self.stat_bitrate_last_tm = self.invalid_begin_tm
        self.stat_bitrate_interval = 1000  # ms
        self.stat_bitrate_datacount = 0
        self.kbitrate = 0
        self.idle_streams_timeout = 10  # s, -1 for unlimited
        self.latency = 20  # ms
        self.state = RoleState.UNINIT
        self.back_log = 1024
        self.port = 0
        self.peer_ip = ""
        self.peer_port = 0
        self.role_name = "role"
        self.streamid = ""
        self.http_url = ""
        self.http_passed = True
        self.conf: Any = None
        self.map_data: _MapData | None = None
        self.map_data_key = ""
        self.map_data_cursor = ReadCursor()
        self.need_reconnect = False
        self.stat_info_base = ""
        self.record_hls = False
        self.hls = HlsRecorder(ts_info=self._ts_info)
        self._data = b""
        self._data_pos = 0

    def init(self) -> None:
        """Mark the role ready and reset its read position."""
        self.state = RoleState.INITED
        self.map_data_cursor = ReadCursor()

    def uninit(self) -> None:
        """Close the connection and any HLS recording."""
        if self.state != RoleState.UNINIT:
            self.state = RoleState.UNINIT
            self._invalid_srt()
        self.hls.close()

    def _invalid_srt(self) -> None:
        if self.srt is not None:
            logger.info("role %s: closing connection, state=%d",
                        self.role_name, self.state)
            self.srt.close()
            self.srt = None

    def get_state(self, now_ms: int | None = None) -> RoleState:
        """Return the state, turning it invalid on idleness or a broken link."""
        if self.state == RoleState.INVALID:
            return self.state
        if self.check_idle_streams_duration(now_ms):
            logger.info("role %s: idle for %ds, invalid",
                        self.role_name, self.idle_streams_timeout)
            self.state = RoleState.INVALID
            self._invalid_srt()
            return self.state
        if self.srt is None or self.srt.is_broken():
            logger.info("role %s: connection broken, invalid", self.role_name)
            self.state = RoleState.INVALID
            self._invalid_srt()
        return self.state

    def check_idle_streams_duration(self, now_ms: int | None = None) -> bool:
        """True when no data has moved for the idle timeout."""
        if self.idle_streams_timeout == UNLIMITED_TIMEOUT:
            return False
        if not now_ms:
            now_ms = self._clock()
        return now_ms - self.invalid_begin_tm >= self.idle_streams_timeout * 1000

    def update_bitrate(self, nbytes: int, now_ms: int | None = None) -> int:
        """Count ``nbytes`` of traffic and return the bitrate in kbit/s."""
        if now_ms is None:
            now_ms = self._clock()
        self.stat_bitrate_datacount += nbytes
        self.invalid_begin_tm = now_ms
        elapsed = now_ms - self.stat_bitrate_last_tm
        if elapsed >= self.stat_bitrate_interval:
            self.kbitrate = self.stat_bitrate_datacount * 8 // elapsed
            self.stat_bitrate_datacount = 0
            self.stat_bitrate_last_tm = now_ms
        return self.kbitrate

    def get_stat_info(self) -> str:
        """Return the stat JSON fragment closed with the current bitrate."""
        return f'{self.stat_info_base}"{self.kbitrate}"}}'

    def set_map_data(self, key: str, map_data: _MapData) -> None:
        """Attach the stream store and the key this role works on."""
        if not key:
            raise ValueError("map data key is empty")
        self.map_data_key = key
        self.map_data = map_data

    def set_record_hls_path(self, path: str | None) -> None:
        self.hls.set_path(path)

    def _ts_info(self) -> bytes:
        getter = getattr(self.map_data, "get_ts_info", None)
        if getter is None:
            return b""
        return bytes(getter(self.map_data_key) or b"")[:TS_UDP_LEN]

    def _stream_id(self) -> str:
        if not self.streamid and self.srt is not None:
            self.streamid = getattr(self.srt, "stream_id", "") or ""
        return self.streamid

    def handler_read_data(self) -> Any:
        """Read one packet from the connection into the map data.

        Returns what the map data's ``put`` returns, or 0 while the
        role waits for its HTTP check.
        """
        if not self.http_passed:
            return 0
        if self.srt is None:
            raise RuntimeError("no connection to read from")
        data = self.srt.read(TS_UDP_LEN)
        if not data:
            raise ConnectionError("read from connection failed")
        self.update_bitrate(len(data), self._clock())
        if len(data) != TS_UDP_LEN:
            logger.debug("read %d bytes, expected %d", len(data), TS_UDP_LEN)
        if self.map_data is None:
            raise RuntimeError("no map data to put into")
        result = self.map_data.put(self.map_data_key, data)
        if self.record_hls:
            self.hls.record(data, self._clock())
        return result

    def handler_write_data(self) -> int:
        """Send pending packets to the connection.

        Returns the bytes written when everything pending went out, and
        0 when nothing was available or some data remains for later.
        """
        if not self.http_passed:
            return 0
        if self.map_data is None:
            raise RuntimeError("no map data to read from")
        if not self.map_data_key:
            raise RuntimeError("map data key is empty")

        fetched = 0
        if len(self._data) < TS_UDP_LEN:
            try:
                self._data = self.map_data.get(
                    self.map_data_key, DATA_BUFF_SIZE,
                    self.map_data_cursor, TS_UDP_LEN,
                )
            except LookupError:
                return 0  # no publisher yet; wait for the idle timeout
            self._data_pos = 0
            fetched = len(self._data)
        self.update_bitrate(fetched, self._clock())

        written = 0
        while len(self._data) - self._data_pos >= TS_UDP_LEN:
            chunk = self._data[self._data_pos:self._data_pos + TS_UDP_LEN]
            if self.srt is None or self.srt.write(chunk) < TS_UDP_LEN:
                logger.info("role %s: write failed", self.role_name)
                break
            self._data_pos += TS_UDP_LEN
            written += TS_UDP_LEN

        if self._data_pos < len(self._data):
            return 0
        self._data = b""
        self._data_pos = 0
        return written

    def event_url(self, event: str) -> str:
        """Build the HTTP notification URL for ``event``."""
        if not self.http_url:
            raise ValueError("no http url configured")
        if not self.peer_ip and self.srt is not None:
            self.peer_ip, self.peer_port = self.srt.peer_address()
        return (
            f"{self.http_url}?on_event={event}&role_name={self.role_name}"
            f"&srt_url={self._stream_id()}&remote_ip={self.peer_ip}"
            f"&remote_port={self.peer_port}"
        )