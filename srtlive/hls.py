"""Record a stream into HLS segments with a VOD playlist."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from .util import mkdir_p, now_ms as _now_ms

logger = logging.getLogger(__name__)

DEFAULT_HLS_PATH = "./vod"
DEFAULT_SEGMENT_DURATION = 10  # seconds


class HlsRecorder:
    """Writes incoming TS data into time-sliced segment files.

    Each finished segment is listed in an ``.extinfo`` file; on close
    the list is wrapped into ``vod.m3u8``. ``ts_info`` may supply
    codec headers (PAT, PMT, SPS/PPS) written at the start of every
    segment.
    """

    def __init__(
        self,
        path: str | os.PathLike[str] = DEFAULT_HLS_PATH,
        segment_duration: int = DEFAULT_SEGMENT_DURATION,
        ts_info: Callable[[], bytes] | None = None,
    ) -> None:
        self.path = Path(path)
        self.segment_duration = segment_duration
        self.target_duration: float = float(segment_duration)
        self.ts_info = ts_info
        self.ts_filename = ""
        self.vod_filename: Path | None = None
        self._begin_ms = 0
        self._ts_file: BinaryIO | None = None
        self._vod_file: BinaryIO | None = None

    def __enter__(self) -> HlsRecorder:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def set_path(self, path: str | os.PathLike[str] | None) -> None:
        """Use ``path`` as the output directory; empty values are ignored."""
        if path:
            self.path = Path(path)

    def check_file(self, now_ms: int | None = None) -> None:
        """Start a new segment once the current one is long enough."""
        if now_ms is None:
            now_ms = _now_ms()
        duration = (now_ms - self._begin_ms) / 1000
        if duration < self.segment_duration:
            return
        self._begin_ms = now_ms

        try:
            mkdir_p(self.path)
        except OSError as exc:
            logger.info("mkdir '%s' failed: %s", self.path, exc)
            return

        if self._ts_file is not None:
            self.target_duration = max(self.target_duration, duration)
            logger.info("close ts file='%s'", self.ts_filename)
            self._ts_file.close()
            self._ts_file = None

            item = f"#EXTINF:{duration:0.3f},\n{self.ts_filename}\n"
            if self._vod_file is None:
                self.vod_filename = (
                    self.path / f"vod-{now_ms // 1000}.m3u8.extinfo"
                )
                self._vod_file = open(self.vod_filename, "wb")
                logger.info("create vod file='%s'", self.vod_filename)
            self._vod_file.write(item.encode())
            self._vod_file.flush()

        self.ts_filename = f"{now_ms // 1000}.ts"
        full_name = self.path / self.ts_filename
        self._ts_file = open(full_name, "wb")
        logger.info("create ts file='%s'", full_name)
        if self.ts_info is not None:
            header = self.ts_info()
            if header:
                self._ts_file.write(header)

    def record(self, data: bytes, now_ms: int | None = None) -> None:
        """Append ``data`` to the current segment, rolling it if due."""
        self.check_file(now_ms)
        if self._ts_file is not None:
            self._ts_file.write(data)

    def close(self) -> Path | None:
        """Close the segment and write ``vod.m3u8``; return its path."""
        if self._ts_file is not None:
            logger.info("close ts file='%s'", self.ts_filename)
            self._ts_file.close()
            self._ts_file = None
        if self._vod_file is None:
            return None

        self._vod_file.close()
        self._vod_file = None
        assert self.vod_filename is not None
        try:
            entries = self.vod_filename.read_bytes()
        except OSError as exc:
            logger.info("read '%s' failed: %s", self.vod_filename, exc)
            entries = b""

        playlist = self.path / "vod.m3u8"
        header = (
            "#EXTM3U\n"
            "#EXT-X-VERSION:3\n"
            f"#EXT-X-TARGETDURATION:{int(self.target_duration + 1)}\n"
        )
        with open(playlist, "wb") as out:
            out.write(header.encode())
            out.write(entries)
            out.write(b"#EXT-X-ENDLIST")
        self.vod_filename = playlist
        logger.info("wrote playlist '%s'", playlist)
        return playlist