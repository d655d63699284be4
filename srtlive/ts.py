"""MPEG transport stream helpers: packet headers, PES timestamps, SPS/PPS."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

TS_PACK_LEN = 188
TS_UDP_LEN = 1316  # 7 * 188
TS_SYNC_BYTE = 0x47
INVALID_PID = -1
PAT_PID = 0
INVALID_DTS_PTS = -1
MAX_PES_PAYLOAD = 200 * 1024

H264_NAL_SPS = 7
H264_NAL_PPS = 8

_PES_STREAM_IDS = (0xE0, 0xC0)


def null_udp_packet() -> bytes:
    """Return one UDP payload made of seven null TS packets."""
    chunk = bytes((TS_SYNC_BYTE, 0x1F, 0xFF, 0x00)) + bytes(TS_PACK_LEN - 4)
    return chunk * (TS_UDP_LEN // TS_PACK_LEN)


@dataclass
class TsInfo:
    """State gathered while walking a transport stream."""

    es_pid: int = INVALID_PID
    dts: int = INVALID_DTS_PTS
    pts: int = INVALID_DTS_PTS
    need_spspps: bool = False
    sps: bytes = b""
    pps: bytes = b""
    ts_data: bytearray = field(
        default_factory=lambda: bytearray(null_udp_packet())
    )
    pat: bytes = b""
    pmt_pid: int = INVALID_PID
    pmt: bytes = b""


def parse_pes_pts(buf: bytes) -> int:
    """Decode a 33-bit PTS or DTS from its five PES header bytes."""
    if len(buf) < 5:
        raise ValueError("a PES timestamp needs five bytes")
    return (
        ((buf[0] & 0x0E) << 29)
        | (((buf[1] << 8 | buf[2]) >> 1) << 15)
        | ((buf[3] << 8 | buf[4]) >> 1)
    )


def _is_start_code(es: bytes, pos: int) -> bool:
    return (
        es[pos] == 0
        and es[pos + 1] == 0
        and es[pos + 2] == 0
        and (es[pos + 3] == 1 or (es[pos + 3] == 0 and es[pos + 4] == 1))
    )


def parse_sps_pps(es: bytes, info: TsInfo) -> bool:
    """Find H.264 SPS and PPS units in ``es`` and store them in ``info``.

    Stored units keep their start code. Returns True once both are known.
    """

    def store(nal_type: int, begin: int, end: int) -> None:
        if nal_type == H264_NAL_SPS:
            info.sps = bytes(es[begin:end])
        elif nal_type == H264_NAL_PPS:
            info.pps = bytes(es[begin:end])
        else:
            logger.debug("parse_sps_pps: unexpected nal type=%d", nal_type)

    start: int | None = None
    nal_type = 0
    pos = 0
    while pos < len(es) - 4:
        if not _is_start_code(es, pos):
            pos += 1
            continue
        if start is not None:
            store(nal_type, start, pos)
            if info.sps and info.pps:
                return True
        nal_pos = pos + (4 if es[pos + 3] else 5)
        if nal_pos >= len(es):
            start = None
            break
        nal_type = es[nal_pos] & 0x1F
        start = pos if nal_type in (H264_NAL_SPS, H264_NAL_PPS) else None
        pos = nal_pos

    if start is not None:
        store(nal_type, start, len(es))
        return bool(info.sps and info.pps)
    return False


def _build_ts_data(info: TsInfo, pid: int, stream_id: int) -> None:
    """Lay PAT, PMT and an SPS/PPS packet into ``info.ts_data``."""
    es_len = len(info.sps) + len(info.pps) + 9 + 5
    if es_len > TS_PACK_LEN - 4:
        logger.debug("pid=%d, pes size=%d is abnormal", pid, es_len)
        return
    info.es_pid = pid
    data = info.ts_data
    data[0:TS_PACK_LEN] = info.pat[:TS_PACK_LEN]
    data[TS_PACK_LEN:2 * TS_PACK_LEN] = info.pmt[:TS_PACK_LEN]

    pos = 2 * TS_PACK_LEN + 1
    data[pos] = 0x40 | ((pid >> 8) & 0xFF)
    data[pos + 1] = pid & 0xFF
    pos += 2
    ad_len = TS_PACK_LEN - 4 - es_len - 1
    if ad_len > 0:
        data[pos] = 0x30
        data[pos + 1] = ad_len
        data[pos + 2] = 0x00
        data[pos + 3:pos + 3 + ad_len - 1] = b"\xff" * (ad_len - 1)
        pos += 3 + ad_len - 1
    else:
        data[pos] = 0x10
        pos += 1

    header = bytes((0, 0, 1, stream_id, 0, 0, 0x80, 0x80, 5, 0, 0, 0, 0, 0))
    payload = header + info.sps + info.pps
    data[pos:pos + len(payload)] = payload


def _pes_to_es(pes: bytes, info: TsInfo, pid: int) -> bool:
    if len(pes) < 9 or pes[0:3] != b"\x00\x00\x01":
        return False
    stream_id = pes[3]
    if stream_id not in _PES_STREAM_IDS:
        logger.debug("pes: pid=%d, wrong stream_id=0x%x", pid, stream_id)
        return False
    flags = pes[7]
    pos = 9
    info.dts = INVALID_DTS_PTS
    info.pts = INVALID_DTS_PTS
    try:
        if flags & 0xC0 == 0x80:
            info.pts = info.dts = parse_pes_pts(pes[pos:pos + 5])
            pos += 5
        elif flags & 0xC0 == 0xC0:
            info.pts = parse_pes_pts(pes[pos:pos + 5])
            pos += 5
            info.dts = parse_pes_pts(pes[pos:pos + 5])
            pos += 5
    except ValueError:
        return False

    if not info.need_spspps:
        return True
    ok = parse_sps_pps(pes[pos:], info)
    if info.sps and info.pps and info.pat and info.pmt:
        _build_ts_data(info, pid, stream_id)
    return ok


def _parse_pat(section: bytes, info: TsInfo) -> None:
    if len(section) < 3:
        return
    section_length = (section[1] & 0x0F) << 8 | section[2]
    for n in range(0, section_length - 12, 4):
        if 12 + n > len(section):
            break
        program_num = section[8 + n] << 8 | section[9 + n]
        if program_num != 0:
            info.pmt_pid = (section[10 + n] & 0x1F) << 8 | section[11 + n]


def parse_ts_packet(packet: bytes, info: TsInfo) -> bool:
    """Parse one 188-byte TS packet that starts a unit, updating ``info``.

    Returns False for packets that carry nothing usable.
    """
    if len(packet) < TS_PACK_LEN:
        raise ValueError(f"a TS packet needs {TS_PACK_LEN} bytes")
    if packet[0] != TS_SYNC_BYTE:
        logger.debug("ts: packet[0]=0x%x not 0x47", packet[0])
        return False
    if not packet[1] & 0x40:
        return False

    pid = (packet[1] & 0x1F) << 8 | packet[2]
    if pid == PAT_PID:
        info.pat = bytes(packet[:TS_PACK_LEN])
    else:
        if pid == info.pmt_pid:
            info.pmt = bytes(packet[:TS_PACK_LEN])
            return True
        if info.es_pid != INVALID_PID and pid != info.es_pid:
            return False

    afc = (packet[3] >> 4) & 3
    if afc == 0:
        return False
    has_adaptation = afc & 2
    has_payload = afc & 1

    pos = 4
    if has_adaptation:
        pos += packet[4] + 1
    if pos >= TS_PACK_LEN or has_payload != 1:
        logger.debug("ts: pid=%d, payload position=%d", pid, pos)
        return False

    if pid == PAT_PID:
        pos += 1  # pointer field
        _parse_pat(bytes(packet[pos:TS_PACK_LEN]), info)
        return True

    ok = _pes_to_es(bytes(packet[pos:TS_PACK_LEN]), info, pid)
    if info.dts != INVALID_DTS_PTS:
        info.es_pid = pid
    if info.sps and info.pps:
        info.es_pid = pid
    return ok