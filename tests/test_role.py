import pytest

from srtlive.recycle_array import RecycleArray
from srtlive.role import Role, RoleState, UNLIMITED_TIMEOUT
from srtlive.ts import TS_UDP_LEN


class FakeSrt:
    def __init__(self, incoming=(), write_budget=None):
        self.incoming = list(incoming)
        self.written = []
        self.closed = False
        self.broken = False
        self.write_budget = write_budget
        self.stream_id = "live/stream"

    def read(self, size):
        if not self.incoming:
            return b""
        return self.incoming.pop(0)[:size]

    def write(self, data):
        if self.write_budget is not None:
            if self.write_budget <= 0:
                return -1
            self.write_budget -= 1
        self.written.append(bytes(data))
        return len(data)

    def close(self):
        self.closed = True

    def is_broken(self):
        return self.broken

    def peer_address(self):
        return ("10.0.0.1", 5000)


class FakeMap:
    def __init__(self):
        self.arrays = {}

    def put(self, key, data):
        return self.arrays.setdefault(key, RecycleArray()).put(data)

    def get(self, key, size, cursor, aligned):
        return self.arrays[key].get(size, cursor, aligned)

    def get_ts_info(self, key):
        return b""


def make_role(srt=None, now=0):
    return Role(srt=srt, clock=lambda: now)


def test_init_and_uninit_close_connection():
    srt = FakeSrt()
    role = make_role(srt)
    role.init()
    assert role.state == RoleState.INITED
    role.uninit()
    assert role.state == RoleState.UNINIT
    assert srt.closed
    assert role.srt is None


def test_get_state_turns_invalid_when_broken():
    srt = FakeSrt()
    role = make_role(srt)
    role.init()
    assert role.get_state(1) == RoleState.INITED
    srt.broken = True
    assert role.get_state(1) == RoleState.INVALID
    assert srt.closed
    assert role.get_state(1) == RoleState.INVALID


def test_get_state_without_connection_is_invalid():
    role = make_role()
    role.init()
    assert role.get_state(1) == RoleState.INVALID


def test_idle_timeout():
    role = make_role(FakeSrt())
    role.idle_streams_timeout = 2
    assert not role.check_idle_streams_duration(1999)
    assert role.check_idle_streams_duration(2000)
    role.init()
    assert role.get_state(2000) == RoleState.INVALID


def test_unlimited_idle_timeout():
    role = make_role()
    role.idle_streams_timeout = UNLIMITED_TIMEOUT
    assert not role.check_idle_streams_duration(10**12)


def test_update_bitrate():
    role = make_role()
    assert role.update_bitrate(1000, 500) == 0
    assert role.update_bitrate(1000, 1000) == 16
    assert role.stat_bitrate_datacount == 0
    assert role.invalid_begin_tm == 1000


def test_stat_info():
    role = make_role()
    role.stat_info_base = '{"a":'
    assert role.get_stat_info() == '{"a":"0"}'


def test_set_map_data_requires_key():
    with pytest.raises(ValueError):
        make_role().set_map_data("", FakeMap())


def test_read_data_puts_into_map():
    payload = bytes(range(256)) * 5 + b"x" * 36
    srt = FakeSrt([payload])
    role = make_role(srt)
    store = FakeMap()
    role.set_map_data("live/a", store)
    assert role.handler_read_data() == len(payload)
    assert store.arrays["live/a"].count() == len(payload)


def test_read_data_errors():
    with pytest.raises(RuntimeError):
        make_role().handler_read_data()
    role = make_role(FakeSrt())
    with pytest.raises(ConnectionError):
        role.handler_read_data()
    role = make_role(FakeSrt([b"a" * 10]))
    with pytest.raises(RuntimeError):
        role.handler_read_data()


def test_read_data_waits_for_http_check():
    srt = FakeSrt([b"a" * 10])
    role = make_role(srt)
    role.http_passed = False
    assert role.handler_read_data() == 0
    assert len(srt.incoming) == 1


def test_read_data_records_hls(tmp_path):
    data = b"\x47" * TS_UDP_LEN
    role = make_role(FakeSrt([data]), now=20000)
    role.set_map_data("live/a", FakeMap())
    role.record_hls = True
    role.set_record_hls_path(str(tmp_path))
    role.handler_read_data()
    role.uninit()
    segments = list(tmp_path.glob("*.ts"))
    assert len(segments) == 1
    assert segments[0].read_bytes() == data


def test_write_data_sends_published_packets():
    store = FakeMap()
    store.put("live/a", b"\x00")
    srt = FakeSrt()
    role = make_role(srt)
    role.set_map_data("live/a", store)
    role.init()
    assert role.handler_write_data() == 0
    packets = [bytes([i]) * TS_UDP_LEN for i in (1, 2)]
    for packet in packets:
        store.put("live/a", packet)
    assert role.handler_write_data() == 2 * TS_UDP_LEN
    assert srt.written == packets


def test_write_data_keeps_remainder_after_failed_write():
    store = FakeMap()
    store.put("live/a", b"\x00")
    srt = FakeSrt(write_budget=1)
    role = make_role(srt)
    role.set_map_data("live/a", store)
    role.init()
    role.handler_write_data()
    packets = [bytes([i]) * TS_UDP_LEN for i in (3, 4)]
    for packet in packets:
        store.put("live/a", packet)
    assert role.handler_write_data() == 0
    assert srt.written == packets[:1]
    srt.write_budget = 5
    assert role.handler_write_data() == TS_UDP_LEN
    assert srt.written == packets


def test_write_data_without_publisher_returns_zero():
    role = make_role(FakeSrt())
    role.set_map_data("live/none", FakeMap())
    assert role.handler_write_data() == 0


def test_write_data_without_map_raises():
    with pytest.raises(RuntimeError):
        make_role(FakeSrt()).handler_write_data()


def test_event_url():
    role = make_role(FakeSrt())
    role.http_url = "http://localhost/event"
    assert role.event_url("on_connect") == (
        "http://localhost/event?on_event=on_connect&role_name=role"
        "&srt_url=live/stream&remote_ip=10.0.0.1&remote_port=5000"
    )


def test_event_url_needs_http_url():
    with pytest.raises(ValueError):
        make_role(FakeSrt()).event_url("on_close")