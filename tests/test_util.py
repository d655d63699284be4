import os
import socket
import time
from unittest import mock

import pytest

from srtlive import util


def test_now_ms_tracks_now_us():
    before = util.now_ms()
    micro = util.now_us()
    after = util.now_ms()
    assert before <= micro // 1000 <= after


def test_now_ms_close_to_system_time():
    assert abs(util.now_ms() - int(time.time() * 1000)) < 5000


def test_format_time_round_trip():
    seconds = int(time.time())
    fmt = "%Y-%m-%d %H:%M:%S"
    text = util.format_time(seconds, fmt)
    assert int(time.mktime(time.strptime(text, fmt))) == seconds


def test_format_time_truncates_long_output():
    assert len(util.format_time(0, "x" * 40)) == 31


def test_default_time_string_is_now():
    text = util.default_time_string()
    parsed = time.mktime(time.strptime(text, "%Y-%m-%d %H:%M:%S"))
    assert abs(parsed - time.time()) < 5


def test_hash_key_empty_is_zero():
    assert util.hash_key("") == 0


def test_hash_key_single_char_is_its_code():
    assert util.hash_key("a") == 97


def test_hash_key_str_and_bytes_agree():
    assert util.hash_key("live/stream") == util.hash_key(b"live/stream")


def test_hash_key_stays_in_32_bits():
    value = util.hash_key("x" * 500)
    assert 0 <= value < 2**32


def test_hash_key_differs_for_different_names():
    assert util.hash_key("stream1") != util.hash_key("stream2")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("'abc'", "abc"),
        ('"sls.conf"', "sls.conf"),
        ("''", ""),
        ("'abc", "'abc"),
        ("'abc\"", "'abc\""),
        ("a", "a"),
        ("plain", "plain"),
    ],
)
def test_remove_marks(raw, expected):
    assert util.remove_marks(raw) == expected


def test_mkdir_p_creates_nested(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    util.mkdir_p(target)
    assert target.is_dir()


def test_mkdir_p_accepts_existing(tmp_path):
    target = tmp_path / "vod"
    util.mkdir_p(target)
    util.mkdir_p(target)
    assert target.is_dir()


def test_mkdir_p_rejects_file(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")
    with pytest.raises(FileExistsError):
        util.mkdir_p(target)


def test_split_string_unlimited():
    assert util.split_string("a,b,c", ",") == ["a", "b", "c"]


def test_split_string_with_count():
    assert util.split_string("a,b,c", ",", 1) == ["a", "b,c"]


def test_split_string_zero_count_is_unlimited():
    assert util.split_string("a::b::c", "::", 0) == ["a", "b", "c"]


def test_split_string_without_separator():
    assert util.split_string("abc", ",") == ["abc"]


def test_split_string_round_trip():
    text = "host1:8080;host2:9090;host3:1"
    assert ";".join(util.split_string(text, ";")) == text


def test_split_string_empty_separator_raises():
    with pytest.raises(ValueError):
        util.split_string("abc", "")


def test_find_string_first_match():
    items = ["srt://a/live", "srt://b/live", "srt://b/other"]
    assert util.find_string(items, "b/") == "srt://b/live"


def test_find_string_no_match():
    assert util.find_string(["one", "two"], "three") == ""


def test_resolve_host_literal_ip():
    assert util.resolve_host("127.0.0.1") == "127.0.0.1"


def test_resolve_host_failure_raises():
    with mock.patch.object(socket, "gethostbyname", side_effect=socket.gaierror("nope")):
        with pytest.raises(OSError):
            util.resolve_host("unknown.example.com")