import signal
from unittest import mock

import pytest

from srtlive.pidfile import read_pid, remove_pid, send_cmd, write_pid


def test_write_then_read_round_trip(tmp_path):
    pid_file = tmp_path / "pid.txt"
    path = write_pid(4321, pid_file)
    assert path == pid_file
    assert read_pid(pid_file) == 4321


def test_write_creates_missing_directories(tmp_path):
    pid_file = tmp_path / "a" / "b" / "pid.txt"
    write_pid(77, pid_file)
    assert pid_file.read_text() == "77"


def test_write_shorter_pid_replaces_old(tmp_path):
    pid_file = tmp_path / "pid.txt"
    write_pid(123456, pid_file)
    write_pid(12, pid_file)
    assert read_pid(pid_file) == 12


def test_write_defaults_to_own_pid(tmp_path):
    import os

    pid_file = tmp_path / "pid.txt"
    write_pid(pid_file=pid_file)
    assert read_pid(pid_file) == os.getpid()


def test_read_missing_file_is_zero(tmp_path):
    assert read_pid(tmp_path / "nope.txt") == 0


def test_read_garbage_is_zero(tmp_path):
    pid_file = tmp_path / "pid.txt"
    pid_file.write_text("abc")
    assert read_pid(pid_file) == 0


def test_read_leading_number(tmp_path):
    pid_file = tmp_path / "pid.txt"
    pid_file.write_text("991xyz")
    assert read_pid(pid_file) == 991


def test_remove_pid_empties_file(tmp_path):
    pid_file = tmp_path / "pid.txt"
    write_pid(55, pid_file)
    remove_pid(pid_file)
    assert pid_file.read_text() == ""
    assert read_pid(pid_file) == 0


def test_remove_pid_missing_does_not_create(tmp_path):
    pid_file = tmp_path / "pid.txt"
    remove_pid(pid_file)
    assert not pid_file.exists()


@pytest.mark.parametrize(
    "cmd, expected",
    [("reload", signal.SIGHUP), ("stop", signal.SIGINT)],
)
def test_send_cmd_signals_server(tmp_path, cmd, expected):
    pid_file = tmp_path / "pid.txt"
    write_pid(31337, pid_file)
    with mock.patch("os.kill") as kill:
        result = send_cmd(cmd, pid_file)
    assert result == expected
    kill.assert_called_once_with(31337, expected)


def test_send_cmd_unknown_sends_nothing(tmp_path):
    pid_file = tmp_path / "pid.txt"
    write_pid(31337, pid_file)
    with mock.patch("os.kill") as kill:
        result = send_cmd("restart", pid_file)
    assert result is None
    assert kill.call_count == 0


def test_send_cmd_without_pid(tmp_path):
    with mock.patch("os.kill") as kill:
        result = send_cmd("reload", tmp_path / "pid.txt")
    assert result is None
    assert kill.call_count == 0


def test_send_cmd_none_raises(tmp_path):
    with pytest.raises(ValueError):
        send_cmd(None, tmp_path / "pid.txt")