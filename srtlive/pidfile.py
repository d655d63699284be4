"""The server's pid file and the commands sent through it."""

from __future__ import annotations

import logging
import os
import re
import signal
from pathlib import Path

from .util import mkdir_p

logger = logging.getLogger(__name__)

DEFAULT_PID_FILE = "/tmp/sls/pid.txt"

_PID_READ_LEN = 128
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

_COMMANDS = {
    "reload": signal.SIGHUP,
    "stop": signal.SIGINT,
}


def read_pid(pid_file: str | os.PathLike[str] = DEFAULT_PID_FILE) -> int:
    """Return the pid stored in ``pid_file``, or 0 if there is none."""
    try:
        with open(pid_file, encoding="ascii", errors="replace") as handle:
            text = handle.read(_PID_READ_LEN)
    except OSError:
        logger.info("no pid file='%s'", pid_file)
        return 0
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def write_pid(
    pid: int | None = None,
    pid_file: str | os.PathLike[str] = DEFAULT_PID_FILE,
) -> Path:
    """Store ``pid`` (default: this process) in ``pid_file``; return its path.

    Missing parent directories are created.
    """
    if pid is None:
        pid = os.getpid()
    path = Path(pid_file)
    mkdir_p(path.parent)
    path.write_text(str(pid), encoding="ascii")
    logger.info("write pid ok, file='%s', pid=%d", path, pid)
    return path


def remove_pid(pid_file: str | os.PathLike[str] = DEFAULT_PID_FILE) -> None:
    """Empty ``pid_file`` if it exists."""
    path = Path(pid_file)
    if path.exists():
        path.write_bytes(b"")


def send_cmd(
    cmd: str,
    pid_file: str | os.PathLike[str] = DEFAULT_PID_FILE,
) -> signal.Signals | None:
    """Signal the running server: ``reload`` sends SIGHUP, ``stop`` SIGINT.

    Returns the signal sent, or None when no server pid is known or the
    command is not recognised.
    """
    if cmd is None:
        raise ValueError("cmd is null")
    pid = read_pid(pid_file)
    if pid <= 0:
        logger.info("send_cmd failed, pid is invalid")
        return None
    sig = _COMMANDS.get(cmd)
    if sig is None:
        logger.info("send_cmd, unknown cmd='%s'", cmd)
        return None
    logger.info("send_cmd ok, %s, pid=%d, sending %s", cmd, pid, sig.name)
    os.kill(pid, sig)
    return sig