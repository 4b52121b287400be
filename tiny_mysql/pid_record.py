from __future__ import annotations

from pathlib import Path

import psutil


def read_pid(pid_file: Path) -> int | None:
    """
    Read the pid recorded by the server.
    :param pid_file: The pid-file written by the server.
    :return: The pid, or None if the file is missing or does not hold a pid.
    """
    try:
        pid = int(pid_file.read_text().strip())
    except (OSError, ValueError):
        return None
    return pid if pid > 0 else None


def pid_is_live(pid: int) -> bool:
    """
    Whether a process with this pid exists and has not exited.
    Zombies count as dead since they only wait to be reaped.
    """
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # exists, but belongs to another user
        return True


def live_pid(pid_file: Path) -> int | None:
    """
    The liveness check: the pid-file exists and its process is alive.
    A stale pid-file is reported as not running, never as an error.

    :param pid_file: The pid-file written by the server.
    :return: The pid of the running server, or None.
    """
    pid = read_pid(pid_file)
    if pid is None or not pid_is_live(pid):
        return None
    return pid
