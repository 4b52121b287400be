from __future__ import annotations

import os
import shutil
from pathlib import Path

from .directory import Instance

BIN_DIR_ENV = "TINYMYSQL_BIN_DIR"


def get_mysql_bin_dir(bin_dir: Path | None = None) -> Path | None:
    """
    Get the path to the mysql binaries.

    :param bin_dir: An explicitly configured directory, used as is.
    :return: The configured directory, $TINYMYSQL_BIN_DIR, or the directory
        of the mysqld found on PATH. None if none of them is available.
    """
    if bin_dir is not None:
        return Path(bin_dir)
    if os.environ.get(BIN_DIR_ENV):
        return Path(os.environ[BIN_DIR_ENV])
    mysqld = shutil.which("mysqld") or shutil.which("mariadbd")
    if mysqld is None:
        return None
    return Path(mysqld).resolve().parent


def get_mysql_base_dir(bin_dir: Path | None) -> Path | None:
    """
    Get the installation directory of the server, the parent of its bin dir.

    :param bin_dir: The directory holding the mysql binaries.
    :return: The installation directory, or None if the bin dir is unknown.
    """
    if bin_dir is None:
        return None
    return Path(bin_dir).resolve().parent


def get_mysql_binary(name: str, bin_dir: Path | None) -> str:
    """
    Get the command for a mysql binary.

    :param name: The binary name, e.g. ``mysqladmin``.
    :param bin_dir: The directory holding the mysql binaries.
    :return: The full path when a bin dir is known, otherwise the bare name
        to be looked up on PATH.
    """
    if bin_dir is None:
        return name
    return str(Path(bin_dir) / name)


def get_mysql_environ(bin_dir: Path | None = None) -> dict[str, str]:
    """
    The environment the mysql binaries are run with.
    """
    environ = {**os.environ}
    if bin_dir is not None:
        environ["PATH"] = str(bin_dir) + os.pathsep + os.environ.get("PATH", "")
    return environ


def get_instance_environ(instance: Instance) -> dict[str, str]:
    """
    The variables exported to collaborators so they can locate the instance.
    MYSQL_UNIX_PORT and MYSQL_TCP_PORT are also honored by the mysql clients.

    :param instance: The instance to describe.
    :return: A mapping of variable names to values.
    """
    return {
        "MYSQL_HOME": str(instance.root),
        "MYSQL_DATADIR": str(instance.data_dir),
        "MYSQL_UNIX_PORT": str(instance.socket_path),
        "MYSQL_PID_FILE": str(instance.pid_file_path),
        "MYSQL_TCP_PORT": str(instance.port),
    }
