"""Shared fixtures for the tiny_mysql tests.

The server binaries are replaced by small Python scripts written into a
temporary bin directory, and the readiness probe connects "successfully"
once the fake server has created its socket file.
"""

import stat
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pymysql
import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from tiny_mysql import prepare
from tiny_mysql import supervisor as supervisor_module
from tiny_mysql.db_config import DBConfig


FAKE_MYSQLD = """
import configparser
import os
import signal
import sys
import time
from pathlib import Path

parser = configparser.ConfigParser(interpolation=None)
parser.read(sys.argv[1].split("=", 1)[1])
section = parser["mysqld"]
pid_file = Path(section["pid-file"])
socket_path = Path(section["socket"])


def shutdown(signum, frame):
    socket_path.unlink(missing_ok=True)
    pid_file.unlink(missing_ok=True)
    sys.exit(0)


if os.environ.get("FAKE_MYSQLD_IGNORE_TERM"):
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
else:
    signal.signal(signal.SIGTERM, shutdown)
print("fake mysqld ready", flush=True)
pid_file.write_text(f"{os.getpid()}\\n")
socket_path.touch()
while True:
    time.sleep(0.05)
"""

FAKE_MYSQLADMIN = """
import configparser
import os
import signal
import sys

parser = configparser.ConfigParser(interpolation=None)
parser.read(sys.argv[1].split("=", 1)[1])
command = sys.argv[-1]
if command == "shutdown":
    with open(parser["mysqld"]["pid-file"]) as f:
        os.kill(int(f.read()), signal.SIGTERM)
elif command == "status":
    print("Uptime: 1  Threads: 1  Questions: 1  Slow queries: 0  Opens: 1")
elif command == "ping":
    print("mysqld is alive")
else:
    print(f"unknown command {command}", file=sys.stderr)
    sys.exit(1)
"""

FAKE_MYSQL_INSTALL_DB = """
import os
import sys
from pathlib import Path

datadir = next(a.split("=", 1)[1] for a in sys.argv if a.startswith("--datadir="))
Path(datadir, "mysql").mkdir(parents=True)
Path(datadir, "ibdata1").write_bytes(b"\\0" * 16)
if os.environ.get("FAKE_BOOTSTRAP_FAIL"):
    print("bootstrap exploded", file=sys.stderr)
    sys.exit(1)
print("Installing system tables")
"""


def _write_script(path: Path, body: str) -> None:
    path.write_text(f"#!{sys.executable}\n{body}")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


# ---------------------------------------------------------------------------
# Fake server binaries
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_bin(tmp_path):
    """A bin directory holding fake mysqld, mysqladmin and mysql_install_db."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    _write_script(bin_dir / "mysqld", FAKE_MYSQLD)
    _write_script(bin_dir / "mysqladmin", FAKE_MYSQLADMIN)
    _write_script(bin_dir / "mysql_install_db", FAKE_MYSQL_INSTALL_DB)
    return bin_dir


@pytest.fixture(autouse=True)
def no_host_processes(monkeypatch):
    """Keep force_cleanup from matching real server processes on the host."""
    monkeypatch.setattr(
        supervisor_module, "SERVER_PROCESS_NAMES", ("tiny-mysql-test-no-such-process",)
    )


@pytest.fixture
def socket_probe(monkeypatch):
    """Make pymysql.connect succeed once the socket file exists."""
    def _connect(unix_socket=None, **kwargs):
        if unix_socket is None or not Path(unix_socket).exists():
            raise pymysql.err.OperationalError(2002, f"Can't connect through {unix_socket}")
        return MagicMock()

    monkeypatch.setattr(pymysql, "connect", _connect)
    return _connect


# ---------------------------------------------------------------------------
# Configuration and supervisor factories
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path, fake_bin):
    return DBConfig(
        root=tmp_path / "root",
        bin_dir=fake_bin,
        ready_attempts=200,
        ready_interval=0.05,
        stop_timeout=5.0,
        exit_grace=0.5,
        kill_timeout=5.0,
        cleanup_grace=0.5,
        bootstrap_timeout=30.0,
    )


@pytest.fixture
def supervisor(config, socket_probe):
    """A supervisor for a prepared instance; leftover servers are killed."""
    sup = prepare(config)
    yield sup
    if sup._process is not None and sup._process.poll() is None:
        sup._process.kill()
        sup._process.wait()


@pytest.fixture
def dead_pid():
    """A pid that belonged to a process which has already exited."""
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid
