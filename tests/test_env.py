"""Tests for binary lookup and the exported environment."""

import os
from pathlib import Path

from tiny_mysql import env
from tiny_mysql.db_config import DBConfig
from tiny_mysql.directory import ensure


class TestBinDir:

    def test_explicit_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TINYMYSQL_BIN_DIR", "/elsewhere")
        assert env.get_mysql_bin_dir(tmp_path) == tmp_path

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("TINYMYSQL_BIN_DIR", "/opt/mysql/bin")
        assert env.get_mysql_bin_dir() == Path("/opt/mysql/bin")

    def test_from_path(self, fake_bin, monkeypatch):
        monkeypatch.delenv("TINYMYSQL_BIN_DIR", raising=False)
        monkeypatch.setenv("PATH", str(fake_bin))
        assert env.get_mysql_bin_dir() == fake_bin.resolve()

    def test_not_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TINYMYSQL_BIN_DIR", raising=False)
        monkeypatch.setenv("PATH", str(tmp_path))
        assert env.get_mysql_bin_dir() is None

    def test_base_dir(self, tmp_path):
        assert env.get_mysql_base_dir(tmp_path / "bin") == tmp_path.resolve()
        assert env.get_mysql_base_dir(None) is None

    def test_binary(self, tmp_path):
        assert env.get_mysql_binary("mysqladmin", tmp_path) == str(tmp_path / "mysqladmin")
        assert env.get_mysql_binary("mysqladmin", None) == "mysqladmin"

    def test_environ_extends_path(self, tmp_path):
        environ = env.get_mysql_environ(tmp_path)
        assert environ["PATH"].startswith(str(tmp_path) + os.pathsep)


def test_instance_environ(tmp_path):
    instance = ensure(tmp_path, port=3307)
    assert env.get_instance_environ(instance) == {
        "MYSQL_HOME": str(tmp_path),
        "MYSQL_DATADIR": str(tmp_path / "data"),
        "MYSQL_UNIX_PORT": str(tmp_path / "mysql.sock"),
        "MYSQL_PID_FILE": str(tmp_path / "mysql.pid"),
        "MYSQL_TCP_PORT": "3307",
    }


def test_config_defaults():
    config = DBConfig()
    assert config.port == 3306
    assert config.bind_address == "127.0.0.1"
    assert config.ready_attempts == 30
    assert config.ready_interval == 1.0
    assert config.exit_grace == 1.0
    assert config.root.is_absolute()
    assert config.tuning.max_connections == 100
    assert config.tuning.charset == "utf8mb4"
