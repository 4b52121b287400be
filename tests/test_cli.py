"""Tests for the tiny-mysql command line."""

import pytest
from typer.testing import CliRunner

from tiny_mysql.__main__ import app

runner = CliRunner()


@pytest.fixture
def invoke(tmp_path, fake_bin, socket_probe):
    """Run a CLI command against a root under tmp_path with the fake binaries."""
    root = tmp_path / "root"

    def _invoke(*args, **kwargs):
        return runner.invoke(
            app, ["--root", str(root), "--bin-dir", str(fake_bin), *args], **kwargs
        )

    yield _invoke
    # never leave a fake server behind
    runner.invoke(app, ["--root", str(root), "--bin-dir", str(fake_bin), "stop"])


class TestCommands:

    def test_status_when_not_running(self, invoke):
        result = invoke("status")
        assert result.exit_code == 0
        assert "not running" in result.output

    def test_stop_when_not_running_fails(self, invoke):
        result = invoke("stop")
        assert result.exit_code == 1
        assert "Error: server is not running" in result.output
        assert "tiny-mysql start" in result.output

    def test_start_status_stop(self, invoke, tmp_path):
        result = invoke("start")
        assert result.exit_code == 0, result.output
        assert "mysql is running" in result.output
        assert (tmp_path / "root" / "my.cnf").exists()

        again = invoke("start")
        assert again.exit_code == 1
        assert "already running" in again.output

        status = invoke("status")
        assert status.exit_code == 0
        assert "Uptime:" in status.output

        stopped = invoke("stop")
        assert stopped.exit_code == 0
        assert "mysql stopped" in stopped.output
        assert "not running" in invoke("status").output

    def test_cleanup_is_idempotent(self, invoke, tmp_path, dead_pid):
        (tmp_path / "root").mkdir()
        (tmp_path / "root" / "mysql.pid").write_text(str(dead_pid))
        first = invoke("cleanup")
        assert first.exit_code == 0
        assert "mysql.pid" in first.output
        second = invoke("cleanup")
        assert second.exit_code == 0
        assert "cleanup done" in second.output

    def test_env_exports(self, invoke, tmp_path):
        result = invoke("env")
        assert result.exit_code == 0
        root = tmp_path / "root"
        assert f"export MYSQL_UNIX_PORT={root / 'mysql.sock'}" in result.output
        assert "export MYSQL_TCP_PORT=3306" in result.output
        assert f"export MYSQL_DATADIR={root / 'data'}" in result.output

    def test_console_requires_running_server(self, invoke):
        result = invoke("console")
        assert result.exit_code == 1

    def test_bootstrap_failure_aborts_start(self, invoke, monkeypatch):
        monkeypatch.setenv("FAKE_BOOTSTRAP_FAIL", "1")
        result = invoke("start")
        assert result.exit_code == 1
        assert "bootstrap failed" in result.output

    @pytest.mark.parametrize("command", ["status", "stop", "console", "cleanup", "env"])
    def test_read_commands_leave_missing_root_alone(self, invoke, tmp_path, command):
        invoke(command)
        assert not (tmp_path / "root").exists()

    def test_port_from_environment(self, invoke, monkeypatch, tmp_path):
        monkeypatch.setenv("TINYMYSQL_PORT", "3399")
        result = invoke("env")
        assert "export MYSQL_TCP_PORT=3399" in result.output


def test_session_stops_server_on_exit(invoke, tmp_path):
    result = invoke("session", "--rm", input="\n")
    assert result.exit_code == 0, result.output
    assert "mysql is running" in result.output
    assert not (tmp_path / "root").exists()
