from __future__ import annotations

import getpass
import logging
import os
import signal
import subprocess
from pathlib import Path

import psutil
import pymysql
from retry.api import retry_call

from .db_config import DBConfig
from .db_status import DBStatus, ServerState
from .directory import Instance
from .env import get_mysql_binary, get_mysql_environ
from .errors import (
    AdminCommandError,
    AlreadyRunningError,
    NotRunningError,
    StartupTimeoutError,
    StopTimeoutError,
    TinyMySQLError,
)
from .pid_record import live_pid, pid_is_live

logger = logging.getLogger(__name__)

SERVER_PROCESS_NAMES = ("mysqld", "mariadbd", "mysqld_safe")

# access denied, unix_socket auth rejected, unsupported auth plugin:
# the server answered the handshake, so it accepts connections
REACHABLE_ERROR_CODES = frozenset({1045, 1698, 2059})


class ServerNotReady(Exception):
    """
    The readiness probe did not reach the server.
    """

    pass


class ServerSupervisor:
    def __init__(self, instance: Instance, config: DBConfig):
        self.instance = instance
        self.config = config
        self.bin_dir = config.bin_dir
        self._process: subprocess.Popen | None = None
        self.subprocess_kwargs = {
            "env": get_mysql_environ(self.bin_dir),
            "universal_newlines": True,
            "capture_output": True,
            "timeout": 10,
        }
        if self.live_pid() is None:
            self.state = ServerState.STOPPED
        else:
            self.state = ServerState.RUNNING

    def live_pid(self) -> int | None:
        """
        The pid of the running server according to the liveness check.
        A pid-file whose pid now belongs to some other program is stale.
        """
        if self._process is not None:
            # reap our own child so it does not linger as a zombie
            self._process.poll()
        pid = live_pid(self.instance.pid_file_path)
        if pid is None or not self._is_server_process(pid):
            return None
        return pid

    def _is_server_process(self, pid: int) -> bool:
        """
        Whether pid is a mysql server: one of the known server binaries, or
        a process launched with this instance's my.cnf.
        """
        try:
            proc = psutil.Process(pid)
            if proc.name() in SERVER_PROCESS_NAMES:
                return True
            return f"--defaults-file={self.instance.config_path}" in proc.cmdline()
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            # cannot inspect it, signalling decides
            return True

    def _signal(self, pid: int, signum: int) -> bool:
        """
        Send a signal to the server process, never to anything else.
        :return: Whether the signal was delivered.
        """
        if not self._is_server_process(pid):
            logger.warning(f"PID {pid} is not a mysql server, not signalling it")
            return False
        try:
            os.kill(pid, signum)
        except ProcessLookupError:
            return False
        except PermissionError as e:
            raise TinyMySQLError(
                f"not allowed to signal server (PID: {pid})",
                hint="The server belongs to another user; stop it as that user.",
            ) from e
        return True

    def kill_launched(self) -> bool:
        """
        Kill the process launched by start() if it is still alive, even when
        it has not written its pid-file yet.
        :return: Whether a process was killed.
        """
        if self._process is None or self._process.poll() is not None:
            return False
        logger.info(f"Killing launched server (PID: {self._process.pid})")
        self._process.kill()
        try:
            self._process.wait(timeout=self.config.kill_timeout)
        except subprocess.TimeoutExpired as e:
            raise StopTimeoutError(
                f"server (PID: {self._process.pid}) survived SIGKILL"
            ) from e
        self.state = ServerState.STOPPED
        return True

    def _defaults_args(self) -> list[str]:
        return [
            f"--defaults-file={self.instance.config_path}",
            f"--socket={self.instance.socket_path}",
        ]

    def _run(self, args: list[str]) -> str:
        """
        Run a mysqladmin command against the instance socket.
        :param args: The arguments to pass to mysqladmin.
        :return: The output of the mysqladmin command.
        """
        result = subprocess.run(
            [
                get_mysql_binary("mysqladmin", self.bin_dir),
                *self._defaults_args(),
                *args,
            ],
            **self.subprocess_kwargs,
        )
        return self._handle_result(result)

    def _handle_result(self, result: subprocess.CompletedProcess) -> str:
        """
        Handle the result of a mysqladmin command.
        :param result: The result of the mysqladmin command.
        :return: The standard output of the command.
        """
        if result.returncode != 0:
            logger.error(result.stderr)
            raise AdminCommandError(
                f"mysqladmin failed with code {result.returncode}: {result.stderr}"
            )
        logger.debug(result.stdout)
        return result.stdout

    def start(self) -> DBStatus:
        """
        Launch the server and wait until it accepts connections.
        :return: The status of the running server.
        """
        pid = self.live_pid()
        if pid is not None:
            raise AlreadyRunningError(f"server is already running (PID: {pid})")

        self.state = ServerState.STARTING
        logger.debug(f"Starting server with {self.instance.config_path}")
        try:
            self._process = self._launch()
        except OSError as e:
            self.state = ServerState.STOPPED
            raise TinyMySQLError(
                f"cannot launch mysqld: {e}",
                hint="Install mysql or mariadb, or point --bin-dir at its binaries.",
            ) from e
        try:
            retry_call(
                self._probe,
                exceptions=ServerNotReady,
                tries=self.config.ready_attempts,
                delay=self.config.ready_interval,
                logger=logger,
            )
        except ServerNotReady as e:
            self.state = ServerState.STOPPED
            raise StartupTimeoutError(
                self.instance.log_path, self.config.ready_attempts
            ) from e
        self.state = ServerState.RUNNING
        logger.info(f"Server ready on {self.instance.socket_path}")
        return self.status()

    def _launch(self) -> subprocess.Popen:
        """
        Spawn mysqld in its own session so it outlives the launching command.
        """
        with open(self.instance.log_path, "a") as log:
            return subprocess.Popen(
                [
                    get_mysql_binary("mysqld", self.bin_dir),
                    f"--defaults-file={self.instance.config_path}",
                ],
                env=self.subprocess_kwargs["env"],
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )

    def _probe(self) -> None:
        """
        Check that the server accepts connections on its socket and that the
        pid-file points at a live process.
        """
        try:
            connection = pymysql.connect(
                unix_socket=str(self.instance.socket_path),
                user=getpass.getuser(),
                connect_timeout=1,
            )
        except pymysql.OperationalError as e:
            if not e.args or e.args[0] not in REACHABLE_ERROR_CODES:
                raise ServerNotReady(str(e)) from e
        else:
            connection.close()
        if self.live_pid() is None:
            raise ServerNotReady(f"no live pid in {self.instance.pid_file_path}")

    def stop(self, timeout: float | None = None, escalate: bool = True) -> DBStatus:
        """
        Ask the server to shut down and wait for its process to exit.
        :param timeout: Seconds to wait for the exit, defaults to the config.
        :param escalate: Kill the process if it does not exit in time,
            otherwise raise StopTimeoutError.
        :return: The status of the stopped server.
        """
        pid = self.live_pid()
        if pid is None:
            raise NotRunningError("server is not running")
        if timeout is None:
            timeout = self.config.stop_timeout

        self.state = ServerState.STOP_REQUESTED
        logger.debug(f"Stopping server (PID: {pid})")
        self._request_shutdown(pid)
        if not self._wait_for_exit(pid, timeout):
            if not escalate:
                raise StopTimeoutError(
                    f"server (PID: {pid}) did not exit within {timeout:g} seconds"
                )
            logger.warning(f"Server (PID: {pid}) ignored shutdown, killing it")
            self._kill_pid(pid)
        self.state = ServerState.STOPPED
        logger.info("Server stopped")
        return self.status()

    def _request_shutdown(self, pid: int) -> None:
        """
        Send the shutdown request, falling back to SIGTERM if mysqladmin
        cannot deliver it. Either way the shutdown is in flight.
        """
        try:
            self._run(["shutdown"])
            return
        except (AdminCommandError, OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"mysqladmin shutdown failed, sending SIGTERM: {e}")
        self._signal(pid, signal.SIGTERM)

    def _wait_for_exit(self, pid: int, timeout: float) -> bool:
        """
        Wait for a process to exit.
        :return: Whether the process exited within the timeout.
        """
        try:
            psutil.Process(pid).wait(timeout=timeout)
        except psutil.NoSuchProcess:
            return True
        except psutil.TimeoutExpired:
            return not pid_is_live(pid)
        return True

    def kill(self) -> DBStatus:
        """
        Kill the recorded server process, and only that one.
        The pid-file is left behind as a stale record.
        :return: The status of the killed server.
        """
        pid = self.live_pid()
        if pid is None:
            raise NotRunningError("server is not running")
        self._kill_pid(pid)
        self.state = ServerState.STOPPED
        return self.status()

    def _kill_pid(self, pid: int) -> None:
        self.state = ServerState.FORCE_KILLING
        logger.info(f"Killing server (PID: {pid})")
        if not self._signal(pid, signal.SIGKILL):
            return
        if not self._wait_for_exit(pid, self.config.kill_timeout):
            raise StopTimeoutError(f"server (PID: {pid}) survived SIGKILL")

    def status(self) -> DBStatus:
        """
        Get the status of the server. Never changes any state.
        :return: The status of the server.
        """
        pid = self.live_pid()
        state = self.state
        if pid is None:
            state = ServerState.STOPPED
        elif state == ServerState.STOPPED:
            # e.g. came up after a startup timeout
            state = ServerState.RUNNING
        server_status = None
        if pid is not None:
            try:
                server_status = self._run(["status"]).strip()
            except (AdminCommandError, OSError, subprocess.TimeoutExpired) as e:
                logger.warning(f"Could not query server status: {e}")
        return DBStatus(
            data_dir=self.instance.data_dir,
            socket_path=self.instance.socket_path,
            logfile=self.instance.log_path,
            port=self.instance.port,
            running=pid is not None,
            pid=pid,
            state=state,
            server_status=server_status,
        )

    def console(self) -> int:
        """
        Open an interactive mysql client on the instance socket.
        :return: The exit code of the client.
        """
        if self.live_pid() is None:
            raise NotRunningError("server is not running")
        result = subprocess.run(
            [get_mysql_binary("mysql", self.bin_dir), *self._defaults_args()],
            env=self.subprocess_kwargs["env"],
        )
        return result.returncode

    def _find_server_processes(self) -> list[psutil.Process]:
        processes = []
        for proc in psutil.process_iter(["name"]):
            if proc.pid != os.getpid() and proc.info["name"] in SERVER_PROCESS_NAMES:
                processes.append(proc)
        return processes

    def force_cleanup(self) -> list[Path]:
        """
        Terminate every mysql server process on the host, kill the survivors
        and remove the stale pid-files under the instance root. A pid-file
        pointing at a process that is not a mysql server is stale too.
        Only ever run on explicit request.
        :return: The removed pid-files.
        """
        processes = self._find_server_processes()
        signalled = []
        for proc in processes:
            logger.info(f"Terminating server process (PID: {proc.pid})")
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning(f"Not allowed to terminate PID {proc.pid}, skipping")
                continue
            signalled.append(proc)

        _, alive = psutil.wait_procs(signalled, timeout=self.config.cleanup_grace)
        for proc in alive:
            logger.warning(f"Killing PID {proc.pid}")
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                pass
        psutil.wait_procs(alive, timeout=self.config.kill_timeout)
        if self._process is not None:
            self._process.poll()

        removed = []
        if not self.instance.root.is_dir():
            self.state = ServerState.STOPPED
            return removed
        for pid_file in sorted(self.instance.root.rglob("*.pid")):
            pid = live_pid(pid_file)
            if pid is None or not self._is_server_process(pid):
                logger.debug(f"Removing stale pid-file {pid_file}")
                pid_file.unlink(missing_ok=True)
                removed.append(pid_file)
        self.state = ServerState.STOPPED
        return removed
