from __future__ import annotations

import dataclasses
import logging
import shutil
from types import TracebackType
from typing import Type

from . import config_writer, directory
from .db_config import DBConfig, Tuning
from .db_status import DBStatus, ServerState
from .directory import Instance
from .env import get_instance_environ, get_mysql_base_dir, get_mysql_bin_dir
from .errors import (
    AdminCommandError,
    AlreadyRunningError,
    BootstrapError,
    FilesystemError,
    NotRunningError,
    StartupTimeoutError,
    StopTimeoutError,
    TinyMySQLError,
)
from .exit_guard import ExitGuard
from .initializer import InitResult, InstanceInitializer
from .supervisor import ServerSupervisor

logger = logging.getLogger(__name__)

__all__ = [
    "AdminCommandError",
    "AlreadyRunningError",
    "BootstrapError",
    "DBConfig",
    "DBStatus",
    "ExitGuard",
    "FilesystemError",
    "InitResult",
    "Instance",
    "InstanceInitializer",
    "NotRunningError",
    "ServerState",
    "ServerSupervisor",
    "StartupTimeoutError",
    "StopTimeoutError",
    "TinyMySQL",
    "TinyMySQLError",
    "Tuning",
    "locate",
    "prepare",
]


def _resolve(config: DBConfig) -> DBConfig:
    bin_dir = get_mysql_bin_dir(config.bin_dir)
    if bin_dir == config.bin_dir:
        return config
    return dataclasses.replace(config, bin_dir=bin_dir)


def locate(config: DBConfig) -> ServerSupervisor:
    """
    Build a supervisor for the instance under ``config.root`` without
    touching the filesystem.
    :param config: The configuration of the instance.
    :return: The supervisor of the instance.
    """
    config = _resolve(config)
    instance = directory.locate(config.root, config.port, config.bind_address)
    return ServerSupervisor(instance, config)


def prepare(config: DBConfig) -> ServerSupervisor:
    """
    Run the setup phase of a session: create the directories, regenerate
    my.cnf and bootstrap the data directory if needed.
    :param config: The configuration of the instance.
    :return: The supervisor of the prepared instance.
    """
    config = _resolve(config)
    instance = directory.ensure(config.root, config.port, config.bind_address)
    config_writer.write(instance, config.tuning, get_mysql_base_dir(config.bin_dir))
    InstanceInitializer(config.bin_dir, config.bootstrap_timeout).initialize_if_needed(
        instance
    )
    return ServerSupervisor(instance, config)


class TinyMySQL:
    def __init__(self, config: DBConfig):
        self.supervisor = prepare(config)
        self.config = self.supervisor.config
        self.instance = self.supervisor.instance
        self.guard = ExitGuard(self.supervisor, grace_period=self.config.exit_grace)

    @property
    def environ(self) -> dict[str, str]:
        """
        The variables collaborators use to locate the instance.
        """
        return get_instance_environ(self.instance)

    def start(self) -> DBStatus:
        return self.supervisor.start()

    def stop(self) -> DBStatus:
        return self.supervisor.stop()

    def status(self) -> DBStatus:
        return self.supervisor.status()

    def _cleanup(self) -> None:
        """
        Remove the instance root.
        """
        if self.config.delete_on_exit:
            logger.debug(f"Cleaning up mysql root directory {self.instance.root}")
            shutil.rmtree(self.instance.root, ignore_errors=True)

    def __enter__(self) -> TinyMySQL:
        """
        Start the mysql server and guard it until the session ends.
        :return:
        """
        self.guard.arm()
        try:
            self.start()
        except (AlreadyRunningError, StartupTimeoutError):
            # not ours to stop, or left running for inspection
            self.guard.disarm()
            raise
        except BaseException:
            self.guard.teardown()
            raise
        return self

    def __exit__(
        self,
        exc_type: Type[Exception] | None,
        exc_val: Exception | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """
        Stop the mysql server and run a cleanup.
        :param exc_type: The type of exception that was raised.
        :param exc_val: The exception that was raised.
        :param exc_tb: The traceback of the exception that was raised.
        :return:
        """
        self.guard.teardown()
        self._cleanup()
