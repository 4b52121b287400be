from __future__ import annotations

import enum
import logging
import shutil
import subprocess
from pathlib import Path

from .directory import Instance
from .env import get_mysql_base_dir, get_mysql_binary, get_mysql_environ
from .errors import BootstrapError

logger = logging.getLogger(__name__)

# the system catalog, created by the bootstrap
MARKER_DIR = "mysql"


class InitResult(str, enum.Enum):
    ALREADY_INITIALIZED = "already_initialized"
    INITIALIZED = "initialized"


class InstanceInitializer:
    def __init__(self, bin_dir: Path | None = None, timeout: float = 300.0):
        self.bin_dir = bin_dir
        self.base_dir = get_mysql_base_dir(bin_dir)
        self.timeout = timeout

    def marker(self, instance: Instance) -> Path:
        return instance.data_dir / MARKER_DIR

    def is_initialized(self, instance: Instance) -> bool:
        return self.marker(instance).is_dir()

    def initialize_if_needed(self, instance: Instance) -> InitResult:
        """
        Create the system tables of the instance unless they already exist.
        Safe to call on every session start.

        :param instance: The instance to initialize.
        :return: Whether the bootstrap ran.
        """
        if self.is_initialized(instance):
            logger.debug(f"Data directory {instance.data_dir} already initialized")
            return InitResult.ALREADY_INITIALIZED

        logger.info(f"Initializing data directory {instance.data_dir}")
        existing = self._entries(instance)
        try:
            self._bootstrap(instance)
        except BootstrapError:
            self._remove_partial(instance, existing)
            raise
        if not self.is_initialized(instance):
            raise BootstrapError(
                f"bootstrap finished but {self.marker(instance)} was not created"
            )
        return InitResult.INITIALIZED

    def _entries(self, instance: Instance) -> set[str]:
        try:
            return {path.name for path in instance.data_dir.iterdir()}
        except FileNotFoundError:
            return set()

    def _remove_partial(self, instance: Instance, existing: set[str]) -> None:
        """
        Remove what a failed bootstrap left in the data directory, keeping
        the entries that were there before it ran.
        """
        for name in sorted(self._entries(instance) - existing):
            path = instance.data_dir / name
            logger.debug(f"Removing partial bootstrap output {path}")
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path, ignore_errors=True)
            else:
                path.unlink(missing_ok=True)

    def _bootstrap_command(self, instance: Instance) -> list[str]:
        args = [f"--datadir={instance.data_dir}"]
        if self.base_dir is not None:
            args.append(f"--basedir={self.base_dir}")
        install_db = shutil.which(get_mysql_binary("mysql_install_db", self.bin_dir))
        if install_db is not None:
            return [install_db, "--no-defaults", *args]
        return [
            get_mysql_binary("mysqld", self.bin_dir),
            "--no-defaults",
            "--initialize-insecure",
            *args,
        ]

    def _bootstrap(self, instance: Instance) -> str:
        """
        Run the bootstrap procedure synchronously.
        :param instance: The instance to bootstrap.
        :return: The output of the bootstrap.
        """
        command = self._bootstrap_command(instance)
        logger.debug(f"Running {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                env=get_mysql_environ(self.bin_dir),
                universal_newlines=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise BootstrapError(
                f"bootstrap binary not found: {command[0]}",
                hint="Install mysql or mariadb, or point --bin-dir at its binaries.",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise BootstrapError(
                f"bootstrap did not finish within {self.timeout:g} seconds"
            ) from e
        if result.returncode != 0:
            logger.error(result.stderr)
            raise BootstrapError(
                f"bootstrap failed with code {result.returncode}: {result.stderr}"
            )
        logger.debug(result.stdout)
        return result.stdout
