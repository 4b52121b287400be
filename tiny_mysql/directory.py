from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

from .errors import FilesystemError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3306
DEFAULT_BIND_ADDRESS = "127.0.0.1"


@dataclasses.dataclass(frozen=True)
class Instance:
    """
    The filesystem locations and network settings of one mysql server.
    """

    root: Path
    port: int = DEFAULT_PORT
    bind_address: str = DEFAULT_BIND_ADDRESS

    @property
    def data_dir(self) -> Path:
        return self.root / "data"

    @property
    def tmp_dir(self) -> Path:
        return self.root / "tmp"

    @property
    def log_dir(self) -> Path:
        return self.root / "log"

    @property
    def socket_path(self) -> Path:
        return self.root / "mysql.sock"

    @property
    def pid_file_path(self) -> Path:
        return self.root / "mysql.pid"

    @property
    def log_path(self) -> Path:
        return self.log_dir / "mysql.log"

    @property
    def config_path(self) -> Path:
        return self.root / "my.cnf"


def locate(
    root: Path,
    port: int = DEFAULT_PORT,
    bind_address: str = DEFAULT_BIND_ADDRESS,
) -> Instance:
    """
    The instance rooted at ``root``. Nothing is created.
    """
    return Instance(root=Path(root).resolve(), port=port, bind_address=bind_address)


def ensure(
    root: Path,
    port: int = DEFAULT_PORT,
    bind_address: str = DEFAULT_BIND_ADDRESS,
) -> Instance:
    """
    Create the data, tmp and log directories of an instance.
    Calling it again on an existing layout is a no-op.

    :param root: The directory holding everything that belongs to the instance.
    :param port: The TCP port the server listens on.
    :param bind_address: The network interface the server binds to.
    :return: The instance rooted at ``root``.
    """
    instance = locate(root, port, bind_address)
    for directory in (instance.data_dir, instance.tmp_dir, instance.log_dir):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            raise FilesystemError(
                f"{directory} exists and is not a directory"
            ) from e
        except OSError as e:
            raise FilesystemError(f"cannot create {directory}: {e.strerror}") from e
    logger.debug(f"Instance directories ready under {instance.root}")
    return instance
