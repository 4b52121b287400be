from __future__ import annotations

import dataclasses
from pathlib import Path

KIB = 1024
MIB = 1024 * KIB


def _default_buffer_sizes() -> dict[str, int]:
    return {
        "innodb_buffer_pool_size": 128 * MIB,
        "key_buffer_size": 16 * MIB,
        "sort_buffer_size": 2 * MIB,
        "read_buffer_size": 128 * KIB,
    }


@dataclasses.dataclass(frozen=True)
class Tuning:
    """
    Server tuning options rendered into the [mysqld] section.
    """

    max_connections: int = 100
    charset: str = "utf8mb4"
    buffer_sizes: dict[str, int] = dataclasses.field(
        default_factory=_default_buffer_sizes
    )


@dataclasses.dataclass(frozen=True)
class DBConfig:
    """
    The configuration of a mysql instance.
    This is passed to every component instead of reading the environment.
    """

    root: Path = Path(".mysql")
    port: int = 3306
    bind_address: str = "127.0.0.1"
    tuning: Tuning = dataclasses.field(default_factory=Tuning)
    bin_dir: Path | None = None
    ready_attempts: int = 30
    ready_interval: float = 1.0
    stop_timeout: float = 30.0
    exit_grace: float = 1.0
    kill_timeout: float = 5.0
    cleanup_grace: float = 3.0
    bootstrap_timeout: float = 300.0
    delete_on_exit: bool = False

    def __post_init__(self):
        # frozen, so bypass __setattr__ to normalize the root
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())
