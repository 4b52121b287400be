from __future__ import annotations

import dataclasses
import enum
from pathlib import Path


class ServerState(str, enum.Enum):
    """
    The supervisor's view of the server process.
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"
    FORCE_KILLING = "force_killing"


@dataclasses.dataclass(frozen=True)
class DBStatus:
    """
    The status of a mysql server.
    """

    data_dir: Path
    socket_path: Path
    logfile: Path
    port: int
    running: bool
    pid: int | None
    state: ServerState = ServerState.STOPPED
    server_status: str | None = None
