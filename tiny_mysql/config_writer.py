from __future__ import annotations

import configparser
import io
import logging
import os
import tempfile
from pathlib import Path

from .db_config import Tuning
from .directory import Instance
from .errors import FilesystemError

logger = logging.getLogger(__name__)


def render(instance: Instance, tuning: Tuning, basedir: Path | None = None) -> str:
    """
    Render the my.cnf document of an instance.
    The output only depends on the arguments.

    :param instance: The instance to render.
    :param tuning: The tuning options of the server.
    :param basedir: The installation directory of the server, if known.
    :return: The document text.
    """
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str
    parser["client"] = {
        "socket": str(instance.socket_path),
        "port": str(instance.port),
    }
    mysqld = {
        "datadir": str(instance.data_dir),
        "socket": str(instance.socket_path),
        "pid-file": str(instance.pid_file_path),
        "port": str(instance.port),
        "bind-address": instance.bind_address,
        "tmpdir": str(instance.tmp_dir),
        "log-error": str(instance.log_path),
        "max_connections": str(tuning.max_connections),
        "character-set-server": tuning.charset,
    }
    if basedir is not None:
        mysqld = {"basedir": str(basedir), **mysqld}
    for name, size in sorted(tuning.buffer_sizes.items()):
        mysqld[name] = str(size)
    parser["mysqld"] = mysqld

    buffer = io.StringIO()
    parser.write(buffer, space_around_delimiters=False)
    return buffer.getvalue()


def write(instance: Instance, tuning: Tuning, basedir: Path | None = None) -> Path:
    """
    Regenerate the my.cnf of an instance.
    The document is written next to the target and renamed over it, so a
    reader sees either the old or the new document.

    :param instance: The instance to render.
    :param tuning: The tuning options of the server.
    :param basedir: The installation directory of the server, if known.
    :return: The path of the written document.
    """
    target = instance.config_path
    document = render(instance, tuning, basedir)
    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", dir=target.parent, prefix=".my.cnf.", delete=False
        ) as f:
            tmp_name = f.name
            f.write(document)
        os.replace(tmp_name, target)
    except OSError as e:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise FilesystemError(f"cannot write {target}: {e.strerror}") from e
    logger.debug(f"Wrote server configuration to {target}")
    return target
