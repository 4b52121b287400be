from __future__ import annotations

from pathlib import Path


class TinyMySQLError(Exception):
    """
    Base class for every error raised by tiny_mysql.
    The hint tells the operator what to try next.
    """

    hint = ""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class FilesystemError(TinyMySQLError):
    """
    A directory or file needed by the instance could not be created or written.
    """

    hint = "Check the permissions of the root directory, or pick another one with --root."


class BootstrapError(TinyMySQLError):
    """
    The system tables of a fresh data directory could not be created.
    """

    hint = "Inspect the bootstrap output above, then remove the data directory and retry."


class AlreadyRunningError(TinyMySQLError):
    """
    start() was called while the instance is running.
    """

    hint = "Run `tiny-mysql stop` first, or `tiny-mysql status` to inspect it."


class NotRunningError(TinyMySQLError):
    """
    An operation that needs a running server found none.
    """

    hint = "Run `tiny-mysql start` first."


class StartupTimeoutError(TinyMySQLError):
    """
    The server did not become ready within the readiness poll bound.
    The process is left running for diagnosis.
    """

    def __init__(self, log_path: Path, attempts: int):
        super().__init__(
            f"server did not become ready after {attempts} attempts, see {log_path}",
            hint=f"Read {log_path}; use `tiny-mysql cleanup` if the process is wedged.",
        )
        self.log_path = log_path
        self.attempts = attempts


class StopTimeoutError(TinyMySQLError):
    """
    The server process did not exit within the allotted time.
    """

    hint = "Run `tiny-mysql cleanup` to terminate every server process."


class AdminCommandError(TinyMySQLError):
    """
    A mysqladmin invocation exited with a non-zero code.
    """

    hint = "Check that mysqladmin can reach the socket."
