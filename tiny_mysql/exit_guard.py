from __future__ import annotations

import atexit
import logging
import signal
from types import TracebackType
from typing import Type

from .errors import NotRunningError, StopTimeoutError, TinyMySQLError
from .supervisor import ServerSupervisor

logger = logging.getLogger(__name__)

GUARDED_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


class ExitGuard:
    """
    Stops the server when the session ends: on leaving the ``with`` block,
    at interpreter exit, or on SIGTERM/SIGHUP. The teardown runs once.
    If the server is still alive after the grace period, the recorded pid
    is killed.
    """

    def __init__(self, supervisor: ServerSupervisor, grace_period: float = 1.0):
        self.supervisor = supervisor
        self.grace_period = grace_period
        self._armed = False
        self._done = False
        self._previous_handlers = {}

    def arm(self) -> None:
        if self._armed:
            return
        atexit.register(self.teardown)
        for signum in GUARDED_SIGNALS:
            try:
                self._previous_handlers[signum] = signal.signal(signum, self._on_signal)
            except ValueError:
                logger.debug("Not on the main thread, signals are not guarded")
                break
        self._armed = True

    def disarm(self) -> None:
        if not self._armed:
            return
        atexit.unregister(self.teardown)
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()
        self._armed = False

    def _on_signal(self, signum, frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        # unwind the stack so with-blocks and atexit run the teardown
        raise SystemExit(128 + signum)

    def teardown(self) -> None:
        """
        Stop the server, escalating to a kill of its pid after the grace period.
        """
        if self._done:
            return
        self._done = True
        self.disarm()
        try:
            self.supervisor.stop(timeout=self.grace_period, escalate=False)
        except NotRunningError:
            # interrupted before the pid-file was written
            try:
                if not self.supervisor.kill_launched():
                    logger.debug("Server already stopped")
            except TinyMySQLError as e:
                logger.error(f"Could not kill server: {e}")
        except StopTimeoutError:
            logger.warning(
                f"Server still running after {self.grace_period:g}s, killing it"
            )
            try:
                self.supervisor.kill()
            except NotRunningError:
                pass
            except TinyMySQLError as e:
                logger.error(f"Could not kill server: {e}")
        except TinyMySQLError as e:
            logger.error(f"Could not stop server: {e}")

    def __enter__(self) -> ExitGuard:
        self.arm()
        return self

    def __exit__(
        self,
        exc_type: Type[Exception] | None,
        exc_val: Exception | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.teardown()
