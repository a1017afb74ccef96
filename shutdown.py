"""Single-fire shutdown signal raced between an explicit trigger and a timer."""

from __future__ import annotations

import enum
import logging
import socket
import threading
import time
from collections.abc import Callable
from types import FrameType
from typing import TextIO

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"q", "quit", "exit"}


class ShutdownState(enum.Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ShutdownController:
    """Owns the server lifetime.

    Any number of producers may call :meth:`trigger`; only the first call
    moves the controller out of ``RUNNING`` and its reason is the one kept.
    The accept loop can either :meth:`wait` or register the controller itself
    with a selector, since it exposes a ``fileno()`` that becomes readable
    exactly when the signal fires.
    """

    def __init__(
        self,
        duration: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if duration is not None and duration <= 0:
            raise ValueError("duration must be positive")
        self.duration = duration
        self._clock = clock
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._state = ShutdownState.RUNNING
        self._reason: str | None = None
        self._timer: threading.Timer | None = None
        self._wake_reader, self._wake_writer = socket.socketpair()
        self.started_at = clock()
        self.triggered_at: float | None = None

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def reason(self) -> str | None:
        return self._reason

    def start(self) -> None:
        """Arm the timer, if a duration was configured."""
        with self._lock:
            if self.duration is None or self._timer is not None:
                return
            if self._state is not ShutdownState.RUNNING:
                return
            self.started_at = self._clock()
            self._timer = threading.Timer(self.duration, self.trigger, args=("timeout",))
            self._timer.daemon = True
            self._timer.name = "shutdown-timer"
            self._timer.start()
        logger.info("Server will shut down automatically after %.1fs", self.duration)

    def trigger(self, reason: str = "explicit") -> bool:
        """Fire the signal. Returns False when it had already fired."""
        with self._lock:
            if self._state is not ShutdownState.RUNNING:
                return False
            self._state = ShutdownState.SHUTTING_DOWN
            self._reason = reason
            self.triggered_at = self._clock()
            self._event.set()
            try:
                self._wake_writer.send(b"\x00")
            except OSError:
                pass
            timer = self._timer

        if timer is not None and reason != "timeout":
            timer.cancel()
        logger.info("Shutdown requested (%s)", reason)
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def fileno(self) -> int:
        return self._wake_reader.fileno()

    def mark_stopped(self) -> None:
        """Terminal transition; also fires the signal if nothing did yet."""
        with self._lock:
            if self._state is ShutdownState.STOPPED:
                return
            if self._state is ShutdownState.RUNNING:
                self._reason = "server-exit"
                self.triggered_at = self._clock()
                self._event.set()
            self._state = ShutdownState.STOPPED
            timer = self._timer
            self._wake_writer.close()
            self._wake_reader.close()

        if timer is not None:
            timer.cancel()
        logger.info("Server stopped")


def signal_handler(controller: ShutdownController) -> Callable[[int, FrameType | None], None]:
    """Handler for ``signal.signal`` that never takes the controller lock itself.

    Signal handlers run on the main thread between bytecodes, possibly while
    that thread already holds the lock in ``start`` or ``mark_stopped``.
    """

    def _handle(signum: int, _frame: FrameType | None) -> None:
        threading.Thread(
            target=controller.trigger,
            args=("signal",),
            name=f"shutdown-signal-{signum}",
            daemon=True,
        ).start()

    return _handle


def watch_stdin(controller: ShutdownController, stream: TextIO) -> threading.Thread:
    """Trigger shutdown when the operator types ``q``/``quit`` (or closes stdin)."""

    def _watch() -> None:
        for line in stream:
            if line.strip().lower() in QUIT_COMMANDS:
                controller.trigger("quit command")
                return
        controller.trigger("stdin closed")

    thread = threading.Thread(target=_watch, name="stdin-watcher", daemon=True)
    thread.start()
    return thread
