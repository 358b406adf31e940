"""Cooperative cancellation shared by the job driver and frame pipeline."""
import logging
import threading
from enum import Enum
from typing import Optional

from converter.engine import EngineManager
from converter.errors import Cancelled

logger = logging.getLogger("converter.cancellation")


class CancelState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"


class CancellationSignal:
    """Process-wide cancel flag plus engine teardown.

    Checked at every batch boundary and before/after each engine call. Tearing
    the engine down is what interrupts an ffmpeg process already running.
    """

    def __init__(self, engines: Optional[EngineManager] = None):
        self._engines = engines
        self._flag = threading.Event()
        self._state = CancelState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> CancelState:
        return self._state

    def is_cancelled(self) -> bool:
        return self._flag.is_set()

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise Cancelled()

    def start(self) -> None:
        with self._lock:
            self._flag.clear()
            self._state = CancelState.RUNNING

    def finish(self) -> None:
        with self._lock:
            self._state = CancelState.IDLE

    def cancel(self) -> bool:
        """Set the flag and tear the engine down. Safe to call repeatedly."""
        with self._lock:
            self._flag.set()
            self._state = CancelState.CANCELLING
        logger.info("Cancellation requested")
        if self._engines is not None:
            self._engines.teardown()
        with self._lock:
            self._state = CancelState.IDLE
        return True
