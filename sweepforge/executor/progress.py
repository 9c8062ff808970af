from __future__ import annotations

import logging
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    def launched(self) -> None: ...

    def completed(self) -> None: ...


class NullProgress:
    def launched(self) -> None:
        pass

    def completed(self) -> None:
        pass


class ProgressCounter:
    """Thread-safe launched/completed counters, optionally logged."""

    def __init__(self, total: int | None = None, *, log: bool = False):
        self.total = total
        self.log = log
        self._launched = 0
        self._completed = 0
        self._lock = threading.Lock()

    @property
    def launched_count(self) -> int:
        with self._lock:
            return self._launched

    @property
    def completed_count(self) -> int:
        with self._lock:
            return self._completed

    def launched(self) -> None:
        with self._lock:
            self._launched += 1

    def completed(self) -> None:
        with self._lock:
            self._completed += 1
            done = self._completed

        if self.log:
            if self.total is None:
                logger.info("Completed %d task(s)", done)
            else:
                logger.info("Completed %d/%d task(s)", done, self.total)
