"""In-memory throttle for password reset requests.

Each account identifier (normalized email) gets at most ``MAX_ATTEMPTS``
reset requests per ``WINDOW_SECONDS``. Records live only in process memory and
are lost on restart. A background thread sweeps expired records every
``CLEANUP_INTERVAL_SECONDS`` so the map does not grow without bound.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 24 * 60 * 60
MAX_ATTEMPTS = 3
CLEANUP_INTERVAL_SECONDS = 60 * 60


@dataclass
class AttemptRecord:
    identifier: str
    count: int
    window_start: float


class ResetAttemptLimiter:
    """Track reset requests per identifier and refuse them past the limit."""

    def __init__(
        self,
        window_seconds: float = WINDOW_SECONDS,
        max_attempts: int = MAX_ATTEMPTS,
        cleanup_interval: float = CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._records: Dict[str, AttemptRecord] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _expired(self, record: AttemptRecord, now: float) -> bool:
        return now - record.window_start > self.window_seconds

    def check_and_record(self, identifier: str) -> bool:
        """Return True and count the request if the identifier is under its limit.

        A refused request is not counted.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(identifier)
            if record is None or self._expired(record, now):
                self._records[identifier] = AttemptRecord(identifier, 1, now)
                return True
            if record.count >= self.max_attempts:
                logger.debug("Reset attempt refused for %s", identifier)
                return False
            record.count += 1
            return True

    def get_record(self, identifier: str) -> Optional[AttemptRecord]:
        with self._lock:
            record = self._records.get(identifier)
            return replace(record) if record is not None else None

    def cleanup(self) -> int:
        """Drop records whose window has elapsed. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [key for key, record in self._records.items() if self._expired(record, now)]
            for key in stale:
                del self._records[key]
        if stale:
            logger.debug("Removed %d expired reset attempt records", len(stale))
        return len(stale)

    def _run(self) -> None:
        # wait() returns True once stop() is called
        while not self._stop_event.wait(self.cleanup_interval):
            self.cleanup()

    def start(self) -> None:
        """Start the periodic cleanup thread. Calling it twice is a no-op."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="reset-limiter-cleanup", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the cleanup thread if it is running."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
