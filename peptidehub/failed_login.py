"""Per-identifier counter of failed logins."""
from __future__ import annotations

import threading
from collections import defaultdict
from typing import DefaultDict


class FailedLoginTracker:
    """Count login failures per identifier (email, or remote address)."""

    def __init__(self) -> None:
        self._data: DefaultDict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def increment(self, key: str) -> int:
        with self._lock:
            self._data[key] += 1
            return self._data[key]

    def get_attempts(self, key: str) -> int:
        with self._lock:
            return self._data.get(key, 0)

    def reset(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
