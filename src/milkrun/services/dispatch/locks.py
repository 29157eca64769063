"""Per-driver mutual exclusion for capacity check-then-write sequences."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class DriverLockRegistry:
    """Hands out one lock per driver id, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, driver_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(driver_id)
            if lock is None:
                lock = self._locks[driver_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, driver_id: str) -> Iterator[None]:
        lock = self.lock_for(driver_id)
        with lock:
            yield


driver_locks = DriverLockRegistry()
