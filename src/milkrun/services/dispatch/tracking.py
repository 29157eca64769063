"""Tracking number generation: ``<prefix>-<epoch millis>-<sequence>``."""

from __future__ import annotations

import itertools
import threading
import time
from typing import Callable


class TrackingNumberGenerator:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def next(self, prefix: str) -> str:
        cleaned = (prefix or "").strip().upper()
        if not cleaned:
            raise ValueError("tracking prefix must not be empty")
        with self._lock:
            sequence = next(self._sequence)
            millis = int(self._clock() * 1000)
        return f"{cleaned}-{millis}-{sequence}"


tracking_numbers = TrackingNumberGenerator()
