import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class RateWindow:
    count: int
    reset_at: float


class AdmissionController:
    """Fixed-window request counter keyed by chat session."""

    def __init__(self, max_requests: int = 20, window_sec: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max(1, max_requests)
        self.window_sec = window_sec
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()
        self._next_prune = 0.0

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            # Keys are client-supplied, so expired windows are swept once per window
            if now >= self._next_prune:
                self._prune_expired(now)
                self._next_prune = now + self.window_sec
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = RateWindow(count=1, reset_at=now + self.window_sec)
                return True
            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def prune(self) -> int:
        """Drop windows that have already elapsed. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            return self._prune_expired(now)

    def _prune_expired(self, now: float) -> int:
        stale = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._windows)
