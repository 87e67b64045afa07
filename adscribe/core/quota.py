"""
Daily request quota.
One process-wide counter, reset on the first access after local midnight.
"""

import logging
import threading
from datetime import date
from typing import Callable

from adscribe.core.constants import DAILY_LIMIT
from adscribe.core.error_codes import QuotaExceeded

logger = logging.getLogger(__name__)


class QuotaGate:
    """
    Admission control limiting total jobs per calendar day.
    The reset-compare-increment sequence runs under a single lock.
    """

    def __init__(self, limit: int = DAILY_LIMIT,
                 today: Callable[[], date] = date.today):
        self.limit = limit
        self._today = today
        self._lock = threading.Lock()
        self._count = 0
        self._window_start = today()

    def _roll_window(self):
        # Caller holds the lock
        current = self._today()
        if current != self._window_start:
            logger.info("Quota window reset (%s -> %s)", self._window_start, current)
            self._count = 0
            self._window_start = current

    def admit(self) -> tuple[bool, int]:
        """Returns (allowed, remaining). Rejections do not touch the counter."""
        with self._lock:
            self._roll_window()
            if self._count >= self.limit:
                logger.warning("Quota exhausted (%d/%d)", self._count, self.limit)
                return False, 0
            self._count += 1
            remaining = self.limit - self._count
            logger.info("Request %d/%d admitted", self._count, self.limit)
            return True, remaining

    def require(self) -> int:
        """Admit or raise QuotaExceeded. Returns the remaining allowance."""
        allowed, remaining = self.admit()
        if not allowed:
            raise QuotaExceeded(self.limit)
        return remaining

    def status(self) -> dict:
        with self._lock:
            self._roll_window()
            return {
                "count": self._count,
                "limit": self.limit,
                "remaining": max(0, self.limit - self._count),
            }

    @property
    def count(self) -> int:
        return self.status()["count"]
