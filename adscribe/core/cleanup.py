"""
Cleanup: periodically delete stale job workspaces.

The reaper only looks at directory age. It does not know which jobs are
still running, so a job whose external calls outlast the TTL can lose its
workspace mid-flight; the next call for that job reports "not found".
"""

import logging
import threading
import time
from typing import Callable, Optional

from adscribe.core.constants import WORKSPACE_TTL_SEC, REAPER_INTERVAL_SEC
from adscribe.core.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class WorkspaceReaper:
    """Background sweep removing workspaces older than the TTL."""

    def __init__(self, workspaces: WorkspaceManager,
                 ttl_sec: float = WORKSPACE_TTL_SEC,
                 interval_sec: float = REAPER_INTERVAL_SEC,
                 clock: Callable[[], float] = time.time):
        self.workspaces = workspaces
        self.ttl_sec = ttl_sec
        self.interval_sec = interval_sec
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sweep(self) -> list[str]:
        """Remove every stale workspace. Returns the removed job ids."""
        now = self._clock()
        removed = []
        for job_id in self.workspaces.list_workspaces():
            try:
                age = now - self.workspaces.last_modified(job_id)
                if age <= self.ttl_sec:
                    continue
                self.workspaces.remove(job_id)
                removed.append(job_id)
                logger.info("Cleanup: %s removed (idle %.0fs)", job_id, age)
            except FileNotFoundError:
                continue  # removed by its own job in the meantime
            except Exception as e:
                logger.warning("Cleanup failed for %s: %s", job_id, e)
        return removed

    # ── Background thread ─────────────────────────────────────────────

    def start(self):
        """Start the sweep thread."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="workspace-reaper",
                                        daemon=True)
        self._thread.start()
        logger.info("Workspace reaper started (ttl=%ss, every %ss)",
                    self.ttl_sec, self.interval_sec)

    def stop(self, timeout: float | None = 5):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self):
        while not self._stop_event.wait(self.interval_sec):
            try:
                self.sweep()
            except Exception as e:
                logger.error("Cleanup sweep error: %s", e, exc_info=True)
