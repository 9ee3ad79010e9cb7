"""Background thread that runs the settlement sweep on a fixed cadence.

Started from the application lifespan when ``sweeper_enabled`` is set.
Ticks only on the configured ISO weekdays, and a tick that finds the
previous sweep still running is skipped rather than queued.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.timeutils import to_local, utc_now
from app.services.settlement.sweeper import SettlementSweeper, SweepResult

logger = get_logger(__name__)


class SweepRunner:
    def __init__(self, session_factory: Callable[[], Session], config: Settings) -> None:
        self.session_factory = session_factory
        self.config = config
        self._sweep_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def is_sweep_day(self, now: datetime) -> bool:
        local_now = to_local(now, self.config.settlement_timezone)
        return local_now.isoweekday() in self.config.sweep_weekdays

    def run_once(self, now: Optional[datetime] = None) -> Optional[SweepResult]:
        """Run one sweep unless another is in progress; returns None when skipped."""
        now = now or utc_now()
        if not self.is_sweep_day(now):
            logger.debug("Sweep skipped: %s is not a sweep day", now.date())
            return None
        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("Sweep skipped: previous sweep still running")
            return None
        try:
            db = self.session_factory()
            try:
                return SettlementSweeper(db, self.config).sweep(now)
            finally:
                db.close()
        finally:
            self._sweep_lock.release()

    def _loop(self) -> None:
        interval = self.config.sweep_interval_minutes * 60
        logger.info("Sweep runner started: every %d min", self.config.sweep_interval_minutes)
        while not self._stop.wait(interval):
            try:
                self.run_once()
            except Exception:
                logger.exception("Sweep tick failed")
        logger.info("Sweep runner stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="settlement-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
