"""
Daily decay scheduler
=====================
Background asyncio task that runs the daily decay sweep once per calendar
date, at or after ``weight.daily_update_time`` (local time).
"""

import asyncio
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from loguru import logger

from .config import CogniConfig, parse_daily_time

if TYPE_CHECKING:
    from .engine import CognitiveEngine


class DailyDecayScheduler:
    """
    Periodically checks the clock and triggers ``engine.apply_daily_decay``.

    ``run_pending`` performs a single check and can be driven directly by a
    host or by tests.
    """

    def __init__(self, engine: "CognitiveEngine", config: Optional[CogniConfig] = None):
        self.engine = engine
        self.config = config or engine.config
        self.hour, self.minute = parse_daily_time(self.config.weight.daily_update_time)
        self.check_interval = self.config.scheduler.check_interval_seconds

        self.last_run_date: Optional[date] = None
        self.runs = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    # ---- Lifecycle ------------------------------------------------ #

    async def start(self) -> None:
        if not self.config.scheduler.enabled:
            logger.info("[DecayScheduler] Disabled by configuration")
            return
        if self._running:
            logger.warning("[DecayScheduler] Already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._scheduler_loop(), name="daily_decay_scheduler")
        logger.info(f"[DecayScheduler] Started (daily at {self.hour:02d}:{self.minute:02d})")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[DecayScheduler] Stopped")

    @property
    def running(self) -> bool:
        return self._running

    # ---- Main loop ------------------------------------------------ #

    def is_due(self, now: datetime) -> bool:
        today = now.date()
        # The engine remembers sweeps from before a restart
        if today in (self.last_run_date, self.engine.last_decay_date):
            return False
        return (now.hour, now.minute) >= (self.hour, self.minute)

    async def run_pending(self, now: Optional[datetime] = None) -> bool:
        """Run the sweep if it is due. Returns True when it ran."""
        now = now or datetime.now().astimezone()
        if not self.is_due(now):
            return False
        # Mark first so a failing sweep is not retried every minute
        self.last_run_date = now.date()
        updated = await self.engine.apply_daily_decay(now)
        self.runs += 1
        logger.info(f"[DecayScheduler] Daily decay committed for {updated} documents")
        return True

    async def _scheduler_loop(self) -> None:
        while self._running:
            try:
                await self.run_pending()
                await asyncio.sleep(self.check_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"[DecayScheduler] Loop error: {e}")
                await asyncio.sleep(self.check_interval)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.config.scheduler.enabled,
            "running": self._running,
            "daily_update_time": f"{self.hour:02d}:{self.minute:02d}",
            "last_run_date": self.last_run_date.isoformat() if self.last_run_date else None,
            "runs": self.runs,
        }


__all__ = ["DailyDecayScheduler"]
