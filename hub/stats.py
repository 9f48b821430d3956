import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Callable

from db.database import Database
from errors import PersistenceError

logger = logging.getLogger(__name__)


class StatsTracker:
    def __init__(self, db: Database, today: Callable[[], date] = date.today):
        self.db = db
        self._today = today

    def record_visit(self, page: str, ip: str | None, user_agent: str | None):
        self.db.log_visit(page, ip, user_agent, datetime.now(timezone.utc).isoformat())

    def maybe_reset_daily(self) -> bool:
        today = self._today().isoformat()
        reset = self.db.reset_daily_visits(today)
        if reset:
            logger.info("Daily visit counter reset for %s", today)
        return reset

    def snapshot(self) -> dict:
        row = self.db.get_site_stats()
        return {
            "totalVisits": row["total_visits"],
            "todayVisits": row["today_visits"],
            "lastResetDate": row["last_reset_date"],
        }

    async def run_daily_reset(self, interval: float):
        """Check for a new day every `interval` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                self.maybe_reset_daily()
            except PersistenceError as e:
                logger.error("Daily stats reset failed: %s", e)
