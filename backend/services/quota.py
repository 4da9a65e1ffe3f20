"""YouTube API quota budgeting per account per day.

The Data API charges units per call against a daily allowance that resets
at midnight Pacific time. Checks are advisory reads; usage is recorded with
one atomic insert-or-increment so concurrent syncs never lose units.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from models.quota_usage import QuotaUsage
from services.timeseries_store import dialect_insert

logger = logging.getLogger(__name__)
settings = get_settings()

# Units charged per Data API call. Analytics reports are not metered.
QUOTA_COSTS = {
    "channels.list": 1,
    "videos.list": 1,
    "playlistItems.list": 1,
    "search.list": 100,
    "reports.query": 0,
}


@dataclass
class QuotaCheck:
    allowed: bool
    current_usage: int
    remaining: int


@dataclass
class QuotaStats:
    used_today: int
    remaining: int
    percent_used: float
    is_warning: bool
    is_critical: bool

    def to_response(self) -> dict:
        return {
            "usedToday": self.used_today,
            "remaining": self.remaining,
            "percentUsed": self.percent_used,
            "isWarning": self.is_warning,
            "isCritical": self.is_critical,
        }


class QuotaTracker:
    def __init__(
        self,
        daily_limit: int | None = None,
        warning_threshold: float | None = None,
        critical_threshold: float | None = None,
        reset_timezone: str | None = None,
    ):
        self.daily_limit = daily_limit or settings.quota_daily_limit
        self.warning_threshold = warning_threshold or settings.quota_warning_threshold
        self.critical_threshold = critical_threshold or settings.quota_critical_threshold
        self.reset_timezone = ZoneInfo(reset_timezone or settings.quota_reset_timezone)

    @property
    def warning_limit(self) -> float:
        return self.daily_limit * self.warning_threshold

    @property
    def critical_limit(self) -> float:
        return self.daily_limit * self.critical_threshold

    def quota_day(self, now: datetime | None = None) -> date:
        """Day the quota counter belongs to, in the reset timezone."""
        now = now or datetime.now(self.reset_timezone)
        return now.astimezone(self.reset_timezone).date()

    async def _current_usage(self, db: AsyncSession, account_id: str) -> int:
        result = await db.execute(
            select(QuotaUsage.units_used).where(
                QuotaUsage.account_id == account_id,
                QuotaUsage.date == self.quota_day(),
            )
        )
        return result.scalar_one_or_none() or 0

    async def can_proceed(
        self, db: AsyncSession, account_id: str, estimated_units: int = 0
    ) -> QuotaCheck:
        """Whether a call costing ``estimated_units`` stays under the critical limit.

        Read-only: nothing is reserved.
        """
        usage = await self._current_usage(db, account_id)
        return QuotaCheck(
            allowed=usage + estimated_units < self.critical_limit,
            current_usage=usage,
            remaining=self.daily_limit - usage,
        )

    async def track_usage(self, db: AsyncSession, account_id: str, units_used: int) -> bool:
        """Add ``units_used`` to today's counter and commit.

        Returns False once the new total has reached the critical limit.
        The increment is persisted either way.
        """
        stmt = dialect_insert(db, QuotaUsage).values(
            account_id=account_id,
            date=self.quota_day(),
            units_used=units_used,
            units_available=self.daily_limit,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", "date"],
            set_={
                "units_used": QuotaUsage.__table__.c.units_used + stmt.excluded.units_used,
                "updated_at": datetime.now(self.reset_timezone),
            },
        ).returning(QuotaUsage.__table__.c.units_used)
        result = await db.execute(stmt)
        new_usage = result.scalar_one()
        await db.commit()

        if new_usage >= self.critical_limit:
            logger.error(
                f"Quota critical for account {account_id}: {new_usage}/{self.daily_limit} units used"
            )
            return False
        if new_usage >= self.warning_limit:
            logger.warning(
                f"Quota warning for account {account_id}: {new_usage}/{self.daily_limit} units used"
            )
        return True

    async def get_stats(self, db: AsyncSession, account_id: str) -> QuotaStats:
        usage = await self._current_usage(db, account_id)
        return QuotaStats(
            used_today=usage,
            remaining=self.daily_limit - usage,
            percent_used=round(usage / self.daily_limit * 100, 2),
            is_warning=usage >= self.warning_limit,
            is_critical=usage >= self.critical_limit,
        )

    async def reset(self, db: AsyncSession, account_id: str) -> None:
        """Drop today's counter. Operator tool for testing or manual overrides."""
        await db.execute(
            delete(QuotaUsage).where(
                QuotaUsage.account_id == account_id,
                QuotaUsage.date == self.quota_day(),
            )
        )
        await db.commit()
        logger.info(f"Quota reset for account {account_id}")
