"""Daily YouTube API quota usage per account."""

from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import Date, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class QuotaUsage(Base):
    """Units consumed by one account on one (Pacific) day.

    ``units_used`` is only ever changed by a single atomic
    insert-or-increment statement.
    """

    __tablename__ = "api_quota_usage"
    __table_args__ = (
        UniqueConstraint("account_id", "date", name="uq_api_quota_usage_account_date"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    units_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    units_available: Mapped[int] = mapped_column(Integer, nullable=False, default=10000)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<QuotaUsage {self.account_id} {self.date}: {self.units_used}/{self.units_available}>"
