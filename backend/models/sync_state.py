"""Per-account sync bookkeeping."""

import enum
from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import Date, DateTime, Enum, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from database import Base
from models.platform_connection import Platform, platform_enum


class SyncStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncState(Base):
    """Outcome of the most recent sync for an (account, platform). Last write wins."""

    __tablename__ = "sync_state"
    __table_args__ = (
        UniqueConstraint("account_id", "platform", name="uq_sync_state_account_platform"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[Platform] = mapped_column(platform_enum(), nullable=False)
    external_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_sync_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, name="sync_status", values_callable=lambda enum: [e.value for e in enum]),
        nullable=False,
        default=SyncStatus.RUNNING,
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    rows_inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<SyncState {self.platform.value}:{self.account_id} {self.status.value}>"
