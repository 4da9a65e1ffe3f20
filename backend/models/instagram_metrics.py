"""Instagram account and media time series."""

from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class InstagramAccountDaily(Base):
    """Daily account insights (period=day), upserted on (account, ig user, day)."""

    __tablename__ = "instagram_account_daily"
    __table_args__ = (
        UniqueConstraint("account_id", "ig_user_id", "day", name="uq_instagram_account_daily_key"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    ig_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)

    impressions: Mapped[int] = mapped_column(Integer, default=0)
    reach: Mapped[int] = mapped_column(Integer, default=0)
    profile_views: Mapped[int] = mapped_column(Integer, default=0)
    website_clicks: Mapped[int] = mapped_column(Integer, default=0)
    email_contacts: Mapped[int] = mapped_column(Integer, default=0)
    phone_call_clicks: Mapped[int] = mapped_column(Integer, default=0)
    text_message_clicks: Mapped[int] = mapped_column(Integer, default=0)
    get_directions_clicks: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<InstagramAccountDaily {self.ig_user_id} {self.day}: reach={self.reach}>"


class InstagramMedia(Base):
    """Media metadata, one row per post or reel."""

    __tablename__ = "instagram_media"
    __table_args__ = (
        UniqueConstraint("account_id", "media_id", name="uq_instagram_media_key"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    ig_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    media_id: Mapped[str] = mapped_column(String(64), nullable=False)
    media_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    permalink: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class InstagramMediaDaily(Base):
    """Lifetime counters and insights of one media item as of a reporting day."""

    __tablename__ = "instagram_media_daily"
    __table_args__ = (
        UniqueConstraint("account_id", "media_id", "day", name="uq_instagram_media_daily_key"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    ig_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    media_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)

    like_count: Mapped[int] = mapped_column(Integer, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, default=0)
    engagement: Mapped[int] = mapped_column(Integer, default=0)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    reach: Mapped[int] = mapped_column(Integer, default=0)
    saved: Mapped[int] = mapped_column(Integer, default=0)
    video_views: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<InstagramMediaDaily {self.media_id} {self.day}: reach={self.reach}>"
