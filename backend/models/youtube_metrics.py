"""YouTube Analytics time series.

Rows are upserted on their natural key and never deleted, so re-running a
sync for the same days converges on the same table contents.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import BigInteger, Date, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class YouTubeChannelDaily(Base):
    __tablename__ = "yt_channel_daily"
    __table_args__ = (
        UniqueConstraint("account_id", "channel_id", "day", name="uq_yt_channel_daily_key"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)

    views: Mapped[int] = mapped_column(BigInteger, default=0)
    watch_time_seconds: Mapped[int] = mapped_column(BigInteger, default=0)
    subscribers_gained: Mapped[int] = mapped_column(Integer, default=0)
    subscribers_lost: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<YouTubeChannelDaily {self.channel_id} {self.day}: {self.views} views>"


class YouTubeVideoDaily(Base):
    __tablename__ = "yt_video_daily"
    __table_args__ = (
        UniqueConstraint("account_id", "video_id", "day", name="uq_yt_video_daily_key"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    video_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)

    views: Mapped[int] = mapped_column(BigInteger, default=0)
    watch_time_seconds: Mapped[int] = mapped_column(BigInteger, default=0)
    avg_view_duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    subscribers_gained: Mapped[int] = mapped_column(Integer, default=0)
    subscribers_lost: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<YouTubeVideoDaily {self.video_id} {self.day}: {self.views} views>"


class YouTubeRevenueDaily(Base):
    """Monetization metrics; only populated for channels in the Partner Program."""

    __tablename__ = "yt_revenue_daily"
    __table_args__ = (
        UniqueConstraint("account_id", "channel_id", "day", name="uq_yt_revenue_daily_key"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)

    estimated_revenue: Mapped[float] = mapped_column(Float, default=0)
    estimated_ad_revenue: Mapped[float] = mapped_column(Float, default=0)
    gross_revenue: Mapped[float] = mapped_column(Float, default=0)
    monetized_playbacks: Mapped[int] = mapped_column(BigInteger, default=0)
    playback_based_cpm: Mapped[float] = mapped_column(Float, default=0)
    ad_impressions: Mapped[int] = mapped_column(BigInteger, default=0)
    cpm: Mapped[float] = mapped_column(Float, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )


class YouTubeDemographics(Base):
    """Viewer share by age group and gender over a (quarter) date range."""

    __tablename__ = "yt_demographics"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "channel_id", "date_start", "date_end", "age_group", "gender",
            name="uq_yt_demographics_key",
        ),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    date_start: Mapped[date] = mapped_column(Date, nullable=False)
    date_end: Mapped[date] = mapped_column(Date, nullable=False)
    age_group: Mapped[str] = mapped_column(String(32), nullable=False)
    gender: Mapped[str] = mapped_column(String(32), nullable=False)
    viewer_percentage: Mapped[float] = mapped_column(Float, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )


class YouTubeGeography(Base):
    """Views by country, plus US states, over a (quarter) date range.

    Country-level rows carry an empty ``province``; ``country`` is ``US`` for
    the state breakdown.
    """

    __tablename__ = "yt_geography"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "channel_id", "date_start", "date_end", "country", "province",
            name="uq_yt_geography_key",
        ),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    date_start: Mapped[date] = mapped_column(Date, nullable=False)
    date_end: Mapped[date] = mapped_column(Date, nullable=False)
    country: Mapped[str] = mapped_column(String(8), nullable=False)
    province: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    views: Mapped[int] = mapped_column(BigInteger, default=0)
    watch_time_seconds: Mapped[int] = mapped_column(BigInteger, default=0)
    avg_view_duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    subscribers_gained: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )


class YouTubeDeviceStats(Base):
    """Views by device type or by operating system over a (quarter) date range.

    Each row is broken down by exactly one of the two; the other column is empty.
    """

    __tablename__ = "yt_device_stats"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "channel_id", "date_start", "date_end", "device_type", "operating_system",
            name="uq_yt_device_stats_key",
        ),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    date_start: Mapped[date] = mapped_column(Date, nullable=False)
    date_end: Mapped[date] = mapped_column(Date, nullable=False)
    device_type: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    operating_system: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    views: Mapped[int] = mapped_column(BigInteger, default=0)
    watch_time_seconds: Mapped[int] = mapped_column(BigInteger, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )
