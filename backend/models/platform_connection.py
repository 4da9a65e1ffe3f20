"""Platform OAuth connections held on behalf of each account."""

import enum
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import DateTime, Enum, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class Platform(str, enum.Enum):
    """Platforms metrics are ingested from."""
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"


def platform_enum() -> Enum:
    return Enum(
        Platform,
        name="platform",
        values_callable=lambda enum: [e.value for e in enum],
    )


class PlatformConnection(Base):
    """OAuth credential for one account on one platform.

    Only the token manager writes to the token columns. ``expires_at`` is
    null for Instagram long-lived tokens that were stored without an expiry;
    those are treated as non-expiring.
    """

    __tablename__ = "platform_connections"
    __table_args__ = (
        UniqueConstraint("account_id", "platform", name="uq_platform_connections_account_platform"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    platform: Mapped[Platform] = mapped_column(platform_enum(), nullable=False)

    # YouTube channel id or Instagram business user id
    external_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # OAuth tokens
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    scope: Mapped[str | None] = mapped_column(String(500), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def expires_within(self, skew: timedelta, now: datetime | None = None) -> bool:
        """True when the token expires before ``now + skew``.

        A missing expiry counts as expiring for YouTube (the refresh will
        set one) and as non-expiring for Instagram.
        """
        if self.expires_at is None:
            return self.platform == Platform.YOUTUBE
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            # SQLite drops tzinfo; stored values are always UTC
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now + skew

    def __repr__(self) -> str:
        return f"<PlatformConnection {self.platform.value}:{self.account_id} ({self.external_account_id})>"
