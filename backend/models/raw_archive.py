"""RawArchive model - verbatim upstream request/response pairs."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from database import Base
from models.platform_connection import Platform, platform_enum

JSONType = JSON().with_variant(JSONB(), "postgresql")


class RawArchive(Base):
    """Append-only audit of every upstream report call.

    Failed calls are stored with ``report_type`` suffixed ``_error`` and
    ``{"error": message}`` as the response.
    """

    __tablename__ = "raw_archive"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    platform: Mapped[Platform] = mapped_column(platform_enum(), nullable=False)
    external_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    report_type: Mapped[str] = mapped_column(String(100), nullable=False)
    request_json: Mapped[dict] = mapped_column(JSONType, nullable=False)
    response_json: Mapped[dict] = mapped_column(JSONType, nullable=False)
    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<RawArchive {self.platform.value}.{self.report_type} @ {self.captured_at}>"
