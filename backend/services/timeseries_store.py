"""Idempotent writes: natural-key upserts, raw archive inserts, sync state.

Upserts go through the dialect's ``INSERT ... ON CONFLICT DO UPDATE`` so
PostgreSQL in production and SQLite under test share one code path.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.platform_connection import Platform
from models.raw_archive import RawArchive
from models.sync_state import SyncState, SyncStatus
from services.errors import APIError, PersistenceError, SyncError

logger = logging.getLogger(__name__)

# Keeps multi-row statements under SQLite's bound-parameter limit
UPSERT_BATCH_SIZE = 200

_UNSET: Any = object()


def dialect_insert(db: AsyncSession, model):
    """``insert()`` construct for the session's dialect, supporting ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


async def upsert_rows(
    db: AsyncSession,
    model,
    rows: list[dict],
    conflict_keys: tuple[str, ...],
) -> int:
    """Insert rows or overwrite the existing row with the same natural key.

    Commits on success. Database failures are rolled back and raised as
    PersistenceError. Returns the number of rows written.
    """
    if not rows:
        return 0

    has_updated_at = "updated_at" in model.__table__.c
    try:
        for start in range(0, len(rows), UPSERT_BATCH_SIZE):
            batch = [{"id": str(uuid4()), **row} for row in rows[start:start + UPSERT_BATCH_SIZE]]
            stmt = dialect_insert(db, model).values(batch)
            set_ = {
                column: stmt.excluded[column]
                for column in batch[0]
                if column not in conflict_keys and column != "id"
            }
            if has_updated_at:
                set_["updated_at"] = datetime.now(timezone.utc)
            stmt = stmt.on_conflict_do_update(index_elements=list(conflict_keys), set_=set_)
            await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Upsert into {model.__tablename__} failed: {e}")
        raise PersistenceError(f"Failed to upsert {len(rows)} rows into {model.__tablename__}: {e}") from e

    return len(rows)


async def archive_raw(
    db: AsyncSession,
    account_id: str,
    platform: Platform,
    external_account_id: str,
    report_type: str,
    request_json: dict,
    response_json: Any,
) -> RawArchive:
    """Store an upstream request/response pair and commit immediately."""
    record = RawArchive(
        account_id=account_id,
        platform=platform,
        external_account_id=external_account_id,
        report_type=report_type,
        request_json=request_json,
        response_json=response_json,
    )
    try:
        db.add(record)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Archiving {report_type} response failed: {e}")
        raise PersistenceError(f"Failed to archive {report_type} response: {e}") from e
    return record


def failure_body(error: SyncError) -> dict:
    """Archived response for a failed call; API failures keep the upstream body."""
    body: dict[str, Any] = {"error": error.message}
    if isinstance(error, APIError):
        body["status"] = error.status_code
        body["body"] = error.body
    return body


async def upsert_sync_state(
    db: AsyncSession,
    account_id: str,
    platform: Platform,
    status: SyncStatus,
    external_account_id: str | None = None,
    last_sync_date: date | None = _UNSET,
    last_error: str | None = None,
    rows_inserted: int = _UNSET,
) -> None:
    """Record the latest sync outcome for (account, platform). Last write wins.

    ``last_sync_date`` and ``rows_inserted`` keep their stored values unless
    passed, so a failed run does not move the sync cursor.
    """
    now = datetime.now(timezone.utc)
    values: dict[str, Any] = {
        "account_id": account_id,
        "platform": platform,
        "status": status,
        "last_error": last_error,
        "last_sync_at": now,
        "updated_at": now,
    }
    if external_account_id is not None:
        values["external_account_id"] = external_account_id
    if last_sync_date is not _UNSET:
        values["last_sync_date"] = last_sync_date
    if rows_inserted is not _UNSET:
        values["rows_inserted"] = rows_inserted

    stmt = dialect_insert(db, SyncState).values(id=str(uuid4()), **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["account_id", "platform"],
        set_={key: stmt.excluded[key] for key in values if key not in ("account_id", "platform")},
    )
    try:
        await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"Failed to record {platform.value} sync state: {e}") from e
