"""Cross-account sync router - cron entry points and sync status."""

import logging
from datetime import date, datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database import get_db
from middleware.auth import CallerIdentity, get_caller, require_service_role, resolve_account_id
from middleware.rate_limit import limiter
from models.platform_connection import Platform
from models.sync_state import SyncState
from services.channel_sync import SyncOrchestrator, get_orchestrator
from services.snapshot_capture import SnapshotCapture, get_snapshot_capture

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sync", tags=["sync"])
settings = get_settings()


# Request / response schemas
class DailyAllRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    platform: Optional[Platform] = None
    days_ago: Optional[int] = Field(default=None, alias="daysAgo", ge=0)


class SnapshotRequest(BaseModel):
    platform: Optional[Platform] = None


class SyncStateResponse(BaseModel):
    platform: str
    external_account_id: str | None
    status: str
    last_sync_date: date | None
    last_sync_at: datetime | None
    last_error: str | None
    rows_inserted: int


@router.post("/daily-all")
@limiter.limit(settings.trigger_rate_limit)
async def sync_all_accounts(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_service_role)],
    orchestrator: Annotated[SyncOrchestrator, Depends(get_orchestrator)],
    body: Optional[DailyAllRequest] = None,
):
    """Daily sync for every connected account (both platforms unless one is named)."""
    body = body or DailyAllRequest()
    platforms = [body.platform] if body.platform else list(Platform)

    results = []
    for platform in platforms:
        batch = await orchestrator.sync_all_accounts(platform, body.days_ago)
        results.append(batch.to_response())

    return {"success": True, "results": results}


@router.post("/snapshots")
@limiter.limit(settings.trigger_rate_limit)
async def capture_snapshots(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_service_role)],
    capture: Annotated[SnapshotCapture, Depends(get_snapshot_capture)],
    body: Optional[SnapshotRequest] = None,
):
    """Capture intraday counters for every connected account."""
    body = body or SnapshotRequest()
    summary = await capture.capture_all(body.platform)
    return summary.to_response()


@router.get("/status", response_model=list[SyncStateResponse])
async def sync_status(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    db: Annotated[AsyncSession, Depends(get_db)],
    account_id: Annotated[Optional[str], Query(alias="accountId")] = None,
):
    """Latest sync outcome per platform for the account."""
    account_id = resolve_account_id(caller, account_id)
    result = await db.execute(
        select(SyncState).where(SyncState.account_id == account_id).order_by(SyncState.platform)
    )
    return [
        SyncStateResponse(
            platform=state.platform.value,
            external_account_id=state.external_account_id,
            status=state.status.value,
            last_sync_date=state.last_sync_date,
            last_sync_at=state.last_sync_at,
            last_error=state.last_error,
            rows_inserted=state.rows_inserted,
        )
        for state in result.scalars().all()
    ]
