"""YouTube sync router - backfill, daily sync, realtime deltas and quota.

Users act on their own account; the service role may name any account.
"""

import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database import get_db
from middleware.auth import CallerIdentity, get_caller, resolve_account_id
from middleware.rate_limit import limiter
from models.platform_connection import Platform
from services.channel_sync import SyncOrchestrator, get_orchestrator
from services.delta_engine import load_realtime_metrics

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/youtube", tags=["youtube"])
settings = get_settings()


# Request schemas
class BackfillRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_date: Optional[date] = Field(default=None, alias="fromDate")
    to_date: Optional[date] = Field(default=None, alias="toDate")
    account_id: Optional[str] = Field(default=None, alias="accountId")


class DailySyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: Optional[str] = Field(default=None, alias="accountId")
    days_ago: Optional[int] = Field(default=None, alias="daysAgo", ge=0)


@router.post("/backfill")
@limiter.limit(settings.trigger_rate_limit)
async def backfill(
    request: Request,  # Required for rate limiting - must be named 'request'
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    db: Annotated[AsyncSession, Depends(get_db)],
    orchestrator: Annotated[SyncOrchestrator, Depends(get_orchestrator)],
    body: Optional[BackfillRequest] = None,
):
    """Load historical analytics month by month.

    Failed chunks are reported in the response; the rest of the range is
    still loaded.
    """
    body = body or BackfillRequest()
    account_id = resolve_account_id(caller, body.account_id)
    try:
        result = await orchestrator.backfill_youtube(db, account_id, body.from_date, body.to_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return result.to_backfill_response()


@router.post("/sync-daily")
@limiter.limit(settings.trigger_rate_limit)
async def sync_daily(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    db: Annotated[AsyncSession, Depends(get_db)],
    orchestrator: Annotated[SyncOrchestrator, Depends(get_orchestrator)],
    body: Optional[DailySyncRequest] = None,
):
    """Sync one day of channel and top-video analytics (3 days ago by default)."""
    body = body or DailySyncRequest()
    account_id = resolve_account_id(caller, body.account_id)
    result = await orchestrator.sync_youtube_daily(db, account_id, body.days_ago)
    return result.to_daily_response()


@router.get("/realtime")
async def realtime(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    db: Annotated[AsyncSession, Depends(get_db)],
    account_id: Annotated[Optional[str], Query(alias="accountId")] = None,
):
    """Views, likes and subscribers gained today, in the last hour and in the last 48 hours."""
    account_id = resolve_account_id(caller, account_id)
    return await load_realtime_metrics(db, account_id, Platform.YOUTUBE)


@router.get("/quota")
async def quota_status(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    db: Annotated[AsyncSession, Depends(get_db)],
    orchestrator: Annotated[SyncOrchestrator, Depends(get_orchestrator)],
    account_id: Annotated[Optional[str], Query(alias="accountId")] = None,
):
    """Today's Data API quota usage for the account."""
    account_id = resolve_account_id(caller, account_id)
    stats = await orchestrator.quota.get_stats(db, account_id)
    return stats.to_response()
