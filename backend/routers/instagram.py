"""Instagram sync router - daily insights and realtime deltas."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
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
router = APIRouter(prefix="/api/instagram", tags=["instagram"])
settings = get_settings()


class DailySyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: Optional[str] = Field(default=None, alias="accountId")
    days_ago: Optional[int] = Field(default=None, alias="daysAgo", ge=0)


@router.post("/sync-daily")
@limiter.limit(settings.trigger_rate_limit)
async def sync_daily(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    db: Annotated[AsyncSession, Depends(get_db)],
    orchestrator: Annotated[SyncOrchestrator, Depends(get_orchestrator)],
    body: Optional[DailySyncRequest] = None,
):
    """Sync yesterday's account insights and the latest media with their insights."""
    body = body or DailySyncRequest()
    account_id = resolve_account_id(caller, body.account_id)
    result = await orchestrator.sync_instagram_daily(db, account_id, body.days_ago)
    return result.to_daily_response()


@router.get("/realtime")
async def realtime(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    db: Annotated[AsyncSession, Depends(get_db)],
    account_id: Annotated[Optional[str], Query(alias="accountId")] = None,
):
    """Follower and engagement deltas from intraday snapshots."""
    account_id = resolve_account_id(caller, account_id)
    return await load_realtime_metrics(db, account_id, Platform.INSTAGRAM)
