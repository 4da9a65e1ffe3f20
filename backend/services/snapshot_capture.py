"""Intraday snapshot capture.

Reads the platforms' live cumulative counters (channel views, subscriber
counts, per-video views, live viewers, Instagram followers, per-media
engagement) and appends them to ``intraday_snapshots``. Deltas are derived
later by the delta engine.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings
from database import async_session
from models.intraday_snapshot import IntradaySnapshot
from models.platform_connection import Platform
from services.api_client import RetryingAPIClient
from services.channel_sync import get_orchestrator
from services.errors import QuotaExceeded, SyncError
from services.instagram_service import fetch_account_info, fetch_recent_media
from services.quota import QUOTA_COSTS, QuotaTracker
from services.token_manager import TokenLifecycleManager, connected_account_ids
from services.youtube_service import (
    fetch_channel_statistics,
    fetch_video_statistics,
    list_upload_videos,
)

logger = logging.getLogger(__name__)
settings = get_settings()

# channels.list + one playlistItems page + one videos.list batch
YOUTUBE_SNAPSHOT_ESTIMATE = (
    QUOTA_COSTS["channels.list"] + QUOTA_COSTS["playlistItems.list"] + QUOTA_COSTS["videos.list"]
)


@dataclass
class CaptureSummary:
    captured_at: datetime
    accounts: int = 0
    rows: int = 0
    skipped: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "success": True,
            "capturedAt": self.captured_at.isoformat(),
            "accountsCaptured": self.accounts,
            "rows": self.rows,
            "skipped": self.skipped,
            "errors": self.failed,
        }


class SnapshotCapture:
    def __init__(
        self,
        tokens: TokenLifecycleManager | None = None,
        quota: QuotaTracker | None = None,
        client: RetryingAPIClient | None = None,
        inter_account_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        session_factory: async_sessionmaker = async_session,
    ):
        self.tokens = tokens or TokenLifecycleManager()
        self.quota = quota or QuotaTracker()
        self.client = client or RetryingAPIClient()
        self.inter_account_delay = (
            settings.inter_account_delay_seconds if inter_account_delay is None else inter_account_delay
        )
        self._sleep = sleep
        self.session_factory = session_factory

    async def capture_youtube(
        self, db: AsyncSession, account_id: str, captured_at: Optional[datetime] = None
    ) -> int:
        """Channel counters plus recent uploads. Returns rows written.

        Raises QuotaExceeded without calling the API when the account is
        already at its critical quota level.
        """
        captured_at = captured_at or datetime.now(timezone.utc)
        credential = await self.tokens.get_valid_token(db, account_id, Platform.YOUTUBE)
        check = await self.quota.can_proceed(db, account_id, YOUTUBE_SNAPSHOT_ESTIMATE)
        if not check.allowed:
            raise QuotaExceeded(account_id, check.current_usage, self.quota.daily_limit)

        channel_id = credential.platform_account_id
        units = 0
        try:
            channel = await fetch_channel_statistics(self.client, credential.token, channel_id)
            units += QUOTA_COSTS["channels.list"]

            recent: list[dict] = []
            if channel["uploads_playlist_id"]:
                uploads, pages = await list_upload_videos(
                    self.client, credential.token, channel["uploads_playlist_id"], max_pages=1
                )
                units += pages * QUOTA_COSTS["playlistItems.list"]
                cutoff = captured_at - timedelta(hours=settings.snapshot_recent_video_hours)
                recent = [
                    v for v in uploads
                    if v["published_at"] is not None and v["published_at"] >= cutoff
                ][:settings.snapshot_max_videos]

            video_stats: list[dict] = []
            if recent:
                video_stats, calls = await fetch_video_statistics(
                    self.client, credential.token, [v["video_id"] for v in recent]
                )
                units += calls * QUOTA_COSTS["videos.list"]
        finally:
            if units:
                await self.quota.track_usage(db, account_id, units)

        snapshots = [
            IntradaySnapshot(
                account_id=account_id,
                platform=Platform.YOUTUBE,
                external_account_id=channel_id,
                entity_type="channel",
                entity_id=None,
                captured_at=captured_at,
                view_count=channel["view_count"],
                follower_count=channel["subscriber_count"],
                video_count=channel["video_count"],
            )
        ]
        for video in video_stats:
            snapshots.append(IntradaySnapshot(
                account_id=account_id,
                platform=Platform.YOUTUBE,
                external_account_id=channel_id,
                entity_type="video",
                entity_id=video["video_id"],
                captured_at=captured_at,
                view_count=video["view_count"],
                like_count=video["like_count"],
                comment_count=video["comment_count"],
                concurrent_viewers=video["concurrent_viewers"],
                is_live=video["is_live"],
            ))

        db.add_all(snapshots)
        await db.commit()
        logger.info(f"Captured {len(snapshots)} YouTube snapshots for account {account_id} ({units} units)")
        return len(snapshots)

    async def capture_instagram(
        self, db: AsyncSession, account_id: str, captured_at: Optional[datetime] = None
    ) -> int:
        """Account counters plus the latest media. Returns rows written."""
        captured_at = captured_at or datetime.now(timezone.utc)
        credential = await self.tokens.get_valid_token(db, account_id, Platform.INSTAGRAM)
        ig_user_id = credential.platform_account_id

        info = await fetch_account_info(self.client, credential.token, ig_user_id)
        media = await fetch_recent_media(
            self.client, credential.token, ig_user_id, limit=settings.snapshot_instagram_media_limit
        )

        snapshots = [
            IntradaySnapshot(
                account_id=account_id,
                platform=Platform.INSTAGRAM,
                external_account_id=ig_user_id,
                entity_type="account",
                entity_id=None,
                captured_at=captured_at,
                follower_count=info["follower_count"],
                following_count=info["following_count"],
                media_count=info["media_count"],
            )
        ]
        for item in media:
            snapshots.append(IntradaySnapshot(
                account_id=account_id,
                platform=Platform.INSTAGRAM,
                external_account_id=ig_user_id,
                entity_type="media",
                entity_id=item["media_id"],
                captured_at=captured_at,
                like_count=item["like_count"],
                comment_count=item["comment_count"],
            ))

        db.add_all(snapshots)
        await db.commit()
        logger.info(f"Captured {len(snapshots)} Instagram snapshots for account {account_id}")
        return len(snapshots)

    async def capture_all(
        self,
        platform: Optional[Platform] = None,
    ) -> CaptureSummary:
        """Snapshot every connected account; one account's failure never stops the run.

        All rows written by one run share the same ``captured_at``.
        """
        summary = CaptureSummary(captured_at=datetime.now(timezone.utc))
        platforms = [platform] if platform else list(Platform)
        capture = {
            Platform.YOUTUBE: self.capture_youtube,
            Platform.INSTAGRAM: self.capture_instagram,
        }

        first = True
        for current in platforms:
            async with self.session_factory() as db:
                account_ids = await connected_account_ids(db, current)

            for account_id in account_ids:
                if not first and self.inter_account_delay > 0:
                    await self._sleep(self.inter_account_delay)
                first = False
                async with self.session_factory() as db:
                    try:
                        summary.rows += await capture[current](db, account_id, summary.captured_at)
                        summary.accounts += 1
                    except QuotaExceeded as e:
                        logger.warning(f"Skipping {current.value} snapshot for account {account_id}: {e.message}")
                        summary.skipped.append({"accountId": account_id, "platform": current.value, "reason": e.message})
                    except SyncError as e:
                        logger.error(f"{current.value} snapshot failed for account {account_id}: {e.message}")
                        summary.failed.append({"accountId": account_id, "platform": current.value, "error": e.message})
                    except Exception as e:
                        logger.exception(f"Unexpected error capturing {current.value} snapshot for {account_id}")
                        summary.failed.append({
                            "accountId": account_id,
                            "platform": current.value,
                            "error": f"{type(e).__name__}: {e}",
                        })

        logger.info(
            f"Snapshot run at {summary.captured_at.isoformat()}: {summary.accounts} accounts, "
            f"{summary.rows} rows, {len(summary.failed)} failed"
        )
        return summary


_capture: Optional[SnapshotCapture] = None


def get_snapshot_capture() -> SnapshotCapture:
    """Shares the orchestrator's token manager, quota tracker and HTTP client."""
    global _capture
    if _capture is None:
        orchestrator = get_orchestrator()
        _capture = SnapshotCapture(orchestrator.tokens, orchestrator.quota, orchestrator.client)
    return _capture
