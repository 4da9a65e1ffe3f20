"""Sync orchestrator: backfills and daily incremental syncs per account.

Every report chunk runs the same sequence: valid token, quota check, API
call, raw archive, header-keyed row mapping, natural-key upsert, quota
accounting. Backfill chunk failures are recorded and skipped; quota
exhaustion stops the run. Daily syncs treat any failure as account-level.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings
from database import async_session
from models.instagram_metrics import InstagramAccountDaily, InstagramMedia, InstagramMediaDaily
from models.platform_connection import Platform
from models.sync_state import SyncStatus
from services.api_client import RetryingAPIClient
from services.errors import (
    APIError,
    NoConnection,
    PermanentAPIError,
    PersistenceError,
    QuotaExceeded,
    SyncError,
    TransientAPIError,
)
from services.instagram_service import (
    MEDIA_VIDEO_METRICS,
    fetch_account_info,
    fetch_account_insights,
    fetch_media_insights,
    fetch_recent_media,
    insight_values,
    media_insight_metrics,
)
from services.quota import QUOTA_COSTS, QuotaTracker
from services.range_chunker import DateRange, chunk_date_range, parse_day
from services.reports import (
    BACKFILL_REPORTS,
    INCREMENTAL_REPORTS,
    ReportDefinition,
    RowContext,
    single_day,
)
from services.timeseries_store import archive_raw, failure_body, upsert_rows, upsert_sync_state
from services.token_manager import TokenLifecycleManager, ValidToken, connected_account_ids
from services.youtube_service import (
    ReportQuery,
    fetch_channel_statistics,
    list_upload_videos,
    query_analytics,
    report_rows,
)

logger = logging.getLogger(__name__)
settings = get_settings()


def _platform_today(tz: str) -> date:
    return datetime.now(ZoneInfo(tz)).date()


def _error_text(error: Exception) -> str:
    return error.message if isinstance(error, SyncError) else f"{type(error).__name__}: {error}"


class ArchivingClient:
    """Stands in for RetryingAPIClient and archives every call it makes.

    Successful responses land in RawArchive under ``report_type``; failures
    under ``<report_type>_error`` with the upstream body, then re-raise.
    """

    def __init__(
        self,
        client: RetryingAPIClient,
        db: AsyncSession,
        account_id: str,
        platform: Platform,
        external_account_id: str,
        report_type: str,
    ):
        self.client = client
        self.db = db
        self.account_id = account_id
        self.platform = platform
        self.external_account_id = external_account_id
        self.report_type = report_type

    async def call(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        token: str | None = None,
        method: str = "GET",
    ) -> dict[str, Any]:
        request_json = {"url": url, "params": params or {}}
        try:
            response = await self.client.call(url, params, token, method)
        except APIError as e:
            await archive_raw(
                self.db, self.account_id, self.platform, self.external_account_id,
                f"{self.report_type}_error", request_json, failure_body(e),
            )
            raise
        await archive_raw(
            self.db, self.account_id, self.platform, self.external_account_id,
            self.report_type, request_json, response,
        )
        return response


@dataclass
class ChunkFailure:
    report_type: str
    start: date
    end: date
    error: str

    def to_response(self) -> dict:
        return {
            "reportType": self.report_type,
            "startDate": self.start.isoformat(),
            "endDate": self.end.isoformat(),
            "error": self.error,
        }


@dataclass
class SyncResult:
    account_id: str
    platform: Platform
    external_account_id: Optional[str] = None
    date: Optional[date] = None
    rows: dict[str, int] = field(default_factory=dict)
    chunks_processed: int = 0
    failed_chunks: list[ChunkFailure] = field(default_factory=list)
    salvaged_chunks: list[ChunkFailure] = field(default_factory=list)
    quota_exhausted: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(self.rows.values())

    def add_rows(self, report_type: str, count: int) -> None:
        self.rows[report_type] = self.rows.get(report_type, 0) + count

    def to_backfill_response(self) -> dict:
        return {
            "success": True,
            "channelRows": self.rows.get("daily_channel", 0),
            "videoRows": self.rows.get("daily_video", 0),
            "revenueRows": self.rows.get("daily_revenue", 0),
            "demographicRows": self.rows.get("demographics", 0),
            "geographyRows": (
                self.rows.get("geography_country", 0) + self.rows.get("geography_us_state", 0)
            ),
            "deviceRows": self.rows.get("device_type", 0) + self.rows.get("operating_system", 0),
            "chunksProcessed": self.chunks_processed,
            "failedChunks": [failure.to_response() for failure in self.failed_chunks],
            "salvagedChunks": [salvaged.to_response() for salvaged in self.salvaged_chunks],
            "quotaExhausted": self.quota_exhausted,
        }

    def to_daily_response(self) -> dict:
        response = {
            "success": True,
            "date": self.date.isoformat() if self.date else None,
        }
        if self.platform == Platform.YOUTUBE:
            response["channelRows"] = self.rows.get("daily_channel", 0)
            response["videoRows"] = self.rows.get("daily_video_top", 0)
        response.update(self.extra)
        return response


@dataclass
class AccountFailure:
    account_id: str
    error: str


@dataclass
class BatchResult:
    platform: Platform
    date: date
    synced: list[str] = field(default_factory=list)
    failed: list[AccountFailure] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "success": True,
            "platform": self.platform.value,
            "date": self.date.isoformat(),
            "usersSynced": len(self.synced),
            "usersFailed": len(self.failed),
            "errors": [{"accountId": f.account_id, "error": f.error} for f in self.failed],
        }


class SyncOrchestrator:
    """Drives the sync modes for one account at a time.

    ``inter_call_delay`` spaces consecutive upstream calls for one account;
    ``inter_account_delay`` spaces accounts in the all-accounts loop.
    """

    def __init__(
        self,
        tokens: TokenLifecycleManager | None = None,
        quota: QuotaTracker | None = None,
        client: RetryingAPIClient | None = None,
        inter_call_delay: float | None = None,
        inter_account_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        today: Callable[[str], date] = _platform_today,
        session_factory: async_sessionmaker = async_session,
    ):
        self.tokens = tokens or TokenLifecycleManager()
        self.quota = quota or QuotaTracker()
        self.client = client or RetryingAPIClient()
        self.inter_call_delay = (
            settings.inter_call_delay_seconds if inter_call_delay is None else inter_call_delay
        )
        self.inter_account_delay = (
            settings.inter_account_delay_seconds if inter_account_delay is None else inter_account_delay
        )
        self._sleep = sleep
        self._today = today
        self.session_factory = session_factory

    async def close(self) -> None:
        await self.client.close()
        await self.tokens.close()

    def reporting_day(self, platform: Platform, days_ago: int) -> date:
        return self._today(settings.platform_timezone(platform.value)) - timedelta(days=days_ago)

    async def _pause(self) -> None:
        if self.inter_call_delay > 0:
            await self._sleep(self.inter_call_delay)

    # ============== Quota-aware calls ==============

    async def _ensure_quota(self, db: AsyncSession, account_id: str, units: int) -> None:
        check = await self.quota.can_proceed(db, account_id, units)
        if not check.allowed:
            raise QuotaExceeded(account_id, check.current_usage, self.quota.daily_limit)

    async def _charge(self, db: AsyncSession, account_id: str, units: int) -> None:
        """Record spent units; reaching the critical level stops the run."""
        within_budget = await self.quota.track_usage(db, account_id, units)
        if not within_budget:
            usage = (await self.quota.can_proceed(db, account_id)).current_usage
            raise QuotaExceeded(account_id, usage, self.quota.daily_limit)

    async def _archive_failure(
        self,
        db: AsyncSession,
        account_id: str,
        platform: Platform,
        external_account_id: str,
        report_type: str,
        request_json: dict,
        error: SyncError,
    ) -> None:
        await archive_raw(
            db, account_id, platform, external_account_id,
            f"{report_type}_error", request_json, failure_body(error),
        )

    def _archiving(
        self,
        db: AsyncSession,
        account_id: str,
        platform: Platform,
        external_account_id: str,
        report_type: str,
    ) -> ArchivingClient:
        return ArchivingClient(self.client, db, account_id, platform, external_account_id, report_type)

    # ============== YouTube report chunks ==============

    async def _run_report_chunk(
        self,
        db: AsyncSession,
        account_id: str,
        report: ReportDefinition,
        chunk: DateRange,
        result: SyncResult,
        filters: Optional[str] = None,
    ) -> int:
        """One Analytics call for ``chunk``, archived and upserted. Returns rows written.

        When the full metric set fails with a server error and the report
        declares a fallback set, the chunk is retried once with it.
        """
        cost = QUOTA_COSTS["reports.query"]
        credential = await self.tokens.get_valid_token(db, account_id, Platform.YOUTUBE)
        await self._ensure_quota(db, account_id, cost)

        query = ReportQuery(
            channel_id=credential.platform_account_id,
            start_date=chunk.start,
            end_date=chunk.end,
            metrics=report.metrics,
            dimensions=report.dimensions,
            filters=filters or report.filters,
            sort=report.sort,
            max_results=report.max_results,
        )
        try:
            response = await query_analytics(self.client, credential.token, query)
        except TransientAPIError as e:
            if not report.fallback_metrics:
                raise
            logger.warning(
                f"{report.report_type} {chunk} failed ({e.message}); retrying with minimal metrics"
            )
            await self._archive_failure(
                db, account_id, Platform.YOUTUBE, credential.platform_account_id,
                report.report_type, query.to_request_json(), e,
            )
            query = replace(query, metrics=report.fallback_metrics)
            response = await query_analytics(self.client, credential.token, query)
            result.salvaged_chunks.append(ChunkFailure(report.report_type, chunk.start, chunk.end, e.message))

        await archive_raw(
            db, account_id, Platform.YOUTUBE, credential.platform_account_id,
            report.report_type, query.to_request_json(), response,
        )

        ctx = RowContext(account_id, credential.platform_account_id, chunk)
        try:
            rows = [report.map_row(row, ctx) for row in report_rows(response)]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not map {report.report_type} rows for {chunk}: {e!r}") from e

        written = await upsert_rows(db, report.model, rows, report.conflict_keys)
        result.add_rows(report.report_type, written)
        result.chunks_processed += 1
        await self._charge(db, account_id, cost)
        return written

    async def _upload_video_ids(
        self, db: AsyncSession, account_id: str, channel_id: str
    ) -> list[dict]:
        """Every video on the channel, via its uploads playlist."""
        credential = await self.tokens.get_valid_token(db, account_id, Platform.YOUTUBE)
        await self._ensure_quota(db, account_id, QUOTA_COSTS["channels.list"] + QUOTA_COSTS["playlistItems.list"])

        channel = await fetch_channel_statistics(
            self._archiving(db, account_id, Platform.YOUTUBE, channel_id, "channel_statistics"),
            credential.token,
            channel_id,
        )
        await self._charge(db, account_id, QUOTA_COSTS["channels.list"])
        if not channel["uploads_playlist_id"]:
            return []

        videos, pages = await list_upload_videos(
            self._archiving(db, account_id, Platform.YOUTUBE, channel_id, "upload_playlist"),
            credential.token,
            channel["uploads_playlist_id"],
        )
        await self._charge(db, account_id, pages * QUOTA_COSTS["playlistItems.list"])
        return videos

    async def _backfill_report(
        self,
        db: AsyncSession,
        account_id: str,
        channel_id: str,
        report: ReportDefinition,
        start: date,
        end: date,
        result: SyncResult,
    ) -> None:
        chunks = chunk_date_range(start, end, report.granularity)

        if report.per_video:
            try:
                videos = await self._upload_video_ids(db, account_id, channel_id)
            except APIError as e:
                logger.error(f"Could not list uploads for {channel_id}: {e.message}")
                result.failed_chunks.append(ChunkFailure(report.report_type, start, end, e.message))
                return
            work = []
            for chunk in chunks:
                # Skip videos published after the chunk ends
                ids = [
                    v["video_id"] for v in videos
                    if v["published_at"] is None or v["published_at"].date() <= chunk.end
                ]
                for i in range(0, len(ids), settings.video_filter_batch_size):
                    batch = ids[i:i + settings.video_filter_batch_size]
                    work.append((chunk, f"video=={','.join(batch)}"))
        else:
            work = [(chunk, report.filters) for chunk in chunks]

        for chunk, filters in work:
            try:
                await self._run_report_chunk(db, account_id, report, chunk, result, filters)
            except PermanentAPIError as e:
                await self._record_chunk_failure(db, account_id, channel_id, report, chunk, filters, e, result)
                if report.optional:
                    logger.info(f"{report.report_type} unavailable for {channel_id}; skipping remaining chunks")
                    return
            except (APIError, PersistenceError) as e:
                await self._record_chunk_failure(db, account_id, channel_id, report, chunk, filters, e, result)
            await self._pause()

    async def _record_chunk_failure(
        self,
        db: AsyncSession,
        account_id: str,
        channel_id: str,
        report: ReportDefinition,
        chunk: DateRange,
        filters: Optional[str],
        error: SyncError,
        result: SyncResult,
    ) -> None:
        logger.error(f"{report.report_type} chunk {chunk} failed for account {account_id}: {error.message}")
        query = ReportQuery(channel_id, chunk.start, chunk.end, report.metrics, report.dimensions, filters)
        await self._archive_failure(
            db, account_id, Platform.YOUTUBE, channel_id,
            report.report_type, query.to_request_json(), error,
        )
        result.failed_chunks.append(ChunkFailure(report.report_type, chunk.start, chunk.end, error.message))

    async def backfill_youtube(
        self,
        db: AsyncSession,
        account_id: str,
        from_date: date | str | None = None,
        to_date: date | str | None = None,
        reports: Iterable[ReportDefinition] = BACKFILL_REPORTS,
    ) -> SyncResult:
        """Load history from ``from_date`` (never before the API minimum) through ``to_date``.

        Failed chunks are recorded in the result and the backfill continues.
        Quota exhaustion ends the run early with ``quota_exhausted`` set.
        """
        min_date = parse_day(settings.backfill_min_date)
        start = max(parse_day(from_date), min_date) if from_date else min_date
        end = parse_day(to_date) if to_date else self._today(settings.platform_timezone("youtube"))
        if start > end:
            raise ValueError(f"fromDate {start} is after toDate {end}")

        credential = await self.tokens.get_valid_token(db, account_id, Platform.YOUTUBE)
        channel_id = credential.platform_account_id
        result = SyncResult(account_id, Platform.YOUTUBE, channel_id, end)
        logger.info(f"Starting YouTube backfill for account {account_id} ({start} to {end})")
        await upsert_sync_state(db, account_id, Platform.YOUTUBE, SyncStatus.RUNNING, channel_id)

        try:
            for report in reports:
                await self._backfill_report(db, account_id, channel_id, report, start, end, result)
        except QuotaExceeded as e:
            result.quota_exhausted = True
            logger.warning(f"Backfill stopped for account {account_id}: {e.message}")
            await upsert_sync_state(
                db, account_id, Platform.YOUTUBE, SyncStatus.FAILED, channel_id,
                last_error=e.message, rows_inserted=result.total_rows,
            )
            return result
        except Exception as e:
            await db.rollback()
            message = _error_text(e)
            logger.error(f"Backfill failed for account {account_id}: {message}")
            await upsert_sync_state(
                db, account_id, Platform.YOUTUBE, SyncStatus.FAILED, channel_id,
                last_error=message, rows_inserted=result.total_rows,
            )
            raise

        await upsert_sync_state(
            db, account_id, Platform.YOUTUBE, SyncStatus.COMPLETED, channel_id,
            last_sync_date=end, rows_inserted=result.total_rows,
        )
        logger.info(
            f"YouTube backfill done for account {account_id}: {result.total_rows} rows, "
            f"{result.chunks_processed} chunks, {len(result.failed_chunks)} failed"
        )
        return result

    # ============== Daily incremental ==============

    async def _run_daily(
        self,
        db: AsyncSession,
        account_id: str,
        platform: Platform,
        day: date,
        sync: Callable[[SyncResult, ValidToken], Awaitable[None]],
    ) -> SyncResult:
        """Run ``sync`` with account-level failure handling and sync state bookkeeping.

        Accounts without a connection are reported but leave no sync state.
        """
        result = SyncResult(account_id, platform, date=day)

        try:
            credential = await self.tokens.get_valid_token(db, account_id, platform)
            result.external_account_id = credential.platform_account_id
            await upsert_sync_state(db, account_id, platform, SyncStatus.RUNNING, credential.platform_account_id)
            await sync(result, credential)
        except NoConnection:
            raise
        except Exception as e:
            await db.rollback()
            message = _error_text(e)
            if isinstance(e, QuotaExceeded):
                logger.warning(f"{platform.value} daily sync stopped for account {account_id}: {message}")
            else:
                logger.error(f"{platform.value} daily sync failed for account {account_id}: {message}")
            await upsert_sync_state(
                db, account_id, platform, SyncStatus.FAILED, result.external_account_id,
                last_error=message,
            )
            raise

        await upsert_sync_state(
            db, account_id, platform, SyncStatus.COMPLETED, result.external_account_id,
            last_sync_date=day, rows_inserted=result.total_rows,
        )
        logger.info(f"{platform.value} daily sync for account {account_id} on {day}: {result.total_rows} rows")
        return result

    async def sync_youtube_daily(
        self, db: AsyncSession, account_id: str, days_ago: int | None = None
    ) -> SyncResult:
        """Channel and top-video reports for the single day ``days_ago`` days back.

        YouTube Analytics lags by a few days, hence the default offset.
        """
        if days_ago is None:
            days_ago = settings.youtube_reporting_lag_days
        day = self.reporting_day(Platform.YOUTUBE, days_ago)

        async def _sync(result: SyncResult, credential: ValidToken) -> None:
            for i, report in enumerate(INCREMENTAL_REPORTS):
                if i:
                    await self._pause()
                await self._run_report_chunk(db, account_id, report, single_day(day), result)

        return await self._run_daily(db, account_id, Platform.YOUTUBE, day, _sync)

    async def sync_instagram_daily(
        self, db: AsyncSession, account_id: str, days_ago: int | None = None
    ) -> SyncResult:
        """Account insights for one day plus counters and insights of recent media."""
        if days_ago is None:
            days_ago = settings.instagram_reporting_lag_days
        day = self.reporting_day(Platform.INSTAGRAM, days_ago)

        async def _sync(result: SyncResult, credential: ValidToken) -> None:
            ig_user_id = credential.platform_account_id

            def archiving(report_type: str) -> ArchivingClient:
                return self._archiving(db, account_id, Platform.INSTAGRAM, ig_user_id, report_type)

            response = await fetch_account_insights(
                archiving("daily_account_insights"), credential.token, ig_user_id, day
            )
            values = insight_values(response)
            written = await upsert_rows(
                db,
                InstagramAccountDaily,
                [{"account_id": account_id, "ig_user_id": ig_user_id, "day": day, **values}],
                ("account_id", "ig_user_id", "day"),
            )
            result.add_rows("daily_account_insights", written)
            result.chunks_processed += 1

            await self._pause()
            info = await fetch_account_info(archiving("account_info"), credential.token, ig_user_id)

            await self._pause()
            insights_count = await self._sync_instagram_media(
                db, account_id, ig_user_id, day, credential.token, archiving, result
            )
            result.extra = {
                "mediaCount": result.rows.get("media", 0),
                "insightsCount": insights_count,
                "followerCount": info["follower_count"],
                "insights": values,
            }

        return await self._run_daily(db, account_id, Platform.INSTAGRAM, day, _sync)

    async def _sync_instagram_media(
        self,
        db: AsyncSession,
        account_id: str,
        ig_user_id: str,
        day: date,
        token: str,
        archiving: Callable[[str], ArchivingClient],
        result: SyncResult,
    ) -> int:
        """Upsert recent media and their lifetime insights as of ``day``.

        A media item whose insights cannot be read is skipped; the rest of
        the list is still synced. Returns how many items had insights.
        """
        media = await fetch_recent_media(
            archiving("media_list"), token, ig_user_id, limit=settings.instagram_media_sync_limit
        )
        written = await upsert_rows(
            db,
            InstagramMedia,
            [
                {
                    "account_id": account_id,
                    "ig_user_id": ig_user_id,
                    "media_id": item["media_id"],
                    "media_type": item["media_type"],
                    "caption": item["caption"],
                    "permalink": item["permalink"],
                    "posted_at": item["timestamp"],
                }
                for item in media
            ],
            ("account_id", "media_id"),
        )
        result.add_rows("media", written)

        daily_rows = []
        for item in media:
            if item["media_type"] == "STORY":
                continue
            metrics = media_insight_metrics(item["media_type"])
            try:
                response = await fetch_media_insights(
                    archiving("media_insights"), token, item["media_id"], metrics
                )
            except APIError as e:
                logger.warning(f"Could not fetch insights for media {item['media_id']}: {e.message}")
                continue
            finally:
                await self._pause()
            values = insight_values(response, metrics)
            daily_rows.append({
                "account_id": account_id,
                "ig_user_id": ig_user_id,
                "media_id": item["media_id"],
                "day": day,
                "like_count": item["like_count"] or 0,
                "comment_count": item["comment_count"] or 0,
                # Every row carries the same columns for the multi-row upsert
                **{metric: values.get(metric, 0) for metric in MEDIA_VIDEO_METRICS},
            })

        written = await upsert_rows(db, InstagramMediaDaily, daily_rows, ("account_id", "media_id", "day"))
        result.add_rows("daily_media", written)
        return len(daily_rows)

    # ============== All accounts ==============

    async def sync_all_accounts(
        self,
        platform: Platform,
        days_ago: int | None = None,
    ) -> BatchResult:
        """Daily sync for every connected account, one at a time.

        Each account gets its own session; one account's failure never
        stops the loop.
        """
        if days_ago is None:
            days_ago = (
                settings.youtube_reporting_lag_days
                if platform == Platform.YOUTUBE
                else settings.instagram_reporting_lag_days
            )
        sync = self.sync_youtube_daily if platform == Platform.YOUTUBE else self.sync_instagram_daily

        async with self.session_factory() as db:
            account_ids = await connected_account_ids(db, platform)

        batch = BatchResult(platform, self.reporting_day(platform, days_ago))
        logger.info(f"Starting {platform.value} daily sync for {len(account_ids)} accounts")

        for i, account_id in enumerate(account_ids):
            if i and self.inter_account_delay > 0:
                await self._sleep(self.inter_account_delay)
            async with self.session_factory() as db:
                try:
                    await sync(db, account_id, days_ago)
                    batch.synced.append(account_id)
                except SyncError as e:
                    batch.failed.append(AccountFailure(account_id, e.message))
                except Exception as e:
                    logger.exception(f"Unexpected error syncing {platform.value} account {account_id}")
                    batch.failed.append(AccountFailure(account_id, f"{type(e).__name__}: {e}"))

        logger.info(
            f"{platform.value} daily sync finished: {len(batch.synced)} synced, {len(batch.failed)} failed"
        )
        return batch


_orchestrator: Optional[SyncOrchestrator] = None


def get_orchestrator() -> SyncOrchestrator:
    """Process-wide orchestrator sharing one HTTP connection pool."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = SyncOrchestrator()
    return _orchestrator


async def close_orchestrator() -> None:
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
