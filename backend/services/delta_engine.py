"""Windowed deltas over cumulative intraday snapshots.

Counters only ever grow (or are corrected), so activity inside a window is
the spread between the largest and smallest reading in it. Windows are
declared by name and cutoff function; adding one is a data change.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from models.intraday_snapshot import IntradaySnapshot
from models.platform_connection import Platform

settings = get_settings()

DEFAULT_FIELDS = ("view_count", "like_count", "comment_count", "follower_count")


@dataclass(frozen=True)
class DeltaWindow:
    """``cutoff(now, tz)`` returns the earliest instant included in the window."""

    name: str
    cutoff: Callable[[datetime, ZoneInfo], datetime]


def today_window(name: str = "today") -> DeltaWindow:
    """Since local midnight in the platform's timezone."""
    def _cutoff(now: datetime, tz: ZoneInfo) -> datetime:
        local = now.astimezone(tz)
        return local.replace(hour=0, minute=0, second=0, microsecond=0)
    return DeltaWindow(name, _cutoff)


def trailing_window(name: str, span: timedelta) -> DeltaWindow:
    return DeltaWindow(name, lambda now, tz: now - span)


DEFAULT_WINDOWS = (
    today_window(),
    trailing_window("last_60_minutes", timedelta(minutes=60)),
    trailing_window("last_48_hours", timedelta(hours=48)),
)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _get(snapshot: Any, name: str) -> Any:
    if isinstance(snapshot, dict):
        return snapshot.get(name)
    return getattr(snapshot, name, None)


def compute_delta(values: Iterable[Optional[float]]) -> float:
    """max - min of the non-null readings; 0 when there are none."""
    present = [v for v in values if v is not None]
    if not present:
        return 0
    return max(present) - min(present)


def compute_window_deltas(
    snapshots: Iterable[Any],
    windows: Iterable[DeltaWindow] = DEFAULT_WINDOWS,
    fields: Iterable[str] = DEFAULT_FIELDS,
    now: Optional[datetime] = None,
    tz: str | ZoneInfo = "America/Los_Angeles",
) -> dict[str, dict[str, float]]:
    """Return {window_name: {field: delta}} for snapshots of a single entity.

    Snapshots may be ORM rows or dicts carrying ``captured_at``. A window
    holds readings with ``cutoff <= captured_at <= now``.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    fields = tuple(fields)
    readings = [(_as_utc(_get(s, "captured_at")), s) for s in snapshots]

    deltas: dict[str, dict[str, float]] = {}
    for window in windows:
        cutoff = window.cutoff(now, zone)
        in_window = [s for captured, s in readings if cutoff <= captured <= now]
        deltas[window.name] = {
            name: compute_delta(_get(s, name) for s in in_window) for name in fields
        }
    return deltas


def rollup_entity_deltas(
    snapshots: Iterable[Any],
    windows: Iterable[DeltaWindow] = DEFAULT_WINDOWS,
    fields: Iterable[str] = DEFAULT_FIELDS,
    now: Optional[datetime] = None,
    tz: str | ZoneInfo = "America/Los_Angeles",
) -> dict[str, dict[str, float]]:
    """Per-entity deltas summed across entities.

    Taking max - min over readings from different videos would measure the
    gap between videos, not activity, so each entity is computed alone.
    """
    windows = tuple(windows)
    fields = tuple(fields)
    groups: dict[Any, list] = defaultdict(list)
    for snapshot in snapshots:
        groups[_get(snapshot, "entity_id")].append(snapshot)

    totals = {window.name: {name: 0 for name in fields} for window in windows}
    for group in groups.values():
        entity = compute_window_deltas(group, windows, fields, now, tz)
        for window_name, values in entity.items():
            for name, value in values.items():
                totals[window_name][name] += value
    return totals


def live_viewers(snapshots: Iterable[Any]) -> tuple[int, bool]:
    """Sum of concurrent viewers from each entity's latest reading."""
    latest: dict[Any, Any] = {}
    for snapshot in snapshots:
        key = _get(snapshot, "entity_id")
        captured = _as_utc(_get(snapshot, "captured_at"))
        if key not in latest or captured > _as_utc(_get(latest[key], "captured_at")):
            latest[key] = snapshot
    viewers = sum(_get(s, "concurrent_viewers") or 0 for s in latest.values())
    is_live = any(_get(s, "is_live") for s in latest.values())
    return viewers, is_live


async def load_realtime_metrics(
    db: AsyncSession,
    account_id: str,
    platform: Platform,
    now: Optional[datetime] = None,
    windows: Iterable[DeltaWindow] = DEFAULT_WINDOWS,
) -> dict:
    """Read-side view of the intraday table for one account.

    ``account`` holds deltas of the account-level counters; ``content``
    holds the per-video (or per-media) rollup.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    windows = tuple(windows)
    tz = settings.platform_timezone(platform.value)
    earliest = min(window.cutoff(now, ZoneInfo(tz)) for window in windows).astimezone(timezone.utc)

    result = await db.execute(
        select(IntradaySnapshot)
        .where(
            IntradaySnapshot.account_id == account_id,
            IntradaySnapshot.platform == platform,
            IntradaySnapshot.captured_at >= earliest,
        )
        .order_by(IntradaySnapshot.captured_at)
    )
    snapshots = list(result.scalars().all())

    account_rows = [s for s in snapshots if s.entity_id is None]
    content_rows = [s for s in snapshots if s.entity_id is not None]
    viewers, is_live = live_viewers(content_rows)
    last_captured = max((_as_utc(s.captured_at) for s in snapshots), default=None)

    return {
        "account": compute_window_deltas(account_rows, windows, now=now, tz=tz),
        "content": rollup_entity_deltas(content_rows, windows, now=now, tz=tz),
        "liveViewers": viewers,
        "isLive": is_live,
        "trackedEntities": len({s.entity_id for s in content_rows}),
        "lastCaptured": last_captured.isoformat() if last_captured else None,
    }
