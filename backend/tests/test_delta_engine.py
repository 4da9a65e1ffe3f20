from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from models.intraday_snapshot import IntradaySnapshot
from models.platform_connection import Platform
from services.delta_engine import (
    compute_delta,
    compute_window_deltas,
    live_viewers,
    load_realtime_metrics,
    rollup_entity_deltas,
    trailing_window,
)

# 13:00 in Los Angeles (PDT); local midnight is 07:00 UTC
NOW = datetime(2024, 3, 15, 20, 0, tzinfo=timezone.utc)
LOS_ANGELES = ZoneInfo("America/Los_Angeles")


def at(hour: int, minute: int = 0, day: int = 15) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=timezone.utc)


def test_compute_delta():
    assert compute_delta([100, 150, 130]) == 50
    assert compute_delta([None, 10, None]) == 0
    assert compute_delta([]) == 0


def test_window_deltas():
    snapshots = [
        {"captured_at": at(6), "view_count": 100},  # 23:00 the previous local day
        {"captured_at": at(8), "view_count": 150},
        {"captured_at": at(19, 30), "view_count": 200},
        {"captured_at": at(19, 50), "view_count": 230},
    ]

    deltas = compute_window_deltas(snapshots, fields=["view_count"], now=NOW)

    assert deltas["today"]["view_count"] == 80
    assert deltas["last_60_minutes"]["view_count"] == 30
    assert deltas["last_48_hours"]["view_count"] == 130


def test_readings_shortly_after_local_midnight():
    def local(hour: int, minute: int) -> datetime:
        return datetime(2024, 3, 15, hour, minute, tzinfo=LOS_ANGELES)

    snapshots = [
        {"captured_at": local(0, 5), "view_count": 100},
        {"captured_at": local(0, 35), "view_count": 120},
        {"captured_at": local(1, 10), "view_count": 150},
    ]

    deltas = compute_window_deltas(snapshots, fields=["view_count"], now=local(1, 15), tz=LOS_ANGELES)

    assert deltas["today"]["view_count"] == 50
    assert deltas["last_60_minutes"]["view_count"] == 30


def test_out_of_order_lower_reading_never_goes_negative():
    snapshots = [
        {"captured_at": at(19, 40), "view_count": 120},
        {"captured_at": at(19, 10), "view_count": 150},
        # Arrives last but was captured earlier, with a lower count
        {"captured_at": at(19, 25), "view_count": 90},
    ]

    deltas = compute_window_deltas(snapshots, fields=["view_count"], now=NOW)

    assert deltas["last_60_minutes"]["view_count"] == 60
    assert all(value >= 0 for window in deltas.values() for value in window.values())


def test_window_with_one_reading_has_zero_delta():
    snapshots = [{"captured_at": at(19, 55), "view_count": 500}]
    deltas = compute_window_deltas(
        snapshots, [trailing_window("last_10_minutes", timedelta(minutes=10))], ["view_count"], now=NOW
    )
    assert deltas == {"last_10_minutes": {"view_count": 0}}


def test_readings_after_now_are_ignored():
    snapshots = [
        {"captured_at": at(19, 30), "view_count": 10},
        {"captured_at": at(21), "view_count": 99},
    ]
    deltas = compute_window_deltas(snapshots, fields=["view_count"], now=NOW)
    assert deltas["today"]["view_count"] == 0


def test_rollup_sums_per_entity_deltas():
    snapshots = [
        {"entity_id": "vid-a", "captured_at": at(19, 10), "view_count": 1000},
        {"entity_id": "vid-a", "captured_at": at(19, 40), "view_count": 1040},
        {"entity_id": "vid-b", "captured_at": at(19, 10), "view_count": 10},
        {"entity_id": "vid-b", "captured_at": at(19, 40), "view_count": 15},
    ]

    totals = rollup_entity_deltas(snapshots, fields=["view_count"], now=NOW)

    # Not 1040 - 10: readings of different videos are never compared
    assert totals["last_60_minutes"]["view_count"] == 45


def test_live_viewers_uses_latest_reading_per_entity():
    snapshots = [
        {"entity_id": "live-1", "captured_at": at(19), "concurrent_viewers": 300, "is_live": True},
        {"entity_id": "live-1", "captured_at": at(19, 30), "concurrent_viewers": 120, "is_live": True},
        {"entity_id": "vod-1", "captured_at": at(19, 30), "concurrent_viewers": None, "is_live": False},
    ]

    assert live_viewers(snapshots) == (120, True)
    assert live_viewers([]) == (0, False)


async def test_load_realtime_metrics(db):
    def snapshot(captured_at, entity_id=None, **counters):
        return IntradaySnapshot(
            account_id="acct-1",
            platform=Platform.YOUTUBE,
            external_account_id="UC123",
            entity_type="video" if entity_id else "channel",
            entity_id=entity_id,
            captured_at=captured_at,
            **counters,
        )

    db.add_all([
        snapshot(at(8), view_count=5000, follower_count=200),
        snapshot(at(19, 30), view_count=5600, follower_count=204),
        snapshot(at(8), "vid-a", view_count=100, like_count=4),
        snapshot(at(19, 30), "vid-a", view_count=400, like_count=9, concurrent_viewers=25, is_live=True),
        # Too old for every window
        snapshot(at(6, day=10), view_count=1),
    ])
    # Other accounts never leak in
    db.add(IntradaySnapshot(
        account_id="acct-2", platform=Platform.YOUTUBE, external_account_id="UC999",
        entity_type="channel", captured_at=at(19), view_count=1_000_000,
    ))
    await db.commit()

    metrics = await load_realtime_metrics(db, "acct-1", Platform.YOUTUBE, now=NOW)

    assert metrics["account"]["today"]["view_count"] == 600
    assert metrics["account"]["today"]["follower_count"] == 4
    assert metrics["account"]["last_60_minutes"]["view_count"] == 0
    assert metrics["content"]["today"]["view_count"] == 300
    assert metrics["content"]["today"]["like_count"] == 5
    assert metrics["liveViewers"] == 25
    assert metrics["isLive"] is True
    assert metrics["trackedEntities"] == 1
    assert metrics["lastCaptured"] == at(19, 30).isoformat()


async def test_load_realtime_metrics_without_snapshots(db):
    metrics = await load_realtime_metrics(db, "acct-1", Platform.INSTAGRAM, now=NOW)

    assert metrics["account"]["today"] == {
        "view_count": 0, "like_count": 0, "comment_count": 0, "follower_count": 0,
    }
    assert metrics["lastCaptured"] is None
    assert metrics["trackedEntities"] == 0
