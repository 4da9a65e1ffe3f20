from datetime import datetime, timezone

from services.quota import QUOTA_COSTS, QuotaTracker


def test_quota_costs():
    assert QUOTA_COSTS["search.list"] == 100
    assert QUOTA_COSTS["videos.list"] == 1
    assert QUOTA_COSTS["reports.query"] == 0


def test_quota_day_uses_pacific_time():
    tracker = QuotaTracker()
    # 06:00 UTC on March 15 is still March 14 in Los Angeles
    assert tracker.quota_day(datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc)).isoformat() == "2024-03-14"


async def test_usage_accumulates(db):
    tracker = QuotaTracker(daily_limit=100)

    assert await tracker.track_usage(db, "acct-1", 10)
    assert await tracker.track_usage(db, "acct-1", 5)

    check = await tracker.can_proceed(db, "acct-1")
    assert check.current_usage == 15
    assert check.remaining == 85


async def test_usage_is_per_account(db):
    tracker = QuotaTracker(daily_limit=100)
    await tracker.track_usage(db, "acct-1", 40)

    assert (await tracker.can_proceed(db, "acct-2")).current_usage == 0


async def test_can_proceed_blocks_at_critical_level(db):
    tracker = QuotaTracker(daily_limit=100)
    await tracker.track_usage(db, "acct-1", 85)

    assert (await tracker.can_proceed(db, "acct-1", 4)).allowed
    assert not (await tracker.can_proceed(db, "acct-1", 5)).allowed


async def test_track_usage_reports_critical(db, caplog):
    tracker = QuotaTracker(daily_limit=100)

    assert await tracker.track_usage(db, "acct-1", 80)
    assert "Quota warning" in caplog.text
    assert not await tracker.track_usage(db, "acct-1", 10)
    # The increment is kept even when it crosses the limit
    assert (await tracker.can_proceed(db, "acct-1")).current_usage == 90


async def test_stats_and_reset(db):
    tracker = QuotaTracker(daily_limit=1000)
    await tracker.track_usage(db, "acct-1", 850)

    stats = await tracker.get_stats(db, "acct-1")
    assert stats.to_response() == {
        "usedToday": 850,
        "remaining": 150,
        "percentUsed": 85.0,
        "isWarning": True,
        "isCritical": False,
    }

    await tracker.reset(db, "acct-1")
    assert (await tracker.get_stats(db, "acct-1")).used_today == 0
