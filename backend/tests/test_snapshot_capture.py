from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import select

from models.intraday_snapshot import IntradaySnapshot
from models.platform_connection import Platform
from services.errors import QuotaExceeded

CAPTURED_AT = datetime(2024, 3, 15, 18, 0, tzinfo=timezone.utc)


def iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def youtube_routes(upstream):
    upstream.on("/channels", {
        "items": [{
            "statistics": {"viewCount": "123456", "subscriberCount": "789", "videoCount": "42"},
            "contentDetails": {"relatedPlaylists": {"uploads": "UU123"}},
        }]
    })
    upstream.on("/playlistItems", {
        "items": [
            {"contentDetails": {"videoId": "vid-new", "videoPublishedAt": iso(CAPTURED_AT - timedelta(hours=1))}},
            {"contentDetails": {"videoId": "vid-old", "videoPublishedAt": iso(CAPTURED_AT - timedelta(days=5))}},
        ],
        "nextPageToken": "more",
    })
    upstream.on("/videos", {
        "items": [{
            "id": "vid-new",
            "statistics": {"viewCount": "900", "likeCount": "80", "commentCount": "7"},
            "liveStreamingDetails": {"actualStartTime": iso(CAPTURED_AT), "concurrentViewers": "150"},
        }]
    })


def instagram_routes(upstream, ig_user_id="17841400000"):
    upstream.on(f"/{ig_user_id}/media", {
        "data": [
            {"id": "m1", "media_type": "IMAGE", "like_count": 10, "comments_count": 1},
            {"id": "m2", "media_type": "REELS", "like_count": 55, "comments_count": 4},
        ]
    })
    upstream.on(f"/{ig_user_id}", {"username": "brand", "followers_count": 900, "follows_count": 12, "media_count": 42})


async def test_capture_youtube(db, make_connection, snapshot_capture, upstream, quota):
    await make_connection()
    youtube_routes(upstream)

    rows = await snapshot_capture.capture_youtube(db, "acct-1", CAPTURED_AT)

    assert rows == 2
    # Only the first playlist page is read
    assert len(upstream.calls_to("/playlistItems")) == 1
    assert upstream.calls_to("/videos")[0].url.params["id"] == "vid-new"
    assert (await quota.get_stats(db, "acct-1")).used_today == 3

    snapshots = (await db.execute(
        select(IntradaySnapshot).order_by(IntradaySnapshot.entity_type)
    )).scalars().all()
    channel, video = snapshots
    assert channel.entity_type == "channel"
    assert channel.entity_id is None
    assert channel.view_count == 123456
    assert channel.follower_count == 789
    assert video.entity_id == "vid-new"
    assert video.concurrent_viewers == 150
    assert video.is_live is True


async def test_capture_youtube_skips_when_quota_is_critical(db, make_connection, snapshot_capture, upstream, quota):
    await make_connection()
    await quota.track_usage(db, "acct-1", 8999)
    youtube_routes(upstream)

    with pytest.raises(QuotaExceeded):
        await snapshot_capture.capture_youtube(db, "acct-1", CAPTURED_AT)
    assert upstream.requests == []


async def test_capture_instagram(db, make_connection, snapshot_capture, upstream):
    await make_connection(
        platform=Platform.INSTAGRAM, external_account_id="17841400000", refresh_token=None,
        expires_in=timedelta(days=40),
    )
    instagram_routes(upstream)

    rows = await snapshot_capture.capture_instagram(db, "acct-1", CAPTURED_AT)

    assert rows == 3
    account = (await db.execute(
        select(IntradaySnapshot).where(IntradaySnapshot.entity_type == "account")
    )).scalar_one()
    assert account.follower_count == 900
    assert account.following_count == 12
    assert account.media_count == 42
    media_likes = (await db.execute(
        select(IntradaySnapshot.like_count)
        .where(IntradaySnapshot.entity_type == "media")
        .order_by(IntradaySnapshot.entity_id)
    )).scalars().all()
    assert media_likes == [10, 55]


async def test_capture_all_continues_past_failures(db, make_connection, snapshot_capture, upstream):
    await make_connection(account_id="acct-yt")
    await make_connection(
        account_id="acct-ig", platform=Platform.INSTAGRAM, external_account_id="17841400000",
        refresh_token=None, expires_in=None,
    )
    youtube_routes(upstream)
    upstream.on("/17841400000", httpx.Response(500, text="graph unavailable"))

    summary = await snapshot_capture.capture_all()

    response = summary.to_response()
    assert response["accountsCaptured"] == 1
    assert response["errors"][0]["accountId"] == "acct-ig"
    assert response["errors"][0]["platform"] == "instagram"

    captured = (await db.execute(select(IntradaySnapshot.captured_at).distinct())).scalars().all()
    assert len(captured) == 1


async def test_capture_all_reports_quota_skips(db, make_connection, snapshot_capture, upstream, quota):
    await make_connection()
    await quota.track_usage(db, "acct-1", 9000)

    summary = await snapshot_capture.capture_all(Platform.YOUTUBE)

    assert summary.accounts == 0
    assert summary.skipped[0]["accountId"] == "acct-1"
    assert summary.failed == []
