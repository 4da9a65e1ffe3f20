from datetime import date, datetime, timezone

import pytest

from services.instagram_service import (
    fetch_recent_media,
    insight_values,
    insights_request_params,
    media_insight_metrics,
)
from services.range_chunker import DateRange
from services.reports import CHANNEL_DAILY, DEVICE_TYPES, GEOGRAPHY_US_STATE, VIDEO_TOP_DAILY, RowContext
from services.youtube_service import (
    ReportQuery,
    fetch_channel_statistics,
    fetch_video_statistics,
    list_upload_videos,
    report_rows,
)

from helpers import analytics_response


def test_report_rows_are_keyed_by_header_name():
    response = analytics_response(["views", "day"], [[10, "2024-01-01"], [20, "2024-01-02"]])

    assert report_rows(response) == [
        {"views": 10, "day": "2024-01-01"},
        {"views": 20, "day": "2024-01-02"},
    ]
    assert report_rows({"columnHeaders": [{"name": "views"}]}) == []


def test_map_row_ignores_column_order():
    ctx = RowContext("acct-1", "UC123", DateRange(date(2024, 1, 1), date(2024, 1, 31)))
    row = report_rows(analytics_response(
        ["subscribersLost", "day", "estimatedMinutesWatched", "views", "subscribersGained"],
        [[1, "2024-01-09", 2.5, 77, 4]],
    ))[0]

    assert CHANNEL_DAILY.map_row(row, ctx) == {
        "account_id": "acct-1",
        "channel_id": "UC123",
        "day": date(2024, 1, 9),
        "views": 77,
        "watch_time_seconds": 150,
        "subscribers_gained": 4,
        "subscribers_lost": 1,
    }


def test_top_video_rows_take_the_requested_day():
    ctx = RowContext("acct-1", "UC123", DateRange(date(2024, 3, 12), date(2024, 3, 12)))
    mapped = VIDEO_TOP_DAILY.map_row({"video": "vid-a", "views": None}, ctx)

    assert mapped["day"] == date(2024, 3, 12)
    assert mapped["video_id"] == "vid-a"
    assert mapped["views"] == 0


def test_report_query_params():
    query = ReportQuery("UC123", date(2024, 1, 1), date(2024, 1, 31), "views", "day", sort="day")

    assert query.to_params() == {
        "ids": "channel==UC123",
        "startDate": "2024-01-01",
        "endDate": "2024-01-31",
        "metrics": "views",
        "dimensions": "day",
        "sort": "day",
    }


async def test_channel_statistics_with_hidden_subscribers(api_client, upstream):
    upstream.on("/channels", {
        "items": [{
            "statistics": {"viewCount": "5", "videoCount": "1", "hiddenSubscriberCount": True},
            "contentDetails": {"relatedPlaylists": {"uploads": "UU1"}},
        }]
    })

    stats = await fetch_channel_statistics(api_client, "tok", "UC1")

    assert stats["subscriber_count"] is None
    assert stats["view_count"] == 5
    assert stats["uploads_playlist_id"] == "UU1"


async def test_list_upload_videos_follows_pages(api_client, upstream):
    upstream.on("/playlistItems", [
        {"items": [{"contentDetails": {"videoId": "v1"}}], "nextPageToken": "p2"},
        {"items": [{"contentDetails": {"videoId": "v2", "videoPublishedAt": "2024-01-01T00:00:00Z"}}]},
    ])

    videos, pages = await list_upload_videos(api_client, "tok", "UU1")

    assert pages == 2
    assert [v["video_id"] for v in videos] == ["v1", "v2"]
    assert videos[0]["published_at"] is None
    assert upstream.calls_to("/playlistItems")[1].url.params["pageToken"] == "p2"


async def test_video_statistics_are_batched(api_client, upstream):
    def respond(request):
        ids = request.url.params["id"].split(",")
        return {"items": [{"id": i, "statistics": {"viewCount": "1"}} for i in ids]}

    upstream.on("/videos", respond)

    stats, calls = await fetch_video_statistics(api_client, "tok", [f"v{i}" for i in range(120)])

    assert calls == 3
    assert len(stats) == 120
    assert stats[0]["is_live"] is False
    assert stats[0]["concurrent_viewers"] is None


def test_insight_values_take_the_requested_period():
    values = insight_values({
        "data": [
            {"name": "reach", "values": [{"value": 5}, {"value": 9}]},
            {"name": "follower_count", "values": [{"value": 1}]},
        ]
    })

    assert values["reach"] == 5
    assert values["impressions"] == 0
    assert "follower_count" not in values


def test_insight_values_for_media_metrics():
    metrics = media_insight_metrics("VIDEO")
    values = insight_values({"data": [{"name": "video_views", "values": [{"value": 12}]}]}, metrics)

    assert values == {"engagement": 0, "impressions": 0, "reach": 0, "saved": 0, "video_views": 12}
    assert "video_views" not in media_insight_metrics("CAROUSEL_ALBUM")


def test_insights_request_covers_one_local_day():
    params = insights_request_params(date(2024, 3, 14))

    # Midnight in Los Angeles (PDT) is 07:00 UTC
    assert params["since"] == int(datetime(2024, 3, 14, 7, tzinfo=timezone.utc).timestamp())
    assert params["until"] - params["since"] == 86400
    assert params["period"] == "day"


def test_insights_request_on_daylight_saving_change():
    params = insights_request_params(date(2024, 3, 10))

    assert params["since"] == int(datetime(2024, 3, 10, 8, tzinfo=timezone.utc).timestamp())
    assert params["until"] - params["since"] == 23 * 3600


@pytest.mark.parametrize("limit", [5, 10])
async def test_recent_media_limit(api_client, upstream, limit):
    upstream.on("/media", {"data": [
        {"id": "m1", "like_count": 3, "comments_count": 0, "timestamp": "2024-03-01T12:00:00+0000"},
    ]})

    media = await fetch_recent_media(api_client, "tok", "1784", limit=limit)

    assert media[0]["media_id"] == "m1"
    assert media[0]["timestamp"] == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert media[0]["caption"] is None
    assert upstream.requests[0].url.params["limit"] == str(limit)


def test_us_state_rows_are_keyed_under_us():
    ctx = RowContext("acct-1", "UC123", DateRange(date(2024, 1, 1), date(2024, 3, 31)))

    mapped = GEOGRAPHY_US_STATE.map_row({"province": "US-CA", "views": 60, "estimatedMinutesWatched": 6}, ctx)

    assert mapped["country"] == "US"
    assert mapped["province"] == "US-CA"
    assert mapped["watch_time_seconds"] == 360
    assert GEOGRAPHY_US_STATE.filters == "country==US"


def test_device_rows_leave_the_other_breakdown_empty():
    ctx = RowContext("acct-1", "UC123", DateRange(date(2024, 1, 1), date(2024, 3, 31)))

    mapped = DEVICE_TYPES.map_row({"deviceType": "MOBILE", "views": 9}, ctx)

    assert mapped["device_type"] == "MOBILE"
    assert mapped["operating_system"] == ""
    assert mapped["date_end"] == date(2024, 3, 31)
