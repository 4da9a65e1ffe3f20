"""Instagram Graph API calls.

Works against Instagram Business/Creator accounts. Graph calls are not
metered by the YouTube quota tracker; they go through the same retrying
client so 5xx and network failures are retried identically.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from config import get_settings
from services.api_client import RetryingAPIClient

logger = logging.getLogger(__name__)
settings = get_settings()

ACCOUNT_DAILY_METRICS = [
    "impressions",
    "reach",
    "profile_views",
    "website_clicks",
    "email_contacts",
    "phone_call_clicks",
    "text_message_clicks",
    "get_directions_clicks",
]

# Lifetime media insights; stories expire and are not synced
MEDIA_POST_METRICS = ["engagement", "impressions", "reach", "saved"]
MEDIA_VIDEO_METRICS = MEDIA_POST_METRICS + ["video_views"]


async def fetch_account_info(client: RetryingAPIClient, token: str, ig_user_id: str) -> dict:
    """Returns {ig_user_id, username, follower_count, following_count, media_count}."""
    data = await client.call(
        f"{settings.instagram_graph_base}/{ig_user_id}",
        {"fields": "username,followers_count,follows_count,media_count"},
        token,
    )
    return {
        "ig_user_id": ig_user_id,
        "username": data.get("username"),
        "follower_count": data.get("followers_count"),
        "following_count": data.get("follows_count"),
        "media_count": data.get("media_count"),
    }


async def fetch_recent_media(
    client: RetryingAPIClient, token: str, ig_user_id: str, limit: int = 10
) -> list[dict]:
    """Most recent media with engagement counters.

    Returns [{media_id, media_type, caption, permalink, timestamp, like_count, comment_count}].
    """
    data = await client.call(
        f"{settings.instagram_graph_base}/{ig_user_id}/media",
        {
            "fields": "id,media_type,caption,permalink,timestamp,like_count,comments_count",
            "limit": limit,
        },
        token,
    )
    return [
        {
            "media_id": item["id"],
            "media_type": item.get("media_type"),
            "caption": item.get("caption"),
            "permalink": item.get("permalink"),
            "timestamp": _parse_timestamp(item.get("timestamp")),
            "like_count": item.get("like_count"),
            "comment_count": item.get("comments_count"),
        }
        for item in data.get("data", [])
    ]


def _parse_timestamp(val: Optional[str]) -> Optional[datetime]:
    """Graph timestamps look like 2024-03-01T12:00:00+0000."""
    if not val:
        return None
    try:
        return datetime.strptime(val, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        return None


def insights_request_params(day: date) -> dict[str, Any]:
    """``since``/``until`` bound ``day`` in the Instagram reporting timezone, not UTC."""
    since = datetime.combine(day, time.min, tzinfo=ZoneInfo(settings.platform_timezone("instagram")))
    return {
        "metric": ",".join(ACCOUNT_DAILY_METRICS),
        "period": "day",
        "since": int(since.timestamp()),
        "until": int((since + timedelta(days=1)).timestamp()),
    }


async def fetch_account_insights(
    client: RetryingAPIClient, token: str, ig_user_id: str, day: date
) -> dict:
    """Raw ``/insights`` response for one day of account metrics."""
    return await client.call(
        f"{settings.instagram_graph_base}/{ig_user_id}/insights",
        insights_request_params(day),
        token,
    )


def media_insight_metrics(media_type: Optional[str]) -> list[str]:
    return MEDIA_VIDEO_METRICS if media_type in ("VIDEO", "REELS") else MEDIA_POST_METRICS


async def fetch_media_insights(
    client: RetryingAPIClient, token: str, media_id: str, metrics: list[str]
) -> dict:
    """Raw lifetime ``/insights`` response for one media item."""
    return await client.call(
        f"{settings.instagram_graph_base}/{media_id}/insights",
        {"metric": ",".join(metrics)},
        token,
    )


def insight_values(response: dict, metrics: list[str] = ACCOUNT_DAILY_METRICS) -> dict[str, int]:
    """Flatten an insights response to {metric_name: value}.

    Each metric carries a list of period values. A ``period=day`` request
    bounded by since/until returns the requested day first, so the first
    entry is used. Requested metrics missing from the response are 0.
    """
    values = {metric: 0 for metric in metrics}
    for entry in response.get("data", []):
        name = entry.get("name")
        points = entry.get("values") or []
        if name in values and points:
            values[name] = int(points[0].get("value") or 0)
    return values
