"""YouTube Analytics and Data API calls.

Thin wrappers over RetryingAPIClient that build request parameters and
unpack responses. Analytics report rows are always read through their
column headers, never by position. Data API helpers report how many
metered calls they made so the caller can charge the quota.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from config import get_settings
from services.api_client import RetryingAPIClient

logger = logging.getLogger(__name__)
settings = get_settings()

MAX_IDS_PER_CALL = 50


@dataclass
class ReportQuery:
    """One YouTube Analytics ``reports.query`` request."""

    channel_id: str
    start_date: date
    end_date: date
    metrics: str
    dimensions: Optional[str] = None
    filters: Optional[str] = None
    sort: Optional[str] = None
    max_results: Optional[int] = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "ids": f"channel=={self.channel_id}",
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "metrics": self.metrics,
        }
        if self.dimensions:
            params["dimensions"] = self.dimensions
        if self.filters:
            params["filters"] = self.filters
        if self.sort:
            params["sort"] = self.sort
        if self.max_results:
            params["maxResults"] = self.max_results
        return params

    def to_request_json(self) -> dict[str, Any]:
        """Request description stored alongside the raw response."""
        return {"url": settings.youtube_analytics_url, "params": self.to_params()}


async def query_analytics(client: RetryingAPIClient, token: str, query: ReportQuery) -> dict:
    """Run an Analytics report. Not metered against the Data API quota."""
    return await client.call(settings.youtube_analytics_url, query.to_params(), token)


def report_rows(response: dict) -> list[dict[str, Any]]:
    """Turn a report's ``columnHeaders`` + ``rows`` into dicts keyed by column name."""
    headers = [header["name"] for header in response.get("columnHeaders", [])]
    index = {name: i for i, name in enumerate(headers)}
    return [
        {name: row[i] for name, i in index.items() if i < len(row)}
        for row in response.get("rows") or []
    ]


def _parse_published_at(val: Optional[str]) -> Optional[datetime]:
    if not val:
        return None
    try:
        return datetime.fromisoformat(val.replace("Z", "+00:00"))
    except ValueError:
        return None


async def fetch_channel_statistics(
    client: RetryingAPIClient, token: str, channel_id: str
) -> dict:
    """Channel counters plus the uploads playlist id (1 unit).

    Returns {channel_id, view_count, subscriber_count, video_count, uploads_playlist_id}.
    """
    data = await client.call(
        f"{settings.youtube_data_base}/channels",
        {"part": "statistics,contentDetails", "id": channel_id},
        token,
    )
    items = data.get("items", [])
    if not items:
        logger.warning(f"No YouTube channel found for ID {channel_id}")
        return {
            "channel_id": channel_id,
            "view_count": None,
            "subscriber_count": None,
            "video_count": None,
            "uploads_playlist_id": None,
        }

    statistics = items[0].get("statistics", {})
    return {
        "channel_id": channel_id,
        "view_count": int(statistics.get("viewCount", 0)),
        # Hidden subscriber counts are omitted by the API
        "subscriber_count": (
            int(statistics["subscriberCount"]) if "subscriberCount" in statistics else None
        ),
        "video_count": int(statistics.get("videoCount", 0)),
        "uploads_playlist_id": (
            items[0].get("contentDetails", {}).get("relatedPlaylists", {}).get("uploads")
        ),
    }


async def list_upload_videos(
    client: RetryingAPIClient,
    token: str,
    playlist_id: str,
    max_pages: Optional[int] = None,
) -> tuple[list[dict], int]:
    """Page through the uploads playlist, newest first.

    Returns ([{video_id, published_at}], pages_fetched); each page costs 1 unit.
    """
    videos: list[dict] = []
    page_token: Optional[str] = None
    pages = 0

    while max_pages is None or pages < max_pages:
        params: dict[str, Any] = {
            "part": "contentDetails",
            "playlistId": playlist_id,
            "maxResults": MAX_IDS_PER_CALL,
        }
        if page_token:
            params["pageToken"] = page_token

        data = await client.call(f"{settings.youtube_data_base}/playlistItems", params, token)
        pages += 1

        for item in data.get("items", []):
            details = item.get("contentDetails", {})
            video_id = details.get("videoId")
            if video_id:
                videos.append({
                    "video_id": video_id,
                    "published_at": _parse_published_at(details.get("videoPublishedAt")),
                })

        page_token = data.get("nextPageToken")
        if not page_token:
            break

    logger.info(f"Listed {len(videos)} uploads from playlist {playlist_id} ({pages} pages)")
    return videos, pages


async def fetch_video_statistics(
    client: RetryingAPIClient, token: str, video_ids: list[str]
) -> tuple[list[dict], int]:
    """Counters and live state for known videos, 50 ids per call (1 unit each).

    Returns ([{video_id, view_count, like_count, comment_count, concurrent_viewers, is_live}], calls).
    """
    results: list[dict] = []
    calls = 0

    for i in range(0, len(video_ids), MAX_IDS_PER_CALL):
        batch = video_ids[i:i + MAX_IDS_PER_CALL]
        data = await client.call(
            f"{settings.youtube_data_base}/videos",
            {"part": "statistics,liveStreamingDetails", "id": ",".join(batch)},
            token,
        )
        calls += 1

        for item in data.get("items", []):
            stats = item.get("statistics", {})
            live = item.get("liveStreamingDetails") or {}
            concurrent = live.get("concurrentViewers")
            results.append({
                "video_id": item["id"],
                "view_count": int(stats.get("viewCount", 0)),
                "like_count": int(stats.get("likeCount", 0)),
                "comment_count": int(stats.get("commentCount", 0)),
                "concurrent_viewers": int(concurrent) if concurrent is not None else None,
                "is_live": bool(live.get("actualStartTime")) and not live.get("actualEndTime"),
            })

    return results, calls
