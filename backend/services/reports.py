"""Declarative YouTube Analytics report definitions.

Each definition says which metrics and dimensions to request, how the
backfill chunks its date range, which table the rows land in and how a
header-keyed report row becomes a table row.
"""

from dataclasses import dataclass
from collections.abc import Callable
from datetime import date
from typing import Any, Optional

from models.youtube_metrics import (
    YouTubeChannelDaily,
    YouTubeDemographics,
    YouTubeDeviceStats,
    YouTubeGeography,
    YouTubeRevenueDaily,
    YouTubeVideoDaily,
)
from services.range_chunker import DateRange, Granularity, parse_day


@dataclass(frozen=True)
class RowContext:
    account_id: str
    channel_id: str
    chunk: DateRange


def _minutes_to_seconds(value: Any) -> int:
    return int(round(float(value) * 60))


def _int(value: Any) -> int:
    return int(round(float(value)))


# API metric name -> (column, converter)
MetricColumns = dict[str, tuple[str, Callable[[Any], Any]]]


@dataclass(frozen=True)
class ReportDefinition:
    report_type: str
    model: type
    metrics: str
    dimensions: Optional[str]
    conflict_keys: tuple[str, ...]
    columns: MetricColumns
    keys: Callable[[dict, RowContext], dict]
    granularity: Granularity = Granularity.MONTH
    filters: Optional[str] = None
    sort: Optional[str] = None
    max_results: Optional[int] = None
    # Requested per batch of video ids through a ``video==`` filter
    per_video: bool = False
    # Smaller metric set retried once when the full set keeps failing with 5xx
    fallback_metrics: Optional[str] = None
    # Not every channel can read this report (e.g. revenue outside the
    # Partner Program); a 4xx skips the remaining chunks instead of failing each one
    optional: bool = False

    def map_row(self, row: dict, ctx: RowContext) -> dict:
        """Table row for one report row. Metrics absent from the response are left out."""
        mapped = {"account_id": ctx.account_id, "channel_id": ctx.channel_id}
        mapped.update(self.keys(row, ctx))
        for metric, (column, convert) in self.columns.items():
            if metric in row:
                mapped[column] = convert(row[metric]) if row[metric] is not None else 0
        return mapped


CHANNEL_DAILY = ReportDefinition(
    report_type="daily_channel",
    model=YouTubeChannelDaily,
    metrics="views,estimatedMinutesWatched,subscribersGained,subscribersLost",
    dimensions="day",
    conflict_keys=("account_id", "channel_id", "day"),
    columns={
        "views": ("views", _int),
        "estimatedMinutesWatched": ("watch_time_seconds", _minutes_to_seconds),
        "subscribersGained": ("subscribers_gained", _int),
        "subscribersLost": ("subscribers_lost", _int),
    },
    keys=lambda row, ctx: {"day": parse_day(row["day"])},
    fallback_metrics="views,estimatedMinutesWatched",
)

VIDEO_DAILY = ReportDefinition(
    report_type="daily_video",
    model=YouTubeVideoDaily,
    metrics="views,estimatedMinutesWatched,averageViewDuration,likes,comments",
    dimensions="day,video",
    conflict_keys=("account_id", "video_id", "day"),
    columns={
        "views": ("views", _int),
        "estimatedMinutesWatched": ("watch_time_seconds", _minutes_to_seconds),
        "averageViewDuration": ("avg_view_duration_seconds", _int),
        "likes": ("likes", _int),
        "comments": ("comments", _int),
    },
    keys=lambda row, ctx: {"video_id": row["video"], "day": parse_day(row["day"])},
    per_video=True,
    fallback_metrics="views,estimatedMinutesWatched",
)

# Incremental sync: one day, best performing videos, no per-video batching
VIDEO_TOP_DAILY = ReportDefinition(
    report_type="daily_video_top",
    model=YouTubeVideoDaily,
    metrics=(
        "views,estimatedMinutesWatched,averageViewDuration,likes,comments,"
        "subscribersGained,subscribersLost"
    ),
    dimensions="video",
    conflict_keys=("account_id", "video_id", "day"),
    columns={
        "views": ("views", _int),
        "estimatedMinutesWatched": ("watch_time_seconds", _minutes_to_seconds),
        "averageViewDuration": ("avg_view_duration_seconds", _int),
        "likes": ("likes", _int),
        "comments": ("comments", _int),
        "subscribersGained": ("subscribers_gained", _int),
        "subscribersLost": ("subscribers_lost", _int),
    },
    keys=lambda row, ctx: {"video_id": row["video"], "day": ctx.chunk.start},
    sort="-views",
    max_results=200,
)

REVENUE_DAILY = ReportDefinition(
    report_type="daily_revenue",
    model=YouTubeRevenueDaily,
    metrics=(
        "estimatedRevenue,estimatedAdRevenue,grossRevenue,monetizedPlaybacks,"
        "playbackBasedCpm,adImpressions,cpm"
    ),
    dimensions="day",
    conflict_keys=("account_id", "channel_id", "day"),
    columns={
        "estimatedRevenue": ("estimated_revenue", float),
        "estimatedAdRevenue": ("estimated_ad_revenue", float),
        "grossRevenue": ("gross_revenue", float),
        "monetizedPlaybacks": ("monetized_playbacks", _int),
        "playbackBasedCpm": ("playback_based_cpm", float),
        "adImpressions": ("ad_impressions", _int),
        "cpm": ("cpm", float),
    },
    keys=lambda row, ctx: {"day": parse_day(row["day"])},
    optional=True,
)

DEMOGRAPHICS = ReportDefinition(
    report_type="demographics",
    model=YouTubeDemographics,
    metrics="viewerPercentage",
    dimensions="ageGroup,gender",
    conflict_keys=("account_id", "channel_id", "date_start", "date_end", "age_group", "gender"),
    columns={"viewerPercentage": ("viewer_percentage", float)},
    keys=lambda row, ctx: {
        "date_start": ctx.chunk.start,
        "date_end": ctx.chunk.end,
        "age_group": row["ageGroup"],
        "gender": row["gender"],
    },
    granularity=Granularity.QUARTER,
    sort="-viewerPercentage",
)

GEOGRAPHY_COUNTRY = ReportDefinition(
    report_type="geography_country",
    model=YouTubeGeography,
    metrics="views,estimatedMinutesWatched,averageViewDuration,subscribersGained",
    dimensions="country",
    conflict_keys=("account_id", "channel_id", "date_start", "date_end", "country", "province"),
    columns={
        "views": ("views", _int),
        "estimatedMinutesWatched": ("watch_time_seconds", _minutes_to_seconds),
        "averageViewDuration": ("avg_view_duration_seconds", _int),
        "subscribersGained": ("subscribers_gained", _int),
    },
    keys=lambda row, ctx: {
        "date_start": ctx.chunk.start,
        "date_end": ctx.chunk.end,
        "country": row["country"],
        "province": "",
    },
    granularity=Granularity.QUARTER,
    sort="-views",
    max_results=250,
)

GEOGRAPHY_US_STATE = ReportDefinition(
    report_type="geography_us_state",
    model=YouTubeGeography,
    metrics="views,estimatedMinutesWatched",
    dimensions="province",
    filters="country==US",
    conflict_keys=("account_id", "channel_id", "date_start", "date_end", "country", "province"),
    columns={
        "views": ("views", _int),
        "estimatedMinutesWatched": ("watch_time_seconds", _minutes_to_seconds),
    },
    keys=lambda row, ctx: {
        "date_start": ctx.chunk.start,
        "date_end": ctx.chunk.end,
        "country": "US",
        "province": row["province"],
    },
    granularity=Granularity.QUARTER,
    sort="-views",
    max_results=100,
)


def _device_report(report_type: str, dimension: str, column: str) -> ReportDefinition:
    other = "operating_system" if column == "device_type" else "device_type"
    return ReportDefinition(
        report_type=report_type,
        model=YouTubeDeviceStats,
        metrics="views,estimatedMinutesWatched",
        dimensions=dimension,
        conflict_keys=(
            "account_id", "channel_id", "date_start", "date_end", "device_type", "operating_system",
        ),
        columns={
            "views": ("views", _int),
            "estimatedMinutesWatched": ("watch_time_seconds", _minutes_to_seconds),
        },
        keys=lambda row, ctx: {
            "date_start": ctx.chunk.start,
            "date_end": ctx.chunk.end,
            column: row[dimension],
            other: "",
        },
        granularity=Granularity.QUARTER,
        sort="-views",
    )


DEVICE_TYPES = _device_report("device_type", "deviceType", "device_type")
OPERATING_SYSTEMS = _device_report("operating_system", "operatingSystem", "operating_system")

BACKFILL_REPORTS = (
    CHANNEL_DAILY,
    VIDEO_DAILY,
    REVENUE_DAILY,
    DEMOGRAPHICS,
    GEOGRAPHY_COUNTRY,
    GEOGRAPHY_US_STATE,
    DEVICE_TYPES,
    OPERATING_SYSTEMS,
)
INCREMENTAL_REPORTS = (CHANNEL_DAILY, VIDEO_TOP_DAILY)


def single_day(day: date) -> DateRange:
    return DateRange(day, day)
