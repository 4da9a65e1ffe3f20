"""Database models."""

from database import Base

# Credentials and bookkeeping
from models.platform_connection import Platform, PlatformConnection
from models.quota_usage import QuotaUsage
from models.sync_state import SyncState, SyncStatus

# Time series
from models.youtube_metrics import (
    YouTubeChannelDaily,
    YouTubeVideoDaily,
    YouTubeRevenueDaily,
    YouTubeDemographics,
    YouTubeGeography,
    YouTubeDeviceStats,
)
from models.instagram_metrics import InstagramAccountDaily, InstagramMedia, InstagramMediaDaily
from models.intraday_snapshot import IntradaySnapshot
from models.raw_archive import RawArchive

__all__ = [
    # Base
    "Base",
    # Credentials and bookkeeping
    "Platform",
    "PlatformConnection",
    "QuotaUsage",
    "SyncState",
    "SyncStatus",
    # Time series
    "YouTubeChannelDaily",
    "YouTubeVideoDaily",
    "YouTubeRevenueDaily",
    "YouTubeDemographics",
    "YouTubeGeography",
    "YouTubeDeviceStats",
    "InstagramAccountDaily",
    "InstagramMedia",
    "InstagramMediaDaily",
    "IntradaySnapshot",
    "RawArchive",
]
