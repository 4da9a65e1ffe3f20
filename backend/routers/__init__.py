"""Routers package."""

from .instagram import router as instagram_router
from .sync import router as sync_router
from .youtube import router as youtube_router

__all__ = [
    "instagram_router",
    "sync_router",
    "youtube_router",
]
