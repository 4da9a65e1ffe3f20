"""OAuth token lifecycle for stored platform connections.

Hands out a token that is valid for at least the refresh skew, refreshing
and persisting it first when needed. Refresh failures are never retried;
they surface to the caller verbatim so the user can reconnect.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from models.platform_connection import Platform, PlatformConnection
from services.errors import NoConnection, RefreshFailed, RefreshUnavailable

logger = logging.getLogger(__name__)
settings = get_settings()

GOOGLE_DEFAULT_EXPIRES_IN = 3600
INSTAGRAM_DEFAULT_EXPIRES_IN = 60 * 24 * 3600


@dataclass(frozen=True)
class ValidToken:
    token: str
    platform_account_id: str


class TokenLifecycleManager:
    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        refresh_skew: timedelta | None = None,
        instagram_refresh_skew: timedelta | None = None,
    ):
        self._client = http_client
        self.refresh_skew = refresh_skew or timedelta(minutes=settings.token_refresh_skew_minutes)
        self.instagram_refresh_skew = instagram_refresh_skew or timedelta(
            days=settings.instagram_refresh_skew_days
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=settings.api_timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def skew_for(self, platform: Platform) -> timedelta:
        if platform == Platform.INSTAGRAM:
            return self.instagram_refresh_skew
        return self.refresh_skew

    def needs_refresh(self, connection: PlatformConnection, now: datetime | None = None) -> bool:
        return connection.expires_within(self.skew_for(connection.platform), now)

    async def get_connection(
        self, db: AsyncSession, account_id: str, platform: Platform
    ) -> PlatformConnection:
        result = await db.execute(
            select(PlatformConnection).where(
                PlatformConnection.account_id == account_id,
                PlatformConnection.platform == platform,
            )
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            raise NoConnection(account_id, platform.value)
        return connection

    async def get_valid_token(
        self, db: AsyncSession, account_id: str, platform: Platform
    ) -> ValidToken:
        """Return a usable access token, refreshing it first if it is about to expire."""
        connection = await self.get_connection(db, account_id, platform)

        if self.needs_refresh(connection):
            logger.info(f"Refreshing {platform.value} token for account {account_id}")
            if platform == Platform.YOUTUBE:
                access_token, expires_in = await self._refresh_google(connection)
            else:
                access_token, expires_in = await self._refresh_instagram(connection)

            connection.access_token = access_token
            connection.expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
            await db.commit()

        return ValidToken(
            token=connection.access_token,
            platform_account_id=connection.external_account_id,
        )

    async def _refresh_google(self, connection: PlatformConnection) -> tuple[str, int]:
        if not connection.refresh_token:
            raise RefreshUnavailable(connection.platform.value)

        client = await self._get_client()
        try:
            resp = await client.post(
                settings.google_token_url,
                data={
                    "client_id": settings.google_client_id,
                    "client_secret": settings.google_client_secret,
                    "refresh_token": connection.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.RequestError as e:
            raise RefreshFailed(None, str(e)) from e

        if not resp.is_success:
            logger.error(f"Google token refresh failed: {resp.status_code} - {resp.text}")
            raise RefreshFailed(resp.status_code, resp.text)

        data = resp.json()
        return data["access_token"], int(data.get("expires_in", GOOGLE_DEFAULT_EXPIRES_IN))

    async def _refresh_instagram(self, connection: PlatformConnection) -> tuple[str, int]:
        """Exchange the current long-lived token for a fresh one.

        Instagram has no separate refresh token; the token refreshes itself.
        """
        client = await self._get_client()
        try:
            resp = await client.get(
                settings.instagram_refresh_url,
                params={
                    "grant_type": "ig_refresh_token",
                    "access_token": connection.access_token,
                },
            )
        except httpx.RequestError as e:
            raise RefreshFailed(None, str(e)) from e

        if not resp.is_success:
            logger.error(f"Instagram token refresh failed: {resp.status_code} - {resp.text}")
            raise RefreshFailed(resp.status_code, resp.text)

        data = resp.json()
        return data["access_token"], int(data.get("expires_in", INSTAGRAM_DEFAULT_EXPIRES_IN))


async def connected_account_ids(db: AsyncSession, platform: Platform) -> list[str]:
    """Accounts holding a connection for ``platform``, oldest connection first."""
    result = await db.execute(
        select(PlatformConnection.account_id)
        .where(PlatformConnection.platform == platform)
        .order_by(PlatformConnection.created_at)
    )
    return list(result.scalars().all())
