from datetime import datetime, timedelta, timezone

import httpx
import pytest

from models.platform_connection import Platform
from services.errors import NoConnection, RefreshFailed, RefreshUnavailable
from services.token_manager import TokenLifecycleManager, connected_account_ids


def manager_with(handler) -> tuple[TokenLifecycleManager, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request):
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return TokenLifecycleManager(http_client=client), seen


def _unexpected(request):
    raise AssertionError(f"unexpected refresh call to {request.url}")


async def test_valid_token_is_returned_without_refresh(db, make_connection):
    await make_connection(expires_in=timedelta(hours=1))
    tokens, seen = manager_with(_unexpected)

    credential = await tokens.get_valid_token(db, "acct-1", Platform.YOUTUBE)

    assert credential.token == "access-token"
    assert credential.platform_account_id == "UC123"
    assert seen == []


async def test_google_token_inside_skew_is_refreshed_and_persisted(db, make_connection):
    connection = await make_connection(expires_in=timedelta(minutes=2))
    tokens, seen = manager_with(
        lambda request: httpx.Response(200, json={"access_token": "new-token", "expires_in": 3599})
    )

    before = datetime.now(timezone.utc)
    credential = await tokens.get_valid_token(db, "acct-1", Platform.YOUTUBE)

    assert credential.token == "new-token"
    assert connection.access_token == "new-token"
    assert connection.expires_at >= before + timedelta(seconds=3599)
    body = seen[0].content.decode()
    assert "grant_type=refresh_token" in body
    assert "refresh_token=refresh-token" in body


@pytest.mark.parametrize(
    ("expires_in", "refreshed"),
    [(timedelta(minutes=4), True), (timedelta(minutes=10), False)],
)
async def test_google_refresh_skew_boundary(db, make_connection, expires_in, refreshed):
    await make_connection(expires_in=expires_in)
    tokens, seen = manager_with(
        lambda request: httpx.Response(200, json={"access_token": "new-token", "expires_in": 3599})
    )

    credential = await tokens.get_valid_token(db, "acct-1", Platform.YOUTUBE)

    assert len(seen) == (1 if refreshed else 0)
    assert credential.token == ("new-token" if refreshed else "access-token")


async def test_refresh_failure_surfaces_upstream_body(db, make_connection):
    connection = await make_connection(expires_in=timedelta(minutes=-10))
    tokens, _ = manager_with(
        lambda request: httpx.Response(400, text='{"error": "invalid_grant"}')
    )

    with pytest.raises(RefreshFailed) as exc_info:
        await tokens.get_valid_token(db, "acct-1", Platform.YOUTUBE)

    assert exc_info.value.message == 'Failed to refresh token: 400 - {"error": "invalid_grant"}'
    assert connection.access_token == "access-token"


async def test_expired_google_token_without_refresh_token(db, make_connection):
    await make_connection(refresh_token=None, expires_in=timedelta(minutes=-1))
    tokens, seen = manager_with(_unexpected)

    with pytest.raises(RefreshUnavailable):
        await tokens.get_valid_token(db, "acct-1", Platform.YOUTUBE)
    assert seen == []


async def test_google_token_without_expiry_is_refreshed(db, make_connection):
    await make_connection(expires_in=None)
    tokens, seen = manager_with(
        lambda request: httpx.Response(200, json={"access_token": "fresh"})
    )

    assert (await tokens.get_valid_token(db, "acct-1", Platform.YOUTUBE)).token == "fresh"
    assert len(seen) == 1


async def test_instagram_token_refreshed_within_a_week_of_expiry(db, make_connection):
    await make_connection(
        platform=Platform.INSTAGRAM,
        external_account_id="17841400000",
        access_token="ig-long-lived",
        refresh_token=None,
        expires_in=timedelta(days=3),
    )
    tokens, seen = manager_with(
        lambda request: httpx.Response(200, json={"access_token": "ig-renewed", "expires_in": 5184000})
    )

    credential = await tokens.get_valid_token(db, "acct-1", Platform.INSTAGRAM)

    assert credential.token == "ig-renewed"
    assert seen[0].method == "GET"
    assert seen[0].url.params["grant_type"] == "ig_refresh_token"
    assert seen[0].url.params["access_token"] == "ig-long-lived"


async def test_instagram_token_without_expiry_is_used_as_is(db, make_connection):
    await make_connection(
        platform=Platform.INSTAGRAM,
        external_account_id="17841400000",
        refresh_token=None,
        expires_in=None,
    )
    tokens, seen = manager_with(_unexpected)

    assert (await tokens.get_valid_token(db, "acct-1", Platform.INSTAGRAM)).token == "access-token"
    assert seen == []


async def test_missing_connection(db):
    tokens = TokenLifecycleManager()

    with pytest.raises(NoConnection) as exc_info:
        await tokens.get_valid_token(db, "nobody", Platform.YOUTUBE)
    assert "reconnect" in exc_info.value.message


async def test_connected_account_ids_filters_by_platform(db, make_connection):
    await make_connection(account_id="acct-1")
    await make_connection(account_id="acct-2")
    await make_connection(account_id="acct-3", platform=Platform.INSTAGRAM, external_account_id="1784")

    assert sorted(await connected_account_ids(db, Platform.YOUTUBE)) == ["acct-1", "acct-2"]
    assert await connected_account_ids(db, Platform.INSTAGRAM) == ["acct-3"]
