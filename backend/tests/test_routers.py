from datetime import datetime, timedelta, timezone

import httpx
import pytest
from jose import jwt

from config import get_settings
from database import get_db
from main import app
from services.channel_sync import get_orchestrator
from services.errors import PermanentAPIError
from services.snapshot_capture import get_snapshot_capture

from helpers import analytics_response

settings = get_settings()
SERVICE_HEADERS = {"Authorization": f"Bearer {settings.service_role_key}"}


def user_headers(account_id: str = "acct-1") -> dict:
    token = jwt.encode(
        {
            "sub": account_id,
            "aud": "authenticated",
            "email": f"{account_id}@example.com",
            "role": "authenticated",
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        settings.gotrue_jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory, orchestrator, snapshot_capture):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_snapshot_capture] = lambda: snapshot_capture
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_missing_credentials_are_rejected(client):
    resp = await client.get("/api/youtube/quota")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing authorization header"}


async def test_invalid_token_is_rejected(client):
    resp = await client.get("/api/youtube/quota", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_user_reads_own_quota(client):
    resp = await client.get("/api/youtube/quota", headers=user_headers())
    assert resp.status_code == 200
    assert resp.json()["usedToday"] == 0
    assert resp.json()["remaining"] == 10000


async def test_user_cannot_act_on_another_account(client):
    resp = await client.get("/api/youtube/quota?accountId=acct-2", headers=user_headers())
    assert resp.status_code == 403


async def test_service_caller_must_name_account(client):
    resp = await client.post("/api/youtube/sync-daily", json={}, headers=SERVICE_HEADERS)
    assert resp.status_code == 400

    resp = await client.get("/api/youtube/quota?accountId=acct-9", headers=SERVICE_HEADERS)
    assert resp.status_code == 200


async def test_backfill_rejects_inverted_range(client, make_connection):
    await make_connection()
    resp = await client.post(
        "/api/youtube/backfill",
        json={"fromDate": "2024-03-01", "toDate": "2024-02-01"},
        headers=user_headers(),
    )
    assert resp.status_code == 400


async def test_backfill_endpoint(client, make_connection, upstream):
    await make_connection()
    upstream.on("/reports", analytics_response(["views"], []))
    upstream.on("/channels", {"items": []})

    resp = await client.post(
        "/api/youtube/backfill",
        json={"fromDate": "2024-01-01", "toDate": "2024-01-31"},
        headers=user_headers(),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["channelRows"] == 0
    # every report except the per-video one (no uploads) runs one chunk
    assert body["chunksProcessed"] == 7
    assert body["geographyRows"] == 0
    assert body["failedChunks"] == []
    assert body["quotaExhausted"] is False


async def test_malformed_request_is_a_json_400(client):
    resp = await client.post(
        "/api/youtube/backfill",
        json={"fromDate": "2024-13-01"},
        headers=user_headers(),
    )

    assert resp.status_code == 400
    assert "fromDate" in resp.json()["error"]


async def test_unexpected_errors_are_reported_as_json(session_factory):
    class Broken:
        async def sync_youtube_daily(self, db, account_id, days_ago=None):
            raise RuntimeError("connection pool exhausted")

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_orchestrator] = lambda: Broken()
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/api/youtube/sync-daily", json={}, headers=user_headers())
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


async def test_daily_sync_without_connection_is_a_server_error(client):
    resp = await client.post("/api/youtube/sync-daily", json={}, headers=user_headers("acct-none"))
    assert resp.status_code == 500
    assert "reconnect" in resp.json()["error"]


async def test_daily_sync_over_quota_returns_429(client, make_connection, db, quota):
    await make_connection()
    await quota.track_usage(db, "acct-1", 9500)

    resp = await client.post("/api/youtube/sync-daily", json={"daysAgo": 2}, headers=user_headers())

    assert resp.status_code == 429
    assert "quota" in resp.json()["error"].lower()


async def test_instagram_realtime(client):
    resp = await client.get("/api/instagram/realtime", headers=user_headers())
    assert resp.status_code == 200
    assert resp.json()["liveViewers"] == 0
    assert set(resp.json()["account"]) == {"today", "last_60_minutes", "last_48_hours"}


async def test_cron_endpoints_require_service_role(client):
    resp = await client.post("/api/sync/daily-all", json={}, headers=user_headers())
    assert resp.status_code == 403


async def test_daily_all(client):
    resp = await client.post("/api/sync/daily-all", json={"platform": "youtube"}, headers=SERVICE_HEADERS)

    assert resp.status_code == 200
    results = resp.json()["results"]
    assert len(results) == 1
    assert results[0]["platform"] == "youtube"
    assert results[0]["usersSynced"] == 0


async def test_snapshots_endpoint(client):
    resp = await client.post("/api/sync/snapshots", json={}, headers=SERVICE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["accountsCaptured"] == 0


async def test_sync_status(client, db, make_connection, orchestrator, upstream):
    await make_connection()
    upstream.on("/reports", httpx.Response(403, text="forbidden"))
    with pytest.raises(PermanentAPIError):
        await orchestrator.sync_youtube_daily(db, "acct-1")

    resp = await client.get("/api/sync/status", headers=user_headers())

    assert resp.status_code == 200
    states = resp.json()
    assert len(states) == 1
    assert states[0]["platform"] == "youtube"
    assert states[0]["status"] == "failed"
    assert "forbidden" in states[0]["last_error"]
