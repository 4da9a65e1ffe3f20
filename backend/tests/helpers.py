"""Test doubles for upstream APIs and sleeping."""

from datetime import date
from typing import Any

import httpx

TODAY = date(2024, 3, 15)


class SleepRecorder:
    """Stands in for asyncio.sleep; records the requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeUpstream:
    """Routes requests by URL path suffix to canned responses.

    A responder may be a dict (200 JSON), an httpx.Response, a callable
    taking the request, or a list consumed one entry per call (the last
    entry repeats).
    """

    def __init__(self):
        self.routes: list[tuple[str, Any]] = []
        self.requests: list[httpx.Request] = []

    def on(self, path_suffix: str, responder: Any) -> None:
        self.routes.append((path_suffix, responder))

    def calls_to(self, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, responder in self.routes:
            if request.url.path.endswith(suffix):
                if isinstance(responder, list):
                    responder = responder.pop(0) if len(responder) > 1 else responder[0]
                if callable(responder):
                    responder = responder(request)
                if isinstance(responder, httpx.Response):
                    return responder
                return httpx.Response(200, json=responder)
        return httpx.Response(404, json={"error": f"no route for {request.url.path}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def analytics_response(headers: list[str], rows: list[list]) -> dict:
    return {
        "kind": "youtubeAnalytics#resultTable",
        "columnHeaders": [{"name": name} for name in headers],
        "rows": rows,
    }
