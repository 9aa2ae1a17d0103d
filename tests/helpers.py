"""Shared test helpers for community insights tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import date

import httpx

from snapshots import Platform, SnapshotSource

# Fixed "now" for controller tests; March keeps file names readable (mar9 ...).
TODAY = date(2026, 3, 10)

TELEGRAM = SnapshotSource(Platform.TELEGRAM, "SOSOVALUE")
SODEX = SnapshotSource(Platform.TELEGRAM, "SODEX")
DISCORD = SnapshotSource.for_selection(Platform.DISCORD, "SOSOVALUE")


def make_telegram_raw(
    messages: int = 120,
    users: int = 30,
    hours: dict[str, int] | None = None,
    analysis: str = "Summary: Calm day. Top Community Questions:\n- When listing?",
    sections: list[dict] | None = None,
    moderators: list[dict] | None = None,
    community_users: list[dict] | None = None,
) -> dict:
    """Build a Telegram ``*_processed.json`` body.

    Args:
        messages: totals.messages
        users: totals.users
        hours: active_hours_sgt histogram; defaults to two busy hours.

    Returns:
        A dict matching the published Telegram snapshot structure.
    """
    return {
        "totals": {"messages": messages, "users": users},
        "active_hours_sgt": hours if hours is not None else {"09 AM": 10, "08 PM": 25},
        "ai_analysis": analysis,
        "sections": sections if sections is not None else [{"name": "General", "msgs": 80}],
        "leaderboards": {
            "community_users": community_users
            if community_users is not None
            else [{"name": "alice", "count": 12}],
            "moderators": moderators if moderators is not None else [{"name": "mod", "points": 7}],
        },
    }


def make_discord_raw(
    messages: int = 300,
    users: int = 45,
    hours: dict[str, int] | None = None,
    summary: str = "Busy launch day.",
    questions: list[str] | None = None,
) -> dict:
    """Build a Discord ``{mon}{day}.json`` body."""
    return {
        "vitals": {"total_messages": messages, "active_users_count": users},
        "hourly_activity": hours if hours is not None else {"00:00": 4, "13:00": 16},
        "ai_analysis": {
            "summary": summary,
            "questions": questions if questions is not None else ["How to verify?"],
        },
        "top_moderators": [{"name": "discord-mod", "messages": 33}],
        "top_chatters": [{"name": "chatter", "messages": 21}],
    }


class SnapshotHost:
    """In-memory stand-in for the static file host.

    Serves published bodies with 200, unknown URLs with 404, and raises a
    transport error for URLs marked broken.  Every request URL (without
    its query string) is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.files: dict[str, object] = {}
        self.broken: set[str] = set()
        self.requests: list[str] = []
        self.params: list[dict[str, str]] = []

    def publish(self, source: SnapshotSource, day: date, body: object) -> str:
        url = source.daily_url(day)
        self.files[url] = body
        return url

    def publish_cumulative(self, source: SnapshotSource, day: date, body: object) -> str:
        url = source.cumulative_url(day)
        self.files[url] = body
        return url

    def break_daily(self, source: SnapshotSource, day: date) -> str:
        url = source.daily_url(day)
        self.broken.add(url)
        return url

    def handle(self, request: httpx.Request) -> httpx.Response:
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        self.requests.append(url)
        self.params.append(dict(request.url.params))
        if url in self.broken:
            raise httpx.ConnectError("connection refused", request=request)
        if url not in self.files:
            return httpx.Response(404, text="404: Not Found")
        body = self.files[url]
        if isinstance(body, str):
            return httpx.Response(200, text=body)
        return httpx.Response(200, json=body)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    def requested(self, fragment: str) -> list[str]:
        return [url for url in self.requests if fragment in url]
