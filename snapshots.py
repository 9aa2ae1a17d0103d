"""Snapshot types, file naming and JSON parsing for community statistics.

Daily snapshots are pre-computed JSON files published once per day and
per community on a static host.  This module knows how those files are
named and where they live, and turns their raw JSON into typed records.
It never performs I/O; fetching lives in ``snapshot_client``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, ClassVar

import config


MONTH_ABBREVIATIONS = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)
_WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# Published verbatim in some analyses; removed before display.
REDACTED_SENTENCE = (
    "ome users are threatening to report the project to regulatory authorities."
)

_SUMMARY_RE = re.compile(r"Summary:\s*(.+?)(?=Top Community Questions:|\Z)", re.DOTALL)
_QUESTIONS_RE = re.compile(r"Top Community Questions:\s*(.+)\Z", re.DOTALL)
_BULLET_RE = re.compile(r"^[-•]\s*")


class Platform(str, Enum):
    TELEGRAM = "telegram"
    DISCORD = "discord"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SnapshotError(Exception):
    """Base class for every snapshot fetch failure."""


class SnapshotNotFound(SnapshotError):
    """The host answered with a non-success status for *url*."""

    def __init__(self, url: str, status: int):
        self.url = url
        self.status = status
        super().__init__(f"HTTP {status}: {url}")


class TransportFailure(SnapshotError):
    """The request for *url* never produced a response (DNS, timeout, reset)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Transport failure for {url}: {reason}")


class ParseFailure(SnapshotError):
    """The body at *url* was not a JSON object."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Malformed snapshot at {url}: {reason}")


class SnapshotUnavailable(SnapshotError):
    """Neither the requested day nor the day before it could be fetched."""

    def __init__(self, requested_day: date, status: int | None = None):
        self.requested_day = requested_day
        self.status = status
        message = f"Data not found for {format_display_date(requested_day)}"
        if status is not None:
            message = f"HTTP {status}: {message}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def date_stem(day: date) -> str:
    """Return the ``{mon}{day}`` stem used by every snapshot file name.

    The month is the lowercase English abbreviation and the day has no
    leading zero, independent of the process locale.

    >>> date_stem(date(2026, 3, 3))
    'mar3'
    """
    return f"{MONTH_ABBREVIATIONS[day.month - 1]}{day.day}"


def daily_filename(platform: Platform, day: date) -> str:
    """Return the daily snapshot file name for *platform* on *day*."""
    if platform is Platform.TELEGRAM:
        return f"{date_stem(day)}_processed.json"
    return f"{date_stem(day)}.json"


def cumulative_filename(day: date) -> str:
    """Return the all-time snapshot file name published as of *day*."""
    return f"{date_stem(day)}cumm.json"


def format_display_date(day: date) -> str:
    """Format *day* as ``Www Mmm DD YYYY`` (e.g. ``Tue Mar 03 2026``)."""
    month = MONTH_ABBREVIATIONS[day.month - 1].capitalize()
    return f"{_WEEKDAY_NAMES[day.weekday()]} {month} {day.day:02d} {day.year}"


@dataclass(frozen=True)
class SnapshotSource:
    """Where the snapshots of one platform/community pair are published.

    Telegram files live in one directory per community.  Discord has a
    single community: daily files sit at the repository root and
    cumulative files in ``config.DISCORD_CUMULATIVE_DIR``.
    """

    platform: Platform
    community: str = config.DEFAULT_COMMUNITY

    @classmethod
    def for_selection(cls, platform: Platform, community: str) -> SnapshotSource:
        if platform is Platform.DISCORD:
            return cls(Platform.DISCORD, config.DISCORD_CUMULATIVE_DIR)
        return cls(Platform.TELEGRAM, community)

    @property
    def key(self) -> str:
        """Identifier for per-community bookkeeping such as pollers."""
        return self.community

    def daily_url(self, day: date) -> str:
        name = daily_filename(self.platform, day)
        if self.platform is Platform.TELEGRAM:
            return f"{config.TELEGRAM_BASE_URL}/{self.community}/{name}"
        return f"{config.DISCORD_BASE_URL}/{name}"

    def cumulative_url(self, day: date) -> str:
        name = cumulative_filename(day)
        if self.platform is Platform.TELEGRAM:
            return f"{config.TELEGRAM_BASE_URL}/{self.community}/{name}"
        return f"{config.DISCORD_BASE_URL}/{config.DISCORD_CUMULATIVE_DIR}/{name}"


# ---------------------------------------------------------------------------
# Snapshot types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LeaderboardEntry:
    name: str
    count: int


@dataclass(frozen=True)
class Section:
    name: str
    msgs: int


@dataclass(frozen=True)
class Analysis:
    summary: str = ""
    questions: tuple[str, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """Fields every daily snapshot carries, whatever its platform."""

    platform: ClassVar[Platform]

    day: date
    messages: int
    users: int
    hourly: dict[str, int]
    analysis: Analysis


@dataclass(frozen=True)
class TelegramSnapshot(Snapshot):
    platform: ClassVar[Platform] = Platform.TELEGRAM

    sections: tuple[Section, ...] = ()
    community_users: tuple[LeaderboardEntry, ...] = ()
    moderators: tuple[LeaderboardEntry, ...] = ()


@dataclass(frozen=True)
class DiscordSnapshot(Snapshot):
    platform: ClassVar[Platform] = Platform.DISCORD

    top_moderators: tuple[LeaderboardEntry, ...] = ()
    top_chatters: tuple[LeaderboardEntry, ...] = ()


@dataclass(frozen=True)
class CumulativeSnapshot:
    platform: Platform
    cumulative_until: str
    total_active_hours: dict[str, int] = field(default_factory=dict)
    top_moderators: tuple[LeaderboardEntry, ...] = ()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_analysis(text: str) -> Analysis:
    """Split a free-text AI analysis into a summary and a question list.

    The summary is the text between ``Summary:`` and ``Top Community
    Questions:`` (or the end of the text).  Questions are the lines after
    ``Top Community Questions:`` with bullet markers removed and blank
    lines dropped.

    Args:
        text: The ``ai_analysis`` field of a Telegram snapshot.

    Returns:
        An ``Analysis`` with the trimmed summary and ordered questions.
        Missing sections yield an empty summary or an empty tuple.
    """
    if not isinstance(text, str):
        return Analysis()

    summary_match = _SUMMARY_RE.search(text)
    summary = summary_match.group(1).strip() if summary_match else ""
    summary = summary.replace(REDACTED_SENTENCE, "").strip()

    questions: list[str] = []
    questions_match = _QUESTIONS_RE.search(text)
    if questions_match:
        for line in questions_match.group(1).split("\n"):
            question = _BULLET_RE.sub("", line.strip())
            if question:
                questions.append(question)

    return Analysis(summary=summary, questions=tuple(questions))


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _hourly(value: Any) -> dict[str, int]:
    return {str(hour): _as_int(count) for hour, count in _as_dict(value).items()}


def _leaderboard(entries: Any) -> tuple[LeaderboardEntry, ...]:
    """Normalise leaderboard rows that carry count, points or messages."""
    rows = []
    for entry in _as_list(entries):
        if not isinstance(entry, dict):
            continue
        count = entry.get("count", entry.get("points", entry.get("messages")))
        rows.append(LeaderboardEntry(name=str(entry.get("name", "")), count=_as_int(count)))
    return tuple(rows)


def _parse_telegram(day: date, raw: dict) -> TelegramSnapshot:
    totals = _as_dict(raw.get("totals"))
    leaderboards = _as_dict(raw.get("leaderboards"))
    sections = tuple(
        Section(name=str(s.get("name", "")), msgs=_as_int(s.get("msgs")))
        for s in _as_list(raw.get("sections"))
        if isinstance(s, dict)
    )
    return TelegramSnapshot(
        day=day,
        messages=_as_int(totals.get("messages")),
        users=_as_int(totals.get("users")),
        hourly=_hourly(raw.get("active_hours_sgt")),
        analysis=parse_analysis(raw.get("ai_analysis")),
        sections=sections,
        community_users=_leaderboard(leaderboards.get("community_users")),
        moderators=_leaderboard(leaderboards.get("moderators")),
    )


def _parse_discord(day: date, raw: dict) -> DiscordSnapshot:
    vitals = _as_dict(raw.get("vitals"))
    ai = _as_dict(raw.get("ai_analysis"))
    questions = tuple(str(q) for q in _as_list(ai.get("questions")) if q)
    return DiscordSnapshot(
        day=day,
        messages=_as_int(vitals.get("total_messages")),
        users=_as_int(vitals.get("active_users_count")),
        hourly=_hourly(raw.get("hourly_activity")),
        analysis=Analysis(summary=str(ai.get("summary") or ""), questions=questions),
        top_moderators=_leaderboard(raw.get("top_moderators")),
        top_chatters=_leaderboard(raw.get("top_chatters")),
    )


def parse_snapshot(platform: Platform, day: date, raw: dict) -> Snapshot:
    """Build the platform-specific snapshot for *day* from decoded JSON.

    Access is shallow: absent fields default to zero or empty, nothing
    is validated beyond type checks needed to read the value.
    """
    if platform is Platform.TELEGRAM:
        return _parse_telegram(day, raw)
    return _parse_discord(day, raw)


def parse_cumulative(platform: Platform, raw: dict) -> CumulativeSnapshot:
    """Build a ``CumulativeSnapshot`` from decoded ``*cumm.json`` content."""
    return CumulativeSnapshot(
        platform=platform,
        cumulative_until=str(raw.get("cumulative_until") or ""),
        total_active_hours=_hourly(raw.get("total_active_hours")),
        top_moderators=_leaderboard(raw.get("top_moderators")),
    )
