"""Pure computations behind the community insights dashboard.

Turns resolved snapshots into the JSON payload rendered by the Chart.js
page (app.py) and the text report (community_summary.py).  Nothing here
performs I/O besides ``print_summary_report``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

import config
from snapshots import (
    CumulativeSnapshot,
    DiscordSnapshot,
    LeaderboardEntry,
    Platform,
    Snapshot,
    TelegramSnapshot,
)

if TYPE_CHECKING:
    from dashboard_state import DashboardView, SelectionState


# "12 AM", "01 AM", ... "11 AM", "12 PM", "01 PM", ... "11 PM"
TELEGRAM_HOUR_LABELS = tuple(
    f"{(hour % 12) or 12:02d} {'AM' if hour < 12 else 'PM'}" for hour in range(24)
)
# "00:00" ... "23:00"
DISCORD_HOUR_LABELS = tuple(f"{hour:02d}:00" for hour in range(24))

QUESTIONS_SHOWN = 3
# Some analyses number their questions ("1. Why?"); the UI numbers them itself.
_QUESTION_NUMBER_RE = re.compile(r"^\d+\.\s*")
NOT_FOUND_MESSAGE = "No data available for this date yet"
GENERIC_FAILURE_MESSAGE = "Failed to fetch data"

# Leaderboard sizes per platform
TELEGRAM_MODERATORS_SHOWN = 10
TELEGRAM_USERS_SHOWN = 10
DISCORD_MODERATORS_SHOWN = 5
DISCORD_CHATTERS_SHOWN = 10
CUMULATIVE_MODERATORS_SHOWN = 10
# SoSoValue publishes many small sections; only the busiest are shown.
SECTIONS_SHOWN = {"SOSOVALUE": 5}


def hour_labels(platform: Platform) -> tuple[str, ...]:
    """Return the 24 canonical hour labels used by *platform* snapshots."""
    if platform is Platform.TELEGRAM:
        return TELEGRAM_HOUR_LABELS
    return DISCORD_HOUR_LABELS


# ---------------------------------------------------------------------------
# Hourly histograms
# ---------------------------------------------------------------------------

def merge_hourly_counts(
    histograms: Iterable[Mapping[str, int]],
    platform: Platform,
) -> list[dict[str, Any]]:
    """Sum several hour-of-day histograms into one canonical series.

    Args:
        histograms: Per-day ``{hour_label: count}`` mappings.  Days that
            failed to load are simply left out by the caller.
        platform: Selects the canonical label set and order.

    Returns:
        Exactly 24 ``{"hour": label, "count": total}`` dicts in canonical
        hour order.  Hours with no data have a count of 0; labels outside
        the canonical set are ignored.
    """
    labels = hour_labels(platform)
    totals = dict.fromkeys(labels, 0)
    for histogram in histograms:
        for hour, count in histogram.items():
            if hour in totals:
                totals[hour] += count
    return [{"hour": hour, "count": totals[hour]} for hour in labels]


def hourly_series(histogram: Mapping[str, int]) -> list[dict[str, Any]]:
    """Return a single day's histogram as chart points in publication order."""
    return [{"hour": hour, "count": count} for hour, count in histogram.items()]


# ---------------------------------------------------------------------------
# Day-over-day comparison
# ---------------------------------------------------------------------------

def percent_change(current: float, previous: float) -> float:
    """Percentage change from *previous* to *current*.

    A zero baseline yields 100 when there is any current activity and 0
    otherwise.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def compute_comparison(current: int, previous: int | None) -> dict[str, Any] | None:
    """Build the delta badge for one metric.

    Args:
        current: Value on the displayed day.
        previous: Value on the baseline day, or None without a baseline.

    Returns:
        Dict with change, change_pct (1dp) and positive, or None when
        there is no non-zero baseline to compare against.
    """
    if not previous:
        return None
    change = current - previous
    return {
        "previous": previous,
        "change": change,
        "change_pct": round(percent_change(current, previous), 1),
        "positive": change >= 0,
    }


def _metric(current: int, baseline: Snapshot | None, attr: str) -> dict[str, Any]:
    previous = getattr(baseline, attr) if baseline is not None else None
    return {"value": current, "comparison": compute_comparison(current, previous)}


# ---------------------------------------------------------------------------
# Leaderboards
# ---------------------------------------------------------------------------

def top_entries(entries: Iterable[LeaderboardEntry], limit: int | None) -> list[dict[str, Any]]:
    """Return the first *limit* leaderboard rows (all when *limit* is None).

    Rows are kept in published order; ranks start at 1.
    """
    rows = list(entries)
    if limit is not None:
        rows = rows[:limit]
    return [
        {"rank": rank, "name": entry.name, "count": entry.count}
        for rank, entry in enumerate(rows, 1)
    ]


def _telegram_blocks(snapshot: TelegramSnapshot, community: str) -> dict[str, Any]:
    limit = SECTIONS_SHOWN.get(community)
    sections = snapshot.sections[:limit] if limit is not None else snapshot.sections
    return {
        "sections": [{"name": s.name, "msgs": s.msgs} for s in sections],
        "leaderboards": {
            "moderators": top_entries(snapshot.moderators, TELEGRAM_MODERATORS_SHOWN),
            "community_users": top_entries(snapshot.community_users, TELEGRAM_USERS_SHOWN),
        },
    }


def _discord_blocks(snapshot: DiscordSnapshot) -> dict[str, Any]:
    return {
        "sections": [],
        "leaderboards": {
            "moderators": top_entries(snapshot.top_moderators, DISCORD_MODERATORS_SHOWN),
            "chatters": top_entries(snapshot.top_chatters, DISCORD_CHATTERS_SHOWN),
        },
    }


def snapshot_blocks(snapshot: Snapshot, community: str) -> dict[str, Any]:
    """Compute the display blocks of one daily snapshot.

    Args:
        snapshot: Telegram or Discord snapshot being displayed.
        community: Active community, which decides how many sections show.

    Returns:
        Dict with keys: date, hourly, analysis, sections, leaderboards.
    """
    if isinstance(snapshot, TelegramSnapshot):
        blocks = _telegram_blocks(snapshot, community)
    elif isinstance(snapshot, DiscordSnapshot):
        blocks = _discord_blocks(snapshot)
    else:
        raise TypeError(f"Unsupported snapshot type: {type(snapshot).__name__}")

    return {
        "date": snapshot.day.isoformat(),
        "hourly": hourly_series(snapshot.hourly),
        "analysis": {
            "summary": snapshot.analysis.summary,
            "questions": [
                _QUESTION_NUMBER_RE.sub("", question)
                for question in snapshot.analysis.questions[:QUESTIONS_SHOWN]
            ],
        },
        **blocks,
    }


def cumulative_block(cumulative: CumulativeSnapshot) -> dict[str, Any]:
    """All-time block: hourly totals in canonical order plus moderators."""
    return {
        "until": cumulative.cumulative_until,
        "hourly": merge_hourly_counts([cumulative.total_active_hours], cumulative.platform),
        "top_moderators": top_entries(cumulative.top_moderators, CUMULATIVE_MODERATORS_SHOWN),
    }


def display_message(error: str | None) -> str | None:
    """Map a raw error text to what the page shows."""
    if not error:
        return None
    if "404" in error:
        return NOT_FOUND_MESSAGE
    return error


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

def build_dashboard_payload(
    selection: SelectionState,
    view: DashboardView,
    polling: bool = False,
) -> dict[str, Any]:
    """Assemble everything the dashboard page needs in one dict.

    Args:
        selection: Current platform, community, date and theme.
        view: What the last loads produced for that selection.
        polling: Whether the active source is waiting for today's file.

    Returns:
        Dict with keys: generated_at, selection, status, vitals, snapshot,
        weekly_hourly, cumulative, communities.  ``vitals`` and
        ``snapshot`` are None when nothing could be loaded.
    """
    snapshot = view.snapshot
    vitals = None
    snapshot_payload = None
    if snapshot is not None:
        vitals = {
            "messages": _metric(snapshot.messages, view.baseline, "messages"),
            "users": _metric(snapshot.users, view.baseline, "users"),
        }
        snapshot_payload = snapshot_blocks(snapshot, selection.community)

    return {
        "generated_at": datetime.now().isoformat(),
        "selection": {
            "platform": selection.platform.value,
            "community": selection.community,
            "community_label": config.COMMUNITIES.get(selection.community, selection.community),
            "date": selection.day.isoformat(),
            "dark_mode": selection.dark_mode,
        },
        "status": {
            "loading": view.loading,
            "last_updated": view.last_updated.isoformat() if view.last_updated else None,
            "error": view.error,
            "message": display_message(view.error),
            "displayed_date": snapshot.day.isoformat() if snapshot is not None else None,
            "is_fallback": view.is_fallback,
            "polling_for_today": polling,
        },
        "vitals": vitals,
        "snapshot": snapshot_payload,
        "weekly_hourly": view.weekly_hours or [],
        "cumulative": cumulative_block(view.cumulative) if view.cumulative else None,
        "cumulative_error": view.cumulative_error,
        "communities": [
            {"value": value, "label": label} for value, label in config.COMMUNITIES.items()
        ],
    }


# ---------------------------------------------------------------------------
# CLI report
# ---------------------------------------------------------------------------

def _format_comparison(metric: dict[str, Any]) -> str:
    comparison = metric["comparison"]
    if comparison is None:
        return ""
    sign = "+" if comparison["positive"] else ""
    return f" ({sign}{comparison['change']:,} / {sign}{comparison['change_pct']:.1f}%)"


def print_summary_report(payload: dict[str, Any]) -> None:
    """Print a dashboard payload as a human-readable report on stdout.

    Args:
        payload: Dict produced by ``build_dashboard_payload``.
    """
    selection = payload["selection"]
    status = payload["status"]

    print(f"\n{'=' * 60}")
    print(f"Community Insights: {selection['community_label']} ({selection['platform']})")
    print(f"{'=' * 60}")
    print(f"Requested Date: {selection['date']}")

    if status["message"]:
        print(f"Note: {status['message']}")

    vitals = payload["vitals"]
    snapshot = payload["snapshot"]
    if vitals and snapshot:
        print(f"Displayed Date: {status['displayed_date']}")
        print(f"Messages: {vitals['messages']['value']:,}{_format_comparison(vitals['messages'])}")
        print(f"Active Users: {vitals['users']['value']:,}{_format_comparison(vitals['users'])}")

        analysis = snapshot["analysis"]
        if analysis["summary"]:
            print(f"\nSummary:\n  {analysis['summary']}")
        if analysis["questions"]:
            print("\nTop Community Questions:")
            for i, question in enumerate(analysis["questions"], 1):
                print(f"  {i}. {question}")

        for board, rows in snapshot["leaderboards"].items():
            if not rows:
                continue
            print(f"\nTop {board.replace('_', ' ').title()}:")
            for row in rows:
                print(f"  {row['rank']:>2}. {row['name']} - {row['count']:,} messages")

    weekly = payload["weekly_hourly"]
    if weekly and any(point["count"] for point in weekly):
        busiest = max(weekly, key=lambda point: point["count"])
        print(f"\nBusiest Hour (last 7 days): {busiest['hour']} ({busiest['count']:,} messages)")

    cumulative = payload["cumulative"]
    if cumulative:
        print(f"\n{'=' * 60}")
        print(f"All Time (until {cumulative['until'] or 'yesterday'})")
        print(f"{'=' * 60}")
        total = sum(point["count"] for point in cumulative["hourly"])
        print(f"Messages by Hour, Total: {total:,}")
        for row in cumulative["top_moderators"]:
            print(f"  {row['rank']:>2}. {row['name']} - {row['count']:,} messages")
    elif payload["cumulative_error"]:
        print(f"\nAll-time data unavailable: {payload['cumulative_error']}")

    print(f"{'=' * 60}")
