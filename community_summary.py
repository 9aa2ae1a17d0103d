"""
Print a one-off text report of a community's statistics for a given day.

Resolves the same data the dashboard shows (daily snapshot with its
one-day fallback, day-over-day comparison, 7-day hourly window and the
all-time snapshot) and prints it without starting any timers.

Usage:
    python community_summary.py --platform telegram --community SODEX --date 2026-03-03
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from typing import Any

import httpx

import config
from analytics import print_summary_report
from dashboard_state import Action, ActionType, DashboardController, SelectionState, reduce_selection
from snapshot_client import SnapshotClient


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print community statistics for one day")
    parser.add_argument(
        "--platform", choices=["telegram", "discord"], default="telegram",
        help="Chat platform (default: telegram)",
    )
    parser.add_argument(
        "--community", choices=sorted(config.COMMUNITIES), default=config.DEFAULT_COMMUNITY,
        help="Telegram community (ignored for discord)",
    )
    parser.add_argument(
        "--date", type=date.fromisoformat, default=None,
        help="Day to report, YYYY-MM-DD (default: yesterday)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every request")
    return parser.parse_args(argv)


def build_selection(args: argparse.Namespace, today: date) -> SelectionState:
    """Turn CLI arguments into a validated selection.

    Raises:
        ValueError: If the requested date is in the future.
    """
    actions = [
        Action(ActionType.SELECT_PLATFORM, args.platform),
        Action(ActionType.SELECT_COMMUNITY, args.community),
    ]
    if args.date is not None:
        actions.append(Action(ActionType.SELECT_DATE, args.date))

    state = SelectionState.initial(today)
    for action in actions:
        state = reduce_selection(state, action, today)
    return state


async def collect_payload(selection: SelectionState) -> dict[str, Any]:
    """Load every block for *selection* once and return the dashboard payload."""
    async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT_SECONDS, follow_redirects=True) as http:
        controller = DashboardController(SnapshotClient(http))
        controller.state = selection
        await controller.load_all()
        return controller.payload()


def main(argv: list[str] | None = None) -> None:
    """Entry point: resolve, print, and exit 1 when no snapshot was found."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        selection = build_selection(args, date.today())
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    payload = asyncio.run(collect_payload(selection))
    print_summary_report(payload)

    if payload["snapshot"] is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
