"""Async fetches of community snapshots from the static file host.

Every read is a plain GET with a cache-busting ``t`` query parameter.
Missing files are the normal "not published yet" condition, so they are
logged at INFO and never treated as application errors.

Overlapping calls for the same file are independent and idempotent; when
two loads race, whichever resolves last is what the caller ends up
displaying.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date, timedelta

import httpx

from analytics import merge_hourly_counts
from snapshots import (
    CumulativeSnapshot,
    ParseFailure,
    Snapshot,
    SnapshotError,
    SnapshotNotFound,
    SnapshotSource,
    SnapshotUnavailable,
    TransportFailure,
    format_display_date,
    parse_cumulative,
    parse_snapshot,
)

logger = logging.getLogger(__name__)

WINDOW_DAYS = 7


@dataclass(frozen=True)
class ResolvedSnapshot:
    """Outcome of resolving the snapshot for a requested date.

    Attributes:
        snapshot: The snapshot that will be displayed.
        requested_day: The date the caller asked for.
        is_fallback: True when *snapshot* is the previous day's file.
        baseline: Snapshot of the day before the displayed one, or None.
    """

    snapshot: Snapshot
    requested_day: date
    is_fallback: bool = False
    baseline: Snapshot | None = None

    @property
    def displayed_day(self) -> date:
        return self.snapshot.day

    @property
    def notice(self) -> str | None:
        """User-facing note shown when the previous day is displayed."""
        if not self.is_fallback:
            return None
        return (
            f"Showing data from {format_display_date(self.displayed_day)} "
            "(today's data not available yet)"
        )


def _cache_buster() -> dict[str, str]:
    return {"t": str(int(time.time() * 1000))}


class SnapshotClient:
    """Reads daily and cumulative snapshots through an ``httpx.AsyncClient``.

    The client is owned by the caller (the FastAPI lifespan or the CLI),
    which is also responsible for closing it.
    """

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    async def fetch_json(self, url: str) -> dict:
        """GET *url* and decode it as a JSON object.

        Raises:
            TransportFailure: If no response was received.
            SnapshotNotFound: If the response status is not 2xx.
            ParseFailure: If the body is not a JSON object.
        """
        try:
            response = await self._http.get(url, params=_cache_buster())
        except httpx.HTTPError as exc:
            logger.warning("Transport failure fetching %s: %s", url, exc)
            raise TransportFailure(url, str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            logger.info("Snapshot not available (%d): %s", response.status_code, url)
            raise SnapshotNotFound(url, response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("Invalid JSON at %s: %s", url, exc)
            raise ParseFailure(url, str(exc)) from exc
        if not isinstance(data, dict):
            logger.warning("Expected a JSON object at %s, got %s", url, type(data).__name__)
            raise ParseFailure(url, f"expected object, got {type(data).__name__}")
        return data

    async def fetch_daily(self, source: SnapshotSource, day: date) -> Snapshot:
        """Fetch and parse the daily snapshot of *source* for *day*."""
        raw = await self.fetch_json(source.daily_url(day))
        return parse_snapshot(source.platform, day, raw)

    async def fetch_optional(self, source: SnapshotSource, day: date) -> Snapshot | None:
        """Like ``fetch_daily`` but any ``SnapshotError`` yields None."""
        try:
            return await self.fetch_daily(source, day)
        except SnapshotError:
            return None

    async def resolve(self, source: SnapshotSource, day: date) -> ResolvedSnapshot:
        """Return the best available snapshot for *day*.

        Tries *day* first and, when it is missing or unreachable, the day
        before it exactly once.  The baseline for whichever day ends up
        displayed is fetched afterwards on a best-effort basis.

        Args:
            source: Platform/community whose snapshots are read.
            day: The date selected by the user.

        Returns:
            A ``ResolvedSnapshot``; ``is_fallback`` is set when the
            previous day's file is returned.

        Raises:
            SnapshotUnavailable: If neither *day* nor *day* - 1 exists.
            ParseFailure: If a fetched file is not a JSON object.
        """
        try:
            snapshot = await self.fetch_daily(source, day)
            is_fallback = False
        except (SnapshotNotFound, TransportFailure) as primary_error:
            previous_day = day - timedelta(days=1)
            logger.info(
                "[%s] No data for %s, trying %s",
                source.key, day.isoformat(), previous_day.isoformat(),
            )
            try:
                snapshot = await self.fetch_daily(source, previous_day)
            except (SnapshotNotFound, TransportFailure):
                raise SnapshotUnavailable(
                    day, getattr(primary_error, "status", None)
                ) from primary_error
            is_fallback = True

        baseline = await self.fetch_baseline(source, snapshot.day)
        return ResolvedSnapshot(
            snapshot=snapshot,
            requested_day=day,
            is_fallback=is_fallback,
            baseline=baseline,
        )

    async def fetch_baseline(self, source: SnapshotSource, displayed_day: date) -> Snapshot | None:
        """Fetch the comparison snapshot for the day before *displayed_day*."""
        return await self.fetch_optional(source, displayed_day - timedelta(days=1))

    async def fetch_window_hours(
        self,
        source: SnapshotSource,
        end_day: date,
        days: int = WINDOW_DAYS,
    ) -> list[dict]:
        """Sum hourly activity over the *days* days ending on *end_day*.

        All days are requested concurrently.  Days that fail to load add
        nothing and never abort the aggregation.

        Returns:
            24 ``{"hour": label, "count": n}`` dicts in canonical order.
        """
        window = [end_day - timedelta(days=offset) for offset in range(days)]
        results = await asyncio.gather(
            *(self.fetch_optional(source, day) for day in window)
        )
        loaded = [snapshot for snapshot in results if snapshot is not None]
        logger.debug(
            "[%s] Window ending %s: %d/%d days loaded",
            source.key, end_day.isoformat(), len(loaded), days,
        )
        return merge_hourly_counts(
            (snapshot.hourly for snapshot in loaded), source.platform,
        )

    async def fetch_cumulative(self, source: SnapshotSource, as_of: date) -> CumulativeSnapshot:
        """Fetch the all-time snapshot published as of *as_of*.

        Raises:
            SnapshotError: Any fetch failure, left to the caller to report.
        """
        raw = await self.fetch_json(source.cumulative_url(as_of))
        return parse_cumulative(source.platform, raw)

    async def probe(self, source: SnapshotSource, day: date) -> bool:
        """Return True once the daily file for *day* is published."""
        url = source.daily_url(day)
        try:
            await self.fetch_json(url)
        except ParseFailure:
            # Published, even if unreadable; the regular load will report it.
            logger.info("[%s] %s is now available (unparseable)", source.key, url)
            return True
        except SnapshotError as exc:
            logger.info("[%s] Still waiting for %s: %s", source.key, url, exc)
            return False
        logger.info("[%s] %s is now available", source.key, url)
        return True
