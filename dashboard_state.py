"""Selection state, reducer and the controller that owns the dashboard.

The user's selection (platform, community, date, theme) is an immutable
``SelectionState`` that only changes through ``reduce_selection``.  The
``DashboardController`` applies actions, reloads data when the selection
that drives the fetches changes, and owns the two timers that live as
long as that selection: the hourly refresh and the "wait for today"
poller.  Both are stopped before anything new is started, so switching
platform or community never leaves a timer behind.

Selection changes are applied one at a time, but the refresh timer's
loads are not serialised with them.  When two loads overlap, the one that
finishes last decides what the view shows.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

import config
from analytics import GENERIC_FAILURE_MESSAGE, build_dashboard_payload
from scheduler import PeriodicTask, PollerRegistry
from snapshot_client import SnapshotClient
from snapshots import (
    CumulativeSnapshot,
    Platform,
    Snapshot,
    SnapshotError,
    SnapshotNotFound,
    SnapshotSource,
    SnapshotUnavailable,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State and actions
# ---------------------------------------------------------------------------

class ActionType(str, Enum):
    SELECT_PLATFORM = "select_platform"
    SELECT_COMMUNITY = "select_community"
    SELECT_DATE = "select_date"
    TOGGLE_DARK_MODE = "toggle_dark_mode"


@dataclass(frozen=True)
class Action:
    type: ActionType
    value: Any = None


@dataclass(frozen=True)
class SelectionState:
    day: date
    platform: Platform = Platform.TELEGRAM
    community: str = config.DEFAULT_COMMUNITY
    dark_mode: bool = False

    @classmethod
    def initial(cls, today: date) -> SelectionState:
        """Default selection: Telegram, default community, yesterday."""
        return cls(day=today - timedelta(days=1))

    @property
    def source(self) -> SnapshotSource:
        return SnapshotSource.for_selection(self.platform, self.community)

    @property
    def fetch_key(self) -> tuple[Platform, str, date]:
        """The part of the selection that decides what gets fetched."""
        return (self.platform, self.community, self.day)


def reduce_selection(state: SelectionState, action: Action, today: date) -> SelectionState:
    """Return the selection that results from applying *action* to *state*.

    Args:
        state: Current selection.
        action: The user action to apply.
        today: Local calendar date, used to reject future dates.

    Returns:
        A new ``SelectionState`` (or *state* itself for a no-op).

    Raises:
        ValueError: For an unknown platform or community, or a date after
            *today*.
    """
    if action.type is ActionType.SELECT_PLATFORM:
        return replace(state, platform=Platform(action.value))

    if action.type is ActionType.SELECT_COMMUNITY:
        if action.value not in config.COMMUNITIES:
            raise ValueError(f"Unknown community: {action.value!r}")
        return replace(state, community=action.value)

    if action.type is ActionType.SELECT_DATE:
        day = action.value
        if isinstance(day, str):
            day = date.fromisoformat(day)
        if day > today:
            raise ValueError(f"{day.isoformat()} is in the future")
        return replace(state, day=day)

    if action.type is ActionType.TOGGLE_DARK_MODE:
        return replace(state, dark_mode=not state.dark_mode)

    raise ValueError(f"Unsupported action: {action.type!r}")


@dataclass
class DashboardView:
    """What the latest loads produced for the current selection."""

    snapshot: Snapshot | None = None
    baseline: Snapshot | None = None
    is_fallback: bool = False
    error: str | None = None
    weekly_hours: list[dict] | None = None
    cumulative: CumulativeSnapshot | None = None
    cumulative_error: str | None = None
    loading: bool = False
    last_updated: datetime | None = None


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class DashboardController:
    """Single owner of the selection, the view and their timers.

    Args:
        client: Fetches snapshots from the static host.
        today: Returns the local calendar date; injectable for tests.
        refresh_interval: Seconds between reloads of the displayed snapshot.
        poll_interval: Seconds between "wait for today" probes.
    """

    def __init__(
        self,
        client: SnapshotClient,
        *,
        today: Callable[[], date] = date.today,
        refresh_interval: float = config.REFRESH_INTERVAL_SECONDS,
        poll_interval: float = config.POLL_INTERVAL_SECONDS,
    ):
        self.client = client
        self._today = today
        self._refresh_interval = refresh_interval
        self.state = SelectionState.initial(today())
        self.view = DashboardView()
        self.pollers = PollerRegistry(poll_interval)
        self._refresh_task: PeriodicTask | None = None
        # start, dispatch and close run one at a time so a timer is never
        # started by one of them after another has torn the timers down.
        self._lifecycle = asyncio.Lock()
        self._closed = False

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Load the initial selection and start its timers."""
        async with self._lifecycle:
            await self._activate()

    async def close(self) -> None:
        """Stop every timer.  Timers are never started again afterwards."""
        self._closed = True
        async with self._lifecycle:
            await self._teardown()

    async def dispatch(self, *actions: Action) -> SelectionState:
        """Apply *actions* in order, then reload once if the fetch key changed.

        Either every action is applied or, when one is rejected, none is.
        Concurrent calls are applied one after the other.

        Raises:
            ValueError: If the reducer rejects an action.
        """
        async with self._lifecycle:
            previous = self.state
            today = self._today()
            state = previous
            for action in actions:
                state = reduce_selection(state, action, today)
            self.state = state
            if self.state.fetch_key != previous.fetch_key:
                logger.info(
                    "Selection changed to %s/%s/%s",
                    self.state.platform.value, self.state.community, self.state.day.isoformat(),
                )
                await self._teardown()
                await self._activate()
            return self.state

    async def _activate(self) -> None:
        await self.load_all()
        if self._closed:
            return

        self._refresh_task = PeriodicTask(
            f"refresh-{self.state.platform.value}", self.load_snapshot, self._refresh_interval,
        )
        self._refresh_task.start()

        if self.state.day < self._today():
            await self.pollers.start(self.state.source.key, self._make_probe(self.state.source))

    async def _teardown(self) -> None:
        # Cancel everything before the first await so no old timer gets
        # another tick while the others are being stopped.
        refresh_task, self._refresh_task = self._refresh_task, None
        if refresh_task is not None:
            refresh_task.cancel()
        self.pollers.cancel_all()

        if refresh_task is not None:
            await refresh_task.stop()
        await self.pollers.stop_all()

    def _make_probe(self, source: SnapshotSource):
        async def probe() -> bool:
            # "Yesterday" is re-evaluated on every tick so a poll that
            # runs past midnight looks for the new file.
            return await self.client.probe(source, self._today() - timedelta(days=1))
        return probe

    def running_timers(self) -> list[str]:
        """Names of the timers currently alive, for diagnostics and tests."""
        names = [f"poll-{key}" for key in self.pollers.active_keys()]
        if self._refresh_task is not None and self._refresh_task.running:
            names.insert(0, self._refresh_task.name)
        return names

    # -- loads ---------------------------------------------------------------

    async def load_all(self) -> None:
        await asyncio.gather(self.load_snapshot(), self.load_weekly(), self.load_cumulative())

    async def refresh(self) -> None:
        """Reload the displayed snapshot now (the refresh button)."""
        await self.load_snapshot()

    async def load_snapshot(self) -> None:
        """Resolve the selected day's snapshot into the view."""
        state = self.state
        view = self.view
        view.loading = True
        view.error = None
        try:
            resolved = await self.client.resolve(state.source, state.day)
        except SnapshotUnavailable as exc:
            view.snapshot = None
            view.baseline = None
            view.is_fallback = False
            view.error = str(exc)
        except SnapshotError as exc:
            logger.warning("[%s] Failed to load %s: %s", state.source.key, state.day, exc)
            view.snapshot = None
            view.baseline = None
            view.is_fallback = False
            view.error = GENERIC_FAILURE_MESSAGE
        else:
            view.snapshot = resolved.snapshot
            view.baseline = resolved.baseline
            view.is_fallback = resolved.is_fallback
            view.error = resolved.notice
            view.last_updated = datetime.now()
        finally:
            view.loading = False

    async def load_weekly(self) -> None:
        state = self.state
        self.view.weekly_hours = await self.client.fetch_window_hours(state.source, state.day)

    async def load_cumulative(self) -> None:
        """Load the all-time snapshot published as of yesterday."""
        source = self.state.source
        as_of = self._today() - timedelta(days=1)
        self.view.cumulative_error = None
        try:
            self.view.cumulative = await self.client.fetch_cumulative(source, as_of)
        except SnapshotNotFound as exc:
            self.view.cumulative = None
            self.view.cumulative_error = f"HTTP {exc.status}: Cumulative data not found"
        except SnapshotError as exc:
            self.view.cumulative = None
            self.view.cumulative_error = str(exc)

    # -- output --------------------------------------------------------------

    def is_polling(self) -> bool:
        return self.pollers.is_polling(self.state.source.key)

    def payload(self) -> dict[str, Any]:
        return build_dashboard_payload(self.state, self.view, polling=self.is_polling())
