"""Shared fixtures for community insights tests."""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import DISCORD, TELEGRAM, SnapshotHost, make_discord_raw, make_telegram_raw
from snapshot_client import SnapshotClient


@pytest.fixture()
def host() -> SnapshotHost:
    """Empty snapshot host; every URL answers 404 until published."""
    return SnapshotHost()


@pytest.fixture()
def snapshot_client(host) -> SnapshotClient:
    return SnapshotClient(host.http_client())


@pytest.fixture()
def live_host() -> SnapshotHost:
    """Host with data around the real current date, for the FastAPI app.

    The app's controller uses the wall clock, so yesterday (its default
    selection), the day before and yesterday's cumulative file exist for
    Telegram/SOSOVALUE and Discord.
    """
    host = SnapshotHost()
    yesterday = date.today() - timedelta(days=1)
    for offset, messages in ((0, 150), (1, 100)):
        day = yesterday - timedelta(days=offset)
        host.publish(TELEGRAM, day, make_telegram_raw(messages=messages))
        host.publish(DISCORD, day, make_discord_raw(messages=messages * 2))
    host.publish_cumulative(
        TELEGRAM, yesterday,
        {"cumulative_until": yesterday.isoformat(), "total_active_hours": {"09 AM": 900}},
    )
    return host


@pytest.fixture()
def client(live_host):
    """TestClient for app.py backed by the in-memory snapshot host.

    Patches the HTTP client factory so no real network is touched.
    """
    import app as app_module

    with patch.object(app_module, "_make_http_client", live_host.http_client):
        with TestClient(app_module.app) as tc:
            yield tc
