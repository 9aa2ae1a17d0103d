"""Runtime configuration for the Community Insights dashboard.

Every value can be overridden with an environment variable so the same
code runs against the public snapshot host or a local mirror.
"""

from __future__ import annotations

import os

__all__ = [
    "TELEGRAM_BASE_URL",
    "DISCORD_BASE_URL",
    "DISCORD_CUMULATIVE_DIR",
    "COMMUNITIES",
    "DEFAULT_COMMUNITY",
    "REFRESH_INTERVAL_SECONDS",
    "POLL_INTERVAL_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "ROOT_PATH",
    "LOG_LEVEL",
]

# ---------------------------------------------------------------------------
# Snapshot host
# ---------------------------------------------------------------------------
TELEGRAM_BASE_URL = os.getenv(
    "INSIGHTS_TELEGRAM_BASE_URL",
    "https://raw.githubusercontent.com/Eliasdegemu61/Json-data/main",
)
DISCORD_BASE_URL = os.getenv(
    "INSIGHTS_DISCORD_BASE_URL",
    "https://raw.githubusercontent.com/Eliasdegemu61/discord-bot-data/main",
)
DISCORD_CUMULATIVE_DIR = os.getenv("INSIGHTS_DISCORD_CUMULATIVE_DIR", "DISCORD")

# Telegram communities, in display order (value -> label)
COMMUNITIES = {
    "SOSOVALUE": "SoSoValue",
    "SODEX": "SoDEX",
}
DEFAULT_COMMUNITY = "SOSOVALUE"

# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------
REFRESH_INTERVAL_SECONDS = float(os.getenv("INSIGHTS_REFRESH_INTERVAL", "3600"))  # 1 hour
POLL_INTERVAL_SECONDS = float(os.getenv("INSIGHTS_POLL_INTERVAL", "1800"))  # 30 minutes
HTTP_TIMEOUT_SECONDS = float(os.getenv("INSIGHTS_HTTP_TIMEOUT", "15"))

# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
ROOT_PATH = os.getenv("INSIGHTS_ROOT_PATH", "")
LOG_LEVEL = os.getenv("INSIGHTS_LOG_LEVEL", "INFO")
