"""FastAPI service for the Community Insights dashboard.

Serves a Chart.js dashboard of Telegram and Discord community statistics.
Snapshots are read from the static file host on demand; a refresh timer
and a "wait for today" poller run on the server's event loop for as long
as the current selection is active.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import date as date_type
from pathlib import Path

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

import config
from dashboard_state import Action, ActionType, DashboardController
from snapshot_client import SnapshotClient
from snapshots import Platform

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
TEMPLATE_PATH = Path(__file__).parent / "dashboard_template.html"


def _make_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=config.HTTP_TIMEOUT_SECONDS, follow_redirects=True)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    http = _make_http_client()
    controller = DashboardController(SnapshotClient(http))
    await controller.start()
    app.state.controller = controller
    logger.info("Dashboard started on %s", controller.state.source.key)
    try:
        yield
    finally:
        await controller.close()
        await http.aclose()


app = FastAPI(
    title="Community Insights Dashboard",
    root_path=config.ROOT_PATH,
    lifespan=lifespan,
)


class SelectionUpdate(BaseModel):
    """Body of POST /api/selection; omitted fields are left unchanged."""

    platform: Platform | None = None
    community: str | None = None
    date: date_type | None = None
    dark_mode: bool | None = None


def _controller(request: Request) -> DashboardController:
    return request.app.state.controller


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
def dashboard_html(request: Request):
    """Serve the dashboard HTML with injected data."""
    if not TEMPLATE_PATH.exists():
        raise HTTPException(status_code=500, detail="Template not found")

    data = _controller(request).payload()
    template = TEMPLATE_PATH.read_text(encoding="utf-8")
    data_json = json.dumps(data, ensure_ascii=False)
    data_json = data_json.replace("</", r"<\/")
    html = template.replace(
        "const DASHBOARD_DATA = {};",
        f"const DASHBOARD_DATA = {data_json};",
    )
    return HTMLResponse(content=html)


@app.get("/api/data")
def api_data(request: Request):
    """Return the full dashboard JSON payload."""
    return _controller(request).payload()


@app.get("/api/refresh")
async def api_refresh(request: Request):
    """Reload the displayed snapshot now and report when it was built."""
    controller = _controller(request)
    await controller.refresh()
    data = controller.payload()
    return {
        "status": "refreshed",
        "generated_at": data["generated_at"],
    }


@app.post("/api/selection")
async def api_selection(update: SelectionUpdate, request: Request):
    """Apply a platform/community/date/theme change and return the new payload."""
    controller = _controller(request)
    actions = []
    if update.platform is not None:
        actions.append(Action(ActionType.SELECT_PLATFORM, update.platform))
    if update.community is not None:
        actions.append(Action(ActionType.SELECT_COMMUNITY, update.community))
    if update.date is not None:
        actions.append(Action(ActionType.SELECT_DATE, update.date))
    if update.dark_mode is not None and update.dark_mode != controller.state.dark_mode:
        actions.append(Action(ActionType.TOGGLE_DARK_MODE))

    try:
        await controller.dispatch(*actions)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return controller.payload()
