"""
main.py – FastAPI entry point
=============================

Serves the current location to the overlay and accepts page fragments
from the browser bridge.

* The lifespan owns one :class:`PageDocument`, one shared
  ``httpx.AsyncClient`` (intercepted), the :class:`LocationEngine` and a
  :class:`LocationPoller` that records every change into the history.
* ``/relay`` lets the bridge route page requests through the intercepted
  client; only hosts in ``RELAY_ALLOWED_HOSTS`` are fetched.
"""

from __future__ import annotations

# ─── Std-lib / third-party ────────────────────────────────────────────
import datetime as dt
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlsplit

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

# ─── Project modules ──────────────────────────────────────────────────
from .config import (
    DEBUG_MODE,
    DEFAULT_ZOOM,
    MAP_TYPE,
    RELAY_ALLOWED_HOSTS,
    UPDATE_INTERVAL,
    USER_AGENT,
)
from .display import location_payload
from .engine import LocationEngine
from .history import add_location, clear_history, get_history
from .page import PageDocument
from .poller import LocationPoller

# ─── Logging ──────────────────────────────────────────────────────────
LOG = logging.getLogger("locator")

_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(logging.Formatter("%(levelname)s:     %(name)s - %(message)s"))
PROJECT_LOGGERS = (
    "locator",
    "page",
    "matchers",
    "scanner",
    "interceptors",
    "watcher",
    "engine",
    "poller",
    "history",
)
for _name in PROJECT_LOGGERS:
    _logger = logging.getLogger(_name)
    _logger.addHandler(_handler)
    _logger.setLevel(logging.DEBUG if DEBUG_MODE else logging.INFO)

UTC = dt.timezone.utc
BLANK_PAGE = "<html><head></head><body></body></html>"

limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------
# Lifespan – engine + polling loop
# ---------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: N802 – FastAPI naming style
    """Build the engine, start polling, tear everything down on exit."""
    document = PageDocument(BLANK_PAGE)
    http = httpx.AsyncClient(
        timeout=10.0, headers={"User-Agent": USER_AGENT}, follow_redirects=True
    )
    engine = LocationEngine(document, clients=[http])
    engine.initialize()

    poller = LocationPoller(engine, interval=UPDATE_INTERVAL)
    poller.add_listener(add_location)
    poller.start()

    app.state.document = document
    app.state.http = http
    app.state.engine = engine
    app.state.poller = poller
    LOG.info("[startup] polling every %.1fs", UPDATE_INTERVAL)

    yield  # ⇢ application runs here

    await poller.stop()
    engine.teardown()
    await http.aclose()
    LOG.info("[shutdown] engine stopped")


# ---------------------------------------------------------------------
# FastAPI instance & middleware
# ---------------------------------------------------------------------
app = FastAPI(title="OpenGuessr Locator", lifespan=lifespan)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Return 429 when rate limit is exceeded."""
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
    )


# Health probe --------------------------------------------------------
@app.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> PlainTextResponse:
    """Return HTTP 200 with body “ok” if the app is up."""
    return PlainTextResponse("ok", status_code=200)


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------
@app.get("/location.json")
async def location_json(
    request: Request,
    zoom: int = Query(DEFAULT_ZOOM, ge=0, le=21),
    map_type: str = Query(MAP_TYPE),
) -> JSONResponse:
    """Current location plus a ready-to-embed map URL (or nulls)."""
    engine: LocationEngine = request.app.state.engine
    coord = engine.get_current_location()
    try:
        payload = location_payload(coord, zoom, map_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    payload["timestamp"] = dt.datetime.now(UTC).isoformat()
    return JSONResponse(payload)


@app.get("/history.json")
async def history_json(limit: int | None = Query(None, ge=1)) -> dict[str, Any]:
    """Locations shown so far, newest first."""
    entries = get_history(limit=limit)
    return {"count": len(entries), "entries": entries}


@app.delete("/history")
async def delete_history() -> dict[str, bool]:
    clear_history()
    return {"ok": True}


@app.post("/page/fragments")
@limiter.limit("600/minute")
async def add_fragment(body: dict, request: Request) -> dict[str, Any]:
    """Attach markup to the watched page.

    Args:
        body: ``{"html": str, "parent": css selector | null}``.

    Raises:
        400: Missing html or unknown parent.
    """
    html = body.get("html")
    if not isinstance(html, str) or not html.strip():
        raise HTTPException(status_code=400, detail="html required")
    parent = body.get("parent")
    if parent is not None and not isinstance(parent, str):
        raise HTTPException(status_code=400, detail="parent must be a selector")

    document: PageDocument = request.app.state.document
    try:
        inserted = document.attach(html, parent)
    except LookupError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "inserted": len(inserted)}


@app.delete("/page/fragments")
async def remove_fragments(request: Request, selector: str = Query(...)) -> dict[str, Any]:
    document: PageDocument = request.app.state.document
    try:
        removed = document.detach(selector)
    except LookupError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "removed": removed}


@app.get("/relay")
@limiter.limit("300/minute")
async def relay(request: Request, url: str = Query(...)) -> Response:
    """Fetch *url* through the intercepted client and pass it back as-is."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or parts.hostname not in RELAY_ALLOWED_HOSTS:
        raise HTTPException(status_code=403, detail="host not allowed")

    http: httpx.AsyncClient = request.app.state.http
    try:
        upstream = await http.get(url)
    except httpx.HTTPError as exc:
        LOG.warning("[relay] FAIL %s %s", url, exc)
        raise HTTPException(status_code=502, detail="upstream request failed") from exc

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type"),
    )
