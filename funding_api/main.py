"""
Funding dashboard API.

Run locally:
    uvicorn funding_api.main:app --reload --port 8000

Set FUNDING_DB_URL to the dataset (http(s) URL fetched with range requests,
or a local path); see funding_core.config for the other FUNDING_* settings.
"""

from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Set

import numpy as np
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse

from funding_api.schemas import DashboardRequest, HealthResponse, RoundsResponse
from funding_core.config import DashboardConfig, load_config
from funding_core.datasource import DataSource
from funding_core.errors import InitError, QueryError, QueryErrorKind
from funding_core.filters import FilterCriteria, normalize_filters
from funding_core.pipeline import DashboardPipeline, DashboardView, load_view
from funding_core.query import round_options_query
from funding_core.render import render_dashboard

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

_STATUS_BY_KIND = {
    QueryErrorKind.NOT_READY: 503,
    QueryErrorKind.TIMEOUT: 504,
    QueryErrorKind.ENGINE: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = load_config()
    source = DataSource(config.dataset)
    app.state.config = config
    app.state.source = source
    try:
        await source.initialize()
    except InitError:
        # Keep serving: /health reports the failure and /reload retries.
        logger.exception("Dataset initialization failed for %s", config.dataset.url)
    yield
    await source.close()


app = FastAPI(title="Funding Dashboard API", version="0.1.0", lifespan=lifespan)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for numpy scalars and non-finite floats."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    content: Dict[str, Any] = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, QueryError):
        content["kind"] = exc.kind.value
    return JSONResponse(status_code=status_code, content=content)


def _config(request: Request) -> DashboardConfig:
    return request.app.state.config


def _source(request: Request) -> DataSource:
    return request.app.state.source


def _health(config: DashboardConfig, source: DataSource) -> HealthResponse:
    err = source.init_error
    return HealthResponse(
        status=source.status,
        dataset=config.dataset.url,
        table=config.dataset.table,
        error=str(err) if err is not None else None,
    )


@app.get("/health", response_model=HealthResponse)
async def health(request: Request):
    return _health(_config(request), _source(request))


@app.post("/reload", response_model=HealthResponse)
async def reload_dataset(request: Request):
    config, source = _config(request), _source(request)
    source.reset()
    try:
        await source.initialize()
    except InitError as exc:
        logger.exception("Dataset re-initialization failed")
        return _error(exc, 503)
    return _health(config, source)


@app.get("/meta/rounds", response_model=RoundsResponse)
async def meta_rounds(request: Request):
    config, source = _config(request), _source(request)
    query = round_options_query(table=config.dataset.table)
    try:
        rows = await source.execute(query.text, query.params)
        return RoundsResponse(rounds=[str(row[0]) for row in rows])
    except QueryError as exc:
        logger.error("meta_rounds failed (%s): %s", exc.kind.value, exc)
        return _error(exc, _STATUS_BY_KIND[exc.kind])
    except Exception as exc:
        logger.exception("meta_rounds failed")
        return _error(exc)


@app.post("/dashboard")
async def dashboard(req: DashboardRequest, request: Request):
    config, source = _config(request), _source(request)
    criteria = normalize_filters(req.filters.model_dump())
    try:
        view = await load_view(
            source,
            criteria,
            page=req.page,
            table=config.dataset.table,
            items_per_page=config.items_per_page,
            top_n=config.top_n,
        )
        return _json(render_dashboard(view))
    except QueryError as exc:
        logger.error("dashboard query failed (%s): %s", exc.kind.value, exc)
        return _error(exc, _STATUS_BY_KIND[exc.kind])
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.websocket("/ws")
async def dashboard_events(websocket: WebSocket):
    """Event channel: one pipeline per connection, stale responses are never pushed.

    Client messages: {"type": "filters", "filters": {...}}, {"type": "page", "page": n},
    {"type": "step", "direction": -1 | 1}, {"type": "retry"}.
    Server messages: {"type": "view", "payload": {...}} or {"type": "error", ...}.
    """
    await websocket.accept()
    config: DashboardConfig = websocket.app.state.config
    pipeline = DashboardPipeline(
        websocket.app.state.source,
        table=config.dataset.table,
        items_per_page=config.items_per_page,
        top_n=config.top_n,
    )
    send_lock = asyncio.Lock()
    pending: Set[asyncio.Task] = set()

    async def send(message: Dict[str, Any]) -> None:
        async with send_lock:
            await websocket.send_json(jsonable_encoder(message))

    async def send_view(view: Optional[DashboardView]) -> None:
        if view is not None:
            await send({"type": "view", "payload": render_dashboard(view)})

    async def send_error(exc: Exception) -> None:
        kind = exc.kind.value if isinstance(exc, QueryError) else "init" if isinstance(exc, InitError) else "request"
        await send({"type": "error", "error": str(exc), "kind": kind})

    async def start(retry: bool = False) -> None:
        view = await (pipeline.retry() if retry else pipeline.start())
        if view is not None:
            await send_view(view)
        elif pipeline.last_error is not None:
            await send_error(pipeline.last_error)

    async def run_filters(criteria: FilterCriteria) -> None:
        sequence = pipeline.latest_sequence + 1
        view = await pipeline.apply_filters(criteria)
        if view is not None:
            await send_view(view)
        elif pipeline.latest_sequence == sequence and pipeline.last_error is not None:
            await send_error(pipeline.last_error)

    try:
        await start()
        while True:
            try:
                message = await websocket.receive_json()
                kind = message.get("type")
                if kind == "filters":
                    task = asyncio.create_task(run_filters(normalize_filters(message.get("filters") or {})))
                    pending.add(task)
                    task.add_done_callback(pending.discard)
                elif kind == "page":
                    await send_view(pipeline.set_page(int(message.get("page", 1))))
                elif kind == "step":
                    await send_view(pipeline.change_page(int(message.get("direction", 0))))
                elif kind == "retry":
                    await start(retry=True)
                else:
                    raise ValueError(f"Unknown message type: {kind!r}")
            except (TypeError, ValueError, AttributeError) as exc:
                await send_error(exc)
    except WebSocketDisconnect:
        logger.debug("Dashboard socket closed")
    finally:
        for task in pending:
            task.cancel()


if STATIC_DIR.is_dir():

    @app.get("/", response_class=HTMLResponse)
    async def serve_index():
        return HTMLResponse(
            content=(STATIC_DIR / "index.html").read_text(encoding="utf-8"),
            headers={"Cache-Control": "no-cache, no-store, must-revalidate", "Pragma": "no-cache"},
        )
