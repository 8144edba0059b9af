"""FastAPI intake service - queue listing, approve, reject."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

import httpx
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from predintake.api.schemas import ApproveResponse, ErrorResponse, HealthResponse, RejectResponse
from predintake.config import get_settings
from predintake.config.settings import CONFIG_DIR_ENV
from predintake.ingestion.polymarket.gamma import aggregate_by_event, fetch_events, filter_records, parse_events
from predintake.intake.payload import make_internal_event_id
from predintake.models import RejectRequest, approval_request_adapter
from predintake.storage.db import get_connection, init_schema
from predintake.storage.mappings import MappingConflictError, get_mappings, save_approval, save_rejection

log = structlog.get_logger(__name__)

# Set by run_api() before uvicorn imports the app.
_config_profile: str | None = None

EventsSource = Callable[[], list[dict[str, Any]]]


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings(_config_profile)
    conn = get_connection(settings.db_path)
    try:
        init_schema(conn)
    finally:
        conn.close()
    yield


app = FastAPI(title="PredIntake API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=message, code=code).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_json("invalid_request", str(exc), status_code=400)


def get_conn() -> Iterator[Any]:
    settings = get_settings(_config_profile)
    conn = get_connection(settings.db_path)
    try:
        init_schema(conn)
        yield conn
    finally:
        conn.close()


def get_events_source() -> EventsSource:
    settings = get_settings(_config_profile)

    def source() -> list[dict[str, Any]]:
        return fetch_events(
            base_url=settings.gamma_api_base,
            limit=settings.gamma_events_limit,
            timeout=settings.http_timeout_sec,
        )

    return source


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/api/polymarket/intake")
def intake_list(
    search: str | None = None,
    status: str | None = None,
    conn: Any = Depends(get_conn),
    events_source: EventsSource = Depends(get_events_source),
):
    """Open Polymarket events, one row per event, merged with stored decisions."""
    try:
        events = events_source()
    except httpx.HTTPError as e:
        log.warning("gamma_fetch_failed", error=str(e))
        return _error_json("upstream_failed", f"Polymarket fetch failed: {e}", status_code=502)
    markets = parse_events(events)
    mappings = get_mappings(conn, [m.polymarket_id for m in markets if m.polymarket_id])
    records = filter_records(aggregate_by_event(markets, mappings), search=search, status=status)
    return [r.to_wire() for r in records]


@app.post("/api/polymarket/intake/approve", response_model=ApproveResponse)
def intake_approve(body: dict[str, Any], conn: Any = Depends(get_conn)):
    """Persist an approval. Legacy token falls back to the first mapped outcome's token."""
    body = dict(body)
    if not body.get("internalEventId"):
        body["internalEventId"] = make_internal_event_id()
    if not body.get("polymarketTokenId"):
        outcomes = body.get("outcomeMapping")
        # Anything but a list of objects is left for the adapter to reject
        if isinstance(outcomes, list) and outcomes and isinstance(outcomes[0], dict):
            if outcomes[0].get("polymarketTokenId"):
                body["polymarketTokenId"] = outcomes[0]["polymarketTokenId"]
    try:
        request = approval_request_adapter.validate_python(body)
    except ValidationError as e:
        return _error_json(
            "invalid_request",
            "polymarketId, polymarketTokenId, internalEventId and marketType are required: " + str(e),
            status_code=400,
        )
    try:
        mapping = save_approval(conn, request)
    except MappingConflictError as e:
        return _error_json("conflict", str(e), status_code=409)
    log.info(
        "mapping_approved",
        polymarket_id=request.polymarket_id,
        internal_event_id=request.internal_event_id,
        outcomes=len(request.outcome_mapping),
    )
    return ApproveResponse(mapping=mapping)


@app.post("/api/polymarket/intake/reject", response_model=RejectResponse)
def intake_reject(body: RejectRequest, conn: Any = Depends(get_conn)):
    mapping = save_rejection(conn, body.polymarket_id, body.reason)
    log.info("mapping_rejected", polymarket_id=body.polymarket_id)
    return RejectResponse(mapping=mapping)


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    config_dir: Path | None = None,
) -> None:
    global _config_profile
    _config_profile = profile
    if config_dir is not None:
        os.environ[CONFIG_DIR_ENV] = str(config_dir)
    import uvicorn

    uvicorn.run("predintake.api.main:app", host=host, port=port, reload=False)
