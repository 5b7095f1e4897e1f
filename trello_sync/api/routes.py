"""
Trello Sync — Centralised router registration.

This module is the single place where every APIRouter is mounted onto the
FastAPI application.  Import and call ``register_routes(app)`` once in
``trello_sync.app``.

  POST /addDeliverablesToTrello  — sync a batch of deliverables to Trello
  GET  /api/health               — health check
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from trello_sync import __version__, config
from trello_sync.api.schemas import (
    AddDeliverablesRequest,
    AddDeliverablesResponse,
    ErrorResponse,
    HealthResponse,
)
from trello_sync.database import get_database
from trello_sync.metrics import metrics_snapshot
from trello_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Deliverable sync
# ---------------------------------------------------------------------------

sync_router = APIRouter(tags=["sync"])


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def _error_response(exc: BaseException) -> JSONResponse:
    body = ErrorResponse(detail=str(exc) or type(exc).__name__, type=type(exc).__name__)
    return JSONResponse(status_code=503, content=body.model_dump())


@sync_router.post(
    "/addDeliverablesToTrello",
    response_model=AddDeliverablesResponse,
    responses={503: {"model": ErrorResponse}},
)
async def add_deliverables_to_trello(body: AddDeliverablesRequest, request: Request):
    """Sync the given deliverables onto their Trello cards.

    Returns the number of deliverables that resolved plus one result per
    deliverable; a batch-level failure (or timeout) is a 503.
    """
    orchestrator = get_orchestrator(request)
    run = orchestrator.sync_deliverables(body.deliverable_ids, body.tax_season_id)
    try:
        if config.SYNC_TIMEOUT_SECONDS > 0:
            report = await asyncio.wait_for(run, timeout=config.SYNC_TIMEOUT_SECONDS)
        else:
            report = await run
    except asyncio.TimeoutError as exc:
        logger.error(
            "addDeliverablesToTrello timed out after %.0fs (tax season %s)",
            config.SYNC_TIMEOUT_SECONDS, body.tax_season_id,
        )
        return _error_response(exc)
    except Exception as exc:
        logger.error("addDeliverablesToTrello failed for tax season %s: %s", body.tax_season_id, exc)
        return _error_response(exc)
    return AddDeliverablesResponse.from_report(report)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

health_router = APIRouter(prefix="/api", tags=["health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Database connectivity plus the in-process sync counters."""
    db_connected = await asyncio.to_thread(get_database().ping)
    return HealthResponse(
        status="ok" if db_connected else "degraded",
        version=__version__,
        db_connected=db_connected,
        **metrics_snapshot(),
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

def register_routes(app: FastAPI) -> None:
    app.include_router(sync_router)
    app.include_router(health_router)
