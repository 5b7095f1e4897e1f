"""
Trello Sync - FastAPI Application
Main entry point for the sync service.

Run with:
    uvicorn trello_sync.app:app --reload --host 0.0.0.0 --port 8002
"""

import json
import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trello_sync import __version__, config
from trello_sync.api.routes import register_routes
from trello_sync.core.logging import configure_logging
from trello_sync.database import get_database
from trello_sync.metrics import record_error
from trello_sync.sync.orchestrator import SyncOrchestrator
from trello_sync.trello.client import TrelloClient

configure_logging()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan (startup / shutdown)
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Runs once on startup, yields for the lifetime of the app, then cleans up."""
    logger.info("Initialising database...")
    database = get_database()
    database.init_db()
    logger.info("Database ready.")

    if not (config.TRELLO_API_KEY and config.TRELLO_API_TOKEN):
        logger.warning("TRELLO_API_KEY / TRELLO_API_TOKEN not set; Trello calls will be rejected.")

    trello = TrelloClient(
        api_key=config.TRELLO_API_KEY,
        api_token=config.TRELLO_API_TOKEN,
        base_url=config.TRELLO_API_URL,
        timeout=config.TRELLO_TIMEOUT_SECONDS,
        max_retries=config.TRELLO_MAX_RETRIES,
    )
    app.state.orchestrator = SyncOrchestrator.from_config(database, trello)

    yield  # Application is running

    await trello.close()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Trello Sync",
    version=__version__,
    description="Keeps controller deliverables in sync with Trello checklist items",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Global exception handler -- surfaces unhandled errors as structured JSON
# ---------------------------------------------------------------------------

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exc()
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method, request.url.path, exc, tb,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "path": request.url.path,
        },
    )


# ---------------------------------------------------------------------------
# Request logging -- one structured line per request
# ---------------------------------------------------------------------------

async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000.0

    if response.status_code >= 500:
        record_error()

    payload = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": round(elapsed_ms, 1),
    }
    logger.info("request_log %s", json.dumps(payload))
    response.headers["X-Request-ID"] = request_id
    return response


app.middleware("http")(request_logging_middleware)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

register_routes(app)


# ---------------------------------------------------------------------------
# Development entry-point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "trello_sync.app:app",
        host="0.0.0.0",
        port=config.PORT,
        reload=True,
    )
