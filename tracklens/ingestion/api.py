# ==============================================================================
# Ingestion HTTP API
# ==============================================================================
"""
FastAPI application exposing the ingestion endpoint.

Routes (route prefix from settings, default /api/tracking):
    POST {route}            Receive a batch (JSON or raw beacon bytes)
    GET  {route}?q=<name>   Run a named query (default: overview)
    GET  /health            Liveness plus store backend info

Run with:
    tracklens serve
"""

import logging

from fastapi import FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracklens.core.store import AnalyticsStore
from tracklens.infrastructure import get_event_store
from tracklens.ingestion.service import (
    IngestionService,
    InvalidBatchError,
    MissingParameterError,
    UnknownQueryError,
)
from tracklens.utils.config import get_settings

logger = logging.getLogger(__name__)


def create_app(store: AnalyticsStore | None = None) -> FastAPI:
    """
    Build the ingestion app.

    Args:
        store: Store to ingest into. If None, one is built from settings
               and connected.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()
    if store is None:
        backend = get_event_store()
        backend.connect()
        store = AnalyticsStore(backend)

    service = IngestionService(store)
    app = FastAPI(title="tracklens ingestion API", version="0.1.0")
    app.state.service = service

    # Trackers run on other origins and POST from there
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {
            "ok": True,
            "service": "tracklens-api",
            "store": store.backend.name,
            "events": store.event_count(),
        }

    @app.post(settings.api.route)
    async def receive_batch(request: Request):
        raw = await request.body()
        try:
            payload = service.parse_body(raw)
            return await run_in_threadpool(service.ingest, payload)
        except InvalidBatchError as e:
            logger.warning("Rejected batch: %s", e)
            return JSONResponse(status_code=400, content={"error": str(e)})
        except Exception:
            logger.exception("Tracking ingestion error")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get(settings.api.route)
    def run_query(
        q: str = Query("overview", description="Query name"),
        path: str | None = Query(None, description="Page path filter"),
        session_id: str | None = Query(None, alias="sessionId", description="Session id"),
    ):
        try:
            return service.query(q, path=path, session_id=session_id)
        except (UnknownQueryError, MissingParameterError) as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        except Exception:
            logger.exception("Tracking query error")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app
