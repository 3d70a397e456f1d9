"""
FastAPI application for annotation-ledger.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .annotations.routes import router as annotations_router
from .config import get_settings
from .corpus.routes import router as corpus_router
from .db.base import init_database
from .errors import AnnotationError
from .log_config import configure_logging
from .users.routes import router as users_router

logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("Starting Annotation Ledger")

    try:
        init_database()
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    title="Annotation Ledger",
    description="Revision-tracked comment store for collaborative text annotation",
    version=importlib.metadata.version("annotation-ledger"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnnotationError)
async def annotation_error_handler(request: Request, exc: AnnotationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/healthz")
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("annotation-ledger")}


app.include_router(annotations_router)
app.include_router(corpus_router)
app.include_router(users_router)
