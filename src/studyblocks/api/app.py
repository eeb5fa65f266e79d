"""
FastAPI application factory.

- CORS for browser editors,
- JSON error handlers (404 for unknown blocks, 400 for bad input, 500
  otherwise),
- the document router and ``/health``,
- a lifespan that opens the session registry and flushes every open
  document on shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studyblocks import __version__
from studyblocks.api.routers import documents
from studyblocks.api.sessions import SessionRegistry
from studyblocks.core.settings import get_logger, load_settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the session registry on startup; flush open documents on shutdown."""
    registry = SessionRegistry.get_instance()
    logger.info("studyblocks API starting (env=%s)", load_settings().environment)
    yield
    await registry.aclose()
    logger.info("studyblocks API stopped")


def create_app() -> FastAPI:
    """Construct and configure the studyblocks FastAPI application."""
    app = FastAPI(
        title="studyblocks API",
        description="Block-based study documents with optimistic editing",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Unhandled errors still answer with a JSON body."""
        logger.exception("unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc),
                "path": request.url.path,
            },
        )

    @app.exception_handler(KeyError)
    async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
        """Unknown block ids map to 404."""
        missing = exc.args[0] if exc.args else ""
        return JSONResponse(
            status_code=404,
            content={"error": "Not Found", "detail": f"no block {missing}"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        """Map Python ValueErrors to HTTP 400 Bad Request."""
        return JSONResponse(
            status_code=400,
            content={"error": "Bad Request", "detail": str(exc)},
        )

    @app.exception_handler(IndexError)
    async def index_error_handler(request: Request, exc: IndexError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Bad Request", "detail": str(exc)},
        )

    app.include_router(documents.router)

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, str]:
        """Liveness check."""
        return {
            "status": "ok",
            "environment": load_settings().environment,
            "version": __version__,
        }

    return app


def get_app() -> FastAPI:
    """Alias of :func:`create_app` for ASGI tooling that expects ``get_app``."""
    return create_app()


__all__ = ["create_app", "get_app"]
