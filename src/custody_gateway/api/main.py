# API - FastAPI Application
#
# Builds the HTTP surface around a CustodyContext. The context is created
# once, before the first request, and torn down on shutdown; uvicorn
# drains in-flight requests before the lifespan exits.
#
# Every failure is rendered as {"error": {"kind", "message"}} with the
# status attached to its exception class.

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from .. import __version__
from ..config import load_settings
from ..context import CustodyContext, build_context
from ..core import EventSeverity, EventType
from ..exceptions import CustodyError
from .routes import router

logger = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).parent.parent / "public"


def _error_response(status_code: int, kind: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"kind": kind, "message": message}},
    )


async def custody_error_handler(request: Request, exc: CustodyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.kind)
    return _error_response(exc.status_code, exc.kind, exc.public_message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Field locations and messages only; submitted values are never echoed
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid")
        problems.append(f"{location}: {message}" if location else message)
    return _error_response(422, "validation", "; ".join(problems) or "Invalid request")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal error"
    )


def create_app(context: Optional[CustodyContext] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        context: Prebuilt context (tests). When omitted, settings are loaded
                 from the environment at startup and startup fails loudly
                 if they are incomplete.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.context is None
        if owned:
            app.state.context = build_context(load_settings())
        ctx: CustodyContext = app.state.context
        ctx.events.log_event(
            event_type=EventType.SYSTEM_START,
            severity=EventSeverity.INFO,
            message="Custody gateway starting",
            details={"version": __version__, "database": str(ctx.settings.database_path)},
        )
        try:
            yield
        finally:
            ctx.events.log_event(
                event_type=EventType.SYSTEM_STOP,
                severity=EventSeverity.INFO,
                message="Custody gateway shutting down",
            )
            if owned:
                ctx.close()
                app.state.context = None

    app = FastAPI(
        title="Credential Custody Gateway",
        description="Encrypted credential custody with audited provider calls",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    origins = list(context.settings.cors_origins) if context else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CustodyError, custody_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def serve_landing():
        """Serve the static landing page."""
        index_path = PUBLIC_DIR / "index.html"
        if index_path.exists():
            return FileResponse(index_path)
        return {"name": "Credential Custody Gateway", "version": __version__, "status": "operational"}

    return app


def start_api_server(host: Optional[str] = None, port: Optional[int] = None):
    """
    Start FastAPI server.

    Settings are loaded (and validated) before uvicorn binds, so a missing
    key or database location aborts startup immediately.

    Args:
        host: Host to bind to (default: CUSTODY_HOST or localhost)
        port: Port to listen on (default: PORT or 3000)
    """
    settings = load_settings()
    context = build_context(settings)
    app = create_app(context)
    try:
        uvicorn.run(
            app,
            host=host or settings.host,
            port=port or settings.port,
            log_level="info",
        )
    finally:
        context.close()
