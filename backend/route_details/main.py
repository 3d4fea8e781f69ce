"""
Route Details Backend: FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers; the
       lifespan owns the message-pattern server and the database engine.
Who:   uvicorn (`uvicorn route_details.main:app`), tests (create_app()).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:   RequestID → Logging → GZip → CORS         │
    │                                                          │
    │  HTTP routes:  /routes/*  /health                        │
    │  TCP :3001:    route.* message patterns (MessageServer)  │
    │                      ↓                  ↓                │
    │              RouteHandlers (HTTP / message policy)       │
    │                      ↓                                   │
    │              RouteService → SQLAlchemy (asyncpg)         │
    │                                                          │
    │  Exception handlers: anything escaping a route becomes   │
    │  an ApiResponse envelope (400 / 404 / 409 / 500).        │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → message server (when enabled)
    Shutdown: message server → database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from route_details import __version__
from route_details.config import settings
from route_details.database import dispose_engine
from route_details.exceptions import (
    ConflictError,
    RouteDetailsError,
    StorageError,
    ValidationError,
)
from route_details.messaging.server import MessageServer
from route_details.middleware.logging import RequestLoggingMiddleware
from route_details.middleware.request_id import RequestIdFilter, RequestIDMiddleware
from route_details.routes import health, route_endpoints
from route_details.schemas.envelope import ApiResponse
from route_details.services.validation import format_error_details

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configures the root logger once, before anything else logs.

    Every record passes through RequestIdFilter, so `%(request_id)s` is
    always present: the HTTP request ID, the message id, or "-".
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party chatter
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: configure logging, then start the message server if enabled.
    Shutdown: stop the message server, then close pooled connections.

    A message server that cannot bind (port in use) fails startup; the
    service would otherwise silently serve only half of its surface.
    """
    setup_logging()
    logger.info("Route Details service %s starting up...", __version__)

    message_server = None
    if settings.message_transport_enabled:
        message_server = MessageServer(host=settings.message_host, port=settings.message_port)
        await message_server.start()
    else:
        logger.info("Message transport disabled")
    app.state.message_server = message_server

    logger.info("HTTP server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("Route Details service shutting down...")
    if message_server is not None:
        await message_server.stop()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _envelope_response(message: str, errors: str, status_code: int) -> JSONResponse:
    envelope = ApiResponse.error_response(message, errors, status_code=status_code)
    return JSONResponse(status_code=status_code, content=envelope.to_payload())


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps anything that escapes a route to an ApiResponse envelope.

    Handler hierarchy:
        RequestValidationError → 400 (unparseable query, path or body)
        ValidationError        → 400
        ConflictError          → 409
        StorageError           → 500
        RouteDetailsError      → 500
        Exception              → 500, details logged only

    Route handlers already return envelopes for expected outcomes, so these
    mostly see framework-level parse errors and commit failures.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = format_error_details(exc.errors())
        logger.warning("Request validation failed: %s", errors)
        return _envelope_response("Validation failed", "; ".join(errors), 400)

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        detail = "; ".join(exc.errors) if exc.errors else exc.message
        return _envelope_response("Validation failed", detail, 400)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        logger.warning("Conflict: %s", exc.message)
        return _envelope_response("Conflict", exc.message, 409)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("Storage error: %s | Context: %s", exc.message, exc.context)
        return _envelope_response("Storage error", exc.message, 500)

    @app.exception_handler(RouteDetailsError)
    async def handle_application_error(request: Request, exc: RouteDetailsError):
        logger.error("Application error: %s | Context: %s", exc.message, exc.context)
        return _envelope_response("Request failed", exc.message, 500)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return _envelope_response(
            "Internal server error",
            "An unexpected error occurred. Please try again or contact support.",
            500,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assembles middleware, exception handlers and routers."""
    app = FastAPI(
        title="Route Details API",
        description=(
            "Stores and queries travel routes: origin, destination, waypoints, "
            "path geometry and distance/duration metadata."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(route_endpoints.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
