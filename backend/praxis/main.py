"""
Praxis OS Backend: FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn praxis.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                   FastAPI App                        │
    │                                                      │
    │  Middleware Chain:                                   │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌──────┐         │
    │  │ Req ID   │→│ Logging  │→│ GZip │→│ CORS │         │
    │  └──────────┘ └──────────┘ └──────┘ └──────┘         │
    │                                                      │
    │  Routes:                                             │
    │  courses · patients · me · admin · push · cron ·     │
    │  health                                              │
    │                                                      │
    │  Response Mapper (exception handlers):               │
    │  ┌────────────────────────────────────────────────┐  │
    │  │ PraxisError → its status_code                  │  │
    │  │ RequestValidationError → 422                   │  │
    │  │ Exception → 500                                │  │
    │  └────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check (logged, not fatal)
    Shutdown: close the auth HTTP client, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from praxis import __version__
from praxis.config import settings
from praxis.database import dispose_engine
from praxis.exceptions import ConfigurationError, PayloadValidationError, PraxisError, UpstreamError
from praxis.middleware.logging import RequestLoggingMiddleware
from praxis.middleware.request_id import RequestIDMiddleware, request_id_var
from praxis.pipeline.payload import error_message
from praxis.routes import admin, courses, cron, health, me, patients, push
from praxis.services.auth_service import auth_client

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Container platforms capture stdout
        ],
        force=True,
    )

    # Third-party libraries log every request or statement at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Praxis OS Backend %s starting up...", __version__)

    # Missing secrets are reported but not fatal: /health keeps answering and
    # the affected endpoints answer 401/500 on their own.
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Row-level security claims: %s", "on" if settings.db_apply_rls_claims else "off")
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Praxis OS Backend shutting down...")
    await auth_client.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Response Mapper
# ══════════════════════════════════════════════════════════════════════════

def _error_body(message: str, details: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def _flatten_request_errors(errors: List[Dict[str, Any]]) -> Dict[str, Any]:
    # FastAPI locations start with the source ("body", "query", "path")
    form_errors: List[str] = []
    field_errors: Dict[str, List[str]] = {}
    for error in errors:
        loc = list(error.get("loc") or ())[1:]
        message = error_message(error)
        if loc:
            field_errors.setdefault(str(loc[0]), []).append(message)
        else:
            form_errors.append(message)
    return {"formErrors": form_errors, "fieldErrors": field_errors}


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the `{"error": ..., "details"?: ...}` envelope.

    Handler hierarchy:
        PraxisError (and subclasses)  → exc.status_code
        RequestValidationError        → 422 Validierungsfehler.
        StarletteHTTPException        → its status (unknown route, wrong method)
        Exception (fallback)          → 500 Interner Serverfehler.

    Internal details (stack traces, SQL, upstream bodies) are logged with the
    request id and never returned.
    """

    @app.exception_handler(PraxisError)
    async def handle_praxis_error(request: Request, exc: PraxisError):
        rid = request_id_var.get("")
        if isinstance(exc, (UpstreamError, ConfigurationError)):
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.debug("[%s] %s %d: %s", rid, type(exc).__name__, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(PayloadValidationError.default_message, _flatten_request_errors(exc.errors())),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=_error_body(PraxisError.default_message))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Praxis OS API",
        description=(
            "Practice-management backend for physiotherapy: courses, enrollments, "
            "patient invites and push reminders behind one authorization pipeline."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # session cookie
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
    app.include_router(courses.router)
    app.include_router(patients.router)
    app.include_router(me.router)
    app.include_router(admin.router)
    app.include_router(push.router)
    app.include_router(cron.router)
    app.include_router(health.router)

    return app


# uvicorn expects `praxis.main:app` to be importable
app = create_app()
