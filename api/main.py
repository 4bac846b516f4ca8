"""
api/main.py -- FastAPI application entry point for the inventory API.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- lets the single-page front end (FRONTEND_URL) call
                          the API with credentials, i.e. the session cookie
  2. log_requests      -- one log line per request with status and latency

Lifespan opens the three stores (users, audit, inventory) on one
DATABASE_URL at startup and disposes of them at shutdown.

Error boundary: every AppError raised anywhere below a route is turned into
{"code", "message"} here, and nowhere else.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ErrorResponse, FieldErrorDetail, HealthResponse
from api.routes.v1.audit import router as audit_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.categories import router as categories_router
from api.routes.v1.products import router as products_router
from api.routes.v1.suppliers import router as suppliers_router
from api.routes.v1.users import router as users_router
from audit.store import AuditStore
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError
from inventory.store import InventoryStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("inventory.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and close them on shutdown.

    Each store creates its own tables if they do not exist yet, so a fresh
    database needs no migration step. Seed the first admin with
    `python main.py seed-admin`.
    """
    settings = get_settings()
    logger.info("Inventory API starting up (environment=%s)", settings.environment)
    app.state.user_store = UserStore(settings.database_url)
    app.state.audit_store = AuditStore(settings.database_url)
    app.state.inventory_store = InventoryStore(settings.database_url)
    if not app.state.user_store.has_users():
        logger.warning("No users exist yet. Run `python main.py seed-admin` to create the first admin.")

    yield

    app.state.inventory_store.close()
    app.state.audit_store.close()
    app.state.user_store.close()
    logger.info("Inventory API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Inventory API",
    description="Role-based inventory management: products, categories, suppliers, users and audit trail.",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(products_router, prefix="/api", tags=["Products"])
app.include_router(categories_router, prefix="/api", tags=["Categories"])
app.include_router(suppliers_router, prefix="/api", tags=["Suppliers"])
app.include_router(audit_router, prefix="/api", tags=["Audit"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, errors: list[FieldErrorDetail] | None = None) -> JSONResponse:
    body = ErrorResponse(code=code, message=message, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one {field, message} item per failed constraint."""
    errors = [
        FieldErrorDetail(
            field=".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
            message=err.get("msg", "Invalid value"),
        )
        for err in exc.errors()
    ]
    return _error(400, "validation_failed", "Validation failed", errors)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected errors. The traceback goes to the log, never to the client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "Something went wrong")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Liveness check. No authentication."""
    return HealthResponse(version=API_VERSION)
