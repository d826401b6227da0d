"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.gateways import is_gateway_configured
from app.jobs.scheduler import register_jobs, scheduler
from app.routers import account, admin, leads, listings, payments
from app.storage import get_storage
from app.utils.errors import AppError, InvalidInputError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
ROUTERS = (
    (leads.router, "leads"),
    (listings.router, "listings"),
    (payments.router, "payments"),
    (account.router, "account"),
    (admin.router, "admin"),
)


def _log_payment_setup() -> None:
    if not is_gateway_configured():
        logger.warning("Stripe secret key missing or invalid; deposits are disabled")
    elif not settings.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET not set; webhooks will be rejected")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open storage, then run the scheduler for the app lifetime."""
    storage = get_storage()
    logger.info("Storage backend: %s", storage.name)
    _log_payment_setup()

    if settings.enable_scheduler:
        register_jobs()
        scheduler.start()
        logger.info("Scheduler started")
    yield
    if settings.enable_scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


app = FastAPI(
    title=settings.app_name,
    description="Rental marketplace with a payment-gated ledger",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Stamp the processing time and warn on slow requests."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.1f}"

    threshold_ms = settings.slow_request_log_threshold_ms
    if threshold_ms > 0 and elapsed_ms >= threshold_ms:
        logger.warning(
            "Slow request %s %s -> %d in %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors as ``{"error", "code"}`` bodies."""
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    _: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report the first failing field with the INVALID_INPUT code."""
    api_error = InvalidInputError(_validation_message(exc))
    return JSONResponse(status_code=api_error.status_code, content=api_error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Hide internals of unexpected failures behind a 500."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


for router, name in ROUTERS:
    app.include_router(router, prefix=f"{API_PREFIX}/{name}", tags=[name])


@app.get("/health")
async def health() -> dict:
    """Report version, storage backend and whether deposits are enabled."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "storage": settings.storage_backend,
        "stripe_configured": is_gateway_configured(),
    }
