"""
FastAPI application entry point with health check route.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from petcare.api.routes import bookings, cancellation_policies, recurring_series
from petcare.api.middleware.error_handler import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from petcare.jobs.scheduler import get_scheduler
from petcare.jobs.series_topup import register_series_topup
from petcare.lib.logging import get_logger, set_correlation_id
from petcare.lib.settings import settings

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Accepts X-Correlation-ID from incoming requests or generates a new one,
    and echoes it on the response.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        logger.info(f"Incoming request {request.method} {request.url.path}")

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id

        logger.info(f"Response sent with status {response.status_code}")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup/shutdown events.
    """
    logger.info(f"{settings.app_name} starting up...")
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = get_scheduler()
        register_series_topup(scheduler)
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info(f"{settings.app_name} shutting down...")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Recurring bookings and cancellation/refund APIs for the pet-care marketplace",
    lifespan=lifespan,
)


app.add_middleware(CorrelationIdMiddleware)


app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


app.include_router(recurring_series.router)
app.include_router(bookings.router)
app.include_router(cancellation_policies.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
