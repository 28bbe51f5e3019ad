"""
FastAPI application factory.

* Registers routes for trips, bookings, notifications and admin.
* Starts / stops the background reconciliation worker via lifespan events.
* Maps lifecycle errors to HTTP responses carrying a stable error code.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from carpool.api.middleware import limiter
from carpool.api.routes import admin, bookings, notifications, trips
from carpool.config import settings
from carpool.container import Services, build_services
from carpool.domain.clock import SystemClock
from carpool.domain.errors import LifecycleError, NotFoundError, PersistenceError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_STATUS_CODES = {
    NotFoundError: 404,
    PersistenceError: 503,
}


async def _lifecycle_error_handler(request: Request, exc: LifecycleError):
    status_code = _STATUS_CODES.get(type(exc), 409)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
    )


async def _value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=422, content={"detail": str(exc), "code": "INVALID_INPUT"}
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build services if none were injected; run the worker while serving."""
        if app.state.services is None:
            from carpool.infrastructure.database import async_session_factory
            from carpool.infrastructure.redis_client import get_redis

            app.state.services = build_services(
                async_session_factory, clock=SystemClock(), redis=get_redis()
            )
        current: Services = app.state.services
        if settings.reconciliation_enabled:
            await current.worker.start()
        yield
        await current.worker.stop()
        current.dispatcher.detach()

    app = FastAPI(
        title="Carpool Trip Lifecycle API",
        description=(
            "Drivers post trips, passengers book seats.  Seat counts stay "
            "consistent under concurrent bookings and a background worker "
            "keeps trip and booking statuses in step with the clock."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(LifecycleError, _lifecycle_error_handler)
    app.add_exception_handler(ValueError, _value_error_handler)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(notifications.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
