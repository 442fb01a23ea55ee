"""
FastAPI application factory.

* Registers routes for accounts, customers, drivers, payments and admin
  under ``/api``.
* Starts / stops the background progression worker via lifespan events.
* Renders domain errors as ``{"success": false, "error", "message"}``.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from roadside.api.middleware import limiter
from roadside.api.routes import admin, driver, payments, requests, users
from roadside.api.schemas import ErrorResponse
from roadside.domain.errors import RoadsideError, ValidationError
from roadside.workers import progression as _progression

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the progression worker on startup; stop on shutdown."""
    await _progression.start_progression_loop()
    yield
    await _progression.stop_progression_loop()


async def _roadside_error_handler(request: Request, exc: RoadsideError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.code, message=exc.message).model_dump(),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid input')}" if field else "Invalid input"
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=ErrorResponse(error=ValidationError.code, message=message).model_dump(),
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Roadside Assistance API",
        description=(
            "Customers request roadside help, are matched to a provider "
            "from a static roster, track the job through a fixed lifecycle "
            "and pay on completion.  Providers advance the same job."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Error rendering
    app.add_exception_handler(RoadsideError, _roadside_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Routers
    app.include_router(users.router, prefix="/api")
    app.include_router(requests.router, prefix="/api")
    app.include_router(driver.router, prefix="/api")
    app.include_router(payments.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    return app
