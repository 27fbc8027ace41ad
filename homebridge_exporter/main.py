"""Application entry-point for the Homebridge exporter.

``create_app`` builds the FastAPI application: it sets up structured
logging, loads the restart authorization keys, creates the Homebridge
session shared by all requests and attaches the middleware and routes.

Run modes::

    # Console script
    homebridge-exporter

    # Any ASGI server, using the factory
    uvicorn homebridge_exporter.main:create_app --factory --port 8001
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from homebridge_exporter import __version__
from homebridge_exporter.adapters.homebridge_adapter import HomebridgeAdapter
from homebridge_exporter.api.routes import router
from homebridge_exporter.auth import load_authorization_keys
from homebridge_exporter.config import Settings
from homebridge_exporter.errors import HomebridgeError
from homebridge_exporter.logging_config import RequestLoggingMiddleware, setup_logging
from homebridge_exporter.models import ErrorResponse
from homebridge_exporter.session import Session

logger = structlog.get_logger("homebridge_exporter.startup")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler -- runs once on startup and shutdown.

    On shutdown the Homebridge HTTP client is closed.
    """
    settings: Settings = app.state.settings
    await logger.ainfo(
        "server_starting",
        version=__version__,
        homebridge_uri=settings.HOMEBRIDGE_URI,
        log_level=settings.LOG_LEVEL,
    )
    yield
    await logger.ainfo("server_shutting_down")
    await app.state.session.adapter.close()


async def homebridge_error_handler(request: Request, exc: HomebridgeError) -> JSONResponse:
    """Render exporter errors as ``{"error": "..."}`` with their status."""
    if exc.status_code >= 500:
        await logger.aerror("scrape_failed", path=request.url.path, reason=str(exc))
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc)).model_dump(),
    )


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """Build the exporter application.

    Parameters:
        settings: Configuration; read from the environment when omitted.
        transport: Optional httpx transport for the Homebridge client.
        clock: Monotonic clock used for token expiry.
    """
    if settings is None:
        settings = Settings()
    setup_logging(log_level=settings.LOG_LEVEL)

    adapter = HomebridgeAdapter(
        base_url=settings.HOMEBRIDGE_URI,
        timeout=settings.REQUEST_TIMEOUT,
        transport=transport,
        clock=clock,
    )

    app = FastAPI(
        title="Homebridge Prometheus Exporter",
        description=(
            "Exposes Homebridge accessory characteristics as Prometheus "
            "gauges and offers an authorised Homebridge restart."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.authorization_keys = load_authorization_keys(settings.AUTH_KEYFILE)
    app.state.session = Session(
        adapter,
        username=settings.HOMEBRIDGE_USERNAME,
        password=settings.HOMEBRIDGE_PASSWORD,
        clock=clock,
    )

    app.add_exception_handler(HomebridgeError, homebridge_error_handler)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router)
    return app


def run() -> None:
    """Serve the exporter with uvicorn using environment configuration."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=settings.EXPORTER_HOST,
        port=settings.EXPORTER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
