"""API route definitions for the Homebridge exporter.

``/ping``, ``/health`` and ``/metrics`` are unauthenticated so that
Prometheus and load-balancers can reach them without credentials.
``/restart`` requires a bearer key from the authorization key file.

Upstream failures are raised as ``HomebridgeError`` subclasses and
rendered by the application's exception handler; a scrape either
returns a complete registry or an error, never a partial one.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from starlette.responses import PlainTextResponse
from starlette.responses import Response as StarletteResponse

from homebridge_exporter import __version__
from homebridge_exporter.auth import require_restart_key
from homebridge_exporter.config import Settings
from homebridge_exporter.metrics import OPENMETRICS_CONTENT_TYPE, encode, translate
from homebridge_exporter.models import SuccessResponse
from homebridge_exporter.session import Session

logger = structlog.get_logger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_session(request: Request) -> Session:
    """Return the Homebridge session owned by the running application."""
    return request.app.state.session


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/ping", tags=["health"], response_class=PlainTextResponse)
async def ping() -> str:
    """Unauthenticated liveness probe; does not contact Homebridge."""
    return "PONG"


@router.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Unauthenticated liveness probe.

    Returns:
        A JSON object with ``status`` and ``version`` fields.
    """
    return {"status": "ok", "version": __version__}


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

@router.get("/metrics", tags=["monitoring"])
async def prometheus_metrics(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> StarletteResponse:
    """Scrape Homebridge and return its accessories as OpenMetrics text.

    Every call fetches a fresh accessory snapshot; only the login token
    is cached between scrapes.

    Returns:
        Gauges for every non-string characteristic.
    """
    credential = await session.get_valid_token()
    accessories = await session.adapter.list_accessories(credential.access_token)
    registry = translate(accessories, prefix=settings.METRICS_PREFIX)
    return StarletteResponse(
        content=encode(registry),
        media_type=OPENMETRICS_CONTENT_TYPE,
    )


# ---------------------------------------------------------------------------
# Control
# ---------------------------------------------------------------------------

@router.post("/restart", tags=["control"])
async def restart_homebridge(
    _key: str = Depends(require_restart_key),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    """Restart the Homebridge server.

    Requires ``Authorization: Bearer <key>`` with a key from the
    authorization key file.

    Returns:
        ``{"result": "done"}`` once Homebridge accepted the request.
    """
    await logger.ainfo("restart_authorized")
    credential = await session.get_valid_token()
    await session.adapter.restart(credential.access_token)
    return SuccessResponse(result="done")
