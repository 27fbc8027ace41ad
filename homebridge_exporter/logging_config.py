"""Structured logging for the exporter, built on *structlog*.

``setup_logging`` renders every event as one JSON line.
``RequestLoggingMiddleware`` binds a request id, the method and the path
into ``structlog.contextvars`` for the lifetime of each request, so the
session, adapter and error-handler events of one scrape carry the same
context as its ``request_handled`` line.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def resolve_log_level(log_level: str) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value.

    Raises:
        ValueError: If *log_level* is not a standard logging level name.
    """
    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")
    return level


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structlog with JSON rendering at *log_level*."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            resolve_log_level(log_level),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind request context and log the outcome of every request.

    Context bound for the duration of the request:
    - ``request_id``: random hex id, also returned as ``X-Request-ID``
    - ``method``: HTTP method
    - ``path``: request path

    The closing ``request_handled`` event adds ``status_code`` and
    ``duration_ms``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = structlog.get_logger("homebridge_exporter.access")
        request_id = uuid.uuid4().hex
        start = time.perf_counter()

        with structlog.contextvars.bound_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        ):
            response: Response = await call_next(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            await logger.ainfo(
                "request_handled",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response
