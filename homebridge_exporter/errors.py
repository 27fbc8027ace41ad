"""Error types raised by the exporter.

Every error carries the HTTP status code it is rendered with, so the
application needs a single exception handler for all of them.
"""

from __future__ import annotations


class HomebridgeError(Exception):
    """Base class for exporter errors surfaced to HTTP callers."""

    status_code: int = 500


class AuthFailure(HomebridgeError):
    """The Homebridge login call was rejected or returned a malformed body."""


class FetchFailure(HomebridgeError):
    """An authenticated Homebridge call (accessories, restart) failed."""


class Unauthorized(HomebridgeError):
    """A restart request did not present a recognised bearer key."""

    status_code = 401
