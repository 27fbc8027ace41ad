"""Bearer-key authorization for the restart endpoint.

Allowed keys are read once at startup from a YAML file of the form::

    keys:
      - 3f1c...
      - 9a77...

A missing file leaves the key set empty, which disables restart.  The key
check is a local comparison and never touches the Homebridge session.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from fastapi import Request, Security
from fastapi.security import APIKeyHeader

from homebridge_exporter.errors import Unauthorized

logger = structlog.get_logger(__name__)

_authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


def load_authorization_keys(path: str | Path) -> frozenset[str]:
    """Load the set of bearer keys allowed to call ``/restart``.

    Parameters:
        path: Location of the YAML key file.

    Returns:
        The allowed keys; empty when the file does not exist.

    Raises:
        ValueError: If the file exists but is not a mapping with a
            ``keys`` list of strings.
    """
    try:
        with open(path, encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except FileNotFoundError:
        logger.warning(
            "authorization_keyfile_missing",
            path=str(path),
            detail="Using an empty key set, restart won't be available.",
        )
        return frozenset()
    except yaml.YAMLError as exc:
        raise ValueError(f"Could not parse authorization key file {path}: {exc}") from exc

    keys = document.get("keys") if isinstance(document, dict) else None
    if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
        raise ValueError(
            f"Authorization key file {path} must contain a 'keys' list of strings."
        )

    logger.info("authorization_keys_loaded", path=str(path), count=len(keys))
    return frozenset(keys)


def check_bearer_token(authorization: str | None, keys: frozenset[str]) -> bool:
    """Return ``True`` if *authorization* is ``Bearer <key>`` for a known key."""
    if not authorization:
        return False
    scheme, _, key = authorization.partition(" ")
    return scheme == "Bearer" and key in keys


async def require_restart_key(
    request: Request,
    authorization: str | None = Security(_authorization_header),
) -> str:
    """Validate the Authorization header against the loaded key set.

    Raises:
        Unauthorized: If the header is missing or carries an unknown key.
    """
    keys: frozenset[str] = request.app.state.authorization_keys
    if not check_bearer_token(authorization, keys):
        await logger.awarning("restart_unauthorized")
        raise Unauthorized("Unauthorized request, please provide a valid token.")
    return authorization
