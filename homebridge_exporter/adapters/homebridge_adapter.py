"""Adapter for the Homebridge UI REST API.

Wraps the three calls the exporter needs: login, accessory listing and
server restart.  Every failure is translated into an exporter error;
``httpx`` exceptions never escape this module.  No retries are made.
"""

from __future__ import annotations

import time
from typing import Callable

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from homebridge_exporter.errors import AuthFailure, FetchFailure
from homebridge_exporter.models import AccessoryRecord, Credential, TokenResponse

logger = structlog.get_logger(__name__)

# Homebridge requires the field even when two-factor auth is disabled.
LOGIN_OTP = "123"

_accessory_list = TypeAdapter(list[AccessoryRecord])


class HomebridgeAdapter:
    """Async client for the Homebridge UI API.

    Parameters:
        base_url: Root URL of the Homebridge UI
                  (e.g. ``http://localhost:8581``).
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests to stand in
                   for a live hub.
        clock: Monotonic clock used to stamp issued credentials.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._clock = clock
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> Credential:
        """Exchange username and password for a bearer credential.

        Returns:
            A ``Credential`` stamped with the time the response arrived.

        Raises:
            AuthFailure: On transport error, non-success status or a body
                that is not a valid token response.
        """
        try:
            resp = await self._client.post(
                "/api/auth/login",
                json={"username": username, "password": password, "otp": LOGIN_OTP},
            )
        except httpx.RequestError as exc:
            raise AuthFailure(f"Error while fetching token: {exc}") from exc

        if not resp.is_success:
            raise AuthFailure(
                f"Error while fetching token. Error code: {resp.status_code}, "
                f"body: {resp.text}"
            )

        try:
            token = TokenResponse.model_validate_json(resp.content)
        except ValidationError as exc:
            raise AuthFailure(f"Malformed token response: {exc}") from exc

        await logger.ainfo("token_refreshed", expires_in=token.expires_in)
        return Credential(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_in=token.expires_in,
            issued_at=self._clock(),
        )

    # ------------------------------------------------------------------
    # Accessories
    # ------------------------------------------------------------------

    async def list_accessories(self, token: str) -> list[AccessoryRecord]:
        """Fetch every accessory with its current characteristic values.

        Raises:
            FetchFailure: On transport error, non-success status or a body
                that is not a list of accessories.
        """
        try:
            resp = await self._client.get(
                "/api/accessories",
                headers=self._bearer(token),
            )
        except httpx.RequestError as exc:
            await logger.awarning("accessories_fetch_failed", detail=str(exc))
            raise FetchFailure(f"Error while fetching accessories: {exc}") from exc

        if not resp.is_success:
            await logger.awarning(
                "accessories_fetch_failed", status_code=resp.status_code
            )
            raise FetchFailure(
                f"Error while fetching accessories. Error code: {resp.status_code}, "
                f"body: {resp.text}"
            )

        try:
            accessories = _accessory_list.validate_json(resp.content)
        except ValidationError as exc:
            await logger.awarning("accessories_fetch_failed", detail="malformed body")
            raise FetchFailure(f"Malformed accessories response: {exc}") from exc

        await logger.ainfo("accessories_fetched", count=len(accessories))
        return accessories

    # ------------------------------------------------------------------
    # Server control
    # ------------------------------------------------------------------

    async def restart(self, token: str) -> None:
        """Ask Homebridge to restart.

        Any completed request counts as success whatever its status;
        only transport errors are reported.

        Raises:
            FetchFailure: If the request could not be completed.
        """
        try:
            resp = await self._client.put(
                "/api/server/restart",
                headers=self._bearer(token),
            )
        except httpx.RequestError as exc:
            raise FetchFailure(f"Error while restarting Homebridge: {exc}") from exc

        await logger.ainfo("restart_requested", status_code=resp.status_code)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    @staticmethod
    def _bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
