"""Cached Homebridge credential shared by all requests.

The session holds at most one credential and refreshes it on read.  The
lock guards only the refresh decision and the install of a new
credential; the login round trip runs as one shared task so that
concurrent callers hitting an expired cache trigger a single login and
all see its outcome.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import structlog

from homebridge_exporter.adapters.homebridge_adapter import HomebridgeAdapter
from homebridge_exporter.errors import AuthFailure
from homebridge_exporter.models import Credential

logger = structlog.get_logger(__name__)


def _retrieve_exception(task: asyncio.Future[Credential]) -> None:
    # The refresh may outlive every caller that awaited it.
    if not task.cancelled():
        task.exception()


class Session:
    """Token cache for one Homebridge hub.

    Parameters:
        adapter: Client bound to the hub's base URL.
        username: Homebridge UI login name.
        password: Homebridge UI password.
        clock: Monotonic clock; must match the adapter's clock.
    """

    def __init__(
        self,
        adapter: HomebridgeAdapter,
        username: str,
        password: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.adapter = adapter
        self.username = username
        self.password = password
        self._clock = clock
        self._lock = asyncio.Lock()
        self._credential: Credential | None = None
        self._refresh: asyncio.Task[Credential] | None = None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    async def get_valid_token(self) -> Credential:
        """Return a credential that is valid now, logging in if needed.

        Raises:
            AuthFailure: If the login call fails.  The cached credential
                is cleared in that case.
        """
        started = False
        async with self._lock:
            credential = self._credential
            if credential is not None and credential.is_valid(self._clock()):
                return credential
            self._credential = None
            if self._refresh is None:
                self._refresh = asyncio.ensure_future(self._login())
                self._refresh.add_done_callback(_retrieve_exception)
                started = True
            refresh = self._refresh

        if started:
            await logger.ainfo("token_refresh_started")
        return await asyncio.shield(refresh)

    async def invalidate(self) -> None:
        """Drop the cached credential so the next read logs in again."""
        async with self._lock:
            self._credential = None

    async def _login(self) -> Credential:
        credential: Credential | None = None
        try:
            credential = await self.adapter.login(self.username, self.password)
        except AuthFailure as exc:
            await logger.aerror("login_failed", reason=str(exc))
            raise
        finally:
            async with self._lock:
                self._credential = credential
                self._refresh = None
        return credential
