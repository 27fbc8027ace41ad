"""Shared pytest fixtures for the Homebridge exporter test suite."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, AsyncIterator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from homebridge_exporter.adapters.homebridge_adapter import HomebridgeAdapter
from homebridge_exporter.config import Settings
from homebridge_exporter.main import create_app
from homebridge_exporter.session import Session

HUB_URI = "http://homebridge.test:8581"

ACCESSORIES: list[dict[str, Any]] = [
    {
        "aid": 2,
        "iid": 1,
        "uuid": "00000043-0000-1000-8000-0026BB765291",
        "type": "Lightbulb",
        "humanType": "Lightbulb",
        "serviceName": "Desk Lamp",
        "uniqueId": "a1b2c3",
        "serviceCharacteristics": [
            {
                "aid": 2,
                "iid": 10,
                "uuid": "00000025-0000-1000-8000-0026BB765291",
                "type": "On",
                "serviceType": "Lightbulb",
                "serviceName": "Desk Lamp",
                "description": "On",
                "value": 1,
                "format": "bool",
                "perms": ["ev", "pr", "pw"],
                "canRead": True,
                "canWrite": True,
                "ev": True,
            },
            {
                "aid": 2,
                "iid": 11,
                "type": "Brightness",
                "serviceType": "Lightbulb",
                "serviceName": "Desk Lamp",
                "description": "Brightness",
                "value": 65,
                "format": "int",
                "perms": ["ev", "pr", "pw"],
                "canRead": True,
                "canWrite": True,
                "ev": True,
            },
            {
                "aid": 2,
                "iid": 12,
                "type": "Name",
                "serviceType": "Lightbulb",
                "serviceName": "Desk Lamp",
                "description": "Name",
                "value": "Desk Lamp",
                "format": "string",
                "perms": ["pr"],
                "canRead": True,
                "canWrite": False,
                "ev": False,
            },
        ],
        "accessoryInformation": {"Manufacturer": "Acme"},
        "values": {"On": 1, "Brightness": 65},
        "instance": {"name": "Homebridge", "ipAddress": "10.0.0.2", "port": 51826},
    },
    {
        "aid": 3,
        "iid": 1,
        "type": "TemperatureSensor",
        "humanType": "Temperature Sensor",
        "serviceName": "Living Room",
        "uniqueId": "d4e5f6",
        "serviceCharacteristics": [
            {
                "aid": 3,
                "iid": 9,
                "type": "CurrentTemperature",
                "serviceType": "TemperatureSensor",
                "serviceName": "Living Room",
                "description": "Current Temperature",
                "value": 21.5,
                "format": "float",
                "perms": ["ev", "pr"],
                "canRead": True,
                "canWrite": False,
                "ev": True,
            },
        ],
    },
]


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHub:
    """In-process stand-in for the Homebridge UI API.

    Plugged into httpx through ``MockTransport``; records every request
    and issues a new token per successful login.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.accessories: Any = ACCESSORIES
        self.login_status = 200
        self.login_payload: Any = None
        self.login_delay = 0.0
        self.expires_in = 3600
        self.accessories_status = 200
        self.restart_status = 200
        self.restart_error: Exception | None = None
        self.tokens_issued = 0

    @property
    def current_token(self) -> str:
        return f"token-{self.tokens_issued}"

    def calls(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    @property
    def login_calls(self) -> int:
        return self.calls("/api/auth/login")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/auth/login" and request.method == "POST":
            if self.login_delay:
                await asyncio.sleep(self.login_delay)
            if self.login_status != 200:
                return httpx.Response(self.login_status, text="invalid credentials")
            if self.login_payload is not None:
                return httpx.Response(200, json=self.login_payload)
            body = json.loads(request.content)
            assert body["otp"] == "123"
            self.tokens_issued += 1
            return httpx.Response(
                200,
                json={
                    "access_token": self.current_token,
                    "token_type": "Bearer",
                    "expires_in": self.expires_in,
                },
            )

        if request.headers.get("Authorization") != f"Bearer {self.current_token}":
            return httpx.Response(401, json={"message": "Unauthorized"})

        if path == "/api/accessories" and request.method == "GET":
            if self.accessories_status != 200:
                return httpx.Response(self.accessories_status, text="boom")
            return httpx.Response(200, json=self.accessories)

        if path == "/api/server/restart" and request.method == "PUT":
            if self.restart_error is not None:
                raise self.restart_error
            return httpx.Response(self.restart_status, json={"ok": True})

        return httpx.Response(404)


@pytest.fixture()
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def keyfile(tmp_path: Path) -> Path:
    path = tmp_path / "authorization_keys.yaml"
    path.write_text("keys:\n  - foo\n  - bar\n", encoding="utf-8")
    return path


@pytest.fixture()
def settings(keyfile: Path) -> Settings:
    return Settings(
        _env_file=None,
        HOMEBRIDGE_USERNAME="admin",
        HOMEBRIDGE_PASSWORD="secret",
        HOMEBRIDGE_URI=HUB_URI,
        AUTH_KEYFILE=str(keyfile),
    )


@pytest_asyncio.fixture()
async def adapter(hub: FakeHub, clock: FakeClock) -> AsyncIterator[HomebridgeAdapter]:
    """Yield a Homebridge adapter wired to the fake hub."""
    client = HomebridgeAdapter(HUB_URI, transport=hub.transport(), clock=clock)
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture()
def session(adapter: HomebridgeAdapter, clock: FakeClock) -> Session:
    return Session(adapter, username="admin", password="secret", clock=clock)


@pytest_asyncio.fixture()
async def app(
    settings: Settings, hub: FakeHub, clock: FakeClock
) -> AsyncIterator[FastAPI]:
    """Yield the exporter application talking to the fake hub."""
    application = create_app(settings, transport=hub.transport(), clock=clock)
    try:
        yield application
    finally:
        await application.state.session.adapter.close()


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an async HTTP client wired to the ASGI app.

    Uses ``httpx.ASGITransport`` so that requests are handled in-process
    without starting a real server.
    """
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
    ) as ac:
        yield ac
