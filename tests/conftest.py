from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from bizflow.config import Settings
from bizflow.main import create_app
from bizflow.mobile.container import build_container
from bizflow.mobile.infrastructure.repositories.demo_seed import DEMO_OWNER_EMAIL, DEMO_PASSWORD

BASE_SETTINGS: Dict[str, Any] = {
    "ENV": "test",
    "LOG_LEVEL": "WARNING",
    "LOG_FORMAT": "console",
    "SEED_DEMO_DATA": True,
    "RATE_LIMIT_BACKEND": "memory",
}


class FakeClock:
    """Manually advanced epoch-seconds clock for rate-limit windows."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings():
    def _make(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **{**BASE_SETTINGS, **overrides})

    return _make


@pytest.fixture
def make_client(make_settings, clock):
    """Fresh app + container (in-memory stores) per call."""

    def _make(**overrides: Any) -> TestClient:
        settings = make_settings(**overrides)
        app = create_app(settings, container=build_container(settings, clock=clock))
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def login(
    client: TestClient,
    *,
    email: str = DEMO_OWNER_EMAIL,
    password: str = DEMO_PASSWORD,
    device_id: str = "dev-1",
    platform: str = "ios",
) -> Dict[str, Any]:
    r = client.post(
        "/api/mobile/auth/login",
        json={
            "email": email,
            "password": password,
            "deviceId": device_id,
            "deviceName": f"Test phone {device_id}",
            "platform": platform,
            "appVersion": "3.2.0",
            "osVersion": "17.4",
        },
        headers={"X-Device-Id": device_id},
    )
    assert r.status_code == 200, r.text
    return r.json()


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login_as():
    return login
