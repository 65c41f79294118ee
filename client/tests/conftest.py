"""Shared fixtures: a fake API app and clients wired to it in-process."""
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest

from core.client import DevConnectClient, build_client
from core.config import Settings
from core.http_client import HttpClient
from core.session import MemoryTokenStorage
from fake_api import BASE_URL, FakeApiState, create_app
from fakes import FakeClock, FakeSleep


@pytest.fixture
def api_state() -> FakeApiState:
    """Seeded backing store of the fake API."""
    return FakeApiState.seeded()


@pytest.fixture
def transport(api_state: FakeApiState) -> httpx.ASGITransport:
    """Transport routing requests to the fake API without a network."""
    return httpx.ASGITransport(app=create_app(api_state))


@pytest.fixture
async def http_client(transport: httpx.ASGITransport) -> AsyncGenerator[HttpClient, None]:
    """Anonymous HTTP client pointed at the fake API."""
    client = HttpClient(BASE_URL, transport=transport)
    yield client
    await client.close()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, with a short search debounce."""
    return Settings(
        _env_file=None,
        api_base_url=BASE_URL,
        token_storage_path=str(tmp_path / "session.json"),
        search_debounce_seconds=0.01,
    )


@pytest.fixture
def token_storage() -> MemoryTokenStorage:
    """Empty in-memory token storage."""
    return MemoryTokenStorage()


@pytest.fixture
async def client(
    settings: Settings,
    token_storage: MemoryTokenStorage,
    transport: httpx.ASGITransport,
) -> AsyncGenerator[DevConnectClient, None]:
    """Fully wired client, not signed in."""
    devconnect = build_client(settings, storage=token_storage, transport=transport)
    yield devconnect
    await devconnect.close()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    """Sleep replacement for retry backoff."""
    return FakeSleep()


@pytest.fixture
def clock() -> FakeClock:
    """Clock for cache expiry tests."""
    return FakeClock()
