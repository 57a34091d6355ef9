"""
Pytest configuration and shared fixtures for Sopen tests.

This file contains:
- Fake collaborators (datastore, cache, queue, auth, listener)
- Settings and boot fixtures backed by a temporary website tree
- Marker registration
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from sopen.background.file_watcher import PagesWatcher
from sopen.background.scheduler import PublishScheduler
from sopen.clients.auth_provider import AuthStatus, InvalidTokenError
from sopen.config.settings import SopenSettings
from sopen.core.boot_sequencer import BootSequencer, Collaborators
from sopen.website.generator import HomepageGenerator

project_root = Path(__file__).parent.parent


# =============================================================================
# Fakes
# =============================================================================

class FakeDatastore:
    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.connect_calls = 0
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("connection refused")
        self.connected = True

    async def ping(self) -> bool:
        return self.connected

    async def close(self) -> None:
        self.closed = True
        self.connected = False


class FakeCache:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.connect_calls = 0
        self.store: Dict[str, str] = {}
        self._available = False
        self.closed = False

    @property
    def available(self) -> bool:
        return self._available

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail:
            raise ConnectionError("redis refused")
        self._available = True

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key) if self._available else None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if not self._available:
            return False
        self.store[key] = value
        return True

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def close(self) -> None:
        self.closed = True
        self._available = False


class FakeQueue:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.connect_calls = 0
        self.handler = None
        self.messages: List[Dict[str, Any]] = []
        self._connected = False
        self.closed = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail:
            raise ConnectionError("amqp refused")
        self._connected = True

    async def start_consumer(self, handler) -> None:
        self.handler = handler

    async def enqueue(self, payload: Dict[str, Any], message_id: str) -> None:
        self.messages.append({"id": message_id, "payload": payload})

    async def close(self) -> None:
        self.closed = True
        self._connected = False


class FakeAuth:
    """Accepts ``user-token`` and ``admin-token``."""

    def __init__(self, status: AuthStatus = AuthStatus.ENABLED):
        self._status = status
        self.initialize_calls = 0

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def enabled(self) -> bool:
        return self._status is AuthStatus.ENABLED

    def initialize(self) -> AuthStatus:
        self.initialize_calls += 1
        return self._status

    async def verify_token(self, token: str) -> Dict[str, Any]:
        if token == "user-token":
            return {"uid": "u1", "name": "Ada"}
        if token == "admin-token":
            return {"uid": "a1", "name": "Root", "admin": True}
        raise InvalidTokenError("bad token")


class FakeListener:
    """Calls ``on_bound`` immediately, runs ``during(app)`` then returns."""

    def __init__(self, fail: Optional[BaseException] = None,
                 during: Optional[Callable[[FastAPI], Awaitable[None]]] = None):
        self.fail = fail
        self.during = during
        self.bound = False
        self.port = None

    async def serve(self, app: FastAPI, host: str, port: int, on_bound) -> None:
        if self.fail is not None:
            raise self.fail
        self.bound = True
        self.port = port
        on_bound()
        if self.during is not None:
            await self.during(app)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root_path():
    """Return the project root directory path."""
    return project_root


@pytest.fixture
def website_dir(tmp_path):
    (tmp_path / "website" / "pages").mkdir(parents=True)
    (tmp_path / "website" / "assets").mkdir(parents=True)
    return tmp_path / "website"


@pytest.fixture
def make_settings(website_dir):
    def _make(**overrides) -> SopenSettings:
        values = dict(
            port=3999,
            host="127.0.0.1",
            hostname="sopen.test",
            datastore_uri="mongodb://db.internal:27017/sopen",
            redis_url="redis://cache.internal:6379/0",
            queue_uri="",
            queue_enabled=False,
            environment="test",
            firebase_config_json="",
            datastore_connect_timeout=1.0,
            advisory_connect_timeout=1.0,
            artifact_wait_timeout=2.0,
            homepage_refresh_interval=3600.0,
            watch_interval=3600.0,
            website_dir=website_dir,
        )
        values.update(overrides)
        return SopenSettings(**values)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def make_collaborators():
    def _make(settings: SopenSettings, **overrides) -> Collaborators:
        values = dict(
            datastore=FakeDatastore(),
            cache=FakeCache(),
            queue=None,
            auth=FakeAuth(),
            generator=HomepageGenerator(settings.pages_dir),
            scheduler=PublishScheduler(),
            watcher=PagesWatcher(settings.pages_dir, interval=settings.watch_interval),
        )
        values.update(overrides)
        return Collaborators(**values)
    return _make


@pytest_asyncio.fixture
async def booted(settings, make_collaborators):
    """A sequencer that has completed boot (no listener), shut down afterwards."""
    collaborators = make_collaborators(settings)
    sequencer = BootSequencer(settings, FastAPI(), collaborators, FakeListener())
    await sequencer.boot()
    await sequencer.connector.drain(timeout=1.0)
    yield sequencer
    await sequencer.shutdown()


@pytest_asyncio.fixture
async def client(booted):
    transport = httpx.ASGITransport(app=booted.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://sopen.test") as c:
        yield c


@pytest.fixture(autouse=True)
def _capture_sopen_logs(caplog):
    caplog.set_level(logging.DEBUG)


@pytest.fixture
def coded(caplog):
    """Log records carrying a given ``event_code``."""
    def _records(code: str):
        return [r for r in caplog.records if getattr(r, "event_code", None) == code]
    return _records


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_report_header(config):
    """Add custom header to pytest report."""
    return [
        "Sopen Test Suite",
        f"Project Root: {project_root}",
    ]
