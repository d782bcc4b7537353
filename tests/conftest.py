# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("ADMIN_PASSWORD", "admin-secret")
os.environ.setdefault("USER_PASSWORD", "user-secret")
os.environ.setdefault("GEO_LOOKUP_ENABLED", "false")

from camrelay.api.v1.dependencies import get_gateway_dep, get_relay_dep
from camrelay.core.settings import settings
from camrelay.main import app as fastapi_app
from camrelay.services.audit import AuditLogger, FileAuditStore
from camrelay.services.gateway import AccessGateway
from camrelay.services.geo import GeoLocator
from camrelay.services.rate_limit import LoginRateLimiter
from camrelay.services.registry import ConnectionRegistry
from camrelay.services.relay import BroadcastRelay
from camrelay.services.sessions import SessionStore

ADMIN_PASSWORD = settings.admin_password
USER_PASSWORD = settings.user_password


class FakeClock:
    """Manually advanced clock serving both monotonic seconds and UTC datetimes."""

    def __init__(self) -> None:
        self._offset = 0.0
        self._base = datetime.now(UTC)

    def monotonic(self) -> float:
        return 1_000.0 + self._offset

    def utcnow(self) -> datetime:
        return self._base + timedelta(seconds=self._offset)

    def advance(self, seconds: float) -> None:
        self._offset += seconds


class FakeTransport:
    """In-memory stand-in for a WebSocket's outbound side."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.received: list[bytes | str] = []
        self.fail = fail
        self.delay = delay
        self.closed_with: int | None = None

    async def _send(self, data: bytes | str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("Cannot call 'send' once a close message has been sent.")
        self.received.append(data)

    async def send_bytes(self, data: bytes) -> None:
        await self._send(data)

    async def send_text(self, data: str) -> None:
        await self._send(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def audit_store(tmp_path) -> FileAuditStore:
    """Audit store writing to a per-test file."""
    return FileAuditStore(tmp_path / "login_attempts.log")


@pytest.fixture()
def audit_logger(audit_store: FileAuditStore) -> AuditLogger:
    return AuditLogger(locator=GeoLocator(enabled=False), store=audit_store)


@pytest.fixture()
def limiter(clock: FakeClock) -> LoginRateLimiter:
    return LoginRateLimiter(max_attempts=5, window_seconds=15 * 60, clock=clock.monotonic)


@pytest.fixture()
def session_store(clock: FakeClock) -> SessionStore:
    return SessionStore(ttl=timedelta(hours=24), clock=clock.utcnow)


@pytest.fixture()
def gateway(
    limiter: LoginRateLimiter,
    session_store: SessionStore,
    audit_logger: AuditLogger,
) -> AccessGateway:
    """Gateway wired to fresh, per-test collaborators."""
    return AccessGateway(limiter=limiter, sessions=session_store, audit=audit_logger)


@pytest.fixture()
def relay() -> BroadcastRelay:
    return BroadcastRelay(ConnectionRegistry(), send_timeout=0.2)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_service_dependencies(
    app: FastAPI,
    gateway: AccessGateway,
    relay: BroadcastRelay,
) -> Iterator[None]:
    app.dependency_overrides[get_gateway_dep] = lambda: gateway
    app.dependency_overrides[get_relay_dep] = lambda: relay
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_gateway_dep, None)
        app.dependency_overrides.pop(get_relay_dep, None)


@pytest.fixture()
def client(app: FastAPI, gateway: AccessGateway) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
        # Background audit writes run on the client's event loop.
        test_client.portal.call(gateway.audit.drain)


@pytest.fixture()
def drain_audit(client: TestClient, gateway: AccessGateway):
    """Return a callable that waits for queued audit writes to land."""

    def _drain() -> None:
        client.portal.call(gateway.audit.drain)

    return _drain


@pytest.fixture()
def admin_client(client: TestClient) -> TestClient:
    """Client holding an admin session cookie."""
    response = client.post(
        "/api/v1/auth/login",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client


@pytest.fixture()
def user_client(client: TestClient) -> TestClient:
    """Client holding a regular-user session cookie."""
    response = client.post(
        "/api/v1/auth/login",
        json={"username": "user", "password": USER_PASSWORD},
    )
    assert response.status_code == 200
    return client
