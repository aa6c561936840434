"""
Shared test fixtures.

Provides a FastAPI TestClient wired to:
  • an in-memory KV store driven by a fake clock
  • a fake CAPTCHA verifier and a fake Telegram relay (no external HTTP)
  • slowapi throttling disabled

Collaborator fixtures are shared, so tests can assert on what the app
did (store writes, relay messages) after making HTTP requests.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from formgate.gate import AdmissionGate
from formgate.main import create_app
from formgate.store.records import RateLimitStore
from tests.mocks.models import make_settings
from tests.mocks.services import FakeCaptcha, FakeClock, FakeRelay, RecordingKVStore


# ── Collaborators ──────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def kv(clock: FakeClock) -> RecordingKVStore:
    return RecordingKVStore(clock)


@pytest.fixture()
def captcha() -> FakeCaptcha:
    return FakeCaptcha()


@pytest.fixture()
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture()
def settings():
    return make_settings()


@pytest.fixture()
def store(kv, settings, clock) -> RateLimitStore:
    return RateLimitStore(
        kv,
        window_seconds=settings.rate_limit_window_seconds,
        retention_seconds=settings.cleanup_retention_seconds,
        clock=clock.now,
    )


@pytest.fixture()
def gate(settings, store, captcha, relay, clock) -> AdmissionGate:
    return AdmissionGate(settings, store, captcha, relay, clock=clock.now)


# ── HTTP ───────────────────────────────────────────────────────────────────


@pytest.fixture()
def _no_throttle(monkeypatch):
    """Disable slowapi so repeated requests in one test are not throttled."""
    from formgate.rate_limit import limiter

    monkeypatch.setattr(limiter, "enabled", False)


@pytest.fixture()
def make_client(_no_throttle, kv, captcha, relay, clock):
    """Factory for a TestClient with custom settings over the shared fakes."""
    clients: list[TestClient] = []

    def _make(**overrides) -> TestClient:
        app = create_app(
            make_settings(**overrides),
            kv=kv,
            captcha=captcha,
            relay=relay,
            clock=clock.now,
        )
        tc = TestClient(app, raise_server_exceptions=False)
        tc.__enter__()
        clients.append(tc)
        return tc

    yield _make

    for tc in clients:
        tc.__exit__(None, None, None)


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()
