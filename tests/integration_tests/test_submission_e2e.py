"""
End-to-end submission flow over HTTP.

Runs the real Turnstile verifier and Telegram relay against mocked
transports, on top of the SQLite KV backend, so every layer from form
parsing to the outbound sendMessage payload is exercised.
"""

from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from formgate.main import create_app
from formgate.services.captcha import TurnstileVerifier
from formgate.services.telegram import TelegramRelay
from formgate.store.sqlite import SqliteKVStore
from tests.mocks.models import ADMIN_SECRET, CLIENT_IP, make_settings, valid_form

HEADERS = {"CF-Connecting-IP": CLIENT_IP}


class _Provider:
    """Records outbound calls and answers like Turnstile / Telegram would."""

    def __init__(self) -> None:
        self.turnstile: list[dict] = []
        self.telegram: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "challenges.cloudflare.com":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.turnstile.append(form)
            return httpx.Response(200, json={"success": form["response"] != "bad-token"})
        self.telegram.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "result": {"message_id": len(self.telegram)}})


@pytest.fixture()
def provider() -> _Provider:
    return _Provider()


@pytest.fixture()
def e2e_client(_no_throttle, provider, clock, tmp_path):
    transport = httpx.MockTransport(provider.handler)
    app = create_app(
        make_settings(kv_backend="sqlite"),
        kv=SqliteKVStore(str(tmp_path / "kv.db"), clock=clock.time),
        captcha=TurnstileVerifier("turnstile-secret", client=httpx.AsyncClient(transport=transport)),
        relay=TelegramRelay("123:bot-token", "42", client=httpx.AsyncClient(transport=transport)),
        clock=clock.now,
    )
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc


def test_full_submission_lifecycle(e2e_client, provider, clock):
    form = valid_form(clock, message="<script>alert(1)</script> & thanks")

    # ── Accepted ──
    resp = e2e_client.post("/", data=form, headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    assert len(provider.turnstile) == 1
    assert provider.turnstile[0]["remoteip"] == CLIENT_IP

    assert len(provider.telegram) == 1
    sent = provider.telegram[0]
    assert sent["chat_id"] == "42"
    assert sent["parse_mode"] == "HTML"
    assert "&lt;script&gt;alert(1)&lt;/script&gt; &amp; thanks" in sent["text"]
    assert "<script>" not in sent["text"]
    assert CLIENT_IP not in sent["text"]

    # ── Same client inside the window ──
    clock.advance(hours=1)
    resp = e2e_client.post("/", data=valid_form(clock), headers=HEADERS)
    assert resp.status_code == 429
    assert len(provider.telegram) == 1

    # ── Window elapsed ──
    clock.advance(hours=3, seconds=1)
    resp = e2e_client.post("/", data=valid_form(clock), headers=HEADERS)
    assert resp.status_code == 200
    assert len(provider.telegram) == 2

    # ── Operator purge reopens the window immediately ──
    resp = e2e_client.post("/admin/cleanup", json={"secret": ADMIN_SECRET})
    assert resp.json() == {"success": True, "deletedCount": 1}

    resp = e2e_client.post("/", data=valid_form(clock), headers=HEADERS)
    assert resp.status_code == 200
    assert len(provider.telegram) == 3


def test_rejected_captcha_writes_nothing(e2e_client, provider, clock):
    resp = e2e_client.post(
        "/", data=valid_form(clock, **{"cf-turnstile-response": "bad-token"}), headers=HEADERS
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "captcha_failed"
    assert provider.telegram == []

    resp = e2e_client.post("/admin/cleanup", json={"secret": ADMIN_SECRET})
    assert resp.json()["deletedCount"] == 0


def test_health_reports_backend(e2e_client):
    assert e2e_client.get("/api/health").json()["store"] == "sqlite"
