"""Tests for the /debug inspection endpoints."""

import pytest

from formgate.identity import derive_key
from tests.mocks.models import ADMIN_SECRET, CLIENT_IP, OTHER_IP, SALT, valid_form

HEADERS = {"CF-Connecting-IP": CLIENT_IP}


@pytest.fixture()
def debug_client(make_client):
    return make_client(debug_mode=True, debug_allowed_ips=(CLIENT_IP,))


class TestAccess:
    def test_hidden_when_debug_off(self, client):
        resp = client.get("/debug", headers=HEADERS)
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_forbidden_for_other_addresses(self, debug_client):
        resp = debug_client.get("/debug", headers={"CF-Connecting-IP": OTHER_IP})
        assert resp.status_code == 403
        assert resp.json()["message"] == "Unauthorized access to debug mode."

    def test_spoofed_forwarded_for_does_not_pass_allowlist(self, make_client):
        client = make_client(debug_mode=True, debug_allowed_ips=("127.0.0.9",), client_ip_header="")
        resp = client.get("/debug/keys", headers={"X-Forwarded-For": "127.0.0.9"})
        assert resp.status_code == 403

    def test_not_in_openapi_schema(self, debug_client):
        paths = debug_client.get("/openapi.json").json()["paths"]
        assert not any(path.startswith("/debug") for path in paths)


class TestState:
    def test_reports_own_record(self, debug_client, clock):
        debug_client.post("/", data=valid_form(clock), headers=HEADERS)

        resp = debug_client.get("/debug", headers=HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert data["client_key"] == derive_key(CLIENT_IP, SALT)
        assert data["client_record"]["email"] == "visitor@example.com"
        assert data["record_count"] == 1

    def test_never_exposes_secrets(self, debug_client, clock):
        debug_client.post("/", data=valid_form(clock), headers=HEADERS)

        for path in ("/debug", "/debug/keys"):
            body = debug_client.get(path, headers=HEADERS).text
            assert ADMIN_SECRET not in body
            assert SALT not in body
            assert CLIENT_IP not in body

    def test_malformed_own_record(self, debug_client, kv):
        kv.seed(derive_key(CLIENT_IP, SALT), "garbage")
        resp = debug_client.get("/debug", headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json()["client_record"] is None


class TestKeys:
    def test_lists_keys(self, debug_client, kv):
        kv.seed("a", "{}")
        kv.seed("b", "{}")
        resp = debug_client.get("/debug/keys", headers=HEADERS)
        assert resp.json() == {"keys": ["a", "b"], "count": 2}


class TestDeleteKey:
    def test_deletes_existing_key(self, debug_client, kv):
        kv.seed("a", "{}")
        resp = debug_client.post("/debug/delete-key", data={"key": "a"}, headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert len(kv) == 0

    def test_missing_key_param(self, debug_client):
        resp = debug_client.post("/debug/delete-key", data={}, headers=HEADERS)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Key is required."

    def test_unknown_key(self, debug_client):
        resp = debug_client.post("/debug/delete-key", data={"key": "nope"}, headers=HEADERS)
        assert resp.status_code == 404
