"""Tests for the Cloudflare Workers KV backend (HTTP mocked with httpx.MockTransport)."""

import httpx
import pytest

from formgate.errors import StoreUnavailable
from formgate.store.cloudflare import CloudflareKVStore
from formgate.store.records import RateLimitStore

BASE = "https://api.cloudflare.com/client/v4/accounts/acc/storage/kv/namespaces/ns"


def _store(handler) -> CloudflareKVStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CloudflareKVStore("acc", "ns", "tok", client=client)


class TestCloudflareKV:
    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            CloudflareKVStore("acc", "", "tok")

    async def test_get_value(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == f"{BASE}/values/abc"
            assert request.headers["authorization"] == "Bearer tok"
            return httpx.Response(200, text='{"email": "a"}')

        assert await _store(handler).get("abc") == '{"email": "a"}'

    async def test_get_missing(self):
        store = _store(lambda request: httpx.Response(404, json={"success": False}))
        assert await store.get("abc") is None

    async def test_put_sends_ttl_and_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["ttl"] = request.url.params["expiration_ttl"]
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"success": True})

        await _store(handler).put("abc", "payload", 14400)
        assert seen == {"method": "PUT", "ttl": "14400", "body": "payload"}

    async def test_put_clamps_ttl_to_minimum(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["ttl"] = request.url.params["expiration_ttl"]
            return httpx.Response(200, json={"success": True})

        await _store(handler).put("abc", "payload", 5)
        assert seen["ttl"] == "60"

    async def test_key_is_url_encoded(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.raw_path.endswith(b"/values/a%2Fb")
            return httpx.Response(200, json={"success": True})

        await _store(handler).delete("a/b")

    async def test_delete_missing_is_noop(self):
        store = _store(lambda request: httpx.Response(404, json={"success": False}))
        await store.delete("abc")

    async def test_list_follows_cursor(self):
        def handler(request: httpx.Request) -> httpx.Response:
            cursor = request.url.params.get("cursor")
            if cursor is None:
                return httpx.Response(
                    200,
                    json={
                        "success": True,
                        "result": [{"name": "a"}, {"name": "b"}],
                        "result_info": {"count": 2, "cursor": "next-page"},
                    },
                )
            assert cursor == "next-page"
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "result": [{"name": "c"}],
                    "result_info": {"count": 1, "cursor": ""},
                },
            )

        store = _store(handler)
        first = await store.list_keys()
        assert first.keys == ["a", "b"]
        assert first.cursor == "next-page"
        second = await store.list_keys(cursor=first.cursor)
        assert second.keys == ["c"]
        assert second.cursor is None

    async def test_server_error_becomes_store_unavailable(self):
        kv = _store(lambda request: httpx.Response(500, text="oops"))
        store = RateLimitStore(kv, window_seconds=60, retention_seconds=120)
        with pytest.raises(StoreUnavailable):
            await store.is_rate_limited("abc")
