"""
Cloudflare Workers KV backend via the REST API.

Eventually consistent: writes can take up to a minute to become visible
at other edge locations, and the minimum TTL Cloudflare accepts is 60
seconds.  A single instance (and its HTTP connection pool) is shared for
the app lifetime.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from formgate.config import CLOUDFLARE_API_BASE
from formgate.store.kv import DEFAULT_PAGE_SIZE, KeyPage

logger = logging.getLogger(__name__)

_MIN_TTL_SECONDS = 60
_MIN_LIST_LIMIT = 10
_MAX_LIST_LIMIT = 1000


class CloudflareKVStore:
    """Async client for one Workers KV namespace."""

    name = "cloudflare"

    def __init__(
        self,
        account_id: str,
        namespace_id: str,
        api_token: str,
        *,
        timeout: float = 10.0,
        api_base: str = CLOUDFLARE_API_BASE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not (account_id and namespace_id and api_token):
            raise ValueError(
                "Cloudflare KV backend needs CF_ACCOUNT_ID, CF_KV_NAMESPACE_ID and CF_API_TOKEN"
            )
        self._base = (
            f"{api_base}/accounts/{account_id}/storage/kv/namespaces/{namespace_id}"
        )
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_token}"}

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        await self._client.aclose()

    def _value_url(self, key: str) -> str:
        return f"{self._base}/values/{quote(key, safe='')}"

    # ── KVStore protocol ───────────────────────────────────────────────

    async def get(self, key: str) -> str | None:
        resp = await self._client.get(self._value_url(key), headers=self._headers)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.text

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        ttl = max(int(ttl_seconds), _MIN_TTL_SECONDS)
        resp = await self._client.put(
            self._value_url(key),
            params={"expiration_ttl": ttl},
            content=value.encode("utf-8"),
            headers={**self._headers, "Content-Type": "text/plain"},
        )
        resp.raise_for_status()

    async def delete(self, key: str) -> None:
        resp = await self._client.delete(self._value_url(key), headers=self._headers)
        if resp.status_code == 404:
            return
        resp.raise_for_status()

    async def list_keys(
        self, cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> KeyPage:
        params: dict[str, str | int] = {
            "limit": min(max(limit, _MIN_LIST_LIMIT), _MAX_LIST_LIMIT),
        }
        if cursor:
            params["cursor"] = cursor

        logger.debug("KV list request: cursor=%s", cursor)
        resp = await self._client.get(f"{self._base}/keys", params=params, headers=self._headers)
        resp.raise_for_status()
        body = resp.json()
        if not body.get("success", False):
            raise httpx.HTTPStatusError(
                f"KV list failed: {body.get('errors')}", request=resp.request, response=resp
            )

        keys = [item["name"] for item in body.get("result", [])]
        next_cursor = (body.get("result_info") or {}).get("cursor") or None
        return KeyPage(keys=keys, cursor=next_cursor)
