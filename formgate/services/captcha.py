"""
Cloudflare Turnstile server-side verification.

Any non-success – an error code from Cloudflare, a non-200 response, a
transport error or a timeout – is reported as a failed verification.
"""

from __future__ import annotations

import logging

import httpx

from formgate.config import TURNSTILE_VERIFY_URL

logger = logging.getLogger(__name__)


class TurnstileVerifier:
    def __init__(
        self,
        secret: str,
        *,
        verify_url: str = TURNSTILE_VERIFY_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._secret = secret
        self._verify_url = verify_url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def verify(self, token: str, client_identity: str) -> bool:
        if not self._secret:
            logger.error("TURNSTILE_SECRET is not configured, rejecting CAPTCHA token")
            return False

        data = {"secret": self._secret, "response": token}
        if client_identity:
            data["remoteip"] = client_identity

        try:
            resp = await self._client.post(self._verify_url, data=data)
            resp.raise_for_status()
            result = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Turnstile verification request failed: %s", exc)
            return False
        except ValueError:
            logger.warning("Turnstile returned a non-JSON response")
            return False

        if result.get("success") is True:
            return True
        logger.info("Turnstile rejected token: %s", result.get("error-codes", []))
        return False
