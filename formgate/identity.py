"""
Client identity helpers – raw address extraction and salted hashing.

The rate-limit store is keyed on ``derive_key(address, salt)``, never on
the raw address.  The key is an HMAC-SHA256 hex digest, so it is stable
for a given (address, salt) pair and cannot be reversed without the salt.
"""

from __future__ import annotations

import hashlib
import hmac

from fastapi import Request

UNKNOWN_CLIENT = "unknown"


def derive_key(client_identity: str, salt: str) -> str:
    """Return the rate-limit key for a raw client address."""
    return hmac.new(
        salt.encode("utf-8"),
        client_identity.strip().encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def short_key(key: str) -> str:
    """Log-friendly prefix of a derived key."""
    return key[:12]


def get_client_ip(request: Request, header: str = "cf-connecting-ip") -> str:
    """
    Best-effort client address for rate limiting.

    Only the configured *header* is trusted (Cloudflare sets
    ``CF-Connecting-IP``); any other forwarding header is client-controlled
    and ignored.  An empty *header* trusts the socket peer alone.
    """
    if header:
        value = request.headers.get(header)
        if value:
            # X-Forwarded-For style chains: take the first IP
            return value.split(",")[0].strip()
    return request.client.host if request.client else UNKNOWN_CLIENT
