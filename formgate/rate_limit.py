"""
HTTP-level request throttling using slowapi.

This is a coarse flood guard in front of the routes, separate from the
one-submission-per-window policy the gate enforces against the KV store.

Two tiers:
  • strict  – 5/min  (admin endpoints – slows down secret guessing)
  • submit  – 20/min (contact form – absorbs bursts before CAPTCHA calls)

The limiter keys on the client address resolved the same way as the gate.
"""

from fastapi import Request
from slowapi import Limiter

from formgate.identity import get_client_ip


def _client_address(request: Request) -> str:
    settings = getattr(request.app.state, "settings", None)
    header = settings.client_ip_header if settings is not None else "cf-connecting-ip"
    return get_client_ip(request, header)


limiter = Limiter(key_func=_client_address)

# Named rate strings for use in @limiter.limit() decorators
STRICT = "5/minute"     # admin cleanup / sweep
SUBMIT = "20/minute"    # contact form
