import hmac
from typing import Annotated

from fastapi import Depends, Request

from formgate.config import Settings
from formgate.errors import Forbidden, NotFound
from formgate.gate import AdmissionGate
from formgate.identity import get_client_ip
from formgate.store.records import RateLimitStore


# ── App-scoped collaborators ───────────────────────────────────────────────


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gate(request: Request) -> AdmissionGate:
    return request.app.state.gate


def get_store(request: Request) -> RateLimitStore:
    return request.app.state.store


AppSettings = Annotated[Settings, Depends(get_settings)]
Gate = Annotated[AdmissionGate, Depends(get_gate)]
Store = Annotated[RateLimitStore, Depends(get_store)]


def get_client_identity(request: Request, settings: AppSettings) -> str:
    return get_client_ip(request, settings.client_ip_header)


ClientIdentity = Annotated[str, Depends(get_client_identity)]


# ── Access control ─────────────────────────────────────────────────────────


def secret_matches(provided: str | None, expected: str) -> bool:
    """Constant-time comparison; an unset expected secret never matches."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_debug_access(settings: AppSettings, client_identity: ClientIdentity) -> None:
    """Debug routes exist only in debug mode and only for allow-listed addresses."""
    if not settings.debug_mode:
        raise NotFound()
    if client_identity not in settings.debug_allowed_ips:
        raise Forbidden("Unauthorized access to debug mode.")
