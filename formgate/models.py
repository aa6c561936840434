"""Pydantic models and request value objects for the formgate API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field


# ── Persisted ─────────────────────────────────────────────────────────────


class RateLimitRecord(BaseModel):
    """The value stored under a rate-limit key for one accepted submission."""

    email: str = ""
    subject: str = ""
    message: str | None = None
    timestamp: str = Field(..., description="ISO-8601 UTC time of the accepted submission")

    @classmethod
    def create(
        cls,
        email: str,
        subject: str,
        now: datetime,
        message: str | None = None,
    ) -> RateLimitRecord:
        return cls(email=email, subject=subject, message=message, timestamp=now.isoformat())

    def recorded_at(self) -> datetime:
        """Parse :attr:`timestamp`; raises ``ValueError`` when malformed."""
        raw = self.timestamp.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


# ── Per-request ───────────────────────────────────────────────────────────


def _parse_count(raw: str | None) -> int | None:
    if raw is None or not str(raw).strip():
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def _honeypot_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    # A file part in a text-only trap field is filled, whatever its content
    return getattr(value, "filename", None) or "<upload>"


@dataclass(frozen=True)
class InteractionEvidence:
    """
    Client-reported interaction tallies for one form session.

    Only a weak heuristic: the server never treats these as proof of a
    human, only their absence as a hint of a script.  ``None`` means the
    client did not report that counter.
    """

    mouse_movements: int = 0
    key_presses: int | None = None
    focus_events: int | None = None


@dataclass(frozen=True)
class SubmissionAttempt:
    email: str
    subject: str
    message: str
    client_identity: str
    honeypot_fields: dict[str, str] = field(default_factory=dict)
    captcha_token: str | None = None
    form_token: str | None = None
    form_start_time: str | None = None
    interaction: InteractionEvidence = field(default_factory=InteractionEvidence)

    @classmethod
    def from_form(
        cls,
        form: Mapping[str, object],
        client_identity: str,
        honeypot_names: tuple[str, ...] = ("honeypot", "website"),
    ) -> SubmissionAttempt:
        """Build an attempt from a parsed multipart / urlencoded body."""

        def text(name: str) -> str | None:
            value = form.get(name)
            if value is None or not isinstance(value, str):
                return None
            return value

        return cls(
            email=(text("email") or "").strip(),
            subject=(text("subject") or "").strip(),
            message=(text("message") or "").strip(),
            client_identity=client_identity,
            honeypot_fields={name: _honeypot_value(form.get(name)) for name in honeypot_names},
            captcha_token=text("cf-turnstile-response"),
            form_token=text("formToken"),
            form_start_time=text("formStartTime"),
            interaction=InteractionEvidence(
                mouse_movements=_parse_count(text("mouseMovements")) or 0,
                key_presses=_parse_count(text("keyPresses")),
                focus_events=_parse_count(text("formInteractions")),
            ),
        )


# ── API responses ─────────────────────────────────────────────────────────


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str


class AdminRequest(BaseModel):
    secret: str | None = None


class CleanupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    deleted_count: int = Field(..., alias="deletedCount")


class HealthResponse(BaseModel):
    status: str
    version: str
    store: str
    timestamp: datetime


class DebugStateResponse(BaseModel):
    client_key: str
    client_record: RateLimitRecord | None = None
    record_count: int


class KeyListResponse(BaseModel):
    keys: list[str]
    count: int
