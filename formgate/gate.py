"""
Admission gate — decides whether a contact-form submission is relayed.

Checks run cheapest / most certain first and stop at the first failure:

1.  Honeypot fields must be empty                → SpamDetected
2.  Form token must be N hex characters          → InvalidSecurityToken
3.  CAPTCHA token must be present                → CaptchaRequired
4.  CAPTCHA provider must confirm the token      → CaptchaFailed
5.  Form must have been open long enough         → TimingDataMissing / SubmittedTooFast
6.  Client must report enough interaction        → InsufficientInteraction
7.  No live record for the derived client key    → RateLimited

Only after all seven pass does anything get written: one rate-limit
record (TTL = window), then one relay call.  The record is written
*before* delivery, so a relay outage still consumes the caller's window
unless ``rollback_on_delivery_failure`` is enabled.

Two near-simultaneous requests from the same client can both pass step 7
before either write lands; the store offers no compare-and-swap, so the
worst case is a duplicate notification.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable

from formgate.config import Settings
from formgate.errors import (
    CaptchaFailed,
    CaptchaRequired,
    DeliveryFailed,
    GateRejection,
    InsufficientInteraction,
    InvalidSecurityToken,
    RateLimited,
    SpamDetected,
    StoreUnavailable,
    SubmittedTooFast,
    TimingDataMissing,
)
from formgate.identity import derive_key, short_key
from formgate.models import RateLimitRecord, SubmissionAttempt
from formgate.sanitize import sanitize_field, truncate
from formgate.services.collaborators import CaptchaVerifier, NotificationRelay, RelayMessage
from formgate.store.records import RateLimitStore

logger = logging.getLogger(__name__)

_HEX = re.compile(r"[0-9a-fA-F]+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdmissionGate:
    def __init__(
        self,
        settings: Settings,
        store: RateLimitStore,
        captcha: CaptchaVerifier,
        relay: NotificationRelay,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._store = store
        self._captcha = captcha
        self._relay = relay
        self._clock = clock

    def key_for(self, client_identity: str) -> str:
        return derive_key(client_identity, self._settings.identity_salt)

    # ── Local checks (no I/O) ──────────────────────────────────────────

    def check_honeypots(self, attempt: SubmissionAttempt) -> None:
        filled = [name for name, value in attempt.honeypot_fields.items() if value]
        if filled:
            raise SpamDetected()

    def check_form_token(self, attempt: SubmissionAttempt) -> None:
        token = attempt.form_token or ""
        if len(token) != self._settings.form_token_length or not _HEX.fullmatch(token):
            raise InvalidSecurityToken()

    def check_timing(self, attempt: SubmissionAttempt, now: datetime) -> None:
        raw = (attempt.form_start_time or "").strip()
        if not raw:
            raise TimingDataMissing()
        try:
            started_ms = int(raw)
        except ValueError:
            raise TimingDataMissing() from None

        # Integer arithmetic: started_ms may exceed the float range
        elapsed_ms = int(now.timestamp() * 1000) - started_ms
        if elapsed_ms < self._settings.min_form_dwell_ms:
            raise SubmittedTooFast()

    def check_interaction(self, attempt: SubmissionAttempt) -> None:
        evidence = attempt.interaction
        s = self._settings
        if evidence.mouse_movements < s.min_mouse_movements:
            raise InsufficientInteraction()
        # Companion counters are only enforced when the client reported them
        if evidence.key_presses is not None and evidence.key_presses < s.min_key_presses:
            raise InsufficientInteraction("Please type your message.")
        if evidence.focus_events is not None and evidence.focus_events < s.min_focus_events:
            raise InsufficientInteraction("Please fill all required fields.")

    # ── Remote checks ──────────────────────────────────────────────────

    async def check_captcha(self, attempt: SubmissionAttempt) -> None:
        if not attempt.captcha_token:
            raise CaptchaRequired()
        try:
            ok = await self._captcha.verify(attempt.captcha_token, attempt.client_identity)
        except Exception:
            logger.exception("CAPTCHA verifier raised")
            ok = False
        if not ok:
            raise CaptchaFailed()

    async def check_rate_limit(self, key: str) -> None:
        if await self._store.is_rate_limited(key):
            raise RateLimited()

    # ── Pipeline ───────────────────────────────────────────────────────

    async def screen(self, attempt: SubmissionAttempt) -> str:
        """
        Run every check in order; return the derived key on success.

        Raises the first :class:`~formgate.errors.GateRejection` hit.
        Performs no writes.
        """
        self.check_honeypots(attempt)
        self.check_form_token(attempt)
        await self.check_captcha(attempt)
        self.check_timing(attempt, self._clock())
        self.check_interaction(attempt)

        key = self.key_for(attempt.client_identity)
        await self.check_rate_limit(key)
        return key

    async def submit(self, attempt: SubmissionAttempt) -> str:
        """Screen *attempt*, then record it and relay the notification."""
        try:
            key = await self.screen(attempt)
        except GateRejection as exc:
            logger.info(
                "Submission rejected (%s) for client %s",
                exc.code,
                short_key(self.key_for(attempt.client_identity)),
            )
            raise

        limit = self._settings.max_field_length
        now = self._clock()
        record = RateLimitRecord.create(
            email=truncate(attempt.email, limit),
            subject=truncate(attempt.subject, limit),
            now=now,
        )
        await self._store.record_submission(key, record)

        delivered = await self._deliver(
            RelayMessage(
                email=sanitize_field(attempt.email, limit),
                subject=sanitize_field(attempt.subject, limit),
                message=sanitize_field(attempt.message, limit),
                client_tag=short_key(key),
                submitted_at=now,
            )
        )
        if not delivered:
            if self._settings.rollback_on_delivery_failure:
                await self._rollback(key)
            raise DeliveryFailed()

        logger.info("Submission accepted for client %s", short_key(key))
        return key

    async def _deliver(self, message: RelayMessage) -> bool:
        try:
            return await self._relay.deliver(message)
        except Exception:
            logger.exception("Notification relay raised")
            return False

    async def _rollback(self, key: str) -> None:
        try:
            await self._store.forget(key)
            logger.info("Rolled back rate-limit record for %s after failed delivery", short_key(key))
        except StoreUnavailable:
            logger.warning("Could not roll back rate-limit record for %s", short_key(key))
