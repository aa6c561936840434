"""
Interfaces for the two outbound collaborators of the gate.

The gate only depends on these protocols, so the CAPTCHA provider and
the messaging relay can be swapped (or faked in tests) freely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class RelayMessage:
    """An accepted submission, already truncated and HTML-escaped."""

    email: str
    subject: str
    message: str
    client_tag: str
    submitted_at: datetime


class CaptchaVerifier(Protocol):
    async def verify(self, token: str, client_identity: str) -> bool:
        """True only when the provider confirms the token."""
        ...

    async def close(self) -> None:
        ...


class NotificationRelay(Protocol):
    async def deliver(self, message: RelayMessage) -> bool:
        """True when the notification was accepted by the provider."""
        ...

    async def close(self) -> None:
        ...
