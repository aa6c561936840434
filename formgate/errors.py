"""
Error taxonomy for the submission pipeline.

Every failure a request can end in is a :class:`FormGateError` carrying
its HTTP status, a stable machine-readable code and a short user-facing
message.  The app registers one exception handler that renders them all
with the same JSON body.

Two families matter to clients:

  • :class:`GateRejection` – the caller was blocked (spam, timing, limit…)
  • :class:`ServiceFailure` – something on our side broke
"""

from __future__ import annotations

from fastapi import status


class FormGateError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "Internal server error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


# ── Gate rejections ───────────────────────────────────────────────────────


class GateRejection(FormGateError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "rejected"
    message = "Security validation failed."


class SpamDetected(GateRejection):
    code = "spam_detected"
    message = "Spam detected."


class InvalidSecurityToken(GateRejection):
    code = "invalid_security_token"
    message = "Security token invalid."


class CaptchaRequired(GateRejection):
    code = "captcha_required"
    message = "Please complete the CAPTCHA verification."


class CaptchaFailed(GateRejection):
    code = "captcha_failed"
    message = "CAPTCHA verification failed."


class TimingDataMissing(GateRejection):
    code = "timing_data_missing"
    message = "Form timing data missing."


class SubmittedTooFast(GateRejection):
    code = "submitted_too_fast"
    message = "Please take your time filling out the form."


class InsufficientInteraction(GateRejection):
    code = "insufficient_interaction"
    message = "Please interact with the form naturally."


class RateLimited(GateRejection):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    message = "Rate limit exceeded. Please try again later."


# ── Service failures ──────────────────────────────────────────────────────


class ServiceFailure(FormGateError):
    pass


class DeliveryFailed(ServiceFailure):
    code = "delivery_failed"
    message = "Failed to deliver your message. Please try again later."


class StoreUnavailable(ServiceFailure):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
    message = "Service temporarily unavailable. Please try again later."


# ── Access / protocol ─────────────────────────────────────────────────────


class Unauthorized(FormGateError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    message = "Unauthorized."


class Forbidden(FormGateError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Access denied."


class NotFound(FormGateError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Not found."


class BadRequest(FormGateError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"
    message = "Bad request."


class MethodNotAllowed(FormGateError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    code = "method_not_allowed"
    message = "Method not allowed."


class TooManyRequests(FormGateError):
    """HTTP-level throttle (slowapi), distinct from the submission window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "too_many_requests"
    message = "Too many requests. Please slow down."
