"""
Contact form endpoint – the public write path guarded by the admission gate.
"""

from fastapi import APIRouter, BackgroundTasks, Request

from formgate.dependencies import AppSettings, ClientIdentity, Gate, Store
from formgate.models import ErrorResponse, MessageResponse, SubmissionAttempt
from formgate.rate_limit import SUBMIT, limiter
from formgate.services.background import sweep_best_effort

router = APIRouter(tags=["contact"])

_ERROR_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Spam or security check failed"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    500: {"model": ErrorResponse, "description": "Delivery failed"},
    # Store outages answer 503, delivery failures 500
    503: {"model": ErrorResponse, "description": "Rate-limit store unavailable"},
}


@router.post(
    "/",
    response_model=MessageResponse,
    responses=_ERROR_RESPONSES,
    operation_id="submitContactForm",
    summary="Submit the contact form",
)
@limiter.limit(SUBMIT)
async def submit_contact_form(
    request: Request,
    background_tasks: BackgroundTasks,
    gate: Gate,
    store: Store,
    settings: AppSettings,
    client_identity: ClientIdentity,
) -> MessageResponse:
    """
    Run the submission through the admission gate and relay it.

    Accepts multipart or urlencoded bodies with the fields rendered by the
    contact page (honeypots, Turnstile token, form token, timing and
    interaction counters).
    """
    form = await request.form()
    attempt = SubmissionAttempt.from_form(form, client_identity, settings.honeypot_fields)

    await gate.submit(attempt)

    if settings.sweep_on_submit:
        background_tasks.add_task(sweep_best_effort, store)

    return MessageResponse(message="Form submitted successfully!")
