"""
Operator endpoints – secret-gated bulk cleanup of rate-limit records.

The secret is checked inside the handler (after the slowapi throttle) so
that failed guesses count against the caller's request budget.
"""

import logging

from fastapi import APIRouter, Request

from formgate.config import Settings
from formgate.dependencies import AppSettings, Store, secret_matches
from formgate.errors import Unauthorized
from formgate.models import AdminRequest, CleanupResponse, ErrorResponse
from formgate.rate_limit import STRICT, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _authorize(body: AdminRequest | None, settings: Settings) -> None:
    if not settings.admin_secret:
        logger.warning("Admin request refused: ADMIN_SECRET is not configured")
    if not secret_matches(body.secret if body else None, settings.admin_secret):
        raise Unauthorized()


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    responses={401: {"model": ErrorResponse}},
    operation_id="purgeRecords",
    summary="Delete every rate-limit record",
)
@limiter.limit(STRICT)
async def purge_records(
    request: Request,
    store: Store,
    settings: AppSettings,
    body: AdminRequest | None = None,
) -> CleanupResponse:
    _authorize(body, settings)
    deleted = await store.purge_all()
    logger.info("Admin cleanup removed %d record(s)", deleted)
    return CleanupResponse(deleted_count=deleted)


@router.post(
    "/sweep",
    response_model=CleanupResponse,
    responses={401: {"model": ErrorResponse}},
    operation_id="sweepRecords",
    summary="Delete rate-limit records older than the retention threshold",
)
@limiter.limit(STRICT)
async def sweep_records(
    request: Request,
    store: Store,
    settings: AppSettings,
    body: AdminRequest | None = None,
) -> CleanupResponse:
    _authorize(body, settings)
    deleted = await store.sweep()
    return CleanupResponse(deleted_count=deleted)
