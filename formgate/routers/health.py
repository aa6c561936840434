"""
Health check endpoint.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from formgate.config import APP_VERSION
from formgate.dependencies import Store
from formgate.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health(store: Store) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        store=store.backend,
        timestamp=datetime.now(timezone.utc),
    )
