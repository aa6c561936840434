"""
Debug endpoints – inspect and prune the rate-limit store.

Mounted only when DEBUG_MODE is on, and answered only for addresses in
DEBUG_ALLOWED_IPS.  Responses carry derived keys and stored records,
never configuration values or secrets.
"""

import logging

from fastapi import APIRouter, Depends, Request

from formgate.dependencies import ClientIdentity, Gate, Store, require_debug_access
from formgate.errors import BadRequest, NotFound
from formgate.identity import short_key
from formgate.models import DebugStateResponse, KeyListResponse, MessageResponse
from formgate.store.records import MalformedRecord

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/debug",
    tags=["debug"],
    dependencies=[Depends(require_debug_access)],
    include_in_schema=False,
)


@router.get("", response_model=DebugStateResponse)
async def debug_state(gate: Gate, store: Store, client_identity: ClientIdentity) -> DebugStateResponse:
    key = gate.key_for(client_identity)
    try:
        record = await store.get_record(key)
    except MalformedRecord:
        record = None
    keys = await store.all_keys()
    return DebugStateResponse(client_key=key, client_record=record, record_count=len(keys))


@router.get("/keys", response_model=KeyListResponse)
async def list_keys(store: Store) -> KeyListResponse:
    keys = await store.all_keys()
    return KeyListResponse(keys=keys, count=len(keys))


@router.post("/delete-key", response_model=MessageResponse)
async def delete_key(request: Request, store: Store) -> MessageResponse:
    form = await request.form()
    key = form.get("key")
    if not isinstance(key, str) or not key.strip():
        raise BadRequest("Key is required.")
    key = key.strip()

    if not await store.exists(key):
        raise NotFound(f'Key "{key}" not found.')

    await store.forget(key)
    logger.info("Debug deletion of key %s", short_key(key))
    return MessageResponse(message=f'Key "{key}" was deleted.')
