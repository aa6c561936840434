"""Select and construct the configured KV backend."""

from __future__ import annotations

import logging

from formgate.config import Settings
from formgate.store.cloudflare import CloudflareKVStore
from formgate.store.kv import KVStore, MemoryKVStore
from formgate.store.sqlite import SqliteKVStore

logger = logging.getLogger(__name__)


def build_kv_store(settings: Settings) -> KVStore:
    if settings.kv_backend == "sqlite":
        return SqliteKVStore(settings.kv_sqlite_path)
    if settings.kv_backend == "cloudflare":
        return CloudflareKVStore(
            settings.cf_account_id,
            settings.cf_kv_namespace_id,
            settings.cf_api_token,
        )
    if settings.environment == "production":
        logger.warning("Using the in-memory KV store in production; records are per-process")
    return MemoryKVStore()
