"""
FastAPI application factory for formgate.

``create_app()`` wires settings, the KV backend, the CAPTCHA verifier,
the Telegram relay and the admission gate together.  Every collaborator
can be passed in explicitly (tests do this); anything omitted is built
from the environment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from formgate.config import APP_VERSION, Settings, load_settings
from formgate.errors import (
    FormGateError,
    MethodNotAllowed,
    NotFound,
    TooManyRequests,
)
from formgate.gate import AdmissionGate
from formgate.rate_limit import limiter
from formgate.routers import admin, contact, debug, health
from formgate.services.background import SweepWorker
from formgate.services.captcha import TurnstileVerifier
from formgate.services.collaborators import CaptchaVerifier, NotificationRelay
from formgate.services.telegram import TelegramRelay
from formgate.store.factory import build_kv_store
from formgate.store.kv import KVStore
from formgate.store.records import RateLimitStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs full request URLs at INFO; Telegram URLs embed the bot token
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ── Exception handlers ─────────────────────────────────────────────────────


async def _formgate_error_handler(request: Request, exc: FormGateError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        error: FormGateError = MethodNotAllowed()
    elif exc.status_code == 404:
        error = NotFound()
    else:
        error = FormGateError(str(exc.detail))
        error.status_code = exc.status_code
        error.code = "http_error"
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
        headers=getattr(exc, "headers", None),
    )


async def _throttle_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    error = TooManyRequests()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=FormGateError().to_dict())


# ── Factory ────────────────────────────────────────────────────────────────


def create_app(
    settings: Settings | None = None,
    *,
    kv: KVStore | None = None,
    captcha: CaptchaVerifier | None = None,
    relay: NotificationRelay | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> FastAPI:
    if settings is None:
        settings = load_settings()
    _configure_logging(settings.log_level)

    if settings.uses_dev_salt and settings.environment == "production":
        logger.warning("IDENTITY_SALT is the development default; set a real salt")

    if kv is None:
        kv = build_kv_store(settings)
    store = RateLimitStore(
        kv,
        window_seconds=settings.rate_limit_window_seconds,
        retention_seconds=settings.cleanup_retention_seconds,
        clock=clock,
    )
    if captcha is None:
        captcha = TurnstileVerifier(
            settings.turnstile_secret,
            verify_url=settings.turnstile_verify_url,
            timeout=settings.captcha_timeout,
        )
    if relay is None:
        relay = TelegramRelay(
            settings.telegram_bot_token,
            settings.telegram_chat_id,
            api_base=settings.telegram_api_base,
            timeout=settings.relay_timeout,
        )
    gate = AdmissionGate(settings, store, captcha, relay, clock=clock)
    sweeper = SweepWorker(store, interval=settings.sweep_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await kv.open()
        await sweeper.start()
        logger.info(
            "formgate ready (store=%s, window=%ss, relay=%s)",
            kv.name,
            settings.rate_limit_window_seconds,
            "telegram" if settings.telegram_enabled else "console",
        )
        try:
            yield
        finally:
            await sweeper.stop()
            await captcha.close()
            await relay.close()
            await kv.close()

    app = FastAPI(
        title="formgate",
        description="Contact form gatekeeper: anti-bot checks, rate limiting and Telegram relay",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.gate = gate
    app.state.sweeper = sweeper
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Requested-With", "X-Form-Token"],
        max_age=86400,
    )

    app.add_exception_handler(FormGateError, _formgate_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, _throttle_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(health.router)
    app.include_router(admin.router)
    app.include_router(debug.router)
    app.include_router(contact.router)

    return app
