"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).

Values are gathered into an immutable :class:`Settings` object by
:func:`load_settings`; the gate, store and routers receive that object at
construction and never read the environment themselves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
TELEGRAM_API_BASE = "https://api.telegram.org"
CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"

APP_VERSION = "0.1.0"

KV_BACKENDS = ("memory", "sqlite", "cloudflare")

_DEV_SALT = "dev-salt-change-me-in-production"


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_bool(name: str, default: bool) -> bool:
    return _env(name, "true" if default else "false").lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_list(name: str, default: str = "") -> tuple[str, ...]:
    return tuple(item.strip() for item in _env(name, default).split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Deployment configuration for the submission pipeline."""

    environment: str = "development"
    log_level: str = "INFO"

    # ── Rate limiting ─────────────────────────────────────────────────
    rate_limit_window_seconds: int = 4 * 60 * 60
    cleanup_retention_seconds: int = 32 * 24 * 60 * 60
    identity_salt: str = _DEV_SALT
    rollback_on_delivery_failure: bool = False

    # ── Gate heuristics ───────────────────────────────────────────────
    honeypot_fields: tuple[str, ...] = ("honeypot", "website")
    form_token_length: int = 32
    min_form_dwell_ms: int = 5000
    min_mouse_movements: int = 10
    min_key_presses: int = 5
    min_focus_events: int = 2
    max_field_length: int = 5000

    # ── CAPTCHA (Cloudflare Turnstile) ────────────────────────────────
    turnstile_secret: str = ""
    turnstile_verify_url: str = TURNSTILE_VERIFY_URL
    captcha_timeout: float = 10.0

    # ── Telegram relay ────────────────────────────────────────────────
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_api_base: str = TELEGRAM_API_BASE
    relay_timeout: float = 10.0

    # ── Admin / debug ─────────────────────────────────────────────────
    admin_secret: str = ""
    debug_mode: bool = False
    debug_allowed_ips: tuple[str, ...] = ()

    # ── HTTP ──────────────────────────────────────────────────────────
    allowed_origins: tuple[str, ...] = ("http://localhost:8000",)
    client_ip_header: str = "cf-connecting-ip"

    # ── Storage ───────────────────────────────────────────────────────
    kv_backend: str = "memory"
    kv_sqlite_path: str = str(DATA_DIR / "formgate.db")
    cf_account_id: str = ""
    cf_kv_namespace_id: str = ""
    cf_api_token: str = ""

    # ── Background cleanup ────────────────────────────────────────────
    sweep_interval: float = 3600.0
    sweep_on_submit: bool = False

    def __post_init__(self) -> None:
        if self.rate_limit_window_seconds <= 0:
            raise ValueError("rate-limit window must be positive")
        if self.cleanup_retention_seconds <= self.rate_limit_window_seconds:
            raise ValueError(
                "cleanup retention must be strictly longer than the rate-limit window"
            )
        if self.kv_backend not in KV_BACKENDS:
            raise ValueError(
                f"unknown KV backend {self.kv_backend!r} (expected one of {', '.join(KV_BACKENDS)})"
            )
        if self.form_token_length <= 0:
            raise ValueError("form token length must be positive")

    @property
    def telegram_enabled(self) -> bool:
        """True when the relay should actually call Telegram."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def uses_dev_salt(self) -> bool:
        return self.identity_salt == _DEV_SALT


def load_settings() -> Settings:
    """Build :class:`Settings` from the process environment."""
    return Settings(
        environment=_env("ENVIRONMENT", "development"),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        rate_limit_window_seconds=int(_env_float("RATE_LIMIT_WINDOW_HOURS", 4) * 3600),
        cleanup_retention_seconds=int(_env_float("CLEANUP_RETENTION_DAYS", 32) * 86400),
        identity_salt=_env("IDENTITY_SALT", _DEV_SALT),
        rollback_on_delivery_failure=_env_bool("ROLLBACK_ON_DELIVERY_FAILURE", False),
        honeypot_fields=_env_list("HONEYPOT_FIELDS", "honeypot,website"),
        form_token_length=_env_int("FORM_TOKEN_LENGTH", 32),
        min_form_dwell_ms=_env_int("MIN_FORM_DWELL_MS", 5000),
        min_mouse_movements=_env_int("MIN_MOUSE_MOVEMENTS", 10),
        min_key_presses=_env_int("MIN_KEY_PRESSES", 5),
        min_focus_events=_env_int("MIN_FOCUS_EVENTS", 2),
        max_field_length=_env_int("MAX_FIELD_LENGTH", 5000),
        turnstile_secret=_env("TURNSTILE_SECRET"),
        turnstile_verify_url=_env("TURNSTILE_VERIFY_URL", TURNSTILE_VERIFY_URL),
        captcha_timeout=_env_float("CAPTCHA_TIMEOUT", 10.0),
        telegram_bot_token=_env("TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=_env("TELEGRAM_CHAT_ID"),
        relay_timeout=_env_float("RELAY_TIMEOUT", 10.0),
        admin_secret=_env("ADMIN_SECRET"),
        debug_mode=_env_bool("DEBUG_MODE", False),
        debug_allowed_ips=_env_list("DEBUG_ALLOWED_IPS"),
        allowed_origins=_env_list("ALLOWED_ORIGINS", "http://localhost:8000"),
        client_ip_header=_env("CLIENT_IP_HEADER", "cf-connecting-ip").lower(),
        kv_backend=_env("KV_BACKEND", "memory").lower(),
        kv_sqlite_path=_env("KV_SQLITE_PATH", str(DATA_DIR / "formgate.db")),
        cf_account_id=_env("CF_ACCOUNT_ID"),
        cf_kv_namespace_id=_env("CF_KV_NAMESPACE_ID"),
        cf_api_token=_env("CF_API_TOKEN"),
        sweep_interval=_env_float("SWEEP_INTERVAL", 3600.0),
        sweep_on_submit=_env_bool("SWEEP_ON_SUBMIT", False),
    )
