# offerwatch/config.py
"""
Configuration loader.

Every setting is read from the environment once, in the app factory.
Tests (and embedding code) pass overrides straight to create_app().

    from offerwatch.config import load_config
    app.config.update(load_config({"PORT": 0}))
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

DEFAULT_PORT = 5000
MAX_BODY_BYTES = 10 * 1024 * 1024


class ConfigError(RuntimeError):
    """Raised when an environment variable holds an unusable value."""


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast=int):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    asset_root = os.getenv("ASSET_ROOT") or os.getcwd()

    config: Dict[str, Any] = {
        "APP_ENV": (os.getenv("APP_ENV") or "production").strip().lower(),
        "HOST": os.getenv("HOST", "0.0.0.0"),
        "PORT": _env_number("PORT", DEFAULT_PORT),
        "REUSE_PORT": _env_bool("REUSE_PORT", True),

        # ── Storage ─────────────────────────────────────────────────
        "SQLALCHEMY_DATABASE_URI": os.getenv(
            "SQLALCHEMY_DATABASE_URI", "sqlite:///offerwatch.db"
        ),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,

        # JSON and form bodies share the same 10 MiB limit
        "MAX_CONTENT_LENGTH": MAX_BODY_BYTES,

        "CORS_ALLOW_ALL": _env_bool("CORS_ALLOW_ALL", True),

        # ── Background jobs ─────────────────────────────────────────
        "SCHEDULER_ENABLED": _env_bool("SCHEDULER_ENABLED", True),
        "JOB_TIMEOUT_SECONDS": _env_number("JOB_TIMEOUT_SECONDS", 1800, float),
        "DAILY_SCAN_INTERVAL_HOURS": _env_number("DAILY_SCAN_INTERVAL_HOURS", 24, float),
        "PROXY_SCAN_INTERVAL_HOURS": _env_number("PROXY_SCAN_INTERVAL_HOURS", 24, float),

        # ── Scanners ────────────────────────────────────────────────
        "SCANNER_PROXY_URL": os.getenv("SCANNER_PROXY_URL") or None,
        "SCAN_HTTP_TIMEOUT": _env_number("SCAN_HTTP_TIMEOUT", 15, float),
        "OFFER_STALE_AFTER_DAYS": _env_number("OFFER_STALE_AFTER_DAYS", 7),
        "TARGET_SITES_FILE": os.getenv("TARGET_SITES_FILE") or None,

        # ── Static assets ───────────────────────────────────────────
        "ASSET_ROOT": asset_root,
        "STATIC_DIR": os.getenv("STATIC_DIR") or os.path.join(asset_root, "dist", "public"),
        "CLIENT_DIR": os.getenv("CLIENT_DIR") or os.path.join(asset_root, "client"),

        "ERROR_ESCALATION": (os.getenv("ERROR_ESCALATION") or "log").strip().lower(),
    }

    if overrides:
        config.update(overrides)

    if config["ERROR_ESCALATION"] not in ("log", "none"):
        raise ConfigError(
            f"ERROR_ESCALATION must be 'log' or 'none', got {config['ERROR_ESCALATION']!r}"
        )
    return config
