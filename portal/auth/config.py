from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from portal.auth.errors import ConfigError

logger = logging.getLogger(__name__)

ONE_YEAR_SECONDS = 60 * 60 * 24 * 365

DEFAULT_COOKIE_NAME = "app_session_id"
# Shipped for local demos only; never deploy with it.
INSECURE_DEFAULT_SECRET = "observability-demo-secret"


@dataclass(frozen=True)
class AuthConfig:
    # Reference credential (single demo login)
    demo_username: str
    demo_password: str

    # Demo identity fields
    demo_user_id: int
    demo_open_id: str
    demo_display_name: str
    demo_email: str
    demo_role: str

    # Session configuration
    session_secret: str
    session_ttl_seconds: int
    cookie_name: str

    @property
    def uses_insecure_secret(self) -> bool:
        return self.session_secret == INSECURE_DEFAULT_SECRET


def _env(name: str, default: str) -> str:
    return (os.getenv(name, "") or "").strip() or default


def _parse_user_id(value: str) -> int:
    try:
        user_id = int(value)
    except ValueError:
        raise ConfigError(f"Invalid DEMO_USER_ID={value!r}: expected an integer") from None
    if user_id < 1:
        raise ConfigError(f"Invalid DEMO_USER_ID={user_id}: must be a positive integer")
    return user_id


def _parse_ttl(value: str) -> int:
    try:
        ttl = int(float(value))
    except ValueError:
        logger.warning("Invalid AUTH_SESSION_TTL_SECONDS=%r; using one year", value)
        return ONE_YEAR_SECONDS
    return max(ttl, 60)


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    Read once per process. Username, password and secret must be non-empty; the
    built-in secret default is accepted but flagged as unsafe for production.
    """
    username = (os.getenv("DEMO_USERNAME", "admin") or "").strip()
    password = os.getenv("DEMO_PASSWORD", "admin") or ""
    secret = (os.getenv("JWT_SECRET", INSECURE_DEFAULT_SECRET) or "").strip()

    missing = [
        name
        for name, value in (("DEMO_USERNAME", username), ("DEMO_PASSWORD", password), ("JWT_SECRET", secret))
        if not value
    ]
    if missing:
        raise ConfigError(f"Missing required auth configuration: {', '.join(missing)}")

    cfg = AuthConfig(
        demo_username=username,
        demo_password=password,
        demo_user_id=_parse_user_id(_env("DEMO_USER_ID", "1")),
        demo_open_id=_env("DEMO_OPEN_ID", "demo-admin-001"),
        demo_display_name=_env("DEMO_DISPLAY_NAME", "ADP Administrator"),
        demo_email=_env("DEMO_EMAIL", "admin@adp.local"),
        demo_role=_env("DEMO_ROLE", "admin").lower(),
        session_secret=secret,
        session_ttl_seconds=_parse_ttl(_env("AUTH_SESSION_TTL_SECONDS", str(ONE_YEAR_SECONDS))),
        cookie_name=_env("AUTH_COOKIE_NAME", DEFAULT_COOKIE_NAME),
    )
    if cfg.uses_insecure_secret:
        logger.warning("JWT_SECRET is not set; using the built-in demo secret. Do not use this in production.")
    return cfg
