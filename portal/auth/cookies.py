"""
Set-Cookie rendering for the session token.

The session cookie is always HttpOnly with SameSite=None (the dashboard is
embedded cross-site). `Secure` is decided per request by `is_secure_request`.
"""
from __future__ import annotations

from typing import Optional

from portal.auth.config import DEFAULT_COOKIE_NAME


def is_secure_request(forwarded_proto: Optional[str], *, native_tls: bool = False) -> bool:
    """
    True if the client-facing transport is HTTPS.

    `forwarded_proto` is the raw `X-Forwarded-Proto` value. It is trusted as-is,
    so the immediate hop (reverse proxy / load balancer) must overwrite it and
    never pass through a client-supplied value. With a proxy chain only the
    first (client-facing) entry counts.
    """
    if native_tls:
        return True
    first = (forwarded_proto or "").split(",", 1)[0].strip().lower()
    return first == "https"


def _render(name: str, value: str, *, max_age: int, secure: bool) -> str:
    parts = [
        f"{name}={value}",
        f"Max-Age={max_age}",
        "Path=/",
        "HttpOnly",
        "SameSite=None",
    ]
    if secure:
        parts.append("Secure")
    return "; ".join(parts)


def build_set_cookie(token: str, ttl_seconds: int, secure: bool, *, name: str = DEFAULT_COOKIE_NAME) -> str:
    return _render(name, token, max_age=int(ttl_seconds), secure=secure)


def build_clear_cookie(secure: bool, *, name: str = DEFAULT_COOKIE_NAME) -> str:
    # Empty value + Max-Age=0 makes the browser drop the cookie.
    return _render(name, "", max_age=0, secure=secure)
