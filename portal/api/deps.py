from __future__ import annotations

from fastapi import HTTPException, Request

from portal.auth.models import Identity
from portal.auth.service import get_auth_service


def authenticate_request(request: Request) -> Identity | None:
    """Return the session identity for a request, or None when anonymous."""
    identity = get_auth_service().resolver.resolve(request.headers.get("cookie"))
    return identity if isinstance(identity, Identity) else None


def require_identity(request: Request) -> Identity:
    """
    FastAPI dependency for routes that need a logged-in user.

    The identity is also attached to `request.state.user` for handlers that
    read it from there.
    """
    identity = authenticate_request(request)
    if identity is None:
        # No `WWW-Authenticate`: browsers would pop a basic-auth modal over the login UI.
        raise HTTPException(status_code=401, detail="Unauthorized")
    request.state.user = identity
    return identity
