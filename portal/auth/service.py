"""
Login / session / logout orchestration shared by both runtimes.

Each operation takes already-extracted request values and returns an
`AuthResponse`; the FastAPI server and the per-request handlers only translate
that into their own response objects.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from portal.auth.config import AuthConfig, load_auth_config
from portal.auth.cookies import build_clear_cookie, build_set_cookie
from portal.auth.credentials import CredentialValidator, IdentityDirectory, StaticIdentityDirectory
from portal.auth.errors import AuthError, SigningError
from portal.auth.models import Credential, Identity, LoginRequest
from portal.auth.resolver import SessionResolver
from portal.auth.session import SessionCodec

logger = logging.getLogger(__name__)

# Operation -> the only HTTP method it accepts.
ROUTE_METHODS: Dict[str, str] = {
    "login": "POST",
    "session": "GET",
    "logout": "POST",
    "me": "GET",
}

NO_STORE = {"Cache-Control": "no-store"}


@dataclass
class AuthResponse:
    status_code: int
    body: Dict[str, Any]
    set_cookies: List[str] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=lambda: dict(NO_STORE))


def error_response(status_code: int, message: str) -> AuthResponse:
    return AuthResponse(status_code=status_code, body={"error": message})


def not_found() -> AuthResponse:
    return error_response(404, "Not found")


def method_not_allowed() -> AuthResponse:
    return error_response(405, "Method not allowed")


def me_body(identity: Identity) -> Dict[str, Any]:
    user = identity.public_dict()
    user["email"] = identity.email
    return {"user": user}


def _parse_login(payload: Any) -> Credential:
    # A wrongly typed field counts as missing.
    try:
        return LoginRequest.model_validate(payload if isinstance(payload, Mapping) else {}).to_credential()
    except ValidationError:
        return Credential()


class AuthService:
    def __init__(
        self,
        cfg: AuthConfig,
        *,
        directory: Optional[IdentityDirectory] = None,
        codec: Optional[SessionCodec] = None,
    ) -> None:
        self._cfg = cfg
        self._directory = directory or StaticIdentityDirectory.from_config(cfg)
        self._codec = codec or SessionCodec(cfg.session_secret)
        self._validator = CredentialValidator(self._directory)
        self._resolver = SessionResolver(self._codec, self._directory, cookie_name=cfg.cookie_name)

    @property
    def config(self) -> AuthConfig:
        return self._cfg

    @property
    def directory(self) -> IdentityDirectory:
        return self._directory

    @property
    def codec(self) -> SessionCodec:
        return self._codec

    @property
    def resolver(self) -> SessionResolver:
        return self._resolver

    def login(self, payload: Any, *, secure: bool, now: Optional[datetime] = None) -> AuthResponse:
        candidate = _parse_login(payload)
        try:
            identity = self._validator.authenticate(candidate)
            token = self._codec.issue(identity, now=now, ttl=timedelta(seconds=self._cfg.session_ttl_seconds))
        except SigningError as e:
            logger.error("Failed to create session: %s", str(e))
            return error_response(e.status_code, SigningError.public_message)
        except AuthError as e:
            logger.info("Login rejected (status=%d)", e.status_code)
            return error_response(e.status_code, e.public_message)

        logger.info("Login succeeded for user id=%s", identity.id)
        cookie = build_set_cookie(token, self._cfg.session_ttl_seconds, secure, name=self._cfg.cookie_name)
        return AuthResponse(
            status_code=200,
            body={"success": True, "user": identity.public_dict()},
            set_cookies=[cookie],
        )

    def session(self, cookie_header: Optional[str], *, now: Optional[datetime] = None) -> AuthResponse:
        identity = self._resolver.resolve(cookie_header, now=now)
        if not isinstance(identity, Identity):
            return AuthResponse(status_code=200, body={"authenticated": False})
        return AuthResponse(status_code=200, body={"authenticated": True, "user": identity.public_dict()})

    def me(self, cookie_header: Optional[str], *, now: Optional[datetime] = None) -> AuthResponse:
        identity = self._resolver.resolve(cookie_header, now=now)
        if not isinstance(identity, Identity):
            return error_response(401, "Unauthorized")
        return AuthResponse(status_code=200, body=me_body(identity))

    def logout(self, *, secure: bool) -> AuthResponse:
        # Clears the browser cookie only; a copied token stays valid until it expires.
        return AuthResponse(
            status_code=200,
            body={"success": True},
            set_cookies=[build_clear_cookie(secure, name=self._cfg.cookie_name)],
        )


@lru_cache(maxsize=4)
def _service_for(cfg: AuthConfig) -> AuthService:
    return AuthService(cfg)


def get_auth_service() -> AuthService:
    """Process-wide service for the current configuration."""
    return _service_for(load_auth_config())
