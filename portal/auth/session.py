from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from itsdangerous import BadData, URLSafeSerializer
from itsdangerous.encoding import base64_decode, base64_encode

from portal.auth.config import ONE_YEAR_SECONDS
from portal.auth.errors import SigningError, VerificationError
from portal.auth.models import Identity, Role, SessionClaims

logger = logging.getLogger(__name__)

SESSION_SALT = "portal-dashboard-session-v1"
ONE_YEAR = timedelta(seconds=ONE_YEAR_SECONDS)


def utcnow() -> datetime:
    """Seam for tests."""
    return datetime.now(timezone.utc)


def _epoch(now: Optional[datetime]) -> int:
    return int((now or utcnow()).timestamp())


def _has_canonical_signature(token: str) -> bool:
    # base64 ignores the unused low bits of the last character, so two different
    # strings can decode to the same signature. Only the canonical spelling is accepted.
    _, sep, sig = token.rpartition(".")
    if not sep or not sig:
        return False
    try:
        return base64_encode(base64_decode(sig)).decode("ascii") == sig
    except (BadData, UnicodeDecodeError):
        return False


class SessionCodec:
    """
    Issue and verify signed session tokens.

    A token is HMAC-SHA256 over compact, key-sorted JSON claims and needs no
    server-side lookup. The secret is fixed at construction.
    """

    def __init__(self, secret: str) -> None:
        self._serializer: Optional[URLSafeSerializer] = None
        if secret:
            self._serializer = URLSafeSerializer(
                secret_key=secret,
                salt=SESSION_SALT,
                signer_kwargs={"digest_method": hashlib.sha256},
            )

    def issue(self, identity: Identity, now: Optional[datetime] = None, ttl: timedelta = ONE_YEAR) -> str:
        if self._serializer is None:
            raise SigningError("Session signing is not configured (JWT_SECRET)")
        issued_at = _epoch(now)
        payload: Dict[str, Any] = {
            "sub": identity.id,
            "oid": identity.open_id,
            "usr": identity.username,
            "name": identity.display_name,
            "role": identity.role.value,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
        }
        try:
            raw = json.dumps(payload, separators=(",", ":"), sort_keys=True)
            return self._serializer.dumps(raw)
        except (TypeError, ValueError) as e:
            raise SigningError(str(e)) from e

    def verify(self, token: str, now: Optional[datetime] = None) -> SessionClaims:
        """
        Return the claims of a valid token.

        Any failure (signature, expiry, missing claims) raises the same
        `VerificationError`; the reason is only logged.
        """
        if self._serializer is None or not token:
            raise VerificationError()
        if not _has_canonical_signature(token):
            raise VerificationError()
        try:
            raw = self._serializer.loads(token)
            data = json.loads(raw)
        except (BadData, TypeError, ValueError) as e:
            logger.debug("Session token rejected: %s", type(e).__name__)
            raise VerificationError() from e

        claims = _claims_from_payload(data)
        if claims is None:
            logger.debug("Session token rejected: missing or malformed claims")
            raise VerificationError()
        if _epoch(now) >= claims.expires_at:
            logger.debug("Session token rejected: expired")
            raise VerificationError()
        return claims


def _int_claim(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _claims_from_payload(data: Any) -> Optional[SessionClaims]:
    if not isinstance(data, dict):
        return None
    subject_id = _int_claim(data.get("sub"))
    open_id = data.get("oid")
    expires_at = _int_claim(data.get("exp"))
    role = Role.parse(data.get("role"))
    if not subject_id or not isinstance(open_id, str) or not open_id:
        return None
    if expires_at is None or role is None:
        return None
    return SessionClaims(
        subject_id=subject_id,
        open_id=open_id,
        username=str(data.get("usr") or ""),
        display_name=str(data.get("name") or ""),
        role=role,
        issued_at=_int_claim(data.get("iat")) or 0,
        expires_at=expires_at,
    )
