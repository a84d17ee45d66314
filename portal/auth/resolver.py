from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Union

from portal.auth.config import DEFAULT_COOKIE_NAME
from portal.auth.credentials import IdentityDirectory
from portal.auth.errors import VerificationError
from portal.auth.models import ANONYMOUS, Anonymous, Identity
from portal.auth.session import SessionCodec


def parse_cookie_header(header: Optional[str]) -> Dict[str, str]:
    """
    Parse a `Cookie` request header into a name -> value dict.

    Pairs are split on `;` and each pair on its first `=` only, since token
    values may themselves contain `=`. The first occurrence of a name wins.
    """
    cookies: Dict[str, str] = {}
    for part in (header or "").split(";"):
        name, sep, value = part.strip().partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies.setdefault(name, value)
    return cookies


class SessionResolver:
    def __init__(
        self,
        codec: SessionCodec,
        directory: Optional[IdentityDirectory] = None,
        *,
        cookie_name: str = DEFAULT_COOKIE_NAME,
    ) -> None:
        self._codec = codec
        self._directory = directory
        self._cookie_name = cookie_name

    def resolve(self, cookie_header: Optional[str], now: Optional[datetime] = None) -> Union[Identity, Anonymous]:
        """Return the session identity, or ANONYMOUS. Never raises on bad input."""
        token = parse_cookie_header(cookie_header).get(self._cookie_name)
        if not token:
            return ANONYMOUS
        try:
            claims = self._codec.verify(token, now=now)
        except VerificationError:
            return ANONYMOUS

        known = self._directory.identity_for(claims.subject_id) if self._directory is not None else None
        return Identity(
            id=claims.subject_id,
            open_id=claims.open_id,
            username=claims.username,
            display_name=claims.display_name,
            role=claims.role,
            email=known.email if known is not None else None,
        )
