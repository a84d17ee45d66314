from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional, Protocol

from portal.auth.config import AuthConfig
from portal.auth.errors import InvalidCredentialsError, MissingFieldsError
from portal.auth.models import Credential, Identity, Role


@dataclass(frozen=True)
class StoredCredential:
    subject_id: int
    username: str
    password: str


class IdentityDirectory(Protocol):
    def lookup_credential(self, username: str) -> Optional[StoredCredential]: ...

    def identity_for(self, subject_id: int) -> Optional[Identity]: ...


class StaticIdentityDirectory:
    """
    One-row identity table built from configuration.

    Only the demo principal exists today; callers go through the directory
    interface so a real store can replace it without touching the codec.
    """

    def __init__(self, identity: Identity, password: str) -> None:
        self._identity = identity
        self._credential = StoredCredential(subject_id=identity.id, username=identity.username, password=password)

    @classmethod
    def from_config(cls, cfg: AuthConfig) -> "StaticIdentityDirectory":
        identity = Identity(
            id=cfg.demo_user_id,
            open_id=cfg.demo_open_id,
            username=cfg.demo_username,
            display_name=cfg.demo_display_name,
            email=cfg.demo_email or None,
            role=Role.parse(cfg.demo_role) or Role.ADMIN,
        )
        return cls(identity, cfg.demo_password)

    def lookup_credential(self, username: str) -> Optional[StoredCredential]:
        # Compare in constant time even though the table has one row.
        if _equals(username, self._credential.username):
            return self._credential
        return None

    def identity_for(self, subject_id: int) -> Optional[Identity]:
        if subject_id == self._identity.id:
            return self._identity
        return None


def _equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _field(value: object) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    return value


class CredentialValidator:
    def __init__(self, directory: IdentityDirectory) -> None:
        self._directory = directory

    def authenticate(self, candidate: Credential) -> Identity:
        """
        Check a submitted credential and return the matching identity.

        Raises:
            MissingFieldsError: username or password absent/empty/non-string.
            InvalidCredentialsError: no match.
        """
        username = _field(candidate.username)
        password = _field(candidate.password)
        if username is None or password is None:
            raise MissingFieldsError()

        stored = self._directory.lookup_credential(username)
        # Always run the password comparison so a wrong username costs the same as a wrong password.
        expected = stored.password if stored is not None else ""
        password_ok = _equals(password, expected)
        if stored is None or not password_ok:
            raise InvalidCredentialsError()

        identity = self._directory.identity_for(stored.subject_id)
        if identity is None:
            raise InvalidCredentialsError()
        return identity

    def validate(self, candidate: Credential) -> bool:
        """Boolean form of `authenticate`. Missing fields still raise."""
        try:
            self.authenticate(candidate)
        except InvalidCredentialsError:
            return False
        return True
