from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, StrictStr


class Role(str, Enum):
    ADMIN = "admin"
    VIEWER = "viewer"
    EDITOR = "editor"

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Credential:
    """Submitted username/password pair. Lives for one login call only."""

    username: Any = None
    password: Any = None


class LoginRequest(BaseModel):
    """Login request body. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    username: Optional[StrictStr] = None
    password: Optional[StrictStr] = None

    def to_credential(self) -> Credential:
        return Credential(username=self.username, password=self.password)


@dataclass(frozen=True)
class Identity:
    """Authenticated principal."""

    id: int
    open_id: str
    username: str
    display_name: str
    role: Role
    email: Optional[str] = None

    def public_dict(self) -> Dict[str, Any]:
        # Shape returned to the UI by login/session.
        return {
            "id": self.id,
            "username": self.username,
            "name": self.display_name,
            "role": self.role.value,
        }


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried inside a session token. Timestamps are epoch seconds."""

    subject_id: int
    open_id: str
    username: str
    display_name: str
    role: Role
    issued_at: int
    expires_at: int


class Anonymous:
    """Resolved state when no valid session is present."""

    _instance: Optional["Anonymous"] = None

    def __new__(cls) -> "Anonymous":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ANONYMOUS"


ANONYMOUS = Anonymous()
