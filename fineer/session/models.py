"""
Session data model.

SessionState is immutable: every transition of the store publishes a brand new
instance, so listeners can compare snapshots safely.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import SessionError


class SessionStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Principal:
    """Identity issued by the auth provider (not the application user record)."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_decoded_token(cls, decoded: Dict[str, Any]) -> "Principal":
        return cls(
            uid=decoded["uid"],
            email=decoded.get("email"),
            display_name=decoded.get("name"),
            claims=dict(decoded),
        )


@dataclass(frozen=True)
class Profile:
    """Application record resolved 1:1 from a principal."""
    id: str
    data: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.data}


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus = SessionStatus.ANONYMOUS
    principal: Optional[Principal] = None
    profile: Optional[Profile] = None
    expires_at_millis: Optional[int] = None
    loading: bool = False
    error: Optional[SessionError] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "user": self.principal.uid if self.principal else None,
            "userData": self.profile.to_dict() if self.profile else None,
            "expiresAtMillis": self.expires_at_millis,
            "loading": self.loading,
            "error": str(self.error) if self.error else None,
        }


# Process start: nothing known yet, the provider has not reported.
INITIAL_STATE = SessionState(loading=True)
