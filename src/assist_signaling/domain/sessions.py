"""Domain models for call sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class SessionStatus(str, Enum):
    """Lifecycle status of a call session."""

    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class CallSession:
    """Pairing of one user and one professional."""

    id: UUID
    user_id: str
    professional_id: str
    status: SessionStatus
    created_at: datetime
    accepted_at: datetime | None = None
    ended_at: datetime | None = None

    def involves(self, identity: str) -> bool:
        """Return whether the identity participates in this session."""
        return identity in {self.user_id, self.professional_id}

    def counterpart(self, identity: str) -> str | None:
        """Return the other participant for the identity, if it participates."""
        if identity == self.user_id:
            return self.professional_id
        if identity == self.professional_id:
            return self.user_id
        return None

    def to_summary(self) -> dict[str, object]:
        """Return a JSON-friendly summary."""
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "professional_id": self.professional_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
        }
