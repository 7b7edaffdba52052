"""In-memory store of pending and active call sessions."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from assist_signaling.domain.errors import InvalidTransitionError
from assist_signaling.domain.sessions import CallSession, SessionStatus


@dataclass
class SessionStore:
    """Sessions keyed by id with a per-participant index.

    Ended sessions are deleted rather than kept, so every stored session is
    either pending or active and each identity maps to at most one of them.
    """

    _sessions: dict[UUID, CallSession] = field(default_factory=dict)
    _by_participant: dict[str, UUID] = field(default_factory=dict)

    def create(
        self, user_id: str, professional_id: str, created_at: datetime
    ) -> CallSession:
        """Create a pending session for the pair."""
        for identity in (user_id, professional_id):
            if identity in self._by_participant:
                raise InvalidTransitionError(f"{identity} already has a session")
        session = CallSession(
            id=uuid4(),
            user_id=user_id,
            professional_id=professional_id,
            status=SessionStatus.PENDING,
            created_at=created_at,
        )
        self._sessions[session.id] = session
        self._by_participant[user_id] = session.id
        self._by_participant[professional_id] = session.id
        return session

    def get(self, session_id: UUID) -> CallSession | None:
        """Return a session by id."""
        return self._sessions.get(session_id)

    def find_for(self, identity: str) -> CallSession | None:
        """Return the non-ended session an identity participates in."""
        session_id = self._by_participant.get(identity)
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def find_pending(self, user_id: str, professional_id: str) -> CallSession | None:
        """Return the pending session between a user and a professional."""
        session = self.find_for(user_id)
        if (
            session is None
            or session.status != SessionStatus.PENDING
            or session.professional_id != professional_id
        ):
            return None
        return session

    def find_active(self, identity: str) -> CallSession | None:
        """Return the active session an identity participates in."""
        session = self.find_for(identity)
        if session is None or session.status != SessionStatus.ACTIVE:
            return None
        return session

    def activate(self, session_id: UUID, accepted_at: datetime) -> CallSession:
        """Move a pending session to active."""
        session = self._sessions.get(session_id)
        if session is None or session.status != SessionStatus.PENDING:
            raise InvalidTransitionError("Session is not pending")
        session.status = SessionStatus.ACTIVE
        session.accepted_at = accepted_at
        return session

    def delete(self, session_id: UUID, ended_at: datetime) -> CallSession | None:
        """Remove a session and mark it ended; a missing id is a no-op."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        for identity in (session.user_id, session.professional_id):
            if self._by_participant.get(identity) == session_id:
                del self._by_participant[identity]
        session.status = SessionStatus.ENDED
        session.ended_at = ended_at
        return session

    def stale_pending(self, older_than: datetime) -> list[CallSession]:
        """Return pending sessions created before the cutoff."""
        return [
            session
            for session in self._sessions.values()
            if session.status == SessionStatus.PENDING
            and session.created_at < older_than
        ]

    def count(self, status: SessionStatus) -> int:
        """Return the number of stored sessions with the status."""
        return sum(1 for session in self._sessions.values() if session.status == status)

    def __iter__(self) -> Iterator[CallSession]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)
