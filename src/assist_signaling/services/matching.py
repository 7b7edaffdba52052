"""Call matching between users and professionals."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from assist_signaling.domain.errors import InvalidTransitionError, NoMatchError
from assist_signaling.domain.models import ConnectionHandle, Registration, Role
from assist_signaling.domain.sessions import CallSession, SessionStatus
from assist_signaling.domain.signals import Delivery, SignalKind, server_event
from assist_signaling.services.registry import (
    AvailabilityTracker,
    ConnectionRegistry,
    WaitingQueue,
)
from assist_signaling.services.sessions import SessionStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class MatchingEngine(Protocol):
    """Operations that pair users with professionals.

    Every operation mutates the in-memory stores synchronously and returns
    the deliveries the caller must send.
    """

    registry: ConnectionRegistry
    sessions: SessionStore

    def register(
        self, identity: str, role: Role, handle: ConnectionHandle
    ) -> tuple[Registration, list[Delivery]]:
        """Register a connection and return the registration."""

    def unregister(
        self, identity: str, handle: ConnectionHandle | None = None
    ) -> list[Delivery]:
        """Drop a connection and end anything it participates in."""

    def initiate_call(
        self, user_id: str, target_code: str | None = None
    ) -> list[Delivery]:
        """Match a user with a professional or queue the user."""

    def accept_call(self, professional_id: str, user_id: str) -> list[Delivery]:
        """Activate the pending session between the pair."""

    def reject_call(
        self, professional_id: str, user_id: str, reason: str
    ) -> list[Delivery]:
        """Drop the pending session between the pair."""

    def end_call(self, identity: str, reason: str = "ended") -> list[Delivery]:
        """End whatever session the identity participates in."""

    def set_availability(self, identity: str, available: bool) -> list[Delivery]:
        """Toggle a professional's eligibility."""

    def drain_queue(self) -> list[Delivery]:
        """Match waiting users with free professionals."""

    def reap_stale(
        self, timeout: timedelta
    ) -> tuple[list[CallSession], list[Delivery]]:
        """Delete pending sessions older than the timeout."""

    def stats(self) -> dict[str, int]:
        """Return connection, session and queue counts."""

    def list_sessions(self) -> list[dict[str, object]]:
        """Return summaries of stored sessions."""

    def list_waiting(self) -> list[dict[str, object]]:
        """Return the waiting queue in order."""


@dataclass
class QueueMatchingEngine:
    """Explicit code first, then the first available professional, else queue.

    Rejected users are retried automatically against other professionals.
    A professional who declines a user is not offered that user again until
    the user starts a fresh call.
    """

    registry: ConnectionRegistry
    availability: AvailabilityTracker
    queue: WaitingQueue
    sessions: SessionStore
    clock: Callable[[], datetime] = _utc_now
    _declined: dict[str, set[str]] = field(default_factory=dict)

    def register(
        self, identity: str, role: Role, handle: ConnectionHandle
    ) -> tuple[Registration, list[Delivery]]:
        """Register a connection; professionals become available immediately."""
        previous = self.registry.get(identity)
        registration = self.registry.register(identity, role, handle)
        if previous is not None and previous.role != role:
            self.availability.mark_unavailable(identity)
            self.queue.remove(identity)
        deliveries = [
            server_event(
                SignalKind.REGISTERED,
                identity,
                {
                    "displayCode": registration.display_code,
                    "identity": identity,
                    "role": role.value,
                },
            )
        ]
        logger.info(
            "Registered %s as %s (%s)", identity, role.value, registration.display_code
        )
        if role == Role.PROFESSIONAL and self.sessions.find_for(identity) is None:
            self.availability.mark_available(identity)
            deliveries.extend(self.drain_queue())
        return registration, deliveries

    def unregister(
        self, identity: str, handle: ConnectionHandle | None = None
    ) -> list[Delivery]:
        """Remove a connection along with its availability, queue slot and session."""
        if not self.registry.unregister(identity, handle):
            return []
        self.availability.mark_unavailable(identity)
        self.queue.remove(identity)
        self._declined.pop(identity, None)
        logger.info("Unregistered %s", identity)
        return self.end_call(identity, reason="disconnected")

    def initiate_call(
        self, user_id: str, target_code: str | None = None
    ) -> list[Delivery]:
        """Start a fresh help request for a user."""
        registration = self.registry.require(user_id)
        if registration.role != Role.USER:
            raise InvalidTransitionError("Only users can initiate calls")
        if self.sessions.find_for(user_id) is not None:
            raise InvalidTransitionError("A call is already in progress")
        self._declined.pop(user_id, None)
        return self._match_or_wait(user_id, target_code)

    def accept_call(self, professional_id: str, user_id: str) -> list[Delivery]:
        """Activate the pending session and notify the user."""
        self.registry.require(professional_id)
        session = self.sessions.find_pending(user_id, professional_id)
        if session is None:
            raise InvalidTransitionError(f"No pending call from {user_id}")
        self.sessions.activate(session.id, self.clock())
        self.availability.mark_unavailable(professional_id)
        self._declined.pop(user_id, None)
        logger.info("Session %s active", session.id)
        return [
            server_event(
                SignalKind.CALL_ACCEPTED,
                user_id,
                {"sessionId": str(session.id), "professionalId": professional_id},
                sender=professional_id,
            )
        ]

    def reject_call(
        self, professional_id: str, user_id: str, reason: str
    ) -> list[Delivery]:
        """Drop the pending session, retry the user and free the professional."""
        self.registry.require(professional_id)
        session = self.sessions.find_pending(user_id, professional_id)
        if session is None:
            raise InvalidTransitionError(f"No pending call from {user_id}")
        self.sessions.delete(session.id, self.clock())
        self._declined.setdefault(user_id, set()).add(professional_id)
        logger.info("Session %s rejected: %s", session.id, reason)
        deliveries = [
            server_event(
                SignalKind.CALL_REJECTED,
                user_id,
                {"sessionId": str(session.id), "reason": reason},
                sender=professional_id,
            )
        ]
        if self.registry.is_registered(user_id):
            deliveries.extend(self._retry_after_reject(user_id))
        deliveries.extend(self._release_professional(professional_id))
        return deliveries

    def end_call(self, identity: str, reason: str = "ended") -> list[Delivery]:
        """End the identity's session; a missing session is a no-op."""
        session = self.sessions.find_for(identity)
        if session is None:
            return []
        self.sessions.delete(session.id, self.clock())
        self._declined.pop(session.user_id, None)
        logger.info("Session %s ended by %s (%s)", session.id, identity, reason)
        peer = session.counterpart(identity)
        deliveries: list[Delivery] = []
        if peer is not None:
            deliveries.append(
                server_event(
                    SignalKind.CALL_ENDED,
                    peer,
                    {"sessionId": str(session.id), "reason": reason},
                    sender=identity,
                )
            )
        deliveries.extend(self._release_professional(session.professional_id))
        return deliveries

    def set_availability(self, identity: str, available: bool) -> list[Delivery]:
        """Toggle a professional's eligibility without touching its connection."""
        registration = self.registry.require(identity)
        if registration.role != Role.PROFESSIONAL:
            raise InvalidTransitionError("Only professionals have availability")
        if not available:
            self.availability.mark_unavailable(identity)
            return [self._availability_changed(identity, available=False)]
        if self.sessions.find_for(identity) is not None:
            raise InvalidTransitionError("Cannot become available during a call")
        self.availability.mark_available(identity)
        return [
            self._availability_changed(identity, available=True),
            *self.drain_queue(),
        ]

    def drain_queue(self) -> list[Delivery]:
        """Match waiting users FIFO while professionals remain free."""
        deliveries: list[Delivery] = []
        for user_id in self.queue:
            if not len(self.availability):
                break
            if not self.registry.is_registered(user_id):
                self.queue.remove(user_id)
                continue
            if self.sessions.find_for(user_id) is not None:
                self.queue.remove(user_id)
                continue
            professional_id = self.availability.pick_available(
                exclude=self._declined.get(user_id, ())
            )
            if professional_id is None:
                continue
            deliveries.extend(self._open_session(user_id, professional_id))
        return deliveries

    def reap_stale(
        self, timeout: timedelta
    ) -> tuple[list[CallSession], list[Delivery]]:
        """Delete pending sessions nobody answered; callers are not notified."""
        now = self.clock()
        reaped: list[CallSession] = []
        for session in self.sessions.stale_pending(now - timeout):
            self.sessions.delete(session.id, now)
            self._declined.pop(session.user_id, None)
            reaped.append(session)
            logger.info("Reaped stale pending session %s", session.id)
        deliveries: list[Delivery] = []
        for session in reaped:
            deliveries.extend(self._release_professional(session.professional_id))
        return reaped, deliveries

    def stats(self) -> dict[str, int]:
        """Return connection, session and queue counts."""
        counts = self.registry.count_by_role()
        return {
            "users": counts[Role.USER],
            "professionals": counts[Role.PROFESSIONAL],
            "available_professionals": len(self.availability),
            "pending_sessions": self.sessions.count(SessionStatus.PENDING),
            "active_sessions": self.sessions.count(SessionStatus.ACTIVE),
            "waiting_users": len(self.queue),
        }

    def list_sessions(self) -> list[dict[str, object]]:
        """Return summaries of stored sessions."""
        return [session.to_summary() for session in self.sessions]

    def list_waiting(self) -> list[dict[str, object]]:
        """Return the waiting queue in order."""
        return [
            {"position": position, "user_id": user_id}
            for position, user_id in enumerate(self.queue, start=1)
        ]

    def _match_or_wait(self, user_id: str, target_code: str | None) -> list[Delivery]:
        professional_id = self._resolve_professional(user_id, target_code)
        if professional_id is not None:
            return self._open_session(user_id, professional_id)
        return self._no_match(user_id)

    def _resolve_professional(
        self, user_id: str, target_code: str | None
    ) -> str | None:
        if target_code:
            identity = self.registry.resolve_code(target_code)
            if identity is None or not self._is_free_professional(identity):
                return None
            return identity
        return self.availability.pick_available(
            exclude=self._declined.get(user_id, ())
        )

    def _is_free_professional(self, identity: str) -> bool:
        registration = self.registry.get(identity)
        return (
            registration is not None
            and registration.role == Role.PROFESSIONAL
            and self.availability.is_available(identity)
            and self.sessions.find_for(identity) is None
        )

    def _open_session(self, user_id: str, professional_id: str) -> list[Delivery]:
        session = self.sessions.create(user_id, professional_id, self.clock())
        self.availability.mark_unavailable(professional_id)
        self.queue.remove(user_id)
        caller = self.registry.require(user_id)
        logger.info(
            "Session %s pending: %s -> %s", session.id, user_id, professional_id
        )
        return [
            server_event(
                SignalKind.CALL_REQUEST,
                professional_id,
                {
                    "sessionId": str(session.id),
                    "callerId": user_id,
                    "callerCode": caller.display_code,
                },
                sender=user_id,
            ),
            server_event(
                SignalKind.PROFESSIONAL_AVAILABLE,
                user_id,
                {"sessionId": str(session.id), "professionalId": professional_id},
            ),
        ]

    def _no_match(self, user_id: str) -> list[Delivery]:
        position = self.queue.enqueue(user_id)
        logger.info("No professional free for %s; queued at %d", user_id, position)
        return [
            server_event(
                SignalKind.NO_PROFESSIONAL_AVAILABLE,
                user_id,
                {"queued": True, "queuePosition": position},
            )
        ]

    def _retry_after_reject(self, user_id: str) -> list[Delivery]:
        return self._match_or_wait(user_id, None)

    def _release_professional(self, professional_id: str) -> list[Delivery]:
        registration = self.registry.get(professional_id)
        if (
            registration is None
            or registration.role != Role.PROFESSIONAL
            or self.sessions.find_for(professional_id) is not None
        ):
            return []
        self.availability.mark_available(professional_id)
        return self.drain_queue()

    def _availability_changed(self, identity: str, available: bool) -> Delivery:
        return server_event(
            SignalKind.AVAILABILITY_CHANGED, identity, {"available": available}
        )


@dataclass
class DirectCodeMatchingEngine(QueueMatchingEngine):
    """Local pairing mode: users join a professional by its broadcast code.

    There is no first-available fallback, no waiting queue and no retry
    after a rejection.
    """

    def drain_queue(self) -> list[Delivery]:
        """Nothing ever waits in direct-code mode."""
        return []

    def _resolve_professional(
        self, user_id: str, target_code: str | None
    ) -> str | None:
        if not target_code:
            return None
        return super()._resolve_professional(user_id, target_code)

    def _no_match(self, user_id: str) -> list[Delivery]:
        error = NoMatchError("No professional is hosting that code")
        return [
            server_event(
                SignalKind.NO_PROFESSIONAL_AVAILABLE,
                user_id,
                {"queued": False, **error.to_payload()},
            )
        ]

    def _retry_after_reject(self, user_id: str) -> list[Delivery]:
        return []
