"""Single owner of all signaling state, serialized behind one lock."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta

from assist_signaling.domain.errors import (
    DeliveryFailureError,
    NotRegisteredError,
    SignalingError,
)
from assist_signaling.domain.models import ConnectionHandle, Registration, Role
from assist_signaling.domain.sessions import CallSession
from assist_signaling.domain.signals import (
    SERVER_IDENTITY,
    Delivery,
    SignalEnvelope,
    SignalKind,
)
from assist_signaling.services.matching import MatchingEngine
from assist_signaling.services.outbox import Outbox
from assist_signaling.services.relay import SignalRelay

logger = logging.getLogger(__name__)


@dataclass
class SignalingBroker:
    """Serializes every matching and relay operation.

    Registry, availability, queue and sessions form one unit; each public
    coroutine mutates them under the lock and queues the resulting frames on
    the recipients' outboxes, so recipients observe events in state order.
    Writing happens after the lock is released; the coroutine then waits for
    the frames it queued, bounded by ``send_timeout``.

    Operations taking a ``handle`` refuse to act unless that handle is the
    identity's current connection.
    """

    engine: MatchingEngine
    signal_relay: SignalRelay
    send_timeout: float = 5.0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _outboxes: dict[ConnectionHandle, Outbox] = field(default_factory=dict)

    async def register(
        self, identity: str, role: Role, handle: ConnectionHandle
    ) -> Registration:
        """Register a connection and announce its display code."""
        async with self._lock:
            previous = self.engine.registry.get(identity)
            registration, deliveries = self.engine.register(identity, role, handle)
            pending = self._enqueue(deliveries)
            superseded = None
            if previous is not None and previous.handle is not handle:
                superseded = self._outboxes.pop(previous.handle, None)
        await self._flush(pending)
        if superseded is not None:
            await superseded.close()
        return registration

    async def disconnect(
        self, identity: str, handle: ConnectionHandle | None = None
    ) -> None:
        """Run disconnect cleanup for an identity; repeated calls are no-ops."""
        async with self._lock:
            current = self.engine.registry.get(identity)
            pending = self._enqueue(self.engine.unregister(identity, handle))
            if handle is None and current is not None:
                handle = current.handle
            retired = None
            if handle is not None and not self._is_current(identity, handle):
                retired = self._outboxes.pop(handle, None)
        await self._flush(pending)
        if retired is not None:
            await retired.close()

    async def initiate_call(
        self,
        user_id: str,
        target_code: str | None = None,
        handle: ConnectionHandle | None = None,
    ) -> None:
        """Match the user or place it in the waiting queue."""
        async with self._lock:
            self._require_current(user_id, handle)
            pending = self._enqueue(self.engine.initiate_call(user_id, target_code))
        await self._flush(pending)

    async def accept_call(
        self,
        professional_id: str,
        user_id: str,
        handle: ConnectionHandle | None = None,
    ) -> None:
        """Accept a pending call."""
        async with self._lock:
            self._require_current(professional_id, handle)
            pending = self._enqueue(self.engine.accept_call(professional_id, user_id))
        await self._flush(pending)

    async def reject_call(
        self,
        professional_id: str,
        user_id: str,
        reason: str,
        handle: ConnectionHandle | None = None,
    ) -> None:
        """Reject a pending call; the user is retried automatically."""
        async with self._lock:
            self._require_current(professional_id, handle)
            pending = self._enqueue(
                self.engine.reject_call(professional_id, user_id, reason)
            )
        await self._flush(pending)

    async def end_call(
        self, identity: str, handle: ConnectionHandle | None = None
    ) -> None:
        """End the identity's session, if any."""
        async with self._lock:
            self._require_current(identity, handle)
            pending = self._enqueue(self.engine.end_call(identity))
        await self._flush(pending)

    async def set_availability(
        self, identity: str, available: bool, handle: ConnectionHandle | None = None
    ) -> None:
        """Toggle a professional's availability."""
        async with self._lock:
            self._require_current(identity, handle)
            pending = self._enqueue(self.engine.set_availability(identity, available))
        await self._flush(pending)

    async def relay(
        self, envelope: SignalEnvelope, handle: ConnectionHandle | None = None
    ) -> bool:
        """Forward an envelope to its recipient; return False if it was dropped."""
        async with self._lock:
            self._require_current(envelope.sender, handle)
            try:
                delivery = self.signal_relay.route(envelope)
            except DeliveryFailureError as exc:
                logger.debug("Dropped envelope: %s", exc.message)
                return False
            pending = self._enqueue([delivery])
        await self._flush(pending)
        return bool(pending)

    async def reap_stale(self, timeout: timedelta) -> list[CallSession]:
        """Delete pending sessions older than the timeout."""
        async with self._lock:
            reaped, deliveries = self.engine.reap_stale(timeout)
            pending = self._enqueue(deliveries)
        await self._flush(pending)
        return reaped

    async def stats(self) -> dict[str, int]:
        """Return a read-only snapshot of counts."""
        async with self._lock:
            return self.engine.stats()

    async def list_sessions(self) -> list[dict[str, object]]:
        """Return summaries of stored sessions."""
        async with self._lock:
            return self.engine.list_sessions()

    async def list_waiting(self) -> list[dict[str, object]]:
        """Return the waiting queue in order."""
        async with self._lock:
            return self.engine.list_waiting()

    async def report_error(
        self, handle: ConnectionHandle, error: SignalingError
    ) -> None:
        """Send an error envelope straight to a connection."""
        envelope = SignalEnvelope(
            kind=SignalKind.ERROR, sender=SERVER_IDENTITY, payload=error.to_payload()
        )
        outbox = self._outbox(handle)
        if not outbox.put(envelope.to_wire()):
            logger.debug("Dropped %s error for stalled connection", error.kind)
            return
        await outbox.drain()

    async def close(self) -> None:
        """Stop every outbox writer."""
        outboxes = list(self._outboxes.values())
        self._outboxes.clear()
        for outbox in outboxes:
            await outbox.close()

    def _require_current(
        self, identity: str, handle: ConnectionHandle | None
    ) -> None:
        registration = self.engine.registry.require(identity)
        if handle is not None and registration.handle is not handle:
            raise NotRegisteredError(
                f"{identity} is registered on another connection"
            )

    def _is_current(self, identity: str, handle: ConnectionHandle) -> bool:
        registration = self.engine.registry.get(identity)
        return registration is not None and registration.handle is handle

    def _outbox(self, handle: ConnectionHandle) -> Outbox:
        outbox = self._outboxes.get(handle)
        if outbox is None:
            outbox = Outbox(handle=handle, send_timeout=self.send_timeout)
            self._outboxes[handle] = outbox
        return outbox

    def _enqueue(self, deliveries: Iterable[Delivery]) -> list[Outbox]:
        pending: list[Outbox] = []
        for delivery in deliveries:
            kind = delivery.envelope.kind.value
            try:
                handle = self.engine.registry.lookup(delivery.recipient)
            except NotRegisteredError:
                logger.debug("Dropped %s for disconnected %s", kind, delivery.recipient)
                continue
            outbox = self._outbox(handle)
            if not outbox.put(delivery.envelope.to_wire()):
                logger.debug("Dropped %s for stalled %s", kind, delivery.recipient)
                continue
            if outbox not in pending:
                pending.append(outbox)
        return pending

    async def _flush(self, outboxes: list[Outbox]) -> None:
        if outboxes:
            await asyncio.gather(*(outbox.drain() for outbox in outboxes))
