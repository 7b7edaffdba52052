"""Best-effort relay of negotiation and annotation traffic."""

import logging
from dataclasses import dataclass

from assist_signaling.domain.errors import DeliveryFailureError, InvalidMessageError
from assist_signaling.domain.signals import (
    NEGOTIATION_KINDS,
    RELAYED_KINDS,
    Delivery,
    SignalEnvelope,
)
from assist_signaling.services.registry import ConnectionRegistry
from assist_signaling.services.sessions import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class SignalRelay:
    """Forward envelopes between the two participants of a session.

    Negotiation kinds are routed by their explicit recipient. Annotation,
    freeze/resume and location kinds go to the sender's active session
    counterpart. Payloads are never inspected.
    """

    registry: ConnectionRegistry
    sessions: SessionStore

    def route(self, envelope: SignalEnvelope) -> Delivery:
        """Resolve the recipient of an envelope.

        Raises ``DeliveryFailureError`` when nobody connected can receive it.
        """
        if envelope.kind not in RELAYED_KINDS:
            raise InvalidMessageError(f"{envelope.kind.value} cannot be relayed")
        recipient = self._resolve_recipient(envelope)
        if recipient is None or not self.registry.is_registered(recipient):
            raise DeliveryFailureError(
                f"No connected recipient for {envelope.kind.value} "
                f"from {envelope.sender}"
            )
        return Delivery(recipient=recipient, envelope=envelope.addressed_to(recipient))

    def _resolve_recipient(self, envelope: SignalEnvelope) -> str | None:
        if envelope.kind in NEGOTIATION_KINDS:
            if envelope.recipient:
                return envelope.recipient
            session = self.sessions.find_for(envelope.sender)
            return session.counterpart(envelope.sender) if session else None
        session = self.sessions.find_active(envelope.sender)
        if session is None:
            logger.debug(
                "%s from %s has no active session", envelope.kind.value, envelope.sender
            )
            return None
        return session.counterpart(envelope.sender)
