"""Client-side mirror of one endpoint's call."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from assist_signaling.client.annotations import AnnotationBoard
from assist_signaling.client.call_state import CallEvent, CallState, CallStateMachine
from assist_signaling.domain.annotations import Annotation
from assist_signaling.domain.models import Role
from assist_signaling.domain.signals import (
    NEGOTIATION_KINDS,
    SignalEnvelope,
    SignalKind,
)

logger = logging.getLogger(__name__)

_SERVER_EVENTS: dict[SignalKind, CallEvent] = {
    SignalKind.CALL_REQUEST: CallEvent.CALL_REQUEST_RECEIVED,
    SignalKind.PROFESSIONAL_AVAILABLE: CallEvent.PROFESSIONAL_MATCHED,
    SignalKind.NO_PROFESSIONAL_AVAILABLE: CallEvent.NO_PROFESSIONAL_AVAILABLE,
    SignalKind.CALL_ACCEPTED: CallEvent.CALL_ACCEPTED_RECEIVED,
    SignalKind.CALL_REJECTED: CallEvent.CALL_REJECTED_RECEIVED,
    SignalKind.CALL_ENDED: CallEvent.CALL_ENDED,
}


@dataclass
class CallEndpoint:
    """Tracks what one participant knows about its call.

    ``receive`` consumes server envelopes; the action methods advance the
    local state and return the envelope to send.
    """

    identity: str
    role: Role
    machine: CallStateMachine = field(default_factory=CallStateMachine)
    board: AnnotationBoard = field(default_factory=AnnotationBoard)
    display_code: str | None = None
    session_id: str | None = None
    peer_id: str | None = None
    available: bool | None = None
    last_error: dict[str, Any] | None = None
    peer_location: Any = None
    negotiation: list[Mapping[str, Any]] = field(default_factory=list)

    @property
    def state(self) -> CallState:
        """Return the current call state."""
        return self.machine.state

    def receive(self, message: Mapping[str, Any]) -> CallState:  # noqa: PLR0912
        """Apply an envelope received from the server."""
        kind = SignalKind(message["type"])
        payload = message.get("payload") or {}
        if kind in _SERVER_EVENTS and not self._apply(_SERVER_EVENTS[kind]):
            return self.state

        if kind == SignalKind.REGISTERED:
            self.display_code = payload.get("displayCode")
        elif kind == SignalKind.CALL_REQUEST:
            self.peer_id = message.get("from")
            self.session_id = payload.get("sessionId")
        elif kind == SignalKind.PROFESSIONAL_AVAILABLE:
            self.peer_id = payload.get("professionalId")
            self.session_id = payload.get("sessionId")
        elif kind == SignalKind.CALL_ACCEPTED:
            self.session_id = payload.get("sessionId")
            self.peer_id = payload.get("professionalId")
        elif kind in {SignalKind.CALL_REJECTED, SignalKind.CALL_ENDED}:
            self._forget_session()
        elif kind == SignalKind.AVAILABILITY_CHANGED:
            self.available = bool(payload.get("available"))
        elif kind == SignalKind.ERROR:
            self.last_error = dict(payload)
        elif kind in NEGOTIATION_KINDS:
            self.negotiation.append(message)
        elif kind in {SignalKind.ANNOTATION, SignalKind.ANNOTATION_ADD}:
            self.board.add(Annotation.from_payload(payload))
        elif kind == SignalKind.ANNOTATION_CLEAR:
            self.board.clear()
        elif kind == SignalKind.FREEZE_VIDEO:
            self.board.freeze(message.get("timestamp"))
        elif kind == SignalKind.RESUME_VIDEO:
            self.board.resume(
                Annotation.from_payload(item)
                for item in payload.get("annotations") or []
            )
        elif kind == SignalKind.LOCATION_UPDATE:
            self.peer_location = payload.get("location")
        return self.state

    def register(self) -> dict[str, object]:
        """Build the register envelope."""
        return self._envelope(SignalKind.REGISTER, {"role": self.role.value})

    def initiate_call(self, target_code: str | None = None) -> dict[str, object]:
        """Start calling for help."""
        self.machine.handle(CallEvent.INITIATE)
        payload = {"targetCode": target_code} if target_code else {}
        return self._envelope(SignalKind.INITIATE_CALL, payload)

    def accept_call(self) -> dict[str, object]:
        """Accept the incoming call."""
        self.machine.handle(CallEvent.LOCAL_ACCEPT)
        return self._envelope(SignalKind.ACCEPT_CALL, {"userId": self.peer_id})

    def reject_call(self, reason: str = "declined") -> dict[str, object]:
        """Reject the incoming call."""
        self.machine.handle(CallEvent.LOCAL_REJECT)
        envelope = self._envelope(
            SignalKind.REJECT_CALL, {"userId": self.peer_id, "reason": reason}
        )
        self._forget_session()
        return envelope

    def end_call(self) -> dict[str, object]:
        """Hang up; the local machine moves on as if the call ended."""
        self._apply(CallEvent.CALL_ENDED)
        self._forget_session()
        return self._envelope(SignalKind.END_CALL, {})

    def set_availability(self, available: bool) -> dict[str, object]:
        """Build a set-availability envelope."""
        return self._envelope(SignalKind.SET_AVAILABILITY, {"available": available})

    def negotiation_complete(self) -> CallState:
        """Media engine reports the peer connection is up."""
        return self.machine.handle(CallEvent.NEGOTIATION_COMPLETE)

    def negotiation_failed(self) -> CallState:
        """Media engine reports negotiation error or timeout."""
        return self.machine.handle(CallEvent.NEGOTIATION_FAILED)

    def media_error(self) -> CallState:
        """Media engine reports a failure during the call."""
        return self.machine.handle(CallEvent.MEDIA_ERROR)

    def transport_dropped(self) -> CallState:
        """The signaling connection went away."""
        self._apply(CallEvent.TRANSPORT_DROPPED)
        return self.state

    def acknowledge(self) -> CallState:
        """Return to idle after a disconnect or failure."""
        return self.machine.handle(CallEvent.ACKNOWLEDGED)

    def send_offer(self, offer: object) -> dict[str, object]:
        """Wrap an opaque offer for the peer."""
        return self._envelope(SignalKind.OFFER, offer, to=self.peer_id)

    def send_answer(self, answer: object) -> dict[str, object]:
        """Wrap an opaque answer for the peer."""
        return self._envelope(SignalKind.ANSWER, answer, to=self.peer_id)

    def send_ice_candidate(self, candidate: object) -> dict[str, object]:
        """Wrap an opaque ICE candidate for the peer."""
        return self._envelope(SignalKind.ICE_CANDIDATE, candidate, to=self.peer_id)

    def add_annotation(self, annotation: Annotation) -> dict[str, object]:
        """Draw an annotation locally and share it."""
        self.board.add(annotation)
        return self._envelope(SignalKind.ANNOTATION_ADD, annotation.to_payload())

    def clear_annotations(self) -> dict[str, object]:
        """Clear the overlay locally and for the peer."""
        self.board.clear()
        return self._envelope(SignalKind.ANNOTATION_CLEAR, {})

    def freeze_video(self) -> dict[str, object]:
        """Freeze the frame for annotating."""
        snapshot = self.board.freeze()
        return self._envelope(
            SignalKind.FREEZE_VIDEO, {"capturedAt": snapshot.captured_at}
        )

    def resume_video(self) -> dict[str, object]:
        """Resume video, sending the full overlay so the peer can reconcile."""
        annotations = self.board.snapshot()
        self.board.resume()
        return self._envelope(SignalKind.RESUME_VIDEO, {"annotations": annotations})

    def share_location(self, location: object) -> dict[str, object]:
        """Share the device location with the peer."""
        return self._envelope(SignalKind.LOCATION_UPDATE, {"location": location})

    def _apply(self, event: CallEvent) -> bool:
        if not self.machine.can_handle(event):
            logger.warning(
                "Ignoring %s for %s in state %s",
                event.value,
                self.identity,
                self.state.value,
            )
            return False
        self.machine.handle(event)
        return True

    def _forget_session(self) -> None:
        self.session_id = None
        self.peer_id = None
        self.board.reset()

    def _envelope(
        self, kind: SignalKind, payload: object, to: str | None = None
    ) -> dict[str, object]:
        return SignalEnvelope(
            kind=kind, sender=self.identity, recipient=to, payload=payload
        ).to_wire()
