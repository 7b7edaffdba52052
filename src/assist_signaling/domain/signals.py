"""Signal envelopes exchanged between endpoints and the server."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

SERVER_IDENTITY = "server"


class SignalKind(str, Enum):
    """Every envelope type known to the service."""

    # Client to server control
    REGISTER = "register"
    INITIATE_CALL = "initiate-call"
    ACCEPT_CALL = "accept-call"
    REJECT_CALL = "reject-call"
    END_CALL = "end-call"
    SET_AVAILABILITY = "set-availability"

    # Server to client control
    REGISTERED = "registered"
    CALL_REQUEST = "call-request"
    PROFESSIONAL_AVAILABLE = "professional-available"
    NO_PROFESSIONAL_AVAILABLE = "no-professional-available"
    CALL_ACCEPTED = "call-accepted"
    CALL_REJECTED = "call-rejected"
    CALL_ENDED = "call-ended"
    AVAILABILITY_CHANGED = "availability-changed"
    ERROR = "error"

    # Relayed between participants
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    ANNOTATION = "annotation"
    ANNOTATION_ADD = "annotation-add"
    ANNOTATION_CLEAR = "annotation-clear"
    FREEZE_VIDEO = "freeze-video"
    RESUME_VIDEO = "resume-video"
    LOCATION_UPDATE = "location-update"


NEGOTIATION_KINDS = frozenset(
    {SignalKind.OFFER, SignalKind.ANSWER, SignalKind.ICE_CANDIDATE}
)
SESSION_PEER_KINDS = frozenset(
    {
        SignalKind.ANNOTATION,
        SignalKind.ANNOTATION_ADD,
        SignalKind.ANNOTATION_CLEAR,
        SignalKind.FREEZE_VIDEO,
        SignalKind.RESUME_VIDEO,
        SignalKind.LOCATION_UPDATE,
    }
)
RELAYED_KINDS = NEGOTIATION_KINDS | SESSION_PEER_KINDS


def epoch_ms(moment: datetime | None = None) -> int:
    """Return a timestamp in epoch milliseconds."""
    resolved = moment or datetime.now(tz=UTC)
    return int(resolved.timestamp() * 1000)


@dataclass(frozen=True)
class SignalEnvelope:
    """Uniform wire unit; the payload is opaque to the core."""

    kind: SignalKind
    sender: str
    recipient: str | None = None
    payload: object = None
    timestamp: int = field(default_factory=epoch_ms)

    def to_wire(self) -> dict[str, object]:
        """Serialize to the JSON shape sent over the transport."""
        message: dict[str, object] = {
            "type": self.kind.value,
            "from": self.sender,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }
        if self.recipient is not None:
            message["to"] = self.recipient
        return message

    def addressed_to(self, recipient: str) -> "SignalEnvelope":
        """Return a copy addressed to the given recipient."""
        return SignalEnvelope(
            kind=self.kind,
            sender=self.sender,
            recipient=recipient,
            payload=self.payload,
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class Delivery:
    """An envelope bound for a specific identity."""

    recipient: str
    envelope: SignalEnvelope


def server_event(
    kind: SignalKind,
    recipient: str,
    payload: dict[str, object] | None = None,
    sender: str = SERVER_IDENTITY,
) -> Delivery:
    """Build a server-originated delivery."""
    return Delivery(
        recipient=recipient,
        envelope=SignalEnvelope(
            kind=kind, sender=sender, recipient=recipient, payload=payload or {}
        ),
    )
