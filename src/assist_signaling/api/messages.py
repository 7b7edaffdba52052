"""Pydantic models for inbound signaling envelopes."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from assist_signaling.domain.models import Role
from assist_signaling.domain.signals import SignalEnvelope, SignalKind, epoch_ms


class InboundEnvelope(BaseModel):
    """Fields shared by every inbound envelope.

    ``from`` is accepted for compatibility but the server always uses the
    identity bound to the connection.
    """

    model_config = ConfigDict(populate_by_name=True)

    sender: str | None = Field(default=None, alias="from")
    to: str | None = None
    timestamp: int | None = None


class RegisterPayload(BaseModel):
    """Register payload."""

    role: Role


class RegisterMessage(InboundEnvelope):
    """Register the connection's identity with a role."""

    type: Literal["register"]
    payload: RegisterPayload


class InitiateCallPayload(BaseModel):
    """Initiate-call payload."""

    model_config = ConfigDict(populate_by_name=True)

    target_code: str | None = Field(default=None, alias="targetCode")


class InitiateCallMessage(InboundEnvelope):
    """Ask for a professional, optionally a specific one by code."""

    type: Literal["initiate-call"]
    payload: InitiateCallPayload = Field(default_factory=InitiateCallPayload)


class CallerPayload(BaseModel):
    """Payload naming the calling user."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")


class AcceptCallMessage(InboundEnvelope):
    """Professional accepts a pending call."""

    type: Literal["accept-call"]
    payload: CallerPayload


class RejectCallPayload(CallerPayload):
    """Reject-call payload."""

    reason: str = "declined"


class RejectCallMessage(InboundEnvelope):
    """Professional rejects a pending call."""

    type: Literal["reject-call"]
    payload: RejectCallPayload


class EndCallMessage(InboundEnvelope):
    """Either participant ends the call."""

    type: Literal["end-call"]
    payload: dict[str, Any] | None = None


class AvailabilityPayload(BaseModel):
    """Set-availability payload."""

    available: bool


class SetAvailabilityMessage(InboundEnvelope):
    """Professional toggles its availability."""

    type: Literal["set-availability"]
    payload: AvailabilityPayload


class RelayedMessage(InboundEnvelope):
    """Negotiation, annotation, freeze/resume or location traffic."""

    type: Literal[
        "offer",
        "answer",
        "ice-candidate",
        "annotation",
        "annotation-add",
        "annotation-clear",
        "freeze-video",
        "resume-video",
        "location-update",
    ]
    payload: Any = None

    def to_envelope(self, sender: str) -> SignalEnvelope:
        """Convert to a core envelope sent by the given identity."""
        return SignalEnvelope(
            kind=SignalKind(self.type),
            sender=sender,
            recipient=self.to,
            payload=self.payload,
            timestamp=self.timestamp or epoch_ms(),
        )


InboundMessage = Annotated[
    RegisterMessage
    | InitiateCallMessage
    | AcceptCallMessage
    | RejectCallMessage
    | EndCallMessage
    | SetAvailabilityMessage
    | RelayedMessage,
    Field(discriminator="type"),
]

_INBOUND_ADAPTER: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(raw: str | bytes) -> InboundMessage:
    """Parse a raw JSON frame into a typed inbound message."""
    return _INBOUND_ADAPTER.validate_json(raw)
