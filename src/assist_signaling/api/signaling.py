"""Dispatch of inbound envelopes to the broker."""

import logging
from typing import assert_never

from pydantic import ValidationError

from assist_signaling.api.messages import (
    AcceptCallMessage,
    EndCallMessage,
    InboundMessage,
    InitiateCallMessage,
    RegisterMessage,
    RejectCallMessage,
    RelayedMessage,
    SetAvailabilityMessage,
    parse_inbound,
)
from assist_signaling.domain.errors import InvalidMessageError, SignalingError
from assist_signaling.domain.models import ConnectionHandle
from assist_signaling.services.broker import SignalingBroker

logger = logging.getLogger(__name__)


async def handle_inbound(
    broker: SignalingBroker,
    identity: str,
    handle: ConnectionHandle,
    raw: str | bytes,
) -> None:
    """Handle one frame; failures are reported to this connection only."""
    try:
        message = parse_inbound(raw)
    except ValidationError as exc:
        await broker.report_error(handle, InvalidMessageError(_describe(exc)))
        return
    try:
        await dispatch(broker, identity, handle, message)
    except SignalingError as exc:
        logger.info("Rejected %s from %s: %s", message.type, identity, exc.message)
        await broker.report_error(handle, exc)
    except Exception:
        logger.exception("Failed to handle %s from %s", message.type, identity)
        await broker.report_error(handle, SignalingError("Internal error"))


async def dispatch(
    broker: SignalingBroker,
    identity: str,
    handle: ConnectionHandle,
    message: InboundMessage,
) -> None:
    """Route a parsed message to the matching broker operation."""
    if isinstance(message, RegisterMessage):
        await broker.register(identity, message.payload.role, handle)
    elif isinstance(message, InitiateCallMessage):
        await broker.initiate_call(
            identity, message.payload.target_code, handle=handle
        )
    elif isinstance(message, AcceptCallMessage):
        await broker.accept_call(identity, message.payload.user_id, handle=handle)
    elif isinstance(message, RejectCallMessage):
        await broker.reject_call(
            identity, message.payload.user_id, message.payload.reason, handle=handle
        )
    elif isinstance(message, EndCallMessage):
        await broker.end_call(identity, handle=handle)
    elif isinstance(message, SetAvailabilityMessage):
        await broker.set_availability(
            identity, message.payload.available, handle=handle
        )
    elif isinstance(message, RelayedMessage):
        await broker.relay(message.to_envelope(identity), handle=handle)
    else:
        assert_never(message)


def _describe(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Malformed message"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
