"""Per-endpoint call state machine.

Each endpoint runs its own instance. The server only drives the calling,
receiving and connecting phases; ``connected`` and ``failed`` come from the
local media engine, and nothing forces the two sides to agree.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from assist_signaling.domain.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class CallState(str, Enum):
    """Lifecycle of a call as seen by one endpoint."""

    IDLE = "idle"
    CALLING = "calling"
    RECEIVING = "receiving"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class CallEvent(str, Enum):
    """Inputs that move the state machine."""

    INITIATE = "initiate"
    CALL_REQUEST_RECEIVED = "call-request"
    PROFESSIONAL_MATCHED = "professional-available"
    NO_PROFESSIONAL_AVAILABLE = "no-professional-available"
    CALL_ACCEPTED_RECEIVED = "call-accepted"
    CALL_REJECTED_RECEIVED = "call-rejected"
    LOCAL_ACCEPT = "local-accept"
    LOCAL_REJECT = "local-reject"
    NEGOTIATION_COMPLETE = "negotiation-complete"
    NEGOTIATION_FAILED = "negotiation-failed"
    CALL_ENDED = "call-ended"
    TRANSPORT_DROPPED = "transport-dropped"
    MEDIA_ERROR = "media-error"
    ACKNOWLEDGED = "acknowledged"


TRANSITIONS: dict[tuple[CallState, CallEvent], CallState] = {
    (CallState.IDLE, CallEvent.INITIATE): CallState.CALLING,
    (CallState.IDLE, CallEvent.CALL_REQUEST_RECEIVED): CallState.RECEIVING,
    (CallState.CALLING, CallEvent.CALL_ACCEPTED_RECEIVED): CallState.CONNECTING,
    (CallState.CALLING, CallEvent.CALL_REJECTED_RECEIVED): CallState.IDLE,
    (CallState.CALLING, CallEvent.NO_PROFESSIONAL_AVAILABLE): CallState.IDLE,
    (CallState.RECEIVING, CallEvent.LOCAL_ACCEPT): CallState.CONNECTING,
    (CallState.RECEIVING, CallEvent.LOCAL_REJECT): CallState.IDLE,
    (CallState.CONNECTING, CallEvent.NEGOTIATION_COMPLETE): CallState.CONNECTED,
    (CallState.CONNECTING, CallEvent.NEGOTIATION_FAILED): CallState.FAILED,
    (CallState.CONNECTED, CallEvent.CALL_ENDED): CallState.DISCONNECTED,
    (CallState.CONNECTED, CallEvent.TRANSPORT_DROPPED): CallState.DISCONNECTED,
    (CallState.CONNECTED, CallEvent.MEDIA_ERROR): CallState.FAILED,
    (CallState.DISCONNECTED, CallEvent.ACKNOWLEDGED): CallState.IDLE,
    (CallState.FAILED, CallEvent.ACKNOWLEDGED): CallState.IDLE,
    # Queueing and automatic retry after a rejection.
    (CallState.IDLE, CallEvent.PROFESSIONAL_MATCHED): CallState.CALLING,
    (CallState.CALLING, CallEvent.PROFESSIONAL_MATCHED): CallState.CALLING,
    (CallState.IDLE, CallEvent.NO_PROFESSIONAL_AVAILABLE): CallState.IDLE,
    # The peer went away before media was up.
    (CallState.CALLING, CallEvent.CALL_ENDED): CallState.IDLE,
    (CallState.RECEIVING, CallEvent.CALL_ENDED): CallState.IDLE,
    (CallState.CONNECTING, CallEvent.CALL_ENDED): CallState.DISCONNECTED,
    (CallState.CONNECTING, CallEvent.TRANSPORT_DROPPED): CallState.DISCONNECTED,
}


@dataclass
class CallStateMachine:
    """Explicit call state with a fixed transition table."""

    state: CallState = CallState.IDLE
    history: list[tuple[CallState, CallEvent, CallState]] = field(
        default_factory=list
    )

    def can_handle(self, event: CallEvent) -> bool:
        """Return whether the event is legal in the current state."""
        return (self.state, event) in TRANSITIONS

    def handle(self, event: CallEvent) -> CallState:
        """Apply an event and return the new state."""
        target = TRANSITIONS.get((self.state, event))
        if target is None:
            raise InvalidTransitionError(
                f"{event.value} is not valid in state {self.state.value}"
            )
        self.history.append((self.state, event, target))
        logger.debug(
            "Call state %s -> %s on %s", self.state.value, target.value, event.value
        )
        self.state = target
        return target
