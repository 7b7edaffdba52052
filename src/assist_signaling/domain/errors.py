"""Error types surfaced by the signaling core."""


class SignalingError(Exception):
    """Base error reported back to the initiating connection."""

    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        """Return the error payload sent to clients."""
        return {"kind": self.kind, "message": self.message}


class NotRegisteredError(SignalingError):
    """Raised when an identity acts before registering."""

    kind = "not-registered"


class NoMatchError(SignalingError):
    """Raised when no professional can be matched and the caller is not queued."""

    kind = "no-match"


class InvalidTransitionError(SignalingError):
    """Raised when an action references a missing session or illegal state."""

    kind = "invalid-transition"


class DeliveryFailureError(SignalingError):
    """Raised when a recipient has no live connection."""

    kind = "delivery-failure"


class InvalidMessageError(SignalingError):
    """Raised when an inbound envelope cannot be parsed."""

    kind = "invalid-message"
