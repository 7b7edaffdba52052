"""Connection registry, professional availability and the waiting queue."""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime

from assist_signaling.domain.errors import NotRegisteredError
from assist_signaling.domain.models import (
    DEFAULT_DISPLAY_CODE_LENGTH,
    ConnectionHandle,
    Registration,
    Role,
    derive_display_code,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ConnectionRegistry:
    """Maps identities to their live transport handles."""

    code_length: int = DEFAULT_DISPLAY_CODE_LENGTH
    clock: Callable[[], datetime] = _utc_now
    _registrations: dict[str, Registration] = field(default_factory=dict)
    _codes: dict[str, str] = field(default_factory=dict)

    def register(
        self, identity: str, role: Role, handle: ConnectionHandle
    ) -> Registration:
        """Upsert the registration for an identity, replacing any stale handle."""
        previous = self._registrations.get(identity)
        code = (
            previous.display_code
            if previous
            else derive_display_code(identity, self.code_length)
        )
        owner = self._codes.get(code)
        if owner is not None and owner != identity:
            logger.warning(
                "Display code %s collides; reassigning from %s to %s",
                code,
                owner,
                identity,
            )
        registration = Registration(
            identity=identity,
            role=role,
            display_code=code,
            handle=handle,
            connected_at=previous.connected_at if previous else self.clock(),
        )
        self._registrations[identity] = registration
        self._codes[code] = identity
        return registration

    def unregister(self, identity: str, handle: ConnectionHandle | None = None) -> bool:
        """Remove an identity; return False if absent or superseded by a new handle."""
        registration = self._registrations.get(identity)
        if registration is None:
            return False
        if handle is not None and registration.handle is not handle:
            return False
        del self._registrations[identity]
        if self._codes.get(registration.display_code) == identity:
            del self._codes[registration.display_code]
        return True

    def get(self, identity: str) -> Registration | None:
        """Return the registration for an identity, if connected."""
        return self._registrations.get(identity)

    def lookup(self, identity: str) -> ConnectionHandle:
        """Return the live handle for an identity."""
        registration = self._registrations.get(identity)
        if registration is None:
            raise NotRegisteredError(f"{identity} is not registered")
        return registration.handle

    def require(self, identity: str) -> Registration:
        """Return the registration or raise if the identity is not connected."""
        registration = self._registrations.get(identity)
        if registration is None:
            raise NotRegisteredError(f"{identity} is not registered")
        return registration

    def is_registered(self, identity: str) -> bool:
        """Return whether the identity currently has a connection."""
        return identity in self._registrations

    def resolve_code(self, code: str) -> str | None:
        """Return the identity that owns a display code."""
        return self._codes.get(code.strip().upper())

    def count_by_role(self) -> dict[Role, int]:
        """Return the number of connected identities per role."""
        counts = {role: 0 for role in Role}
        for registration in self._registrations.values():
            counts[registration.role] += 1
        return counts


@dataclass
class AvailabilityTracker:
    """Professionals currently eligible for matching, in the order they freed up."""

    _available: dict[str, None] = field(default_factory=dict)

    def mark_available(self, identity: str) -> None:
        """Mark a professional as eligible for new calls."""
        self._available.setdefault(identity, None)

    def mark_unavailable(self, identity: str) -> None:
        """Remove a professional from matching."""
        self._available.pop(identity, None)

    def is_available(self, identity: str) -> bool:
        """Return whether the professional is eligible."""
        return identity in self._available

    def pick_available(self, exclude: Iterable[str] = ()) -> str | None:
        """Return the first eligible professional not in ``exclude``."""
        skipped = set(exclude)
        for identity in self._available:
            if identity not in skipped:
                return identity
        return None

    def __len__(self) -> int:
        return len(self._available)


@dataclass
class WaitingQueue:
    """FIFO of users waiting for a professional, one slot per user."""

    _entries: dict[str, None] = field(default_factory=dict)

    def enqueue(self, identity: str) -> int:
        """Add a user if not already waiting and return its 1-based position."""
        self._entries.setdefault(identity, None)
        return list(self._entries).index(identity) + 1

    def remove(self, identity: str) -> bool:
        """Remove a user from the queue."""
        if identity not in self._entries:
            return False
        del self._entries[identity]
        return True

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
