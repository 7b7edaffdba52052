"""Domain models for registered participants."""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

DISPLAY_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_DISPLAY_CODE_LENGTH = 6


class Role(str, Enum):
    """Participant roles."""

    USER = "user"
    PROFESSIONAL = "professional"


class ConnectionHandle(Protocol):
    """Live transport bound to a registered identity."""

    async def send(self, message: dict[str, object]) -> None:
        """Write a message to the underlying transport."""


@dataclass(frozen=True)
class Registration:
    """Represents a connected identity."""

    identity: str
    role: Role
    display_code: str
    handle: ConnectionHandle
    connected_at: datetime


def derive_display_code(
    identity: str, length: int = DEFAULT_DISPLAY_CODE_LENGTH
) -> str:
    """Derive a short shareable code from an identity."""
    digest = int.from_bytes(hashlib.sha256(identity.encode("utf-8")).digest(), "big")
    base = len(DISPLAY_CODE_ALPHABET)
    chars: list[str] = []
    for _ in range(length):
        digest, index = divmod(digest, base)
        chars.append(DISPLAY_CODE_ALPHABET[index])
    return "".join(chars)
