"""Tests for the connection registry, availability and waiting queue."""

import pytest

from assist_signaling.domain.errors import NotRegisteredError
from assist_signaling.domain.models import (
    DISPLAY_CODE_ALPHABET,
    Role,
    derive_display_code,
)
from assist_signaling.services.registry import (
    AvailabilityTracker,
    ConnectionRegistry,
    WaitingQueue,
)
from tests.conftest import FakeConnection, ManualClock


def test_display_code_is_stable_and_uses_alphabet() -> None:
    code = derive_display_code("user-1")

    assert code == derive_display_code("user-1")
    assert len(code) == 6
    assert set(code) <= set(DISPLAY_CODE_ALPHABET)
    assert len(derive_display_code("user-1", length=8)) == 8


def test_register_upserts_and_keeps_code(clock: ManualClock) -> None:
    registry = ConnectionRegistry(clock=clock)
    first = FakeConnection()
    second = FakeConnection()

    original = registry.register("u1", Role.USER, first)
    clock.advance(minutes=5)
    replaced = registry.register("u1", Role.USER, second)

    assert replaced.display_code == original.display_code
    assert replaced.connected_at == original.connected_at
    assert registry.lookup("u1") is second


def test_unregister_ignores_superseded_handle() -> None:
    registry = ConnectionRegistry()
    stale = FakeConnection()
    fresh = FakeConnection()
    registry.register("p1", Role.PROFESSIONAL, stale)
    registry.register("p1", Role.PROFESSIONAL, fresh)

    assert registry.unregister("p1", stale) is False
    assert registry.is_registered("p1")
    assert registry.unregister("p1", fresh) is True
    assert registry.unregister("p1") is False


def test_lookup_unknown_identity_raises() -> None:
    registry = ConnectionRegistry()

    with pytest.raises(NotRegisteredError):
        registry.lookup("ghost")
    with pytest.raises(NotRegisteredError):
        registry.require("ghost")


def test_resolve_code_is_case_insensitive() -> None:
    registry = ConnectionRegistry()
    registration = registry.register("p1", Role.PROFESSIONAL, FakeConnection())

    assert registry.resolve_code(f" {registration.display_code.lower()} ") == "p1"
    registry.unregister("p1")
    assert registry.resolve_code(registration.display_code) is None


def test_count_by_role() -> None:
    registry = ConnectionRegistry()
    registry.register("u1", Role.USER, FakeConnection())
    registry.register("u2", Role.USER, FakeConnection())
    registry.register("p1", Role.PROFESSIONAL, FakeConnection())

    assert registry.count_by_role() == {Role.USER: 2, Role.PROFESSIONAL: 1}


def test_pick_available_uses_order_and_exclusions() -> None:
    availability = AvailabilityTracker()
    availability.mark_available("p1")
    availability.mark_available("p2")
    availability.mark_available("p1")

    assert availability.pick_available() == "p1"
    assert availability.pick_available(exclude={"p1"}) == "p2"
    assert availability.pick_available(exclude={"p1", "p2"}) is None

    availability.mark_unavailable("p1")
    availability.mark_available("p1")
    assert availability.pick_available() == "p2"
    assert len(availability) == 2


def test_waiting_queue_is_fifo_with_one_slot_per_user() -> None:
    queue = WaitingQueue()

    assert queue.enqueue("u1") == 1
    assert queue.enqueue("u2") == 2
    assert queue.enqueue("u1") == 1
    assert len(queue) == 2
    assert list(queue) == ["u1", "u2"]

    assert queue.remove("u1") is True
    assert queue.remove("u1") is False
    assert queue.enqueue("u3") == 2
    assert list(queue) == ["u2", "u3"]
    assert "u1" not in queue
