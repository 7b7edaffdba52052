"""Shared test fixtures."""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from assist_signaling.config import Settings
from assist_signaling.containers import AppContainer, build_container
from assist_signaling.domain.models import Role
from assist_signaling.domain.signals import Delivery
from assist_signaling.services.broker import SignalingBroker
from assist_signaling.services.matching import QueueMatchingEngine
from assist_signaling.services.registry import (
    AvailabilityTracker,
    ConnectionRegistry,
    WaitingQueue,
)
from assist_signaling.services.relay import SignalRelay
from assist_signaling.services.sessions import SessionStore


@dataclass(eq=False)
class FakeConnection:
    """Connection handle that records every message sent to it."""

    messages: list[dict[str, object]] = field(default_factory=list)
    fail: bool = False
    stall: bool = False

    async def send(self, message: dict[str, object]) -> None:
        if self.stall:
            await asyncio.Event().wait()
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(message)

    def types(self) -> list[str]:
        return [str(message["type"]) for message in self.messages]

    def of_type(self, kind: str) -> list[dict[str, object]]:
        return [message for message in self.messages if message["type"] == kind]


@dataclass
class ManualClock:
    """Clock the tests move forward by hand."""

    now: datetime = field(default_factory=lambda: datetime(2024, 5, 1, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def build_engine(
    engine_class: type[QueueMatchingEngine] = QueueMatchingEngine,
    clock: ManualClock | None = None,
) -> QueueMatchingEngine:
    resolved_clock = clock or ManualClock()
    return engine_class(
        registry=ConnectionRegistry(clock=resolved_clock),
        availability=AvailabilityTracker(),
        queue=WaitingQueue(),
        sessions=SessionStore(),
        clock=resolved_clock,
    )


def build_broker(
    engine: QueueMatchingEngine, send_timeout: float = 5.0
) -> SignalingBroker:
    return SignalingBroker(
        engine=engine,
        signal_relay=SignalRelay(registry=engine.registry, sessions=engine.sessions),
        send_timeout=send_timeout,
    )


def register_all(
    engine: QueueMatchingEngine,
    users: Iterable[str] = (),
    professionals: Iterable[str] = (),
) -> dict[str, FakeConnection]:
    connections: dict[str, FakeConnection] = {}
    for identity in professionals:
        connections[identity] = FakeConnection()
        engine.register(identity, Role.PROFESSIONAL, connections[identity])
    for identity in users:
        connections[identity] = FakeConnection()
        engine.register(identity, Role.USER, connections[identity])
    return connections


def summarize(deliveries: Iterable[Delivery]) -> list[tuple[str, str]]:
    return [
        (delivery.recipient, delivery.envelope.kind.value) for delivery in deliveries
    ]


def assert_invariants(engine: QueueMatchingEngine) -> None:
    participants: list[str] = []
    for session in engine.sessions:
        participants.extend([session.user_id, session.professional_id])
    assert len(participants) == len(set(participants))
    for identity in participants:
        assert not engine.availability.is_available(identity)
        assert identity not in engine.queue
    for identity in engine.queue:
        registration = engine.registry.get(identity)
        assert registration is None or registration.role == Role.USER


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        reaper_interval_seconds=3600,
        pending_session_timeout_seconds=300,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def engine(clock: ManualClock) -> QueueMatchingEngine:
    return build_engine(clock=clock)


@pytest.fixture
def container(settings: Settings) -> AppContainer:
    return build_container(settings)
