"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from assist_signaling.config import Settings
from assist_signaling.services.broker import SignalingBroker
from assist_signaling.services.matching import (
    DirectCodeMatchingEngine,
    MatchingEngine,
    QueueMatchingEngine,
)
from assist_signaling.services.reaper import StaleSessionReaper
from assist_signaling.services.registry import (
    AvailabilityTracker,
    ConnectionRegistry,
    WaitingQueue,
)
from assist_signaling.services.relay import SignalRelay
from assist_signaling.services.sessions import SessionStore

_MATCHING_BACKENDS: dict[str, type[QueueMatchingEngine]] = {
    "queue": QueueMatchingEngine,
    "direct-code": DirectCodeMatchingEngine,
}


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    engine: MatchingEngine
    broker: SignalingBroker
    reaper: StaleSessionReaper
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    registry = ConnectionRegistry(code_length=resolved_settings.display_code_length)
    sessions = SessionStore()
    engine_class = _MATCHING_BACKENDS[resolved_settings.matching_backend]
    engine = engine_class(
        registry=registry,
        availability=AvailabilityTracker(),
        queue=WaitingQueue(),
        sessions=sessions,
    )
    broker = SignalingBroker(
        engine=engine,
        signal_relay=SignalRelay(registry=registry, sessions=sessions),
        send_timeout=resolved_settings.send_timeout_seconds,
    )
    reaper = StaleSessionReaper(
        broker=broker,
        interval_seconds=resolved_settings.reaper_interval_seconds,
        pending_timeout=timedelta(
            seconds=resolved_settings.pending_session_timeout_seconds
        ),
    )

    async def close_resources() -> None:
        await reaper.stop()
        await broker.close()

    return AppContainer(
        settings=resolved_settings,
        engine=engine,
        broker=broker,
        reaper=reaper,
        close_resources=close_resources,
    )
