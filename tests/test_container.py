"""Tests for container wiring."""

import asyncio

from assist_signaling.containers import build_container
from assist_signaling.services.matching import (
    DirectCodeMatchingEngine,
    QueueMatchingEngine,
)


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert type(container.engine) is QueueMatchingEngine
    assert container.broker.engine is container.engine
    assert container.broker.signal_relay.sessions is container.engine.sessions
    assert container.reaper.pending_timeout.total_seconds() == 300
    asyncio.run(container.close_resources())


def test_build_container_selects_direct_code_backend(settings) -> None:
    settings.matching_backend = "direct-code"

    container = build_container(settings)

    assert isinstance(container.engine, DirectCodeMatchingEngine)
    assert container.engine.registry.code_length == settings.display_code_length
