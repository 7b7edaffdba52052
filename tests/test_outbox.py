"""Tests for per-connection outboxes."""

import asyncio

from assist_signaling.services.outbox import Outbox
from tests.conftest import FakeConnection


def test_frames_are_written_in_order() -> None:
    connection = FakeConnection()

    async def scenario() -> None:
        outbox = Outbox(handle=connection, send_timeout=1.0)
        for index in range(3):
            assert outbox.put({"type": "offer", "index": index})
        await outbox.drain()
        await outbox.close()

    asyncio.run(scenario())

    assert [message["index"] for message in connection.messages] == [0, 1, 2]


def test_timed_out_send_marks_outbox_stalled() -> None:
    connection = FakeConnection(stall=True)

    async def scenario() -> tuple[bool, bool]:
        outbox = Outbox(handle=connection, send_timeout=0.05)
        outbox.put({"type": "call-request"})
        await asyncio.wait_for(outbox.drain(), timeout=1.0)
        accepted = outbox.put({"type": "call-ended"})
        return outbox.stalled, accepted

    stalled, accepted = asyncio.run(scenario())

    assert stalled is True
    assert accepted is False
    assert connection.messages == []


def test_failed_send_does_not_stop_the_writer() -> None:
    connection = FakeConnection(fail=True)

    async def scenario() -> None:
        outbox = Outbox(handle=connection, send_timeout=1.0)
        outbox.put({"type": "offer"})
        await outbox.drain()
        connection.fail = False
        outbox.put({"type": "answer"})
        await outbox.drain()

    asyncio.run(scenario())

    assert connection.types() == ["answer"]


def test_close_releases_waiting_drains() -> None:
    connection = FakeConnection(stall=True)

    async def scenario() -> None:
        outbox = Outbox(handle=connection, send_timeout=60.0)
        outbox.put({"type": "offer"})
        outbox.put({"type": "answer"})
        draining = asyncio.create_task(outbox.drain())
        await asyncio.sleep(0)
        await outbox.close()
        await asyncio.wait_for(draining, timeout=1.0)

    asyncio.run(scenario())

    assert connection.messages == []
