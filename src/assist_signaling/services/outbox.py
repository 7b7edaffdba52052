"""Ordered outbound delivery to one connection."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from assist_signaling.domain.models import ConnectionHandle

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Outbox:
    """Queues frames for one connection and writes them from its own task.

    Frames reach the connection in the order they were put. A send that does
    not finish within ``send_timeout`` marks the outbox stalled; later frames
    are dropped instead of piling up behind a peer that stopped reading.
    """

    handle: ConnectionHandle
    send_timeout: float
    stalled: bool = field(default=False, init=False)
    _queue: asyncio.Queue[dict[str, Any]] = field(
        default_factory=asyncio.Queue, init=False
    )
    _writer: asyncio.Task[None] | None = field(default=None, init=False)

    def put(self, message: dict[str, Any]) -> bool:
        """Queue a frame without waiting; return False if it was dropped."""
        if self.stalled:
            return False
        self._queue.put_nowait(message)
        if self._writer is None or self._writer.done():
            self._writer = asyncio.create_task(self._write(), name="outbox-writer")
        return True

    async def drain(self) -> None:
        """Wait until every queued frame was written or given up on."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop the writer and discard whatever is still queued."""
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
        self._writer = None
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def _write(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                if not self.stalled:
                    await asyncio.wait_for(
                        self.handle.send(message), timeout=self.send_timeout
                    )
            except TimeoutError:
                self.stalled = True
                logger.warning(
                    "Send of %s timed out after %.1fs; dropping further frames",
                    message.get("type"),
                    self.send_timeout,
                )
            except Exception:
                logger.exception("Failed to send %s", message.get("type"))
            finally:
                self._queue.task_done()
