"""Periodic cleanup of pending sessions nobody answered."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from assist_signaling.services.broker import SignalingBroker

logger = logging.getLogger(__name__)


@dataclass
class StaleSessionReaper:
    """Deletes sessions stuck in pending longer than the timeout.

    The caller is not notified; it has usually given up on its side already.
    """

    broker: SignalingBroker
    interval_seconds: float
    pending_timeout: timedelta
    _task: asyncio.Task[None] | None = field(default=None, init=False)

    async def start(self) -> None:
        """Start the sweep loop if it is not already running."""
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop(), name="stale-session-reaper")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def run_once(self) -> int:
        """Sweep once and return the number of sessions removed."""
        reaped = await self.broker.reap_stale(self.pending_timeout)
        if reaped:
            logger.info("Reaped %d stale pending session(s)", len(reaped))
        return len(reaped)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Stale session sweep failed")
