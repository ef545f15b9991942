"""In-memory change-event channel.

Single-process only. Mutating operations hand events over with
``publish_nowait`` (never blocks, never raises); a dispatcher task drains
the queue and awaits the subscribed handlers in publish order.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from application.ports.realtime import ChangeEvent, Handler
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class InMemoryEventChannel:
    def __init__(self, maxsize: Optional[int] = None) -> None:
        self._maxsize = int(maxsize or settings.realtime.channel_max)
        self._queue: Optional[asyncio.Queue] = None
        self._handlers: List[Handler] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, handler: Handler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    async def start(self) -> None:
        if self.running:
            return
        # queue is bound to the running loop
        self._queue = asyncio.Queue(maxsize=self._maxsize)
        self._task = asyncio.create_task(self._dispatch_loop(), name="realtime-dispatcher")
        logger.info("realtime_channel_started", maxsize=self._maxsize)

    def publish_nowait(self, event: ChangeEvent) -> bool:
        if not self.running or self._queue is None:
            logger.debug("realtime_event_dropped", kind=event.kind.value, reason="not_running")
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("realtime_event_dropped", kind=event.kind.value, reason="channel_full")
            return False
        return True

    async def join(self) -> None:
        """Wait until every event published so far has been dispatched."""
        if self._queue is not None and self.running:
            await self._queue.join()

    async def aclose(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._queue = None
        self._handlers.clear()
        logger.info("realtime_channel_stopped")

    async def _dispatch_loop(self) -> None:
        q = self._queue
        assert q is not None
        while True:
            event = await q.get()
            try:
                for handler in list(self._handlers):
                    try:
                        await handler(event)
                    except Exception as exc:
                        logger.error(
                            "realtime_dispatch_failed",
                            kind=event.kind.value,
                            error=str(exc),
                            exc_info=True,
                        )
            finally:
                q.task_done()
