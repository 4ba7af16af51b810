"""
outbox.py — Ordered fire-and-forget sending.

Callers put items without awaiting; a single asyncio task drains the
queue so sends to one destination leave in the order they were queued.
A failed send is logged and skipped, never retried.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable


class Outbox:
    """FIFO of pending sends drained by one background task."""

    def __init__(self, name: str, sender: Callable[[Any], Awaitable[None]]):
        self.name = name
        self._sender = sender
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        """Start draining. Must be called from the running event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._drain())

    def put(self, item: Any) -> None:
        self._queue.put_nowait(item)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _drain(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                await self._sender(item)
            except Exception:
                logging.exception("Send failed on %s", self.name)
            finally:
                self._queue.task_done()

    async def close(self, timeout: float = 5.0) -> None:
        """Give queued items a moment to go out, then stop the task."""
        if self._task is None:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._queue.join(), timeout)
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
