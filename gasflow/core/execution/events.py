"""
Per-request transaction update channel.

Publishing never blocks the execution path: when the consumer falls behind
the oldest queued update is dropped. The terminal update (completed or
failed) is always delivered and closes the channel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from ..models import TransactionUpdate

logger = logging.getLogger(__name__)


class UpdateChannel:
    """
    Usage:
        channel = UpdateChannel(maxsize=32)
        task = asyncio.create_task(coordinator.execute(intent, account, auth, updates=channel))
        async for update in channel:
            print(update.status)
    """

    def __init__(self, maxsize: int = 32) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._queue: asyncio.Queue[TransactionUpdate] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0
        self.last: Optional[TransactionUpdate] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, update: TransactionUpdate) -> None:
        if self._closed:
            logger.debug(f"Update {update.status.value} published after channel closed; ignored")
            return

        if self._queue.full():
            # Everything queued is non-terminal: the channel closes on the terminal update
            stale = self._queue.get_nowait()
            self.dropped += 1
            logger.debug(f"Update channel full; dropped {stale.status.value}")

        self._queue.put_nowait(update)
        self.last = update
        if update.status.is_terminal:
            self._closed = True

    async def get(self) -> TransactionUpdate:
        return await self._queue.get()

    def __aiter__(self) -> AsyncIterator[TransactionUpdate]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[TransactionUpdate]:
        while True:
            update = await self._queue.get()
            yield update
            if update.status.is_terminal:
                return
