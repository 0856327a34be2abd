"""Asyncio reader/writer lock for shared index and cache state."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class ReadWriteLock:
    """Many concurrent readers or one exclusive writer.

    Waiting writers block new readers so a steady stream of searches cannot
    starve a save. Not reentrant: a holder must release before acquiring
    again, in either mode.

    Example:
        lock = ReadWriteLock()
        async with lock.read():
            ...  # shared
        async with lock.write():
            ...  # exclusive
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def write_locked(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and self._waiting_writers == 0
            )
            self._readers += 1
        try:
            yield
        finally:
            # Counter changes happen before any await so cancellation during
            # the wake-up below cannot leak a reader slot.
            self._readers -= 1
            if self._readers == 0:
                async with self._cond:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0
                )
            finally:
                self._waiting_writers -= 1
                # Readers parked behind a cancelled writer must re-check
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            self._writer = False
            async with self._cond:
                self._cond.notify_all()
