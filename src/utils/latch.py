"""A reusable open/closed gate for sequencing a background task against a reader."""

import asyncio


class Latch:
    def __init__(self, open: bool = True):
        self._event = asyncio.Event()
        if open:
            self._event.set()

    @property
    def is_open(self) -> bool:
        return self._event.is_set()

    def open(self) -> None:
        self._event.set()

    def close(self) -> None:
        self._event.clear()

    async def wait(self) -> None:
        """Block until the latch is open."""
        await self._event.wait()
