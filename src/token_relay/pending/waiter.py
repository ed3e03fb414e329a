"""Held-open poll responses waiting for a token."""

import asyncio
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class WaiterOutcome:
    """What the poll handler should answer with once its waiter resolves."""

    status_code: int
    body: Optional[bytes] = None
    media_type: Optional[str] = None


class Waiter:
    """
    A suspended poll response attached to a pending entry.

    Wraps an asyncio.Future that the store resolves exactly once: on delivery,
    on eviction, or on shutdown. The polling handler awaits it and cancels it
    when the client goes away, after which resolving fails and the caller
    falls back to holding the result for a later poll.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future = loop.create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, outcome: WaiterOutcome) -> bool:
        """
        Hand an outcome to the waiting handler.

        Returns:
            True if the outcome was delivered, False if the waiter was already
            resolved or its connection is gone
        """
        if self._future.done():
            return False
        self._future.set_result(outcome)
        return True

    def cancel(self) -> None:
        """Mark the waiter as abandoned (client disconnected or gave up)."""
        if not self._future.done():
            self._future.cancel()

    async def wait(self, timeout: Optional[float] = None) -> Optional[WaiterOutcome]:
        """
        Wait for an outcome.

        Returns:
            The outcome, or None if the timeout passed or the waiter was cancelled
        """
        done, _ = await asyncio.wait({self._future}, timeout=timeout)
        if not done or self._future.cancelled():
            return None
        return self._future.result()
