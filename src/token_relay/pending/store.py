"""Pending request store matching poll responses with delivered tokens."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..http_client.provider_client import AccessToken
from .eviction import is_stale, mean_age, mean_age_threshold
from .waiter import Waiter, WaiterOutcome

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


def token_outcome(result: AccessToken) -> WaiterOutcome:
    """Successful poll outcome carrying the token as JSON."""
    return WaiterOutcome(
        status_code=200,
        body=result.to_json_bytes(),
        media_type=JSON_MEDIA_TYPE,
    )


STALE_OUTCOME = WaiterOutcome(status_code=408)
SHUTDOWN_OUTCOME = WaiterOutcome(status_code=503)


@dataclass
class PendingEntry:
    """State held for one correlation token."""

    token: str
    created_at: float
    waiter: Optional[Waiter] = None
    result: Optional[AccessToken] = field(default=None, repr=False)


class PendingRequestStore:
    """
    In-memory store of pending token requests keyed by correlation token.

    An entry holds either a poll response waiting for a token or a token
    waiting for a poll. Entries are removed on delivery, evicted once older
    than the request lifetime by a background sweep, and evicted early when
    the store is at capacity.

    All methods are synchronous and must be called from the event loop
    thread, so each call runs to completion without interleaving with others.
    """

    def __init__(
        self,
        max_request_lifetime: float = 600.0,
        max_pending_requests: int = 10000,
        sweep_interval: Optional[float] = None,
        replay_held_results: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the store.

        Args:
            max_request_lifetime: Seconds before an entry is considered stale
            max_pending_requests: Entry count that triggers capacity eviction
            sweep_interval: Seconds between background sweeps
                (defaults to lifetime + 1s)
            replay_held_results: Keep a held token after answering a poll with it,
                so later polls for the same state receive it again
            clock: Monotonic time source in seconds
        """
        self._entries: Dict[str, PendingEntry] = {}
        self.max_request_lifetime = max_request_lifetime
        self.max_pending_requests = max_pending_requests
        self.sweep_interval = (
            sweep_interval if sweep_interval is not None else max_request_lifetime + 1.0
        )
        self.replay_held_results = replay_held_results
        self._clock = clock
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, token: str) -> bool:
        return token in self._entries

    def get(self, token: str) -> Optional[PendingEntry]:
        """Return the entry for a token without modifying it."""
        return self._entries.get(token)

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def register_or_deliver(
        self,
        token: str,
        waiter: Optional[Waiter] = None,
        result: Optional[AccessToken] = None,
    ) -> None:
        """
        Register a waiter or an unmatched result for a token.

        A waiter arriving for a token whose result is already held receives
        that result immediately. The entry is kept unless replay is disabled,
        so repeated polls receive the same token until it is evicted. Any
        other arrival for an existing token replaces the entry with a fresh one.
        """
        if len(self._entries) >= self.max_pending_requests:
            self._evict_for_capacity()

        existing = self._entries.get(token)
        if existing is None:
            self._entries[token] = PendingEntry(
                token=token, created_at=self._clock(), waiter=waiter, result=result
            )
            logger.debug(f"Registered pending request ({len(self._entries)} live)")
        elif existing.result is not None and waiter is not None:
            waiter.resolve(token_outcome(existing.result))
            if not self.replay_held_results:
                del self._entries[token]
            logger.debug("Answered new poll with held token")
        else:
            self._entries[token] = PendingEntry(
                token=token, created_at=self._clock(), waiter=waiter, result=result
            )
            logger.debug("Replaced pending request")

        self._ensure_sweeper()

    def deliver(self, token: str, result: AccessToken) -> None:
        """
        Hand a freshly exchanged token to whoever waits on the correlation token.

        If no poll is attached, or the attached poll can no longer be answered,
        the result is held so a later poll can pick it up.
        """
        entry = self._entries.get(token)
        if entry is not None and entry.waiter is not None:
            if entry.waiter.resolve(token_outcome(result)):
                del self._entries[token]
                logger.debug("Delivered token to waiting poll")
                return
            logger.info("Waiting poll is gone, holding token for a later poll")
        self.register_or_deliver(token, result=result)

    def evict_older_than(self, threshold: float, inclusive: bool = False) -> int:
        """
        Remove entries older than threshold seconds.

        Attached waiters are answered with 408 before removal.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        stale = [
            token
            for token, entry in self._entries.items()
            if is_stale(now - entry.created_at, threshold, inclusive)
        ]
        for token in stale:
            entry = self._entries.pop(token)
            if entry.waiter is not None:
                entry.waiter.resolve(STALE_OUTCOME)
        if stale:
            logger.info(
                f"Evicted {len(stale)} pending requests older than {threshold:.1f}s "
                f"({len(self._entries)} live)"
            )
        return len(stale)

    def current_mean_age(self) -> float:
        """Mean age in seconds of all live entries."""
        now = self._clock()
        return mean_age(now - entry.created_at for entry in self._entries.values())

    def _evict_for_capacity(self) -> None:
        self.evict_older_than(self.max_request_lifetime)
        if len(self._entries) >= self.max_pending_requests:
            now = self._clock()
            threshold = mean_age_threshold(
                now - entry.created_at for entry in self._entries.values()
            )
            logger.warning(
                f"Pending request store full ({len(self._entries)} live), "
                f"evicting entries at or above mean age {threshold:.1f}s"
            )
            self.evict_older_than(threshold, inclusive=True)

    def _ensure_sweeper(self) -> None:
        if self.sweeper_running or not self._entries:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.debug("Started pending request sweeper")

    async def _sweep_loop(self) -> None:
        while self._entries:
            await asyncio.sleep(self.sweep_interval)
            self.evict_older_than(self.max_request_lifetime)
        logger.debug("Pending request store empty, sweeper stopped")

    def stats(self) -> Dict[str, Any]:
        """Snapshot of store occupancy for health reporting."""
        waiting = sum(1 for e in self._entries.values() if e.waiter is not None)
        held = sum(1 for e in self._entries.values() if e.result is not None)
        return {
            "pending": len(self._entries),
            "waiting": waiting,
            "held_results": held,
            "capacity": self.max_pending_requests,
            "sweeper_running": self.sweeper_running,
        }

    async def close(self) -> None:
        """Stop the sweeper and release every attached waiter with 503."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        for entry in self._entries.values():
            if entry.waiter is not None:
                entry.waiter.resolve(SHUTDOWN_OUTCOME)
        dropped = len(self._entries)
        self._entries.clear()
        logger.info(f"Pending request store closed ({dropped} entries dropped)")
