"""Pending request matching and eviction."""

from .eviction import is_stale, mean_age, mean_age_threshold
from .store import PendingEntry, PendingRequestStore
from .waiter import Waiter, WaiterOutcome

__all__ = [
    "PendingEntry",
    "PendingRequestStore",
    "Waiter",
    "WaiterOutcome",
    "is_stale",
    "mean_age",
    "mean_age_threshold",
]
