"""Polling and provider callback endpoints module."""

from .routes import get_relay_routes
from .state import is_valid_state

__all__ = [
    "get_relay_routes",
    "is_valid_state",
]
