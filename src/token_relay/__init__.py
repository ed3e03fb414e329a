"""Relay OAuth authorization code results to clients that poll for them."""

__version__ = "0.1.0"
