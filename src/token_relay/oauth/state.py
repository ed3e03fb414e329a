"""Correlation token ("state") shape check."""

import re
from typing import Optional

# Frontends generate 32 hex-like characters per login attempt
STATE_PATTERN = re.compile(r"^[a-z0-9]{32}$", re.IGNORECASE)


def is_valid_state(state: Optional[str]) -> bool:
    """Check a polled state parameter before it reaches the store."""
    return state is not None and STATE_PATTERN.fullmatch(state) is not None
