"""Configuration management using Pydantic Settings."""

import logging
from typing import List, Optional

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid at startup."""


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = Field(description="Port the HTTP server listens on")

    # OAuth Client Configuration
    client_id: str = Field(description="OAuth client ID registered with the provider")
    client_secret: SecretStr = Field(description="OAuth client secret")
    redirect_uri: str = Field(
        description="Redirect URI registered with the provider (points at /login)"
    )

    # Provider Configuration
    token_url: str = "https://api.flowdock.com/oauth/token"
    provider_timeout: float = 30.0

    # Pending request store
    max_request_lifetime: float = Field(
        default=600.0,
        description="Seconds a pending request may live before it is evicted",
    )
    max_pending_requests: int = Field(
        default=10000,
        description="Capacity ceiling that triggers eviction before insertion",
    )
    sweep_interval: Optional[float] = Field(
        default=None,
        description="Seconds between eviction sweeps (defaults to lifetime + 1s)",
    )
    replay_held_results: bool = Field(
        default=True,
        description="Answer repeated polls for a delivered state with the same token",
    )

    # CORS for detached frontends polling /token from another origin
    cors_allow_origins: List[str] = []

    login_success_message: str = "Thanks for logging in. You can close this now."

    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def effective_sweep_interval(self) -> float:
        """Sweep interval, falling back to one second past the request lifetime."""
        if self.sweep_interval is not None:
            return self.sweep_interval
        return self.max_request_lifetime + 1.0


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment, failing fast on missing values.

    Raises:
        ConfigurationError: If a required variable is absent or malformed
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            name = ".".join(str(part) for part in error["loc"]).upper()
            problems.append(f"{name} ({error['msg']})")
        message = "Invalid configuration: " + ", ".join(problems)
        logger.error(message)
        raise ConfigurationError(message) from e
