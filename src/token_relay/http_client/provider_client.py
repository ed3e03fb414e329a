"""Async HTTP client for the OAuth provider's token endpoint."""

import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, PrivateAttr, ValidationError

from ..config import Settings

logger = logging.getLogger(__name__)


class AccessToken(BaseModel):
    """
    Token response returned by the provider's token endpoint.

    The model only checks the response shape. Pollers receive the provider's
    own JSON, keys and values as sent, via `to_json_bytes()`.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None

    # Providers may add fields such as scope; pass them through to the poller
    model_config = {"extra": "allow"}

    _body: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @classmethod
    def from_response_data(cls, data: Any) -> "AccessToken":
        """Validate a decoded token response and keep it for relaying."""
        token = cls.model_validate(data)
        token._body = data
        return token

    def to_json_bytes(self) -> bytes:
        """Compact JSON of the provider response, in the provider's key order."""
        if self._body is None:
            return self.model_dump_json(exclude_none=True).encode("utf-8")
        return json.dumps(
            self._body, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")


class TokenExchangeError(Exception):
    """Exception raised when exchanging an authorization code fails."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Token exchange error {status_code}: {message}")


class TokenResponseParseError(TokenExchangeError):
    """Raised when the provider answers 200 with a body that is not a token."""

    def __init__(self, message: str):
        super().__init__(502, message)


class ProviderClient:
    """
    Async HTTP client exchanging authorization codes for access tokens.

    Owns no state beyond its connection pool; one instance is shared by
    all /login requests for the lifetime of the application.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the HTTP client."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.provider_timeout),
            follow_redirects=False,
            transport=self._transport,
        )
        logger.info("Provider HTTP client initialized")

    async def stop(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Provider HTTP client closed")

    async def exchange_code(self, code: str) -> AccessToken:
        """
        Exchange an authorization code for an access token.

        Args:
            code: Authorization code from the provider redirect

        Returns:
            The parsed token response

        Raises:
            TokenExchangeError: If the provider answers non-200, is unreachable,
                or returns a body that is not a token response
            RuntimeError: If client is not initialized
        """
        if not self._client:
            raise RuntimeError("ProviderClient not initialized. Call start() first.")

        settings = self._settings
        logger.debug(f"Exchanging authorization code at {settings.token_url}")

        try:
            response = await self._client.post(
                settings.token_url,
                data={
                    "client_id": settings.client_id,
                    "client_secret": settings.client_secret.get_secret_value(),
                    "code": code,
                    "redirect_uri": settings.redirect_uri,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
        except httpx.RequestError as e:
            logger.error(f"Token request failed: {e}")
            raise TokenExchangeError(502, f"Failed to connect to provider: {e}")

        if response.status_code != 200:
            logger.warning(
                f"Provider returned {response.status_code}: {response.text[:500]}"
            )
            raise TokenExchangeError(response.status_code, response.text or "")

        try:
            return AccessToken.from_response_data(response.json())
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Could not parse token response: {e}")
            raise TokenResponseParseError(f"Unparseable token response: {e}")
