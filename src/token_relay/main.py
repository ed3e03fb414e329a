"""Application entry point - creates and configures the Starlette application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .config import ConfigurationError, Settings, load_settings
from .http_client.provider_client import ProviderClient
from .oauth.routes import get_relay_routes
from .pending import PendingRequestStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "token-relay"
SERVICE_VERSION = "0.1.0"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: Starlette):
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting token relay...")
    logger.info(f"Token endpoint: {settings.token_url}")
    logger.info(f"Redirect URI: {settings.redirect_uri}")
    await app.state.provider_client.start()
    logger.info("Token relay ready")

    yield

    # Shutdown
    logger.info("Shutting down token relay...")
    await app.state.pending_store.close()
    await app.state.provider_client.stop()
    logger.info("Shutdown complete")


async def healthz(request: Request) -> JSONResponse:
    """
    Health check endpoint.

    Returns 200 OK with pending request counts.
    """
    return JSONResponse(
        content={
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "pending_requests": request.app.state.pending_store.stats(),
        }
    )


async def root(request: Request) -> JSONResponse:
    """Root endpoint with server information."""
    return JSONResponse(
        content={
            "name": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "description": "Relays OAuth authorization code results to polling clients",
            "endpoints": {
                "health": "/healthz",
                "poll_token": "/token?state=...",
                "oauth_callback": "/login?state=...&code=...",
            },
        }
    )


def create_app(
    settings: Optional[Settings] = None,
    provider_client: Optional[ProviderClient] = None,
) -> Starlette:
    """
    Create the Starlette application with all routes and middleware.

    Args:
        settings: Configuration; loaded from the environment when omitted
        provider_client: Token exchange client; built from settings when omitted

    Returns:
        Configured Starlette application

    Raises:
        ConfigurationError: If required environment variables are missing
    """
    if settings is None:
        settings = load_settings()

    routes = [
        Route("/", endpoint=root, methods=["GET"]),
        Route("/healthz", endpoint=healthz, methods=["GET"]),
        *get_relay_routes(),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)

    # One store per process, shared by every request through app.state
    app.state.settings = settings
    app.state.pending_store = PendingRequestStore(
        max_request_lifetime=settings.max_request_lifetime,
        max_pending_requests=settings.max_pending_requests,
        sweep_interval=settings.effective_sweep_interval,
        replay_held_results=settings.replay_held_results,
    )
    app.state.provider_client = provider_client or ProviderClient(settings)

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_methods=["GET"],
        )

    return app


def main():
    """Run the server using uvicorn."""
    import uvicorn

    try:
        settings = load_settings()
    except ConfigurationError as e:
        raise SystemExit(str(e))
    configure_logging(settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
