"""Polling and provider callback endpoints."""

import asyncio
import logging
from typing import List

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from ..http_client.provider_client import TokenExchangeError, TokenResponseParseError
from ..pending import PendingRequestStore, Waiter
from .state import is_valid_state

logger = logging.getLogger(__name__)

# A stale entry is swept within one interval past its lifetime; polls held
# longer than that were superseded and are answered here instead
HOLD_GRACE_SECONDS = 5.0

EXCHANGE_FAILED_MESSAGE = (
    "Errmmm, not sure what happened, but that didn't work. Maybe try again?"
)
UNPARSEABLE_MESSAGE = "Couldn't parse the response from the provider :/"


async def _wait_for_disconnect(request: Request) -> None:
    """Return once the client closes the connection."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def token_poll(request: Request) -> Response:
    """
    GET /token - Long-poll for the access token of a login attempt.

    Held open until the token for `state` arrives, the request is evicted
    as stale (408), or the server shuts down (503). A token that already
    arrived is returned immediately.

    Query params:
        state: 32 character correlation token generated by the frontend
    """
    state = request.query_params.get("state")
    if not is_valid_state(state):
        logger.info(f"/token bad state: {state!r}")
        return Response(status_code=400)

    store: PendingRequestStore = request.app.state.pending_store
    waiter = Waiter()
    store.register_or_deliver(state, waiter=waiter)

    hold = store.max_request_lifetime + store.sweep_interval + HOLD_GRACE_SECONDS
    wait_task = asyncio.ensure_future(waiter.wait(timeout=hold))
    disconnect_task = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait(
            {wait_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        wait_task.cancel()
        disconnect_task.cancel()

    outcome = wait_task.result() if wait_task in done else None
    if outcome is None:
        # Disconnected or superseded; a later delivery must not count on us
        waiter.cancel()
        return Response(status_code=408)

    return Response(
        content=outcome.body,
        status_code=outcome.status_code,
        media_type=outcome.media_type,
    )


async def login_callback(request: Request) -> Response:
    """
    GET /login - Provider redirect target.

    Exchanges the authorization code for a token and hands it to the poll
    waiting on `state`, or holds it until that poll arrives.

    Query params:
        state: Correlation token passed through the provider
        code: Authorization code to exchange
    """
    state = request.query_params.get("state")
    code = request.query_params.get("code")

    if state is None or code is None:
        logger.info(f"/login bad params: {sorted(request.query_params.keys())}")
        return Response(status_code=400)

    try:
        token = await request.app.state.provider_client.exchange_code(code)
    except TokenResponseParseError:
        return PlainTextResponse(UNPARSEABLE_MESSAGE, status_code=502)
    except TokenExchangeError:
        return PlainTextResponse(EXCHANGE_FAILED_MESSAGE, status_code=502)

    request.app.state.pending_store.deliver(state, token)
    return PlainTextResponse(request.app.state.settings.login_success_message)


def get_relay_routes() -> List[Route]:
    """Return routes for the polling and callback endpoints."""
    return [
        Route("/token", endpoint=token_poll, methods=["GET"]),
        Route("/login", endpoint=login_callback, methods=["GET"]),
    ]
