# src/mauthn_client/auth_utils.py

import logging
import secrets
import time
from typing import Any, Optional, Tuple

from .exceptions import (
    InvalidState,
    MissingAuthorizationCode,
    ProviderError,
    TokenExchangeFailed,
    Unauthenticated,
    UpstreamRequestFailed,
)
from .provider import ProviderClient
from .session_data import Session
from .state import generate_state

logger = logging.getLogger(__name__)


# --- Authorization Code Flow ---

def begin_login(session: Session, provider: ProviderClient) -> Tuple[str, Session]:
    """
    Starts an authorization attempt. A fresh state replaces any earlier one,
    so a callback carrying an older state can no longer succeed.
    Returns the provider URL to redirect to and the session to write back.
    """
    state = generate_state()
    updated = session.model_copy(update={
        "oauth_state": state,
        "oauth_state_issued_at": int(time.time()),
    })
    auth_url = provider.build_auth_url(state)
    logger.info("Starting authorization; redirect_uri=%s", provider.settings.REDIRECT_URI)
    return auth_url, updated


def _state_matches(returned_state: Optional[str], expected_state: Optional[str]) -> bool:
    if not returned_state or not expected_state:
        return False
    return secrets.compare_digest(returned_state.encode("utf-8"), expected_state.encode("utf-8"))


async def handle_callback(
        session: Session,
        query_state: Optional[str],
        query_code: Optional[str],
        provider: ProviderClient,
        state_ttl_seconds: int = 0,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        now: Optional[float] = None,
) -> Session:
    """
    Validates the returned state against the session, then trades the code
    for tokens. On any failure the session is left as it was, so the pending
    state still accepts a retried callback. On success the state is consumed
    and the new token pair stored.
    """
    if not _state_matches(query_state, session.oauth_state):
        logger.warning("Callback state mismatch (session has state: %s)", session.oauth_state is not None)
        raise InvalidState()

    if state_ttl_seconds and session.oauth_state_issued_at is not None:
        age = (time.time() if now is None else now) - session.oauth_state_issued_at
        if age > state_ttl_seconds:
            logger.warning("Callback state expired %.0fs ago", age - state_ttl_seconds)
            raise InvalidState("Authorization state expired")

    if not query_code:
        details = None
        if error:
            details = f"{error}: {error_description}" if error_description else error
        logger.warning("Callback without code; provider error: %s", details)
        raise MissingAuthorizationCode(details)

    try:
        tokens = await provider.exchange_code(query_code)
    except ProviderError as e:
        raise TokenExchangeFailed(e.body) from e

    logger.info("Token exchange succeeded (refresh token issued: %s)", tokens.refresh_token is not None)
    return session.model_copy(update={
        "access_token": tokens.access_token,
        "refresh_token": tokens.refresh_token,
        "oauth_state": None,
        "oauth_state_issued_at": None,
    })


# --- Token lifecycle ---

async def refresh(session: Session, provider: ProviderClient) -> Optional[Session]:
    """
    Trades the stored refresh token for a new access token. Returns None when
    the user has to log in again: no refresh token, or the provider refused.
    """
    if not session.refresh_token:
        logger.info("No refresh token in session")
        return None

    try:
        tokens = await provider.refresh_tokens(session.refresh_token)
    except ProviderError as e:
        logger.warning("Token refresh failed (status %s); user must log in again", e.status_code)
        return None

    update = {"access_token": tokens.access_token}
    # Providers that do not rotate refresh tokens omit it
    if tokens.refresh_token:
        update["refresh_token"] = tokens.refresh_token
    logger.info("Token refresh succeeded (refresh token rotated: %s)", "refresh_token" in update)
    return session.model_copy(update=update)


async def call_protected(
        session: Session,
        endpoint: str,
        provider: ProviderClient,
        error_message: Optional[str] = None,
) -> Any:
    """
    The authentication gate for protected pages: without an access token the
    caller is sent to /login, otherwise the endpoint is fetched with the token
    as a bearer credential and its JSON body returned.
    """
    if not session.access_token:
        raise Unauthenticated()
    try:
        return await provider.get_resource(endpoint, session.access_token)
    except ProviderError as e:
        raise UpstreamRequestFailed(e.body, error=error_message) from e
