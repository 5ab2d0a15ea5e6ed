# src/mauthn_client/provider.py

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import Request
from pydantic import BaseModel, ConfigDict

from .config import Settings
from .exceptions import ProviderError

logger = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    """
    Body of a successful token endpoint response. Only the token pair is
    read; token_type, expires_in and the rest pass through unchecked.
    """
    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: Optional[str] = None


class ProviderClient:
    """
    Talks to the identity provider: builds the authorization URL the browser
    is sent to, and makes the back-channel token and resource calls.

    Every call is bounded by PROVIDER_TIMEOUT_SECONDS and never retried.
    Non-2xx answers, timeouts and connection errors all raise ProviderError.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._client = httpx.AsyncClient(
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Front channel ---

    def build_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.settings.CLIENT_ID,
            "redirect_uri": self.settings.REDIRECT_URI,
            "response_type": "code",
            "scope": self.settings.SCOPE_PARAM,
            "state": state,
        }
        return f"{self.settings.AUTH_URL}?{urlencode(params)}"

    # --- Back channel ---

    async def exchange_code(self, code: str) -> TokenResponse:
        return await self._token_request({
            "client_id": self.settings.CLIENT_ID,
            "client_secret": self.settings.CLIENT_SECRET,
            "code": code,
            "redirect_uri": self.settings.REDIRECT_URI,
            "grant_type": "authorization_code",
        })

    async def refresh_tokens(self, refresh_token: str) -> TokenResponse:
        return await self._token_request({
            "client_id": self.settings.CLIENT_ID,
            "client_secret": self.settings.CLIENT_SECRET,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })

    async def get_resource(self, endpoint: str, access_token: str) -> Any:
        url = self.settings.resource_url(endpoint)
        response = await self._send("GET", url, headers={"Authorization": f"Bearer {access_token}"})
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{url} did not return JSON", response.status_code, response.text) from e

    async def _token_request(self, form: Dict[str, str]) -> TokenResponse:
        logger.debug("Token request: grant_type=%s", form["grant_type"])
        # httpx sends a dict passed as data= form-encoded
        response = await self._send("POST", self.settings.TOKEN_URL, data=form)
        try:
            return TokenResponse.model_validate(response.json())
        except ValueError as e:
            raise ProviderError("Token endpoint returned an unusable body",
                                response.status_code, response.text) from e

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %r", method, url, e)
            raise ProviderError(f"Request to {url} failed", None, str(e) or type(e).__name__) from e
        if not response.is_success:
            logger.warning("%s %s returned %s", method, url, response.status_code)
            raise ProviderError(f"{url} returned {response.status_code}", response.status_code, response.text)
        return response


def get_provider(request: Request) -> ProviderClient:
    return request.app.state.provider
