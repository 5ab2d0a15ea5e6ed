# src/mauthn_client/session_data.py

import base64
import json
import logging
from typing import Any, Dict, Optional

from fastapi import Request, Response
from itsdangerous import BadData, URLSafeSerializer
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import MalformedSessionCookie

logger = logging.getLogger(__name__)


class Session(BaseModel):
    """
    Represents the data carried in the browser's session cookie.
    Nothing is kept server-side: the cookie is the whole session.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    oauth_state: Optional[str] = Field(default=None, alias="oauthState")
    oauth_state_issued_at: Optional[int] = Field(default=None, alias="oauthStateIssuedAt")
    access_token: Optional[str] = Field(default=None, alias="accessToken")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class SessionCodec:
    """
    Turns a Session into a cookie value and back.

    Without a secret key the value is URL-safe base64 of compact, key-sorted
    JSON. With one, itsdangerous signs the JSON so a client-edited cookie no
    longer decodes. decode() never raises: anything it cannot read becomes an
    empty Session.
    """

    def __init__(self, cookie_name: str = "session", max_age: int = 60 * 60 * 24,
                 secure: bool = False, secret_key: Optional[str] = None):
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self._signer = URLSafeSerializer(secret_key, salt="session") if secret_key else None

    @property
    def signed(self) -> bool:
        return self._signer is not None

    def encode(self, session: Session) -> str:
        payload = session.model_dump(by_alias=True, exclude_none=True)
        if self._signer is not None:
            return self._signer.dumps(payload)
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    def decode(self, cookie_value: Optional[str]) -> Session:
        if not cookie_value:
            return Session()
        try:
            return Session.model_validate(self._load(cookie_value))
        except (MalformedSessionCookie, ValueError) as e:
            logger.debug("Discarding unreadable session cookie: %s", e)
            return Session()

    def _load(self, cookie_value: str) -> Dict[str, Any]:
        if self._signer is not None:
            try:
                return self._signer.loads(cookie_value)
            except BadData as e:
                raise MalformedSessionCookie("bad signature") from e
        try:
            padded = cookie_value + "=" * (-len(cookie_value) % 4)
            # Also reads the standard alphabet (+ and /)
            return json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except ValueError as e:
            raise MalformedSessionCookie(str(e)) from e

    def write(self, response: Response, session: Session) -> Response:
        """Re-issues the session cookie. Every handler that changes the session must call this."""
        response.set_cookie(
            self.cookie_name,
            self.encode(session),
            max_age=self.max_age,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
        return response


def get_codec(request: Request) -> SessionCodec:
    return request.app.state.session_codec


def get_session(request: Request) -> Session:
    """Decodes the request's session once; handlers receive it as a plain value."""
    codec = get_codec(request)
    return codec.decode(request.cookies.get(codec.cookie_name))
