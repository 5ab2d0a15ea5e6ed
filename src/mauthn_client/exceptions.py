# src/mauthn_client/exceptions.py

from typing import Optional

from fastapi import status


class OAuthFlowError(Exception):
    """
    A protocol-level failure reported to the browser as a 400 JSON body:
    {"error": <error>, "details": <details>}.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    error = "OAuth flow failed"

    def __init__(self, details: Optional[str] = None, error: Optional[str] = None):
        if error:
            self.error = error
        self.details = details
        super().__init__(self.error if details is None else f"{self.error}: {details}")


class InvalidState(OAuthFlowError):
    error = "Invalid state parameter"


class MissingAuthorizationCode(OAuthFlowError):
    error = "No authorization code received"


class TokenExchangeFailed(OAuthFlowError):
    error = "Failed to obtain access token"


class UpstreamRequestFailed(OAuthFlowError):
    error = "Failed to fetch protected resource"


class Unauthenticated(Exception):
    """No access token in the session. Answered with a redirect to /login."""


class MalformedSessionCookie(ValueError):
    """Raised inside the session codec only; callers see an empty session."""


class ProviderError(Exception):
    """
    The provider answered with a non-2xx status, an unusable body, or not at
    all (connection error, timeout). status_code is None in the last case.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
