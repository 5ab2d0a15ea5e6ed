# src/mauthn_client/token_inspector.py
"""
Best-effort decoding of an access token for the profile page.

Nothing here verifies a signature or trusts a claim; it only shows what a
JWT says about itself, and explains when the token is opaque.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

OPAQUE_MESSAGE = (
    "This is an opaque token, not a JWT token. "
    "Opaque tokens cannot be decoded client-side."
)
NOT_JWT_HEADER_MESSAGE = (
    "This appears to be formatted like a JWT but doesn't contain valid JWT header data."
)
UNDECODABLE_PART = {"error": "Could not decode this part"}
SIGNATURE_PREVIEW_LENGTH = 15


class TokenInspection(BaseModel):
    is_jwt: bool
    message: Optional[str] = None
    header: Optional[Dict[str, Any]] = None
    payload: Optional[Dict[str, Any]] = None
    signature_preview: Optional[str] = None
    expires_at: Optional[datetime] = None
    expired: Optional[bool] = None
    expires_in_minutes: Optional[int] = None
    issued_at: Optional[datetime] = None


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def inspect_token(token: str, now: Optional[datetime] = None) -> TokenInspection:
    parts = token.split(".")
    if len(parts) != 3:
        return TokenInspection(is_jwt=False, message=OPAQUE_MESSAGE)

    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        header = {}
    if not header.get("alg"):
        return TokenInspection(is_jwt=False, message=NOT_JWT_HEADER_MESSAGE)

    try:
        payload = jwt.get_unverified_claims(token)
    except JWTError:
        payload = dict(UNDECODABLE_PART)

    now = now or datetime.now(timezone.utc)
    inspection = TokenInspection(
        is_jwt=True,
        header=header,
        payload=payload,
        signature_preview=parts[2][:SIGNATURE_PREVIEW_LENGTH] + "...",
        expires_at=_timestamp(payload.get("exp")),
        issued_at=_timestamp(payload.get("iat")),
    )
    if inspection.expires_at is not None:
        inspection.expired = now > inspection.expires_at
        if not inspection.expired:
            inspection.expires_in_minutes = int((inspection.expires_at - now).total_seconds() // 60)
    return inspection
