# src/mauthn_client/config.py

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional, Union

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, TypeAdapter, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env lives at the project root, two levels up from src/mauthn_client/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"

if ENV_FILE_PATH.exists():
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=True)
    logger.info("Loaded .env file from: %s", ENV_FILE_PATH)
else:
    logger.info(".env file not found at %s. Relying on environment variables.", ENV_FILE_PATH)

_http_url = TypeAdapter(AnyHttpUrl)


class Settings(BaseSettings):
    # === OAuth client registration at the provider ===
    CLIENT_ID: str
    CLIENT_SECRET: str
    # Kept verbatim: the provider compares it byte for byte with the registered value.
    REDIRECT_URI: str
    # Comma-separated in the environment, a list once validated.
    SCOPE: Union[str, List[str]] = ["email"]

    # === Provider ===
    PROVIDER_BASE_URL: AnyHttpUrl = "https://mauthn.mukham.in"
    PROVIDER_TIMEOUT_SECONDS: float = 5.0

    # === Session cookie ===
    SESSION_COOKIE_NAME: str = "session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24  # 1 day
    SESSION_COOKIE_SECURE: bool = False
    # When set, the cookie payload is signed and tampered cookies are dropped.
    SESSION_SECRET_KEY: Optional[str] = None
    # 0 disables the check; the state then lives as long as the cookie.
    OAUTH_STATE_TTL_SECONDS: int = 600

    LOG_LEVEL: str = "INFO"

    # === Provider endpoints (derived properties) ===
    @property
    def PROVIDER_ROOT(self) -> str:
        return str(self.PROVIDER_BASE_URL).rstrip("/")

    @property
    def AUTH_URL(self) -> str:
        return f"{self.PROVIDER_ROOT}/oauth/authorize"

    @property
    def TOKEN_URL(self) -> str:
        return f"{self.PROVIDER_ROOT}/oauth/token"

    @property
    def SCOPE_PARAM(self) -> str:
        return " ".join(self.SCOPE)

    def resource_url(self, endpoint: str) -> str:
        return f"{self.PROVIDER_ROOT}/{endpoint.lstrip('/')}"

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @field_validator("CLIENT_ID", "CLIENT_SECRET")
    @classmethod
    def require_non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("REDIRECT_URI")
    @classmethod
    def check_redirect_uri(cls, v: str) -> str:
        _http_url.validate_python(v)
        return v

    @field_validator("SCOPE", mode='before')
    @classmethod
    def parse_comma_separated_scopes(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            return [scope.strip() for scope in v.split(',') if scope.strip()]
        if isinstance(v, list):
            return v
        raise TypeError('SCOPE: Expected a comma-separated string or a list.')

    @model_validator(mode='after')
    def check_final_scopes(self) -> 'Settings':
        if not self.SCOPE:
            raise ValueError("SCOPE must name at least one scope.")
        if not all(isinstance(item, str) for item in self.SCOPE):
            raise ValueError("All items in SCOPE must be strings.")
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Loads settings once per process. A missing CLIENT_ID, CLIENT_SECRET or
    REDIRECT_URI fails here, at startup, never per request.
    """
    try:
        return Settings()
    except Exception:
        logger.exception("Error instantiating Settings")
        raise
