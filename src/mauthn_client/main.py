# src/mauthn_client/main.py

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

import httpx
from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from . import auth_utils
from .app_logging import setup_logger
from .config import Settings, get_settings
from .exceptions import OAuthFlowError, Unauthenticated
from .provider import ProviderClient, get_provider
from .session_data import Session, SessionCodec, get_codec, get_session
from .token_inspector import inspect_token

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
STATIC_DIR = PACKAGE_DIR / "static"
templates = Jinja2Templates(directory=PACKAGE_DIR / "templates")

router = APIRouter()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# --- Landing page ---
@router.get("/", response_class=HTMLResponse)
async def read_root(request: Request):
    return templates.TemplateResponse(request, "index.html", {})


# --- Authentication Routes ---
@router.get("/login")
async def login(
        session: Session = Depends(get_session),
        provider: ProviderClient = Depends(get_provider),
        codec: SessionCodec = Depends(get_codec),
):
    auth_url, session = auth_utils.begin_login(session, provider)
    response = RedirectResponse(url=auth_url, status_code=status.HTTP_302_FOUND)
    return codec.write(response, session)


@router.get("/callback")
async def callback(
        state: Optional[str] = None,
        code: Optional[str] = None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        session: Session = Depends(get_session),
        provider: ProviderClient = Depends(get_provider),
        codec: SessionCodec = Depends(get_codec),
        settings: Settings = Depends(get_app_settings),
):
    session = await auth_utils.handle_callback(
        session,
        query_state=state,
        query_code=code,
        provider=provider,
        state_ttl_seconds=settings.OAUTH_STATE_TTL_SECONDS,
        error=error,
        error_description=error_description,
    )
    response = RedirectResponse(url="/profile", status_code=status.HTTP_302_FOUND)
    return codec.write(response, session)


@router.get("/refresh")
async def refresh_token(
        session: Session = Depends(get_session),
        provider: ProviderClient = Depends(get_provider),
        codec: SessionCodec = Depends(get_codec),
):
    refreshed = await auth_utils.refresh(session, provider)
    if refreshed is None:
        return RedirectResponse(url="/login", status_code=status.HTTP_302_FOUND)
    response = RedirectResponse(url="/profile", status_code=status.HTTP_302_FOUND)
    return codec.write(response, refreshed)


@router.get("/logout")
async def logout(codec: SessionCodec = Depends(get_codec)):
    response = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    return codec.write(response, Session())


# --- Protected pages ---
@router.get("/profile", response_class=HTMLResponse)
async def profile(
        request: Request,
        session: Session = Depends(get_session),
        provider: ProviderClient = Depends(get_provider),
):
    user_info = await auth_utils.call_protected(
        session, "userinfo", provider, error_message="Failed to fetch user profile"
    )
    return templates.TemplateResponse(request, "profile.html", {
        "user_info_json": json.dumps(user_info, indent=2),
        "access_token": session.access_token,
        "token": inspect_token(session.access_token),
    })


@router.get("/profilepic", response_class=HTMLResponse)
async def profile_picture(
        request: Request,
        session: Session = Depends(get_session),
        provider: ProviderClient = Depends(get_provider),
):
    user_image = await auth_utils.call_protected(
        session, "userimage", provider, error_message="Failed to fetch user profile image"
    )
    image = user_image.get("image") if isinstance(user_image, dict) else None
    return templates.TemplateResponse(request, "profilepic.html", {"image": image})


# --- Error translation ---
async def oauth_flow_error_handler(request: Request, exc: OAuthFlowError) -> JSONResponse:
    logger.info("%s %s -> %s", request.method, request.url.path, exc.error)
    content = {"error": exc.error}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(content=content, status_code=exc.status_code)


async def unauthenticated_handler(request: Request, exc: Unauthenticated) -> RedirectResponse:
    logger.debug("%s requires a session; redirecting to /login", request.url.path)
    return RedirectResponse(url="/login", status_code=status.HTTP_302_FOUND)


def log_startup(settings: Settings, codec: SessionCodec) -> None:
    logger.info("--- MAuthN client (FastAPI) Starting Up ---")
    logger.info("Client ID: %s", settings.CLIENT_ID)
    logger.info("Client secret is set: %s", "Yes" if settings.CLIENT_SECRET else "No")
    logger.info("Authorization URL: %s", settings.AUTH_URL)
    logger.info("Token URL: %s", settings.TOKEN_URL)
    logger.info("Redirect URI: %s", settings.REDIRECT_URI)
    logger.info("Scope: %s", settings.SCOPE_PARAM)
    if not codec.signed:
        logger.warning("SESSION_SECRET_KEY is not set. Session cookies are not integrity protected.")
    if not codec.secure:
        logger.warning("SESSION_COOKIE_SECURE is off. Session cookies are sent over plain HTTP.")


def create_app(settings: Optional[Settings] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Builds the application. Settings default to the environment; transport
    replaces the network for provider calls (tests pass an httpx.MockTransport).
    """
    settings = settings or get_settings()
    setup_logger(settings.LOG_LEVEL)

    codec = SessionCodec(
        cookie_name=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        secure=settings.SESSION_COOKIE_SECURE,
        secret_key=settings.SESSION_SECRET_KEY,
    )
    provider = ProviderClient(settings, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_startup(settings, codec)
        yield
        await provider.aclose()

    app = FastAPI(
        title="MAuthN Client",
        description="OAuth 2.0 authorization code relying party for the MAuthN identity provider.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_codec = codec
    app.state.provider = provider

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    app.include_router(router)
    app.add_exception_handler(OAuthFlowError, oauth_flow_error_handler)
    app.add_exception_handler(Unauthenticated, unauthenticated_handler)

    @app.middleware("http")
    async def apply_response_headers(request: Request, call_next: Callable) -> Response:
        """Prevent UI redress attacks."""
        response: Response = await call_next(request)
        response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
        response.headers['X-Frame-Options'] = 'DENY'
        return response

    return app
