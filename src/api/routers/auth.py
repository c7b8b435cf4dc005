import asyncio
import os
import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response
from google_auth_oauthlib.flow import Flow

from api.dependencies import SESSION_COOKIE_NAME, get_cookie_codec, get_session_store
from calendar_ai.errors import ProviderUnavailable
from storage.session_store import CALENDAR_SCOPES, GOOGLE_TOKEN_URI, SessionCookieCodec, SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)

# Google returns the granted scopes in its own order
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

# Google Auth Configuration
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:8000/auth/callback")
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() in {"1", "true", "yes"}
SESSION_COOKIE_MAX_AGE_S = 14 * 24 * 60 * 60

USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
OAUTH_SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    *CALENDAR_SCOPES,
]


def _build_flow() -> Flow:
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise ProviderUnavailable("Google credentials not configured")
    return Flow.from_client_config(
        {
            "web": {
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": GOOGLE_TOKEN_URI,
            }
        },
        scopes=OAUTH_SCOPES,
        redirect_uri=GOOGLE_REDIRECT_URI,
    )


def _redirect(location: str) -> Response:
    return Response(status_code=307, headers={"Location": location})


def _exchange_code(code: str) -> dict:
    """Trade the authorization code for tokens and the user's profile."""
    flow = _build_flow()
    flow.fetch_token(code=code)
    credentials = flow.credentials
    user_info = flow.authorized_session().get(USERINFO_URL).json()

    expires_in_s = None
    if credentials.expiry is not None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        expires_in_s = (credentials.expiry - now).total_seconds()

    return {
        "user_id": user_info.get("id") or user_info.get("email"),
        "email": user_info.get("email"),
        "name": user_info.get("name"),
        "image": user_info.get("picture"),
        "access_token": credentials.token,
        "refresh_token": credentials.refresh_token,
        "expires_in_s": expires_in_s,
    }


@router.get("/auth/google")
async def google_login():
    """Initiates the OAuth2 flow - redirects to Google."""
    flow = _build_flow()
    # offline + consent so Google always hands back a refresh token
    authorization_url, _ = flow.authorization_url(
        access_type="offline", include_granted_scopes="true", prompt="consent"
    )
    return _redirect(authorization_url)


@router.get("/auth/callback")
async def google_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    session_store: SessionStore = Depends(get_session_store),
    cookie_codec: SessionCookieCodec = Depends(get_cookie_codec),
):
    """Handles the OAuth2 callback and establishes the session."""
    if error or not code:
        logger.error(f"OAuth error: {error or 'missing code'}")
        return _redirect(f"{APP_URL}/?error={quote(error or 'missing_code')}")

    try:
        profile = await asyncio.to_thread(_exchange_code, code)
    except Exception as e:
        logger.error(f"OAuth callback failed: {e}")
        return _redirect(f"{APP_URL}/?error=oauth_failed")

    if not profile["email"]:
        logger.error("OAuth callback returned no email address")
        return _redirect(f"{APP_URL}/?error=no_email")

    session = session_store.create(**profile)
    response = _redirect(f"{APP_URL}/")
    response.set_cookie(
        SESSION_COOKIE_NAME,
        cookie_codec.encode(session.id),
        max_age=SESSION_COOKIE_MAX_AGE_S,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return response


def _sign_out(request: Request, session_store: SessionStore, cookie_codec: SessionCookieCodec) -> None:
    session_id = cookie_codec.decode(request.cookies.get(SESSION_COOKIE_NAME))
    session_store.delete(session_id)


@router.post("/auth/logout")
async def logout(
    request: Request,
    response: Response,
    session_store: SessionStore = Depends(get_session_store),
    cookie_codec: SessionCookieCodec = Depends(get_cookie_codec),
) -> dict:
    _sign_out(request, session_store, cookie_codec)
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"status": "signed_out"}


@router.get("/auth/logout")
async def logout_redirect(
    request: Request,
    session_store: SessionStore = Depends(get_session_store),
    cookie_codec: SessionCookieCodec = Depends(get_cookie_codec),
):
    _sign_out(request, session_store, cookie_codec)
    response = _redirect(f"{APP_URL}/")
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response
