import logging
import os
import time
from datetime import timezone
from typing import Callable, Dict, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from calendar_ai.models import UserSession

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]
SESSION_MAX_AGE_S = 14 * 24 * 60 * 60

NO_REFRESH_TOKEN_ERROR = "NoRefreshTokenError"
REFRESH_ACCESS_TOKEN_ERROR = "RefreshAccessTokenError"

# (access_token, expires_at_unix_s, refresh_token or None if unchanged)
RefreshResult = Tuple[str, float, Optional[str]]
Refresher = Callable[[UserSession], RefreshResult]


def session_credentials(session: UserSession) -> Credentials:
    """google-auth credentials for calling Google APIs on behalf of ``session``."""
    return Credentials(
        token=session.access_token,
        refresh_token=session.refresh_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=os.getenv("GOOGLE_CLIENT_ID"),
        client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
        scopes=CALENDAR_SCOPES,
    )


def google_token_refresher(session: UserSession) -> RefreshResult:
    creds = session_credentials(session)
    creds.refresh(Request())
    if creds.expiry is not None:
        # google-auth keeps expiry as naive UTC
        expires_at = creds.expiry.replace(tzinfo=timezone.utc).timestamp()
    else:
        expires_at = time.time() + 3600
    new_refresh = creds.refresh_token if creds.refresh_token != session.refresh_token else None
    return creds.token, expires_at, new_refresh


class SessionCookieCodec:
    """Encrypts session ids into cookie values."""

    def __init__(self, key: Optional[str] = None):
        # Generate a key if not provided (for development/testing only)
        key = key or os.getenv("SESSION_SECRET")
        if not key:
            logger.warning("SESSION_SECRET not set. Generating a temporary key.")
            key = Fernet.generate_key().decode()

        try:
            self.fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid SESSION_SECRET: {e}. Generating a temporary key.")
            self.fernet = Fernet(Fernet.generate_key())

    def encode(self, session_id: str) -> str:
        return self.fernet.encrypt(session_id.encode()).decode()

    def decode(self, cookie_value: Optional[str], max_age_s: int = SESSION_MAX_AGE_S) -> Optional[str]:
        if not cookie_value:
            return None
        try:
            return self.fernet.decrypt(cookie_value.encode(), ttl=max_age_s).decode()
        except InvalidToken:
            logger.warning("Rejected invalid or expired session cookie")
            return None


class SessionStore:
    """In-memory session store.

    ``get`` refreshes an expired access token before returning the session.
    Concurrent reads of the same expired session may each refresh it; the
    last writer wins.
    """

    def __init__(
        self,
        refresher: Refresher = google_token_refresher,
        clock: Callable[[], float] = time.time,
        on_refresh: Optional[Callable[[str], None]] = None,
    ):
        self._sessions: Dict[str, UserSession] = {}
        self.refresher = refresher
        self.clock = clock
        # called with "success", "no_refresh_token" or "failed"
        self.on_refresh = on_refresh

    def create(
        self,
        user_id: str,
        email: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_in_s: Optional[float] = None,
        name: Optional[str] = None,
        image: Optional[str] = None,
    ) -> UserSession:
        session = UserSession(
            user_id=user_id,
            email=email,
            name=name,
            image=image,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=self.clock() + (expires_in_s or 3600),
        )
        self._sessions[session.id] = session
        logger.info(f"Created session for user {email}")
        return session

    def get(self, session_id: Optional[str]) -> Optional[UserSession]:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self.clock() < session.access_token_expires_at:
            return session
        return self._refresh(session)

    def delete(self, session_id: Optional[str]) -> bool:
        if not session_id:
            return False
        removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"Signed out user {removed.email}")
        return removed is not None

    def __len__(self) -> int:
        return len(self._sessions)

    def _refresh(self, session: UserSession) -> UserSession:
        logger.info(f"Access token expired for {session.email}, attempting refresh")
        if not session.refresh_token:
            logger.error("No refresh token available")
            self._report("no_refresh_token")
            return self._mark_error(session, NO_REFRESH_TOKEN_ERROR)

        try:
            access_token, expires_at, new_refresh = self.refresher(session)
        except Exception as e:
            logger.error(f"Error refreshing token: {e}")
            self._report("failed")
            return self._mark_error(session, REFRESH_ACCESS_TOKEN_ERROR)

        refreshed = session.model_copy(
            update={
                "access_token": access_token,
                "access_token_expires_at": expires_at,
                # keep the refresh token if a new one wasn't returned
                "refresh_token": new_refresh or session.refresh_token,
                "error": None,
            }
        )
        self._sessions[session.id] = refreshed
        logger.info("Token refreshed successfully")
        self._report("success")
        return refreshed

    def _report(self, outcome: str) -> None:
        if self.on_refresh is not None:
            self.on_refresh(outcome)

    def _mark_error(self, session: UserSession, error: str) -> UserSession:
        flagged = session.model_copy(update={"error": error})
        self._sessions[session.id] = flagged
        return flagged
