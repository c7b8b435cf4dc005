import os
from typing import Callable, Optional

from fastapi import Depends, Request

from api import state
from calendar_ai.errors import NotAuthenticated, RefreshTokenError
from calendar_ai.models import UserSession
from extraction.task_extractor import TaskExtractor
from integration.calendar_integration import CalendarIntegration
from storage.session_store import SessionCookieCodec, SessionStore, session_credentials
from storage.task_store import TaskStore

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "calendar_session")

CalendarFactory = Callable[[UserSession], CalendarIntegration]


def get_session_store() -> SessionStore:
    return state.session_store


def get_task_store() -> TaskStore:
    return state.task_store


def get_cookie_codec() -> SessionCookieCodec:
    return state.cookie_codec


def get_task_extractor() -> TaskExtractor:
    return TaskExtractor(llm_client=state.llm_client, timezone_name=state.APP_TIMEZONE)


def _calendar_for(session: UserSession) -> CalendarIntegration:
    return CalendarIntegration(credentials=session_credentials(session), timezone_name=state.APP_TIMEZONE)


def get_calendar_factory() -> CalendarFactory:
    return _calendar_for


def get_optional_session(
    request: Request,
    session_store: SessionStore = Depends(get_session_store),
    cookie_codec: SessionCookieCodec = Depends(get_cookie_codec),
) -> Optional[UserSession]:
    session_id = cookie_codec.decode(request.cookies.get(SESSION_COOKIE_NAME))
    return session_store.get(session_id)


def get_current_session(
    session: Optional[UserSession] = Depends(get_optional_session),
) -> UserSession:
    if session is None:
        raise NotAuthenticated()
    if session.error:
        raise RefreshTokenError()
    return session
