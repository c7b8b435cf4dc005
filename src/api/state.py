import os

from api.metrics import TOKEN_REFRESH_TOTAL
from llm.llm_client import LLMClient
from storage.session_store import SessionCookieCodec, SessionStore
from storage.task_store import TaskStore

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/Los_Angeles").strip()


def _count_refresh(outcome: str) -> None:
    TOKEN_REFRESH_TOTAL.labels(outcome=outcome).inc()


# Global instances shared by the routers
session_store = SessionStore(on_refresh=_count_refresh)
task_store = TaskStore()
cookie_codec = SessionCookieCodec()
llm_client = LLMClient()
