import logging
from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_optional_session
from calendar_ai.models import UserSession

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/user")
async def get_user(session: Optional[UserSession] = Depends(get_optional_session)) -> dict:
    """Who is signed in. A session whose token refresh failed reports the error."""
    if session is None:
        return {"authenticated": False}
    if session.error:
        return {"authenticated": False, "error": session.error, "user": session.public_user()}
    return {"authenticated": True, "user": session.public_user()}
