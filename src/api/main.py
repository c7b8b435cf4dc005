import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routers import auth, ops, tasks, user
from calendar_ai.errors import CalendarAIError

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "SESSION_SECRET",
    "OPENAI_API_KEY",
    "APP_URL",
)

app = FastAPI(title="AI Calendar Assistant")

app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(user.router)
app.include_router(ops.router)


@app.exception_handler(CalendarAIError)
async def calendar_ai_error_handler(request: Request, exc: CalendarAIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.on_event("startup")
async def startup() -> None:
    missing = [name for name in REQUIRED_SETTINGS if not os.getenv(name)]
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")
    logger.info("AI Calendar Assistant started")
