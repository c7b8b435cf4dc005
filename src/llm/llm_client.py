import datetime as dt
import logging
import os
from typing import Optional

import httpx

from calendar_ai.errors import EmptyInput, EmptyResponse, ProviderUnavailable
from llm.providers.base import LLMProvider
from llm.schemas import EXTRACTION_FUNCTION_SCHEMA, JSON_OBJECT_FORMAT, ExtractionRequest
from scheduling.reconciliation import resolve_timezone

logger = logging.getLogger(__name__)

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai").strip().lower()
# "json_object" (response_format) or "function_call" (forced tool call)
EXTRACTION_MODE = os.getenv("EXTRACTION_MODE", "json_object").strip().lower()

SYSTEM_PROMPT_TEMPLATE = """You are a helpful assistant that extracts tasks from user input.

CURRENT DATE/TIME CONTEXT:
- Current date: {today}
- Current time: {now}
- Current timezone: {timezone}

Extract every task mentioned in the user's text, even if the text is vague or incomplete.
If the input is unclear, make reasonable assumptions.

For each task provide:
- title: (REQUIRED) a short title
- startTime: (REQUIRED) start time in 24h HH:MM format, using only 15-minute increments (00, 15, 30, 45)
- duration: (REQUIRED) duration in minutes, a number between 15 and 480
- priority: (REQUIRED) exactly "high", "medium" or "low"
- date: the date in ISO format (YYYY-MM-DD)

DATE HANDLING:
- "tomorrow" means {tomorrow}
- "next week" means {next_week}
- "tonight" means {today}
- If no date is mentioned, use {today}

DO NOT include descriptions in your output. Only extract titles.
Always convert AM/PM times to 24-hour format (e.g. "9pm" becomes "21:00").

Format your response as a JSON object with a "tasks" array, for example:
{{"tasks": [{{"title": "Team meeting", "startTime": "09:00", "duration": 60, "priority": "high", "date": "{today}"}}]}}"""


def build_extraction_request(
    text: str,
    now: Optional[dt.datetime] = None,
    timezone_name: str = "America/Los_Angeles",
    mode: str = "json_object",
) -> ExtractionRequest:
    """Build the constrained-output chat request for ``text``."""
    now = now or dt.datetime.now(resolve_timezone(timezone_name))
    today = now.date()
    system = SYSTEM_PROMPT_TEMPLATE.format(
        today=today.isoformat(),
        now=now.strftime("%H:%M"),
        timezone=timezone_name,
        tomorrow=(today + dt.timedelta(days=1)).isoformat(),
        next_week=(today + dt.timedelta(days=7)).isoformat(),
    )

    if mode == "function_call":
        return ExtractionRequest(
            system=system, user=text, function_schema=EXTRACTION_FUNCTION_SCHEMA
        )
    return ExtractionRequest(system=system, user=text, response_format=JSON_OBJECT_FORMAT)


def create_provider(name: str = LLM_PROVIDER) -> LLMProvider:
    """Construct the configured provider. Raises ProviderUnavailable on failure."""
    if name == "mock":
        from llm.providers.mock_provider import MockProvider

        return MockProvider()
    if name == "ollama":
        from llm.providers.ollama_provider import OllamaProvider

        return OllamaProvider()
    if name == "openai":
        from llm.providers.openai_provider import OpenAIProvider

        return OpenAIProvider()
    raise ProviderUnavailable(f"Unknown LLM provider: {name}")


class LLMClient:
    """Chat-completion client used by the extraction pipeline.

    The provider is constructed lazily so a missing credential surfaces as
    ProviderUnavailable on the extraction request instead of at import time.
    """

    def __init__(self, provider: Optional[LLMProvider] = None, mode: str = EXTRACTION_MODE):
        self._provider = provider
        self.mode = mode

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = create_provider(LLM_PROVIDER)
        return self._provider

    def extract_tasks_raw(
        self,
        text: str,
        now: Optional[dt.datetime] = None,
        timezone_name: str = "America/Los_Angeles",
    ) -> str:
        """Run one extraction call and return the raw JSON text."""
        if not text or not text.strip():
            raise EmptyInput()

        request = build_extraction_request(
            text, now=now, timezone_name=timezone_name, mode=self.mode
        )
        provider = self.provider

        try:
            content = provider.generate(
                system=request.system,
                user=request.user,
                response_format=request.response_format,
                function_schema=request.function_schema,
            )
        except httpx.HTTPError as e:
            logger.error(f"LLM provider request failed: {e}")
            raise ProviderUnavailable("The language model provider could not be reached")

        if content is None or not str(content).strip():
            logger.error("Empty response from LLM provider")
            raise EmptyResponse()

        logger.info(f"LLM extraction response received ({len(content)} chars)")
        return content
