from __future__ import annotations
import logging
import os
from typing import Optional

import httpx

from calendar_ai.errors import ProviderUnavailable
from .base import LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    def __init__(self):
        self.api_key = os.getenv("OPENAI_API_KEY", "").strip()
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o").strip()
        self.base_url = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip()
        self.timeout_s = float(os.getenv("OPENAI_TIMEOUT_S", "30"))

        if not self.api_key:
            raise ProviderUnavailable("OpenAI API key is not available")

    def generate(
        self,
        *,
        system: str,
        user: str,
        model: Optional[str] = None,
        response_format: Optional[dict] = None,
        function_schema: Optional[dict] = None,
    ) -> Optional[str]:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": 0.2,
        }
        if function_schema:
            payload["tools"] = [{"type": "function", "function": function_schema}]
            payload["tool_choice"] = {
                "type": "function",
                "function": {"name": function_schema["name"]},
            }
        elif response_format:
            payload["response_format"] = response_format

        with httpx.Client(timeout=self.timeout_s) as client:
            r = client.post(url, headers=headers, json=payload)
            r.raise_for_status()

        try:
            message = r.json()["choices"][0]["message"]
            if function_schema:
                tool_calls = message.get("tool_calls") or []
                if not tool_calls:
                    logger.warning("OpenAI response did not contain the forced function call")
                    return None
                return tool_calls[0]["function"].get("arguments")
            return message.get("content")
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            logger.error(f"Unexpected OpenAI response body: {e!r}")
            raise ProviderUnavailable("The language model provider returned an unexpected response")
