from __future__ import annotations
import logging
import os
from typing import Optional

import httpx

from calendar_ai.errors import ProviderUnavailable
from .base import LLMProvider

logger = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    def __init__(self):
        self.model = os.getenv("OLLAMA_MODEL", "llama3.1").strip()
        self.base_url = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").strip()
        self.timeout_s = float(os.getenv("OLLAMA_TIMEOUT_S", "60"))

    def generate(
        self,
        *,
        system: str,
        user: str,
        model: Optional[str] = None,
        response_format: Optional[dict] = None,
        function_schema: Optional[dict] = None,
    ) -> Optional[str]:
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": model or self.model,
            "stream": False,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "options": {"temperature": 0.2},
        }
        # Ollama has no forced function calls; a JSON schema in "format" gives the same shape
        if function_schema:
            payload["format"] = function_schema["parameters"]
        elif response_format:
            payload["format"] = "json"

        with httpx.Client(timeout=self.timeout_s) as client:
            r = client.post(url, json=payload)
            r.raise_for_status()

        try:
            return (r.json().get("message") or {}).get("content")
        except (AttributeError, ValueError) as e:
            logger.error(f"Unexpected Ollama response body: {e!r}")
            raise ProviderUnavailable("The language model provider returned an unexpected response")
