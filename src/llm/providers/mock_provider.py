from __future__ import annotations
import json
from typing import Optional

from llm.providers.base import LLMProvider


class MockProvider(LLMProvider):
    def generate(
        self,
        *,
        system: str,
        user: str,
        model: Optional[str] = None,
        response_format: Optional[dict] = None,
        function_schema: Optional[dict] = None,
    ) -> Optional[str]:
        """
        Returns a canned extraction for local development without an API key.
        """
        lower_user = user.lower()
        tasks = []

        if "meeting" in lower_user or "standup" in lower_user:
            tasks.append(
                {"title": "Team meeting", "startTime": "09:00", "duration": 60, "priority": "high"}
            )
        if "call" in lower_user or "mom" in lower_user:
            tasks.append(
                {"title": "Call mom", "startTime": "18:30", "duration": 15, "priority": "medium"}
            )
        if "gym" in lower_user or "run" in lower_user:
            tasks.append(
                {"title": "Go for a run", "startTime": "07:00", "duration": 30, "priority": "low"}
            )

        if not tasks:
            tasks.append(
                {"title": user.strip()[:60] or "Task from text", "startTime": "12:00", "duration": 30, "priority": "medium"}
            )

        return json.dumps({"tasks": tasks})
