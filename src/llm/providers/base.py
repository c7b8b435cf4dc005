from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional


class LLMProvider(ABC):
    @abstractmethod
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
        Must return the model output as TEXT (we'll parse/validate JSON in the extractor).

        When ``function_schema`` is given the provider forces a call to that
        function and returns its JSON arguments instead of the message content.
        """
        raise NotImplementedError
