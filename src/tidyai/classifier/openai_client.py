"""OpenAI-based classifier (cloud models via the openai SDK)."""

import logging
import os
from typing import List, Optional

from openai import OpenAI

from .base import (SYSTEM_PROMPT, ClassificationRequest,
                   ClassificationResponse, ConnectionStatus,
                   build_classification_prompt, call_with_retries,
                   sanitize_response)

logger = logging.getLogger(__name__)


class OpenAIClassifier:
    """Classifier implementation using the OpenAI chat completions API.

    Uses ``response_format={"type": "json_object"}`` for structured output.
    """

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        retries: int = 2,
        backoff_seconds: float = 1.0,
        client=None,
    ):
        """
        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            model: Chat model to classify with
            base_url: Optional custom endpoint
            timeout: Per-request timeout in seconds
            retries: Extra attempts after the first failure
            backoff_seconds: Base delay for exponential backoff
            client: Optional pre-built client (tests inject a fake)
        """
        self.model = model
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        # SDK-level retries are disabled; call_with_retries owns the retry budget
        self.client = client or OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def _complete(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content
        if not content:
            raise ValueError("Empty response from OpenAI")
        return content

    def classify(self, request: ClassificationRequest) -> ClassificationResponse:
        prompt = build_classification_prompt(request)
        content = call_with_retries(
            lambda: self._complete(prompt),
            provider=self.provider,
            retries=self.retries,
            backoff_seconds=self.backoff_seconds,
        )
        return sanitize_response(content, request)

    def check_connection(self) -> ConnectionStatus:
        try:
            models = self.list_models(raise_errors=True)
        except Exception as e:
            return ConnectionStatus(ok=False, provider=self.provider, error=str(e))
        return ConnectionStatus(ok=True, provider=self.provider, version="OpenAI API", models=models)

    def list_models(self, raise_errors: bool = False) -> List[str]:
        """List GPT chat models available to the API key."""
        try:
            response = self.client.models.list()
            return sorted(m.id for m in response.data if "gpt" in m.id)
        except Exception as e:
            if raise_errors:
                raise
            logger.warning(f"[CLASSIFY] Failed to list OpenAI models: {e}")
            return []
