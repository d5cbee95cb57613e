"""Ollama-based classifier (local models over HTTP)."""

import logging
from typing import List, Optional

import requests

from .base import (SYSTEM_PROMPT, ClassificationRequest,
                   ClassificationResponse, ConnectionStatus,
                   build_classification_prompt, call_with_retries,
                   sanitize_response)

logger = logging.getLogger(__name__)


class OllamaClassifier:
    """Classifier implementation using a local Ollama server.

    Uses ``/api/chat`` with ``format: json`` so the model is constrained to
    emit a JSON object.
    """

    provider = "ollama"

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:11434",
        model: str = "llama3.1",
        timeout: float = 60.0,
        retries: int = 2,
        backoff_seconds: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Ollama server URL
            model: Model name to classify with
            timeout: Per-request timeout in seconds
            retries: Extra attempts after the first failure
            backoff_seconds: Base delay for exponential backoff
            session: Optional requests session (tests inject a fake)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()

    def _chat(self, prompt: str) -> str:
        response = self.session.post(
            f"{self.base_url}/api/chat",
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "stream": False,
                "format": "json",
                "options": {"temperature": 0.3, "top_p": 0.9},
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        content = (response.json().get("message") or {}).get("content")
        if not content:
            raise ValueError("No content in Ollama response")
        return content

    def classify(self, request: ClassificationRequest) -> ClassificationResponse:
        prompt = build_classification_prompt(request)
        content = call_with_retries(
            lambda: self._chat(prompt),
            provider=self.provider,
            retries=self.retries,
            backoff_seconds=self.backoff_seconds,
        )
        return sanitize_response(content, request)

    def check_connection(self) -> ConnectionStatus:
        try:
            response = self.session.get(f"{self.base_url}/api/version", timeout=5)
            if not response.ok:
                return ConnectionStatus(
                    ok=False,
                    provider=self.provider,
                    error=f"Ollama responded with status {response.status_code}",
                )
            version = response.json().get("version")
        except requests.exceptions.Timeout:
            return ConnectionStatus(
                ok=False,
                provider=self.provider,
                error="Connection timeout - Ollama may not be running",
            )
        except requests.exceptions.RequestException as e:
            return ConnectionStatus(ok=False, provider=self.provider, error=str(e))

        return ConnectionStatus(
            ok=True, provider=self.provider, version=version, models=self.list_models()
        )

    def list_models(self) -> List[str]:
        """List models installed on the Ollama server (empty on error)."""
        try:
            response = self.session.get(f"{self.base_url}/api/tags", timeout=10)
            response.raise_for_status()
            return [m.get("name") for m in response.json().get("models", []) if m.get("name")]
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"[CLASSIFY] Failed to list Ollama models: {e}")
            return []
