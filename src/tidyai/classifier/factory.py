"""Select a classifier implementation from settings."""

import logging
from typing import Optional

from ..config import Settings
from .base import Classifier
from .ollama_client import OllamaClassifier
from .openai_client import OpenAIClassifier

logger = logging.getLogger(__name__)


def create_classifier(settings: Settings) -> Optional[Classifier]:
    """Build the classifier configured by ``settings.ai_provider``.

    Returns:
        A classifier, or None when AI classification is disabled
        (``ai_provider == "none"``, or OpenAI without an API key)
    """
    if settings.ai_provider == "ollama":
        return OllamaClassifier(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout=settings.classifier_timeout_seconds,
            retries=settings.classifier_retries,
            backoff_seconds=settings.classifier_backoff_seconds,
        )

    if settings.ai_provider == "openai":
        if not settings.openai_api_key:
            logger.warning("[CLASSIFY] OpenAI selected but no API key configured, AI disabled")
            return None
        return OpenAIClassifier(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.classifier_timeout_seconds,
            retries=settings.classifier_retries,
            backoff_seconds=settings.classifier_backoff_seconds,
        )

    return None
