"""External document classifiers (Ollama, OpenAI) behind one protocol."""

from .base import (Classifier, ClassificationRequest, ClassificationResponse,
                   ConnectionStatus, sanitize_response,
                   validate_classification)
from .factory import create_classifier
from .ollama_client import OllamaClassifier
from .openai_client import OpenAIClassifier

__all__ = [
    "Classifier",
    "ClassificationRequest",
    "ClassificationResponse",
    "ConnectionStatus",
    "OllamaClassifier",
    "OpenAIClassifier",
    "create_classifier",
    "sanitize_response",
    "validate_classification",
]
