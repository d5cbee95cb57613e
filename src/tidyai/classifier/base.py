"""Classifier abstractions

A classifier is an external, untrusted capability: given a filename and
optional document context, it proposes a category, subject, title and a
confidence. The manifest builder only ever talks to the ``Classifier``
protocol and never branches on which provider sits behind it.

Implementations:
- OllamaClassifier (local models over HTTP)
- OpenAIClassifier (cloud models via the openai SDK)
"""

import json
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, TypeVar

from ..exceptions import ClassificationError
from ..models import DocumentMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_CATEGORY = "Unknown"
# Confidence assigned when a response is unusable
FALLBACK_CONFIDENCE = 0.3

CATEGORIES = [
    "Work Documents",
    "Personal Documents",
    "School",
    "Chemistry Notes",
    "Physics Notes",
    "Math Notes",
    "Biology Notes",
    "Tax Documents",
    "Invoices & Receipts",
    "Contracts",
    "Career",
    "Images",
    "Videos",
    "Audio",
    "Archives",
    "Code",
    "Unknown",
]

SYSTEM_PROMPT = (
    "You are a file classification assistant. "
    "Respond only with valid JSON matching the requested schema."
)


@dataclass
class ClassificationRequest:
    """What the classifier is told about a file"""
    filename: str
    extension: str
    size: int
    metadata: Optional[DocumentMetadata] = None
    folder_context: Optional[str] = None


@dataclass
class ClassificationResponse:
    """Validated classifier answer"""
    category: str
    confidence: float
    reasoning: str
    subject: Optional[str] = None
    title: Optional[str] = None


@dataclass
class ConnectionStatus:
    """Result of a provider health check"""
    ok: bool
    provider: str
    version: Optional[str] = None
    error: Optional[str] = None
    models: List[str] = field(default_factory=list)


class Classifier(Protocol):
    """Protocol for classifier implementations"""

    provider: str

    def classify(self, request: ClassificationRequest) -> ClassificationResponse:
        """Classify a single file

        Args:
            request: Filename, size and optional metadata/folder context

        Returns:
            ClassificationResponse with confidence already clamped to [0, 1]

        Raises:
            ClassificationError: If the provider cannot answer after retries
        """
        ...

    def check_connection(self) -> ConnectionStatus:
        """Check that the provider is reachable"""
        ...


def _clean_str(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def sanitize_response(raw, request: ClassificationRequest) -> ClassificationResponse:
    """Validate and clamp an untrusted classifier payload.

    Accepts a dict or a JSON string. Anything malformed degrades to a
    low-confidence ``Unknown`` result; this function never raises.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            raw = None

    if not isinstance(raw, dict):
        return ClassificationResponse(
            category=UNKNOWN_CATEGORY,
            confidence=FALLBACK_CONFIDENCE,
            reasoning="Malformed classifier response",
            title=request.filename,
        )

    category = _clean_str(raw.get("category"))
    try:
        confidence = float(raw.get("confidence"))
    except (TypeError, ValueError):
        confidence = None

    if category is None or confidence is None or confidence != confidence:  # NaN
        return ClassificationResponse(
            category=UNKNOWN_CATEGORY,
            confidence=FALLBACK_CONFIDENCE,
            reasoning=_clean_str(raw.get("reasoning")) or "Incomplete classifier response",
            subject=_clean_str(raw.get("subject")),
            title=_clean_str(raw.get("title")) or request.filename,
        )

    return ClassificationResponse(
        category=category,
        confidence=max(0.0, min(1.0, confidence)),
        reasoning=_clean_str(raw.get("reasoning")) or "AI classification",
        subject=_clean_str(raw.get("subject")),
        title=_clean_str(raw.get("title")),
    )


def validate_classification(response, provider: str) -> ClassificationResponse:
    """Check an answer from any ``Classifier`` before the core relies on it.

    Provider clients already sanitize their payloads, but the protocol is
    open to other implementations, so the manifest builder re-checks every
    answer. Confidence is clamped to [0, 1].

    Raises:
        ClassificationError: If the category is missing or the confidence is
            not a finite number
    """
    category = _clean_str(getattr(response, "category", None))
    confidence = getattr(response, "confidence", None)
    if (
        category is None
        or isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not math.isfinite(confidence)
    ):
        raise ClassificationError(
            f"Malformed classifier response: category={category!r}, confidence={confidence!r}",
            provider=provider,
        )

    reasoning = _clean_str(getattr(response, "reasoning", None)) or "AI classification"
    return ClassificationResponse(
        category=category,
        confidence=max(0.0, min(1.0, float(confidence))),
        reasoning=reasoning,
        subject=_clean_str(getattr(response, "subject", None)),
        title=_clean_str(getattr(response, "title", None)),
    )


def build_classification_prompt(request: ClassificationRequest) -> str:
    """Build the user prompt for a classification request"""
    metadata = request.metadata
    lines = [
        "Classify this file and return ONLY valid JSON with no additional text.",
        "",
        f"FILE: {request.filename}",
    ]
    if metadata:
        if metadata.title:
            lines.append(f"TITLE: {metadata.title}")
        if metadata.author:
            lines.append(f"AUTHOR: {metadata.author}")
        if metadata.subject:
            lines.append(f"SUBJECT: {metadata.subject}")
        if metadata.keywords:
            lines.append(f"KEYWORDS: {', '.join(metadata.keywords)}")
    if request.folder_context:
        lines.append(f"FOLDER PATH: {request.folder_context}")
    if metadata and metadata.first_page_snippet:
        lines.append("")
        lines.append("CONTENT PREVIEW:")
        lines.append(metadata.first_page_snippet[:500])

    lines.extend([
        "",
        "Return JSON in this exact format:",
        "{",
        f'  "category": "one of: {"|".join(CATEGORIES)}",',
        '  "subject": "specific topic or subject (e.g., \'Organic Chemistry\', \'Tax Year 2025\')",',
        '  "title": "clean human-readable title",',
        '  "confidence": 0.0-1.0,',
        '  "reasoning": "brief explanation of classification"',
        "}",
    ])
    return "\n".join(lines)


def call_with_retries(
    operation: Callable[[], T],
    provider: str,
    retries: int,
    backoff_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` with bounded retries and exponential backoff.

    Waits ``backoff_seconds * 2 ** attempt`` between attempts.

    Raises:
        ClassificationError: When all ``retries + 1`` attempts failed
    """
    last_error: Optional[Exception] = None

    for attempt in range(retries + 1):
        try:
            return operation()
        except Exception as e:
            last_error = e
            logger.warning(
                f"[CLASSIFY] {provider} request failed (attempt {attempt + 1}/{retries + 1}): "
                f"{type(e).__name__}: {e}"
            )
            if attempt < retries:
                wait_time = backoff_seconds * (2 ** attempt)
                sleep(wait_time)

    raise ClassificationError(
        f"{provider} classification failed after {retries + 1} attempts: {last_error}",
        provider=provider,
        attempts=retries + 1,
    ) from last_error
