"""Configuration for Tidy AI.

Two layers:
- ``Settings``: process-level settings (AI provider, classifier timeouts,
  data directory) read from ``TIDYAI_*`` environment variables or ``.env``.
- ``UserPreferences``: per-plan preferences (taxonomy, naming, thresholds)
  loaded from a YAML file with fallback to defaults.

Neither is a module-level singleton. Callers build them once and pass them
into ``ManifestBuilder`` / ``PlanBuilder`` explicitly.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TIDYAI_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # AI provider: "ollama" (local), "openai" (cloud) or "none"
    ai_provider: Literal["ollama", "openai", "none"] = "ollama"

    ollama_base_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.1"

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None

    # Classifier call budget
    classifier_timeout_seconds: float = 60.0
    classifier_retries: int = 2
    classifier_backoff_seconds: float = 1.0
    classifier_workers: int = 1

    # Where manifests, plans, rollbacks and reports are written
    data_dir: str = str(Path.home() / ".local" / "share" / "tidyai")

    max_depth: int = 10


class TaxonomyRule(BaseModel):
    """Keyword/regex rule mapping a document to a category."""

    pattern: str
    category: str
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    source: Literal["user", "learned", "default"] = "default"


class NamingPreference(BaseModel):
    """How destination filenames are rewritten."""

    style: Literal["original", "titlecase", "lowercase", "camelcase"] = "original"
    remove_special_chars: bool = False
    date_format: Literal["YYYY-MM-DD", "YYYYMMDD", "none"] = "none"


class ConfidenceThresholds(BaseModel):
    """Routing thresholds: auto-approve at or above, review below."""

    auto_approve: float = Field(default=0.8, ge=0.0, le=1.0)
    require_review: float = Field(default=0.5, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self) -> "ConfidenceThresholds":
        if self.require_review > self.auto_approve:
            raise ValueError("require_review must not exceed auto_approve")
        return self


def _default_taxonomy() -> List[TaxonomyRule]:
    return [
        TaxonomyRule(pattern="chemistry|chem|chemical", category="Chemistry Notes"),
        TaxonomyRule(pattern="physics|phys", category="Physics Notes"),
        TaxonomyRule(pattern="math|calculus|algebra", category="Math Notes"),
        TaxonomyRule(pattern="biology|bio", category="Biology Notes"),
        TaxonomyRule(pattern="tax|taxes|irs|1040", category="Tax Documents", confidence=0.95),
        TaxonomyRule(pattern="invoice|receipt|bill", category="Invoices & Receipts"),
        TaxonomyRule(pattern="contract|agreement", category="Contracts"),
        TaxonomyRule(pattern="resume|cv|curriculum", category="Career"),
    ]


def _default_folders() -> Dict[str, str]:
    return {
        "Documents": "Documents",
        "Images": "Images",
        "Videos": "Videos",
        "Audio": "Audio",
        "Archives": "Archives",
        "Code": "Code",
        "Projects": "Projects",
        "Unknown": "Inbox",
    }


def _default_ignore_patterns() -> List[str]:
    return [
        "*.tmp",
        "*.temp",
        ".DS_Store",
        "Thumbs.db",
        "desktop.ini",
    ]


class UserPreferences(BaseModel):
    """User preferences echoed into every plan."""

    taxonomy: List[TaxonomyRule] = Field(default_factory=_default_taxonomy)
    default_folders: Dict[str, str] = Field(default_factory=_default_folders)
    naming: NamingPreference = Field(default_factory=NamingPreference)
    ignore_patterns: List[str] = Field(default_factory=_default_ignore_patterns)
    confidence_thresholds: ConfidenceThresholds = Field(default_factory=ConfidenceThresholds)

    @property
    def auto_approve_threshold(self) -> float:
        return self.confidence_thresholds.auto_approve

    @property
    def review_threshold(self) -> float:
        return self.confidence_thresholds.require_review

    def folder_for(self, category: str) -> str:
        """Map a category to its destination folder name."""
        return self.default_folders.get(category, category)


def load_preferences(path: Optional[Path] = None) -> UserPreferences:
    """Load user preferences from a YAML file.

    Falls back to defaults if the file is not given or does not exist.
    Keys present in the file override the defaults; absent keys keep them.

    Raises:
        ConfigurationError: If the file exists but is malformed or invalid
    """
    if path is None:
        return UserPreferences()

    path = Path(path)
    if not path.exists():
        logger.warning(f"Preferences file {path} not found, using defaults")
        return UserPreferences()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed preferences file: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigurationError("Preferences file must contain a mapping", path=str(path))

    try:
        return UserPreferences(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid preferences: {e}", path=str(path)) from e


def save_preferences(preferences: UserPreferences, path: Path) -> None:
    """Write preferences as YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(preferences.model_dump(), f, default_flow_style=False, sort_keys=False)
