"""Pipeline artifact models.

Defines the data structures passed between stages:
MANIFEST -> PLAN -> EXECUTE (-> UNDO).

Every artifact is a plain dataclass with ``to_dict``/``from_dict`` so it can
be persisted as JSON and resumed without re-running earlier stages.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

# Bumped whenever the on-disk layout of an artifact changes.
SCHEMA_VERSION = "1.0"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class ProjectType(str, Enum):
    """Ecosystem inferred for a project root."""

    NODE = "node"
    PYTHON = "python"
    RUST = "rust"
    GO = "go"
    JAVA = "java"
    DOTNET = "dotnet"
    RUBY = "ruby"
    PHP = "php"
    MIXED = "mixed"


class EntryKind(str, Enum):
    """Classification of a manifest entry."""

    PROJECT_ROOT = "ProjectRoot"
    DOCUMENT = "Document"
    MEDIA = "Media"
    ARCHIVE = "Archive"
    CODE = "Code"
    GENERATED = "Generated"
    UNKNOWN = "Unknown"


class Handling(str, Enum):
    """Recommended handling for a manifest entry."""

    KEEP = "keep"  # Leave in place (project roots, generated folders)
    GROUP = "group"  # Group with similar items
    REVIEW = "review"  # Route to review/inbox (low confidence)


class ActionType(str, Enum):
    """Kind of filesystem operation a plan action performs."""

    MOVE = "move"
    RENAME = "rename"
    MOVE_RENAME = "move-rename"
    SKIP = "skip"


class ExecutionStatus(str, Enum):
    """Outcome of a single executed (or undone) action."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# ============================================================================
# PHASE 0: PROJECT ROOT DETECTION
# ============================================================================


@dataclass
class ProjectRootDetection:
    """Result of inspecting one directory for project markers."""

    is_project_root: bool
    signals: list[str] = field(default_factory=list)
    project_type: Optional[ProjectType] = None
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "is_project_root": self.is_project_root,
            "signals": list(self.signals),
            "project_type": self.project_type.value if self.project_type else None,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectRootDetection":
        return cls(
            is_project_root=data["is_project_root"],
            signals=data.get("signals", []),
            project_type=ProjectType(data["project_type"]) if data.get("project_type") else None,
            confidence=data.get("confidence", 0.0),
        )


# ============================================================================
# PHASE 1: MANIFEST
# ============================================================================


@dataclass
class DocumentMetadata:
    """Best-effort document metadata. Every field is optional."""

    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    keywords: list[str] = field(default_factory=list)
    creation_date: Optional[str] = None
    modification_date: Optional[str] = None
    page_count: Optional[int] = None
    first_page_snippet: Optional[str] = None
    extraction_method: str = "none"  # pdf | filename | none

    def merge(self, other: "DocumentMetadata") -> "DocumentMetadata":
        """Return a copy with empty fields filled from ``other``."""
        return DocumentMetadata(
            title=self.title or other.title,
            author=self.author or other.author,
            subject=self.subject or other.subject,
            keywords=self.keywords or list(other.keywords),
            creation_date=self.creation_date or other.creation_date,
            modification_date=self.modification_date or other.modification_date,
            page_count=self.page_count if self.page_count is not None else other.page_count,
            first_page_snippet=self.first_page_snippet or other.first_page_snippet,
            extraction_method=(
                self.extraction_method if self.extraction_method != "none" else other.extraction_method
            ),
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "author": self.author,
            "subject": self.subject,
            "keywords": list(self.keywords),
            "creation_date": self.creation_date,
            "modification_date": self.modification_date,
            "page_count": self.page_count,
            "first_page_snippet": self.first_page_snippet,
            "extraction_method": self.extraction_method,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentMetadata":
        return cls(
            title=data.get("title"),
            author=data.get("author"),
            subject=data.get("subject"),
            keywords=data.get("keywords") or [],
            creation_date=data.get("creation_date"),
            modification_date=data.get("modification_date"),
            page_count=data.get("page_count"),
            first_page_snippet=data.get("first_page_snippet"),
            extraction_method=data.get("extraction_method", "none"),
        )


@dataclass
class ScanOptions:
    """Options for one manifest scan."""

    root_path: str
    ignore_patterns: list[str] = field(default_factory=list)
    include_hidden: bool = False
    max_depth: int = 10
    use_ai: bool = False
    extract_metadata: bool = True
    review_threshold: float = 0.5
    classifier_workers: int = 1

    def to_dict(self) -> dict:
        return {
            "root_path": self.root_path,
            "ignore_patterns": list(self.ignore_patterns),
            "include_hidden": self.include_hidden,
            "max_depth": self.max_depth,
            "use_ai": self.use_ai,
            "extract_metadata": self.extract_metadata,
            "review_threshold": self.review_threshold,
            "classifier_workers": self.classifier_workers,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScanOptions":
        return cls(
            root_path=data["root_path"],
            ignore_patterns=data.get("ignore_patterns", []),
            include_hidden=data.get("include_hidden", False),
            max_depth=data.get("max_depth", 10),
            use_ai=data.get("use_ai", False),
            extract_metadata=data.get("extract_metadata", True),
            review_threshold=data.get("review_threshold", 0.5),
            classifier_workers=data.get("classifier_workers", 1),
        )


@dataclass
class ManifestEntry:
    """One classified item (file, project root or generated folder)."""

    path: str
    relative_path: str
    name: str
    extension: str
    size: int
    modified_at: str

    kind: EntryKind = EntryKind.UNKNOWN
    confidence: float = 0.5
    signals: list[str] = field(default_factory=list)

    metadata: Optional[DocumentMetadata] = None

    project_root: Optional[ProjectRootDetection] = None
    inside_project_root: bool = False
    parent_project_root: Optional[str] = None

    recommended_handling: Handling = Handling.REVIEW
    suggested_category: Optional[str] = None
    suggested_tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "relative_path": self.relative_path,
            "name": self.name,
            "extension": self.extension,
            "size": self.size,
            "modified_at": self.modified_at,
            "kind": self.kind.value,
            "confidence": self.confidence,
            "signals": list(self.signals),
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "project_root": self.project_root.to_dict() if self.project_root else None,
            "inside_project_root": self.inside_project_root,
            "parent_project_root": self.parent_project_root,
            "recommended_handling": self.recommended_handling.value,
            "suggested_category": self.suggested_category,
            "suggested_tags": list(self.suggested_tags),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ManifestEntry":
        return cls(
            path=data["path"],
            relative_path=data["relative_path"],
            name=data["name"],
            extension=data.get("extension", ""),
            size=data.get("size", 0),
            modified_at=data.get("modified_at", ""),
            kind=EntryKind(data.get("kind", "Unknown")),
            confidence=data.get("confidence", 0.5),
            signals=data.get("signals", []),
            metadata=DocumentMetadata.from_dict(data["metadata"]) if data.get("metadata") else None,
            project_root=(
                ProjectRootDetection.from_dict(data["project_root"])
                if data.get("project_root")
                else None
            ),
            inside_project_root=data.get("inside_project_root", False),
            parent_project_root=data.get("parent_project_root"),
            recommended_handling=Handling(data.get("recommended_handling", "review")),
            suggested_category=data.get("suggested_category"),
            suggested_tags=data.get("suggested_tags", []),
        )


@dataclass
class ManifestSummary:
    """Aggregate counters for a manifest."""

    total_items: int = 0
    project_roots: int = 0
    documents: int = 0
    media: int = 0
    archives: int = 0
    code: int = 0
    generated: int = 0
    unknown: int = 0

    high_confidence: int = 0  # >= 0.8
    medium_confidence: int = 0  # 0.5 - 0.8
    low_confidence: int = 0  # < 0.5

    def to_dict(self) -> dict:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: dict) -> "ManifestSummary":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Manifest:
    """Classified inventory of a scanned tree."""

    id: str
    scan_root: str
    created_at: str
    scan_options: ScanOptions
    entries: list[ManifestEntry]
    summary: ManifestSummary
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> dict:
        return {
            "schema_version": self.schema_version,
            "id": self.id,
            "scan_root": self.scan_root,
            "created_at": self.created_at,
            "scan_options": self.scan_options.to_dict(),
            "entries": [e.to_dict() for e in self.entries],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Manifest":
        return cls(
            id=data["id"],
            scan_root=data["scan_root"],
            created_at=data["created_at"],
            scan_options=ScanOptions.from_dict(data["scan_options"]),
            entries=[ManifestEntry.from_dict(e) for e in data.get("entries", [])],
            summary=ManifestSummary.from_dict(data.get("summary", {})),
            schema_version=data.get("schema_version", SCHEMA_VERSION),
        )


# ============================================================================
# PHASE 2: PLAN
# ============================================================================


@dataclass
class PlanAction:
    """One proposed filesystem operation."""

    id: str
    source: str
    source_relative: str
    destination: str
    destination_relative: str
    action_type: ActionType
    reason: str
    confidence: float

    category: Optional[str] = None
    tags: list[str] = field(default_factory=list)

    is_project_root: bool = False
    moves_inside_project_root: bool = False
    has_collision: bool = False
    collision_resolution: Optional[str] = None  # "suffix"

    approved: bool = False

    @property
    def is_skip(self) -> bool:
        return self.action_type == ActionType.SKIP

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "source_relative": self.source_relative,
            "destination": self.destination,
            "destination_relative": self.destination_relative,
            "action_type": self.action_type.value,
            "reason": self.reason,
            "confidence": self.confidence,
            "category": self.category,
            "tags": list(self.tags),
            "is_project_root": self.is_project_root,
            "moves_inside_project_root": self.moves_inside_project_root,
            "has_collision": self.has_collision,
            "collision_resolution": self.collision_resolution,
            "approved": self.approved,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlanAction":
        return cls(
            id=data["id"],
            source=data["source"],
            source_relative=data.get("source_relative", ""),
            destination=data["destination"],
            destination_relative=data.get("destination_relative", ""),
            action_type=ActionType(data["action_type"]),
            reason=data.get("reason", ""),
            confidence=data.get("confidence", 0.0),
            category=data.get("category"),
            tags=data.get("tags") or [],
            is_project_root=data.get("is_project_root", False),
            moves_inside_project_root=data.get("moves_inside_project_root", False),
            has_collision=data.get("has_collision", False),
            collision_resolution=data.get("collision_resolution"),
            approved=data.get("approved", False),
        )


@dataclass
class SafetyCheck:
    """Safety verdict for a plan. Only project-root violations fail it."""

    passed: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    project_root_violations: int = 0
    collisions_resolved: list[str] = field(default_factory=list)
    low_confidence_actions: int = 0
    skipped_items: int = 0

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "checks": {
                "project_root_violations": self.project_root_violations,
                "collisions_resolved": list(self.collisions_resolved),
                "low_confidence_actions": self.low_confidence_actions,
                "skipped_items": self.skipped_items,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SafetyCheck":
        checks = data.get("checks", {})
        return cls(
            passed=data["passed"],
            errors=data.get("errors", []),
            warnings=data.get("warnings", []),
            project_root_violations=checks.get("project_root_violations", 0),
            collisions_resolved=checks.get("collisions_resolved", []),
            low_confidence_actions=checks.get("low_confidence_actions", 0),
            skipped_items=checks.get("skipped_items", 0),
        )


@dataclass
class PlanSummary:
    """Aggregate counters for a plan."""

    total_actions: int = 0
    moves: int = 0
    renames: int = 0
    skips: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)

    high_confidence: int = 0  # >= 0.7
    medium_confidence: int = 0  # 0.4 - 0.7
    low_confidence: int = 0  # < 0.4

    def to_dict(self) -> dict:
        data = dict(self.__dict__)
        data["category_counts"] = dict(self.category_counts)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PlanSummary":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Plan:
    """Proposed set of file operations plus its safety verdict."""

    id: str
    manifest_id: str
    created_at: str
    dest_root: str
    actions: list[PlanAction]
    safety_check: SafetyCheck
    summary: PlanSummary
    preferences: dict = field(default_factory=dict)
    schema_version: str = SCHEMA_VERSION

    def get_action(self, action_id: str) -> Optional[PlanAction]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def to_dict(self) -> dict:
        return {
            "schema_version": self.schema_version,
            "id": self.id,
            "manifest_id": self.manifest_id,
            "created_at": self.created_at,
            "dest_root": self.dest_root,
            "actions": [a.to_dict() for a in self.actions],
            "safety_check": self.safety_check.to_dict(),
            "summary": self.summary.to_dict(),
            "preferences": self.preferences,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Plan":
        return cls(
            id=data["id"],
            manifest_id=data["manifest_id"],
            created_at=data["created_at"],
            dest_root=data["dest_root"],
            actions=[PlanAction.from_dict(a) for a in data.get("actions", [])],
            safety_check=SafetyCheck.from_dict(data["safety_check"]),
            summary=PlanSummary.from_dict(data.get("summary", {})),
            preferences=data.get("preferences", {}),
            schema_version=data.get("schema_version", SCHEMA_VERSION),
        )


@dataclass
class RollbackEntry:
    """Maps a post-move location back to the original location."""

    source: str  # New location
    destination: str  # Original location
    action_id: str
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "destination": self.destination,
            "action_id": self.action_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RollbackEntry":
        return cls(
            source=data["source"],
            destination=data["destination"],
            action_id=data["action_id"],
            timestamp=data.get("timestamp", ""),
        )


@dataclass
class Rollback:
    """Reverse mapping that undoes a (partially) completed execution.

    ``created_dirs`` lists directories the forward execution created, in
    creation order, so an undo can remove the ones left empty.
    """

    plan_id: str
    created_at: str
    entries: list[RollbackEntry] = field(default_factory=list)
    created_dirs: list[str] = field(default_factory=list)
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> dict:
        return {
            "schema_version": self.schema_version,
            "plan_id": self.plan_id,
            "created_at": self.created_at,
            "entries": [e.to_dict() for e in self.entries],
            "created_dirs": list(self.created_dirs),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Rollback":
        return cls(
            plan_id=data["plan_id"],
            created_at=data.get("created_at", ""),
            entries=[RollbackEntry.from_dict(e) for e in data.get("entries", [])],
            created_dirs=data.get("created_dirs", []),
            schema_version=data.get("schema_version", SCHEMA_VERSION),
        )


# ============================================================================
# PHASE 3: EXECUTE
# ============================================================================


@dataclass
class ExecutionResult:
    """Outcome of one action."""

    action_id: str
    status: ExecutionStatus
    timestamp: str
    error: Optional[str] = None
    actual_destination: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "action_id": self.action_id,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "error": self.error,
            "actual_destination": self.actual_destination,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionResult":
        return cls(
            action_id=data["action_id"],
            status=ExecutionStatus(data["status"]),
            timestamp=data.get("timestamp", ""),
            error=data.get("error"),
            actual_destination=data.get("actual_destination"),
        )


@dataclass
class ExecutionSummary:
    """Counts of results by status."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionSummary":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class ExecutionReport:
    """Result of one executor run (forward or undo)."""

    id: str
    plan_id: str
    executed_at: str
    results: list[ExecutionResult]
    summary: ExecutionSummary
    rollback: Rollback
    dry_run: bool = False
    cancelled: bool = False
    schema_version: str = SCHEMA_VERSION

    def results_by_status(self, status: ExecutionStatus) -> list[ExecutionResult]:
        return [r for r in self.results if r.status == status]

    def to_dict(self) -> dict:
        return {
            "schema_version": self.schema_version,
            "id": self.id,
            "plan_id": self.plan_id,
            "executed_at": self.executed_at,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
            "rollback": self.rollback.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionReport":
        return cls(
            id=data["id"],
            plan_id=data["plan_id"],
            executed_at=data["executed_at"],
            results=[ExecutionResult.from_dict(r) for r in data.get("results", [])],
            summary=ExecutionSummary.from_dict(data.get("summary", {})),
            rollback=Rollback.from_dict(data["rollback"]),
            dry_run=data.get("dry_run", False),
            cancelled=data.get("cancelled", False),
            schema_version=data.get("schema_version", SCHEMA_VERSION),
        )
