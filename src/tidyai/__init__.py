"""Tidy AI - safe, reviewable, reversible folder organization.

Pipeline: MANIFEST -> PLAN -> EXECUTE (-> UNDO). Each stage produces a
serializable artifact that can be reviewed before the next stage runs.
"""

from .artifacts import ArtifactStore
from .config import Settings, UserPreferences, load_preferences
from .executor import Executor, write_execution_log
from .manifest_builder import ManifestBuilder
from .models import (ExecutionReport, Manifest, Plan, Rollback,
                     ScanOptions)
from .plan_builder import PlanBuilder
from .project_detector import detect_project_root, find_project_roots
from .version import __version__

__all__ = [
    "ArtifactStore",
    "ExecutionReport",
    "Executor",
    "Manifest",
    "ManifestBuilder",
    "Plan",
    "PlanBuilder",
    "Rollback",
    "ScanOptions",
    "Settings",
    "UserPreferences",
    "__version__",
    "detect_project_root",
    "find_project_roots",
    "load_preferences",
    "write_execution_log",
]
