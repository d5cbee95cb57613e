"""
Project Root Detection

Detects programming project roots using deterministic marker-file heuristics.
Files inside a project root are never moved individually; the root is an
atomic, unsplittable unit.

Key Features:
- Reads only the immediate children of a directory (cheap)
- 0 LLM calls (fully deterministic)
- Stops descending the instant a project root is found
- Never enters generated/build-output folders
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from .models import ProjectRootDetection, ProjectType

logger = logging.getLogger(__name__)


PROJECT_ROOT_SIGNALS = [
    # Version control
    ".git",
    ".svn",
    ".hg",
    # Node.js / JavaScript
    "package.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "package-lock.json",
    "tsconfig.json",
    "next.config.js",
    "next.config.mjs",
    "vite.config.js",
    "webpack.config.js",
    # Python
    "pyproject.toml",
    "requirements.txt",
    "Pipfile",
    "setup.py",
    "poetry.lock",
    # Rust
    "Cargo.toml",
    "Cargo.lock",
    # Go
    "go.mod",
    "go.sum",
    # Java
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    # .NET
    ".sln",
    ".csproj",
    # Ruby
    "Gemfile",
    "Gemfile.lock",
    # PHP
    "composer.json",
    "composer.lock",
]

GENERATED_FOLDERS = frozenset({
    "node_modules",
    ".next",
    "dist",
    "build",
    "target",
    "__pycache__",
    ".venv",
    "venv",
    ".pytest_cache",
    ".gradle",
    "out",
})

STRONG_SIGNALS = frozenset({
    ".git",
    "package.json",
    "Cargo.toml",
    "go.mod",
    "pom.xml",
    "pyproject.toml",
})

# The version-control marker stays visible even when hidden entries are skipped
VCS_MARKER = ".git"

VCS_FOLDERS = frozenset({".git", ".svn", ".hg"})

SYSTEM_FOLDERS = frozenset({"Library", "System"})

# Ordered by priority: first family with a match wins
_TYPE_PRIORITY = [
    (ProjectType.NODE, {"package.json"}),
    (ProjectType.PYTHON, {"pyproject.toml", "requirements.txt", "Pipfile", "setup.py"}),
    (ProjectType.RUST, {"Cargo.toml"}),
    (ProjectType.GO, {"go.mod"}),
    (ProjectType.JAVA, {"pom.xml", "build.gradle", "build.gradle.kts"}),
    (ProjectType.DOTNET, {".sln", ".csproj"}),
    (ProjectType.RUBY, {"Gemfile"}),
    (ProjectType.PHP, {"composer.json"}),
]


def detect_project_root(dir_path: Path) -> ProjectRootDetection:
    """Check whether a directory is a project root.

    Args:
        dir_path: Directory to inspect

    Returns:
        ProjectRootDetection. Unreadable directories are reported as
        "not a project root" rather than raising.
    """
    try:
        child_names = set(os.listdir(dir_path))
    except OSError as e:
        logger.debug(f"[DETECT] Cannot read {dir_path}: {e}")
        return ProjectRootDetection(is_project_root=False)

    signals = [s for s in PROJECT_ROOT_SIGNALS if s in child_names]
    if not signals:
        return ProjectRootDetection(is_project_root=False)

    project_type = infer_project_type(signals)
    return ProjectRootDetection(
        is_project_root=True,
        signals=signals,
        project_type=project_type,
        confidence=calculate_project_confidence(signals, project_type),
    )


def infer_project_type(signals) -> ProjectType:
    """Infer the ecosystem from matched signals, by priority order."""
    signal_set = set(signals)
    for project_type, markers in _TYPE_PRIORITY:
        if signal_set & markers:
            return project_type
    # Lockfile-only or version-control-only directories
    return ProjectType.MIXED


def calculate_project_confidence(signals, project_type: Optional[ProjectType]) -> float:
    """Confidence grows with signal count, strong signals and a definite type."""
    confidence = min(0.5 + len(signals) * 0.1, 1.0)

    if any(s in STRONG_SIGNALS for s in signals):
        confidence = min(confidence + 0.2, 1.0)

    if project_type and project_type != ProjectType.MIXED:
        confidence = min(confidence + 0.1, 1.0)

    return round(confidence, 2)


def is_generated_folder(dir_name: str) -> bool:
    """Check if a directory name is build/dependency output."""
    return dir_name in GENERATED_FOLDERS


def should_descend(dir_name: str, include_hidden: bool = False) -> bool:
    """Whether a directory walk may enter ``dir_name``.

    Shared by the project-root walk and the manifest walk, so a directory
    the manifest lists files from has always been checked for projects.
    Version-control metadata is only ever read from its parent.
    """
    if dir_name in VCS_FOLDERS:
        return False
    if dir_name.startswith(".") and not include_hidden:
        return False
    if is_generated_folder(dir_name) or dir_name in SYSTEM_FOLDERS:
        return False
    return True


def find_project_roots(
    root_path: Path, max_depth: int = 10, include_hidden: bool = False
) -> Dict[str, ProjectRootDetection]:
    """Find all project roots in a directory tree.

    Depth-first, iterative (explicit stack). A detected project root is
    recorded and never descended into. Symlinked directories are followed
    at most once per real path.

    Args:
        root_path: Directory to start from
        max_depth: Maximum depth below ``root_path`` to inspect
        include_hidden: Also enter hidden directories (never ``.git``)

    Returns:
        Map of project root real path (str) to its detection, in discovery order
    """
    project_roots: Dict[str, ProjectRootDetection] = {}
    visited = set()
    stack = [(Path(root_path), 0)]

    while stack:
        current, depth = stack.pop()
        if depth > max_depth:
            continue

        try:
            real = os.path.realpath(current)
        except OSError:
            continue
        if real in visited:
            logger.debug(f"[DETECT] Skipping already visited {current} (symlink cycle?)")
            continue
        visited.add(real)

        detection = detect_project_root(current)
        if detection.is_project_root:
            # Keyed by real path so a symlinked alias cannot hide the directory itself
            project_roots[real] = detection
            continue

        try:
            with os.scandir(current) as it:
                children = sorted(
                    (e for e in it if e.is_dir() and should_descend(e.name, include_hidden)),
                    key=lambda e: e.name,
                )
        except OSError as e:
            # Permission denied or vanished, skip this directory
            logger.debug(f"[DETECT] Skipping unreadable {current}: {e}")
            continue

        # Reversed so the stack pops children in name order
        for child in reversed(children):
            stack.append((Path(child.path), depth + 1))

    return project_roots


def _resolve_parent(path: str) -> str:
    # Resolve symlinks in the parent directories but not in the final component,
    # so a symlink that points into a project is not mistaken for project content
    return os.path.join(os.path.realpath(os.path.dirname(path)), os.path.basename(path))


def find_containing_project_root(
    path: str, project_roots: Dict[str, ProjectRootDetection]
) -> Optional[str]:
    """Return the project root containing ``path`` (or equal to it), if any.

    Both sides are compared by real path, whichever spelling the keys use.
    """
    resolved = _resolve_parent(path)
    for root in project_roots:
        real_root = os.path.realpath(root)
        if resolved == real_root or resolved.startswith(real_root + os.sep):
            return root
    return None


def validate_no_project_root_violations(
    source_path: str,
    dest_path: str,
    project_roots: Dict[str, ProjectRootDetection],
) -> Tuple[bool, Optional[str]]:
    """Ensure a move neither splits nor invades a project root.

    Returns:
        (valid, error) where error is a human-readable reason when invalid
    """
    source_root = find_containing_project_root(source_path, project_roots)
    if source_root is not None and _resolve_parent(source_path) != os.path.realpath(source_root):
        return (
            False,
            f"Cannot move {source_path} from inside project root {source_root}. "
            f"Move the entire project instead.",
        )

    dest_root = find_containing_project_root(dest_path, project_roots)
    if dest_root is not None:
        return False, f"Cannot move {source_path} into project root {dest_root}."

    return True, None


def describe_project(detection: ProjectRootDetection) -> str:
    """Human-readable one-liner for a detection."""
    if not detection.is_project_root:
        return "Not a project"

    kind = f" ({detection.project_type.value})" if detection.project_type else ""
    shown = ", ".join(detection.signals[:3])
    more = "..." if len(detection.signals) > 3 else ""
    return f"Project{kind}: {shown}{more}"
