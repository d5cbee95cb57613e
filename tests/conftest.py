"""Pytest configuration and fixtures for Tidy AI tests"""

import logging
import os
import sys
from pathlib import Path

import pytest

# Ensure src directory is in Python path before any imports
project_root = Path(__file__).resolve().parent.parent
src_path = project_root / "src"

if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from tidyai.config import Settings, UserPreferences
from tidyai.models import ScanOptions


def make_tree(root: Path, layout: dict) -> Path:
    """Create files and directories from a nested dict.

    Values are file contents (str), nested dicts (directories) or None
    (empty directory).
    """
    root.mkdir(parents=True, exist_ok=True)
    for name, content in layout.items():
        path = root / name
        if isinstance(content, dict):
            make_tree(path, content)
        elif content is None:
            path.mkdir(parents=True, exist_ok=True)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
    return root


def snapshot(root: Path) -> set:
    """Every file and directory under root, as posix relative paths."""
    return {Path(dirpath, name).relative_to(root).as_posix()
            for dirpath, dirnames, filenames in os.walk(root)
            for name in dirnames + filenames}


@pytest.fixture(autouse=True)
def reset_tidyai_logger():
    """Detach handlers the CLI attaches to the package logger"""
    yield
    logger = logging.getLogger("tidyai")
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def tree():
    """The make_tree helper"""
    return make_tree


@pytest.fixture
def tree_snapshot():
    """The snapshot helper"""
    return snapshot


@pytest.fixture
def settings(tmp_path):
    """Settings with AI disabled and artifacts under tmp_path"""
    return Settings(ai_provider="none", data_dir=str(tmp_path / "data"))


@pytest.fixture
def preferences():
    """Default user preferences"""
    return UserPreferences()


@pytest.fixture
def messy_dir(tmp_path):
    """A Downloads-like folder with a project, generated output and loose files"""
    return make_tree(tmp_path / "Downloads", {
        "my-app": {
            ".git": {"HEAD": "ref: refs/heads/main\n"},
            "package.json": "{}",
            "src": {"index.js": "console.log('hi')"},
        },
        "node_modules": {"left-pad": {"index.js": ""}},
        "holiday.jpg": "jpeg",
        "song.mp3": "mp3",
        "backup.zip": "zip",
        "script.py": "print('x')",
        "mystery.xyz": "???",
        "notes.txt": "some notes",
        ".DS_Store": "",
        "old": {"report.tmp": "tmp", "Chemistry - Lab Report.pdf": "not a real pdf"},
    })


@pytest.fixture
def scan_options(messy_dir, preferences):
    """Scan options for messy_dir with default ignore patterns"""
    return ScanOptions(
        root_path=str(messy_dir),
        ignore_patterns=list(preferences.ignore_patterns),
        review_threshold=preferences.review_threshold,
    )
