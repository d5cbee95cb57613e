"""Tests for manifest generation.

Covers the two-pass walk (project roots first, then classification),
filtering, confidence bands and classifier fallback.
"""

import os
from pathlib import Path
from unittest.mock import Mock

import pytest

from tidyai.classifier.base import ClassificationResponse
from tidyai.exceptions import ClassificationError
from tidyai.manifest_builder import (AI_FALLBACK_SIGNAL, ManifestBuilder,
                                     compile_ignore_pattern, should_ignore)
from tidyai.models import EntryKind, Handling, Manifest, ScanOptions
from tidyai.plan_builder import PlanBuilder


def _by_path(manifest):
    return {e.relative_path: e for e in manifest.entries}


class TestIgnorePatterns:
    """Tests for glob-like ignore patterns."""

    def test_star_matches_any_sequence(self):
        """'*' spans directory separators and dots."""
        patterns = [compile_ignore_pattern("*.tmp")]
        assert should_ignore("a.tmp", patterns)
        assert should_ignore("old/deep/report.tmp", patterns)
        assert not should_ignore("report.tmp.pdf", patterns)

    def test_literal_characters_are_escaped(self):
        """Regex metacharacters in a pattern are literal."""
        patterns = [compile_ignore_pattern("file(1).txt")]
        assert should_ignore("file(1).txt", patterns)
        assert not should_ignore("file1.txt", patterns)


class TestProjectRoots:
    """Project roots and generated folders are atomic entries."""

    def test_project_root_is_single_entry(self, settings, preferences, scan_options):
        """A project directory yields one ProjectRoot entry and none of its children."""
        manifest = ManifestBuilder(settings, preferences).build(scan_options)
        entries = _by_path(manifest)

        project = entries["my-app"]
        assert project.kind == EntryKind.PROJECT_ROOT
        assert project.confidence >= 0.9
        assert project.recommended_handling == Handling.KEEP
        assert project.suggested_category == "Projects"
        assert project.suggested_tags == ["node"]
        assert project.project_root is not None
        assert not any(p.startswith("my-app/") for p in entries)

    def test_generated_folder_is_single_entry(self, settings, preferences, scan_options):
        """node_modules is reported once, kept, and never descended."""
        manifest = ManifestBuilder(settings, preferences).build(scan_options)
        entries = _by_path(manifest)

        generated = entries["node_modules"]
        assert generated.kind == EntryKind.GENERATED
        assert generated.confidence == 1.0
        assert generated.recommended_handling == Handling.KEEP
        assert not any(p.startswith("node_modules/") for p in entries)

    def test_scan_root_that_is_a_project(self, tmp_path, tree, settings):
        """Scanning a project directly yields just that project."""
        root = tree(tmp_path / "proj", {"Cargo.toml": "", "src": {"main.rs": ""}})
        manifest = ManifestBuilder(settings).build(ScanOptions(root_path=str(root)))

        assert len(manifest.entries) == 1
        assert manifest.entries[0].kind == EntryKind.PROJECT_ROOT
        assert manifest.entries[0].relative_path == "."


class TestNothingInsideProjects:
    """No file inside a project is ever listed, however the project is reached."""

    @staticmethod
    def _assert_atomic(manifest, project):
        entries = _by_path(manifest)
        assert entries[project].kind == EntryKind.PROJECT_ROOT
        assert not any(p.startswith(project + "/") for p in entries)

    def test_project_under_system_folder(self, tmp_path, tree, settings):
        """A Library folder is skipped by both walks, so its project contents never appear."""
        root = tree(tmp_path / "home", {
            "Library": {"proj": {"package.json": "{}", ".git": {"HEAD": "x"}, "index.js": ""}},
            "photo.jpg": "jpeg",
        })
        manifest = ManifestBuilder(settings).build(ScanOptions(root_path=str(root)))

        assert set(_by_path(manifest)) == {"photo.jpg"}

    def test_project_inside_hidden_folder(self, tmp_path, tree, settings):
        """With hidden folders scanned, a project inside one is still atomic."""
        root = tree(tmp_path / "home", {".stash": {"proj": {"pyproject.toml": "", "main.py": ""}}})
        manifest = ManifestBuilder(settings).build(ScanOptions(root_path=str(root), include_hidden=True))

        self._assert_atomic(manifest, ".stash/proj")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlink_alias_to_project(self, tmp_path, tree, settings, preferences):
        """A symlink sorting before its target does not expose the project's files."""
        root = tree(tmp_path / "home", {"proj": {"package.json": "{}", "index.js": ""}})
        try:
            os.symlink(root / "proj", root / "alias", target_is_directory=True)
        except OSError:
            pytest.skip("cannot create symlinks here")

        manifest = ManifestBuilder(settings, preferences).build(ScanOptions(root_path=str(root)))

        self._assert_atomic(manifest, "proj")
        assert [e.relative_path for e in manifest.entries if e.kind == EntryKind.PROJECT_ROOT] == ["proj"]
        assert not any(e.relative_path.startswith("alias/") for e in manifest.entries)

        plan, _ = PlanBuilder().build(manifest, str(tmp_path / "Organized"), preferences)
        assert plan.safety_check.passed
        moved = [a.source for a in plan.actions if not a.is_skip]
        assert not any(s.startswith(str(root / "proj") + os.sep) for s in moved)


class TestClassification:
    """Tests for per-file classification."""

    def test_deterministic_types(self, settings, preferences, scan_options):
        """Media, archive, code and unknown files get fixed classifications."""
        entries = _by_path(ManifestBuilder(settings, preferences).build(scan_options))

        assert entries["holiday.jpg"].kind == EntryKind.MEDIA
        assert entries["holiday.jpg"].confidence == 0.8
        assert entries["holiday.jpg"].suggested_category == "Images"
        assert entries["holiday.jpg"].recommended_handling == Handling.GROUP

        assert entries["song.mp3"].suggested_category == "Audio"

        assert entries["backup.zip"].kind == EntryKind.ARCHIVE
        assert entries["backup.zip"].confidence == 0.9

        assert entries["script.py"].kind == EntryKind.CODE
        assert entries["script.py"].recommended_handling == Handling.REVIEW

        unknown = entries["mystery.xyz"]
        assert unknown.kind == EntryKind.UNKNOWN
        assert unknown.confidence == 0.3
        assert unknown.recommended_handling == Handling.REVIEW
        assert "Unknown file type" in unknown.signals

    def test_document_filename_heuristics(self, settings, preferences, scan_options):
        """A document without embedded metadata gets its title from the filename."""
        entries = _by_path(ManifestBuilder(settings, preferences).build(scan_options))

        notes = entries["notes.txt"]
        assert notes.kind == EntryKind.DOCUMENT
        assert notes.metadata.title == "notes"
        assert notes.confidence == 0.6
        assert notes.suggested_category == "Documents"

    def test_taxonomy_rule(self, settings, preferences, scan_options):
        """Taxonomy rules match on the filename and subject."""
        entries = _by_path(ManifestBuilder(settings, preferences).build(scan_options))

        report = entries["old/Chemistry - Lab Report.pdf"]
        assert report.suggested_category == "Chemistry Notes"
        assert report.confidence == 0.9
        assert report.metadata.subject == "Chemistry"
        assert report.metadata.title == "Lab Report"
        assert report.recommended_handling == Handling.GROUP

    def test_entries_have_identity(self, settings, preferences, scan_options):
        """Every entry carries absolute path, size and modification time."""
        manifest = ManifestBuilder(settings, preferences).build(scan_options)
        for entry in manifest.entries:
            assert Path(entry.path).is_absolute()
            assert entry.modified_at
            assert entry.size >= 0


class TestFiltering:
    """Hidden files and ignore patterns are dropped before classification."""

    def test_hidden_and_ignored_files_are_excluded(self, settings, preferences, scan_options):
        """.DS_Store and *.tmp never appear."""
        entries = _by_path(ManifestBuilder(settings, preferences).build(scan_options))
        assert ".DS_Store" not in entries
        assert "old/report.tmp" not in entries

    def test_include_hidden(self, tmp_path, tree, settings):
        """include_hidden keeps dotfiles."""
        root = tree(tmp_path / "d", {".env.sample": "x", "a.txt": "y"})
        manifest = ManifestBuilder(settings).build(ScanOptions(root_path=str(root), include_hidden=True))
        assert ".env.sample" in _by_path(manifest)

    def test_max_depth(self, tmp_path, tree, settings):
        """Files below max_depth are not listed."""
        root = tree(tmp_path / "d", {"top.txt": "", "a": {"b": {"deep.txt": ""}}})
        manifest = ManifestBuilder(settings).build(ScanOptions(root_path=str(root), max_depth=1))
        assert set(_by_path(manifest)) == {"top.txt"}

    def test_missing_root_raises(self, tmp_path, settings):
        """Scanning a non-directory is an error."""
        with pytest.raises(ValueError):
            ManifestBuilder(settings).build(ScanOptions(root_path=str(tmp_path / "nope")))


class TestSummary:
    """Tests for aggregate counters."""

    def test_confidence_partition(self, settings, preferences, scan_options):
        """high + medium + low always equals the total."""
        manifest = ManifestBuilder(settings, preferences).build(scan_options)
        s = manifest.summary

        assert s.total_items == len(manifest.entries) == 9
        assert s.high_confidence + s.medium_confidence + s.low_confidence == s.total_items
        assert s.project_roots == 1
        assert s.generated == 1
        assert s.media == 2
        assert s.archives == 1
        assert s.code == 1
        assert s.unknown == 1
        assert s.documents == 2

    def test_manifest_serializes(self, settings, preferences, scan_options):
        """A manifest survives to_dict/from_dict."""
        manifest = ManifestBuilder(settings, preferences).build(scan_options)
        restored = Manifest.from_dict(manifest.to_dict())

        assert restored.id == manifest.id
        assert [e.path for e in restored.entries] == [e.path for e in manifest.entries]
        assert restored.entries[0].kind == manifest.entries[0].kind


class TestAIClassification:
    """Tests for classifier escalation and fallback."""

    def _options(self, scan_options, workers=1):
        scan_options.use_ai = True
        scan_options.classifier_workers = workers
        return scan_options

    def test_classifier_result_overrides(self, settings, preferences, scan_options):
        """A classifier answer replaces category and confidence."""
        classifier = Mock()
        classifier.classify.return_value = ClassificationResponse(
            category="School", confidence=0.95, reasoning="Lab write-up", subject="Chemistry 101"
        )
        builder = ManifestBuilder(settings, preferences, classifier=classifier)
        entries = _by_path(builder.build(self._options(scan_options)))

        report = entries["old/Chemistry - Lab Report.pdf"]
        assert report.suggested_category == "School"
        assert report.confidence == 0.95
        assert report.metadata.subject == "Chemistry 101"
        assert "AI classification: Lab write-up" in report.signals
        # Only documents are escalated
        assert classifier.classify.call_count == 2

    def test_classifier_failure_falls_back(self, settings, preferences, scan_options):
        """A failing classifier leaves the extension-based classification."""
        classifier = Mock()
        classifier.classify.side_effect = ClassificationError("timeout", provider="ollama", attempts=3)
        builder = ManifestBuilder(settings, preferences, classifier=classifier)
        manifest = builder.build(self._options(scan_options))
        notes = _by_path(manifest)["notes.txt"]

        assert notes.suggested_category == "Documents"
        assert notes.confidence == 0.6
        assert AI_FALLBACK_SIGNAL in notes.signals
        assert manifest.summary.total_items == 9

    def test_low_confidence_answer_goes_to_review(self, settings, preferences, scan_options):
        """An unsure classifier answer routes the document to review."""
        classifier = Mock()
        classifier.classify.return_value = ClassificationResponse(
            category="Unknown", confidence=0.2, reasoning="No idea"
        )
        builder = ManifestBuilder(settings, preferences, classifier=classifier)
        notes = _by_path(builder.build(self._options(scan_options)))["notes.txt"]

        assert notes.confidence == 0.2
        assert notes.recommended_handling == Handling.REVIEW

    def test_worker_pool(self, settings, preferences, scan_options):
        """Parallel classification gives the same per-entry results."""
        classifier = Mock()
        classifier.classify.side_effect = lambda request: ClassificationResponse(
            category=f"Cat {request.filename}", confidence=0.75, reasoning="ok"
        )
        builder = ManifestBuilder(settings, preferences, classifier=classifier)
        entries = _by_path(builder.build(self._options(scan_options, workers=4)))

        assert entries["notes.txt"].suggested_category == "Cat notes.txt"
        assert entries["old/Chemistry - Lab Report.pdf"].suggested_category == "Cat Chemistry - Lab Report.pdf"

    @pytest.mark.parametrize(
        "category,confidence",
        [
            ("School", float("nan")),
            ("School", float("inf")),
            ("School", "0.9"),
            ("School", None),
            (None, 0.9),
            ("   ", 0.9),
        ],
    )
    def test_malformed_answer_falls_back(self, settings, preferences, scan_options, category, confidence):
        """A custom classifier returning garbage is treated like a failure."""
        classifier = Mock()
        classifier.classify.return_value = ClassificationResponse(
            category=category, confidence=confidence, reasoning="?"
        )
        builder = ManifestBuilder(settings, preferences, classifier=classifier)
        manifest = builder.build(self._options(scan_options))
        notes = _by_path(manifest)["notes.txt"]

        assert notes.suggested_category == "Documents"
        assert notes.confidence == 0.6
        assert AI_FALLBACK_SIGNAL in notes.signals
        assert manifest.summary.total_items == 9

    def test_out_of_range_confidence_is_clamped(self, settings, preferences, scan_options):
        """Confidences outside [0, 1] are clamped before use."""
        classifier = Mock()
        classifier.classify.return_value = ClassificationResponse(
            category="School", confidence=1.7, reasoning="sure"
        )
        builder = ManifestBuilder(settings, preferences, classifier=classifier)
        notes = _by_path(builder.build(self._options(scan_options)))["notes.txt"]

        assert notes.suggested_category == "School"
        assert notes.confidence == 1.0
        assert notes.recommended_handling == Handling.GROUP

    def test_ai_disabled_without_flag(self, settings, preferences, scan_options):
        """The classifier is not called unless use_ai is set."""
        classifier = Mock()
        ManifestBuilder(settings, preferences, classifier=classifier).build(scan_options)
        classifier.classify.assert_not_called()
