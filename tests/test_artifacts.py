"""Tests for artifact persistence."""

import os

import pytest

from tidyai.artifacts import ArtifactStore
from tidyai.exceptions import ArtifactError
from tidyai.manifest_builder import ManifestBuilder
from tidyai.models import (ExecutionReport, ExecutionResult, ExecutionStatus,
                           ExecutionSummary, Rollback, RollbackEntry)
from tidyai.plan_builder import PlanBuilder


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "data")


@pytest.fixture
def manifest(settings, preferences, scan_options):
    return ManifestBuilder(settings, preferences).build(scan_options)


class TestSaveLoad:
    """Each artifact kind survives a save/load cycle."""

    def test_manifest(self, store, manifest):
        """Manifests are keyed by their own id."""
        path = store.save_manifest(manifest)
        assert path.name == f"manifest-{manifest.id}.json"

        loaded = store.load_manifest(manifest.id)
        assert loaded.id == manifest.id
        assert len(loaded.entries) == len(manifest.entries)
        assert loaded.summary.total_items == manifest.summary.total_items

    def test_plan_and_rollback(self, store, manifest, tmp_path, preferences):
        """Plans and rollbacks share the plan id."""
        plan, rollback = PlanBuilder().build(manifest, str(tmp_path / "Organized"), preferences)

        store.save_plan(plan)
        store.save_rollback(rollback)

        loaded_plan = store.load_plan(plan.id)
        assert loaded_plan.safety_check.passed == plan.safety_check.passed
        assert [a.id for a in loaded_plan.actions] == [a.id for a in plan.actions]
        assert store.load_rollback(plan.id).plan_id == plan.id

    def test_execution_report(self, store):
        """Execution reports are keyed by plan id."""
        rollback = Rollback(
            plan_id="p1",
            created_at="2025-01-01T00:00:00",
            entries=[RollbackEntry(source="/y/a", destination="/x/a", action_id="a1", timestamp="2025-01-01T00:00:01")],
            created_dirs=["/y"],
        )
        report = ExecutionReport(
            id="r1",
            plan_id="p1",
            executed_at="2025-01-01T00:00:00",
            results=[ExecutionResult(action_id="a1", status=ExecutionStatus.COMPLETED, timestamp="2025-01-01T00:00:01")],
            summary=ExecutionSummary(total=1, completed=1),
            rollback=rollback,
        )

        store.save_execution_report(report)
        loaded = store.load_execution_report("p1")

        assert loaded.results[0].status == ExecutionStatus.COMPLETED
        assert loaded.summary.completed == 1
        assert loaded.rollback.entries[0].source == "/y/a"
        assert loaded.rollback.created_dirs == ["/y"]


class TestMergeRollback:
    """Repeated runs of one plan accumulate their rollbacks."""

    @staticmethod
    def _rollback(created_at, names, dirs):
        return Rollback(
            plan_id="p1",
            created_at=created_at,
            entries=[RollbackEntry(source=f"/y/{n}", destination=f"/x/{n}", action_id=n, timestamp=created_at)
                     for n in names],
            created_dirs=dirs,
        )

    def test_first_run_is_saved_as_is(self, store):
        """Without a stored rollback the new one is written unchanged."""
        rollback = self._rollback("2025-01-01T00:00:00", ["a"], ["/y"])
        assert store.merge_rollback(rollback) is rollback
        assert [e.action_id for e in store.load_rollback("p1").entries] == ["a"]

    def test_entries_appended(self, store):
        """Later entries follow earlier ones and directories are not repeated."""
        store.save_rollback(self._rollback("2025-01-01T00:00:00", ["a"], ["/y"]))
        merged = store.merge_rollback(self._rollback("2025-01-02T00:00:00", ["b"], ["/y", "/y/sub"]))

        loaded = store.load_rollback("p1")
        assert [e.action_id for e in loaded.entries] == ["a", "b"]
        assert loaded.created_dirs == ["/y", "/y/sub"]
        assert loaded.created_at == "2025-01-01T00:00:00"
        assert merged.entries == loaded.entries

    def test_corrupt_existing_is_not_overwritten(self, store):
        """A damaged stored rollback raises instead of being replaced."""
        store.base_dir.mkdir(parents=True)
        path = store.base_dir / "rollback-p1.json"
        path.write_text("{not json")

        with pytest.raises(ArtifactError):
            store.merge_rollback(self._rollback("2025-01-02T00:00:00", ["b"], []))
        assert path.read_text() == "{not json"


class TestErrors:
    """Missing and corrupt artifacts raise ArtifactError."""

    def test_missing(self, store):
        """Loading an unknown id fails clearly."""
        with pytest.raises(ArtifactError, match="No plan artifact"):
            store.load_plan("nope")

    def test_corrupt_json(self, store):
        """Invalid JSON is reported as corrupt."""
        store.base_dir.mkdir(parents=True)
        (store.base_dir / "manifest-bad.json").write_text("{not json")
        with pytest.raises(ArtifactError, match="Corrupt"):
            store.load_manifest("bad")

    def test_wrong_shape(self, store):
        """Valid JSON missing required keys is reported as corrupt."""
        store.base_dir.mkdir(parents=True)
        (store.base_dir / "rollback-x.json").write_text('{"entries": []}')
        with pytest.raises(ArtifactError):
            store.load_rollback("x")


class TestListing:
    """Tests for id discovery."""

    def test_empty_store(self, store):
        """A store with no directory lists nothing."""
        assert store.list_ids("plan") == []
        assert store.latest_id("plan") is None

    def test_latest_is_most_recent(self, store):
        """The most recently written artifact is the latest."""
        for plan_id, mtime in (("old", 1_000_000), ("new", 2_000_000)):
            rollback = Rollback(plan_id=plan_id, created_at="2025-01-01T00:00:00")
            path = store.save_rollback(rollback)
            os.utime(path, (mtime, mtime))

        assert store.list_ids("rollback") == ["new", "old"]
        assert store.latest_id("rollback") == "new"
        assert store.list_ids("manifest") == []
