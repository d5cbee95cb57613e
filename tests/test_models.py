"""Tests for pipeline data models and their JSON shapes."""

from tidyai.models import (ActionType, DocumentMetadata, EntryKind, Handling,
                           PlanAction, ProjectRootDetection, ProjectType,
                           SafetyCheck)


class TestEnums:
    """Enum values are part of the persisted format."""

    def test_values(self):
        """Serialized names match the artifact format."""
        assert EntryKind.PROJECT_ROOT.value == "ProjectRoot"
        assert Handling.REVIEW.value == "review"
        assert ActionType.MOVE_RENAME.value == "move-rename"
        assert ProjectType.DOTNET.value == "dotnet"


class TestSafetyCheck:
    """Tests for the nested safety check shape."""

    def test_counters_nested_under_checks(self):
        """Counters live under 'checks' in the JSON form."""
        check = SafetyCheck(
            passed=False,
            errors=["File would move into project root /p"],
            project_root_violations=1,
            collisions_resolved=["/d/a (2).txt"],
            low_confidence_actions=3,
            skipped_items=4,
        )
        data = check.to_dict()

        assert data["checks"]["project_root_violations"] == 1
        assert "project_root_violations" not in data
        assert SafetyCheck.from_dict(data) == check


class TestPlanAction:
    """Tests for plan actions."""

    def test_defaults_on_load(self):
        """Optional flags default to false when absent."""
        action = PlanAction.from_dict({
            "id": "a1",
            "source": "/s/a.txt",
            "destination": "/d/a.txt",
            "action_type": "move",
        })
        assert action.approved is False
        assert action.has_collision is False
        assert action.tags == []
        assert not action.is_skip

    def test_is_skip(self):
        """Skip actions report themselves as such."""
        action = PlanAction(
            id="a2", source="/s", source_relative="s", destination="/s", destination_relative="s",
            action_type=ActionType.SKIP, reason="Project root", confidence=1.0,
        )
        assert action.is_skip


class TestNestedModels:
    """Nested optional models survive serialization."""

    def test_detection(self):
        """Project type is stored by value."""
        detection = ProjectRootDetection(
            is_project_root=True, signals=["go.mod"], project_type=ProjectType.GO, confidence=0.9
        )
        data = detection.to_dict()
        assert data["project_type"] == "go"
        assert ProjectRootDetection.from_dict(data) == detection

    def test_metadata_keywords(self):
        """Keywords are copied, not shared."""
        meta = DocumentMetadata(title="T", keywords=["a"])
        data = meta.to_dict()
        data["keywords"].append("b")
        assert meta.keywords == ["a"]
