"""End-to-end tests for the tidyai command line."""

import pytest

from tidyai.artifacts import ArtifactStore
from tidyai.cli import EXIT_ERROR, EXIT_OK, EXIT_UNSAFE_PLAN, build_parser, main


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Artifact directory, with AI switched off for every command"""
    monkeypatch.setenv("TIDYAI_AI_PROVIDER", "none")
    return tmp_path / "data"


def run(data_dir, *args):
    return main(["--data-dir", str(data_dir), *args])


class TestParser:
    """Tests for argument parsing."""

    def test_repeatable_options(self):
        """--action and --ignore may be given several times."""
        parser = build_parser()
        args = parser.parse_args(["execute", "--action", "a1", "--action", "a2", "--dry-run"])
        assert args.action == ["a1", "a2"]
        assert args.dry_run is True

        args = parser.parse_args(["scan", "/tmp", "--ignore", "*.log", "--ignore", "*.bak"])
        assert args.ignore == ["*.log", "*.bak"]

    def test_no_command_prints_help(self, capsys):
        """Running without a command is an error."""
        assert main([]) == EXIT_ERROR
        assert "usage" in capsys.readouterr().out.lower()


class TestPipeline:
    """scan -> plan -> execute -> undo through the CLI."""

    def test_full_round_trip(self, data_dir, messy_dir, tmp_path, tree_snapshot, capsys):
        """Files are organized and then restored exactly."""
        dest = tmp_path / "Organized"
        before = tree_snapshot(messy_dir)

        assert run(data_dir, "scan", str(messy_dir)) == EXIT_OK
        assert "Manifest" in capsys.readouterr().out

        assert run(data_dir, "plan", str(dest)) == EXIT_OK
        plan_id = ArtifactStore(data_dir).latest_id("plan")
        assert plan_id

        assert run(data_dir, "execute", "--dry-run") == EXIT_OK
        assert "[DRY RUN]" in capsys.readouterr().out
        assert tree_snapshot(messy_dir) == before

        assert run(data_dir, "execute") == EXIT_OK
        assert not (messy_dir / "holiday.jpg").exists()
        assert list(dest.rglob("holiday.jpg"))
        assert (messy_dir / "my-app" / "package.json").exists()
        assert (data_dir / f"rollback-{plan_id}.json").exists()
        assert list((data_dir / "logs").glob("execution-log-*.txt"))

        assert run(data_dir, "undo") == EXIT_OK
        assert tree_snapshot(messy_dir) == before
        assert not dest.exists()

    def test_executing_twice_keeps_first_undo(self, data_dir, messy_dir, tmp_path, tree_snapshot):
        """A second execute of the same plan does not lose the first run's rollback."""
        dest = tmp_path / "Organized"
        before = tree_snapshot(messy_dir)

        assert run(data_dir, "scan", str(messy_dir)) == EXIT_OK
        assert run(data_dir, "plan", str(dest)) == EXIT_OK
        assert run(data_dir, "execute") == EXIT_OK
        plan_id = ArtifactStore(data_dir).latest_id("plan")
        first = ArtifactStore(data_dir).load_rollback(plan_id)
        assert first.entries

        # Every source is gone now, so each action fails
        assert run(data_dir, "execute") == EXIT_ERROR
        assert len(ArtifactStore(data_dir).load_rollback(plan_id).entries) == len(first.entries)

        assert run(data_dir, "undo") == EXIT_OK
        assert tree_snapshot(messy_dir) == before
        assert not list(dest.rglob("holiday.jpg"))

    def test_unsafe_plan(self, data_dir, messy_dir, capsys):
        """A destination inside a project gives exit code 2 and cannot run."""
        assert run(data_dir, "scan", str(messy_dir)) == EXIT_OK
        assert run(data_dir, "plan", str(messy_dir / "my-app" / "sorted")) == EXIT_UNSAFE_PLAN
        assert "SAFETY CHECK FAILED" in capsys.readouterr().out

        before = sorted(p.name for p in messy_dir.iterdir())
        assert run(data_dir, "execute") == EXIT_UNSAFE_PLAN
        assert sorted(p.name for p in messy_dir.iterdir()) == before

    def test_missing_artifacts(self, data_dir, capsys):
        """Commands that need a previous step fail cleanly."""
        assert run(data_dir, "plan", "/tmp/out") == EXIT_ERROR
        assert "run the previous step first" in capsys.readouterr().err

    def test_status(self, data_dir, capsys):
        """Status reports a disabled classifier."""
        assert run(data_dir, "status") == EXIT_OK
        out = capsys.readouterr().out
        assert "Classifier: disabled" in out
        assert "Latest plan: -" in out
