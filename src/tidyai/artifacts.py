"""JSON persistence for pipeline artifacts.

One file per stage per run, correlated by id:

    manifest-<manifest_id>.json
    plan-<plan_id>.json
    rollback-<plan_id>.json
    execution-<plan_id>.json
"""

import json
import logging
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from .exceptions import ArtifactError
from .models import ExecutionReport, Manifest, Plan, Rollback

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ArtifactStore:
    """Save and load manifests, plans, rollbacks and execution reports.

    Usage:
        store = ArtifactStore(Path(settings.data_dir))
        store.save_manifest(manifest)
        manifest = store.load_manifest(manifest_id)
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def _path(self, prefix: str, artifact_id: str) -> Path:
        return self.base_dir / f"{prefix}-{artifact_id}.json"

    def _save(self, prefix: str, artifact_id: str, data: dict) -> Path:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(prefix, artifact_id)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info(f"Saved {prefix} artifact: {path}")
        return path

    def _load(self, prefix: str, artifact_id: str, from_dict: Callable[[dict], T]) -> T:
        path = self._path(prefix, artifact_id)
        if not path.exists():
            raise ArtifactError(f"No {prefix} artifact with id {artifact_id} in {self.base_dir}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ArtifactError(f"Corrupt {prefix} artifact {path}: {e}") from e

    def save_manifest(self, manifest: Manifest) -> Path:
        return self._save("manifest", manifest.id, manifest.to_dict())

    def load_manifest(self, manifest_id: str) -> Manifest:
        return self._load("manifest", manifest_id, Manifest.from_dict)

    def save_plan(self, plan: Plan) -> Path:
        return self._save("plan", plan.id, plan.to_dict())

    def load_plan(self, plan_id: str) -> Plan:
        return self._load("plan", plan_id, Plan.from_dict)

    def save_rollback(self, rollback: Rollback) -> Path:
        return self._save("rollback", rollback.plan_id, rollback.to_dict())

    def load_rollback(self, plan_id: str) -> Rollback:
        return self._load("rollback", plan_id, Rollback.from_dict)

    def merge_rollback(self, rollback: Rollback) -> Rollback:
        """Add a run's rollback to the one already stored for its plan.

        Executing a plan again must not lose the undo mapping of earlier
        runs, so entries are appended rather than replaced.

        Returns:
            The rollback as saved

        Raises:
            ArtifactError: If the stored rollback is corrupt (it is left untouched)
        """
        if not self._path("rollback", rollback.plan_id).exists():
            self.save_rollback(rollback)
            return rollback

        existing = self.load_rollback(rollback.plan_id)
        merged = Rollback(
            plan_id=rollback.plan_id,
            created_at=existing.created_at,
            entries=existing.entries + rollback.entries,
            created_dirs=existing.created_dirs
            + [d for d in rollback.created_dirs if d not in existing.created_dirs],
        )
        logger.info(
            f"Merged {len(rollback.entries)} rollback entries into {len(existing.entries)} "
            f"existing for plan {rollback.plan_id}"
        )
        self.save_rollback(merged)
        return merged

    def save_execution_report(self, report: ExecutionReport) -> Path:
        return self._save("execution", report.plan_id, report.to_dict())

    def load_execution_report(self, plan_id: str) -> ExecutionReport:
        return self._load("execution", plan_id, ExecutionReport.from_dict)

    def list_ids(self, prefix: str) -> List[str]:
        """Ids of stored artifacts of one kind, most recently written first."""
        if not self.base_dir.exists():
            return []
        paths = sorted(
            self.base_dir.glob(f"{prefix}-*.json"), key=lambda p: p.stat().st_mtime, reverse=True
        )
        return [p.stem[len(prefix) + 1:] for p in paths]

    def latest_id(self, prefix: str) -> Optional[str]:
        ids = self.list_ids(prefix)
        return ids[0] if ids else None
