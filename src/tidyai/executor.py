"""
Executor - PHASE 3 of MANIFEST -> PLAN -> EXECUTE

Applies approved plan actions to the filesystem and can undo them:
- Sequential, atomic renames in plan order
- Execution-time collision re-probe (the plan may be stale)
- Per-action failure capture (one failure never aborts the batch)
- Rollback recording for every completed move
- Cooperative cancellation between actions
- Human-readable execution log

No file is ever deleted or overwritten. The only removals are empty
directories that this executor created itself, during undo.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from .exceptions import CollisionError, PlanSafetyError
from .models import (ExecutionReport, ExecutionResult, ExecutionStatus,
                     ExecutionSummary, Plan, PlanAction, Rollback,
                     RollbackEntry, utc_now_iso)
from .plan_builder import MAX_SUFFIX_ATTEMPTS, suffixed_path

logger = logging.getLogger(__name__)

# Type aliases for caller hooks
ProgressCallback = Callable[[int, int, PlanAction], None]
CancelCheck = Callable[[], bool]


def find_unique_destination(destination: str) -> str:
    """Return ``destination`` if free, else the first free ``" (n)"`` variant."""
    if not os.path.lexists(destination):
        return destination
    for n in range(2, 2 + MAX_SUFFIX_ATTEMPTS):
        candidate = suffixed_path(destination, n)
        if not os.path.lexists(candidate):
            return candidate
    raise CollisionError(
        f"No free name for {destination} after {MAX_SUFFIX_ATTEMPTS} attempts", path=destination
    )


def ensure_directory(directory: str) -> List[str]:
    """Create ``directory`` and any missing parents.

    Returns:
        The directories that did not exist before, outermost first
    """
    missing = []
    current = os.path.abspath(directory)
    while not os.path.isdir(current):
        missing.append(current)
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent

    missing.reverse()
    os.makedirs(directory, exist_ok=True)
    return missing


class Executor:
    """Execute plans and undo executions.

    Usage:
        executor = Executor()
        report = executor.execute(plan, dry_run=True)
        report = executor.execute(plan)
        executor.undo(report.rollback)
    """

    def execute(
        self,
        plan: Plan,
        dry_run: bool = False,
        selected_action_ids: Optional[Iterable[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> ExecutionReport:
        """Execute a plan.

        Args:
            plan: Plan to execute
            dry_run: Report what would happen without touching the filesystem
            selected_action_ids: Action ids to run. None or an empty selection
                runs every approved action instead
            on_progress: Called as ``on_progress(current, total, action)``
            should_cancel: Polled before each action; True stops the run

        Returns:
            ExecutionReport with the rollback for completed moves

        Raises:
            PlanSafetyError: If the plan failed its safety check
        """
        if not plan.safety_check.passed:
            raise PlanSafetyError(
                f"Plan {plan.id} failed its safety check and cannot be executed",
                plan_id=plan.id,
                errors=plan.safety_check.errors,
            )

        selected = self._select_actions(plan, selected_action_ids)
        logger.info(
            f"[EXECUTE] Plan {plan.id}: {len(selected)} actions selected "
            f"(dry run: {'YES' if dry_run else 'NO'})"
        )

        results: List[ExecutionResult] = []
        rollback = Rollback(plan_id=plan.id, created_at=utc_now_iso())
        cancelled = False

        for index, action in enumerate(selected, start=1):
            if should_cancel is not None and should_cancel():
                logger.info(f"[EXECUTE] Cancelled after {index - 1}/{len(selected)} actions")
                cancelled = True
                break

            if on_progress is not None:
                on_progress(index, len(selected), action)

            logger.info(f"[EXECUTE] [{index}/{len(selected)}] {action.source} -> {action.destination}")
            results.append(self._execute_action(action, dry_run, rollback))

        for action in plan.actions:
            if action.is_skip:
                results.append(
                    ExecutionResult(
                        action_id=action.id,
                        status=ExecutionStatus.SKIPPED,
                        timestamp=utc_now_iso(),
                    )
                )

        report = ExecutionReport(
            id=uuid.uuid4().hex,
            plan_id=plan.id,
            executed_at=utc_now_iso(),
            results=results,
            summary=self._summarize(results),
            rollback=rollback,
            dry_run=dry_run,
            cancelled=cancelled,
        )

        logger.info(
            f"[EXECUTE] Complete: {report.summary.completed} completed, "
            f"{report.summary.failed} failed, {report.summary.skipped} skipped"
        )
        return report

    @staticmethod
    def _select_actions(plan: Plan, selected_action_ids: Optional[Iterable[str]]) -> List[PlanAction]:
        executable = [a for a in plan.actions if not a.is_skip]
        if selected_action_ids:
            wanted = set(selected_action_ids)
            return [a for a in executable if a.id in wanted]
        return [a for a in executable if a.approved]

    def _execute_action(self, action: PlanAction, dry_run: bool, rollback: Rollback) -> ExecutionResult:
        try:
            if action.moves_inside_project_root:
                raise PlanSafetyError(f"Action {action.id} would violate a project root")

            if not os.path.lexists(action.source):
                raise FileNotFoundError(f"Source file not found: {action.source}")

            if dry_run:
                actual = find_unique_destination(action.destination)
            else:
                actual = self._move(action.source, action.destination, rollback)
                rollback.entries.append(
                    RollbackEntry(
                        source=actual,
                        destination=action.source,
                        action_id=action.id,
                        timestamp=utc_now_iso(),
                    )
                )
        except (OSError, CollisionError, PlanSafetyError) as e:
            logger.error(f"[EXECUTE] Failed {action.source}: {e}")
            return ExecutionResult(
                action_id=action.id,
                status=ExecutionStatus.FAILED,
                timestamp=utc_now_iso(),
                error=str(e),
            )

        if actual != action.destination:
            logger.info(f"[EXECUTE] Destination taken, used {actual}")

        return ExecutionResult(
            action_id=action.id,
            status=ExecutionStatus.COMPLETED,
            timestamp=utc_now_iso(),
            actual_destination=actual,
        )

    @staticmethod
    def _move(source: str, destination: str, rollback: Rollback) -> str:
        rollback.created_dirs.extend(ensure_directory(os.path.dirname(destination)))
        # Re-probe right before the rename so nothing is overwritten
        actual = find_unique_destination(destination)
        os.rename(source, actual)
        return actual

    def undo(
        self,
        rollback: Rollback,
        dry_run: bool = False,
        on_progress: Optional[Callable[[int, int, RollbackEntry], None]] = None,
    ) -> ExecutionReport:
        """Move files back to their original locations, newest first.

        Entries whose file is gone, or whose original location is occupied,
        are recorded as failed and kept in the returned rollback so the undo
        can be retried. Directories the forward run created are removed when
        empty.
        """
        entries = list(reversed(rollback.entries))
        logger.info(f"[ROLLBACK] Plan {rollback.plan_id}: undoing {len(entries)} actions")

        results: List[ExecutionResult] = []
        remaining: List[RollbackEntry] = []

        for index, entry in enumerate(entries, start=1):
            if on_progress is not None:
                on_progress(index, len(entries), entry)
            logger.info(f"[ROLLBACK] [{index}/{len(entries)}] {entry.source} -> {entry.destination}")

            ok, error = self._undo_entry(entry, dry_run)
            if not ok:
                logger.error(f"[ROLLBACK] Failed: {error}")
                remaining.append(entry)
            results.append(
                ExecutionResult(
                    action_id=entry.action_id,
                    status=ExecutionStatus.COMPLETED if ok else ExecutionStatus.FAILED,
                    timestamp=utc_now_iso(),
                    error=error,
                    actual_destination=entry.destination if ok else None,
                )
            )

        if not dry_run:
            self._remove_empty_dirs(rollback.created_dirs)

        remaining.reverse()
        report = ExecutionReport(
            id=uuid.uuid4().hex,
            plan_id=rollback.plan_id,
            executed_at=utc_now_iso(),
            results=results,
            summary=self._summarize(results),
            rollback=Rollback(
                plan_id=rollback.plan_id,
                created_at=rollback.created_at,
                entries=remaining,
                created_dirs=list(rollback.created_dirs) if remaining or dry_run else [],
            ),
            dry_run=dry_run,
        )

        logger.info(
            f"[ROLLBACK] Complete: {report.summary.completed} completed, {report.summary.failed} failed"
        )
        return report

    @staticmethod
    def _undo_entry(entry: RollbackEntry, dry_run: bool) -> Tuple[bool, Optional[str]]:
        if not os.path.lexists(entry.source):
            return False, f"Source file not found: {entry.source}"
        if os.path.lexists(entry.destination):
            return False, f"Original location is occupied: {entry.destination}"
        if dry_run:
            return True, None

        try:
            os.makedirs(os.path.dirname(entry.destination), exist_ok=True)
            os.rename(entry.source, entry.destination)
        except OSError as e:
            return False, str(e)
        return True, None

    @staticmethod
    def _remove_empty_dirs(created_dirs: List[str]) -> None:
        # Innermost first, so parents empty out as children go
        for directory in reversed(created_dirs):
            if not os.path.isdir(directory) or os.listdir(directory):
                continue
            try:
                os.rmdir(directory)
                logger.debug(f"[ROLLBACK] Removed empty directory {directory}")
            except OSError as e:
                logger.warning(f"[ROLLBACK] Could not remove {directory}: {e}")

    @staticmethod
    def _summarize(results: List[ExecutionResult]) -> ExecutionSummary:
        summary = ExecutionSummary(total=len(results))
        for result in results:
            if result.status == ExecutionStatus.COMPLETED:
                summary.completed += 1
            elif result.status == ExecutionStatus.FAILED:
                summary.failed += 1
            else:
                summary.skipped += 1
        return summary


_STATUS_SYMBOLS = {
    ExecutionStatus.COMPLETED: "✓",
    ExecutionStatus.FAILED: "✗",
    ExecutionStatus.SKIPPED: "-",
}


def format_execution_log(report: ExecutionReport, plan: Plan) -> str:
    """Render an execution report as human-readable text."""
    rule = "=" * 80
    lines = [
        rule,
        "FILE ORGANIZATION EXECUTION LOG",
        rule,
        "",
        f"Plan ID: {report.plan_id}",
        f"Executed: {report.executed_at}",
        f"Dry run: {'yes' if report.dry_run else 'no'}",
    ]
    if report.cancelled:
        lines.append("Cancelled: yes (remaining actions were not attempted)")
    lines += [
        "",
        "Summary:",
        f"  Total actions: {report.summary.total}",
        f"  Completed: {report.summary.completed}",
        f"  Failed: {report.summary.failed}",
        f"  Skipped: {report.summary.skipped}",
        "",
        rule,
        "ACTIONS",
        rule,
        "",
    ]

    for result in report.results:
        action = plan.get_action(result.action_id)
        if action is None:
            continue

        lines.append(
            f"{_STATUS_SYMBOLS[result.status]} [{result.status.value.upper()}] {action.action_type.value}"
        )
        lines.append(f"  From: {action.source}")
        lines.append(f"  To:   {result.actual_destination or action.destination}")
        lines.append(f"  Reason: {action.reason}")
        lines.append(f"  Confidence: {action.confidence * 100:.0f}%")
        if result.error:
            lines.append(f"  ERROR: {result.error}")
        lines.append("")

    if report.rollback.entries:
        lines += [
            rule,
            "ROLLBACK INFORMATION",
            rule,
            "",
            "To undo these changes, use the rollback file:",
            f"  rollback-{report.plan_id}.json",
            "",
        ]

    return "\n".join(lines)


def write_execution_log(report: ExecutionReport, plan: Plan, output_dir: Path) -> Path:
    """Write the execution log to ``output_dir`` and return its path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    log_path = output_dir / f"execution-log-{timestamp}.txt"
    log_path.write_text(format_execution_log(report, plan), encoding="utf-8")

    logger.info(f"[EXECUTE] Log saved to {log_path}")
    return log_path
