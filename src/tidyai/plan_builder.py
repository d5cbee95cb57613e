"""
Plan Builder - PHASE 2 of MANIFEST -> PLAN -> EXECUTE

Turns a manifest into a reviewable plan of file operations:
- Destination computation (category folders, clean document titles, naming style)
- Project root safety validation (never split or invade a project)
- Collision resolution (in-plan duplicates, then existing files on disk)
- Safety check, summary and an eagerly built rollback mapping

Nothing on disk is modified here; the only filesystem access is the
existence probe used for collision resolution.
"""

import logging
import os
import re
import uuid
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .config import Settings, UserPreferences
from .exceptions import CollisionError
from .metadata_extractor import generate_clean_title
from .models import (ActionType, EntryKind, Handling, Manifest, ManifestEntry,
                     Plan, PlanAction, PlanSummary, ProjectRootDetection,
                     Rollback, RollbackEntry, SafetyCheck, utc_now_iso)
from .project_detector import validate_no_project_root_violations

logger = logging.getLogger(__name__)

# Upper bound on " (n)" suffixes tried for one destination
MAX_SUFFIX_ATTEMPTS = 1000

REVIEW_FOLDER = "Inbox"

# Safety-check warning line, independent of the user's review threshold
LOW_CONFIDENCE_WARNING = 0.5
SAFETY_VIOLATION_PREFIX = "Safety violation: "


def split_name(filename: str) -> Tuple[str, str]:
    """Split ``"report.final.pdf"`` into ``("report.final", ".pdf")``."""
    stem, ext = os.path.splitext(filename)
    return stem, ext


def suffixed_path(path: str, n: int) -> str:
    """``/a/b/report.pdf`` -> ``/a/b/report (n).pdf``"""
    directory, filename = os.path.split(path)
    stem, ext = split_name(filename)
    return os.path.join(directory, f"{stem} ({n}){ext}")


def apply_naming_style(stem: str, style: str) -> str:
    if style == "lowercase":
        return stem.lower()
    if style == "titlecase":
        return re.sub(r"\b\w", lambda m: m.group().upper(), stem.lower())
    if style == "camelcase":
        words = re.split(r"[\s_-]+", stem.strip())
        words = [w for w in words if w]
        if not words:
            return stem
        return words[0].lower() + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])
    return stem


def format_date_prefix(modified_at: str, date_format: str) -> str:
    """Date prefix from an ISO timestamp, or "" when disabled/unparseable."""
    if date_format == "none" or not modified_at:
        return ""
    try:
        when = datetime.fromisoformat(modified_at)
    except ValueError:
        return ""
    if date_format == "YYYYMMDD":
        return when.strftime("%Y%m%d")
    return when.strftime("%Y-%m-%d")


class PlanBuilder:
    """
    Build a plan (and its rollback mapping) from a manifest.

    Usage:
        builder = PlanBuilder()
        plan, rollback = builder.build(manifest, "/home/me/Organized", preferences)
        if not plan.safety_check.passed:
            ...
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def build(
        self,
        manifest: Manifest,
        dest_root: str,
        preferences: Optional[UserPreferences] = None,
    ) -> Tuple[Plan, Rollback]:
        """
        Generate a plan from a manifest.

        Args:
            manifest: Manifest produced by ManifestBuilder
            dest_root: Destination root directory
            preferences: Routing, naming and threshold preferences

        Returns:
            (plan, rollback)

        Raises:
            CollisionError: If a free destination cannot be found for an action
        """
        preferences = preferences or UserPreferences()
        dest_root = os.path.abspath(dest_root)
        plan_id = uuid.uuid4().hex

        logger.info(f"[PLAN] Building plan {plan_id} for manifest {manifest.id} -> {dest_root}")

        project_roots: Dict[str, ProjectRootDetection] = {
            entry.path: entry.project_root
            for entry in manifest.entries
            if entry.kind == EntryKind.PROJECT_ROOT and entry.project_root is not None
        }

        actions = [
            self._action_for_entry(entry, manifest.scan_root, dest_root, preferences, project_roots)
            for entry in manifest.entries
        ]

        self.resolve_collisions(actions, dest_root)

        safety_check = self._safety_check(actions)
        summary = self._summarize(actions)

        plan = Plan(
            id=plan_id,
            manifest_id=manifest.id,
            created_at=utc_now_iso(),
            dest_root=dest_root,
            actions=actions,
            safety_check=safety_check,
            summary=summary,
            preferences=preferences.model_dump(),
        )
        rollback = self.build_rollback(plan)

        logger.info(
            f"[PLAN] {summary.total_actions} actions "
            f"({summary.moves} moves, {summary.renames} renames, {summary.skips} skips), "
            f"safety check {'passed' if safety_check.passed else 'FAILED'}"
        )
        for error in safety_check.errors:
            logger.warning(f"[PLAN] {error}")

        return plan, rollback

    # ------------------------------------------------------------------
    # Per-entry actions
    # ------------------------------------------------------------------

    def _action_for_entry(
        self,
        entry: ManifestEntry,
        scan_root: str,
        dest_root: str,
        preferences: UserPreferences,
        project_roots: Dict[str, ProjectRootDetection],
    ) -> PlanAction:
        action_id = uuid.uuid4().hex

        # Step 1: Entries that stay where they are
        if entry.recommended_handling == Handling.KEEP or entry.inside_project_root:
            if entry.kind == EntryKind.PROJECT_ROOT:
                reason = "Project root - keeping intact"
            elif entry.kind == EntryKind.GENERATED:
                reason = "Generated folder - keeping in place"
            elif entry.inside_project_root:
                reason = f"Inside project root {entry.parent_project_root} - not moving"
            else:
                reason = "Keeping in place"
            return self._skip(action_id, entry, reason, is_project_root=entry.kind == EntryKind.PROJECT_ROOT)

        # Step 2: Destination
        destination_relative = self.compute_destination(entry, preferences)
        destination = os.path.join(dest_root, destination_relative)

        # Step 3: Never split or invade a project
        valid, error = validate_no_project_root_violations(entry.path, destination, project_roots)
        if not valid:
            skip = self._skip(action_id, entry, f"{SAFETY_VIOLATION_PREFIX}{error}")
            skip.moves_inside_project_root = True
            return skip

        # Step 4: Action type
        action_type = self.determine_action_type(entry.path, destination)
        if action_type == ActionType.SKIP:
            return self._skip(action_id, entry, "Already in place")

        return PlanAction(
            id=action_id,
            source=entry.path,
            source_relative=entry.relative_path,
            destination=destination,
            destination_relative=destination_relative,
            action_type=action_type,
            reason=self._reason(entry),
            confidence=entry.confidence,
            category=entry.suggested_category,
            tags=list(entry.suggested_tags),
            # Step 5: Auto-approval
            approved=entry.confidence >= preferences.auto_approve_threshold,
        )

    @staticmethod
    def _skip(
        action_id: str, entry: ManifestEntry, reason: str, is_project_root: bool = False
    ) -> PlanAction:
        return PlanAction(
            id=action_id,
            source=entry.path,
            source_relative=entry.relative_path,
            destination=entry.path,
            destination_relative=entry.relative_path,
            action_type=ActionType.SKIP,
            reason=reason,
            confidence=1.0,
            category=entry.suggested_category,
            tags=list(entry.suggested_tags),
            is_project_root=is_project_root,
            approved=True,
        )

    @staticmethod
    def _reason(entry: ManifestEntry) -> str:
        if entry.recommended_handling == Handling.REVIEW:
            return f"Needs review: {entry.kind.value} ({entry.confidence:.0%} confidence)"
        category = entry.suggested_category or "Other"
        return f"Group into {category} ({entry.kind.value}, {entry.confidence:.0%} confidence)"

    def compute_destination(self, entry: ManifestEntry, preferences: UserPreferences) -> str:
        """Destination path relative to the destination root."""
        extension = Path(entry.name).suffix

        # Low confidence goes to the review folder untouched, whatever the kind
        if entry.confidence < preferences.review_threshold:
            return os.path.join(REVIEW_FOLDER, entry.name)

        if entry.kind == EntryKind.DOCUMENT and entry.metadata is not None:
            folder = entry.suggested_category or entry.metadata.subject or "Documents"
            stem = generate_clean_title(entry.metadata, entry.name)
        else:
            stem = Path(entry.name).stem
            if entry.kind == EntryKind.MEDIA:
                folder = entry.suggested_category or "Media"
            elif entry.kind == EntryKind.ARCHIVE:
                folder = "Archives"
            elif entry.kind == EntryKind.CODE:
                folder = "Code"
            else:
                folder = entry.suggested_category or "Other"

        folder = self._safe_component(preferences.folder_for(folder))
        stem = self._apply_naming(stem, entry, preferences)

        return os.path.join(folder, f"{stem}{extension}")

    @staticmethod
    def _apply_naming(stem: str, entry: ManifestEntry, preferences: UserPreferences) -> str:
        naming = preferences.naming
        if naming.remove_special_chars:
            cleaned = re.sub(r"[^\w\s-]", "", stem).strip()
            stem = re.sub(r"\s+", " ", cleaned) or stem
        stem = apply_naming_style(stem, naming.style)
        prefix = format_date_prefix(entry.modified_at, naming.date_format)
        if prefix:
            stem = f"{prefix} {stem}"
        return stem

    @staticmethod
    def _safe_component(name: str) -> str:
        # Categories come from users and classifiers; keep them a single path component
        cleaned = name.replace("/", "-").replace("\\", "-").strip().strip(".")
        return cleaned or "Other"

    @staticmethod
    def determine_action_type(source: str, destination: str) -> ActionType:
        source_dir, source_name = os.path.split(source)
        dest_dir, dest_name = os.path.split(destination)
        same_dir = source_dir == dest_dir
        same_name = source_name == dest_name

        if same_dir and same_name:
            return ActionType.SKIP
        if same_dir:
            return ActionType.RENAME
        if same_name:
            return ActionType.MOVE
        return ActionType.MOVE_RENAME

    # ------------------------------------------------------------------
    # Collisions
    # ------------------------------------------------------------------

    def resolve_collisions(self, actions: List[PlanAction], dest_root: str) -> None:
        """Make every executable destination unique, in plan and on disk.

        Pass (a): actions sharing a destination keep the first one as-is,
        the rest get " (n)" suffixes. Pass (b): destinations that already
        exist on disk get suffixes too. Running it again on a resolved plan
        changes nothing.
        """
        executable = [a for a in actions if not a.is_skip]

        # Pass (a): in-plan duplicates
        groups: "OrderedDict[str, List[PlanAction]]" = OrderedDict()
        for action in executable:
            groups.setdefault(action.destination, []).append(action)

        claimed: Set[str] = set(groups)
        for destination, group in groups.items():
            if len(group) < 2:
                continue
            logger.debug(f"[PLAN] {len(group)} actions share destination {destination}")
            for action in group:
                action.has_collision = True
            n = 2
            for action in group[1:]:
                candidate, n = self._next_free(destination, n, claimed, check_disk=False)
                self._retarget(action, candidate, dest_root)
                claimed.add(candidate)
                n += 1

        # Pass (b): existing files on disk
        for action in executable:
            if not os.path.lexists(action.destination):
                continue
            candidate, _ = self._next_free(action.destination, 2, claimed, check_disk=True)
            claimed.add(candidate)
            action.has_collision = True
            self._retarget(action, candidate, dest_root)

    @staticmethod
    def _next_free(
        destination: str, start: int, claimed: Set[str], check_disk: bool
    ) -> Tuple[str, int]:
        for n in range(start, start + MAX_SUFFIX_ATTEMPTS):
            candidate = suffixed_path(destination, n)
            if candidate in claimed:
                continue
            if check_disk and os.path.lexists(candidate):
                continue
            return candidate, n
        raise CollisionError(
            f"No free name for {destination} after {MAX_SUFFIX_ATTEMPTS} attempts",
            path=destination,
        )

    def _retarget(self, action: PlanAction, destination: str, dest_root: str) -> None:
        action.destination = destination
        action.destination_relative = os.path.relpath(destination, dest_root)
        action.collision_resolution = "suffix"
        action.action_type = self.determine_action_type(action.source, destination)

    # ------------------------------------------------------------------
    # Safety check / summary / rollback
    # ------------------------------------------------------------------

    @staticmethod
    def _safety_check(actions: List[PlanAction]) -> SafetyCheck:
        check = SafetyCheck(passed=True)

        for action in actions:
            if action.moves_inside_project_root:
                check.project_root_violations += 1
                check.errors.append(action.reason[len(SAFETY_VIOLATION_PREFIX):])
            if action.is_skip:
                check.skipped_items += 1
                continue
            if action.has_collision:
                check.collisions_resolved.append(action.destination)
            if action.confidence < LOW_CONFIDENCE_WARNING:
                check.low_confidence_actions += 1

        check.passed = check.project_root_violations == 0

        if check.low_confidence_actions:
            check.warnings.append(
                f"{check.low_confidence_actions} actions have low confidence and need review"
            )
        if check.collisions_resolved:
            check.warnings.append(
                f"{len(check.collisions_resolved)} naming collisions resolved with suffixes"
            )

        return check

    @staticmethod
    def _summarize(actions: List[PlanAction]) -> PlanSummary:
        summary = PlanSummary(total_actions=len(actions))

        for action in actions:
            if action.action_type == ActionType.SKIP:
                summary.skips += 1
            elif action.action_type == ActionType.RENAME:
                summary.renames += 1
            else:
                summary.moves += 1

            if action.category:
                summary.category_counts[action.category] = (
                    summary.category_counts.get(action.category, 0) + 1
                )

            if action.confidence >= 0.7:
                summary.high_confidence += 1
            elif action.confidence >= 0.4:
                summary.medium_confidence += 1
            else:
                summary.low_confidence += 1

        return summary

    @staticmethod
    def build_rollback(plan: Plan) -> Rollback:
        """Reverse mapping for every executable action, in plan order."""
        now = utc_now_iso()
        return Rollback(
            plan_id=plan.id,
            created_at=now,
            entries=[
                RollbackEntry(
                    source=action.destination,
                    destination=action.source,
                    action_id=action.id,
                    timestamp=now,
                )
                for action in plan.actions
                if not action.is_skip
            ],
        )
