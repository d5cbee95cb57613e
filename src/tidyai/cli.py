#!/usr/bin/env python3
"""Tidy AI CLI - organize a messy folder through MANIFEST -> PLAN -> EXECUTE

Usage:
    tidyai scan ~/Downloads [--ai] [--preferences prefs.yaml]
    tidyai plan ~/Organized [--manifest ID]
    tidyai execute [--plan ID] [--dry-run] [--action ID ...]
    tidyai undo [--plan ID] [--dry-run]
    tidyai status

Every command persists its artifact in the data directory
(``TIDYAI_DATA_DIR``), so each stage can be reviewed before the next.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .artifacts import ArtifactStore
from .classifier import create_classifier
from .config import Settings, load_preferences
from .exceptions import PlanSafetyError, TidyAIError
from .executor import Executor, write_execution_log
from .logging_config import configure_logging
from .manifest_builder import ManifestBuilder
from .models import ScanOptions
from .plan_builder import PlanBuilder
from .version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNSAFE_PLAN = 2


def _resolve_id(store: ArtifactStore, prefix: str, explicit: Optional[str]) -> str:
    if explicit:
        return explicit
    latest = store.latest_id(prefix)
    if latest is None:
        raise TidyAIError(f"No {prefix} found in {store.base_dir}; run the previous step first")
    return latest


def run_scan(args, settings: Settings, store: ArtifactStore) -> int:
    """Scan a directory and save its manifest"""
    preferences = load_preferences(args.preferences)
    classifier = create_classifier(settings) if args.ai else None

    options = ScanOptions(
        root_path=str(Path(args.root).expanduser().resolve()),
        ignore_patterns=list(preferences.ignore_patterns) + list(args.ignore or []),
        include_hidden=args.include_hidden,
        max_depth=args.max_depth if args.max_depth is not None else settings.max_depth,
        use_ai=classifier is not None,
        extract_metadata=not args.no_metadata,
        review_threshold=preferences.review_threshold,
        classifier_workers=settings.classifier_workers,
    )

    builder = ManifestBuilder(settings, preferences, classifier=classifier)
    manifest = builder.build(options)
    path = store.save_manifest(manifest)

    s = manifest.summary
    print(f"Manifest {manifest.id}: {s.total_items} items")
    print(
        f"  Projects: {s.project_roots}  Documents: {s.documents}  Media: {s.media}  "
        f"Archives: {s.archives}  Code: {s.code}  Generated: {s.generated}  Unknown: {s.unknown}"
    )
    print(f"  Confidence: high {s.high_confidence}, medium {s.medium_confidence}, low {s.low_confidence}")
    print(f"  Saved to {path}")
    return EXIT_OK


def run_plan(args, settings: Settings, store: ArtifactStore) -> int:
    """Build a plan from a saved manifest"""
    manifest = store.load_manifest(_resolve_id(store, "manifest", args.manifest))
    preferences = load_preferences(args.preferences)

    plan, _rollback = PlanBuilder(settings).build(
        manifest, str(Path(args.dest).expanduser().resolve()), preferences
    )
    path = store.save_plan(plan)

    s = plan.summary
    print(f"Plan {plan.id}: {s.total_actions} actions ({s.moves} moves, {s.renames} renames, {s.skips} skips)")
    for warning in plan.safety_check.warnings:
        print(f"  WARNING: {warning}")
    print(f"  Saved to {path}")

    if not plan.safety_check.passed:
        print("  SAFETY CHECK FAILED - this plan will not be executed:")
        for error in plan.safety_check.errors:
            print(f"    - {error}")
        return EXIT_UNSAFE_PLAN
    return EXIT_OK


def run_execute(args, settings: Settings, store: ArtifactStore) -> int:
    """Execute a saved plan"""
    plan = store.load_plan(_resolve_id(store, "plan", args.plan))
    report = Executor().execute(plan, dry_run=args.dry_run, selected_action_ids=args.action)

    if not args.dry_run:
        # Earlier runs of the same plan keep their undo entries
        report.rollback = store.merge_rollback(report.rollback)
        store.save_execution_report(report)
    log_path = write_execution_log(report, plan, store.base_dir / "logs")

    s = report.summary
    prefix = "[DRY RUN] " if args.dry_run else ""
    print(f"{prefix}Plan {plan.id}: {s.completed} completed, {s.failed} failed, {s.skipped} skipped")
    print(f"  Log: {log_path}")
    return EXIT_ERROR if s.failed else EXIT_OK


def run_undo(args, settings: Settings, store: ArtifactStore) -> int:
    """Undo a previous execution"""
    plan_id = _resolve_id(store, "rollback", args.plan)
    rollback = store.load_rollback(plan_id)
    report = Executor().undo(rollback, dry_run=args.dry_run)

    if not args.dry_run:
        # Whatever could not be undone stays available for another attempt
        store.save_rollback(report.rollback)

    s = report.summary
    prefix = "[DRY RUN] " if args.dry_run else ""
    print(f"{prefix}Undo of plan {plan_id}: {s.completed} restored, {s.failed} failed")
    for result in report.results:
        if result.error:
            print(f"  - {result.error}")
    return EXIT_ERROR if s.failed else EXIT_OK


def run_status(args, settings: Settings, store: ArtifactStore) -> int:
    """Show configuration, classifier reachability and latest artifacts"""
    print(f"Tidy AI {__version__}")
    print(f"  Data directory: {store.base_dir}")
    print(f"  AI provider: {settings.ai_provider}")

    classifier = create_classifier(settings)
    if classifier is None:
        print("  Classifier: disabled")
    else:
        status = classifier.check_connection()
        if status.ok:
            print(f"  Classifier: connected ({status.version or status.provider})")
        else:
            print(f"  Classifier: unreachable ({status.error})")

    for prefix in ("manifest", "plan", "rollback"):
        print(f"  Latest {prefix}: {store.latest_id(prefix) or '-'}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tidyai",
        description="Tidy AI - safe, reviewable, reversible folder organization",
    )
    parser.add_argument("--version", action="version", version=f"tidyai {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--data-dir", help="Where artifacts are stored (overrides TIDYAI_DATA_DIR)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Scan a directory and build a manifest")
    scan_parser.add_argument("root", help="Directory to scan")
    scan_parser.add_argument("--preferences", type=Path, help="Preferences YAML file")
    scan_parser.add_argument("--ai", action="store_true", help="Escalate documents to the AI classifier")
    scan_parser.add_argument("--include-hidden", action="store_true", help="Include hidden files")
    scan_parser.add_argument("--no-metadata", action="store_true", help="Skip PDF metadata extraction")
    scan_parser.add_argument("--max-depth", type=int, help="Maximum directory depth")
    scan_parser.add_argument(
        "--ignore", action="append", metavar="PATTERN", help="Extra ignore pattern (repeatable)"
    )

    # plan command
    plan_parser = subparsers.add_parser("plan", help="Build a plan from a manifest")
    plan_parser.add_argument("dest", help="Destination root directory")
    plan_parser.add_argument("--manifest", help="Manifest id (default: latest)")
    plan_parser.add_argument("--preferences", type=Path, help="Preferences YAML file")

    # execute command
    execute_parser = subparsers.add_parser("execute", help="Execute a plan")
    execute_parser.add_argument("--plan", help="Plan id (default: latest)")
    execute_parser.add_argument("--dry-run", action="store_true", help="Preview without moving files")
    execute_parser.add_argument(
        "--action", action="append", metavar="ID", help="Execute only this action id (repeatable)"
    )

    # undo command
    undo_parser = subparsers.add_parser("undo", help="Undo an execution")
    undo_parser.add_argument("--plan", help="Plan id whose execution to undo (default: latest)")
    undo_parser.add_argument("--dry-run", action="store_true", help="Preview without moving files")

    # status command
    subparsers.add_parser("status", help="Show configuration and classifier status")

    return parser


COMMANDS = {
    "scan": run_scan,
    "plan": run_plan,
    "execute": run_execute,
    "undo": run_undo,
    "status": run_status,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    configure_logging(verbose=args.verbose)

    settings = Settings()
    store = ArtifactStore(Path(args.data_dir or settings.data_dir).expanduser())

    try:
        return COMMANDS[args.command](args, settings, store)
    except PlanSafetyError as e:
        logger.error(f"{args.command} refused: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_UNSAFE_PLAN
    except TidyAIError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
