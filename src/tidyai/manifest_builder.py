"""
Manifest Builder - PHASE 1 of MANIFEST -> PLAN -> EXECUTE

Scans a directory tree and produces a manifest:
- Project root detection (deterministic, first pass)
- One entry per project root / generated folder / loose file
- Extension-based classification with confidence scoring
- Document metadata extraction (PDF info + filename heuristics)
- Optional escalation of documents to an external classifier

The walk is read-only. A classifier failure never aborts the scan; the
entry keeps its extension-based classification.

Usage:
    builder = ManifestBuilder(settings, preferences, classifier=create_classifier(settings))
    manifest = builder.build(ScanOptions(root_path="/home/me/Downloads", use_ai=True))
"""

import concurrent.futures
import logging
import os
import re
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .categories import (DETERMINISTIC_TYPES, DOCUMENT_EXTENSIONS,
                         get_category_from_extension)
from .classifier.base import (Classifier, ClassificationRequest,
                              validate_classification)
from .config import Settings, UserPreferences
from .metadata_extractor import (MetadataExtractor,
                                 extract_folder_context,
                                 extract_metadata_from_filename)
from .models import (EntryKind, Handling, Manifest, ManifestEntry,
                     ManifestSummary, ProjectRootDetection, ScanOptions,
                     utc_now_iso)
from .project_detector import (VCS_MARKER, describe_project,
                               find_containing_project_root,
                               find_project_roots, is_generated_folder,
                               should_descend)

logger = logging.getLogger(__name__)

# Confidence at or above which an entry is eligible for grouping
GROUP_THRESHOLD = 0.7
UNKNOWN_CONFIDENCE = 0.3
DOCUMENT_WITH_TITLE_CONFIDENCE = 0.6
DOCUMENT_WITHOUT_TITLE_CONFIDENCE = 0.4

AI_FALLBACK_SIGNAL = "AI classification failed, using fallback"


def compile_ignore_pattern(pattern: str) -> "re.Pattern":
    """Compile a glob-like ignore pattern where ``*`` matches any sequence."""
    return re.compile("^" + re.escape(pattern).replace(r"\*", ".*") + "$")


def should_ignore(relative_path: str, patterns: List["re.Pattern"]) -> bool:
    """Check a scan-root-relative path (posix separators) against ignore patterns."""
    return any(p.match(relative_path) for p in patterns)


def _iso_mtime(stat_result: os.stat_result) -> str:
    return datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc).isoformat()


def _handling_for(confidence: float, review_threshold: float, default: Handling) -> Handling:
    if confidence >= GROUP_THRESHOLD:
        return Handling.GROUP
    if confidence < review_threshold:
        return Handling.REVIEW
    return default


class ManifestBuilder:
    """
    Build a manifest for a directory tree.

    Configuration is passed in explicitly; the builder holds no global state
    and can be reused for several scans.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        preferences: Optional[UserPreferences] = None,
        classifier: Optional[Classifier] = None,
        metadata_extractor: Optional[MetadataExtractor] = None,
    ):
        """
        Args:
            settings: Application settings (depth limit, worker count)
            preferences: User preferences (taxonomy rules)
            classifier: Optional external classifier for documents
            metadata_extractor: Document metadata extractor
        """
        self.settings = settings or Settings()
        self.preferences = preferences or UserPreferences()
        self.classifier = classifier
        self.metadata_extractor = metadata_extractor or MetadataExtractor()
        self._taxonomy = [
            (re.compile(rule.pattern, re.IGNORECASE), rule) for rule in self.preferences.taxonomy
        ]

    def build(self, options: ScanOptions) -> Manifest:
        """
        Scan ``options.root_path`` and build a manifest.

        Args:
            options: Scan options

        Returns:
            Manifest with entries in depth-first, name-sorted order

        Raises:
            ValueError: If the scan root is not a directory
        """
        root = Path(options.root_path)
        if not root.is_dir():
            raise ValueError(f"Scan root is not a directory: {root}")

        start = time.monotonic()
        manifest_id = uuid.uuid4().hex
        logger.info(f"[MANIFEST] Starting scan {manifest_id} of {root}")

        # Step 1: Find all project roots first
        project_roots = find_project_roots(root, options.max_depth, options.include_hidden)
        logger.info(f"[MANIFEST] Found {len(project_roots)} project roots")
        for root_path, detection in project_roots.items():
            logger.info(f"[MANIFEST]   - {root_path}: {describe_project(detection)}")

        # Step 2: Walk and classify
        entries: List[ManifestEntry] = []
        real_root = os.path.realpath(root)
        if real_root in project_roots:
            # The scan root is itself a project: it is the single, atomic entry
            entries.append(self._project_root_entry(root, ".", project_roots[real_root]))
        else:
            pending_ai = self._scan(root, options, project_roots, entries)
            self._classify_with_ai(pending_ai, options)

        # Step 3: Summary
        summary = self._summarize(entries)

        elapsed = time.monotonic() - start
        logger.info(f"[MANIFEST] Scanned {len(entries)} items in {elapsed:.2f}s")

        return Manifest(
            id=manifest_id,
            scan_root=str(root),
            created_at=utc_now_iso(),
            scan_options=options,
            entries=entries,
            summary=summary,
        )

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _scan(
        self,
        root: Path,
        options: ScanOptions,
        project_roots: Dict[str, ProjectRootDetection],
        entries: List[ManifestEntry],
    ) -> List[ManifestEntry]:
        """Iterative depth-first walk. Returns document entries awaiting AI."""
        ignore = [compile_ignore_pattern(p) for p in options.ignore_patterns]
        pending_ai: List[ManifestEntry] = []
        visited = set()
        emitted_roots = set()
        scan_real = os.path.realpath(root)
        stack = [(root, 0)]

        while stack:
            current, depth = stack.pop()
            if depth > options.max_depth:
                continue

            real = os.path.realpath(current)
            if real in visited:
                logger.debug(f"[MANIFEST] Skipping already visited {current}")
                continue
            visited.add(real)

            try:
                with os.scandir(current) as it:
                    children = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.warning(f"[MANIFEST] Cannot read {current}, skipping subtree: {e}")
                continue

            subdirs = []
            for child in children:
                name = child.name
                full_path = Path(child.path)
                relative = full_path.relative_to(root).as_posix()

                if not options.include_hidden and name.startswith(".") and name != VCS_MARKER:
                    continue
                if should_ignore(relative, ignore):
                    continue

                try:
                    is_dir = child.is_dir()
                    is_file = child.is_file()
                    is_link = child.is_symlink()
                except OSError:
                    continue

                if is_dir:
                    real = os.path.realpath(full_path)
                    if real in project_roots:
                        if is_link and real.startswith(scan_real + os.sep):
                            logger.debug(f"[MANIFEST] {relative} links to a project listed under its own path")
                            continue
                        if real in emitted_roots:
                            logger.debug(f"[MANIFEST] {relative} is another path to a listed project")
                            continue
                        emitted_roots.add(real)
                        entries.append(self._project_root_entry(full_path, relative, project_roots[real]))
                    elif is_generated_folder(name):
                        entries.append(self._generated_entry(full_path, relative))
                    elif should_descend(name, options.include_hidden):
                        subdirs.append(full_path)
                    else:
                        logger.debug(f"[MANIFEST] Not descending into {relative}")
                elif is_file:
                    entry = self._file_entry(full_path, relative, project_roots, options)
                    if entry is None:
                        continue
                    entries.append(entry)
                    if self._wants_ai(entry, options):
                        pending_ai.append(entry)

            # Pushed reversed so subdirectories are visited in name order
            for subdir in reversed(subdirs):
                stack.append((subdir, depth + 1))

        return pending_ai

    # ------------------------------------------------------------------
    # Entry construction
    # ------------------------------------------------------------------

    def _project_root_entry(
        self, full_path: Path, relative: str, detection: ProjectRootDetection
    ) -> ManifestEntry:
        stats = full_path.stat()
        kind_tag = detection.project_type.value if detection.project_type else "project"
        return ManifestEntry(
            path=str(full_path),
            relative_path=relative,
            name=full_path.name,
            extension="",
            size=stats.st_size,
            modified_at=_iso_mtime(stats),
            kind=EntryKind.PROJECT_ROOT,
            confidence=detection.confidence,
            signals=[f"Project signal: {s}" for s in detection.signals],
            project_root=detection,
            recommended_handling=Handling.KEEP,
            suggested_category="Projects",
            suggested_tags=[kind_tag],
        )

    def _generated_entry(self, full_path: Path, relative: str) -> ManifestEntry:
        stats = full_path.stat()
        return ManifestEntry(
            path=str(full_path),
            relative_path=relative,
            name=full_path.name,
            extension="",
            size=stats.st_size,
            modified_at=_iso_mtime(stats),
            kind=EntryKind.GENERATED,
            confidence=1.0,
            signals=[f"Generated folder: {full_path.name}"],
            recommended_handling=Handling.KEEP,
        )

    def _file_entry(
        self,
        full_path: Path,
        relative: str,
        project_roots: Dict[str, ProjectRootDetection],
        options: ScanOptions,
    ) -> Optional[ManifestEntry]:
        try:
            stats = full_path.stat()
        except OSError as e:
            logger.warning(f"[MANIFEST] Cannot stat {full_path}, skipping: {e}")
            return None

        entry = ManifestEntry(
            path=str(full_path),
            relative_path=relative,
            name=full_path.name,
            extension=full_path.suffix.lower(),
            size=stats.st_size,
            modified_at=_iso_mtime(stats),
        )

        containing = find_containing_project_root(entry.path, project_roots)
        if containing is not None:
            # Never second-guessed by later stages
            entry.inside_project_root = True
            entry.parent_project_root = containing
            entry.signals.append(f"Inside project root: {containing}")
            entry.recommended_handling = Handling.KEEP
            entry.confidence = 1.0
            return entry

        self.classify(entry, options)
        return entry

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, entry: ManifestEntry, options: ScanOptions) -> None:
        """Deterministic first-pass classification of a file entry (in place)."""
        basic_category = get_category_from_extension(entry.extension)
        if basic_category:
            entry.signals.append(f"Extension match: {basic_category}")

        if entry.extension in DOCUMENT_EXTENSIONS:
            self._classify_document(entry, basic_category, options)
            return

        for extensions, kind, category, confidence, group, signal in DETERMINISTIC_TYPES:
            if entry.extension in extensions:
                entry.kind = kind
                entry.confidence = confidence
                entry.suggested_category = category
                entry.recommended_handling = Handling.GROUP if group else Handling.REVIEW
                entry.signals.append(signal)
                return

        entry.kind = EntryKind.UNKNOWN
        entry.confidence = UNKNOWN_CONFIDENCE
        entry.suggested_category = basic_category
        entry.recommended_handling = Handling.REVIEW
        entry.signals.append("Unknown file type")

    def _classify_document(
        self, entry: ManifestEntry, basic_category: Optional[str], options: ScanOptions
    ) -> None:
        entry.kind = EntryKind.DOCUMENT

        if options.extract_metadata:
            metadata = self.metadata_extractor.extract(Path(entry.path))
            if metadata.title:
                entry.signals.append(f"Document title: {metadata.title}")
            if metadata.subject:
                entry.signals.append(f"Document subject: {metadata.subject}")
            entry.metadata = metadata

        if entry.metadata is None or not entry.metadata.title:
            from_name = extract_metadata_from_filename(entry.name)
            entry.metadata = entry.metadata.merge(from_name) if entry.metadata else from_name

        rule = self._match_taxonomy(entry)
        if rule is not None:
            entry.suggested_category = rule.category
            entry.confidence = rule.confidence
            entry.signals.append(f"Taxonomy rule: {rule.pattern} -> {rule.category}")
        else:
            entry.suggested_category = basic_category or "Documents"
            entry.confidence = (
                DOCUMENT_WITH_TITLE_CONFIDENCE
                if entry.metadata and entry.metadata.title
                else DOCUMENT_WITHOUT_TITLE_CONFIDENCE
            )

        entry.recommended_handling = _handling_for(
            entry.confidence, options.review_threshold, Handling.GROUP
        )

    def _match_taxonomy(self, entry: ManifestEntry):
        haystack = " ".join(
            part
            for part in (
                entry.name,
                entry.metadata.title if entry.metadata else None,
                entry.metadata.subject if entry.metadata else None,
            )
            if part
        )
        for pattern, rule in self._taxonomy:
            if pattern.search(haystack):
                return rule
        return None

    def _wants_ai(self, entry: ManifestEntry, options: ScanOptions) -> bool:
        return (
            options.use_ai
            and self.classifier is not None
            and entry.kind == EntryKind.DOCUMENT
            and entry.metadata is not None
        )

    def _classify_with_ai(self, entries: List[ManifestEntry], options: ScanOptions) -> None:
        """Escalate documents to the classifier, bounded by a worker pool."""
        if not entries:
            return

        workers = max(1, options.classifier_workers)
        logger.info(f"[MANIFEST] AI-classifying {len(entries)} documents ({workers} workers)")

        if workers == 1:
            for entry in entries:
                self._classify_document_with_ai(entry, options)
            return

        # Each task mutates only its own entry
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self._classify_document_with_ai, entry, options) for entry in entries
            ]
            for future in concurrent.futures.as_completed(futures):
                future.result()

    def _classify_document_with_ai(self, entry: ManifestEntry, options: ScanOptions) -> None:
        request = ClassificationRequest(
            filename=entry.name,
            extension=entry.extension,
            size=entry.size,
            metadata=entry.metadata,
            folder_context=extract_folder_context(entry.path),
        )

        provider = getattr(self.classifier, "provider", type(self.classifier).__name__)
        try:
            classification = validate_classification(self.classifier.classify(request), provider)
        except Exception as e:
            logger.warning(f"[MANIFEST] AI classification failed for {entry.name}: {e}")
            entry.signals.append(AI_FALLBACK_SIGNAL)
            return

        entry.suggested_category = classification.category
        entry.confidence = classification.confidence
        entry.signals.append(f"AI classification: {classification.reasoning}")

        if classification.subject:
            entry.metadata.subject = classification.subject
        if classification.title and not entry.metadata.title:
            entry.metadata.title = classification.title

        entry.recommended_handling = _handling_for(
            entry.confidence, options.review_threshold, Handling.REVIEW
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    @staticmethod
    def _summarize(entries: List[ManifestEntry]) -> ManifestSummary:
        summary = ManifestSummary(total_items=len(entries))
        kind_fields = {
            EntryKind.PROJECT_ROOT: "project_roots",
            EntryKind.DOCUMENT: "documents",
            EntryKind.MEDIA: "media",
            EntryKind.ARCHIVE: "archives",
            EntryKind.CODE: "code",
            EntryKind.GENERATED: "generated",
            EntryKind.UNKNOWN: "unknown",
        }

        for entry in entries:
            counter = kind_fields[entry.kind]
            setattr(summary, counter, getattr(summary, counter) + 1)

            if entry.confidence >= 0.8:
                summary.high_confidence += 1
            elif entry.confidence >= 0.5:
                summary.medium_confidence += 1
            else:
                summary.low_confidence += 1

        return summary
