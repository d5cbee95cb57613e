"""
Document Metadata Extraction

Best-effort metadata for documents:
- PDF info dictionary (title, author, subject, keywords, creation date)
  and first-page text via PyMuPDF
- Filename heuristics when embedded metadata is missing

Absence of any field is valid. Extraction never raises to the caller.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

from .models import DocumentMetadata

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 500

GENERIC_FOLDER_NAMES = {"downloads", "documents", "files", "desktop", "home"}

# "Subject - Title"
_SUBJECT_TITLE = re.compile(r"^([^-]+?)\s+-\s+(.+)$")
# "Title (Author)"
_TITLE_AUTHOR = re.compile(r"^(.+?)\s*\(([^)]+)\)$")
# "YYYY-MM-DD Title"
_DATE_TITLE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s+(.+)$")


def _parse_pdf_date(value: str) -> Optional[str]:
    """Parse a PDF date (D:YYYYMMDDHHmmSS...) into ISO-8601."""
    if not value:
        return None
    raw = value[2:] if value.startswith("D:") else value
    digits = re.match(r"\d{4,14}", raw)
    if not digits:
        return None
    stamp = digits.group().ljust(14, "0")
    # Pad month/day with "01" when only a year was given
    if stamp[4:6] == "00":
        stamp = stamp[:4] + "01" + stamp[6:]
    if stamp[6:8] == "00":
        stamp = stamp[:6] + "01" + stamp[8:]
    try:
        return datetime.strptime(stamp, "%Y%m%d%H%M%S").isoformat()
    except ValueError:
        return None


def _split_keywords(value: str) -> list:
    return [k.strip() for k in re.split(r"[,;]", value or "") if k.strip()]


def extract_pdf_metadata(pdf_path: Path) -> DocumentMetadata:
    """Extract metadata from a PDF file.

    Args:
        pdf_path: Path to the PDF

    Returns:
        DocumentMetadata; ``extraction_method`` is "pdf" when a title was
        found, "filename" when only other fields were, "none" on failure.
    """
    try:
        doc = fitz.open(pdf_path)
    except Exception as e:
        logger.warning(f"[METADATA] Cannot open PDF {pdf_path}: {e}")
        return DocumentMetadata(extraction_method="none")

    try:
        info = doc.metadata or {}
        snippet = None
        if doc.page_count > 0:
            text = doc[0].get_text().strip()
            if text:
                snippet = " ".join(text.split())[:SNIPPET_LENGTH]

        metadata = DocumentMetadata(
            title=(info.get("title") or "").strip() or None,
            author=(info.get("author") or "").strip() or None,
            subject=(info.get("subject") or "").strip() or None,
            keywords=_split_keywords(info.get("keywords")),
            creation_date=_parse_pdf_date(info.get("creationDate")),
            modification_date=_parse_pdf_date(info.get("modDate")),
            page_count=doc.page_count,
            first_page_snippet=snippet,
        )
    except Exception as e:
        logger.warning(f"[METADATA] Failed to read PDF metadata from {pdf_path}: {e}")
        return DocumentMetadata(extraction_method="none")
    finally:
        doc.close()

    metadata.extraction_method = "pdf" if metadata.title else "filename"
    return metadata


def extract_metadata_from_filename(filename: str) -> DocumentMetadata:
    """Infer title/subject/author/date from common filename patterns.

    Recognized patterns (first match wins):
        "2024-01-15 Title.pdf" -> title, creation date
        "Subject - Title.pdf"  -> subject, title
        "Title (Author).pdf"   -> title, author

    Falls back to the cleaned stem as title.
    """
    stem = Path(filename).stem
    metadata = DocumentMetadata(extraction_method="filename")

    match = _DATE_TITLE.match(stem)
    if match:
        metadata.title = match.group(2).strip()
        try:
            metadata.creation_date = datetime.strptime(match.group(1), "%Y-%m-%d").isoformat()
        except ValueError:
            pass
    elif _SUBJECT_TITLE.match(stem):
        match = _SUBJECT_TITLE.match(stem)
        metadata.subject = match.group(1).strip()
        metadata.title = match.group(2).strip()
    elif _TITLE_AUTHOR.match(stem):
        match = _TITLE_AUTHOR.match(stem)
        metadata.title = match.group(1).strip()
        metadata.author = match.group(2).strip()

    if not metadata.title:
        metadata.title = re.sub(r"\s+", " ", re.sub(r"[_-]", " ", stem)).strip()

    return metadata


def clean_title(title: str) -> str:
    """Normalize a title: separators to spaces, strip symbols, title case."""
    title = re.sub(r"[_-]", " ", title)
    title = re.sub(r"[^\w\s]", "", title)
    title = re.sub(r"\s+", " ", title).strip()
    return re.sub(r"\b\w", lambda m: m.group().upper(), title)


def generate_clean_title(metadata: Optional[DocumentMetadata], filename: str) -> str:
    """Pick the best title: embedded title > filename pattern > stem."""
    if metadata and metadata.title and len(metadata.title) > 3:
        cleaned = clean_title(metadata.title)
        if cleaned:
            return cleaned

    from_name = extract_metadata_from_filename(filename)
    if from_name.title:
        cleaned = clean_title(from_name.title)
        if cleaned:
            return cleaned

    return Path(filename).stem


def extract_folder_context(file_path: str) -> str:
    """Last few parent folder names, minus generic ones, as classifier context."""
    parents = Path(file_path).parts[:-1][-3:]
    relevant = [p for p in parents if p.lower() not in GENERIC_FOLDER_NAMES and p != "/"]
    return " / ".join(relevant)


class MetadataExtractor:
    """Pluggable extractor used by the manifest builder."""

    def extract(self, path: Path) -> DocumentMetadata:
        """Return best-effort metadata for ``path``.

        Only PDFs carry embedded metadata here; other documents get
        an empty result and rely on filename heuristics.
        """
        if Path(path).suffix.lower() == ".pdf":
            return extract_pdf_metadata(path)
        return DocumentMetadata(extraction_method="none")
