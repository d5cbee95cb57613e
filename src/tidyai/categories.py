"""Extension -> category tables used for first-pass classification."""

from typing import Optional

from .models import EntryKind

CATEGORY_MAP = {
    "Images": ["png", "jpg", "jpeg", "heic", "gif", "webp"],
    "Documents": ["pdf", "doc", "docx", "ppt", "pptx", "txt", "md", "rtf", "odt"],
    "Spreadsheets": ["xls", "xlsx", "csv"],
    "Audio": ["mp3", "wav", "m4a", "flac"],
    "Videos": ["mp4", "mov", "avi", "mkv"],
    "Apps": ["dmg", "pkg"],
    "Archives": ["zip", "rar", "7z", "tar", "gz"],
    "Code": ["py", "js", "ts", "java", "cpp", "c", "h", "json", "html", "css", "ipynb"],
}

# Build reverse lookup: extension -> category
EXTENSION_TO_CATEGORY = {}
for _category, _extensions in CATEGORY_MAP.items():
    for _ext in _extensions:
        EXTENSION_TO_CATEGORY.setdefault(_ext, _category)

DOCUMENT_EXTENSIONS = {".pdf", ".doc", ".docx", ".txt", ".md", ".rtf", ".odt"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".heic", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv"}
AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a", ".flac"}
ARCHIVE_EXTENSIONS = {".zip", ".tar", ".gz", ".7z", ".rar"}
CODE_EXTENSIONS = {".js", ".ts", ".py", ".java", ".cpp", ".c", ".h"}

# (extensions, kind, category, confidence, group?, signal) for deterministic types
DETERMINISTIC_TYPES = [
    (IMAGE_EXTENSIONS, EntryKind.MEDIA, "Images", 0.8, True, "Image file"),
    (VIDEO_EXTENSIONS, EntryKind.MEDIA, "Videos", 0.8, True, "Video file"),
    (AUDIO_EXTENSIONS, EntryKind.MEDIA, "Audio", 0.8, True, "Audio file"),
    (ARCHIVE_EXTENSIONS, EntryKind.ARCHIVE, "Archives", 0.9, True, "Archive file"),
    # Loose code files need careful handling, so they go to review
    (CODE_EXTENSIONS, EntryKind.CODE, "Code", 0.7, False, "Source code file"),
]

GENERIC_FILENAMES = [
    "download",
    "file",
    "document",
    "untitled",
    "final",
    "new",
    "temp",
    "copy",
    "image",
    "photo",
    "video",
    "audio",
]


def get_category_from_extension(ext: str) -> Optional[str]:
    """Return the category for an extension (with or without dot), or None."""
    return EXTENSION_TO_CATEGORY.get(ext.lower().lstrip("."))


def is_generic_filename(filename: str) -> bool:
    """True if the filename carries no useful signal (download, untitled, ...)."""
    lower = filename.lower()
    return any(generic in lower for generic in GENERIC_FILENAMES)
