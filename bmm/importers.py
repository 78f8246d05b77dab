"""
Importers for bmm.

Reads bookmarks from HTML, JSON or plain-text files. Every entry is validated
before anything is saved; if any entry is invalid, nothing is imported and all
problems are reported together.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple, Union

from bs4 import BeautifulSoup

from bmm.db import Database
from bmm.utils import BmmError, BookmarkValidationError, DraftBookmark, split_tags

logger = logging.getLogger(__name__)

IMPORT_UPPER_LIMIT = 9999

FORMATS = {
    ".html": "html",
    ".htm": "html",
    ".json": "json",
    ".txt": "txt",
}


class ImportFileError(BmmError):
    """A file couldn't be imported."""


class ImportValidationError(ImportFileError):
    """One or more entries in the file are invalid."""

    def __init__(self, errors: List[Tuple[int, BookmarkValidationError]]):
        self.errors = errors
        lines = [f"entry {index + 1}: {error}" for index, error in errors]
        noun = "entry has" if len(errors) == 1 else "entries have"
        super().__init__(f"{len(errors)} {noun} errors\n\n" + "\n".join(lines))


@dataclass
class ImportResult:
    drafts: List[DraftBookmark] = field(default_factory=list)
    saved: int = 0
    dry_run: bool = False


def import_file(
    db: Database,
    path: Union[str, Path],
    dry_run: bool = False,
    reset_missing: bool = False,
    ignore_attribute_errors: bool = False
) -> ImportResult:
    """
    Import bookmarks from a file.

    Args:
        db: Database instance
        path: File to import; the format comes from its extension
        dry_run: Validate and return the bookmarks without saving them
        reset_missing: Clear titles and replace tags of already saved bookmarks
        ignore_attribute_errors: Fix or drop invalid titles and tags instead of failing

    Returns:
        ImportResult with the validated drafts and the number saved

    Raises:
        ImportFileError: If the file can't be read or parsed, has too many
            entries, or contains invalid entries
    """
    path = Path(path)
    if not path.exists():
        raise ImportFileError(f"file doesn't exist: {path}")
    if not path.suffix:
        raise ImportFileError("file has no extension")

    format = FORMATS.get(path.suffix.lower())
    if format is None:
        supported = ", ".join(sorted({ext.lstrip(".") for ext in FORMATS}))
        raise ImportFileError(f'file format "{path.suffix.lstrip(".")}" not supported (supported formats: {supported})')

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFileError(f"couldn't read file: {e}") from e

    parsers: Dict[str, Callable[[str, bool], List[DraftBookmark]]] = {
        "html": parse_html,
        "json": parse_json,
        "txt": parse_text,
    }
    drafts = parsers[format](content, ignore_attribute_errors)

    if len(drafts) > IMPORT_UPPER_LIMIT:
        raise ImportFileError(
            f"file has too many bookmarks: {len(drafts)} (maximum allowed at a time: {IMPORT_UPPER_LIMIT})"
        )

    if dry_run:
        return ImportResult(drafts=drafts, dry_run=True)

    saved = db.save_all(drafts, reset_missing=reset_missing)
    logger.info("imported %d bookmarks from %s", saved, path)
    return ImportResult(drafts=drafts, saved=saved)


def _validate(entries: List[Dict[str, Any]], ignore_attribute_errors: bool) -> List[DraftBookmark]:
    drafts = []
    errors = []
    for index, entry in enumerate(entries):
        try:
            drafts.append(DraftBookmark.create(
                entry["uri"],
                title=entry.get("title"),
                tags=entry.get("tags") or [],
                ignore_attribute_errors=ignore_attribute_errors,
            ))
        except BookmarkValidationError as e:
            errors.append((index, e))

    if errors:
        raise ImportValidationError(errors)
    return drafts


def parse_html(content: str, ignore_attribute_errors: bool = False) -> List[DraftBookmark]:
    """Every ``<a href>``: link text as title, comma-separated ``tags`` attribute."""
    soup = BeautifulSoup(content, "html.parser")
    entries = []
    for link in soup.find_all("a"):
        entries.append({
            "uri": link.get("href", ""),
            "title": link.get_text(),
            "tags": split_tags(link.get("tags")),
        })
    return _validate(entries, ignore_attribute_errors)


def parse_json(content: str, ignore_attribute_errors: bool = False) -> List[DraftBookmark]:
    """A list of objects with ``uri`` and optional ``title`` and ``tags``."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ImportFileError(f"couldn't parse JSON input: {e}") from e

    if not isinstance(data, list):
        raise ImportFileError("couldn't parse JSON input: expected a list of bookmarks")

    entries = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or not isinstance(item.get("uri"), str):
            raise ImportFileError(f"couldn't parse JSON input: entry {index + 1} has no uri")
        title = item.get("title")
        if title is not None and not isinstance(title, str):
            raise ImportFileError(f"couldn't parse JSON input: entry {index + 1} has a non-string title")
        tags = item.get("tags") or []
        if isinstance(tags, str):
            tags = split_tags(tags)
        elif not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise ImportFileError(f"couldn't parse JSON input: entry {index + 1} has non-string tags")
        entries.append({"uri": item["uri"], "title": title, "tags": tags})
    return _validate(entries, ignore_attribute_errors)


def parse_text(content: str, ignore_attribute_errors: bool = False) -> List[DraftBookmark]:
    """One URI per line; blank lines are skipped."""
    entries = [{"uri": line.strip()} for line in content.splitlines() if line.strip()]
    return _validate(entries, ignore_attribute_errors)
