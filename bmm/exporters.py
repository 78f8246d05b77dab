"""
Output renderers for bmm.

Bookmarks, tag names and tag statistics can be written as plain text, JSON
or CSV ("delimited").
"""
import csv
import json
import sys
from typing import Any, Dict, List, Optional, Sequence, TextIO

from bmm.models import Bookmark
from bmm.query import TagStats

FORMATS = ("plain", "json", "delimited")
NOT_SET = "<NOT SET>"


def _check_format(format: str):
    if format not in FORMATS:
        raise ValueError(f"Unknown format: {format}")


def bookmark_to_dict(bookmark: Bookmark) -> Dict[str, Any]:
    return {
        "uri": bookmark.uri,
        "title": bookmark.title,
        "tags": ",".join(bookmark.tag_names) or None,
        "created_at": bookmark.created_at,
        "updated_at": bookmark.updated_at,
    }


def render_bookmarks(bookmarks: Sequence[Bookmark], format: str = "plain", file: Optional[TextIO] = None) -> None:
    """
    Write bookmarks.

    Args:
        bookmarks: Bookmarks to render
        format: plain (one URI per line), json or delimited
        file: Output stream (stdout by default)
    """
    _check_format(format)
    file = file or sys.stdout

    if format == "plain":
        for b in bookmarks:
            file.write(f"{b.uri}\n")
    elif format == "json":
        json.dump([bookmark_to_dict(b) for b in bookmarks], file, indent=2, ensure_ascii=False)
        file.write("\n")
    else:
        writer = csv.writer(file)
        writer.writerow(["uri", "title", "tags", "created_at", "updated_at"])
        for b in bookmarks:
            row = bookmark_to_dict(b)
            writer.writerow([
                row["uri"],
                row["title"] or "",
                row["tags"] or "",
                row["created_at"],
                row["updated_at"],
            ])


def render_tags(names: Sequence[str], format: str = "plain", file: Optional[TextIO] = None) -> None:
    """Write tag names."""
    _check_format(format)
    file = file or sys.stdout

    if format == "plain":
        for name in names:
            file.write(f"{name}\n")
    elif format == "json":
        json.dump(list(names), file, indent=2)
        file.write("\n")
    else:
        writer = csv.writer(file)
        writer.writerow(["name"])
        for name in names:
            writer.writerow([name])


def render_tag_stats(stats: Sequence[TagStats], format: str = "plain", file: Optional[TextIO] = None) -> None:
    """Write tags with their bookmark counts."""
    _check_format(format)
    file = file or sys.stdout

    if format == "plain":
        for s in stats:
            file.write(f"{s}\n")
    elif format == "json":
        data: List[Dict[str, Any]] = [{"name": s.name, "num_bookmarks": s.num_bookmarks} for s in stats]
        json.dump(data, file, indent=2)
        file.write("\n")
    else:
        writer = csv.writer(file)
        writer.writerow(["name", "num_bookmarks"])
        for s in stats:
            writer.writerow([s.name, s.num_bookmarks])


def render_bookmark_details(bookmark: Bookmark) -> str:
    """Human-readable block describing one bookmark."""
    return (
        "Bookmark details\n"
        "---\n"
        "\n"
        f"Title: {bookmark.title or NOT_SET}\n"
        f"URI  : {bookmark.uri}\n"
        f"Tags : {','.join(bookmark.tag_names) or NOT_SET}"
    )
