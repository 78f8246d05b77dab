"""
Validation helpers for bookmarks and tags.

Everything that enters the store goes through ``DraftBookmark.create`` first:
URIs must parse, titles are trimmed and length-checked, tags are validated,
lower-cased, deduplicated and sorted.
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from bmm.models import TITLE_MAX_LENGTH, TAG_MAX_LENGTH

TAG_PATTERN = rf"^[a-zA-Z0-9_-]{{1,{TAG_MAX_LENGTH}}}$"
_TAG_RE = re.compile(TAG_PATTERN)
_WHITESPACE_RE = re.compile(r"\s+")


class BmmError(Exception):
    """Base class for errors surfaced to the user."""


class BookmarkValidationError(BmmError, ValueError):
    """A bookmark's details failed validation."""


class InvalidUriError(BookmarkValidationError):
    def __init__(self, uri: str, reason: str = "missing scheme or location"):
        self.uri = uri
        super().__init__(f"couldn't parse provided uri value '{uri}': {reason}")


class TitleTooLongError(BookmarkValidationError):
    def __init__(self, length: int):
        self.length = length
        super().__init__(f"title is too long: {length} (max: {TITLE_MAX_LENGTH})")


class InvalidTagsError(BookmarkValidationError):
    def __init__(self, tags: List[str]):
        self.tags = tags
        super().__init__(f"tags {tags} are invalid (valid regex: {TAG_PATTERN})")


def parse_tag(name: str) -> str:
    """
    Validate a single tag name.

    Returns:
        The trimmed, lower-cased tag

    Raises:
        InvalidTagsError: If the tag doesn't match the tag pattern
    """
    trimmed = name.strip()
    if not trimmed or not _TAG_RE.match(trimmed):
        raise InvalidTagsError([name])
    return trimmed.lower()


def split_tags(value: Optional[str]) -> List[str]:
    """Split a comma-separated tag string, dropping blanks."""
    if not value:
        return []
    return [t.strip() for t in value.split(",") if t.strip()]


def validate_uri(uri: str) -> str:
    """Check that a URI has a scheme and something to point at."""
    uri = uri.strip()
    try:
        parsed = urlparse(uri)
    except ValueError as e:
        raise InvalidUriError(uri, str(e)) from e
    if not parsed.scheme or not (parsed.netloc or parsed.path):
        raise InvalidUriError(uri)
    return uri


def clean_title(title: Optional[str], ignore_attribute_errors: bool = False) -> Optional[str]:
    """Trim a title; empty becomes None, overlong either fails or gets truncated."""
    if title is None:
        return None
    trimmed = title.strip()
    if not trimmed:
        return None
    if len(trimmed) > TITLE_MAX_LENGTH:
        if not ignore_attribute_errors:
            raise TitleTooLongError(len(trimmed))
        trimmed = trimmed[:TITLE_MAX_LENGTH].rstrip()
    return trimmed


def clean_tags(tags: Iterable[str], ignore_attribute_errors: bool = False) -> List[str]:
    """Validate tags, returning them lower-cased, deduplicated and sorted."""
    valid = set()
    invalid = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        if ignore_attribute_errors:
            tag = _WHITESPACE_RE.sub("-", tag)
        try:
            valid.add(parse_tag(tag))
        except InvalidTagsError:
            invalid.append(tag)

    if invalid and not ignore_attribute_errors:
        raise InvalidTagsError(invalid)

    return sorted(valid)


@dataclass(frozen=True)
class DraftBookmark:
    """A validated bookmark that is ready to be saved."""
    uri: str
    title: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def create(
        cls,
        uri: str,
        title: Optional[str] = None,
        tags: Iterable[str] = (),
        ignore_attribute_errors: bool = False
    ) -> "DraftBookmark":
        """
        Build a draft from raw user input.

        Args:
            uri: The URI to save
            title: Optional title
            tags: Raw tag names
            ignore_attribute_errors: Truncate overlong titles and drop invalid
                tags instead of failing. The URI is always validated.

        Raises:
            BookmarkValidationError: If any attribute is invalid
        """
        return cls(
            uri=validate_uri(uri),
            title=clean_title(title, ignore_attribute_errors),
            tags=tuple(clean_tags(tags, ignore_attribute_errors)),
        )

    def to_dict(self) -> dict:
        return {"uri": self.uri, "title": self.title, "tags": list(self.tags)}
