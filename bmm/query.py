"""
Query/filter engine for bmm.

Two disjoint ways of asking the store for bookmarks:

- ``FieldFilter``: AND-combination of an optional URI substring, an optional
  title substring and a tag superset test (the bookmark must carry every tag
  named, extra tags are fine). An empty filter matches everything.
- ``SearchTerms``: free-text terms. Every term has to match the URI, the title
  or any one of the tags as a substring; different terms may match different
  fields.

Each query object can express itself as SQLAlchemy clauses (``clauses()``),
which is what the store executes, and as a Python predicate (``matches()``)
with the same semantics. Only the clauses reach the database; the predicates
are there so the SQL can be checked against them. Substring tests are
case-insensitive, the way SQLite's ``LIKE`` treats ASCII text; tag names in a
``FieldFilter`` are compared exactly and are never case-folded here.

Results are always ordered most recently updated first.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from bmm.models import Bookmark, Tag

MAX_SEARCH_TERMS = 10
DEFAULT_LIMIT = 10000


class SearchTermsError(ValueError):
    """Free-text input can't be turned into search terms."""


class EmptySearchQueryError(SearchTermsError):
    def __init__(self):
        super().__init__("query is empty")


class TooManySearchTermsError(SearchTermsError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"too many terms: {count} (max: {MAX_SEARCH_TERMS})")


def _contains(haystack: Optional[str], needle: str) -> bool:
    if haystack is None:
        return False
    return needle.lower() in haystack.lower()


@dataclass(frozen=True)
class SearchTerms:
    """Validated free-text search terms: sorted, unique, 1 to 10 entries."""
    terms: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "terms", tuple(sorted(set(self.terms))))
        if not self.terms:
            raise EmptySearchQueryError()
        if len(self.terms) > MAX_SEARCH_TERMS:
            raise TooManySearchTermsError(len(self.terms))

    @classmethod
    def parse(cls, raw: Union[str, Sequence[str]]) -> "SearchTerms":
        """
        Build search terms from raw input.

        Args:
            raw: A whitespace-separated string or a sequence of such strings

        Returns:
            SearchTerms with duplicates removed and terms sorted

        Raises:
            EmptySearchQueryError: Nothing left after trimming
            TooManySearchTermsError: More than 10 distinct terms
        """
        if isinstance(raw, str):
            raw = [raw]
        terms = []
        for chunk in raw:
            terms.extend(chunk.split())
        return cls(tuple(terms))

    def __iter__(self):
        return iter(self.terms)

    def __len__(self):
        return len(self.terms)

    def __str__(self):
        return " ".join(self.terms)

    def clauses(self) -> List[ColumnElement]:
        clauses = []
        for term in self.terms:
            clauses.append(or_(
                Bookmark.uri.contains(term, autoescape=True),
                Bookmark.title.contains(term, autoescape=True),
                Bookmark.tags.any(Tag.name.contains(term, autoescape=True)),
            ))
        return clauses

    def matches(self, bookmark) -> bool:
        """
        Python mirror of ``clauses()``.

        The store never calls this; tests use it to check the SQL against a
        plain reading of the rules.
        """
        tags = list(bookmark.tag_names)
        for term in self.terms:
            if _contains(bookmark.uri, term) or _contains(bookmark.title, term):
                continue
            if any(_contains(tag, term) for tag in tags):
                continue
            return False
        return True


@dataclass(frozen=True)
class FieldFilter:
    """Fielded filter; fields left unset don't constrain the result."""
    uri: Optional[str] = None
    title: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def create(
        cls,
        uri: Optional[str] = None,
        title: Optional[str] = None,
        tags: Iterable[str] = ()
    ) -> "FieldFilter":
        return cls(uri=uri or None, title=title or None, tags=tuple(tags))

    @property
    def is_empty(self) -> bool:
        return self.uri is None and self.title is None and not self.tags

    def clauses(self) -> List[ColumnElement]:
        clauses = []
        if self.uri is not None:
            clauses.append(Bookmark.uri.contains(self.uri, autoescape=True))
        if self.title is not None:
            clauses.append(Bookmark.title.contains(self.title, autoescape=True))
        # Superset test: one EXISTS per required tag
        for tag in self.tags:
            clauses.append(Bookmark.tags.any(Tag.name == tag))
        return clauses

    def matches(self, bookmark) -> bool:
        """Python mirror of ``clauses()``, used to cross-check the SQL."""
        if self.uri is not None and not _contains(bookmark.uri, self.uri):
            return False
        if self.title is not None and not _contains(bookmark.title, self.title):
            return False
        return set(self.tags).issubset(bookmark.tag_names)


@dataclass(frozen=True)
class TagStats:
    """A tag together with the number of bookmarks carrying it."""
    name: str
    num_bookmarks: int

    def __str__(self):
        noun = "bookmark" if self.num_bookmarks == 1 else "bookmarks"
        return f"{self.name} ({self.num_bookmarks} {noun})"


def build_statement(query: Union[FieldFilter, SearchTerms], limit: Optional[int] = DEFAULT_LIMIT):
    """
    Translate a query object into a SELECT over bookmarks.

    Ordering is ``updated_at`` descending; ties fall back to ``id`` descending
    so repeated calls on unchanged data return the same order.
    """
    stmt = select(Bookmark).options(selectinload(Bookmark.tags))
    clauses = query.clauses()
    if clauses:
        stmt = stmt.where(and_(*clauses))
    stmt = stmt.order_by(Bookmark.updated_at.desc(), Bookmark.id.desc())
    if limit:
        stmt = stmt.limit(limit)
    return stmt

