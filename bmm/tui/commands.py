"""Side effects requested by ``update`` and carried out by the dispatcher."""
from dataclasses import dataclass

from bmm.query import SearchTerms


@dataclass(frozen=True)
class OpenInBrowser:
    uri: str


@dataclass(frozen=True)
class RunSearch:
    terms: SearchTerms


@dataclass(frozen=True)
class FetchTags:
    pass


@dataclass(frozen=True)
class FetchBookmarksForTag:
    tag: str
