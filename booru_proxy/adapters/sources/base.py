"""Source adapter interface.

An adapter knows three things about one upstream board: how to build its
search URL (including its pagination base and sort syntax), where the posts
sit in its JSON body, and how each raw post maps onto ``Post``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Mapping, Sequence

import httpx

from booru_proxy.schemas.posts import CanonicalResult, Post
from booru_proxy.schemas.query import CanonicalQuery, SortOrder

RawPost = Mapping[str, Any]


def as_str(value: Any) -> str:
    """Coerce an upstream field to a string, ``""`` when absent."""
    if value is None:
        return ""
    return str(value)


def as_int(value: Any) -> int | None:
    """Coerce an upstream numeric field, None when absent or non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class AbstractSourceAdapter(ABC):
    """Interface for one upstream image board."""

    key: ClassVar[str]
    base_page_index: ClassVar[int]
    sort_tokens: ClassVar[Mapping[SortOrder, str]]

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def upstream_page(self, query: CanonicalQuery) -> int:
        """Translate the 0-based canonical page into the board's convention."""
        return query.page + self.base_page_index

    def upstream_tags(self, query: CanonicalQuery) -> str:
        """Canonical tags followed by the board's sort token."""
        return " ".join((*query.tags, self.sort_tokens[query.sort]))

    @abstractmethod
    def build_url(self, query: CanonicalQuery) -> httpx.URL:
        """Return the fully parameterized search URL for ``query``."""
        raise NotImplementedError

    @abstractmethod
    def extract_posts(self, body: Any) -> Sequence[RawPost]:
        """Pull the raw post objects out of a decoded response body."""
        raise NotImplementedError

    @abstractmethod
    def map_post(self, raw: RawPost) -> Post:
        """Map one raw post onto the canonical ``Post`` shape."""
        raise NotImplementedError

    def map_result(self, body: Any) -> CanonicalResult:
        """Extract and map every post; entries that are not objects are skipped."""
        posts = tuple(
            self.map_post(raw) for raw in self.extract_posts(body) if isinstance(raw, Mapping)
        )
        return CanonicalResult(posts=posts)
