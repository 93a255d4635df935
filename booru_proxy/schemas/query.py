"""Canonical image search query."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TAG_PATTERN = re.compile(r"^[A-Za-z0-9_:-]+$")
TAG_DISALLOWED = re.compile(r"[^A-Za-z0-9_:-]")
MAX_TAGS = 6
DEFAULT_LIMIT = 20
MAX_LIMIT = 100

SortOrder = Literal["date", "popular", "random"]
SORT_ORDERS: tuple[str, ...] = ("date", "popular", "random")
DEFAULT_SORT: SortOrder = "date"
DEFAULT_SOURCE = "gelbooru"


class CanonicalQuery(BaseModel):
    """Validated, defaulted representation of a client's search request.

    Build instances through ``normalize_query``; the validators here only
    guard the invariants and reject anything the normalizer would never emit.
    """

    model_config = ConfigDict(frozen=True)

    tags: tuple[str, ...] = Field(default=(), max_length=MAX_TAGS)
    page: int = Field(default=0, ge=0)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    sort: SortOrder = DEFAULT_SORT
    source: str = DEFAULT_SOURCE

    @field_validator("tags")
    @classmethod
    def _tags_match_charset(cls, tags: tuple[str, ...]) -> tuple[str, ...]:
        for tag in tags:
            if not TAG_PATTERN.fullmatch(tag):
                raise ValueError(f"invalid tag: {tag!r}")
        return tags

    @property
    def tag_string(self) -> str:
        """Tags joined the way boorus expect them (space separated)."""
        return " ".join(self.tags)
