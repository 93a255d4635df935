"""Gelbooru DAPI adapter."""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from booru_proxy.adapters.sources.base import AbstractSourceAdapter, RawPost, as_int, as_str
from booru_proxy.schemas.posts import Post
from booru_proxy.schemas.query import CanonicalQuery


class GelbooruAdapter(AbstractSourceAdapter):
    """Gelbooru: 0-based ``pid`` pagination, ``sort:`` meta-tags.

    The JSON API wraps posts in ``{"@attributes": ..., "post": [...]}`` and
    omits ``post`` entirely when a search has no results.
    """

    key = "gelbooru"
    base_page_index = 0
    sort_tokens = {
        "date": "sort:id:desc",
        "popular": "sort:score:desc",
        "random": "sort:random",
    }

    def build_url(self, query: CanonicalQuery) -> httpx.URL:
        return httpx.URL(
            f"{self.base_url}/index.php",
            params={
                "page": "dapi",
                "s": "post",
                "q": "index",
                "json": "1",
                "tags": self.upstream_tags(query),
                "pid": self.upstream_page(query),
                "limit": query.limit,
            },
        )

    def extract_posts(self, body: Any) -> Sequence[RawPost]:
        if isinstance(body, dict):
            posts = body.get("post")
            if isinstance(posts, list):
                return posts
        return []

    def map_post(self, raw: RawPost) -> Post:
        sample_url = as_str(raw.get("sample_url"))
        return Post(
            id=as_int(raw.get("id")),
            tags=as_str(raw.get("tags")),
            preview_url=as_str(raw.get("preview_url")),
            file_url=as_str(raw.get("file_url")) or sample_url,
            sample_url=sample_url,
            width=as_int(raw.get("width")),
            height=as_int(raw.get("height")),
            rating=as_str(raw.get("rating")) or None,
            source=as_str(raw.get("source")),
            score=as_int(raw.get("score")),
        )
