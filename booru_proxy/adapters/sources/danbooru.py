"""Danbooru ``posts.json`` adapter."""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from booru_proxy.adapters.sources.base import AbstractSourceAdapter, RawPost, as_int, as_str
from booru_proxy.schemas.posts import Post
from booru_proxy.schemas.query import CanonicalQuery


class DanbooruAdapter(AbstractSourceAdapter):
    """Danbooru: 1-based ``page`` pagination, ``order:`` meta-tags.

    The response is a bare JSON array. File URLs may be host-relative and are
    resolved against the configured Danbooru host.
    """

    key = "danbooru"
    base_page_index = 1
    sort_tokens = {
        "date": "order:id",
        "popular": "order:rank",
        "random": "order:random",
    }

    def build_url(self, query: CanonicalQuery) -> httpx.URL:
        return httpx.URL(
            f"{self.base_url}/posts.json",
            params={
                "tags": self.upstream_tags(query),
                "page": self.upstream_page(query),
                "limit": query.limit,
            },
        )

    def extract_posts(self, body: Any) -> Sequence[RawPost]:
        return body if isinstance(body, list) else []

    def absolute_url(self, value: Any) -> str:
        url = as_str(value)
        if not url or url.startswith(("http://", "https://")):
            return url
        if url.startswith("//"):
            scheme = httpx.URL(self.base_url).scheme or "https"
            return f"{scheme}:{url}"
        return f"{self.base_url}/{url.lstrip('/')}"

    def map_post(self, raw: RawPost) -> Post:
        return Post(
            id=as_int(raw.get("id")),
            tags=as_str(raw.get("tag_string")),
            preview_url=self.absolute_url(raw.get("preview_file_url")),
            file_url=self.absolute_url(raw.get("file_url")),
            sample_url=self.absolute_url(raw.get("large_file_url")),
            width=as_int(raw.get("image_width")),
            height=as_int(raw.get("image_height")),
            rating=as_str(raw.get("rating")) or None,
            source=as_str(raw.get("source")),
            score=as_int(raw.get("score")),
        )
