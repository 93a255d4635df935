from __future__ import annotations

from typing import Any, Collection, Mapping

from booru_proxy.schemas.query import (
    DEFAULT_LIMIT,
    DEFAULT_SORT,
    DEFAULT_SOURCE,
    MAX_LIMIT,
    MAX_TAGS,
    SORT_ORDERS,
    TAG_DISALLOWED,
    TAG_PATTERN,
    CanonicalQuery,
)


def _first(value: Any) -> Any:
    # Repeated query parameters arrive as lists; the first one wins.
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _parse_int(value: Any) -> int | None:
    value = _first(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def normalize_tags(raw: Any) -> tuple[str, ...]:
    """Split, lower-case and sanitize a raw tag string.

    Characters outside ``[A-Za-z0-9_:-]`` are stripped from each token, tokens
    left empty are dropped, and at most the first six survivors are kept. An
    empty tuple means "no tag filter".
    """
    raw = _first(raw)
    if raw is None:
        return ()

    tokens = (TAG_DISALLOWED.sub("", token.lower()) for token in str(raw).split())
    valid = [token for token in tokens if token and TAG_PATTERN.fullmatch(token)]
    return tuple(valid[:MAX_TAGS])


def normalize_page(raw: Any) -> int:
    page = _parse_int(raw)
    if page is None or page < 0:
        return 0
    return page


def normalize_limit(raw: Any) -> int:
    limit = _parse_int(raw)
    if limit is None or limit < 1:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def normalize_sort(raw: Any) -> str:
    value = _first(raw)
    if isinstance(value, str) and value in SORT_ORDERS:
        return value
    return DEFAULT_SORT


def normalize_source(raw: Any, sources: Collection[str]) -> str:
    value = _first(raw)
    if isinstance(value, str) and value in sources:
        return value
    return DEFAULT_SOURCE


def normalize_query(
    params: Mapping[str, Any],
    *,
    sources: Collection[str] = (DEFAULT_SOURCE,),
) -> CanonicalQuery:
    """Turn raw query parameters into a ``CanonicalQuery``.

    Never raises for malformed input: every field that cannot be used as given
    falls back to its default or is clamped into range.

    Args:
        params: Raw parameters (``tags``, ``page``, ``limit``, ``sort``, ``source``).
        sources: Registered source keys accepted for ``source``.

    Returns:
        A well-formed CanonicalQuery.
    """
    return CanonicalQuery(
        tags=normalize_tags(params.get("tags")),
        page=normalize_page(params.get("page")),
        limit=normalize_limit(params.get("limit")),
        sort=normalize_sort(params.get("sort")),
        source=normalize_source(params.get("source"), sources),
    )
