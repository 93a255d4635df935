"""Immutable lookup table of source adapters."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from booru_proxy.adapters.sources.base import AbstractSourceAdapter
from booru_proxy.adapters.sources.danbooru import DanbooruAdapter
from booru_proxy.adapters.sources.gelbooru import GelbooruAdapter
from booru_proxy.core.config import UpstreamSettings


class SourceRegistry(Mapping[str, AbstractSourceAdapter]):
    """Adapters keyed by source name, frozen at construction."""

    def __init__(self, adapters: Iterable[AbstractSourceAdapter]) -> None:
        table: dict[str, AbstractSourceAdapter] = {}
        for adapter in adapters:
            if adapter.key in table:
                raise ValueError(f"Duplicate source adapter: '{adapter.key}'")
            table[adapter.key] = adapter
        self._adapters: Mapping[str, AbstractSourceAdapter] = MappingProxyType(table)

    def __getitem__(self, key: str) -> AbstractSourceAdapter:
        return self._adapters[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def resolve(self, source: str) -> AbstractSourceAdapter:
        """Return the adapter for ``source``.

        Raises:
            KeyError: If no adapter is registered under ``source``.
        """
        try:
            return self._adapters[source]
        except KeyError:
            raise KeyError(
                f"Unknown source: '{source}'. Registered sources: {', '.join(self._adapters)}"
            ) from None


def create_source_registry(upstream: UpstreamSettings) -> SourceRegistry:
    """Build the registry of every supported board from configuration."""
    return SourceRegistry(
        [
            GelbooruAdapter(upstream.gelbooru_base_url),
            DanbooruAdapter(upstream.danbooru_base_url),
        ]
    )
