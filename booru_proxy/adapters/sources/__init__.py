"""Source adapters - one per upstream image board."""

from booru_proxy.adapters.sources.base import AbstractSourceAdapter
from booru_proxy.adapters.sources.danbooru import DanbooruAdapter
from booru_proxy.adapters.sources.gelbooru import GelbooruAdapter
from booru_proxy.adapters.sources.registry import SourceRegistry, create_source_registry

__all__ = [
    "AbstractSourceAdapter",
    "DanbooruAdapter",
    "GelbooruAdapter",
    "SourceRegistry",
    "create_source_registry",
]
