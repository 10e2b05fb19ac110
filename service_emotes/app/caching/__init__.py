"""
Emote caching package.

Provides the validated asset cache and the batch refresh engine that
rebuilds it. The cache serves reads from an immutable snapshot and
collapses concurrent refreshes into one pass against the marketplace.
"""

from .asset_cache import AssetCache
from .refresh_engine import BatchRefreshEngine

__all__ = [
    "AssetCache",
    "BatchRefreshEngine",
]
