"""
README service caching package.

Provides the in-process cache used to front the registry tools. Entries are
TTL-bound (refreshed on read), size-bounded with LRU eviction, and swept in
the background.
"""

from .memory_cache import CacheEntry, MemoryCache
from . import keys

__all__ = ["CacheEntry", "MemoryCache", "keys"]
