"""
In-memory cache package.

Single-process TTL stores shared by the weather and AI text services.
"""

from services.api.cache.store import CacheStats, TTLCache

__all__ = ["CacheStats", "TTLCache"]
