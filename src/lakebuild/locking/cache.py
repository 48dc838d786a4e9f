"""Disk-based cache for input resolution lookups.

Uses :mod:`diskcache` to remember GitHub lookups of full commit SHAs, with
a configurable time-to-live (TTL). Branches, tags and ``HEAD`` move, so
:class:`~lakebuild.locking.resolvers.GitHubResolver` never caches them.
The cache only saves API round trips while locking; a lockfile is the sole
record of what was resolved, and evaluation never reads this cache.
``lakebuild config clear-cache`` empties it.

Cache keys are SHA-256 hashes of ``api_url|owner|repo|target`` so that the
same lookup always resolves to the same entry.

See Also:
    :class:`~lakebuild.models.CacheConfig` -- controls ``enabled`` and
    ``ttl_seconds``.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Optional

import diskcache

from lakebuild.models import CacheConfig


class ResolutionCache:
    """Disk-backed cache of commit lookups.

    Args:
        cache_dir: Root directory for the cache. A ``resolutions/``
            subdirectory is created inside it.
        config: Cache configuration (``enabled`` flag and ``ttl_seconds``).
    """

    def __init__(self, cache_dir: str | Path, config: CacheConfig) -> None:
        self._config = config
        self._cache: Optional[diskcache.Cache] = None
        self._cache_dir = Path(cache_dir)
        if config.enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "resolutions"))

    def get(self, *parts: str) -> Optional[dict[str, Any]]:
        """Return the cached lookup for *parts*, or ``None`` on a miss."""
        if self._cache is None:
            return None
        return self._cache.get(self._make_key(parts))

    def set(self, parts: tuple[str, ...], value: dict[str, Any]) -> None:
        """Store *value* under *parts* until the TTL expires."""
        if self._cache is None:
            return
        self._cache.set(self._make_key(parts), value, expire=self._config.ttl_seconds)

    def clear(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``enabled`` and, when enabled, ``size``, ``directory`` and ``ttl_seconds``."""
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._cache),
            "directory": str(self._cache_dir / "resolutions"),
            "ttl_seconds": self._config.ttl_seconds,
        }

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()

    def _make_key(self, parts: tuple[str, ...]) -> str:
        return hashlib.sha256("|".join(parts).encode()).hexdigest()
