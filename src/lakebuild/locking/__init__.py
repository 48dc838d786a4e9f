"""Dependency locking layer -- pin inputs, persist the lock, and build the input graph.

Typical usage::

    from lakebuild.locking import lock_inputs, resolve_graph, open_resolver

    with open_resolver(config, base_dir) as resolver:
        lock = lock_inputs(descriptor, resolver)
    graph = resolve_graph(descriptor, lock)
    assert graph["naersk"].inputs["nixpkgs"] is graph["nixpkgs"]

Sub-modules:

* :mod:`~lakebuild.locking.urls` -- ``github:`` / ``path:`` location parsing.
* :mod:`~lakebuild.locking.resolvers` -- GitHub API and directory-digest
  resolvers.
* :mod:`~lakebuild.locking.cache` -- disk cache for GitHub lookups.
* :mod:`~lakebuild.locking.lockfile` -- locking, reading and writing
  ``lakebuild.lock``.
* :mod:`~lakebuild.locking.graph` -- the read-only resolved input graph.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import httpx

from lakebuild.locking.cache import ResolutionCache
from lakebuild.locking.graph import ResolvedInput, check_lock_matches, resolve_graph
from lakebuild.locking.lockfile import lock_inputs, read_lockfile, write_lockfile
from lakebuild.locking.resolvers import GitHubResolver, InputResolver, PathResolver
from lakebuild.models import GlobalConfig


@contextmanager
def open_resolver(
    config: GlobalConfig,
    base_dir: Path,
    cache_dir: Optional[Path] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Iterator[InputResolver]:
    """Yield an :class:`InputResolver` wired to the configured GitHub API and cache."""
    cache = ResolutionCache(cache_dir, config.cache) if cache_dir is not None else None
    try:
        with GitHubResolver(config.github, cache=cache, transport=transport) as github:
            yield InputResolver(github, PathResolver(base_dir))
    finally:
        if cache is not None:
            cache.close()


__all__ = [
    "GitHubResolver",
    "InputResolver",
    "PathResolver",
    "ResolutionCache",
    "ResolvedInput",
    "check_lock_matches",
    "lock_inputs",
    "open_resolver",
    "read_lockfile",
    "resolve_graph",
    "write_lockfile",
]
