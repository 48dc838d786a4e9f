"""Pin input references to immutable revisions.

This module turns one :class:`~lakebuild.models.InputReference` into a
:class:`~lakebuild.models.LockedInput`:

* :class:`GitHubResolver` -- asks the GitHub REST API which commit a ref
  (branch, tag, or ``HEAD``) or an exact revision names. Wraps
  :class:`httpx.Client` and an optional
  :class:`~lakebuild.locking.cache.ResolutionCache`.
* :class:`PathResolver` -- pins a local directory to the SHA-256 digest of
  its file tree.
* :class:`InputResolver` -- dispatches on the URL scheme.

There is no retry: an unreachable location or an unsatisfiable revision is
a :class:`~lakebuild.exceptions.ResolutionError` and aborts the lock.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import httpx

from lakebuild.exceptions import ConfigError, ResolutionError
from lakebuild.locking.urls import InputLocation, parse_input_url
from lakebuild.models import GitHubConfig, InputReference, LockedInput

if TYPE_CHECKING:
    from lakebuild.locking.cache import ResolutionCache

logger = logging.getLogger(__name__)

_SKIP_DIRS = {".git", "target", "__pycache__"}
_COMMIT_SHA = re.compile(r"[0-9a-f]{40}")


class GitHubResolver:
    """Resolve ``github:`` inputs through the GitHub commits API.

    Must be used as a context manager so the underlying transport is opened
    and closed.

    Args:
        config: API URL, token source and timeout.
        cache: Optional lookup cache. Only lookups of a full commit SHA are
            stored; branches, tags and ``HEAD`` move and are always fetched.
        transport: Optional httpx transport, used by tests.

    Example::

        with GitHubResolver(GitHubConfig()) as gh:
            sha, date = gh.commit("nixos", "nixpkgs", "nixos-unstable")
    """

    def __init__(
        self,
        config: GitHubConfig,
        cache: Optional[ResolutionCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._cache = cache
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> GitHubResolver:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        token = self._token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=self._config.api_url,
            timeout=self._config.timeout,
            headers=headers,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _token(self) -> Optional[str]:
        if not self._config.token_source:
            return None
        from lakebuild.config import resolve_credential

        try:
            return resolve_credential(self._config.token_source)
        except ConfigError as exc:
            logger.debug("No GitHub token: %s", exc)
            return None

    def commit(self, owner: str, repo: str, target: str) -> tuple[str, Optional[str]]:
        """Return ``(sha, commit_date)`` for *target* in ``owner/repo``.

        Raises:
            ResolutionError: If the repository is unreachable or *target*
                does not name a commit.
        """
        key = (self._config.api_url, owner, repo, target)
        cache = self._cache if _COMMIT_SHA.fullmatch(target) else None
        cached = cache.get(*key) if cache is not None else None
        if cached is not None:
            logger.debug("Cache hit for %s/%s@%s", owner, repo, target)
            return cached["sha"], cached.get("date")

        if self._client is None:
            raise RuntimeError("GitHubResolver must be used as a context manager")

        url = f"/repos/{owner}/{repo}/commits/{target}"
        logger.debug("GET %s", url)
        try:
            response = self._client.get(url)
        except httpx.RequestError as exc:
            raise ResolutionError(
                f"Cannot reach github:{owner}/{repo}: {exc}"
            ) from exc

        if response.status_code in (404, 422):
            raise ResolutionError(
                f"Revision '{target}' not found in github:{owner}/{repo}"
            )
        if response.status_code == 403:
            raise ResolutionError(
                f"GitHub refused the lookup for github:{owner}/{repo} "
                f"(HTTP 403, possibly rate limited; set GITHUB_TOKEN)"
            )
        if response.status_code >= 400:
            raise ResolutionError(
                f"HTTP {response.status_code} resolving github:{owner}/{repo}@{target}"
            )

        try:
            payload: dict[str, Any] = response.json()
            sha = payload["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ResolutionError(
                f"Unexpected response resolving github:{owner}/{repo}@{target}"
            ) from exc
        commit = payload.get("commit")
        date = commit.get("committer", {}).get("date") if isinstance(commit, dict) else None

        if cache is not None:
            cache.set(key, {"sha": sha, "date": date})
        return sha, date

    def resolve(self, name: str, ref: InputReference, location: InputLocation) -> LockedInput:
        rev = ref.rev or location.rev
        target = rev or location.ref or "HEAD"
        assert location.owner is not None and location.repo is not None
        sha, date = self.commit(location.owner, location.repo, target)
        if rev and not sha.startswith(rev):
            raise ResolutionError(
                f"Input '{name}': revision '{rev}' resolved to unrelated commit {sha}"
            )
        logger.info("Locked %s to %s", name, sha)
        return LockedInput(
            type="github",
            url=ref.url or "",
            owner=location.owner,
            repo=location.repo,
            ref=location.ref,
            rev=sha,
            last_modified=date,
        )


class PathResolver:
    """Resolve ``path:`` inputs to the digest of a directory tree.

    Args:
        base_dir: Directory that relative paths are resolved against
            (the descriptor's directory).
    """

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir

    def resolve(self, name: str, ref: InputReference, location: InputLocation) -> LockedInput:
        assert location.path is not None
        root = (self._base_dir / location.path).resolve()
        if not root.is_dir():
            raise ResolutionError(f"Input '{name}': directory not found: {root}")
        digest = tree_digest(root)
        rev = ref.rev or location.rev
        if rev and digest != rev:
            raise ResolutionError(
                f"Input '{name}': content digest {digest} does not match rev {rev}"
            )
        return LockedInput(type="path", url=ref.url or "", path=location.path, rev=digest)


def tree_digest(root: Path) -> str:
    """SHA-256 over the sorted relative paths and contents under *root*."""
    h = hashlib.sha256()
    files = sorted(
        p for p in root.rglob("*")
        if p.is_file() and not _SKIP_DIRS.intersection(p.relative_to(root).parts)
    )
    for file in files:
        h.update(file.relative_to(root).as_posix().encode("utf-8"))
        h.update(b"\0")
        h.update(file.read_bytes())
        h.update(b"\0")
    return h.hexdigest()


class InputResolver:
    """Dispatch an input reference to the resolver for its scheme."""

    def __init__(self, github: GitHubResolver, path: PathResolver) -> None:
        self._github = github
        self._path = path

    def resolve(self, name: str, ref: InputReference) -> LockedInput:
        """Pin *ref*.

        Raises:
            ResolutionError: If the location is malformed, unreachable, or
                the revision cannot be satisfied.
        """
        if ref.url is None:
            raise ResolutionError(f"Input '{name}' follows another input and is never fetched")
        location = parse_input_url(ref.url)
        if location.type == "github":
            return self._github.resolve(name, ref, location)
        return self._path.resolve(name, ref, location)
