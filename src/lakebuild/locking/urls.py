"""Parse input locations.

Two location schemes are understood:

* ``github:<owner>/<repo>[/<ref>][?rev=<sha>&ref=<name>]`` -- a GitHub
  repository, optionally at a branch/tag ``ref`` or an exact ``rev``.
* ``path:<dir>`` -- a local directory, relative to the descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs

from lakebuild.exceptions import ResolutionError


@dataclass(frozen=True)
class InputLocation:
    type: str
    owner: Optional[str] = None
    repo: Optional[str] = None
    ref: Optional[str] = None
    rev: Optional[str] = None
    path: Optional[str] = None


def parse_input_url(url: str) -> InputLocation:
    """Split an input URL into its parts.

    Raises:
        ResolutionError: On an unknown scheme or a malformed location.
    """
    scheme, sep, rest = url.partition(":")
    if not sep:
        raise ResolutionError(f"Input URL '{url}' has no scheme (github: or path:)")

    if scheme == "path":
        if not rest:
            raise ResolutionError(f"Input URL '{url}' has an empty path")
        return InputLocation(type="path", path=rest)

    if scheme == "github":
        location, _, query = rest.partition("?")
        params = {k: v[-1] for k, v in parse_qs(query).items()}
        parts = [p for p in location.split("/") if p]
        if len(parts) < 2 or len(parts) > 3:
            raise ResolutionError(
                f"Input URL '{url}' must look like github:<owner>/<repo>[/<ref>]"
            )
        ref = parts[2] if len(parts) == 3 else params.get("ref")
        return InputLocation(
            type="github",
            owner=parts[0],
            repo=parts[1],
            ref=ref,
            rev=params.get("rev"),
        )

    raise ResolutionError(f"Unsupported input scheme '{scheme}' in '{url}'")
