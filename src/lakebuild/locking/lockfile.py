"""Create, read and write ``lakebuild.lock``.

:func:`lock_inputs` pins every input of a descriptor. Inputs with a follows
relationship are never handed to a resolver; the lock records a
``{"follows": "<input>"}`` edge instead, so the follower always sees the
followed input's revision. Locking happens entirely in memory and the file
is only written once every input resolved, so a failure never leaves a
partial lockfile behind.

Lockfile layout::

    {
      "version": 1,
      "root": {
        "naersk": {"node": "naersk"},
        "nixpkgs": {"node": "nixpkgs"}
      },
      "nodes": {
        "naersk": {"type": "github", "rev": "...", "inputs": {"nixpkgs": {"follows": "nixpkgs"}}},
        "nixpkgs": {"type": "github", "rev": "..."}
      }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol

from pydantic import ValidationError

from lakebuild.config import atomic_write
from lakebuild.exceptions import InvalidUsageError, ResolutionError
from lakebuild.models import Descriptor, InputReference, LockedEdge, LockedInput, Lockfile

logger = logging.getLogger(__name__)

LOCK_VERSION = 1


class Resolver(Protocol):
    def resolve(self, name: str, ref: InputReference) -> LockedInput: ...


def lock_inputs(
    descriptor: Descriptor,
    resolver: Resolver,
    existing: Optional[Lockfile] = None,
    update: Iterable[str] = (),
) -> Lockfile:
    """Pin every input of *descriptor*.

    Args:
        descriptor: The descriptor whose inputs are locked.
        resolver: Pins a single non-follows input.
        existing: A previous lock. Its nodes are reused when they still match
            the descriptor and are not named in *update*.
        update: Top-level input names to re-resolve even if already locked.

    Returns:
        The new lock.

    Raises:
        InvalidUsageError: If *update* names an unknown input.
        ResolutionError: If any input cannot be resolved.
    """
    update = set(update)
    unknown = update - set(descriptor.inputs)
    if unknown:
        raise InvalidUsageError(f"No such input(s): {', '.join(sorted(unknown))}")

    nodes: dict[str, LockedInput] = {}
    root: dict[str, LockedEdge] = {}
    previous = existing.nodes if existing is not None else {}

    def lock_node(key: str, top: str, ref: InputReference) -> None:
        prior = previous.get(key)
        if prior is not None and top not in update and _still_matches(prior, ref):
            node = prior.model_copy(update={"inputs": {}})
            logger.debug("Reusing locked %s at %s", key, prior.rev)
        else:
            node = resolver.resolve(key, ref)

        edges: dict[str, LockedEdge] = {}
        for sub_name in sorted(ref.inputs):
            sub_ref = ref.inputs[sub_name]
            if sub_ref.follows is not None:
                edges[sub_name] = LockedEdge(follows=sub_ref.follows)
            else:
                sub_key = f"{key}/{sub_name}"
                lock_node(sub_key, top, sub_ref)
                edges[sub_name] = LockedEdge(node=sub_key)
        nodes[key] = node.model_copy(update={"inputs": edges})

    for name in sorted(descriptor.inputs):
        ref = descriptor.inputs[name]
        if ref.follows is not None:
            root[name] = LockedEdge(follows=ref.follows)
            continue
        lock_node(name, name, ref)
        root[name] = LockedEdge(node=name)

    return Lockfile(version=LOCK_VERSION, root=root, nodes=nodes)


def _still_matches(node: LockedInput, ref: InputReference) -> bool:
    if node.url != ref.url:
        return False
    return ref.rev is None or node.rev.startswith(ref.rev)


def read_lockfile(path: Path) -> Optional[Lockfile]:
    """Load a lockfile, or return ``None`` if it does not exist.

    Raises:
        ResolutionError: If the file is unreadable or malformed.
    """
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        lock = Lockfile.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise ResolutionError(f"Invalid lockfile {path}: {exc}") from exc
    if lock.version != LOCK_VERSION:
        raise ResolutionError(
            f"Unsupported lockfile version {lock.version} in {path} (expected {LOCK_VERSION})"
        )
    return lock


def write_lockfile(path: Path, lock: Lockfile) -> None:
    """Write *lock* atomically with sorted keys so identical locks are byte-identical."""
    data = lock.model_dump(mode="json", exclude_none=True)
    atomic_write(path, json.dumps(data, indent=2, sort_keys=True) + "\n")
