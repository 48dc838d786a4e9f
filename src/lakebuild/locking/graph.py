"""The resolved input graph.

:func:`resolve_graph` turns a descriptor plus its lockfile into one
:class:`ResolvedInput` handle per input, without any network access. A
follows edge is not a copy: it is the very handle of the followed input,
so ``graph["naersk"].inputs["nixpkgs"] is graph["nixpkgs"]`` always holds
and the two consumers can never observe different revisions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from lakebuild.exceptions import ResolutionError
from lakebuild.models import Descriptor, InputReference, LockedEdge, Lockfile, LockedInput


@dataclass(frozen=True, eq=False)
class ResolvedInput:
    """Read-only handle to one locked input and its own inputs."""

    name: str
    locked: LockedInput
    inputs: Mapping[str, ResolvedInput] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def rev(self) -> str:
        return self.locked.rev


def resolve_graph(descriptor: Descriptor, lock: Lockfile) -> Mapping[str, ResolvedInput]:
    """Build the read-only input graph for *descriptor* from *lock*.

    Raises:
        ResolutionError: If the lock does not cover the descriptor (run
            ``lakebuild lock``) or is internally inconsistent.
    """
    check_lock_matches(descriptor, lock)

    built: dict[str, ResolvedInput] = {}
    building: set[str] = set()

    def root_handle(name: str) -> ResolvedInput:
        seen: set[str] = set()
        edge = lock.root.get(name)
        while edge is not None and edge.follows is not None:
            if name in seen:
                raise ResolutionError(f"Follows cycle in lockfile at input '{name}'")
            seen.add(name)
            name = edge.follows
            edge = lock.root.get(name)
        if edge is None or edge.node is None:
            raise ResolutionError(f"Lockfile has no entry for input '{name}'")
        return node_handle(edge.node, name)

    def node_handle(key: str, name: str) -> ResolvedInput:
        if key in built:
            return built[key]
        if key in building:
            raise ResolutionError(f"Cyclic lockfile node '{key}'")
        node = lock.nodes.get(key)
        if node is None:
            raise ResolutionError(f"Lockfile references missing node '{key}'")
        building.add(key)
        children: dict[str, ResolvedInput] = {}
        for sub_name, edge in sorted(node.inputs.items()):
            if edge.follows is not None:
                children[sub_name] = root_handle(edge.follows)
            else:
                assert edge.node is not None
                children[sub_name] = node_handle(edge.node, sub_name)
        building.discard(key)
        handle = ResolvedInput(name=name, locked=node, inputs=MappingProxyType(children))
        built[key] = handle
        return handle

    return MappingProxyType({name: root_handle(name) for name in sorted(descriptor.inputs)})


def check_lock_matches(descriptor: Descriptor, lock: Lockfile) -> None:
    """Verify that *lock* pins exactly what *descriptor* declares.

    Raises:
        ResolutionError: On any missing, stale or differently shaped entry.
    """
    for name in sorted(descriptor.inputs):
        edge = lock.root.get(name)
        if edge is None:
            raise ResolutionError(
                f"Input '{name}' is not locked; run 'lakebuild lock'"
            )
        _check_edge(name, descriptor.inputs[name], edge, lock)


def _check_edge(path: str, ref: InputReference, edge: LockedEdge, lock: Lockfile) -> None:
    stale = f"Lockfile entry for '{path}' is out of date; run 'lakebuild lock'"
    if ref.follows is not None:
        if edge.follows != ref.follows:
            raise ResolutionError(stale)
        return
    if edge.node is None or edge.node not in lock.nodes:
        raise ResolutionError(stale)
    node = lock.nodes[edge.node]
    if node.url != ref.url or (ref.rev is not None and not node.rev.startswith(ref.rev)):
        raise ResolutionError(stale)
    for sub_name, sub_ref in ref.inputs.items():
        sub_edge = node.inputs.get(sub_name)
        if sub_edge is None:
            raise ResolutionError(stale)
        _check_edge(f"{path}/{sub_name}", sub_ref, sub_edge, lock)
