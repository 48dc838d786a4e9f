"""Whole-descriptor evaluation across systems.

:func:`evaluate` resolves the input graph once from the lockfile, then runs
:func:`evaluate_system` independently for every supported system. Each
system gets a fresh package set that is shared, as one handle, by the build
helper, the package outputs and the dev shell of that system only.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from lakebuild.build import BuildHelper, call_package, package_outputs
from lakebuild.devshell import compose_dev_shell
from lakebuild.exceptions import ResolutionError
from lakebuild.locking.graph import ResolvedInput, resolve_graph
from lakebuild.models import BuildOutputSpec, Descriptor, DevShellSpec, Lockfile, Platform
from lakebuild.packages import PackageSet, legacy_packages
from lakebuild.platforms import each_system, parse_platform, require_supported, supported_systems


@dataclass(frozen=True, eq=False)
class SystemOutputs:
    """Everything the descriptor produces for one system."""

    platform: Platform
    pkgs: PackageSet
    helper: BuildHelper
    packages: Mapping[str, BuildOutputSpec]
    dev_shell: DevShellSpec


@dataclass(frozen=True, eq=False)
class Outputs:
    """Evaluation result: the input graph and the per-system outputs."""

    descriptor: Descriptor
    inputs: Mapping[str, ResolvedInput]
    systems: Mapping[str, SystemOutputs]

    @property
    def packages(self) -> dict[str, Mapping[str, BuildOutputSpec]]:
        return {system: out.packages for system, out in self.systems.items()}

    @property
    def dev_shells(self) -> dict[str, DevShellSpec]:
        return {system: out.dev_shell for system, out in self.systems.items()}

    def to_tree(self) -> dict[str, Any]:
        """Render ``packages.<system>.<name>`` and ``devShell.<system>`` as plain data."""
        packages: dict[str, Any] = {}
        shells: dict[str, Any] = {}
        for system, out in self.systems.items():
            packages[system] = {
                name: {
                    "name": spec.name,
                    "fingerprint": spec.fingerprint(),
                    "extra_build_inputs": [p.pname for p in spec.extra_build_inputs],
                }
                for name, spec in sorted(out.packages.items())
            }
            shells[system] = {
                "packages": [p.pname for p in out.dev_shell.packages],
                "aliases": dict(out.dev_shell.aliases),
            }
        return {"packages": packages, "devShell": shells}


def systems_for(descriptor: Descriptor, override: Optional[Iterable[str]] = None) -> tuple[str, ...]:
    if override is not None:
        return supported_systems(override)
    return supported_systems(descriptor.systems)


def evaluate_system(
    descriptor: Descriptor, graph: Mapping[str, ResolvedInput], target: Platform
) -> SystemOutputs:
    """Evaluate the descriptor for one system."""
    try:
        base = graph[descriptor.base_input]
        builder = graph[descriptor.builder_input]
    except KeyError as exc:
        raise ResolutionError(f"Input {exc} missing from the resolved graph") from exc

    pkgs = legacy_packages(base, target)
    helper = call_package(builder, pkgs)
    return SystemOutputs(
        platform=target,
        pkgs=pkgs,
        helper=helper,
        packages=package_outputs(descriptor, pkgs, helper, target),
        dev_shell=compose_dev_shell(pkgs, target),
    )


def evaluate(
    descriptor: Descriptor,
    lock: Lockfile,
    systems: Optional[Iterable[str]] = None,
) -> Outputs:
    """Evaluate *descriptor* for every supported system.

    Args:
        descriptor: The descriptor, read-only for the whole evaluation.
        lock: Pinned inputs; no network access happens here.
        systems: Restrict evaluation to these systems. Each must be
            supported.

    Raises:
        ResolutionError: If the lock does not cover the descriptor.
        PlatformUnsupportedError: If a requested system is not supported.
    """
    graph = resolve_graph(descriptor, lock)
    if descriptor.systems_input not in graph:
        raise ResolutionError(f"Input '{descriptor.systems_input}' missing from the resolved graph")

    supported = systems_for(descriptor)
    if systems is None:
        selected = supported
    else:
        selected = tuple(
            require_supported(parse_platform(s), supported).system for s in systems
        )

    per_system = each_system(selected, lambda target: evaluate_system(descriptor, graph, target))
    return Outputs(descriptor=descriptor, inputs=graph, systems=MappingProxyType(per_system))
