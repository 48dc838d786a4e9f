"""System identifiers and per-system evaluation.

A system identifier is the ``<arch>-<os>`` token (``x86_64-linux``,
``aarch64-darwin``) that drives every conditional in the descriptor. The
platform-enumeration input supplies the list of supported systems; this
module holds that list, parses identifiers, detects the host, and maps an
evaluation function over the list.
"""

from __future__ import annotations

import platform
from typing import Callable, Iterable, Optional, TypeVar

from lakebuild.exceptions import InvalidUsageError, PlatformUnsupportedError
from lakebuild.models import Platform

T = TypeVar("T")

DEFAULT_SYSTEMS: tuple[str, ...] = (
    "aarch64-linux",
    "aarch64-darwin",
    "x86_64-darwin",
    "x86_64-linux",
)
"""Systems reported by the platform-enumeration input by default."""

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv8": "aarch64",
}


def parse_platform(system: str) -> Platform:
    """Parse ``"<arch>-<os>"`` into a :class:`~lakebuild.models.Platform`.

    Raises:
        InvalidUsageError: If *system* is not of the form ``<arch>-<os>``.
    """
    arch, sep, os_name = system.strip().partition("-")
    if not sep or not arch or not os_name or "-" in os_name:
        raise InvalidUsageError(
            f"Invalid system '{system}': expected <arch>-<os>, e.g. x86_64-linux"
        )
    return Platform(arch=arch.lower(), os=os_name.lower())


def host_platform() -> Platform:
    """Return the platform of the running interpreter."""
    machine = platform.machine().lower()
    arch = _ARCH_ALIASES.get(machine, machine)
    return Platform(arch=arch, os=platform.system().lower())


def supported_systems(override: Optional[Iterable[str]] = None) -> tuple[str, ...]:
    """Return the supported system list, validated and sorted.

    Args:
        override: Replacement list (e.g. the descriptor's ``systems``);
            ``None`` uses :data:`DEFAULT_SYSTEMS`.
    """
    systems = DEFAULT_SYSTEMS if override is None else tuple(override)
    return tuple(sorted({parse_platform(s).system for s in systems}))


def require_supported(target: Platform, systems: Iterable[str]) -> Platform:
    """Return *target* if it is in *systems*.

    Raises:
        PlatformUnsupportedError: If the system is not listed; no outputs
            exist for it.
    """
    listed = tuple(systems)
    if target.system not in listed:
        raise PlatformUnsupportedError(
            f"System '{target.system}' is not supported "
            f"(supported: {', '.join(listed)})"
        )
    return target


def each_system(systems: Iterable[str], fn: Callable[[Platform], T]) -> dict[str, T]:
    """Evaluate *fn* once per system and collect ``{system: result}``.

    Each call is independent: nothing computed for one system is visible to
    another.
    """
    return {system: fn(parse_platform(system)) for system in sorted(systems)}
