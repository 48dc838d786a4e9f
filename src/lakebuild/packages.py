"""The resolved package set for one system.

A :class:`PackageSet` is what the base package collection input becomes
once it is evaluated against a system: a read-only mapping from attribute
paths (``rustc``, ``darwin.apple_sdk.frameworks.CoreFoundation``) to
:class:`~lakebuild.models.Package` values, all stamped with the locked
revision of the collection.

Package sets are created fresh by :func:`legacy_packages` for every system
evaluation and are never mutated or shared across systems.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from lakebuild.exceptions import PackageNotAvailableError, PackageNotFoundError
from lakebuild.models import Package, Platform

if TYPE_CHECKING:
    from lakebuild.locking.graph import ResolvedInput


@dataclass(frozen=True)
class CatalogueEntry:
    """What the package collection knows about one attribute."""

    pname: str
    executables: tuple[str, ...] = ()
    darwin_only: bool = False


CATALOGUE: dict[str, CatalogueEntry] = {
    "cargo": CatalogueEntry("cargo", ("cargo",)),
    "clippy": CatalogueEntry("clippy", ("cargo-clippy", "clippy-driver")),
    "rustc": CatalogueEntry("rustc", ("rustc",)),
    "rustfmt": CatalogueEntry("rustfmt", ("rustfmt",)),
    "iconv": CatalogueEntry("iconv"),
    "darwin.Security": CatalogueEntry("Security", darwin_only=True),
    "darwin.apple_sdk.frameworks.CoreFoundation": CatalogueEntry(
        "CoreFoundation", darwin_only=True
    ),
    "darwin.apple_sdk.frameworks.CoreServices": CatalogueEntry(
        "CoreServices", darwin_only=True
    ),
    "darwin.apple_sdk.frameworks.SystemConfiguration": CatalogueEntry(
        "SystemConfiguration", darwin_only=True
    ),
}


@dataclass(frozen=True)
class PackageSet:
    """Packages of one collection revision, evaluated for one platform."""

    platform: Platform
    revision: str

    def get(self, attr: str) -> Package:
        """Look up *attr*.

        Raises:
            PackageNotFoundError: If the collection has no such attribute.
            PackageNotAvailableError: If the package exists but is not
                available on this platform.
        """
        entry = CATALOGUE.get(attr)
        if entry is None:
            raise PackageNotFoundError(
                f"Attribute '{attr}' missing from package set "
                f"(revision {self.revision[:12]})"
            )
        if entry.darwin_only and not self.platform.is_darwin:
            raise PackageNotAvailableError(
                f"Package '{attr}' is not available on the requested "
                f"hostPlatform {self.platform.system}"
            )
        return Package(
            attr=attr,
            pname=entry.pname,
            system=self.platform.system,
            revision=self.revision,
            executables=entry.executables,
        )

    def __getitem__(self, attr: str) -> Package:
        return self.get(attr)

    def has(self, attr: str) -> bool:
        entry = CATALOGUE.get(attr)
        return entry is not None and (self.platform.is_darwin or not entry.darwin_only)


def legacy_packages(base: ResolvedInput, target: Platform) -> PackageSet:
    """Evaluate the base package collection *base* for *target*."""
    return PackageSet(platform=target, revision=base.locked.rev)
