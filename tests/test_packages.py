"""Tests for lakebuild.packages -- per-system package set lookups."""

from __future__ import annotations

import pytest

from lakebuild.exceptions import PackageNotAvailableError, PackageNotFoundError, ResolutionError
from lakebuild.locking import resolve_graph
from lakebuild.descriptor import DEFAULT_DESCRIPTOR
from lakebuild.models import Lockfile, Platform
from lakebuild.packages import CATALOGUE, PackageSet, legacy_packages

LINUX = Platform(arch="x86_64", os="linux")
DARWIN = Platform(arch="aarch64", os="darwin")


class TestPackageSet:
    def test_get_stamps_system_and_revision(self) -> None:
        pkgs = PackageSet(platform=LINUX, revision="abc")
        pkg = pkgs.get("rustc")
        assert pkg.attr == "rustc"
        assert pkg.pname == "rustc"
        assert pkg.system == "x86_64-linux"
        assert pkg.revision == "abc"
        assert pkg.executables == ("rustc",)

    def test_getitem(self) -> None:
        pkgs = PackageSet(platform=LINUX, revision="abc")
        assert pkgs["cargo"] == pkgs.get("cargo")

    def test_missing_attribute(self) -> None:
        pkgs = PackageSet(platform=LINUX, revision="abc")
        with pytest.raises(PackageNotFoundError, match="doesnotexist"):
            pkgs.get("doesnotexist")

    def test_missing_attribute_is_resolution_error(self) -> None:
        with pytest.raises(ResolutionError):
            PackageSet(platform=LINUX, revision="abc").get("nope")

    def test_darwin_framework_unavailable_on_linux(self) -> None:
        pkgs = PackageSet(platform=LINUX, revision="abc")
        with pytest.raises(PackageNotAvailableError, match="x86_64-linux"):
            pkgs.get("darwin.apple_sdk.frameworks.CoreFoundation")

    def test_darwin_framework_on_darwin(self) -> None:
        pkg = PackageSet(platform=DARWIN, revision="abc").get("darwin.Security")
        assert pkg.pname == "Security"
        assert pkg.executables == ()

    def test_has(self) -> None:
        assert PackageSet(platform=LINUX, revision="r").has("iconv")
        assert not PackageSet(platform=LINUX, revision="r").has("darwin.Security")
        assert PackageSet(platform=DARWIN, revision="r").has("darwin.Security")
        assert not PackageSet(platform=DARWIN, revision="r").has("nope")

    def test_catalogue_covers_toolchain(self) -> None:
        for attr in ("cargo", "clippy", "rustc", "rustfmt", "iconv"):
            assert attr in CATALOGUE
            assert not CATALOGUE[attr].darwin_only


class TestLegacyPackages:
    def test_revision_comes_from_base_input(self, default_lock: Lockfile) -> None:
        graph = resolve_graph(DEFAULT_DESCRIPTOR, default_lock)
        pkgs = legacy_packages(graph["nixpkgs"], DARWIN)
        assert pkgs.revision == default_lock.nodes["nixpkgs"].rev
        assert pkgs.platform == DARWIN

    def test_fresh_per_system(self, default_lock: Lockfile) -> None:
        graph = resolve_graph(DEFAULT_DESCRIPTOR, default_lock)
        linux = legacy_packages(graph["nixpkgs"], LINUX)
        darwin = legacy_packages(graph["nixpkgs"], DARWIN)
        assert linux is not darwin
        assert linux.platform != darwin.platform
