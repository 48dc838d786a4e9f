"""Build output composition and the cargo invocation.

Composition is pure: :func:`package_outputs` turns a package set and a
platform into a :class:`~lakebuild.models.BuildOutputSpec` registered under
the package name and under ``default`` (the same object). The extra build
inputs are the Darwin system frameworks on Darwin and nothing elsewhere.

:func:`run_build` is the only side effect in the whole evaluation: it hands
the source tree and the extra inputs to ``cargo`` and returns the built
binary, or raises :class:`~lakebuild.exceptions.CompilationError` with the
toolchain's own output.
"""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from lakebuild.exceptions import CompilationError, PlatformUnsupportedError
from lakebuild.locking.graph import ResolvedInput
from lakebuild.models import BuildConfig, BuildOutputSpec, Descriptor, Package, Platform
from lakebuild.packages import PackageSet

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = "default"

DARWIN_FRAMEWORKS: tuple[str, ...] = (
    "darwin.apple_sdk.frameworks.CoreFoundation",
    "darwin.apple_sdk.frameworks.CoreServices",
    "darwin.apple_sdk.frameworks.SystemConfiguration",
)

_STDERR_TAIL = 20


def extra_build_input_attrs(target: Platform) -> frozenset[str]:
    """Attribute paths linked into the build on *target*."""
    if target.is_darwin:
        return frozenset(DARWIN_FRAMEWORKS)
    return frozenset()


def extra_build_inputs(pkgs: PackageSet, target: Platform) -> tuple[Package, ...]:
    """Resolve :func:`extra_build_input_attrs` against *pkgs*, sorted by attribute."""
    return tuple(pkgs.get(attr) for attr in sorted(extra_build_input_attrs(target)))


@dataclass(frozen=True, eq=False)
class BuildHelper:
    """The build-helper input bound to the shared package set.

    ``pkgs`` is the same handle the rest of the evaluation uses; the helper
    never builds against a package set of its own.
    """

    source: ResolvedInput
    pkgs: PackageSet

    @property
    def identity(self) -> str:
        return f"{self.source.name}@{self.source.rev}"

    def build_package(
        self, name: str, src: str, build_inputs: tuple[Package, ...] = ()
    ) -> BuildOutputSpec:
        return BuildOutputSpec(
            name=name,
            system=self.pkgs.platform.system,
            src=src,
            builder=self.identity,
            base_revision=self.pkgs.revision,
            extra_build_inputs=build_inputs,
        )


def call_package(source: ResolvedInput, pkgs: PackageSet) -> BuildHelper:
    return BuildHelper(source=source, pkgs=pkgs)


def package_outputs(
    descriptor: Descriptor, pkgs: PackageSet, helper: BuildHelper, target: Platform
) -> Mapping[str, BuildOutputSpec]:
    """Return ``{package_name: spec, "default": spec}`` for *target*.

    Both names map to the one spec object.
    """
    spec = helper.build_package(
        descriptor.package_name,
        descriptor.src,
        extra_build_inputs(pkgs, target),
    )
    return MappingProxyType({descriptor.package_name: spec, DEFAULT_OUTPUT: spec})


@dataclass(frozen=True)
class BuildResult:
    """A registered artifact."""

    name: str
    system: str
    binary: Path
    sha256: str
    fingerprint: str


# built-in cargo profiles whose output directory has another name
_PROFILE_DIRS = {"dev": "debug", "test": "debug", "bench": "release"}


def _profile_dir(profile: str) -> str:
    return _PROFILE_DIRS.get(profile, profile)


def cargo_command(spec: BuildOutputSpec, src_dir: Path, target_dir: Path, config: BuildConfig) -> list[str]:
    cmd = [
        config.cargo, "build",
        "--manifest-path", str(src_dir / "Cargo.toml"),
        "--target-dir", str(target_dir),
        "--bin", spec.name,
    ]
    if config.profile == "release":
        cmd.append("--release")
    else:
        cmd.extend(["--profile", config.profile])
    return cmd


def cargo_env(spec: BuildOutputSpec, base_env: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Environment for cargo: links each extra build input as a framework."""
    env = dict(os.environ if base_env is None else base_env)
    flags = [f"-l framework={pkg.pname}" for pkg in spec.extra_build_inputs]
    if flags:
        existing = env.get("RUSTFLAGS", "").strip()
        env["RUSTFLAGS"] = " ".join(([existing] if existing else []) + flags)
    return env


def run_build(
    spec: BuildOutputSpec,
    base_dir: Path,
    config: BuildConfig,
    host: Platform,
) -> BuildResult:
    """Compile *spec* with cargo.

    Args:
        spec: The build output to realise.
        base_dir: Directory that ``spec.src`` is relative to.
        config: cargo executable, profile, target directory and timeout.
        host: Platform of this machine; only host builds are possible.

    Raises:
        PlatformUnsupportedError: If *spec* targets another system.
        CompilationError: If cargo is missing, times out, or rejects the
            source tree. No artifact is registered.
    """
    if spec.system != host.system:
        raise PlatformUnsupportedError(
            f"Cannot build for {spec.system} on {host.system}: cross compilation is not supported"
        )

    src_dir = (base_dir / spec.src).resolve()
    if not (src_dir / "Cargo.toml").is_file():
        raise CompilationError(f"No Cargo.toml in source directory {src_dir}")
    target_dir = Path(config.target_dir).resolve() if config.target_dir else src_dir / "target"

    cmd = cargo_command(spec, src_dir, target_dir, config)
    logger.info("Running %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            cwd=src_dir,
            env=cargo_env(spec),
            capture_output=True,
            text=True,
            timeout=config.timeout,
        )
    except FileNotFoundError as exc:
        raise CompilationError(f"Toolchain executable not found: {config.cargo}") from exc
    except subprocess.TimeoutExpired as exc:
        raise CompilationError(f"Build timed out after {config.timeout} seconds") from exc

    if result.returncode != 0:
        tail = "\n".join(result.stderr.splitlines()[-_STDERR_TAIL:])
        raise CompilationError(f"cargo build failed (exit {result.returncode}):\n{tail}")

    binary = target_dir / _profile_dir(config.profile) / spec.name
    if not binary.is_file():
        raise CompilationError(f"Expected binary not found at: {binary}")

    return BuildResult(
        name=spec.name,
        system=spec.system,
        binary=binary,
        sha256=hashlib.sha256(binary.read_bytes()).hexdigest(),
        fingerprint=spec.fingerprint(),
    )
