"""Canonical Pydantic models shared across all lakebuild modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Descriptor models** -- what the user declares:
    :class:`InputReference` and :class:`Descriptor`.

**Lock and evaluation models** -- what resolution and evaluation produce:
    :class:`LockedEdge`, :class:`LockedInput`, :class:`Lockfile`,
    :class:`Platform`, :class:`Package`, :class:`BuildOutputSpec`, and
    :class:`DevShellSpec`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`GitHubConfig`, :class:`BuildConfig`, and
    :class:`GlobalConfig`.

Descriptor, lock and evaluation models are frozen: once produced they are
read-only for the rest of an evaluation.
"""

from __future__ import annotations

import hashlib
import json
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- Descriptor ---


class InputReference(BaseModel):
    """A named, versionable external dependency declaration.

    Either ``url`` or ``follows`` is set, never both. An input that
    *follows* another top-level input is never resolved on its own: its
    resolved value is the followed input's value.

    Example::

        InputReference(
            url="github:nix-community/naersk",
            inputs={"nixpkgs": InputReference(follows="nixpkgs")},
        )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: Optional[str] = Field(
        default=None,
        description="Location: github:<owner>/<repo>[/<ref>] or path:<dir>",
    )
    rev: Optional[str] = Field(
        default=None, description="Exact revision constraint (commit SHA)"
    )
    follows: Optional[str] = Field(
        default=None, description="Name of a top-level input to reuse"
    )
    inputs: dict[str, InputReference] = Field(
        default_factory=dict,
        description="Transitive dependencies of this input, usually follows overrides",
    )

    @model_validator(mode="after")
    def _check_source(self) -> InputReference:
        if self.url and self.follows:
            raise ValueError("an input sets either 'url' or 'follows', not both")
        if not self.url and not self.follows:
            raise ValueError("an input needs a 'url' or a 'follows' target")
        if self.follows and (self.rev or self.inputs):
            raise ValueError("a 'follows' input cannot declare 'rev' or 'inputs'")
        return self


class Descriptor(BaseModel):
    """The whole build-and-environment descriptor.

    Constructed once at the start of an evaluation and passed explicitly to
    every function that needs it. The three ``*_input`` fields name which
    declared input plays which role.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    description: str = ""
    inputs: dict[str, InputReference]
    package_name: str = "lakecli"
    src: str = Field(default=".", description="Source directory, relative to the descriptor")
    systems: Optional[list[str]] = Field(
        default=None,
        description="Override the system list reported by the enumeration input",
    )
    base_input: str = "nixpkgs"
    systems_input: str = "flake-utils"
    builder_input: str = "naersk"

    @model_validator(mode="after")
    def _check_roles(self) -> Descriptor:
        for role in ("base_input", "systems_input", "builder_input"):
            name = getattr(self, role)
            if name not in self.inputs:
                raise ValueError(f"{role} '{name}' is not a declared input")
        return self


# --- Lockfile ---


class LockedEdge(BaseModel):
    """Edge from a locked node to one of its own inputs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    follows: Optional[str] = None
    node: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self) -> LockedEdge:
        if (self.follows is None) == (self.node is None):
            raise ValueError("a locked edge points to exactly one of 'follows' or 'node'")
        return self


class LockedInput(BaseModel):
    """An input pinned to an immutable revision."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(description="github or path")
    url: str
    rev: str
    owner: Optional[str] = None
    repo: Optional[str] = None
    ref: Optional[str] = None
    path: Optional[str] = None
    last_modified: Optional[str] = None
    inputs: dict[str, LockedEdge] = Field(default_factory=dict)


class Lockfile(BaseModel):
    """On-disk lock: root input edges pointing into a flat node table."""

    version: int = 1
    root: dict[str, LockedEdge] = Field(default_factory=dict)
    nodes: dict[str, LockedInput] = Field(default_factory=dict)


# --- Evaluation ---


class Platform(BaseModel):
    """A ``(CPU architecture, operating system)`` pair such as ``x86_64-linux``."""

    model_config = ConfigDict(frozen=True)

    arch: str
    os: str

    @property
    def system(self) -> str:
        return f"{self.arch}-{self.os}"

    @property
    def is_darwin(self) -> bool:
        return self.os == "darwin"

    def __str__(self) -> str:
        return self.system


class Package(BaseModel):
    """One buildable or installable artifact of a resolved package set."""

    model_config = ConfigDict(frozen=True)

    attr: str
    pname: str
    system: str
    revision: str
    executables: tuple[str, ...] = ()


class _Canonical(BaseModel):
    """Mixin giving frozen evaluation models a stable serialisation."""

    model_config = ConfigDict(frozen=True)

    def canonical_json(self) -> str:
        """Serialise to JSON with sorted keys and no insignificant whitespace."""
        return json.dumps(
            self.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
        )

    def fingerprint(self) -> str:
        """SHA-256 of :meth:`canonical_json`."""
        return hashlib.sha256(self.canonical_json().encode("utf-8")).hexdigest()


class BuildOutputSpec(_Canonical):
    """How to compile one named artifact from a source tree plus extra inputs."""

    name: str
    system: str
    src: str
    builder: str
    base_revision: str
    extra_build_inputs: tuple[Package, ...] = ()


class DevShellSpec(_Canonical):
    """An interactive shell provisioned with the toolchain packages."""

    system: str
    packages: tuple[Package, ...]
    shell_hook: str
    aliases: dict[str, str] = Field(default_factory=dict)


# --- Configuration ---


class CacheConfig(BaseModel):
    """Resolution cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Cache GitHub API lookups")
    ttl_seconds: int = Field(default=3600, description="Cache TTL in seconds")


class GitHubConfig(BaseModel):
    """How ``github:`` inputs are resolved."""

    api_url: str = Field(default="https://api.github.com")
    token_source: Optional[str] = Field(
        default="env:GITHUB_TOKEN",
        description="Credential source for the API token: env:VAR or file:PATH",
    )
    timeout: int = Field(default=30, description="Request timeout in seconds")


class BuildConfig(BaseModel):
    """Toolchain invocation settings."""

    cargo: str = Field(default="cargo", description="cargo executable")
    profile: str = Field(default="release", description="cargo profile")
    timeout: int = Field(default=1800, description="Build timeout in seconds")
    target_dir: Optional[str] = Field(
        default=None, description="cargo target directory (default: <src>/target)"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/lakebuild/config.json``.

    Loaded and saved by :func:`~lakebuild.config.load_global_config` and
    :func:`~lakebuild.config.save_global_config`.
    """

    default_descriptor: Optional[str] = None
    cache: CacheConfig = Field(default_factory=CacheConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)


InputReference.model_rebuild()
