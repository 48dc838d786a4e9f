"""Shared command plumbing: locate the descriptor, its lockfile, and the host.

Every evaluating command starts from a :class:`Session`, built once from
the Typer context and the global config. The session is read-only; the
descriptor inside it is the single configuration value threaded through
the evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from lakebuild.config import load_global_config, lockfile_path, resolve_descriptor_path
from lakebuild.descriptor import DEFAULT_DESCRIPTOR, load_descriptor
from lakebuild.exceptions import ResolutionError
from lakebuild.locking import read_lockfile
from lakebuild.models import Descriptor, GlobalConfig, Lockfile, Platform
from lakebuild.output import debug
from lakebuild.platforms import host_platform, parse_platform


@dataclass(frozen=True)
class Session:
    config: GlobalConfig
    descriptor: Descriptor
    descriptor_path: Optional[Path]
    lock_path: Path

    @property
    def base_dir(self) -> Path:
        """Directory that relative paths in the descriptor are resolved against."""
        if self.descriptor_path is None:
            return Path.cwd()
        return self.descriptor_path.resolve().parent

    def read_lock(self) -> Optional[Lockfile]:
        return read_lockfile(self.lock_path)

    def require_lock(self) -> Lockfile:
        """Return the lockfile or fail with a pointer to ``lakebuild lock``."""
        lock = self.read_lock()
        if lock is None:
            raise ResolutionError(
                f"No lockfile at {self.lock_path}; run 'lakebuild lock' first"
            )
        return lock


def load_session(ctx: typer.Context) -> Session:
    obj = ctx.obj or {}
    config = load_global_config()
    descriptor_path = resolve_descriptor_path(obj.get("descriptor"), config)
    if descriptor_path is None:
        debug("Using the built-in lakecli descriptor")
        descriptor = DEFAULT_DESCRIPTOR
    else:
        debug(f"Loading descriptor from {descriptor_path}")
        descriptor = load_descriptor(descriptor_path)
    return Session(
        config=config,
        descriptor=descriptor,
        descriptor_path=descriptor_path,
        lock_path=lockfile_path(descriptor_path),
    )


def target_platform(system: Optional[str]) -> Platform:
    return parse_platform(system) if system else host_platform()
