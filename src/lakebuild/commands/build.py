"""Build command -- compile an output for the host system with cargo."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import typer

from lakebuild.build import run_build
from lakebuild.commands.common import load_session, target_platform
from lakebuild.evaluate import evaluate
from lakebuild.exceptions import InvalidUsageError
from lakebuild.output import format_data, info, print_data, success, suggest
from lakebuild.platforms import host_platform


def build_command(
    ctx: typer.Context,
    attr: str = typer.Argument("default", help="Output to build: default or the package name."),
    system: Optional[str] = typer.Option(
        None, "--system", "-s", help="Target system. [default: host]"
    ),
    out_link: str = typer.Option(
        "result", "--out-link", "-o", help="Symlink to create pointing at the binary."
    ),
    no_link: bool = typer.Option(False, "--no-link", help="Do not create the out link."),
) -> None:
    """Build the lakecli binary.

    Evaluates the descriptor for the target system and runs cargo on the
    source tree with the system's extra build inputs. ``default`` and the
    package name refer to the same output. With ``--dry-run`` only the
    build plan is printed.

    Example::

        lakebuild build
        lakebuild build lakecli --out-link ./lakecli
        lakebuild --dry-run build --system aarch64-darwin
    """
    obj = ctx.obj or {}
    session = load_session(ctx)
    target = target_platform(system)
    outputs = evaluate(session.descriptor, session.require_lock(), systems=[target.system])

    packages = outputs.systems[target.system].packages
    if attr not in packages:
        raise InvalidUsageError(
            f"No output '{attr}' for {target.system} (available: {', '.join(sorted(packages))})"
        )
    spec = packages[attr]

    if obj.get("dry_run"):
        format_data(
            {
                "name": spec.name,
                "system": spec.system,
                "fingerprint": spec.fingerprint(),
                "spec": spec.model_dump(mode="json"),
            }
        )
        return

    info(f"Building {spec.name} for {spec.system}...")
    result = run_build(spec, session.base_dir, session.config.build, host_platform())

    if not no_link:
        link = Path(out_link)
        if link.is_symlink() or link.exists():
            if not link.is_symlink():
                raise InvalidUsageError(f"Refusing to replace non-symlink {link}")
            link.unlink()
        os.symlink(result.binary, link)
        info(f"Linked {link} -> {result.binary}")

    print_data(str(result.binary))
    success(f"Built {result.name} ({result.system}) sha256:{result.sha256}")
    suggest(f"Run it: {result.binary} --help")
