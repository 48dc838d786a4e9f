"""Development shell commands -- enter the shell, print it, or check its tools."""

from __future__ import annotations

from typing import Optional

import typer

from lakebuild.commands.common import load_session, target_platform
from lakebuild.devshell import check_dev_shell, enter_dev_shell, render_rcfile
from lakebuild.evaluate import evaluate
from lakebuild.exceptions import PlatformUnsupportedError
from lakebuild.output import info, print_data, print_table, success, suggest, warning
from lakebuild.platforms import host_platform


def _dev_shell(ctx: typer.Context, system: Optional[str]):
    session = load_session(ctx)
    target = target_platform(system)
    outputs = evaluate(session.descriptor, session.require_lock(), systems=[target.system])
    return outputs.systems[target.system].dev_shell


def develop_command(
    ctx: typer.Context,
    system: Optional[str] = typer.Option(
        None, "--system", "-s", help="Dev shell of this system. [default: host]"
    ),
    print_rc: bool = typer.Option(
        False, "--print", help="Print the shell rcfile instead of starting a shell."
    ),
    shell: str = typer.Option(
        "bash", "--shell", help="bash executable to run, by name or path. Other shells: use --print."
    ),
) -> None:
    """Enter the development shell.

    Starts an interactive shell with the dev shell's hook loaded, which
    defines the ``rustdoc`` alias. Missing toolchain programs are reported
    as warnings; lakebuild does not install them.

    Example::

        lakebuild develop
        lakebuild develop --print > .lakebuildrc
    """
    spec = _dev_shell(ctx, system)

    if print_rc:
        print_data(render_rcfile(spec))
        return

    if spec.system != host_platform().system:
        raise PlatformUnsupportedError(
            f"Cannot enter the {spec.system} dev shell on {host_platform().system}; "
            "use --print to inspect it"
        )

    for status in check_dev_shell(spec):
        if not status.found:
            warning(f"{status.attr} is not on PATH")

    info(f"Entering dev shell for {spec.system} (exit to leave)")
    code = enter_dev_shell(spec, shell=shell)
    raise typer.Exit(code=code)


def check_command(
    ctx: typer.Context,
    system: Optional[str] = typer.Option(
        None, "--system", "-s", help="Dev shell of this system. [default: host]"
    ),
) -> None:
    """Report which dev-shell packages the host provides.

    Exits with code 1 when a toolchain program is missing.

    Example::

        lakebuild check
    """
    spec = _dev_shell(ctx, system)
    statuses = check_dev_shell(spec)

    rows = [
        [s.attr, s.kind, "ok" if s.found else "missing", s.path or ""]
        for s in statuses
    ]
    print_table(["package", "kind", "status", "path"], rows, title=f"Dev shell ({spec.system})")

    missing = [s.attr for s in statuses if not s.found]
    if missing:
        warning(f"Missing: {', '.join(missing)}")
        suggest("Install the Rust toolchain, e.g. via https://rustup.rs")
        raise typer.Exit(code=1)
    success("All dev-shell tools are available.")
