"""Show command -- print the evaluated output tree."""

from __future__ import annotations

from typing import Optional

import typer

from lakebuild.commands.common import load_session
from lakebuild.evaluate import evaluate
from lakebuild.output import OutputFormat, format_data, get_output


def show_command(
    ctx: typer.Context,
    system: Optional[list[str]] = typer.Option(
        None, "--system", "-s",
        help="Only evaluate this system (e.g. x86_64-linux). Repeatable.",
    ),
) -> None:
    """Show the packages and dev shells produced for every system.

    Example::

        lakebuild show
        lakebuild show --system aarch64-darwin
        lakebuild --json show
    """
    session = load_session(ctx)
    outputs = evaluate(session.descriptor, session.require_lock(), systems=system or None)

    tree = outputs.to_tree()
    if get_output().format != OutputFormat.RICH:
        format_data(tree)
        return

    from rich.tree import Tree

    root = Tree(f"[bold]{session.descriptor.description or 'outputs'}[/bold]")
    packages = root.add("packages")
    for sys_name, pkgs in tree["packages"].items():
        branch = packages.add(f"[cyan]{sys_name}[/cyan]")
        for name, pkg in pkgs.items():
            extra = ", ".join(pkg["extra_build_inputs"]) or "none"
            branch.add(f"{name}: package '{pkg['name']}' (extra inputs: {extra})")
    shells = root.add("devShell")
    for sys_name, shell in tree["devShell"].items():
        shells.add(f"[cyan]{sys_name}[/cyan]: {' '.join(shell['packages'])}")
    get_output().print_rich(root)
