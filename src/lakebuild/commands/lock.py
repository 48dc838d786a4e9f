"""Lock commands -- pin inputs and inspect the lockfile.

``lakebuild lock`` resolves every input that is not yet pinned (or that is
named with ``--update-input``) and writes ``lakebuild.lock`` beside the
descriptor. ``lakebuild metadata`` prints what the lockfile pins.
"""

from __future__ import annotations

from typing import Optional

import typer

from lakebuild.commands.common import load_session
from lakebuild.config import get_cache_dir
from lakebuild.locking import lock_inputs, open_resolver, write_lockfile
from lakebuild.models import Lockfile
from lakebuild.output import info, print_table, success, suggest


def lock_command(
    ctx: typer.Context,
    update_input: Optional[list[str]] = typer.Option(
        None, "--update-input", "-u",
        help="Re-resolve this input even if it is locked. Repeatable.",
    ),
    recreate: bool = typer.Option(
        False, "--recreate",
        help="Ignore the existing lockfile and resolve every input again.",
    ),
) -> None:
    """Pin every input to an exact revision and write lakebuild.lock.

    Inputs that follow another input are never fetched; the lockfile
    records the follows edge instead. Nothing is written unless every input
    resolves.

    Example::

        lakebuild lock
        lakebuild lock --update-input nixpkgs
        lakebuild lock --recreate
    """
    session = load_session(ctx)
    existing = None if recreate else session.read_lock()

    info(f"Locking inputs of {session.descriptor.description or 'descriptor'}...")
    with open_resolver(session.config, session.base_dir, cache_dir=get_cache_dir()) as resolver:
        lock = lock_inputs(
            session.descriptor,
            resolver,
            existing=existing,
            update=update_input or (),
        )

    changed = _changed_inputs(existing, lock)
    write_lockfile(session.lock_path, lock)
    for name in changed:
        node = lock.nodes[name]
        info(f"  {name}: {node.rev[:12]}")
    success(f"Wrote {session.lock_path} ({len(lock.nodes)} locked, {len(changed)} updated)")


def _changed_inputs(previous: Optional[Lockfile], current: Lockfile) -> list[str]:
    before = previous.nodes if previous is not None else {}
    return sorted(
        key for key, node in current.nodes.items()
        if key not in before or before[key].rev != node.rev
    )


def metadata_command(ctx: typer.Context) -> None:
    """Show the locked inputs.

    Example::

        lakebuild metadata
        lakebuild --json metadata
    """
    session = load_session(ctx)
    lock = session.require_lock()

    rows: list[list[str]] = []
    for name, edge in sorted(lock.root.items()):
        if edge.follows is not None:
            rows.append([name, "follows", edge.follows, "", ""])
            continue
        rows.extend(_node_rows(lock, name, edge.node or name))

    print_table(
        ["input", "type", "revision", "last_modified", "url"],
        rows,
        title=f"Inputs ({session.lock_path})",
    )
    if not rows:
        suggest("Run 'lakebuild lock' to pin inputs.")


def _node_rows(lock: Lockfile, label: str, key: str) -> list[list[str]]:
    node = lock.nodes[key]
    rows = [[label, node.type, node.rev, node.last_modified or "", node.url]]
    for sub_name, edge in sorted(node.inputs.items()):
        sub_label = f"{label}/{sub_name}"
        if edge.follows is not None:
            rows.append([sub_label, "follows", edge.follows, "", ""])
        elif edge.node is not None:
            rows.extend(_node_rows(lock, sub_label, edge.node))
    return rows
