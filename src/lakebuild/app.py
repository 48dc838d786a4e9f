"""Typer application and CLI entry point for lakebuild.

This module wires the top-level Typer application and registers the
built-in sub-commands (``lock``, ``metadata``, ``show``, ``build``,
``develop``, ``check`` and ``config``).

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app;
:class:`~lakebuild.exceptions.LakebuildError` is turned into a one-line
message and the error's exit code, and anything else is written to a crash
log under the data directory.

See Also:
    :mod:`lakebuild.config`: Global configuration and descriptor lookup.
    :mod:`lakebuild.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from lakebuild import __version__
from lakebuild.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED


app = typer.Typer(
    name="lakebuild",
    help="Pinned builds and development shells for the lakecli binary.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"lakebuild {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    descriptor: Optional[str] = typer.Option(
        None, "--descriptor", "-d",
        help="Descriptor file. [default: $LAKEBUILD_DESCRIPTOR or ./lakebuild.yaml]",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Evaluate and print the build plan without running cargo."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Set up output and shared options for the sub-command that follows.

    Initialises the global :class:`~lakebuild.output.OutputManager` and
    logging from the CLI flags, and stores the shared options in
    ``ctx.obj`` for the sub-commands.
    """
    from lakebuild.output import OutputFormat, OutputManager, configure_logging, set_output

    if json_output and plain_output:
        raise typer.BadParameter("--json and --plain are mutually exclusive")
    requested = (
        OutputFormat.JSON if json_output else OutputFormat.PLAIN if plain_output else OutputFormat.AUTO
    )

    output = OutputManager(format=requested, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(output)

    ctx.obj = {
        "descriptor": descriptor,
        "dry_run": dry_run,
        "force": force,
        "verbose": verbose,
    }


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #

from lakebuild.commands.build import build_command  # noqa: E402
from lakebuild.commands.config import config_app  # noqa: E402
from lakebuild.commands.develop import check_command, develop_command  # noqa: E402
from lakebuild.commands.lock import lock_command, metadata_command  # noqa: E402
from lakebuild.commands.show import show_command  # noqa: E402

app.command("lock")(lock_command)
app.command("metadata")(metadata_command)
app.command("show")(show_command)
app.command("build")(build_command)
app.command("develop")(develop_command)
app.command("check")(check_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _interrupted(signum: int, frame: Any) -> None:  # noqa: ANN401
    print("\nInterrupted.", file=sys.stderr)
    sys.exit(EXIT_INTERRUPTED)


def _setup_signal_handlers() -> None:
    signal.signal(signal.SIGINT, _interrupted)


def _write_crash_log(exc: Exception) -> Path:
    """Save the active traceback under ``<data dir>/logs`` and return the file."""
    from lakebuild.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text(
        f"lakebuild {__version__}\n{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}",
        encoding="utf-8",
    )
    return log_path


def main() -> None:
    """Console-script entry point; always ends in :class:`SystemExit`.

    Known failures print one line and exit with their category's code.
    Anything else leaves a crash log behind and exits 1.
    """
    from lakebuild.exceptions import LakebuildError
    from lakebuild.output import error

    _setup_signal_handlers()
    try:
        app(standalone_mode=True)
    except LakebuildError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        error(f"Unexpected error. Debug log: {_write_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
