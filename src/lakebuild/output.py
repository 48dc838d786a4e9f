"""Terminal output for lakebuild.

Data and diagnostics never share a stream:

* stdout carries what a script would consume: the output tree, lock
  metadata, the path of a built binary, an rcfile.
* stderr carries everything meant for a person: progress, warnings,
  errors and next-step hints.

Rich rendering is used only when stdout is a terminal and colour is
allowed; ``NO_COLOR`` (any value), ``TERM=dumb`` and ``--no-color`` all
switch to plain text. ``--json`` and ``--plain`` pick a format explicitly.

One :class:`OutputManager` is built in :func:`~lakebuild.app.main_callback`
and installed with :func:`set_output`; commands call the module-level
helpers (:func:`info`, :func:`print_table`, ...). Library modules use
:mod:`logging` instead, and :func:`configure_logging` sends those records
to stderr.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree


class OutputFormat(str, Enum):
    """``AUTO`` becomes ``RICH`` on a colour terminal and ``PLAIN`` elsewhere."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    if no_color or not _is_tty():
        return OutputFormat.PLAIN
    return OutputFormat.RICH


class OutputManager:
    """Format, colour and verbosity preferences plus the two Rich consoles.

    Args:
        format: Requested format; ``AUTO`` is resolved at construction.
        no_color: Plain text on both streams.
        quiet: Drop info, success and hint messages. Warnings, errors and
            data are still written.
        verbose: Also write debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._format = _resolve_format(format, self._no_color)

        rich = self._format == OutputFormat.RICH
        self._stdout = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def verbose(self) -> bool:
        return self._verbose

    @property
    def stderr_console(self) -> Console:
        return self._stderr

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def format_data(self, data: Any) -> None:
        """Write *data* (dict, list or scalar) to stdout in the active format."""
        if self._format == OutputFormat.JSON:
            self._print_json(data)
        elif self._format == OutputFormat.PLAIN:
            self._print_plain(data)
        else:
            self._print_rich(data)

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_rich(self, renderable: Any) -> None:
        """Print a Rich renderable (tree, panel, ...) to stdout."""
        self._stdout.print(renderable)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Rows as JSON records, tab-separated lines with a header line, or a Rich table."""
        if self._format == OutputFormat.JSON:
            self._print_json([dict(zip(headers, row)) for row in rows])
            return
        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return
        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    def _print_json(self, data: Any) -> None:
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        self._diagnostic(message, optional=True)

    def success(self, message: str) -> None:
        self._diagnostic(message, style="green", optional=True)

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic(message, label="Warning:", style="yellow")

    def error(self, message: str) -> None:
        self._diagnostic(message, label="Error:", style="bold red")

    def suggest(self, message: str) -> None:
        self._diagnostic(f"→ {message}", style="dim", optional=True)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic(message, label="[debug]", style="dim")

    def _diagnostic(
        self,
        message: str,
        label: str = "",
        style: Optional[str] = None,
        optional: bool = False,
    ) -> None:
        if optional and self._quiet:
            return
        if self._no_color:
            print(f"{label} {message}" if label else message, file=sys.stderr, flush=True)
            return
        body = escape(message)
        if label:
            head = escape(label)
            line = f"[{style}]{head}[/{style}] {body}" if style else f"{head} {body}"
        else:
            line = f"[{style}]{body}[/{style}]" if style else body
        self._stderr.print(line, highlight=False)

    # ------------------------------------------------------------------ #
    # Data renderers
    # ------------------------------------------------------------------ #

    def _print_plain(self, data: Any, prefix: str = "") -> None:
        if isinstance(data, dict):
            for key, value in data.items():
                if isinstance(value, (dict, list)):
                    self._print_plain(value, f"{prefix}{key}.")
                else:
                    self.print_data(f"{prefix}{key}\t{value}")
        elif isinstance(data, list) and any(isinstance(v, (dict, list)) for v in data):
            self._print_plain(dict(enumerate(data)), prefix)
        elif isinstance(data, list):
            self.print_data(f"{prefix.rstrip('.')}\t" + " ".join(str(v) for v in data))
        else:
            self.print_data(str(data))

    def _print_rich(self, data: Any) -> None:
        if isinstance(data, dict):
            tree = Tree("", hide_root=True)
            _add_branches(tree, data)
            self._stdout.print(tree)
        elif isinstance(data, list):
            self._stdout.print(" ".join(escape(str(v)) for v in data))
        else:
            self._stdout.print(escape(str(data)))


def _add_branches(node: Tree, data: dict[str, Any]) -> None:
    for key, value in data.items():
        label = f"[bold]{escape(str(key))}[/bold]"
        if isinstance(value, dict):
            _add_branches(node.add(label), value)
        elif isinstance(value, list):
            node.add(f"{label}: {escape(' '.join(str(v) for v in value))}")
        else:
            node.add(f"{label}: {escape(str(value))}")


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when NO_COLOR is set (any value) or TERM=dumb."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


def configure_logging(output: OutputManager) -> None:
    """Route ``lakebuild.*`` log records to stderr.

    ``--verbose`` shows DEBUG records, otherwise only warnings and above.
    """
    logger = logging.getLogger("lakebuild")
    logger.handlers.clear()
    if output.format == OutputFormat.RICH:
        handler: logging.Handler = RichHandler(
            console=output.stderr_console, show_time=False, show_path=False
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if output.verbose else logging.WARNING)
    logger.propagate = False


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global manager; used by the test suite between tests."""
    global _output
    _output = None


def format_data(data: Any) -> None:
    get_output().format_data(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title=title)


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
