"""Development shell composition and entry.

The dev shell always carries the Rust toolchain (``cargo``, ``clippy``,
``rustc``, ``rustfmt``); on Darwin the ``Security`` framework and ``iconv``
are appended. Its hook defines a ``rustdoc`` alias that opens the locally
installed Rust documentation in a browser.

lakebuild does not install packages. :func:`check_dev_shell` reports which
tools the host provides, and :func:`enter_dev_shell` starts an interactive
bash with the hook loaded from a throwaway rcfile.
"""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from lakebuild.exceptions import InvalidUsageError
from lakebuild.models import DevShellSpec, Platform
from lakebuild.packages import PackageSet

BASE_TOOLS: tuple[str, ...] = ("cargo", "clippy", "rustc", "rustfmt")
DARWIN_TOOLS: tuple[str, ...] = ("darwin.Security", "iconv")

RUSTDOC_ALIAS = (
    "xdg-open \"$(rustc --print sysroot)/share/doc/rust/html/index.html\""
)


def dev_shell_attrs(target: Platform) -> tuple[str, ...]:
    if target.is_darwin:
        return BASE_TOOLS + DARWIN_TOOLS
    return BASE_TOOLS


def shell_hook(aliases: dict[str, str]) -> str:
    return "".join(f"alias {name}='{command}'\n" for name, command in sorted(aliases.items()))


def compose_dev_shell(pkgs: PackageSet, target: Platform) -> DevShellSpec:
    aliases = {"rustdoc": RUSTDOC_ALIAS}
    return DevShellSpec(
        system=target.system,
        packages=tuple(pkgs.get(attr) for attr in dev_shell_attrs(target)),
        shell_hook=shell_hook(aliases),
        aliases=aliases,
    )


@dataclass(frozen=True)
class ToolStatus:
    attr: str
    kind: str
    found: bool
    path: Optional[str] = None


def check_dev_shell(spec: DevShellSpec) -> list[ToolStatus]:
    """Probe ``PATH`` for the executables of every dev-shell package.

    Packages without executables (frameworks, libraries) are reported with
    ``kind="library"`` and ``found=True``; they cannot be found on PATH.
    """
    statuses: list[ToolStatus] = []
    for pkg in spec.packages:
        if not pkg.executables:
            statuses.append(ToolStatus(attr=pkg.attr, kind="library", found=True))
            continue
        located = [shutil.which(exe) for exe in pkg.executables]
        found = next((p for p in located if p), None)
        statuses.append(
            ToolStatus(attr=pkg.attr, kind="tool", found=found is not None, path=found)
        )
    return statuses


def render_rcfile(spec: DevShellSpec) -> str:
    """Return the bash rcfile for an interactive session of *spec*."""
    names = " ".join(pkg.pname for pkg in spec.packages)
    return (
        "# generated by lakebuild develop\n"
        '[ -f "$HOME/.bashrc" ] && . "$HOME/.bashrc"\n'
        f"export LAKEBUILD_SHELL={spec.system}\n"
        f"export LAKEBUILD_SHELL_PACKAGES='{names}'\n"
        f"{spec.shell_hook}"
    )


def enter_dev_shell(spec: DevShellSpec, shell: str = "bash") -> int:
    """Run an interactive *shell* with the hook of *spec*; return its exit code.

    The rcfile lives in a temporary directory removed when the session ends.
    SIGINT is ignored here while the shell runs; the shell handles Ctrl-C.
    The rcfile is handed over with bash's ``--rcfile``, so *shell* must be
    bash or a path to it.

    Raises:
        InvalidUsageError: If *shell* is not bash.
    """
    if Path(shell).name != "bash":
        raise InvalidUsageError(
            f"--shell must be bash (got {shell}); use --print to load the hook in another shell"
        )
    with tempfile.TemporaryDirectory(prefix="lakebuild-shell-") as tmp:
        rcfile = Path(tmp) / "rc.sh"
        rcfile.write_text(render_rcfile(spec), encoding="utf-8")
        env = dict(os.environ)
        env["LAKEBUILD_SHELL"] = spec.system
        previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
        try:
            result = subprocess.run([shell, "--rcfile", str(rcfile), "-i"], env=env)
        finally:
            signal.signal(signal.SIGINT, previous)
    return result.returncode
