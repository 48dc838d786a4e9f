"""Shared test fixtures for lakebuild.

Provides isolated config environments, output state management, a fake
input resolver and a lock of the built-in descriptor. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import pytest

from lakebuild.descriptor import DEFAULT_DESCRIPTOR
from lakebuild.locking import lock_inputs
from lakebuild.models import InputReference, LockedInput, Lockfile
from lakebuild.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and lakebuild log handlers after every test.

    The OutputManager and the log handler cache references to
    sys.stdout/sys.stderr at creation time. When Typer's CliRunner redirects
    those streams and the test finishes, the cached references become
    stale. Resetting forces fresh ones on next use.
    """
    yield
    reset_output()
    logging.getLogger("lakebuild").handlers.clear()


# ---------------------------------------------------------------------------
# Fake resolver
# ---------------------------------------------------------------------------


def fake_sha(name: str, generation: int = 0) -> str:
    """Deterministic 40-char hex revision for *name*."""
    return hashlib.sha1(f"{name}:{generation}".encode()).hexdigest()


class FakeResolver:
    """Records every input it is asked to resolve and pins it to :func:`fake_sha`.

    ``generation`` can be bumped to simulate upstream moving on.
    """

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self.calls: list[str] = []

    def resolve(self, name: str, ref: InputReference) -> LockedInput:
        self.calls.append(name)
        return LockedInput(
            type="github",
            url=ref.url or "",
            rev=ref.rev or fake_sha(name, self.generation),
            last_modified="2024-01-01T00:00:00Z",
        )


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def default_lock(fake_resolver: FakeResolver) -> Lockfile:
    """A lock of the built-in descriptor produced by :class:`FakeResolver`."""
    return lock_inputs(DEFAULT_DESCRIPTOR, fake_resolver)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user config,
    clears LAKEBUILD_* and GITHUB_TOKEN, and changes the working directory
    to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("lakebuild.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["LAKEBUILD_DESCRIPTOR", "GITHUB_TOKEN"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def make_resolver():
    """Factory for :class:`FakeResolver` instances at a given generation."""
    return FakeResolver


@pytest.fixture
def sha_for():
    """The :func:`fake_sha` function, for asserting pinned revisions."""
    return fake_sha
