"""User configuration, on-disk locations and descriptor lookup.

Directories follow the XDG Base Directory layout on Linux and the BSDs and
live under ``~/.lakebuild/`` elsewhere:

======== ========================== ========================
kind     XDG                        fallback
======== ========================== ========================
config   ``$XDG_CONFIG_HOME``       ``~/.lakebuild``
cache    ``$XDG_CACHE_HOME``        ``~/.lakebuild/cache``
data     ``$XDG_DATA_HOME``         ``~/.lakebuild/logs``
======== ========================== ========================

The global :class:`~lakebuild.models.GlobalConfig` is one JSON file in the
config directory. Every file lakebuild writes (config and lockfile) goes
through :func:`atomic_write`.
"""

from __future__ import annotations

import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from lakebuild.exceptions import ConfigError
from lakebuild.models import GlobalConfig

_APP_NAME = "lakebuild"
_CONFIG_FILENAME = "config.json"
DESCRIPTOR_FILENAMES = ("lakebuild.yaml", "lakebuild.yml", "lakebuild.json")
LOCK_FILENAME = "lakebuild.lock"
DESCRIPTOR_ENV_VAR = "LAKEBUILD_DESCRIPTOR"

# kind -> (XDG variable, default under $HOME, subdirectory of ~/.lakebuild)
_DIRS: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_default, fallback_sub = _DIRS[kind]
    if _is_xdg_platform():
        base = os.environ.get(env_var) or str(Path.home().joinpath(*home_default))
        path = Path(base) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json``; created on first use."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """Directory of the resolution cache; created on first use.

    Anything here may be deleted at any time. Evaluation never reads it.
    """
    return _app_dir("cache")


def get_data_dir() -> Path:
    """Directory for crash logs; created on first use."""
    return _app_dir("data")


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* in one rename.

    The data is written and fsynced to a sibling temp file first, so readers
    see either the old file or the complete new one. If anything fails the
    temp file is removed and *path* keeps its previous content.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Read ``config.json``, or return defaults when there is none.

    Raises:
        ConfigError: If the file is not valid JSON or not a valid config.
    """
    path = _global_config_path()
    if not path.exists():
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    atomic_write(_global_config_path(), config.model_dump_json(indent=2) + "\n")


# --- Descriptor location ---


def resolve_descriptor_path(
    cli_descriptor: Optional[str] = None,
    config: Optional[GlobalConfig] = None,
) -> Optional[Path]:
    """Locate the descriptor file to evaluate.

    Precedence (high to low):
        1. ``--descriptor`` CLI flag
        2. ``LAKEBUILD_DESCRIPTOR`` environment variable
        3. ``lakebuild.yaml`` / ``lakebuild.yml`` / ``lakebuild.json`` in the
           working directory
        4. ``default_descriptor`` in the global config

    Returns:
        The descriptor path, or ``None`` to use the built-in descriptor.

    Raises:
        ConfigError: If an explicitly requested file does not exist.
    """
    explicit = cli_descriptor or os.environ.get(DESCRIPTOR_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"Descriptor file not found: {path}")
        return path

    for name in DESCRIPTOR_FILENAMES:
        candidate = Path.cwd() / name
        if candidate.is_file():
            return candidate

    if config is not None and config.default_descriptor:
        path = Path(config.default_descriptor).expanduser()
        if not path.is_file():
            raise ConfigError(
                f"Configured default_descriptor does not exist: {path}"
            )
        return path

    return None


def lockfile_path(descriptor_path: Optional[Path]) -> Path:
    """Return the lockfile path that sits beside *descriptor_path*.

    The built-in descriptor (``None``) locks into the working directory.
    """
    if descriptor_path is None:
        return Path.cwd() / LOCK_FILENAME
    return descriptor_path.resolve().parent / LOCK_FILENAME


# --- Credentials ---


def resolve_credential(source: str) -> str:
    """Read a secret named by *source*.

    ``env:NAME`` reads an environment variable; ``file:PATH`` reads a file
    and strips surrounding whitespace.

    Raises:
        ConfigError: For an unset variable, a missing or unreadable file, or
            any other scheme.
    """
    scheme, _, target = source.partition(":")
    if scheme == "env":
        if target not in os.environ:
            raise ConfigError(f"Environment variable '{target}' is not set (source: {source})")
        return os.environ[target]
    if scheme == "file":
        path = Path(target).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path}")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc
    raise ConfigError(f"Unknown credential source '{source}' (expected env:NAME or file:PATH)")
