"""``lakebuild config`` -- inspect and edit the global configuration.

The settings decide where ``github:`` inputs are resolved, how long
resolutions stay cached, and how cargo is invoked. Keys use dot notation
matching :class:`~lakebuild.models.GlobalConfig` (``build.profile``,
``cache.ttl_seconds``, ``github.token_source``).
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from lakebuild.config import get_cache_dir, get_config_dir, load_global_config, save_global_config
from lakebuild.exceptions import InvalidUsageError
from lakebuild.locking.cache import ResolutionCache
from lakebuild.models import GlobalConfig
from lakebuild.output import format_data, info, success


config_app = typer.Typer(no_args_is_help=True)

_TRUE = ("true", "1", "yes", "on")
_NULL = ("", "none", "null")


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration.

    Example::

        lakebuild --json config show
    """
    info(f"Config directory: {get_config_dir()}")
    format_data(load_global_config().model_dump(mode="json"))


def _section(data: dict[str, Any], key: str) -> tuple[dict[str, Any], str]:
    """Return the mapping that holds the last segment of *key*, and that segment."""
    *parents, leaf = key.split(".")
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            raise InvalidUsageError(f"Invalid config key: {key}")
        node = child
    if leaf not in node or isinstance(node[leaf], dict):
        raise InvalidUsageError(f"Unknown config key: {key}")
    return node, leaf


def _coerce(key: str, current: Any, raw: str) -> Any:
    # bool before int: bool is an int subclass
    if isinstance(current, bool):
        return raw.lower() in _TRUE
    if isinstance(current, int):
        try:
            return int(raw)
        except ValueError:
            raise InvalidUsageError(f"Expected integer for {key}, got: {raw}") from None
    return None if raw.lower() in _NULL else raw


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Dotted key, e.g. 'build.profile'."),
    value: str = typer.Argument(help="New value; 'none' clears an optional key."),
) -> None:
    """Change one setting.

    The value takes the type of the current one and the whole config is
    validated before anything is written.

    Example::

        lakebuild config set build.profile dev
        lakebuild config set cache.ttl_seconds 600
        lakebuild config set github.token_source file:~/.config/gh-token
    """
    data = load_global_config().model_dump(mode="json")
    section, leaf = _section(data, key)
    section[leaf] = _coerce(key, section[leaf], value)

    try:
        updated = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise InvalidUsageError(f"Invalid value for {key}: {exc}") from None

    save_global_config(updated)
    success(f"Set {key} = {section[leaf]}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Restore every setting to its default.

    Asks first unless ``--force`` was given.

    Example::

        lakebuild --force config reset
    """
    force = bool((ctx.obj or {}).get("force"))
    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


@config_app.command("clear-cache")
def config_clear_cache() -> None:
    """Forget cached GitHub commit lookups.

    Only lookups of exact commit SHAs are cached, so this is rarely needed;
    use it after changing ``github.api_url`` or to free disk space.

    Example::

        lakebuild config clear-cache
    """
    cache = ResolutionCache(get_cache_dir(), load_global_config().cache)
    try:
        stats = cache.stats()
        if not stats["enabled"]:
            info("Resolution cache is disabled; nothing to clear.")
            return
        cache.clear()
    finally:
        cache.close()
    success(f"Removed {stats['size']} cached lookup(s) from {stats['directory']}")
