"""Load and validate build descriptors.

A descriptor declares the pinned inputs and the artifact to build. The
built-in :data:`DEFAULT_DESCRIPTOR` is the ``lakecli`` descriptor; a
project can replace it with a ``lakebuild.yaml`` or ``lakebuild.json``
file of the same shape::

    description: lakecli client interface
    inputs:
      nixpkgs:
        url: github:nixos/nixpkgs/nixos-unstable
      flake-utils:
        url: github:numtide/flake-utils
      naersk:
        url: github:nix-community/naersk
        inputs:
          nixpkgs:
            follows: nixpkgs

The two public functions are :func:`load_descriptor` (file to validated
:class:`~lakebuild.models.Descriptor`) and :func:`validate_follows`
(follows targets exist and do not form cycles).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from lakebuild.exceptions import DescriptorError
from lakebuild.models import Descriptor, InputReference


DEFAULT_DESCRIPTOR = Descriptor(
    description="lakecli client interface",
    inputs={
        "nixpkgs": InputReference(url="github:nixos/nixpkgs/nixos-unstable"),
        "flake-utils": InputReference(url="github:numtide/flake-utils"),
        "naersk": InputReference(
            url="github:nix-community/naersk",
            inputs={"nixpkgs": InputReference(follows="nixpkgs")},
        ),
    },
    src="src",
)


def load_descriptor(path: str | Path) -> Descriptor:
    """Load a descriptor from a YAML or JSON file.

    Args:
        path: Path to the descriptor file.

    Returns:
        The validated descriptor.

    Raises:
        DescriptorError: If the file cannot be read, parsed, or validated.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise DescriptorError(f"Descriptor file not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptorError(f"Failed to read descriptor {path}: {exc}") from exc

    if not content.strip():
        raise DescriptorError(f"Descriptor file is empty: {path}")

    suffix = file_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    return parse_descriptor(_parse_content(content, hint=hint), source=str(path))


def parse_descriptor(data: dict[str, Any], source: str = "<descriptor>") -> Descriptor:
    """Validate a raw mapping as a :class:`Descriptor` and check follows edges."""
    try:
        descriptor = Descriptor.model_validate(data)
    except ValidationError as exc:
        raise DescriptorError(f"Invalid descriptor {source}: {exc}") from exc
    validate_follows(descriptor)
    return descriptor


def _parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    """
    json_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise DescriptorError(f"Invalid JSON: {exc}") from exc
        else:
            if not isinstance(result, dict):
                raise DescriptorError(
                    f"Descriptor must be an object (got {type(result).__name__})"
                )
            return result

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        msg = "Failed to parse descriptor as JSON or YAML"
        if json_error:
            msg += f"\n  JSON error: {json_error}"
        msg += f"\n  YAML error: {exc}"
        raise DescriptorError(msg) from exc

    if not isinstance(result, dict):
        raise DescriptorError(
            "Descriptor must be an object (got "
            f"{type(result).__name__ if result is not None else 'empty document'})"
        )
    return result


def follows_target(descriptor: Descriptor, name: str) -> str:
    """Return the top-level input that *name* ultimately resolves to.

    Follows a chain of top-level ``follows`` entries to the input that is
    actually fetched.

    Raises:
        DescriptorError: On an unknown target or a follows cycle.
    """
    seen: list[str] = []
    current = name
    while True:
        if current not in descriptor.inputs:
            chain = " -> ".join(seen + [current])
            raise DescriptorError(f"Input follows unknown input '{current}' ({chain})")
        if current in seen:
            chain = " -> ".join(seen + [current])
            raise DescriptorError(f"Follows cycle between inputs: {chain}")
        seen.append(current)
        ref = descriptor.inputs[current]
        if ref.follows is None:
            return current
        current = ref.follows


def validate_follows(descriptor: Descriptor) -> None:
    """Check every ``follows`` edge in *descriptor*.

    Raises:
        DescriptorError: If a target does not name a top-level input or the
            follows edges form a cycle.
    """
    for name, ref in descriptor.inputs.items():
        if ref.follows is not None:
            follows_target(descriptor, name)
        for sub_name, sub_ref in ref.inputs.items():
            _validate_nested(descriptor, f"{name}/{sub_name}", sub_ref)


def _validate_nested(descriptor: Descriptor, path: str, ref: InputReference) -> None:
    if ref.follows is not None:
        if ref.follows not in descriptor.inputs:
            raise DescriptorError(
                f"Input '{path}' follows unknown input '{ref.follows}'"
            )
        follows_target(descriptor, ref.follows)
        return
    for sub_name, sub_ref in ref.inputs.items():
        _validate_nested(descriptor, f"{path}/{sub_name}", sub_ref)
