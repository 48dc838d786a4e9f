"""Tests for lakebuild.descriptor -- built-in descriptor, file loading, follows checks."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lakebuild.descriptor import (
    DEFAULT_DESCRIPTOR,
    follows_target,
    load_descriptor,
    parse_descriptor,
    validate_follows,
)
from lakebuild.exceptions import DescriptorError
from lakebuild.exit_codes import EXIT_DESCRIPTOR_ERROR
from lakebuild.models import Descriptor, InputReference


YAML_DESCRIPTOR = """\
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
src: src
"""


class TestDefaultDescriptor:
    def test_three_inputs(self) -> None:
        assert sorted(DEFAULT_DESCRIPTOR.inputs) == ["flake-utils", "naersk", "nixpkgs"]

    def test_input_locations(self) -> None:
        inputs = DEFAULT_DESCRIPTOR.inputs
        assert inputs["nixpkgs"].url == "github:nixos/nixpkgs/nixos-unstable"
        assert inputs["flake-utils"].url == "github:numtide/flake-utils"
        assert inputs["naersk"].url == "github:nix-community/naersk"

    def test_builder_follows_base(self) -> None:
        assert DEFAULT_DESCRIPTOR.inputs["naersk"].inputs["nixpkgs"].follows == "nixpkgs"

    def test_package_name(self) -> None:
        assert DEFAULT_DESCRIPTOR.package_name == "lakecli"
        assert DEFAULT_DESCRIPTOR.description == "lakecli client interface"

    def test_builds_from_src_directory(self) -> None:
        assert DEFAULT_DESCRIPTOR.src == "src"
        assert Descriptor(inputs=dict(DEFAULT_DESCRIPTOR.inputs)).src == "."


class TestLoadDescriptor:
    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.yaml"
        path.write_text(YAML_DESCRIPTOR)
        assert load_descriptor(path) == DEFAULT_DESCRIPTOR

    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.json"
        path.write_text(json.dumps(DEFAULT_DESCRIPTOR.model_dump(mode="json")))
        assert load_descriptor(path) == DEFAULT_DESCRIPTOR

    def test_unknown_extension_falls_back_to_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "descriptor.txt"
        path.write_text(YAML_DESCRIPTOR)
        assert load_descriptor(path).package_name == "lakecli"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(DescriptorError, match="not found"):
            load_descriptor(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.yaml"
        path.write_text("   \n")
        with pytest.raises(DescriptorError, match="empty"):
            load_descriptor(path)

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.json"
        path.write_text("{not json")
        with pytest.raises(DescriptorError, match="Invalid JSON"):
            load_descriptor(path)

    def test_non_mapping_document(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(DescriptorError, match="must be an object"):
            load_descriptor(path)

    def test_schema_violation(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.yaml"
        path.write_text("inputs:\n  nixpkgs:\n    url: github:a/b\n")
        with pytest.raises(DescriptorError, match="Invalid descriptor") as exc_info:
            load_descriptor(path)
        assert exc_info.value.exit_code == EXIT_DESCRIPTOR_ERROR


class TestFollows:
    def _descriptor(self, **extra: InputReference) -> Descriptor:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs.update(extra)
        return Descriptor(inputs=inputs)

    def test_default_descriptor_is_valid(self) -> None:
        validate_follows(DEFAULT_DESCRIPTOR)

    def test_top_level_chain(self) -> None:
        d = self._descriptor(
            pkgs=InputReference(follows="nixpkgs"),
            pkgs2=InputReference(follows="pkgs"),
        )
        assert follows_target(d, "pkgs2") == "nixpkgs"
        assert follows_target(d, "nixpkgs") == "nixpkgs"

    def test_cycle(self) -> None:
        d = self._descriptor(
            a=InputReference(follows="b"),
            b=InputReference(follows="a"),
        )
        with pytest.raises(DescriptorError, match="cycle"):
            validate_follows(d)

    def test_unknown_top_level_target(self) -> None:
        d = self._descriptor(a=InputReference(follows="missing"))
        with pytest.raises(DescriptorError, match="unknown input 'missing'"):
            validate_follows(d)

    def test_unknown_nested_target(self) -> None:
        with pytest.raises(DescriptorError, match="naersk/nixpkgs"):
            parse_descriptor(
                {
                    "inputs": {
                        "nixpkgs": {"url": "github:nixos/nixpkgs"},
                        "flake-utils": {"url": "github:numtide/flake-utils"},
                        "naersk": {
                            "url": "github:nix-community/naersk",
                            "inputs": {"nixpkgs": {"follows": "pkgs"}},
                        },
                    }
                }
            )
