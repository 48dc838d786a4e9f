"""Tests for locking descriptors, the lockfile on disk, and the resolved input graph."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lakebuild.descriptor import DEFAULT_DESCRIPTOR
from lakebuild.exceptions import InvalidUsageError, ResolutionError
from lakebuild.locking import check_lock_matches, lock_inputs, read_lockfile, resolve_graph, write_lockfile
from lakebuild.models import Descriptor, InputReference, LockedEdge, Lockfile


class _FailingResolver:
    def resolve(self, name: str, ref: InputReference):
        raise ResolutionError(f"Cannot reach {ref.url}")


def _descriptor_with_nested() -> Descriptor:
    inputs = dict(DEFAULT_DESCRIPTOR.inputs)
    inputs["naersk"] = InputReference(
        url="github:nix-community/naersk",
        inputs={
            "nixpkgs": InputReference(follows="nixpkgs"),
            "fenix": InputReference(url="github:nix-community/fenix"),
        },
    )
    return Descriptor(inputs=inputs)


# ---------------------------------------------------------------------------
# lock_inputs
# ---------------------------------------------------------------------------


class TestLockInputs:
    def test_follows_input_is_never_resolved(self, fake_resolver) -> None:
        lock = lock_inputs(DEFAULT_DESCRIPTOR, fake_resolver)
        assert sorted(fake_resolver.calls) == ["flake-utils", "naersk", "nixpkgs"]
        assert "naersk/nixpkgs" not in lock.nodes
        assert lock.nodes["naersk"].inputs["nixpkgs"] == LockedEdge(follows="nixpkgs")

    def test_root_edges(self, default_lock: Lockfile, sha_for) -> None:
        assert default_lock.root == {
            "flake-utils": LockedEdge(node="flake-utils"),
            "naersk": LockedEdge(node="naersk"),
            "nixpkgs": LockedEdge(node="nixpkgs"),
        }
        assert default_lock.nodes["nixpkgs"].rev == sha_for("nixpkgs")

    def test_nested_input_gets_own_node(self, fake_resolver) -> None:
        lock = lock_inputs(_descriptor_with_nested(), fake_resolver)
        assert "naersk/fenix" in fake_resolver.calls
        assert lock.nodes["naersk"].inputs["fenix"] == LockedEdge(node="naersk/fenix")
        assert lock.nodes["naersk/fenix"].url == "github:nix-community/fenix"

    def test_top_level_follows(self, fake_resolver) -> None:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs["pkgs"] = InputReference(follows="nixpkgs")
        lock = lock_inputs(Descriptor(inputs=inputs), fake_resolver)
        assert lock.root["pkgs"] == LockedEdge(follows="nixpkgs")
        assert "pkgs" not in fake_resolver.calls

    def test_existing_nodes_are_reused(self, default_lock: Lockfile, make_resolver) -> None:
        later = make_resolver(generation=1)
        lock = lock_inputs(DEFAULT_DESCRIPTOR, later, existing=default_lock)
        assert later.calls == []
        assert lock == default_lock

    def test_update_reresolves_named_input(self, default_lock: Lockfile, make_resolver, sha_for) -> None:
        later = make_resolver(generation=1)
        lock = lock_inputs(DEFAULT_DESCRIPTOR, later, existing=default_lock, update=["nixpkgs"])
        assert later.calls == ["nixpkgs"]
        assert lock.nodes["nixpkgs"].rev == sha_for("nixpkgs", 1)
        assert lock.nodes["naersk"].rev == default_lock.nodes["naersk"].rev

    def test_changed_url_is_reresolved(self, default_lock: Lockfile, make_resolver) -> None:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs["nixpkgs"] = InputReference(url="github:nixos/nixpkgs/nixos-24.05")
        later = make_resolver(generation=1)
        lock_inputs(Descriptor(inputs=inputs), later, existing=default_lock)
        assert later.calls == ["nixpkgs"]

    def test_update_unknown_input(self, fake_resolver) -> None:
        with pytest.raises(InvalidUsageError, match="nixos"):
            lock_inputs(DEFAULT_DESCRIPTOR, fake_resolver, update=["nixos"])

    def test_resolution_failure_propagates(self) -> None:
        with pytest.raises(ResolutionError, match="Cannot reach"):
            lock_inputs(DEFAULT_DESCRIPTOR, _FailingResolver())


# ---------------------------------------------------------------------------
# Lockfile persistence
# ---------------------------------------------------------------------------


class TestLockfileIO:
    def test_missing_returns_none(self, tmp_path: Path) -> None:
        assert read_lockfile(tmp_path / "lakebuild.lock") is None

    def test_write_then_read(self, tmp_path: Path, default_lock: Lockfile) -> None:
        path = tmp_path / "lakebuild.lock"
        write_lockfile(path, default_lock)
        assert read_lockfile(path) == default_lock

    def test_output_is_sorted_and_stable(
        self, tmp_path: Path, default_lock: Lockfile, make_resolver
    ) -> None:
        a, b = tmp_path / "a.lock", tmp_path / "b.lock"
        write_lockfile(a, default_lock)
        write_lockfile(b, lock_inputs(DEFAULT_DESCRIPTOR, make_resolver()))
        assert a.read_bytes() == b.read_bytes()
        data = json.loads(a.read_text())
        assert list(data) == sorted(data)
        assert data["nodes"]["naersk"]["inputs"] == {"nixpkgs": {"follows": "nixpkgs"}}

    def test_none_fields_omitted(self, tmp_path: Path, default_lock: Lockfile) -> None:
        path = tmp_path / "lakebuild.lock"
        write_lockfile(path, default_lock)
        node = json.loads(path.read_text())["nodes"]["nixpkgs"]
        assert "path" not in node
        assert "owner" not in node

    def test_malformed(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.lock"
        path.write_text("{broken")
        with pytest.raises(ResolutionError, match="Invalid lockfile"):
            read_lockfile(path)

    def test_unsupported_version(self, tmp_path: Path) -> None:
        path = tmp_path / "lakebuild.lock"
        path.write_text(json.dumps({"version": 7, "root": {}, "nodes": {}}))
        with pytest.raises(ResolutionError, match="version 7"):
            read_lockfile(path)


# ---------------------------------------------------------------------------
# Resolved graph
# ---------------------------------------------------------------------------


class TestResolveGraph:
    def test_follows_shares_the_same_handle(self, default_lock: Lockfile) -> None:
        graph = resolve_graph(DEFAULT_DESCRIPTOR, default_lock)
        assert graph["naersk"].inputs["nixpkgs"] is graph["nixpkgs"]
        assert graph["naersk"].inputs["nixpkgs"].rev == graph["nixpkgs"].rev

    def test_graph_is_read_only(self, default_lock: Lockfile) -> None:
        graph = resolve_graph(DEFAULT_DESCRIPTOR, default_lock)
        with pytest.raises(TypeError):
            graph["nixpkgs"] = graph["naersk"]  # type: ignore[index]
        with pytest.raises(TypeError):
            graph["naersk"].inputs["nixpkgs"] = graph["naersk"]  # type: ignore[index]

    def test_top_level_follows_handle(self, fake_resolver) -> None:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs["pkgs"] = InputReference(follows="nixpkgs")
        descriptor = Descriptor(inputs=inputs)
        graph = resolve_graph(descriptor, lock_inputs(descriptor, fake_resolver))
        assert graph["pkgs"] is graph["nixpkgs"]

    def test_nested_node(self, fake_resolver, sha_for) -> None:
        descriptor = _descriptor_with_nested()
        graph = resolve_graph(descriptor, lock_inputs(descriptor, fake_resolver))
        fenix = graph["naersk"].inputs["fenix"]
        assert fenix.name == "fenix"
        assert fenix.rev == sha_for("naersk/fenix")

    def test_missing_input(self, default_lock: Lockfile) -> None:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs["fenix"] = InputReference(url="github:nix-community/fenix")
        with pytest.raises(ResolutionError, match="'fenix' is not locked"):
            resolve_graph(Descriptor(inputs=inputs), default_lock)

    def test_stale_url(self, default_lock: Lockfile) -> None:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs["nixpkgs"] = InputReference(url="github:nixos/nixpkgs/nixos-24.05")
        with pytest.raises(ResolutionError, match="out of date"):
            check_lock_matches(Descriptor(inputs=inputs), default_lock)

    def test_stale_follows(self, default_lock: Lockfile) -> None:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs["naersk"] = InputReference(url="github:nix-community/naersk")
        inputs["other"] = InputReference(url="github:a/b")
        nodes = dict(default_lock.nodes)
        nodes["other"] = nodes["nixpkgs"].model_copy(update={"url": "github:a/b"})
        root = dict(default_lock.root)
        root["other"] = LockedEdge(node="other")
        lock = Lockfile(root=root, nodes=nodes)

        descriptor = Descriptor(
            inputs={
                **inputs,
                "naersk": InputReference(
                    url="github:nix-community/naersk",
                    inputs={"nixpkgs": InputReference(follows="other")},
                ),
            }
        )
        with pytest.raises(ResolutionError, match="naersk/nixpkgs"):
            check_lock_matches(descriptor, lock)

    def test_rev_constraint_checked(self, default_lock: Lockfile) -> None:
        inputs = dict(DEFAULT_DESCRIPTOR.inputs)
        inputs["nixpkgs"] = InputReference(
            url="github:nixos/nixpkgs/nixos-unstable", rev="deadbeef"
        )
        with pytest.raises(ResolutionError, match="run 'lakebuild lock'"):
            check_lock_matches(Descriptor(inputs=inputs), default_lock)

    def test_missing_node(self, default_lock: Lockfile) -> None:
        nodes = dict(default_lock.nodes)
        del nodes["flake-utils"]
        lock = Lockfile(root=default_lock.root, nodes=nodes)
        with pytest.raises(ResolutionError):
            resolve_graph(DEFAULT_DESCRIPTOR, lock)
