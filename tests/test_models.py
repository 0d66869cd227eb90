# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for source references and shell specification values."""

from __future__ import annotations

import pytest

from devshell.errors import DescriptorError
from devshell.models import ShellSpecification, SourceReference, ToolReference, unique

from helpers import REVISION


def test_parse_source_reference_with_branch() -> None:
    source = SourceReference.parse("github:NixOS/nixpkgs/release-23.11")

    assert source == SourceReference(host="github", owner="NixOS", repo="nixpkgs", ref="release-23.11")
    assert source.repository == "NixOS/nixpkgs"
    assert not source.is_pinned
    assert str(source) == "github:NixOS/nixpkgs/release-23.11"


def test_parse_source_reference_without_ref_tracks_default_branch() -> None:
    source = SourceReference.parse("GitHub:numtide/flake-utils")

    assert source.host == "github"
    assert source.ref is None
    assert str(source) == "github:numtide/flake-utils"


def test_parse_source_reference_query_selectors() -> None:
    by_ref = SourceReference.parse("gitlab:group/project?ref=main")
    by_rev = SourceReference.parse(f"github:NixOS/nixpkgs?rev={REVISION}")

    assert by_ref.ref == "main"
    assert by_rev.is_pinned
    assert by_rev.with_ref("other").ref == "other"


@pytest.mark.parametrize(
    "raw",
    [
        "nixpkgs",
        "github:NixOS",
        "github:/nixpkgs",
        "1github:NixOS/nixpkgs",
        "github:NixOS/nixpkgs/main?ref=other",
    ],
)
def test_parse_source_reference_rejects_malformed(raw: str) -> None:
    with pytest.raises(DescriptorError):
        SourceReference.parse(raw)


def test_shell_specification_equality_ignores_env_order() -> None:
    tool = ToolReference(tool_id="stdenv.cc", platform="x86_64-linux", revision=REVISION)
    first = ShellSpecification(platform="x86_64-linux", tools=(tool,), env={"A": "1", "B": "2"})
    second = ShellSpecification(platform="x86_64-linux", tools=[tool], env={"B": "2", "A": "1"})

    assert first == second
    assert hash(first) == hash(second)
    assert first.tool_ids == ("stdenv.cc",)
    assert first.to_dict()["env"] == {"A": "1", "B": "2"}


def test_shell_specification_env_is_read_only() -> None:
    spec = ShellSpecification(platform="x86_64-linux", tools=(), env={"A": "1"})

    with pytest.raises(TypeError):
        spec.env["A"] = "2"  # type: ignore[index]


def test_unique_keeps_first_occurrence() -> None:
    assert unique(["b", "a", "b", "c", "a"]) == ("b", "a", "c")
