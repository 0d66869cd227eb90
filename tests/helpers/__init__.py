# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared test doubles and sample descriptors."""

from __future__ import annotations

from threading import Lock

from devshell.errors import UnreachableSource
from devshell.models import Snapshot, SourceReference

REVISION = "0123456789abcdef0123456789abcdef01234567"
OTHER_REVISION = "fedcba9876543210fedcba9876543210fedcba98"

BASIC_FLAKE = """\
{
  description = "A very basic flake";

  inputs = {
    nixpkgs.url = github:NixOS/nixpkgs/release-23.11;
    flake-utils.url = github:numtide/flake-utils;
  };

  outputs = { self, nixpkgs, flake-utils }:
    flake-utils.lib.eachDefaultSystem (system:
      let
        pkgs = import nixpkgs { inherit system; };
      in
    {
      devShell = pkgs.mkShell {
        buildInputs = with pkgs; [
          stdenv.cc
        ];
      };
    });
}
"""

BASIC_TOML = """\
description = "A very basic flake"

[inputs]
nixpkgs = "github:NixOS/nixpkgs/release-23.11"
flake-utils = "github:numtide/flake-utils"

[outputs]
args = ["self", "nixpkgs", "flake-utils"]
packages = "nixpkgs"

[outputs.devShell]
buildInputs = ["stdenv.cc"]
"""


class FakeFetcher:
    """Fetcher returning fixed revisions and recording every call."""

    def __init__(
        self,
        revisions: dict[str, str] | None = None,
        *,
        unreachable: set[str] | None = None,
        default: str = REVISION,
    ) -> None:
        self.revisions = revisions or {}
        self.unreachable = unreachable or set()
        self.default = default
        self.calls: list[SourceReference] = []
        self._lock = Lock()

    def fetch(self, source: SourceReference) -> Snapshot:
        with self._lock:
            self.calls.append(source)
        if source.host in self.unreachable or str(source) in self.unreachable:
            raise UnreachableSource(source, "connection refused")
        if source.is_pinned and source.ref is not None:
            return Snapshot(source=source, revision=source.ref)
        return Snapshot(source=source, revision=self.revisions.get(str(source), self.default))


__all__ = ["BASIC_FLAKE", "BASIC_TOML", "OTHER_REVISION", "REVISION", "FakeFetcher"]
