# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from helpers import BASIC_FLAKE, BASIC_TOML, REVISION, FakeFetcher

from devshell.descriptor import Descriptor, parse_flake_descriptor, parse_toml_descriptor
from devshell.packages import CatalogEvaluator, PackageCatalog, catalog_from_mapping


@pytest.fixture
def flake_descriptor() -> Descriptor:
    """Return the descriptor parsed from the basic flake."""
    return parse_flake_descriptor(BASIC_FLAKE)


@pytest.fixture
def toml_descriptor() -> Descriptor:
    """Return the descriptor parsed from the basic TOML document."""
    return parse_toml_descriptor(BASIC_TOML)


@pytest.fixture
def catalog() -> PackageCatalog:
    """Return a catalog providing ``stdenv.cc``, ``cmake`` and a Linux-only ``strace``."""
    return catalog_from_mapping(
        {
            "sources": ["github:NixOS/nixpkgs"],
            "packages": {
                "stdenv.cc": {
                    "name": "gcc-wrapper-12.3.0",
                    "version": "12.3.0",
                    "out_path": "/nix/store/{revision}-{platform}-gcc-wrapper-12.3.0",
                },
                "cmake": {"name": "cmake-3.27.7", "version": "3.27.7", "out_path": "/nix/store/{platform}-cmake"},
                "strace": {"version": "6.6", "platforms": ["x86_64-linux", "aarch64-linux"]},
            },
        }
    )


@pytest.fixture
def fetcher() -> FakeFetcher:
    """Return a fetcher pinning every source to ``REVISION``."""
    return FakeFetcher()


@pytest.fixture
def evaluator(catalog: PackageCatalog, fetcher: FakeFetcher) -> CatalogEvaluator:
    """Return a catalog evaluator backed by the fake fetcher."""
    return CatalogEvaluator(catalog, fetcher=fetcher)


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Return a project with a pinned TOML descriptor, a catalog and project settings."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    for key in ("DEVSHELL_JOBS", "DEVSHELL_EVALUATOR", "DEVSHELL_CATALOG"):
        monkeypatch.delenv(key, raising=False)

    root = tmp_path / "project"
    root.mkdir()
    descriptor = BASIC_TOML.replace("release-23.11", REVISION).replace(
        "numtide/flake-utils", f"numtide/flake-utils/{REVISION}"
    )
    (root / "devshell.toml").write_text(descriptor, encoding="utf-8")
    (root / "packages.toml").write_text(
        """
sources = ["github:NixOS/nixpkgs"]

[packages."stdenv.cc"]
name = "gcc-wrapper-12.3.0"
version = "12.3.0"
out_path = "/nix/store/{platform}-gcc-wrapper-12.3.0"
""".strip(),
        encoding="utf-8",
    )
    (root / ".devshell.toml").write_text(
        'evaluator = "catalog"\ncatalog = "packages.toml"\njobs = 2\n',
        encoding="utf-8",
    )
    return root
