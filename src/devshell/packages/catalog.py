# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Offline snapshot evaluator backed by a TOML package catalog.

A catalog lists the attribute paths a snapshot provides::

    sources = ["github:NixOS/nixpkgs"]

    [packages."stdenv.cc"]
    name = "gcc-wrapper"
    version = "12.3.0"
    out_path = "/nix/store/{revision}-{platform}-gcc-wrapper-12.3.0"

``platforms`` restricts a package to some platforms; ``out_path`` may use the
``{platform}``, ``{revision}`` and ``{tool}`` placeholders.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ConfigError, ToolNotFound, UnreachableSource
from ..models import Platform, Snapshot, SourceReference, ToolReference
from ..sources.fetch import DEFAULT_REF, SnapshotFetcher
from .base import SnapshotEvaluator

LOGGER = logging.getLogger(__name__)


class CatalogPackage(BaseModel):
    """Package entry published by a catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    version: str | None = None
    platforms: tuple[str, ...] | None = None
    out_path: str | None = None


class PackageCatalog(BaseModel):
    """Set of packages keyed by attribute path."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sources: tuple[str, ...] = ()
    packages: dict[str, CatalogPackage] = Field(default_factory=dict)

    def covers(self, source: SourceReference) -> bool:
        """Return ``True`` when the catalog describes ``source``'s repository."""

        if not self.sources:
            return True
        return f"{source.host}:{source.repository}" in self.sources


def load_catalog(path: Path) -> PackageCatalog:
    """Load a package catalog from the TOML file at ``path``.

    Raises:
        ConfigError: If the file is unreadable or malformed.
    """

    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"cannot read package catalog {path}: {exc.strerror or exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid package catalog {path}: {exc}") from exc
    return catalog_from_mapping(payload, context=str(path))


def catalog_from_mapping(payload: Mapping[str, object], *, context: str = "catalog") -> PackageCatalog:
    """Validate ``payload`` into a :class:`PackageCatalog`."""

    try:
        return PackageCatalog.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(f"invalid package catalog {context}: {exc.error_count()} error(s)") from exc


@dataclass(frozen=True, slots=True)
class CatalogPackageSet:
    """Package set view of a catalog for one snapshot and platform."""

    catalog: PackageCatalog
    snapshot: Snapshot
    platform: Platform

    def lookup(self, tool_id: str) -> ToolReference:
        package = self.catalog.packages.get(tool_id)
        if package is None:
            raise ToolNotFound(tool_id, platform=self.platform)
        if package.platforms is not None and self.platform not in package.platforms:
            raise ToolNotFound(tool_id, platform=self.platform, detail="not available on this platform")
        out_path = None
        if package.out_path is not None:
            out_path = package.out_path.format(
                platform=self.platform,
                revision=self.snapshot.revision,
                tool=tool_id,
            )
        return ToolReference(
            tool_id=tool_id,
            platform=self.platform,
            revision=self.snapshot.revision,
            name=package.name,
            version=package.version,
            out_path=out_path,
        )


class CatalogEvaluator(SnapshotEvaluator):
    """Evaluate snapshots against a static package catalog.

    When a fetcher is supplied it pins each source first, so unreachable
    sources fail exactly as they would with a live evaluator. Without one the
    reference's own selector stands in for the revision.
    """

    def __init__(self, catalog: PackageCatalog, *, fetcher: SnapshotFetcher | None = None) -> None:
        self._catalog = catalog
        self._fetcher = fetcher

    @classmethod
    def from_path(cls, path: Path, *, fetcher: SnapshotFetcher | None = None) -> CatalogEvaluator:
        """Build an evaluator from the catalog file at ``path``."""

        return cls(load_catalog(path), fetcher=fetcher)

    def import_snapshot(self, source: SourceReference, platform: Platform) -> CatalogPackageSet:
        if not self._catalog.covers(source):
            raise UnreachableSource(source, "package catalog does not describe this repository", platform=platform)
        if self._fetcher is not None:
            snapshot = self._fetcher.fetch(source)
        else:
            snapshot = Snapshot(source=source, revision=source.ref or DEFAULT_REF)
        LOGGER.debug("catalog snapshot source=%s revision=%s platform=%s", source, snapshot.revision, platform)
        return CatalogPackageSet(catalog=self._catalog, snapshot=snapshot, platform=platform)


__all__ = [
    "CatalogEvaluator",
    "CatalogPackage",
    "CatalogPackageSet",
    "PackageCatalog",
    "catalog_from_mapping",
    "load_catalog",
]
