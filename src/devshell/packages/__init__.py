# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Package snapshot evaluators."""

from __future__ import annotations

from .base import PackageSet, SnapshotEvaluator
from .catalog import (
    CatalogEvaluator,
    CatalogPackage,
    CatalogPackageSet,
    PackageCatalog,
    catalog_from_mapping,
    load_catalog,
)
from .nix import NixEvaluator, NixPackageSet

__all__ = [
    "CatalogEvaluator",
    "CatalogPackage",
    "CatalogPackageSet",
    "NixEvaluator",
    "NixPackageSet",
    "PackageCatalog",
    "PackageSet",
    "SnapshotEvaluator",
    "catalog_from_mapping",
    "load_catalog",
]
