# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Protocols describing the package snapshot evaluator collaborator."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models import Platform, Snapshot, SourceReference, ToolReference


@runtime_checkable
class PackageSet(Protocol):
    """Evaluated contents of a snapshot for one platform."""

    @property
    def snapshot(self) -> Snapshot:
        """Return the snapshot the package set was evaluated from."""

        raise NotImplementedError

    @property
    def platform(self) -> Platform:
        """Return the platform the package set was evaluated for."""

        raise NotImplementedError

    def lookup(self, tool_id: str) -> ToolReference:
        """Return the tool named by ``tool_id``.

        Args:
            tool_id: Attribute path such as ``stdenv.cc``.

        Returns:
            ToolReference: Resolved tool for :attr:`platform`.

        Raises:
            ToolNotFound: If the package set has no such tool.
        """

        raise NotImplementedError


@runtime_checkable
class SnapshotEvaluator(Protocol):
    """Collaborator importing a package set from a source reference."""

    def import_snapshot(self, source: SourceReference, platform: Platform) -> PackageSet:
        """Evaluate ``source`` for ``platform``.

        Args:
            source: Package repository reference to import.
            platform: Platform to evaluate packages for.

        Returns:
            PackageSet: Package set tools are looked up in.

        Raises:
            UnreachableSource: If ``source`` cannot be dereferenced or evaluated.
        """

        raise NotImplementedError


__all__ = ["PackageSet", "SnapshotEvaluator"]
