# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Snapshot evaluator that delegates package evaluation to the ``nix`` command."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from subprocess import CompletedProcess
from typing import Final

from ..errors import ToolNotFound, UnreachableSource
from ..models import Platform, Snapshot, SourceReference, ToolReference, is_revision
from ..process_utils import run_command
from ..sources.fetch import SnapshotFetcher
from .base import SnapshotEvaluator

LOGGER = logging.getLogger(__name__)

Runner = Callable[..., CompletedProcess[str]]

NIX_EXPERIMENTAL_FLAGS: Final[tuple[str, ...]] = ("--extra-experimental-features", "nix-command flakes")
TOOL_METADATA_EXPR: Final[str] = (
    "p: { name = p.name or null; version = p.version or null; outPath = p.outPath or null; }"
)
_MISSING_ATTRIBUTE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"does not provide attribute"),
    re.compile(r"attribute '[^']+' missing"),
)


def _first_error_line(stderr: str | None) -> str:
    for line in (stderr or "").splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return "nix exited without diagnostics"


def _optional_str(payload: Mapping[str, object], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def _installable(snapshot: Snapshot, platform: Platform, tool_id: str) -> str:
    return f"{snapshot.pinned}#legacyPackages.{platform}.{tool_id}"


class NixPackageSet:
    """Package set evaluated lazily from a pinned flake reference."""

    def __init__(self, evaluator: NixEvaluator, snapshot: Snapshot, platform: Platform) -> None:
        self._evaluator = evaluator
        self._snapshot = snapshot
        self._platform = platform
        self._lookups: dict[str, ToolReference] = {}

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def platform(self) -> Platform:
        return self._platform

    def lookup(self, tool_id: str) -> ToolReference:
        cached = self._lookups.get(tool_id)
        if cached is not None:
            return cached
        payload = self._evaluator.evaluate_attribute(self._snapshot, self._platform, tool_id)
        out_path = _optional_str(payload, "outPath")
        if self._evaluator.realises:
            out_path = self._evaluator.realise_attribute(self._snapshot, self._platform, tool_id, expected=out_path)
        reference = ToolReference(
            tool_id=tool_id,
            platform=self._platform,
            revision=self._snapshot.revision,
            name=_optional_str(payload, "name"),
            version=_optional_str(payload, "version"),
            out_path=out_path,
        )
        self._lookups[tool_id] = reference
        return reference


class NixEvaluator(SnapshotEvaluator):
    """Evaluate package attributes with ``nix eval`` against a pinned flake.

    Args:
        nix_command: ``nix`` executable name or path.
        fetcher: Optional collaborator pinning sources before evaluation. When
            omitted ``nix flake metadata`` supplies the revision.
        runner: Subprocess runner compatible with :func:`run_command`.
        timeout: Per-command timeout in seconds.
        realise: Build every looked-up tool into the store so its
            ``outPath`` exists before a shell is started.
    """

    def __init__(
        self,
        *,
        nix_command: str = "nix",
        fetcher: SnapshotFetcher | None = None,
        runner: Runner = run_command,
        timeout: float | None = 300.0,
        realise: bool = False,
    ) -> None:
        self._nix = nix_command
        self._fetcher = fetcher
        self._runner = runner
        self._timeout = timeout
        self._realise = realise

    @property
    def realises(self) -> bool:
        """Return whether lookups build tools into the store."""

        return self._realise

    def import_snapshot(self, source: SourceReference, platform: Platform) -> NixPackageSet:
        snapshot = self._fetcher.fetch(source) if self._fetcher is not None else self._flake_metadata(source)
        return NixPackageSet(self, snapshot, platform)

    def _run(self, args: Sequence[str], source: SourceReference) -> CompletedProcess[str]:
        command = [self._nix, *NIX_EXPERIMENTAL_FLAGS, *args]
        LOGGER.debug("running nix command=%s", " ".join(command))
        try:
            return self._runner(command, check=False, timeout=self._timeout)
        except FileNotFoundError as exc:
            raise UnreachableSource(source, f"'{self._nix}' executable not found") from exc

    def _flake_metadata(self, source: SourceReference) -> Snapshot:
        completed = self._run(["flake", "metadata", "--json", str(source)], source)
        if completed.returncode != 0:
            raise UnreachableSource(source, _first_error_line(completed.stderr))
        try:
            payload = json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise UnreachableSource(source, "nix flake metadata returned invalid JSON") from exc
        locked = payload.get("locked") if isinstance(payload, Mapping) else None
        revision = payload.get("revision") if isinstance(payload, Mapping) else None
        if revision is None and isinstance(locked, Mapping):
            revision = locked.get("rev")
        if not isinstance(revision, str) or not is_revision(revision):
            raise UnreachableSource(source, "nix flake metadata did not report a revision")
        return Snapshot(source=source, revision=revision)

    def evaluate_attribute(self, snapshot: Snapshot, platform: Platform, tool_id: str) -> Mapping[str, object]:
        """Return ``name``/``version``/``outPath`` metadata for ``tool_id``.

        Raises:
            ToolNotFound: If the package set has no attribute ``tool_id``.
            UnreachableSource: If evaluation fails for any other reason.
        """

        installable = _installable(snapshot, platform, tool_id)
        completed = self._run(["eval", "--json", installable, "--apply", TOOL_METADATA_EXPR], snapshot.source)
        if completed.returncode != 0:
            stderr = completed.stderr or ""
            if any(pattern.search(stderr) for pattern in _MISSING_ATTRIBUTE_PATTERNS):
                raise ToolNotFound(tool_id, platform=platform)
            raise UnreachableSource(snapshot.source, _first_error_line(stderr), platform=platform)
        try:
            payload = json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise UnreachableSource(snapshot.source, "nix eval returned invalid JSON", platform=platform) from exc
        if not isinstance(payload, Mapping):
            raise UnreachableSource(snapshot.source, "nix eval returned a non-object value", platform=platform)
        return payload

    def realise_attribute(
        self,
        snapshot: Snapshot,
        platform: Platform,
        tool_id: str,
        *,
        expected: str | None = None,
    ) -> str:
        """Build ``tool_id`` with ``nix build`` and return its store path.

        The evaluated ``expected`` path is preferred when the package has
        several outputs; otherwise the first printed path is used.

        Raises:
            UnreachableSource: If the build fails or prints no store path.
        """

        completed = self._run(
            ["build", "--no-link", "--print-out-paths", _installable(snapshot, platform, tool_id)],
            snapshot.source,
        )
        if completed.returncode != 0:
            reason = f"cannot realise {tool_id}: {_first_error_line(completed.stderr)}"
            raise UnreachableSource(snapshot.source, reason, platform=platform)
        paths = [line.strip() for line in (completed.stdout or "").splitlines() if line.strip()]
        if not paths:
            reason = f"nix build printed no store path for {tool_id}"
            raise UnreachableSource(snapshot.source, reason, platform=platform)
        LOGGER.debug("realised tool=%s platform=%s paths=%s", tool_id, platform, paths)
        return expected if expected in paths else paths[0]


__all__ = ["NIX_EXPERIMENTAL_FLAGS", "TOOL_METADATA_EXPR", "NixEvaluator", "NixPackageSet"]
