# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Value objects shared by the descriptor, source, package and resolver layers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final, TypeAlias
from urllib.parse import parse_qs

from .errors import DescriptorError

Platform: TypeAlias = str

_HOST_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*$")
_SEGMENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_.-]+$")
_REVISION_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9a-f]{40}$")
_PLATFORM_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9_]+-[a-z0-9_]+$")


def is_revision(value: str | None) -> bool:
    """Return ``True`` when ``value`` is a full 40 character commit id.

    Args:
        value: Candidate revision string.

    Returns:
        bool: Whether ``value`` pins an exact commit.
    """

    return value is not None and bool(_REVISION_PATTERN.match(value))


def is_platform(value: str) -> bool:
    """Return ``True`` when ``value`` looks like an ``<arch>-<os>`` identifier."""

    return bool(_PLATFORM_PATTERN.match(value))


@dataclass(frozen=True, slots=True)
class SourceReference:
    """Pointer to an external, versioned package-repository snapshot.

    Attributes:
        host: Forge identifier such as ``github`` or ``gitlab``.
        owner: Repository owner or namespace.
        repo: Repository name.
        ref: Branch, tag or commit selector. ``None`` tracks the default branch.
    """

    host: str
    owner: str
    repo: str
    ref: str | None = None

    @classmethod
    def parse(cls, raw: str) -> SourceReference:
        """Parse ``<host>:<owner>/<repo>[/<ref>]`` into a reference.

        ``?ref=`` and ``?rev=`` query parameters are accepted as alternatives to
        the trailing path segment.

        Args:
            raw: Source reference string taken from a descriptor.

        Returns:
            SourceReference: Parsed, normalised reference.

        Raises:
            DescriptorError: If ``raw`` does not follow the reference grammar.
        """

        text = raw.strip()
        host, sep, remainder = text.partition(":")
        if not sep or not _HOST_PATTERN.match(host):
            raise DescriptorError(f"invalid source reference '{raw}': expected '<host>:<owner>/<repo>[/<ref>]'")
        remainder, _, query = remainder.partition("?")
        parts = remainder.split("/")
        if len(parts) < 2 or not all(_SEGMENT_PATTERN.match(part) for part in parts[:2]):
            raise DescriptorError(f"invalid source reference '{raw}': owner and repository are required")
        owner, repo, *rest = parts
        ref = "/".join(rest) or None
        if query:
            params = parse_qs(query, strict_parsing=False)
            selected = params.get("rev") or params.get("ref")
            if selected:
                if ref is not None:
                    raise DescriptorError(f"invalid source reference '{raw}': ref given twice")
                ref = selected[0]
        if ref is not None and (not ref or any(ch.isspace() for ch in ref)):
            raise DescriptorError(f"invalid source reference '{raw}': malformed ref")
        return cls(host=host.lower(), owner=owner, repo=repo, ref=ref)

    @property
    def is_pinned(self) -> bool:
        """Return ``True`` when the reference names an exact commit."""

        return is_revision(self.ref)

    @property
    def repository(self) -> str:
        """Return ``owner/repo`` for the reference."""

        return f"{self.owner}/{self.repo}"

    def with_ref(self, ref: str) -> SourceReference:
        """Return a copy of the reference selecting ``ref`` instead."""

        return SourceReference(host=self.host, owner=self.owner, repo=self.repo, ref=ref)

    def __str__(self) -> str:
        base = f"{self.host}:{self.owner}/{self.repo}"
        return f"{base}/{self.ref}" if self.ref else base


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Source reference dereferenced to the exact revision it denotes."""

    source: SourceReference
    revision: str

    @property
    def pinned(self) -> SourceReference:
        """Return the source reference pinned to :attr:`revision`."""

        return self.source.with_ref(self.revision)


@dataclass(frozen=True, slots=True)
class ToolReference:
    """Build tool resolved from a package set for a single platform.

    Attributes:
        tool_id: Attribute path requested by the descriptor (``stdenv.cc``).
        platform: Platform the tool was evaluated for.
        revision: Snapshot revision that provided the tool.
        name: Package name reported by the evaluator, when known.
        version: Package version reported by the evaluator, when known.
        out_path: Store path of the realised package, when known.
    """

    tool_id: str
    platform: Platform
    revision: str
    name: str | None = None
    version: str | None = None
    out_path: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        """Return a JSON-compatible mapping of the reference."""

        return {
            "tool": self.tool_id,
            "platform": self.platform,
            "revision": self.revision,
            "name": self.name,
            "version": self.version,
            "out_path": self.out_path,
        }


def _freeze_env(env: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(sorted(env.items())))


@dataclass(frozen=True, slots=True)
class ShellSpecification:
    """Resolved, platform-specific set of tools to expose in a shell session."""

    platform: Platform
    tools: tuple[ToolReference, ...]
    name: str = "devshell"
    shell_hook: str = ""
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "env", _freeze_env(self.env))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShellSpecification):
            return NotImplemented
        return (
            self.platform == other.platform
            and self.tools == other.tools
            and self.name == other.name
            and self.shell_hook == other.shell_hook
            and dict(self.env) == dict(other.env)
        )

    def __hash__(self) -> int:
        return hash((self.platform, self.tools, self.name, self.shell_hook, tuple(self.env.items())))

    @property
    def tool_ids(self) -> tuple[str, ...]:
        """Return the tool identifiers exposed by the shell, in declaration order."""

        return tuple(tool.tool_id for tool in self.tools)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-compatible mapping of the specification."""

        return {
            "platform": self.platform,
            "name": self.name,
            "tools": [tool.to_dict() for tool in self.tools],
            "shellHook": self.shell_hook,
            "env": dict(self.env),
        }


def unique(values: Iterable[str]) -> tuple[str, ...]:
    """Return ``values`` with duplicates removed, keeping first occurrences."""

    return tuple(dict.fromkeys(values))


__all__ = [
    "Platform",
    "ShellSpecification",
    "Snapshot",
    "SourceReference",
    "ToolReference",
    "is_platform",
    "is_revision",
    "unique",
]
