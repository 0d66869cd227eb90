# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Exception taxonomy raised while loading and resolving shell descriptors."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class DevShellError(RuntimeError):
    """Base class for every error raised by :mod:`devshell`."""


class ConfigError(DevShellError):
    """Raised when resolver settings are invalid."""


class DescriptorError(DevShellError):
    """Raised when a descriptor document cannot be read or fails validation."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        """Initialise the error with ``message`` and the offending ``path``.

        Args:
            message: Human-readable description of the problem.
            path: Descriptor file that failed to load, when known.
        """

        self.path = path
        super().__init__(f"{path}: {message}" if path is not None else message)


class ResolutionError(DevShellError):
    """Base class for failures that terminate a single platform resolution."""

    platform: str | None = None

    def for_platform(self, platform: str) -> ResolutionError:
        """Attach ``platform`` to the error when it is not already known.

        Args:
            platform: Platform whose resolution raised the error.

        Returns:
            ResolutionError: The same error instance for chaining in ``raise``.
        """

        if self.platform is None:
            self.platform = platform
        return self


class UnresolvedInput(ResolutionError):
    """Raised when ``outputs`` references a symbolic name absent from ``inputs``."""

    def __init__(self, name: str, *, platform: str | None = None) -> None:
        self.name = name
        self.platform = platform
        super().__init__(f"input '{name}' is referenced by outputs but not declared in inputs")


class UnreachableSource(ResolutionError):
    """Raised when a source reference cannot be dereferenced."""

    def __init__(self, source: object, reason: str, *, platform: str | None = None) -> None:
        """Initialise the error for ``source``.

        Args:
            source: Source reference (or its string form) that failed.
            reason: Short explanation of the failure.
            platform: Platform whose resolution needed the source, when known.
        """

        self.source = source
        self.reason = reason
        self.platform = platform
        super().__init__(f"source '{source}' is unreachable: {reason}")


class UnsupportedPlatform(ResolutionError):
    """Raised when a platform is not produced by the platform enumerator."""

    def __init__(self, platform: str, supported: Iterable[str]) -> None:
        self.platform = platform
        self.supported = tuple(sorted(supported))
        listing = ", ".join(self.supported) or "<none>"
        super().__init__(f"platform '{platform}' is not supported (expected one of: {listing})")


class ToolNotFound(ResolutionError):
    """Raised when a build input is missing from the evaluated package set."""

    def __init__(self, tool: str, *, platform: str | None = None, detail: str | None = None) -> None:
        self.tool = tool
        self.platform = platform
        self.detail = detail
        message = f"tool '{tool}' was not found in the package set"
        if platform is not None:
            message = f"{message} for {platform}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


__all__ = [
    "ConfigError",
    "DescriptorError",
    "DevShellError",
    "ResolutionError",
    "ToolNotFound",
    "UnreachableSource",
    "UnresolvedInput",
    "UnsupportedPlatform",
]
