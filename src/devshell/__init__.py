# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Resolve declarative development-shell descriptors into per-platform shell specifications."""

from __future__ import annotations

from .descriptor import Descriptor, DevShell, Outputs, load_descriptor
from .errors import (
    ConfigError,
    DescriptorError,
    DevShellError,
    ResolutionError,
    ToolNotFound,
    UnreachableSource,
    UnresolvedInput,
    UnsupportedPlatform,
)
from .models import Platform, ShellSpecification, Snapshot, SourceReference, ToolReference
from .platforms import PlatformEnumerator, SystemsEnumerator, current_platform
from .resolver import EnvironmentResolver, ResolutionReport, resolve, resolve_all

__all__ = [
    "ConfigError",
    "DescriptorError",
    "Descriptor",
    "DevShell",
    "DevShellError",
    "EnvironmentResolver",
    "Outputs",
    "Platform",
    "PlatformEnumerator",
    "ResolutionError",
    "ResolutionReport",
    "ShellSpecification",
    "Snapshot",
    "SourceReference",
    "SystemsEnumerator",
    "ToolNotFound",
    "ToolReference",
    "UnreachableSource",
    "UnresolvedInput",
    "UnsupportedPlatform",
    "current_platform",
    "load_descriptor",
    "resolve",
    "resolve_all",
]
