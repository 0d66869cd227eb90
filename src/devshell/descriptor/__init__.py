# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Descriptor models and loaders."""

from __future__ import annotations

from .flake import read_flake
from .loader import (
    DESCRIPTOR_CANDIDATES,
    FLAKE_DESCRIPTOR_NAME,
    TOML_DESCRIPTOR_NAME,
    build_descriptor,
    find_descriptor,
    load_descriptor,
    parse_flake_descriptor,
    parse_toml_descriptor,
)
from .models import DEFAULT_PACKAGES_INPUT, DEFAULT_SYSTEMS, SELF_ARGUMENT, Descriptor, DevShell, Outputs

__all__ = [
    "DEFAULT_PACKAGES_INPUT",
    "DEFAULT_SYSTEMS",
    "DESCRIPTOR_CANDIDATES",
    "FLAKE_DESCRIPTOR_NAME",
    "SELF_ARGUMENT",
    "TOML_DESCRIPTOR_NAME",
    "Descriptor",
    "DevShell",
    "Outputs",
    "build_descriptor",
    "find_descriptor",
    "load_descriptor",
    "parse_flake_descriptor",
    "parse_toml_descriptor",
    "read_flake",
]
