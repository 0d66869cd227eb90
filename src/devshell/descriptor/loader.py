# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Load descriptor documents from TOML or ``flake.nix`` files."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from pydantic import ValidationError

from ..errors import DescriptorError
from .flake import read_flake
from .models import Descriptor

LOGGER = logging.getLogger(__name__)

TOML_DESCRIPTOR_NAME: Final[str] = "devshell.toml"
FLAKE_DESCRIPTOR_NAME: Final[str] = "flake.nix"
DESCRIPTOR_CANDIDATES: Final[tuple[str, ...]] = (TOML_DESCRIPTOR_NAME, FLAKE_DESCRIPTOR_NAME)


def _format_validation_error(exc: ValidationError) -> str:
    messages: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        messages.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(messages)


def build_descriptor(payload: Mapping[str, object], *, path: Path | None = None) -> Descriptor:
    """Validate ``payload`` into a :class:`Descriptor`.

    Args:
        payload: Raw mapping decoded from a descriptor document.
        path: Document the payload came from, used in error messages.

    Returns:
        Descriptor: Validated, immutable descriptor.

    Raises:
        DescriptorError: If the payload fails schema validation.
        UnresolvedInput: If outputs reference an undeclared input.
    """

    try:
        return Descriptor.model_validate(dict(payload))
    except ValidationError as exc:
        raise DescriptorError(_format_validation_error(exc), path=path) from exc


def parse_toml_descriptor(text: str, *, path: Path | None = None) -> Descriptor:
    """Parse a TOML descriptor document.

    Args:
        text: TOML document contents.
        path: Source file used in error messages.

    Returns:
        Descriptor: Validated descriptor.

    Raises:
        DescriptorError: If the TOML is malformed or fails validation.
    """

    try:
        payload = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise DescriptorError(f"invalid TOML: {exc}", path=path) from exc
    return build_descriptor(payload, path=path)


def parse_flake_descriptor(text: str, *, path: Path | None = None) -> Descriptor:
    """Parse a ``flake.nix`` descriptor document."""

    try:
        payload = read_flake(text)
    except DescriptorError as exc:
        if exc.path is None and path is not None:
            raise DescriptorError(str(exc), path=path) from exc
        raise
    return build_descriptor(payload, path=path)


def load_descriptor(path: Path) -> Descriptor:
    """Load the descriptor stored at ``path``.

    Files named ``*.nix`` are read as flakes; everything else as TOML.

    Args:
        path: Descriptor document on disk.

    Returns:
        Descriptor: Validated descriptor.

    Raises:
        DescriptorError: If the file cannot be read or is invalid.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptorError(f"cannot read descriptor: {exc.strerror or exc}", path=path) from exc
    except UnicodeDecodeError as exc:
        raise DescriptorError(f"descriptor is not valid UTF-8: {exc.reason} at byte {exc.start}", path=path) from exc
    LOGGER.debug("loading descriptor path=%s", path)
    if path.suffix == ".nix":
        return parse_flake_descriptor(text, path=path)
    return parse_toml_descriptor(text, path=path)


def find_descriptor(root: Path) -> Path:
    """Return the first descriptor document found in ``root``.

    Args:
        root: Project directory to search.

    Returns:
        Path: Path of ``devshell.toml`` or ``flake.nix``.

    Raises:
        DescriptorError: If neither document exists.
    """

    for name in DESCRIPTOR_CANDIDATES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    names = " or ".join(DESCRIPTOR_CANDIDATES)
    raise DescriptorError(f"no descriptor found in {root} (looked for {names})")


__all__ = [
    "DESCRIPTOR_CANDIDATES",
    "FLAKE_DESCRIPTOR_NAME",
    "TOML_DESCRIPTOR_NAME",
    "build_descriptor",
    "find_descriptor",
    "load_descriptor",
    "parse_flake_descriptor",
    "parse_toml_descriptor",
]
