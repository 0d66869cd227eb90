# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Lock files pinning every descriptor input to an exact revision."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..descriptor.models import Descriptor
from ..errors import DescriptorError
from ..models import SourceReference, is_revision
from .fetch import SnapshotFetcher

LOGGER = logging.getLogger(__name__)

LOCK_FILE_NAME: Final[str] = "devshell.lock"
LOCK_VERSION: Final[int] = 1


class LockedInput(BaseModel):
    """Pinned revision recorded for one input."""

    model_config = ConfigDict(frozen=True)

    url: str
    rev: str

    @field_validator("rev")
    @classmethod
    def _check_rev(cls, value: str) -> str:
        if not is_revision(value):
            raise ValueError(f"'{value}' is not a 40 character commit id")
        return value


class LockFile(BaseModel):
    """Lock document written next to the descriptor."""

    model_config = ConfigDict(frozen=True)

    version: int = LOCK_VERSION
    inputs: dict[str, LockedInput] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: int) -> int:
        if value != LOCK_VERSION:
            raise ValueError(f"unsupported lock file version {value}")
        return value


def lock_inputs(descriptor: Descriptor, fetcher: SnapshotFetcher) -> LockFile:
    """Pin every input of ``descriptor`` using ``fetcher``.

    Args:
        descriptor: Descriptor whose inputs are pinned.
        fetcher: Collaborator that dereferences each source reference.

    Returns:
        LockFile: Lock document recording one revision per input.

    Raises:
        UnreachableSource: If any input cannot be dereferenced.
    """

    locked: dict[str, LockedInput] = {}
    for name in sorted(descriptor.inputs):
        source = descriptor.inputs[name]
        snapshot = fetcher.fetch(source)
        locked[name] = LockedInput(url=str(source), rev=snapshot.revision)
    return LockFile(inputs=locked)


def apply_lock(descriptor: Descriptor, lock: LockFile) -> Descriptor:
    """Return ``descriptor`` with inputs pinned to the revisions in ``lock``.

    Entries whose recorded URL no longer matches the descriptor are stale and
    are ignored, leaving that input unpinned.

    Args:
        descriptor: Descriptor to pin. It is not modified.
        lock: Lock document produced by :func:`lock_inputs`.

    Returns:
        Descriptor: New descriptor with pinned inputs.
    """

    pinned: dict[str, SourceReference] = {}
    for name, source in descriptor.inputs.items():
        entry = lock.inputs.get(name)
        if entry is None:
            pinned[name] = source
        elif entry.url != str(source):
            LOGGER.warning("ignoring stale lock entry input=%s locked=%s declared=%s", name, entry.url, source)
            pinned[name] = source
        else:
            pinned[name] = source.with_ref(entry.rev)
    return descriptor.with_inputs(pinned)


def read_lock(path: Path) -> LockFile:
    """Read the lock document at ``path``.

    Raises:
        DescriptorError: If the file is unreadable or malformed.
    """

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise DescriptorError(f"cannot read lock file: {exc.strerror or exc}", path=path) from exc
    except json.JSONDecodeError as exc:
        raise DescriptorError(f"invalid lock file JSON: {exc}", path=path) from exc
    try:
        return LockFile.model_validate(payload)
    except ValidationError as exc:
        raise DescriptorError(f"invalid lock file: {exc.error_count()} error(s)", path=path) from exc


def write_lock(path: Path, lock: LockFile) -> Path:
    """Write ``lock`` to ``path`` as stable, indented JSON and return ``path``."""

    path.write_text(json.dumps(lock.model_dump(mode="json"), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return path


__all__ = [
    "LOCK_FILE_NAME",
    "LOCK_VERSION",
    "LockFile",
    "LockedInput",
    "apply_lock",
    "lock_inputs",
    "read_lock",
    "write_lock",
]
