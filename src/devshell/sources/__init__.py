# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Source reference fetching, caching and locking."""

from __future__ import annotations

from .cache import CachingSnapshotFetcher
from .fetch import RemoteSnapshotFetcher, RetryPolicy, SnapshotFetcher
from .lock import LOCK_FILE_NAME, LockedInput, LockFile, apply_lock, lock_inputs, read_lock, write_lock

__all__ = [
    "LOCK_FILE_NAME",
    "CachingSnapshotFetcher",
    "LockFile",
    "LockedInput",
    "RemoteSnapshotFetcher",
    "RetryPolicy",
    "SnapshotFetcher",
    "apply_lock",
    "lock_inputs",
    "read_lock",
    "write_lock",
]
