# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Thread-safe memoisation of fetched snapshots."""

from __future__ import annotations

import logging
from threading import Lock

from ..models import Snapshot, SourceReference
from .fetch import SnapshotFetcher

LOGGER = logging.getLogger(__name__)


class CachingSnapshotFetcher(SnapshotFetcher):
    """Wrap a fetcher so each source reference is dereferenced at most once.

    Concurrent callers asking for the same reference wait on a per-reference
    lock instead of issuing duplicate fetches. Failures are not cached, so a
    later call retries the underlying fetcher.
    """

    def __init__(self, fetcher: SnapshotFetcher) -> None:
        self._fetcher = fetcher
        self._snapshots: dict[SourceReference, Snapshot] = {}
        self._locks: dict[SourceReference, Lock] = {}
        self._guard = Lock()

    def _lock_for(self, source: SourceReference) -> Lock:
        with self._guard:
            return self._locks.setdefault(source, Lock())

    def fetch(self, source: SourceReference) -> Snapshot:
        with self._lock_for(source):
            cached = self._snapshots.get(source)
            if cached is not None:
                LOGGER.debug("snapshot cache hit source=%s", source)
                return cached
            snapshot = self._fetcher.fetch(source)
            self._snapshots[source] = snapshot
            return snapshot

    def clear(self) -> None:
        """Forget every cached snapshot."""

        with self._guard:
            self._snapshots.clear()
            self._locks.clear()

    def __len__(self) -> int:
        return len(self._snapshots)


__all__ = ["CachingSnapshotFetcher"]
