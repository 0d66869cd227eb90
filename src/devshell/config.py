# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Resolver settings and the collaborators built from them."""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Literal

import requests
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigError
from .packages.base import SnapshotEvaluator
from .packages.catalog import CatalogEvaluator
from .packages.nix import NixEvaluator
from .sources.cache import CachingSnapshotFetcher
from .sources.fetch import RemoteSnapshotFetcher, RetryPolicy


def default_parallel_jobs() -> int:
    """Return a CPU count scaled down for concurrent platform resolution.

    Returns:
        int: Roughly 75% of available CPU cores, never less than one.
    """

    cores = os.cpu_count() or 1
    return max(1, math.floor(cores * 0.75))


class ResolverSettings(BaseModel):
    """Tunable behaviour of fetching, evaluation and concurrency."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    jobs: int = Field(default_factory=default_parallel_jobs, ge=1)
    retries: int = Field(default=3, ge=0)
    backoff_seconds: float = Field(default=0.5, ge=0)
    max_backoff_seconds: float = Field(default=8.0, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    github_api: str = "https://api.github.com"
    gitlab_api: str = "https://gitlab.com/api/v4"
    github_token: str | None = None
    evaluator: Literal["nix", "catalog"] = "nix"
    catalog: Path | None = None
    nix_command: str = "nix"
    shell: str | None = None

    @field_validator("github_token", "shell", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def retry_policy(self) -> RetryPolicy:
        """Return the fetch retry policy described by these settings."""

        return RetryPolicy(
            retries=self.retries,
            backoff_seconds=self.backoff_seconds,
            max_backoff_seconds=self.max_backoff_seconds,
        )

    def build_fetcher(self, *, session: requests.Session | None = None) -> CachingSnapshotFetcher:
        """Return a cached remote fetcher configured from these settings."""

        remote = RemoteSnapshotFetcher(
            session=session,
            policy=self.retry_policy(),
            timeout=self.timeout_seconds,
            github_api=self.github_api,
            gitlab_api=self.gitlab_api,
            github_token=self.github_token,
        )
        return CachingSnapshotFetcher(remote)

    def build_evaluator(
        self, fetcher: CachingSnapshotFetcher | None = None, *, realise: bool = False
    ) -> SnapshotEvaluator:
        """Return the snapshot evaluator selected by :attr:`evaluator`.

        ``realise`` asks the ``nix`` evaluator to build every tool it looks up;
        catalog store paths are taken as given.

        Raises:
            ConfigError: If the catalog evaluator is selected without a catalog
                or the catalog file is invalid.
        """

        fetcher = fetcher or self.build_fetcher()
        if self.evaluator == "catalog":
            if self.catalog is None:
                raise ConfigError("evaluator 'catalog' requires the 'catalog' setting")
            return CatalogEvaluator.from_path(self.catalog, fetcher=fetcher)
        return NixEvaluator(nix_command=self.nix_command, fetcher=fetcher, realise=realise)


__all__ = ["ResolverSettings", "default_parallel_jobs"]
