# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Dereference source references to exact revisions through forge HTTP APIs."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Final, Protocol, runtime_checkable
from urllib.parse import quote

import requests

from ..errors import UnreachableSource
from ..models import Snapshot, SourceReference, is_revision

LOGGER = logging.getLogger(__name__)

GITHUB_HOST: Final[str] = "github"
GITLAB_HOST: Final[str] = "gitlab"
DEFAULT_REF: Final[str] = "HEAD"
USER_AGENT: Final[str] = "devshell-resolver/0.1"
RETRYABLE_STATUS: Final[frozenset[int]] = frozenset({408, 425, 429, 500, 502, 503, 504})
_GITHUB_SHA_MEDIA_TYPE: Final[str] = "application/vnd.github.sha"


@runtime_checkable
class SnapshotFetcher(Protocol):
    """Collaborator that pins a source reference to a snapshot revision."""

    def fetch(self, source: SourceReference) -> Snapshot:
        """Return the snapshot ``source`` currently denotes.

        Args:
            source: Reference to dereference.

        Returns:
            Snapshot: Reference paired with its exact revision.

        Raises:
            UnreachableSource: If the reference cannot be dereferenced.
        """

        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff policy applied to transient fetch failures.

    Attributes:
        retries: Additional attempts after the first one fails.
        backoff_seconds: Delay before the first retry.
        max_backoff_seconds: Upper bound for any single delay.
    """

    retries: int = 3
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 8.0

    def delays(self) -> list[float]:
        """Return the sleep durations applied between attempts."""

        return [min(self.backoff_seconds * (2**attempt), self.max_backoff_seconds) for attempt in range(self.retries)]


@dataclass(frozen=True, slots=True)
class _Request:
    url: str
    headers: Mapping[str, str]
    parse: Callable[[requests.Response], str]


def _parse_github(response: requests.Response) -> str:
    return response.text.strip()


def _parse_gitlab(response: requests.Response) -> str:
    payload = response.json()
    if not isinstance(payload, Mapping):
        return ""
    return str(payload.get("id", ""))


class RemoteSnapshotFetcher(SnapshotFetcher):
    """Resolve branch and tag selectors to commit ids using forge APIs.

    Already pinned references are returned without network access. Connection
    failures, timeouts and retryable HTTP statuses are retried according to the
    :class:`RetryPolicy`; any other HTTP error fails immediately.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        policy: RetryPolicy | None = None,
        timeout: float = 30.0,
        github_api: str = "https://api.github.com",
        gitlab_api: str = "https://gitlab.com/api/v4",
        github_token: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self._policy = policy or RetryPolicy()
        self._timeout = timeout
        self._github_api = github_api.rstrip("/")
        self._gitlab_api = gitlab_api.rstrip("/")
        self._github_token = github_token
        self._sleep = sleep

    def fetch(self, source: SourceReference) -> Snapshot:
        if source.is_pinned and source.ref is not None:
            return Snapshot(source=source, revision=source.ref)
        request = self._build_request(source)
        revision = self._perform(source, request)
        if not is_revision(revision):
            raise UnreachableSource(source, f"unexpected revision {revision!r} returned by {source.host}")
        LOGGER.debug("pinned source=%s revision=%s", source, revision)
        return Snapshot(source=source, revision=revision)

    def _build_request(self, source: SourceReference) -> _Request:
        ref = quote(source.ref or DEFAULT_REF, safe="")
        if source.host == GITHUB_HOST:
            headers = {"Accept": _GITHUB_SHA_MEDIA_TYPE}
            if self._github_token:
                headers["Authorization"] = f"Bearer {self._github_token}"
            url = f"{self._github_api}/repos/{source.owner}/{source.repo}/commits/{ref}"
            return _Request(url=url, headers=headers, parse=_parse_github)
        if source.host == GITLAB_HOST:
            project = quote(source.repository, safe="")
            url = f"{self._gitlab_api}/projects/{project}/repository/commits/{ref}"
            return _Request(url=url, headers={"Accept": "application/json"}, parse=_parse_gitlab)
        raise UnreachableSource(source, f"no fetcher available for host '{source.host}'")

    def _perform(self, source: SourceReference, request: _Request) -> str:
        delays = self._policy.delays()
        attempts = len(delays) + 1
        failure = "no attempt made"
        for attempt in range(attempts):
            headers = {"User-Agent": USER_AGENT, **request.headers}
            try:
                response = self._session.get(request.url, headers=headers, timeout=self._timeout)
            except requests.RequestException as exc:
                failure = f"{type(exc).__name__}: {exc}"
            else:
                if response.status_code < 400:
                    try:
                        return request.parse(response)
                    except ValueError as exc:
                        raise UnreachableSource(source, f"malformed response from {source.host}") from exc
                if response.status_code not in RETRYABLE_STATUS:
                    raise UnreachableSource(source, f"HTTP {response.status_code} from {request.url}")
                failure = f"HTTP {response.status_code} from {request.url}"
            if attempt < len(delays):
                LOGGER.debug(
                    "retrying source=%s attempt=%d delay=%.2f reason=%s",
                    source,
                    attempt + 1,
                    delays[attempt],
                    failure,
                )
                self._sleep(delays[attempt])
        raise UnreachableSource(source, f"{failure} (after {attempts} attempts)")


__all__ = [
    "DEFAULT_REF",
    "GITHUB_HOST",
    "GITLAB_HOST",
    "RETRYABLE_STATUS",
    "RemoteSnapshotFetcher",
    "RetryPolicy",
    "SnapshotFetcher",
]
