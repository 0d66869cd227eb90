# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Resolve descriptors into platform-specific shell specifications."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import Executor, Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Final

from .descriptor.models import Descriptor
from .errors import ResolutionError, UnresolvedInput, UnsupportedPlatform
from .models import Platform, ShellSpecification
from .packages.base import SnapshotEvaluator
from .platforms import PlatformEnumerator, SystemsEnumerator, platforms_for

LOGGER = logging.getLogger(__name__)

THREAD_NAME_PREFIX: Final[str] = "devshell-resolve"


def resolve(
    descriptor: Descriptor,
    platform: Platform,
    *,
    evaluator: SnapshotEvaluator,
    enumerator: PlatformEnumerator | None = None,
) -> ShellSpecification:
    """Resolve ``descriptor`` into the shell specification for ``platform``.

    The result lists exactly the descriptor's ``buildInputs``, each looked up
    in the package set imported for ``platform``. Any failure aborts the
    resolution; a partial specification is never returned.

    Args:
        descriptor: Validated descriptor. It is not modified.
        platform: Platform to resolve for.
        evaluator: Collaborator importing package sets from source references.
        enumerator: Collaborator supplying supported platforms. Defaults to
            :class:`SystemsEnumerator`.

    Returns:
        ShellSpecification: Tools to expose in the shell for ``platform``.

    Raises:
        UnsupportedPlatform: If ``platform`` is not produced by the enumerator.
        UnresolvedInput: If outputs reference an undeclared input.
        UnreachableSource: If the package source cannot be dereferenced.
        ToolNotFound: If a build input is missing from the package set.
    """

    enumerator = enumerator or SystemsEnumerator()
    supported = platforms_for(descriptor, enumerator)
    if platform not in supported:
        raise UnsupportedPlatform(platform, supported)
    missing = descriptor.missing_inputs()
    if missing:
        raise UnresolvedInput(missing[0], platform=platform)

    shell = descriptor.dev_shell
    source = descriptor.package_source
    try:
        package_set = evaluator.import_snapshot(source, platform)
        tools = tuple(package_set.lookup(tool_id) for tool_id in shell.build_inputs)
    except ResolutionError as exc:
        raise exc.for_platform(platform)
    LOGGER.debug(
        "resolved platform=%s revision=%s tools=%s",
        platform,
        package_set.snapshot.revision,
        ",".join(shell.build_inputs),
    )
    return ShellSpecification(
        platform=platform,
        tools=tools,
        name=shell.name,
        shell_hook=shell.shell_hook,
        env=shell.env,
    )


@dataclass(frozen=True, slots=True)
class ResolutionReport:
    """Outcome of resolving a descriptor for a set of platforms.

    Attributes:
        specifications: Successfully resolved platforms.
        failures: Platforms whose resolution raised a resolution error.
        cancelled: Platforms cancelled before they finished.
    """

    specifications: Mapping[Platform, ShellSpecification] = field(default_factory=dict)
    failures: Mapping[Platform, ResolutionError] = field(default_factory=dict)
    cancelled: frozenset[Platform] = frozenset()

    @property
    def ok(self) -> bool:
        """Return ``True`` when every platform resolved."""

        return not self.failures and not self.cancelled

    @property
    def platforms(self) -> tuple[Platform, ...]:
        """Return every platform covered by the report, sorted."""

        return tuple(sorted({*self.specifications, *self.failures, *self.cancelled}))

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-compatible mapping of the report."""

        return {
            "specifications": {
                platform: self.specifications[platform].to_dict() for platform in sorted(self.specifications)
            },
            "failures": {
                platform: {"error": type(error).__name__, "message": str(error)}
                for platform, error in sorted(self.failures.items())
            },
            "cancelled": sorted(self.cancelled),
        }


class EnvironmentResolver:
    """Resolve descriptors for one or many platforms using injected collaborators.

    Args:
        evaluator: Collaborator importing package sets.
        enumerator: Collaborator supplying the default platform set.
        jobs: Maximum number of platforms resolved concurrently.
    """

    def __init__(
        self,
        evaluator: SnapshotEvaluator,
        enumerator: PlatformEnumerator | None = None,
        *,
        jobs: int = 4,
    ) -> None:
        if jobs < 1:
            raise ValueError("jobs must be at least 1")
        self._evaluator = evaluator
        self._enumerator = enumerator or SystemsEnumerator()
        self._jobs = jobs

    @property
    def enumerator(self) -> PlatformEnumerator:
        """Return the platform enumerator in use."""

        return self._enumerator

    def platforms(self, descriptor: Descriptor) -> frozenset[Platform]:
        """Return the platforms ``descriptor`` resolves for."""

        return platforms_for(descriptor, self._enumerator)

    def resolve(self, descriptor: Descriptor, platform: Platform) -> ShellSpecification:
        """Resolve ``descriptor`` for a single ``platform``; see :func:`resolve`."""

        return resolve(descriptor, platform, evaluator=self._evaluator, enumerator=self._enumerator)

    def submit_all(
        self,
        descriptor: Descriptor,
        executor: Executor,
        platforms: Iterable[Platform] | None = None,
    ) -> dict[Platform, Future[ShellSpecification]]:
        """Schedule one independent resolution per platform on ``executor``.

        Each returned future may be cancelled without affecting the others.

        Args:
            descriptor: Descriptor to resolve.
            executor: Executor running the resolutions.
            platforms: Platforms to resolve. Defaults to :meth:`platforms`.

        Returns:
            dict[Platform, Future[ShellSpecification]]: Future per platform.
        """

        targets = sorted(set(platforms) if platforms is not None else self.platforms(descriptor))
        return {platform: executor.submit(self.resolve, descriptor, platform) for platform in targets}

    def resolve_all(
        self,
        descriptor: Descriptor,
        platforms: Iterable[Platform] | None = None,
    ) -> ResolutionReport:
        """Resolve every platform concurrently and collect the outcomes.

        A failing platform is recorded in the report and does not stop the
        others.

        Args:
            descriptor: Descriptor to resolve.
            platforms: Platforms to resolve. Defaults to :meth:`platforms`.

        Returns:
            ResolutionReport: Specifications and failures keyed by platform.
        """

        targets = sorted(set(platforms) if platforms is not None else self.platforms(descriptor))
        if not targets:
            return ResolutionReport()
        workers = min(self._jobs, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=THREAD_NAME_PREFIX) as executor:
            futures = self.submit_all(descriptor, executor, targets)
            return collect_report(futures)


def collect_report(futures: Mapping[Platform, Future[ShellSpecification]]) -> ResolutionReport:
    """Wait for ``futures`` and fold their outcomes into a report.

    Args:
        futures: Future per platform, as returned by
            :meth:`EnvironmentResolver.submit_all`.

    Returns:
        ResolutionReport: Outcome per platform.

    Raises:
        Exception: Any non-resolution error raised by a resolution is re-raised.
    """

    specifications: dict[Platform, ShellSpecification] = {}
    failures: dict[Platform, ResolutionError] = {}
    cancelled: set[Platform] = set()
    future_map = {future: platform for platform, future in futures.items()}
    for future in as_completed(future_map):
        platform = future_map[future]
        if future.cancelled():
            LOGGER.debug("resolution cancelled platform=%s", platform)
            cancelled.add(platform)
            continue
        error = future.exception()
        if error is None:
            specifications[platform] = future.result()
        elif isinstance(error, ResolutionError):
            LOGGER.debug("resolution failed platform=%s error=%s", platform, error)
            failures[platform] = error
        else:
            raise error
    return ResolutionReport(
        specifications=specifications,
        failures=failures,
        cancelled=frozenset(cancelled),
    )


def resolve_all(
    descriptor: Descriptor,
    *,
    evaluator: SnapshotEvaluator,
    enumerator: PlatformEnumerator | None = None,
    jobs: int = 4,
) -> ResolutionReport:
    """Resolve ``descriptor`` for every enumerated platform; see :class:`EnvironmentResolver`."""

    return EnvironmentResolver(evaluator, enumerator, jobs=jobs).resolve_all(descriptor)


__all__ = [
    "EnvironmentResolver",
    "ResolutionReport",
    "collect_report",
    "resolve",
    "resolve_all",
]
