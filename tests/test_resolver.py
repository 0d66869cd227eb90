# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for per-platform resolution and concurrent report collection."""

from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from helpers import BASIC_TOML, REVISION, FakeFetcher

from devshell.descriptor import Descriptor, Outputs, parse_toml_descriptor
from devshell.errors import ToolNotFound, UnreachableSource, UnresolvedInput, UnsupportedPlatform
from devshell.models import ShellSpecification, SourceReference
from devshell.packages import CatalogEvaluator, PackageCatalog
from devshell.platforms import DEFAULT_PLATFORMS, SystemsEnumerator
from devshell.resolver import EnvironmentResolver, collect_report, resolve, resolve_all
from devshell.sources import CachingSnapshotFetcher


def _with_build_inputs(*tools: str) -> Descriptor:
    listing = ", ".join(f'"{tool}"' for tool in tools)
    return parse_toml_descriptor(BASIC_TOML.replace('["stdenv.cc"]', f"[{listing}]"))


def test_single_build_input_resolves_to_one_tool(
    toml_descriptor: Descriptor, evaluator: CatalogEvaluator
) -> None:
    spec = resolve(toml_descriptor, "x86_64-linux", evaluator=evaluator)

    assert spec.platform == "x86_64-linux"
    assert spec.tool_ids == ("stdenv.cc",)
    assert len(spec.tools) == 1
    assert spec.tools[0].revision == REVISION


def test_flake_and_toml_descriptors_resolve_identically(
    flake_descriptor: Descriptor, toml_descriptor: Descriptor, evaluator: CatalogEvaluator
) -> None:
    assert resolve(flake_descriptor, "aarch64-darwin", evaluator=evaluator) == resolve(
        toml_descriptor, "aarch64-darwin", evaluator=evaluator
    )


def test_missing_tool_raises_tool_not_found(evaluator: CatalogEvaluator) -> None:
    descriptor = _with_build_inputs("stdenv.cc", "no-such-tool")

    with pytest.raises(ToolNotFound) as excinfo:
        resolve(descriptor, "x86_64-linux", evaluator=evaluator)

    assert excinfo.value.tool == "no-such-tool"
    assert excinfo.value.platform == "x86_64-linux"


def test_default_platforms_resolve_independently(toml_descriptor: Descriptor, evaluator: CatalogEvaluator) -> None:
    report = resolve_all(toml_descriptor, evaluator=evaluator, jobs=4)

    assert report.ok
    assert set(report.specifications) == set(DEFAULT_PLATFORMS)
    for platform, spec in report.specifications.items():
        assert spec.platform == platform
        assert {tool.platform for tool in spec.tools} == {platform}
        assert platform in (spec.tools[0].out_path or "")


def test_source_is_fetched_once_per_resolution(toml_descriptor: Descriptor, catalog: PackageCatalog) -> None:
    inner = FakeFetcher()
    evaluator = CatalogEvaluator(catalog, fetcher=CachingSnapshotFetcher(inner))

    report = EnvironmentResolver(evaluator, jobs=4).resolve_all(toml_descriptor)

    assert report.ok
    assert inner.calls == [toml_descriptor.package_source]
    assert {spec.tools[0].revision for spec in report.specifications.values()} == {REVISION}


def test_unreachable_source_fails_every_platform(toml_descriptor: Descriptor, catalog: PackageCatalog) -> None:
    evaluator = CatalogEvaluator(catalog, fetcher=FakeFetcher(unreachable={"github"}))

    report = EnvironmentResolver(evaluator, jobs=2).resolve_all(toml_descriptor)

    assert not report.ok
    assert report.specifications == {}
    assert set(report.failures) == set(DEFAULT_PLATFORMS)
    for platform, error in report.failures.items():
        assert isinstance(error, UnreachableSource)
        assert error.platform == platform


def test_platform_specific_failure_does_not_affect_others(evaluator: CatalogEvaluator) -> None:
    descriptor = _with_build_inputs("strace")

    report = EnvironmentResolver(evaluator).resolve_all(descriptor)

    assert set(report.specifications) == {"x86_64-linux", "aarch64-linux"}
    assert set(report.failures) == {"x86_64-darwin", "aarch64-darwin"}
    assert all(isinstance(error, ToolNotFound) for error in report.failures.values())


def test_resolution_is_idempotent_and_pure(toml_descriptor: Descriptor, evaluator: CatalogEvaluator) -> None:
    snapshot = toml_descriptor.model_dump()

    first = resolve(toml_descriptor, "aarch64-linux", evaluator=evaluator)
    second = resolve(toml_descriptor, "aarch64-linux", evaluator=evaluator)

    assert first == second
    assert hash(first) == hash(second)
    assert toml_descriptor.model_dump() == snapshot


def test_specification_tools_round_trip_through_package_set(
    toml_descriptor: Descriptor, evaluator: CatalogEvaluator
) -> None:
    spec = resolve(toml_descriptor, "x86_64-darwin", evaluator=evaluator)
    package_set = evaluator.import_snapshot(toml_descriptor.package_source, spec.platform)

    assert tuple(package_set.lookup(tool.tool_id) for tool in spec.tools) == spec.tools


def test_unsupported_platform_is_rejected(toml_descriptor: Descriptor, evaluator: CatalogEvaluator) -> None:
    with pytest.raises(UnsupportedPlatform) as excinfo:
        resolve(toml_descriptor, "riscv64-linux", evaluator=evaluator)

    assert excinfo.value.supported == tuple(sorted(DEFAULT_PLATFORMS))


def test_custom_enumerator_controls_supported_platforms(
    toml_descriptor: Descriptor, evaluator: CatalogEvaluator
) -> None:
    enumerator = SystemsEnumerator(defaults=["riscv64-linux"])

    spec = resolve(toml_descriptor, "riscv64-linux", evaluator=evaluator, enumerator=enumerator)

    assert spec.tool_ids == ("stdenv.cc",)


def test_unvalidated_descriptor_with_missing_input(toml_descriptor: Descriptor, evaluator: CatalogEvaluator) -> None:
    outputs = Outputs.model_construct(
        args=("self", "nixpkgs"), packages="nixpkgs", systems="default", dev_shell=toml_descriptor.dev_shell
    )
    descriptor = Descriptor.model_construct(
        description="", inputs={"other": SourceReference.parse("github:a/b")}, outputs=outputs
    )

    with pytest.raises(UnresolvedInput) as excinfo:
        resolve(descriptor, "x86_64-linux", evaluator=evaluator)

    assert excinfo.value.name == "nixpkgs"
    assert excinfo.value.platform == "x86_64-linux"


def test_explicit_platform_selection(toml_descriptor: Descriptor, evaluator: CatalogEvaluator) -> None:
    report = EnvironmentResolver(evaluator).resolve_all(toml_descriptor, platforms=["x86_64-linux"])

    assert report.platforms == ("x86_64-linux",)
    assert json.loads(json.dumps(report.to_dict()))["specifications"]["x86_64-linux"]["tools"][0]["tool"] == "stdenv.cc"


def test_unsupported_platform_in_batch_is_reported(toml_descriptor: Descriptor, evaluator: CatalogEvaluator) -> None:
    report = EnvironmentResolver(evaluator).resolve_all(toml_descriptor, platforms=["x86_64-linux", "mips-linux"])

    assert set(report.specifications) == {"x86_64-linux"}
    assert isinstance(report.failures["mips-linux"], UnsupportedPlatform)


def test_cancelling_one_platform_leaves_others(toml_descriptor: Descriptor, catalog: PackageCatalog) -> None:
    release = threading.Event()

    class GatedEvaluator(CatalogEvaluator):
        def import_snapshot(self, source, platform):  # type: ignore[no-untyped-def]
            release.wait(timeout=5)
            return super().import_snapshot(source, platform)

    resolver = EnvironmentResolver(GatedEvaluator(catalog, fetcher=FakeFetcher()))
    with ThreadPoolExecutor(max_workers=1) as executor:
        futures = resolver.submit_all(toml_descriptor, executor)
        assert futures["x86_64-linux"].cancel()
        release.set()
        report = collect_report(futures)

    assert report.cancelled == frozenset({"x86_64-linux"})
    assert set(report.specifications) == {"aarch64-darwin", "aarch64-linux", "x86_64-darwin"}
    assert not report.ok


def test_unexpected_errors_propagate(toml_descriptor: Descriptor) -> None:
    class BrokenEvaluator:
        def import_snapshot(self, source, platform):  # type: ignore[no-untyped-def]
            raise KeyError(platform)

    with pytest.raises(KeyError):
        EnvironmentResolver(BrokenEvaluator()).resolve_all(toml_descriptor)


def test_jobs_must_be_positive(evaluator: CatalogEvaluator) -> None:
    with pytest.raises(ValueError):
        EnvironmentResolver(evaluator, jobs=0)


def test_specification_serialises(evaluator: CatalogEvaluator, toml_descriptor: Descriptor) -> None:
    spec = resolve(toml_descriptor, "x86_64-linux", evaluator=evaluator)

    payload = spec.to_dict()

    assert payload["platform"] == "x86_64-linux"
    assert payload["name"] == "devshell"
    assert isinstance(spec, ShellSpecification)
