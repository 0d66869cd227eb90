# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

import pytest
from helpers import BASIC_TOML

from devshell.descriptor import Descriptor, parse_toml_descriptor
from devshell.errors import UnsupportedPlatform
from devshell.platforms import DEFAULT_PLATFORMS, SystemsEnumerator, current_platform, platforms_for


class FixedEnumerator:
    def __init__(self, *platforms: str) -> None:
        self._platforms = frozenset(platforms)

    def default_platforms(self) -> frozenset[str]:
        return self._platforms


def _with_systems(*systems: str) -> Descriptor:
    listing = ", ".join(f'"{system}"' for system in systems)
    document = BASIC_TOML.replace('packages = "nixpkgs"', f'packages = "nixpkgs"\nsystems = [{listing}]')
    return parse_toml_descriptor(document)


def test_default_platforms_match_flake_utils() -> None:
    assert SystemsEnumerator().default_platforms() == frozenset(
        {"x86_64-linux", "aarch64-linux", "x86_64-darwin", "aarch64-darwin"}
    )
    assert set(DEFAULT_PLATFORMS) <= SystemsEnumerator().all_platforms()


def test_default_systems_use_enumerator(toml_descriptor: Descriptor) -> None:
    enumerator = FixedEnumerator("riscv64-linux")

    assert platforms_for(toml_descriptor, enumerator) == frozenset({"riscv64-linux"})


def test_explicit_systems_restrict_platforms() -> None:
    descriptor = _with_systems("x86_64-linux", "aarch64-darwin")

    assert platforms_for(descriptor, SystemsEnumerator()) == frozenset({"x86_64-linux", "aarch64-darwin"})


def test_explicit_system_outside_enumerated_defaults_is_unsupported() -> None:
    descriptor = _with_systems("x86_64-linux", "riscv64-linux")

    with pytest.raises(UnsupportedPlatform) as excinfo:
        platforms_for(descriptor, SystemsEnumerator())

    assert excinfo.value.platform == "riscv64-linux"

    widened = SystemsEnumerator(defaults=[*DEFAULT_PLATFORMS, "riscv64-linux"])
    assert "riscv64-linux" in platforms_for(descriptor, widened)


def test_unknown_explicit_system_is_unsupported() -> None:
    descriptor = _with_systems("x86_64-plan9")

    with pytest.raises(UnsupportedPlatform) as excinfo:
        platforms_for(descriptor, SystemsEnumerator())

    assert excinfo.value.platform == "x86_64-plan9"
    assert "x86_64-linux" in excinfo.value.supported


def test_custom_enumerator_bounds_explicit_systems() -> None:
    descriptor = _with_systems("aarch64-darwin")

    with pytest.raises(UnsupportedPlatform):
        platforms_for(descriptor, FixedEnumerator("x86_64-linux"))


@pytest.mark.parametrize(
    ("machine", "system", "expected"),
    [
        ("x86_64", "Linux", "x86_64-linux"),
        ("AMD64", "Linux", "x86_64-linux"),
        ("arm64", "Darwin", "aarch64-darwin"),
        ("aarch64", "Linux", "aarch64-linux"),
    ],
)
def test_current_platform_normalises_host(machine: str, system: str, expected: str) -> None:
    assert current_platform(machine=machine, system=system) == expected
