# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Platform enumeration and host platform detection."""

from __future__ import annotations

import platform as _platform
from collections.abc import Iterable
from typing import Final, Protocol, runtime_checkable

from .descriptor.models import DEFAULT_SYSTEMS, Descriptor
from .errors import UnsupportedPlatform
from .models import Platform

DEFAULT_PLATFORMS: Final[tuple[Platform, ...]] = (
    "aarch64-linux",
    "aarch64-darwin",
    "x86_64-darwin",
    "x86_64-linux",
)
ALL_PLATFORMS: Final[tuple[Platform, ...]] = (
    "aarch64-darwin",
    "aarch64-genode",
    "aarch64-linux",
    "aarch64-netbsd",
    "aarch64-none",
    "aarch64_be-none",
    "arm-none",
    "armv5tel-linux",
    "armv6l-linux",
    "armv6l-netbsd",
    "armv6l-none",
    "armv7a-darwin",
    "armv7a-linux",
    "armv7a-netbsd",
    "armv7l-linux",
    "armv7l-netbsd",
    "avr-none",
    "i686-cygwin",
    "i686-darwin",
    "i686-freebsd",
    "i686-genode",
    "i686-linux",
    "i686-netbsd",
    "i686-none",
    "i686-openbsd",
    "i686-windows",
    "javascript-ghcjs",
    "m68k-linux",
    "m68k-netbsd",
    "m68k-none",
    "microblaze-linux",
    "microblaze-none",
    "microblazeel-linux",
    "microblazeel-none",
    "mips-linux",
    "mips-none",
    "mips64-linux",
    "mips64-none",
    "mips64el-linux",
    "mipsel-linux",
    "mipsel-netbsd",
    "mmix-mmixware",
    "msp430-none",
    "or1k-none",
    "powerpc-netbsd",
    "powerpc-none",
    "powerpc64-linux",
    "powerpc64le-linux",
    "powerpcle-none",
    "riscv32-linux",
    "riscv32-netbsd",
    "riscv32-none",
    "riscv64-linux",
    "riscv64-netbsd",
    "riscv64-none",
    "rx-none",
    "s390-linux",
    "s390-none",
    "s390x-linux",
    "s390x-none",
    "vc4-none",
    "wasm32-wasi",
    "wasm64-wasi",
    "x86_64-cygwin",
    "x86_64-darwin",
    "x86_64-freebsd",
    "x86_64-genode",
    "x86_64-linux",
    "x86_64-netbsd",
    "x86_64-none",
    "x86_64-openbsd",
    "x86_64-redox",
    "x86_64-solaris",
    "x86_64-windows",
)

_MACHINE_ALIASES: Final[dict[str, str]] = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv8": "aarch64",
    "i386": "i686",
    "i586": "i686",
    "ppc64le": "powerpc64le",
}


@runtime_checkable
class PlatformEnumerator(Protocol):
    """Collaborator supplying the platforms a descriptor is resolved for."""

    def default_platforms(self) -> frozenset[Platform]:
        """Return the default set of platforms."""

        raise NotImplementedError


class SystemsEnumerator(PlatformEnumerator):
    """Enumerate platforms from fixed default and known system lists.

    The defaults mirror the ``flake-utils`` ``defaultSystems`` list.
    """

    def __init__(
        self,
        defaults: Iterable[Platform] = DEFAULT_PLATFORMS,
        known: Iterable[Platform] = ALL_PLATFORMS,
    ) -> None:
        self._defaults = frozenset(defaults)
        self._known = frozenset(known) | self._defaults

    def default_platforms(self) -> frozenset[Platform]:
        return self._defaults

    def all_platforms(self) -> frozenset[Platform]:
        """Return every platform the enumerator knows about."""

        return self._known


def current_platform(machine: str | None = None, system: str | None = None) -> Platform:
    """Return the ``<arch>-<os>`` identifier of the running host.

    Args:
        machine: Override for :func:`platform.machine` (used by tests).
        system: Override for :func:`platform.system` (used by tests).

    Returns:
        Platform: Identifier such as ``x86_64-linux`` or ``aarch64-darwin``.
    """

    arch = (machine if machine is not None else _platform.machine()).lower()
    arch = _MACHINE_ALIASES.get(arch, arch)
    os_name = (system if system is not None else _platform.system()).lower()
    return f"{arch}-{os_name}"


def platforms_for(descriptor: Descriptor, enumerator: PlatformEnumerator) -> frozenset[Platform]:
    """Return the platforms ``descriptor`` resolves for.

    Args:
        descriptor: Descriptor whose ``outputs.systems`` may restrict the set.
        enumerator: Collaborator supplying the default platform set.

    Returns:
        frozenset[Platform]: The enumerated platforms, restricted to the
        descriptor's explicit systems when it declares any.

    Raises:
        UnsupportedPlatform: If the descriptor names a platform the enumerator
            does not produce.
    """

    defaults = enumerator.default_platforms()
    systems = descriptor.outputs.systems
    if systems == DEFAULT_SYSTEMS:
        return defaults
    for system in systems:
        if system not in defaults:
            raise UnsupportedPlatform(system, defaults)
    return frozenset(systems)


__all__ = [
    "ALL_PLATFORMS",
    "DEFAULT_PLATFORMS",
    "PlatformEnumerator",
    "SystemsEnumerator",
    "current_platform",
    "platforms_for",
]
