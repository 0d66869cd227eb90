# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Typed descriptor models validated when a descriptor document is loaded."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, field_validator, model_validator

from ..errors import DescriptorError, UnresolvedInput
from ..models import SourceReference, is_platform, unique

SELF_ARGUMENT: Final[str] = "self"
DEFAULT_PACKAGES_INPUT: Final[str] = "nixpkgs"
DEFAULT_SYSTEMS: Final[str] = "default"

_TOOL_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][\w'+-]*(\.[A-Za-z_][\w'+-]*)*$")
_INPUT_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][\w'-]*$")


def _string_items(value: object, context: str) -> list[str]:
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"{context} must be an array of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"{context} entries must be strings")
        stripped = item.strip()
        if stripped:
            items.append(stripped)
    return items


class DevShell(BaseModel):
    """Shell output declared by the descriptor (``outputs.devShell``)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    build_inputs: tuple[str, ...] = Field(default=(), alias="buildInputs")
    name: str = "devshell"
    shell_hook: str = Field(default="", alias="shellHook")
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("build_inputs", mode="before")
    @classmethod
    def _normalise_build_inputs(cls, value: object) -> tuple[str, ...]:
        items = _string_items(value, "buildInputs")
        for item in items:
            if not _TOOL_ID_PATTERN.match(item):
                raise ValueError(f"buildInputs entry '{item}' is not a valid attribute path")
        return unique(items)


class Outputs(BaseModel):
    """Outputs function of the descriptor reduced to the facts resolution needs.

    Attributes:
        args: Formal argument names of the outputs function. ``self`` is implicit.
        packages: Input the package set is imported from.
        systems: ``"default"`` to use the platform enumerator, or an explicit
            list restricting the platforms resolved.
        dev_shell: Declared development shell.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    args: tuple[str, ...] = ()
    packages: str = DEFAULT_PACKAGES_INPUT
    systems: Literal["default"] | tuple[str, ...] = DEFAULT_SYSTEMS
    dev_shell: DevShell = Field(default_factory=DevShell, alias="devShell")

    @field_validator("args", mode="before")
    @classmethod
    def _normalise_args(cls, value: object) -> tuple[str, ...]:
        return unique(_string_items(value, "outputs.args"))

    @field_validator("systems", mode="before")
    @classmethod
    def _normalise_systems(cls, value: object) -> str | tuple[str, ...]:
        if value == DEFAULT_SYSTEMS:
            return DEFAULT_SYSTEMS
        items = _string_items(value, "outputs.systems")
        for item in items:
            if not is_platform(item):
                raise ValueError(f"outputs.systems entry '{item}' is not an '<arch>-<os>' platform")
        if not items:
            raise ValueError("outputs.systems must not be empty")
        return unique(items)

    @property
    def referenced_inputs(self) -> tuple[str, ...]:
        """Return every input name the outputs function refers to."""

        names = [arg for arg in self.args if arg != SELF_ARGUMENT]
        return unique([*names, self.packages])


class Descriptor(BaseModel):
    """Declarative development-shell descriptor.

    Instances are immutable. Validation enforces that every input referenced by
    :attr:`outputs` is declared in :attr:`inputs`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    description: str = ""
    inputs: dict[str, InstanceOf[SourceReference]] = Field(default_factory=dict)
    outputs: Outputs = Field(default_factory=Outputs)

    @field_validator("inputs", mode="before")
    @classmethod
    def _parse_inputs(cls, value: object) -> dict[str, SourceReference]:
        if not isinstance(value, Mapping):
            raise ValueError("inputs must be a table of name = source reference")
        parsed: dict[str, SourceReference] = {}
        for name, raw in value.items():
            if not isinstance(name, str) or not _INPUT_NAME_PATTERN.match(name):
                raise ValueError(f"input name {name!r} is invalid")
            if isinstance(raw, Mapping) and "url" in raw:
                raw = raw["url"]
            if isinstance(raw, SourceReference):
                parsed[name] = raw
            elif isinstance(raw, str):
                try:
                    parsed[name] = SourceReference.parse(raw)
                except DescriptorError as exc:
                    raise ValueError(str(exc)) from exc
            else:
                raise ValueError(f"input '{name}' must be a source reference string")
        return parsed

    @model_validator(mode="after")
    def _check_references(self) -> Descriptor:
        missing = self.missing_inputs()
        if missing:
            raise UnresolvedInput(missing[0])
        return self

    def missing_inputs(self) -> tuple[str, ...]:
        """Return the names referenced by :attr:`outputs` but absent from :attr:`inputs`."""

        return tuple(name for name in self.outputs.referenced_inputs if name not in self.inputs)

    @property
    def dev_shell(self) -> DevShell:
        """Return the declared development shell."""

        return self.outputs.dev_shell

    @property
    def package_source(self) -> SourceReference:
        """Return the source reference the package set is imported from.

        Raises:
            UnresolvedInput: If the package input is not declared.
        """

        try:
            return self.inputs[self.outputs.packages]
        except KeyError:
            raise UnresolvedInput(self.outputs.packages) from None

    def with_inputs(self, inputs: Mapping[str, SourceReference]) -> Descriptor:
        """Return a copy of the descriptor with ``inputs`` replaced."""

        return Descriptor(description=self.description, inputs=dict(inputs), outputs=self.outputs)


__all__ = [
    "DEFAULT_PACKAGES_INPUT",
    "DEFAULT_SYSTEMS",
    "SELF_ARGUMENT",
    "Descriptor",
    "DevShell",
    "Outputs",
]
