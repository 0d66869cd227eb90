# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Reader for ``flake.nix`` files that follow the single ``devShell`` flake shape.

This is a structural reader, not a Nix evaluator. It recognises::

    {
      description = "...";
      inputs = { nixpkgs.url = github:NixOS/nixpkgs/release-23.11; ... };
      outputs = { self, nixpkgs, flake-utils }:
        flake-utils.lib.eachDefaultSystem (system:
          let pkgs = import nixpkgs { inherit system; }; in {
            devShell = pkgs.mkShell { buildInputs = with pkgs; [ stdenv.cc ]; };
          });
    }

and raises :class:`~devshell.errors.DescriptorError` for anything else it needs
but cannot find.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final

from ..errors import DescriptorError
from .models import DEFAULT_PACKAGES_INPUT, DEFAULT_SYSTEMS

_DESCRIPTION_RE: Final = re.compile(r'(?<![\w.-])description\s*=\s*"((?:[^"\\]|\\.)*)"\s*;')
_INPUTS_BLOCK_RE: Final = re.compile(r"(?<![\w.-])inputs\s*=\s*\{")
_INPUT_DOTTED_RE: Final = re.compile(r"(?<![\w.-])inputs\.([A-Za-z_][\w'-]*)\.url\s*=\s*([^;]+);")
_INPUT_DOTTED_TABLE_RE: Final = re.compile(r"(?<![\w.-])inputs\.([A-Za-z_][\w'-]*)\s*=\s*\{")
_INPUT_URL_RE: Final = re.compile(r"(?<![\w.-])([A-Za-z_][\w'-]*)\.url\s*=\s*([^;]+);")
_INPUT_NESTED_RE: Final = re.compile(r"(?<![\w.-])([A-Za-z_][\w'-]*)\s*=\s*\{")
_URL_ATTR_RE: Final = re.compile(r"(?<![\w.-])url\s*=\s*([^;]+);")
_OUTPUTS_RE: Final = re.compile(r"(?<![\w.-])outputs\s*=\s*\{([^}]*)\}\s*(?:@\s*[\w'-]+\s*)?:")
_IMPORT_RE: Final = re.compile(r"([A-Za-z_][\w'-]*)\s*=\s*import\s+([A-Za-z_][\w'-]*)")
_LEGACY_PACKAGES_RE: Final = re.compile(r"([A-Za-z_][\w'-]*)\.legacyPackages")
_EACH_SYSTEM_RE: Final = re.compile(r"eachSystem\s*\[([^\]]*)\]")
_MK_SHELL_RE: Final = re.compile(
    r"(?<![\w.-])devShells?(?:\.default)?\s*=\s*(?:[A-Za-z_][\w'-]*\.)*mkShell\s*\{"
)
_LIST_ATTR_RE: Final = re.compile(
    r"(?<![\w.-])(buildInputs|nativeBuildInputs|packages)\s*=\s*(with\s+([A-Za-z_][\w'-]*)\s*;\s*)?\[([^\]]*)\]\s*;"
)
_STRING_ATTR_RE: Final = re.compile(r'(?<![\w.-])([A-Za-z_][\w-]*)\s*=\s*"((?:[^"\\]|\\.)*)"\s*;')
_INDENTED_ATTR_RE: Final = re.compile(r"(?<![\w.-])([A-Za-z_][\w-]*)\s*=\s*''(.*?)''\s*;", re.DOTALL)
_QUOTED_RE: Final = re.compile(r'"((?:[^"\\]|\\.)*)"')

_RESERVED_SHELL_ATTRS: Final[frozenset[str]] = frozenset({"name", "shellHook"})


def _strip_comments(text: str) -> str:
    """Remove ``#`` and ``/* */`` comments while leaving string literals untouched."""

    out: list[str] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char == '"':
            end = _skip_string(text, index)
            out.append(text[index:end])
            index = end
        elif text.startswith("''", index):
            end = text.find("''", index + 2)
            end = length if end == -1 else end + 2
            out.append(text[index:end])
            index = end
        elif char == "#":
            newline = text.find("\n", index)
            index = length if newline == -1 else newline
        elif text.startswith("/*", index):
            close = text.find("*/", index + 2)
            index = length if close == -1 else close + 2
        else:
            out.append(char)
            index += 1
    return "".join(out)


def _skip_string(text: str, start: int) -> int:
    index = start + 1
    while index < len(text):
        if text[index] == "\\":
            index += 2
            continue
        if text[index] == '"':
            return index + 1
        index += 1
    raise DescriptorError("unterminated string literal")


def _block_body(text: str, open_index: int) -> str:
    """Return the text between the brace at ``open_index`` and its partner."""

    depth = 0
    index = open_index
    while index < len(text):
        char = text[index]
        if char == '"':
            index = _skip_string(text, index)
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[open_index + 1 : index]
        index += 1
    raise DescriptorError("unbalanced braces")


def _unquote(value: str) -> str:
    value = value.strip()
    match = _QUOTED_RE.fullmatch(value)
    if match:
        return match.group(1)
    return value


def _read_inputs(text: str) -> dict[str, str]:
    inputs: dict[str, str] = {}
    for name, value in _INPUT_DOTTED_RE.findall(text):
        inputs[name] = _unquote(value)
    for table in _INPUT_DOTTED_TABLE_RE.finditer(text):
        url = _URL_ATTR_RE.search(_block_body(text, table.end() - 1))
        if url is not None:
            inputs[table.group(1)] = _unquote(url.group(1))
    match = _INPUTS_BLOCK_RE.search(text)
    if match is None:
        return inputs
    body = _block_body(text, match.end() - 1)
    for name, value in _INPUT_URL_RE.findall(body):
        inputs[name] = _unquote(value)
    for nested in _INPUT_NESTED_RE.finditer(body):
        nested_body = _block_body(body, nested.end() - 1)
        url = _URL_ATTR_RE.search(nested_body)
        if url is not None:
            inputs[nested.group(1)] = _unquote(url.group(1))
    return inputs


def _read_args(text: str) -> tuple[list[str], int]:
    match = _OUTPUTS_RE.search(text)
    if match is None:
        raise DescriptorError("flake has no 'outputs = { ... }:' function")
    args: list[str] = []
    for raw in match.group(1).split(","):
        name = raw.split("?", 1)[0].strip()
        if name and name != "...":
            args.append(name)
    return args, match.end()


def _read_packages_input(body: str) -> tuple[str, str]:
    """Return ``(binding, input)`` for the package set the outputs import."""

    imported = _IMPORT_RE.search(body)
    if imported is not None:
        return imported.group(1), imported.group(2)
    legacy = _LEGACY_PACKAGES_RE.search(body)
    if legacy is not None:
        return "pkgs", legacy.group(1)
    return "pkgs", DEFAULT_PACKAGES_INPUT


def _read_systems(body: str) -> str | list[str]:
    explicit = _EACH_SYSTEM_RE.search(body)
    if explicit is not None:
        return _QUOTED_RE.findall(explicit.group(1))
    return DEFAULT_SYSTEMS


def _tool_id(token: str, binding: str, scoped: bool) -> str:
    prefix = f"{binding}."
    if token.startswith(prefix):
        return token[len(prefix) :]
    if not scoped:
        raise DescriptorError(f"build input '{token}' is not taken from the '{binding}' package set")
    return token


def _read_dev_shell(body: str, binding: str) -> dict[str, object]:
    match = _MK_SHELL_RE.search(body)
    if match is None:
        raise DescriptorError("flake outputs declare no 'devShell = pkgs.mkShell { ... }'")
    shell_body = _block_body(body, match.end() - 1)
    indented = _INDENTED_ATTR_RE.findall(shell_body)
    # Attributes inside multi-line strings such as shellHook belong to the script.
    plain_body = _INDENTED_ATTR_RE.sub(";", shell_body)
    build_inputs: list[str] = []
    for _attr, with_clause, scope, items in _LIST_ATTR_RE.findall(plain_body):
        scoped = bool(with_clause) and scope == binding
        build_inputs.extend(_tool_id(token, binding, scoped) for token in items.split())
    shell: dict[str, object] = {"buildInputs": build_inputs}
    env: dict[str, str] = {}
    strings = dict(_STRING_ATTR_RE.findall(plain_body))
    strings.update(indented)
    for key, value in strings.items():
        if key == "name":
            shell["name"] = value
        elif key == "shellHook":
            shell["shellHook"] = value
        elif key not in _RESERVED_SHELL_ATTRS:
            env[key] = value
    if env:
        shell["env"] = env
    return shell


def read_flake(text: str) -> Mapping[str, object]:
    """Return the descriptor payload encoded by a ``flake.nix`` document.

    Args:
        text: Contents of the flake file.

    Returns:
        Mapping[str, object]: Payload suitable for :meth:`Descriptor.model_validate`.

    Raises:
        DescriptorError: If the flake does not follow the supported shape.
    """

    source = _strip_comments(text)
    description = _DESCRIPTION_RE.search(source)
    inputs = _read_inputs(source)
    args, outputs_start = _read_args(source)
    body = source[outputs_start:]
    binding, packages = _read_packages_input(body)
    return {
        "description": description.group(1) if description else "",
        "inputs": inputs,
        "outputs": {
            "args": args,
            "packages": packages,
            "systems": _read_systems(body),
            "devShell": _read_dev_shell(body, binding),
        },
    }


__all__ = ["read_flake"]
