# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Layered settings loading with predictable precedence and traceability."""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from pathlib import Path
from typing import Any, Final, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import ResolverSettings
from .errors import ConfigError

DEFAULT_INCLUDE_KEY: Final[str] = "include"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "devshell"
PROJECT_CONFIG_NAME: Final[str] = ".devshell.toml"
ENV_PREFIX: Final[str] = "DEVSHELL_"

_ENV_VAR_PATTERN = re.compile(r"\$(\w+)|\$\{([^}]+)\}")


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):

        def _replace(match: re.Match[str]) -> str:
            key = match.group(1) or match.group(2)
            return env.get(key, match.group(0))

        return _ENV_VAR_PATTERN.sub(_replace, value)
    if isinstance(value, Mapping):
        return {k: _expand_env_value(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_value(v, env) for v in value]
    return value


class ConfigSource(Protocol):
    """Source producing a raw settings fragment."""

    name: str

    def load(self) -> Mapping[str, Any]:
        """Return the settings fragment, empty when the source is absent."""

        raise NotImplementedError

    def describe(self) -> str:
        """Return a human-readable description of the source."""

        raise NotImplementedError


class TomlConfigSource:
    """Load settings from a TOML document with include support."""

    def __init__(
        self,
        path: Path,
        *,
        name: str | None = None,
        include_key: str = DEFAULT_INCLUDE_KEY,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._root_path = path
        self.name = name or str(path)
        self._include_key = include_key
        self._env = env if env is not None else os.environ

    def load(self) -> Mapping[str, Any]:
        return self._load(self._root_path, ())

    def _read(self, path: Path) -> Mapping[str, Any]:
        try:
            with path.open("rb") as handle:
                return tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read {path}: {exc.strerror or exc}") from exc

    def _load(self, path: Path, stack: tuple[Path, ...]) -> Mapping[str, Any]:
        if not path.exists():
            return {}
        if path in stack:
            include_chain = " -> ".join(str(entry) for entry in (*stack, path))
            raise ConfigError(f"Circular include detected: {include_chain}")
        data = self._read(path)
        if not isinstance(data, MutableMapping):
            raise ConfigError(f"Configuration at {path} must be a table")
        document: dict[str, Any] = dict(self._select(data))
        includes = document.pop(self._include_key, None)
        merged: dict[str, Any] = {}
        for include_path in self._coerce_includes(includes, path.parent):
            fragment = self._load(include_path, stack + (path,))
            merged = _deep_merge(merged, fragment)
        merged = _deep_merge(merged, document)
        return _expand_env_value(merged, self._env)

    def _select(self, data: Mapping[str, Any]) -> Mapping[str, Any]:
        return data

    def _coerce_includes(self, raw: Any, base_dir: Path) -> Iterable[Path]:
        if raw is None:
            return []
        if isinstance(raw, (str, Path)):
            return [self._resolve_path(Path(raw), base_dir)]
        if isinstance(raw, list):
            return [self._resolve_path(Path(item), base_dir) for item in raw]
        raise ConfigError(f"Unsupported include declaration: {raw!r}")

    @staticmethod
    def _resolve_path(path: Path, base_dir: Path) -> Path:
        return path if path.is_absolute() else (base_dir / path)

    def describe(self) -> str:
        return f"TOML configuration at {self.name}"


class PyProjectConfigSource(TomlConfigSource):
    """Read settings from ``[tool.devshell]`` within ``pyproject.toml``."""

    def _select(self, data: Mapping[str, Any]) -> Mapping[str, Any]:
        tool_section = data.get(PYPROJECT_TOOL_KEY)
        if not isinstance(tool_section, Mapping):
            return {}
        section = tool_section.get(PYPROJECT_SECTION_KEY)
        return section if isinstance(section, Mapping) else {}

    def describe(self) -> str:
        return f"pyproject.toml ({self.name})"


class EnvConfigSource:
    """Read ``DEVSHELL_<FIELD>`` environment variables."""

    name = "environment"

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env = env if env is not None else os.environ

    def load(self) -> Mapping[str, Any]:
        fragment: dict[str, Any] = {}
        for field_name in ResolverSettings.model_fields:
            key = f"{ENV_PREFIX}{field_name.upper()}"
            if key in self._env:
                fragment[field_name] = self._env[key]
        return fragment

    def describe(self) -> str:
        return f"{ENV_PREFIX}* environment variables"


class FieldUpdate(BaseModel):
    """Description of a single settings field set by a source."""

    model_config = ConfigDict(frozen=True)

    field: str
    source: str
    value: Any


class ConfigLoadResult(BaseModel):
    """Container bundling resolved settings with provenance metadata."""

    model_config = ConfigDict(validate_assignment=True)

    settings: ResolverSettings
    updates: list[FieldUpdate] = Field(default_factory=list)


class ConfigLoader:
    """Apply layered settings sources with predictable precedence."""

    def __init__(self, *, project_root: Path, sources: Sequence[ConfigSource]) -> None:
        """Initialise a loader that merges the supplied sources in order.

        Args:
            project_root: Directory that anchors relative paths.
            sources: Ordered collection of settings sources; later wins.
        """

        if not sources:
            raise ValueError("at least one configuration source is required")
        self._sources = list(sources)
        self._project_root = project_root.resolve()

    @classmethod
    def for_root(
        cls,
        project_root: Path,
        *,
        user_config: Path | None = None,
        project_config: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ConfigLoader:
        """Build a loader honouring user, pyproject, project and environment sources.

        Args:
            project_root: Workspace root used to discover configuration files.
            user_config: Optional path to a user-level settings file.
            project_config: Optional project-level settings file.
            env: Environment mapping; defaults to :data:`os.environ`.

        Returns:
            ConfigLoader: Loader configured with default precedence ordering.
        """

        root = project_root.resolve()
        environ = env if env is not None else os.environ
        home_config = (
            user_config if user_config is not None else Path.home() / ".config" / "devshell" / "config.toml"
        )
        project_file = project_config if project_config is not None else root / PROJECT_CONFIG_NAME
        sources: list[ConfigSource] = [TomlConfigSource(home_config, env=environ)]
        pyproject = root / "pyproject.toml"
        if pyproject.exists():
            sources.append(PyProjectConfigSource(pyproject, env=environ))
        sources.append(TomlConfigSource(project_file, env=environ))
        sources.append(EnvConfigSource(environ))
        return cls(project_root=root, sources=sources)

    def load(self) -> ResolverSettings:
        """Return the resolved settings without provenance metadata."""

        return self.load_with_trace().settings

    def load_with_trace(self) -> ConfigLoadResult:
        """Return the resolved settings with the source of every override.

        Raises:
            ConfigError: If a source is malformed or a value fails validation.
        """

        merged: dict[str, Any] = {}
        updates: list[FieldUpdate] = []
        for source in self._sources:
            fragment = source.load()
            if not fragment:
                continue
            unknown = sorted(set(fragment) - set(ResolverSettings.model_fields))
            if unknown:
                raise ConfigError(f"{source.describe()}: unknown setting(s) {', '.join(unknown)}")
            for key, value in fragment.items():
                merged[key] = value
                updates.append(FieldUpdate(field=key, source=source.name, value=value))
        if isinstance(merged.get("catalog"), str):
            catalog = Path(merged["catalog"])
            merged["catalog"] = catalog if catalog.is_absolute() else self._project_root / catalog
        try:
            settings = ResolverSettings.model_validate(merged)
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            )
            raise ConfigError(f"invalid settings: {details}") from exc
        return ConfigLoadResult(settings=settings, updates=updates)


def load_settings(project_root: Path, **overrides: Any) -> ResolverSettings:
    """Load settings for ``project_root`` and apply explicit ``overrides``.

    Overrides whose value is ``None`` are ignored.
    """

    settings = ConfigLoader.for_root(project_root).load()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return settings
    try:
        return ResolverSettings.model_validate({**settings.model_dump(), **updates})
    except ValidationError as exc:
        raise ConfigError(f"invalid settings override: {exc.error_count()} error(s)") from exc


__all__ = [
    "ENV_PREFIX",
    "PROJECT_CONFIG_NAME",
    "ConfigLoadResult",
    "ConfigLoader",
    "ConfigSource",
    "EnvConfigSource",
    "FieldUpdate",
    "PyProjectConfigSource",
    "TomlConfigSource",
    "load_settings",
]
