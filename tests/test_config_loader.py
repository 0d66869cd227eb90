# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for layered settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from devshell.config import ResolverSettings, default_parallel_jobs
from devshell.config_loader import ConfigLoader, load_settings
from devshell.errors import ConfigError
from devshell.packages import CatalogEvaluator, NixEvaluator
from devshell.sources import CachingSnapshotFetcher, RetryPolicy


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home_dir)
    for name in ResolverSettings.model_fields:
        monkeypatch.delenv(f"DEVSHELL_{name.upper()}", raising=False)
    project_root = tmp_path / "project"
    project_root.mkdir()
    return project_root


def test_load_settings_defaults(workspace: Path) -> None:
    settings = load_settings(workspace)

    assert settings.jobs == default_parallel_jobs()
    assert settings.evaluator == "nix"
    assert settings.catalog is None
    assert settings.retry_policy() == RetryPolicy()


def test_loader_layers_user_project_and_environment(tmp_path: Path, workspace: Path) -> None:
    user_config = tmp_path / "user.toml"
    user_config.write_text('jobs = 5\nretries = 1\ngithub_token = "$FORGE_TOKEN"\n', encoding="utf-8")
    (workspace / "pyproject.toml").write_text(
        """
[project]
name = "demo"

[tool.devshell]
retries = 6
timeout_seconds = 10
""".strip(),
        encoding="utf-8",
    )
    project_config = workspace / ".devshell.toml"
    project_config.write_text("jobs = 9\n", encoding="utf-8")

    loader = ConfigLoader.for_root(
        workspace,
        user_config=user_config,
        project_config=project_config,
        env={"DEVSHELL_BACKOFF_SECONDS": "0.1", "FORGE_TOKEN": "abc"},
    )
    result = loader.load_with_trace()

    assert result.settings.jobs == 9
    assert result.settings.retries == 6
    assert result.settings.timeout_seconds == 10
    assert result.settings.backoff_seconds == pytest.approx(0.1)
    assert result.settings.github_token == "abc"
    sources = {update.field: update.source for update in result.updates}
    assert sources["jobs"] == str(project_config)
    assert sources["backoff_seconds"] == "environment"


def test_includes_are_merged_and_cycles_detected(tmp_path: Path, workspace: Path) -> None:
    shared = tmp_path / "shared.toml"
    shared.write_text('evaluator = "catalog"\ncatalog = "/srv/packages.toml"\n', encoding="utf-8")
    project_config = workspace / ".devshell.toml"
    project_config.write_text(f'include = "{shared.as_posix()}"\njobs = 2\n', encoding="utf-8")

    settings = ConfigLoader.for_root(workspace, project_config=project_config, env={}).load()

    assert settings.evaluator == "catalog"
    assert settings.catalog == Path("/srv/packages.toml")

    shared.write_text(f'include = "{project_config.as_posix()}"\n', encoding="utf-8")
    with pytest.raises(ConfigError, match="Circular include"):
        ConfigLoader.for_root(workspace, project_config=project_config, env={}).load()


def test_relative_catalog_is_anchored_at_project_root(workspace: Path) -> None:
    (workspace / ".devshell.toml").write_text('catalog = "nix/packages.toml"\n', encoding="utf-8")

    settings = load_settings(workspace)

    assert settings.catalog == workspace.resolve() / "nix" / "packages.toml"


@pytest.mark.parametrize(
    "content",
    ['jobs = 0\n', 'evaluator = "guix"\n', 'colour = "always"\n', "jobs = \n"],
)
def test_invalid_settings_raise_config_error(workspace: Path, content: str) -> None:
    (workspace / ".devshell.toml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(workspace)


def test_unreadable_config_raises_config_error(workspace: Path) -> None:
    (workspace / ".devshell.toml").mkdir()

    with pytest.raises(ConfigError, match="Cannot read"):
        load_settings(workspace)


def test_overrides_win_and_none_is_ignored(workspace: Path) -> None:
    (workspace / ".devshell.toml").write_text("jobs = 3\n", encoding="utf-8")

    assert load_settings(workspace, jobs=None).jobs == 3
    assert load_settings(workspace, jobs=7).jobs == 7
    with pytest.raises(ConfigError):
        load_settings(workspace, jobs=-1)


def test_build_evaluator_selects_implementation(tmp_path: Path) -> None:
    catalog = tmp_path / "packages.toml"
    catalog.write_text("[packages.hello]\n", encoding="utf-8")

    nix = ResolverSettings().build_evaluator()
    assert isinstance(nix, NixEvaluator)
    assert not nix.realises
    realising = ResolverSettings().build_evaluator(realise=True)
    assert isinstance(realising, NixEvaluator)
    assert realising.realises
    assert isinstance(ResolverSettings(evaluator="catalog", catalog=catalog).build_evaluator(), CatalogEvaluator)
    assert isinstance(ResolverSettings().build_fetcher(), CachingSnapshotFetcher)
    with pytest.raises(ConfigError, match="requires the 'catalog' setting"):
        ResolverSettings(evaluator="catalog").build_evaluator()


def test_blank_token_is_treated_as_unset() -> None:
    assert ResolverSettings(github_token="  ").github_token is None
