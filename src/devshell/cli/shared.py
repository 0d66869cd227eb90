# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared utilities for CLI commands (logging, errors, context loading)."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import typer
from rich.console import Console

from ..config import ResolverSettings
from ..config_loader import load_settings
from ..console import detect_tty, get_console_manager
from ..descriptor import Descriptor, find_descriptor, load_descriptor
from ..errors import DevShellError, ResolutionError
from ..logging import fail as core_fail
from ..logging import info as core_info
from ..logging import ok as core_ok
from ..logging import warn as core_warn
from ..packages.base import SnapshotEvaluator
from ..sources.lock import LOCK_FILE_NAME, apply_lock, read_lock
from ..shell import ShellLauncher, SubprocessShellLauncher

RESOLUTION_EXIT_CODE: Final[int] = 1
USAGE_EXIT_CODE: Final[int] = 2
_DEBUG_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(slots=True)
class CLILogger:
    """Adapter around project logging helpers respecting CLI emoji settings."""

    console: Console
    use_emoji: bool
    use_color: bool

    def info(self, message: str) -> None:
        """Log an informational message."""

        core_info(message, use_emoji=self.use_emoji, use_color=self.use_color, console=self.console)

    def ok(self, message: str) -> None:
        """Log a success message."""

        core_ok(message, use_emoji=self.use_emoji, use_color=self.use_color, console=self.console)

    def warn(self, message: str) -> None:
        """Log a warning message."""

        core_warn(message, use_emoji=self.use_emoji, use_color=self.use_color, console=self.console)

    def fail(self, message: str) -> None:
        """Log a failure message."""

        core_fail(message, use_emoji=self.use_emoji, use_color=self.use_color, console=self.console)

    def echo(self, message: str) -> None:
        """Write ``message`` to stdout using Typer's echo helper."""

        typer.echo(message)


def build_cli_logger(*, emoji: bool, debug: bool = False, no_color: bool = False) -> CLILogger:
    """Return a ``CLILogger`` configured for the provided presentation flags.

    Args:
        emoji: Whether log output may include emoji glyphs.
        debug: Whether debug logging should be enabled.
        no_color: Whether terminal colour output should be disabled.

    Returns:
        CLILogger: Logger bound to a shared Rich console.
    """

    use_color = not no_color and detect_tty()
    console = get_console_manager().get(color=use_color, emoji=emoji)
    if debug:
        logging.basicConfig(level=logging.DEBUG, format=_DEBUG_FORMAT)
    return CLILogger(console=console, use_emoji=emoji, use_color=use_color)


@contextmanager
def cli_errors(logger: CLILogger) -> Iterator[None]:
    """Translate project errors raised inside the block into ``typer.Exit``.

    Resolution failures exit with status 1; descriptor and configuration
    errors exit with status 2.
    """

    try:
        yield
    except ResolutionError as exc:
        logger.fail(describe_failure(exc))
        raise typer.Exit(code=RESOLUTION_EXIT_CODE) from exc
    except DevShellError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=USAGE_EXIT_CODE) from exc


def describe_failure(error: ResolutionError) -> str:
    """Return ``error`` prefixed with the platform it applies to, when known."""

    if error.platform is None:
        return str(error)
    return f"[{error.platform}] {error}"


@dataclass(frozen=True, slots=True)
class CommandContext:
    """Inputs shared by every command after loading settings and the descriptor."""

    root: Path
    descriptor_path: Path
    descriptor: Descriptor
    settings: ResolverSettings


def load_context(
    root: Path,
    descriptor_path: Path | None,
    *,
    use_lock: bool = True,
    jobs: int | None = None,
) -> CommandContext:
    """Load settings and the descriptor for a command.

    Args:
        root: Project root.
        descriptor_path: Explicit descriptor file, or ``None`` to search ``root``.
        use_lock: Whether to pin inputs from ``devshell.lock`` when present.
        jobs: Optional override for the concurrency limit.

    Returns:
        CommandContext: Loaded context.

    Raises:
        DescriptorError: If the descriptor or lock file is invalid.
        ConfigError: If the settings are invalid.
    """

    root = root.resolve()
    settings = load_settings(root, jobs=jobs)
    path = descriptor_path if descriptor_path is not None else find_descriptor(root)
    descriptor = load_descriptor(path)
    lock_path = path.parent / LOCK_FILE_NAME
    if use_lock and lock_path.is_file():
        descriptor = apply_lock(descriptor, read_lock(lock_path))
    return CommandContext(root=root, descriptor_path=path, descriptor=descriptor, settings=settings)


def build_evaluator(settings: ResolverSettings, *, realise: bool = False) -> SnapshotEvaluator:
    """Return the snapshot evaluator selected by ``settings``."""

    return settings.build_evaluator(realise=realise)


def build_launcher(settings: ResolverSettings, root: Path) -> ShellLauncher:
    """Return the shell launcher used by the ``shell`` command."""

    return SubprocessShellLauncher(shell=settings.shell, cwd=root)


__all__ = [
    "RESOLUTION_EXIT_CODE",
    "USAGE_EXIT_CODE",
    "CLILogger",
    "CommandContext",
    "build_cli_logger",
    "build_evaluator",
    "build_launcher",
    "cli_errors",
    "describe_failure",
    "load_context",
]
