# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

from io import StringIO

import pytest
import typer
from rich.console import Console

from devshell.cli.shared import CLILogger, cli_errors, describe_failure
from devshell.errors import ConfigError, ToolNotFound, UnreachableSource
from devshell.logging import emoji, fail, info, ok, warn


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, force_terminal=False, color_system=None, width=120), buffer


def test_emoji_toggle() -> None:
    assert emoji("✅", True) == "✅"
    assert emoji("✅", False) == ""


def test_helpers_write_plain_messages() -> None:
    console, buffer = _console()

    info("fetching", use_emoji=False, use_color=False, console=console)
    ok("resolved", use_emoji=True, use_color=False, console=console)
    warn("stale lock", use_emoji=False, use_color=False, console=console)
    fail("[x86_64-linux] broken", use_emoji=False, use_color=False, console=console)

    assert buffer.getvalue().splitlines() == ["fetching", "✅ resolved", "stale lock", "[x86_64-linux] broken"]


def test_describe_failure_prefixes_platform() -> None:
    error = ToolNotFound("cmake")
    assert describe_failure(error) == str(error)

    error.for_platform("aarch64-linux")
    error.for_platform("x86_64-linux")
    assert error.platform == "aarch64-linux"
    assert describe_failure(error).startswith("[aarch64-linux] ")


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (UnreachableSource("github:a/b", "timeout", platform="x86_64-linux"), 1),
        (ConfigError("bad setting"), 2),
    ],
)
def test_cli_errors_map_to_exit_codes(error: Exception, code: int) -> None:
    console, buffer = _console()
    logger = CLILogger(console=console, use_emoji=False, use_color=False)

    with pytest.raises(typer.Exit) as excinfo:
        with cli_errors(logger):
            raise error

    assert excinfo.value.exit_code == code
    assert str(error) in buffer.getvalue()


def test_cli_errors_let_other_exceptions_through() -> None:
    console, _ = _console()

    with pytest.raises(KeyError):
        with cli_errors(CLILogger(console=console, use_emoji=False, use_color=False)):
            raise KeyError("boom")
