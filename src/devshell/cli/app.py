# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring commands and shared services."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer

from ..platforms import SystemsEnumerator, current_platform, platforms_for
from ..resolver import EnvironmentResolver
from ..sources.lock import LOCK_FILE_NAME, lock_inputs, write_lock
from .rendering import render_descriptor, render_report
from .shared import (
    RESOLUTION_EXIT_CODE,
    build_cli_logger,
    build_evaluator,
    build_launcher,
    cli_errors,
    load_context,
)

app = typer.Typer(
    name="devshell",
    help="Resolve declarative development-shell descriptors into per-platform shells.",
    no_args_is_help=True,
    add_completion=False,
)

RootOption = Annotated[
    Path,
    typer.Option("--root", "-r", help="Project root containing the descriptor.", file_okay=False),
]
DescriptorOption = Annotated[
    Path | None,
    typer.Option("--descriptor", "-d", help="Descriptor file (devshell.toml or flake.nix).", dir_okay=False),
]
SystemOption = Annotated[
    list[str] | None,
    typer.Option("--system", "-s", help="Platform to resolve; repeat for several. Defaults to all."),
]
NoLockOption = Annotated[bool, typer.Option("--no-lock", help=f"Ignore {LOCK_FILE_NAME} when present.")]
JobsOption = Annotated[int | None, typer.Option("--jobs", "-j", min=1, help="Platforms resolved concurrently.")]
NoEmojiOption = Annotated[bool, typer.Option("--no-emoji", help="Disable emoji in output.")]
NoColorOption = Annotated[bool, typer.Option("--no-color", help="Disable coloured output.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Log debug details to stderr.")]


@app.command("show")
def show_command(
    root: RootOption = Path("."),
    descriptor: DescriptorOption = None,
    no_lock: NoLockOption = False,
    no_emoji: NoEmojiOption = False,
    no_color: NoColorOption = False,
    debug: DebugOption = False,
) -> None:
    """Print the parsed descriptor: inputs, platforms and build inputs."""

    logger = build_cli_logger(emoji=not no_emoji, debug=debug, no_color=no_color)
    with cli_errors(logger):
        context = load_context(root, descriptor, use_lock=not no_lock)
        render_descriptor(logger.console, context.descriptor, platforms_for(context.descriptor, SystemsEnumerator()))


@app.command("platforms")
def platforms_command(
    root: RootOption = Path("."),
    descriptor: DescriptorOption = None,
    no_emoji: NoEmojiOption = False,
    no_color: NoColorOption = False,
    debug: DebugOption = False,
) -> None:
    """List the platforms the descriptor resolves for."""

    logger = build_cli_logger(emoji=not no_emoji, debug=debug, no_color=no_color)
    with cli_errors(logger):
        context = load_context(root, descriptor, use_lock=False)
        host = current_platform()
        for platform in sorted(platforms_for(context.descriptor, SystemsEnumerator())):
            logger.echo(f"{platform} (current)" if platform == host else platform)


@app.command("resolve")
def resolve_command(
    root: RootOption = Path("."),
    descriptor: DescriptorOption = None,
    system: SystemOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Emit the report as JSON.")] = False,
    jobs: JobsOption = None,
    no_lock: NoLockOption = False,
    no_emoji: NoEmojiOption = False,
    no_color: NoColorOption = False,
    debug: DebugOption = False,
) -> None:
    """Resolve shell specifications for one or all platforms."""

    logger = build_cli_logger(emoji=not no_emoji, debug=debug, no_color=no_color)
    with cli_errors(logger):
        context = load_context(root, descriptor, use_lock=not no_lock, jobs=jobs)
        unpinned = sorted(name for name, source in context.descriptor.inputs.items() if not source.is_pinned)
        if unpinned and not as_json:
            logger.warn(f"Unpinned inputs ({', '.join(unpinned)}); run 'devshell lock' for reproducible shells")
        resolver = EnvironmentResolver(build_evaluator(context.settings), jobs=context.settings.jobs)
        report = resolver.resolve_all(context.descriptor, platforms=system or None)
    if as_json:
        logger.echo(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    else:
        render_report(logger.console, report)
    if not report.ok:
        if not as_json:
            logger.fail(f"{len(report.failures)} of {len(report.platforms)} platform(s) failed to resolve")
        raise typer.Exit(code=RESOLUTION_EXIT_CODE)
    if not as_json:
        logger.ok(f"Resolved {len(report.specifications)} platform(s)")


@app.command("lock")
def lock_command(
    root: RootOption = Path("."),
    descriptor: DescriptorOption = None,
    no_emoji: NoEmojiOption = False,
    no_color: NoColorOption = False,
    debug: DebugOption = False,
) -> None:
    """Pin every input to its current revision and write the lock file."""

    logger = build_cli_logger(emoji=not no_emoji, debug=debug, no_color=no_color)
    with cli_errors(logger):
        context = load_context(root, descriptor, use_lock=False)
        lock = lock_inputs(context.descriptor, context.settings.build_fetcher())
        path = write_lock(context.descriptor_path.parent / LOCK_FILE_NAME, lock)
        for name, entry in sorted(lock.inputs.items()):
            logger.info(f"{name}: {entry.url} -> {entry.rev}")
        logger.ok(f"Wrote {path}")


@app.command("shell")
def shell_command(
    root: RootOption = Path("."),
    descriptor: DescriptorOption = None,
    system: Annotated[
        str | None,
        typer.Option("--system", "-s", help="Platform to resolve. Defaults to the host platform."),
    ] = None,
    no_lock: NoLockOption = False,
    no_emoji: NoEmojiOption = False,
    no_color: NoColorOption = False,
    debug: DebugOption = False,
) -> None:
    """Resolve the shell for a platform and start it interactively."""

    logger = build_cli_logger(emoji=not no_emoji, debug=debug, no_color=no_color)
    with cli_errors(logger):
        context = load_context(root, descriptor, use_lock=not no_lock)
        resolver = EnvironmentResolver(build_evaluator(context.settings, realise=True), jobs=context.settings.jobs)
        spec = resolver.resolve(context.descriptor, system or current_platform())
        session = build_launcher(context.settings, context.root).mk_shell(spec)
        status = session.wait()
    raise typer.Exit(code=status)


def main() -> None:
    """Run the ``devshell`` command line application."""

    app()


__all__ = ["app", "main"]
