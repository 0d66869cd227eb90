# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Rich renderers for descriptors and resolution reports."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from ..descriptor import Descriptor
from ..models import Platform
from ..resolver import ResolutionReport


def render_descriptor(console: Console, descriptor: Descriptor, platforms: frozenset[Platform]) -> None:
    """Print the inputs, platforms and build inputs of ``descriptor``."""

    if descriptor.description:
        console.print(Text(descriptor.description))
    inputs = Table(title="Inputs", box=box.SIMPLE, expand=False)
    inputs.add_column("Name", style="bold")
    inputs.add_column("Source")
    inputs.add_column("Pinned")
    for name in sorted(descriptor.inputs):
        source = descriptor.inputs[name]
        marker = "packages" if name == descriptor.outputs.packages else ""
        label = f"{name} ({marker})" if marker else name
        inputs.add_row(label, str(source), "yes" if source.is_pinned else "no")
    console.print(inputs)

    shell = descriptor.dev_shell
    console.print(f"Shell: {shell.name}")
    console.print(f"Platforms: {', '.join(sorted(platforms)) or '-'}")
    console.print(f"Build inputs: {', '.join(shell.build_inputs) or '-'}")


def render_report(console: Console, report: ResolutionReport) -> None:
    """Print one row per platform describing its resolution outcome."""

    table = Table(title="Shell specifications", box=box.SIMPLE, expand=False)
    table.add_column("Platform", style="bold")
    table.add_column("Status")
    table.add_column("Details", overflow="fold")
    for platform in report.platforms:
        spec = report.specifications.get(platform)
        if spec is not None:
            details = ", ".join(
                f"{tool.tool_id}={tool.out_path}" if tool.out_path else tool.tool_id for tool in spec.tools
            )
            table.add_row(platform, "[green]resolved[/]", details or "-")
        elif platform in report.failures:
            error = report.failures[platform]
            table.add_row(platform, f"[red]{type(error).__name__}[/]", escape(str(error)))
        else:
            table.add_row(platform, "[yellow]cancelled[/]", "-")
    console.print(table)


__all__ = ["render_descriptor", "render_report"]
