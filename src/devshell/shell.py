# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Launch interactive shells exposing the tools of a shell specification."""

from __future__ import annotations

import os
import subprocess  # nosec B404
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from .models import ShellSpecification
from .process_utils import spawn

DEFAULT_SHELL: Final[str] = "/bin/sh"
SESSION_MARKER_VAR: Final[str] = "IN_DEVSHELL"
SESSION_PLATFORM_VAR: Final[str] = "DEVSHELL_PLATFORM"

Spawner = Callable[..., subprocess.Popen[bytes]]


@runtime_checkable
class InteractiveSession(Protocol):
    """Handle for a running interactive shell."""

    @property
    def pid(self) -> int:
        """Return the process id of the shell."""

        raise NotImplementedError

    def wait(self) -> int:
        """Block until the shell exits and return its exit status."""

        raise NotImplementedError

    def terminate(self) -> None:
        """Ask the shell to exit."""

        raise NotImplementedError


@runtime_checkable
class ShellLauncher(Protocol):
    """Collaborator turning a specification into an interactive session."""

    def mk_shell(self, spec: ShellSpecification) -> InteractiveSession:
        """Start an interactive shell for ``spec``."""

        raise NotImplementedError


def tool_bin_dirs(spec: ShellSpecification) -> list[str]:
    """Return the ``bin`` directories of every tool with a known store path."""

    dirs: list[str] = []
    for tool in spec.tools:
        if tool.out_path:
            candidate = str(Path(tool.out_path) / "bin")
            if candidate not in dirs:
                dirs.append(candidate)
    return dirs


def build_shell_environment(spec: ShellSpecification, base_env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the environment an interactive shell for ``spec`` runs with.

    ``spec.env`` overrides inherited variables, then tool ``bin`` directories are
    prepended to ``PATH`` in declaration order, including a ``PATH`` set by
    ``spec.env``.

    Args:
        spec: Resolved shell specification.
        base_env: Environment to extend. Defaults to :data:`os.environ`.

    Returns:
        dict[str, str]: Environment for the shell process.
    """

    env = dict(os.environ if base_env is None else base_env)
    env.update(spec.env)
    bin_dirs = tool_bin_dirs(spec)
    if bin_dirs:
        current = env.get("PATH", "")
        env["PATH"] = os.pathsep.join([*bin_dirs, current]) if current else os.pathsep.join(bin_dirs)
    env[SESSION_MARKER_VAR] = spec.name
    env[SESSION_PLATFORM_VAR] = spec.platform
    return env


def shell_command(shell: str, spec: ShellSpecification) -> list[str]:
    """Return the argument list starting ``shell`` and running ``spec.shell_hook`` first."""

    if not spec.shell_hook.strip():
        return [shell, "-i"]
    return [shell, "-c", f'{spec.shell_hook}\nexec "$0" -i', shell]


class ProcessSession(InteractiveSession):
    """Interactive session backed by a child process."""

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        """Return the exit status, or ``None`` while the shell is running."""

        return self._process.poll()

    def wait(self) -> int:
        return self._process.wait()

    def terminate(self) -> None:
        if self._process.poll() is None:
            self._process.terminate()


class SubprocessShellLauncher(ShellLauncher):
    """Start the user's shell as a child process with the tools on ``PATH``.

    Args:
        shell: Shell executable. Defaults to ``$SHELL`` or ``/bin/sh``.
        base_env: Environment to extend. Defaults to :data:`os.environ`.
        cwd: Working directory for the shell.
        spawner: Process factory compatible with :func:`spawn`.
    """

    def __init__(
        self,
        *,
        shell: str | None = None,
        base_env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        spawner: Spawner = spawn,
    ) -> None:
        self._shell = shell or os.environ.get("SHELL") or DEFAULT_SHELL
        self._base_env = base_env
        self._cwd = cwd
        self._spawner = spawner

    @property
    def shell(self) -> str:
        """Return the shell executable launched by :meth:`mk_shell`."""

        return self._shell

    def command_for(self, spec: ShellSpecification) -> Sequence[str]:
        """Return the argument list used to start a shell for ``spec``."""

        return shell_command(self._shell, spec)

    def mk_shell(self, spec: ShellSpecification) -> ProcessSession:
        env = build_shell_environment(spec, self._base_env)
        process = self._spawner(self.command_for(spec), env=env, cwd=self._cwd)
        return ProcessSession(process)


__all__ = [
    "DEFAULT_SHELL",
    "SESSION_MARKER_VAR",
    "SESSION_PLATFORM_VAR",
    "InteractiveSession",
    "ProcessSession",
    "ShellLauncher",
    "SubprocessShellLauncher",
    "build_shell_environment",
    "shell_command",
    "tool_bin_dirs",
]
