"""Subprocess seam shared by every external collaborator.

All git, drush, terminus, composer and mysql invocations go through
:class:`CommandRunner` so that tracing, error formatting and test doubles live
in one place. Calls are synchronous and carry no timeout: a hung tool hangs
the run until the operator interrupts it.
"""
from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

LOGGER = logging.getLogger(__name__)

_SECRET_FLAGS = ("--password=", "--pw=", "--db-url=")


class CommandError(RuntimeError):
    """Raised when an external command is missing or exits non-zero."""

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        """Store the formatted *message* and the process return code."""
        super().__init__(message)
        self.returncode = returncode


def redact(args: Sequence[str]) -> list[str]:
    """Return *args* with credential-bearing flags masked."""
    redacted: list[str] = []
    for arg in args:
        for flag in _SECRET_FLAGS:
            if arg.startswith(flag):
                arg = f"{flag}***"
                break
        redacted.append(arg)
    return redacted


def format_command(args: Sequence[str]) -> str:
    """Return a shell-quoted, redacted rendering of *args*."""
    return shlex.join(redact(args))


@dataclass(slots=True)
class CommandRunner:
    """Run external commands, optionally echoing them to the console."""

    trace: bool = False
    console: Console | None = None
    env: Mapping[str, str] = field(default_factory=dict)

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Execute *args* and return the completed process.

        With ``check`` set, a non-zero exit raises :class:`CommandError` whose
        message carries the command, exit code and the last line of output.
        """
        rendered = format_command(args)
        LOGGER.debug("Running %s (cwd=%s)", rendered, cwd or Path.cwd())
        if self.trace:
            (self.console or Console(stderr=True)).print(f"[dim]+ {rendered}[/dim]")

        env_vars = os.environ.copy()
        env_vars.update(self.env)
        try:
            result = subprocess.run(  # noqa: S603
                list(args),
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                check=False,
                env=env_vars,
            )
        except FileNotFoundError as exc:
            raise CommandError(f"{args[0]} not found: {exc}") from exc

        if check and result.returncode != 0:
            stdout = result.stdout or ""
            stderr = result.stderr or ""
            message = stderr.strip() or stdout.strip() or "no output"
            message = message.splitlines()[-1]
            raise CommandError(
                f"{rendered} failed (exit {result.returncode}): {message}",
                returncode=result.returncode,
            )
        return result

    def output(self, args: Sequence[str], *, cwd: Path | None = None) -> str:
        """Run *args* and return stripped stdout."""
        return (self.run(args, cwd=cwd).stdout or "").strip()


__all__ = ["CommandError", "CommandRunner", "format_command", "redact"]
