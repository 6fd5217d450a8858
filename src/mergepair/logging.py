"""Structured operation logging and console verbosity for mergepair.

Every CLI run is wrapped in an :class:`OperationScope`. Steps and the final
result are collected in memory and appended as a single JSON line to
``operations.jsonl`` under the configured logs directory when the scope
closes. The log is best-effort: if the directory cannot be created or a write
fails, the logger disables itself instead of interrupting provisioning.

Human-oriented diagnostics use the standard :mod:`logging` module routed
through :class:`rich.logging.RichHandler`; :func:`configure_console_logging`
maps the CLI verbosity flags onto logger levels.
"""
from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "mergepair"


class Verbosity(IntEnum):
    """Console verbosity levels selected by CLI flags."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3
    TRACE = 4

    @classmethod
    def from_flags(
        cls,
        *,
        quiet: bool = False,
        verbose: bool = False,
        debug: bool = False,
        trace: bool = False,
    ) -> Verbosity:
        """Return the most detailed level requested; ``--quiet`` loses to others."""
        if trace:
            return cls.TRACE
        if debug:
            return cls.DEBUG
        if verbose:
            return cls.VERBOSE
        if quiet:
            return cls.QUIET
        return cls.NORMAL

    @property
    def log_level(self) -> int:
        """Return the stdlib logging level matching this verbosity."""
        return {
            Verbosity.QUIET: logging.ERROR,
            Verbosity.NORMAL: logging.WARNING,
            Verbosity.VERBOSE: logging.INFO,
            Verbosity.DEBUG: logging.DEBUG,
            Verbosity.TRACE: logging.DEBUG,
        }[self]


def configure_console_logging(verbosity: Verbosity, console: Console | None = None) -> None:
    """Route the package logger through rich at the requested verbosity."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_mergepair_console", False):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=verbosity >= Verbosity.DEBUG,
        show_path=verbosity >= Verbosity.TRACE,
        markup=False,
    )
    handler._mergepair_console = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(verbosity.log_level)
    logger.propagate = False


def _sanitize(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(slots=True)
class OperationStep:
    """A single recorded step inside an operation."""

    name: str
    status: str
    detail: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        payload: dict[str, object] = {"name": self.name, "status": self.status}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


@dataclass(slots=True)
class OperationScope:
    """Collects steps and the outcome of one logged operation."""

    command: str
    args: dict[str, object]
    target: dict[str, object]
    started_at: str = field(default_factory=_timestamp)
    steps: list[OperationStep] = field(default_factory=list)
    result: dict[str, object] | None = None
    _started: float = field(default_factory=time.monotonic)

    def add_step(self, name: str, *, status: str, detail: str | None = None) -> None:
        """Record a step outcome (``success``, ``skipped``, ``error``)."""
        self.steps.append(OperationStep(name=name, status=status, detail=detail))

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._set_result("success", message, changed=changed, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Iterable[str] = (),
        errors: Iterable[str] = (),
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._set_result(
            "warning",
            message,
            changed=changed,
            warnings=list(warnings),
            errors=list(errors),
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        errors: Sequence[str] | None = None,
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed; *errors* defaults to ``[message]``."""
        self._set_result(
            "error",
            message,
            errors=list(errors) if errors else [message],
            rc=rc,
            context=context,
        )

    def to_record(self) -> dict[str, object]:
        """Return the JSON-safe record written to the operations log."""
        return {
            "timestamp": self.started_at,
            "pid": os.getpid(),
            "command": self.command,
            "args": _sanitize(self.args),
            "target": _sanitize(self.target),
            "steps": [step.to_dict() for step in self.steps],
            "duration_ms": int((time.monotonic() - self._started) * 1000),
            "result": self.result,
        }

    def _set_result(
        self,
        status: str,
        message: str,
        *,
        changed: int = 0,
        warnings: list[str] | None = None,
        errors: list[str] | None = None,
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        result: dict[str, object] = {
            "status": status,
            "message": message,
            "changed": changed,
            "warnings": warnings or [],
            "errors": errors or [],
        }
        if rc is not None:
            result["rc"] = rc
        if context:
            result["context"] = _sanitize(dict(context))
        self.result = result


class StructuredLogger:
    """Append-only JSON-lines operations log."""

    def __init__(self, log_dir: Path) -> None:
        """Prepare *log_dir*; disable logging when it cannot be created."""
        self._log_dir = log_dir.expanduser()
        self._operations_log_path = self._log_dir / "operations.jsonl"
        self._enabled = True
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self._enabled = False

    @property
    def path(self) -> Path:
        """Location of the operations log."""
        return self._operations_log_path

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield an :class:`OperationScope` that is persisted on exit."""
        scope = OperationScope(command=command, args=dict(args or {}), target=dict(target or {}))
        try:
            yield scope
        except Exception as exc:
            if scope.result is None:
                scope.error(f"Unhandled error: {exc}")
            raise
        finally:
            if scope.result is None:
                scope.error("Operation ended without a recorded result.")
            self._write(scope.to_record())

    def _write(self, record: Mapping[str, object]) -> None:
        if not self._enabled:
            return
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=True) + "\n")
        except OSError:
            self._enabled = False


__all__ = [
    "OperationScope",
    "OperationStep",
    "StructuredLogger",
    "Verbosity",
    "configure_console_logging",
]
