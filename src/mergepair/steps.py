"""The check-act-record-or-abort primitive behind every provisioning step.

A :class:`Step` bundles a precondition, an action and the two messages that
describe its outcome. :meth:`StepExecutor.perform` skips the step silently when
the precondition is false, records the success message in the ledger when the
action completes, and aborts the whole run with the failure message otherwise.
There is no retry: every step is idempotent and its precondition checks the
end state of the whole step, so the recovery is to fix the cause and run
again.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn

from .commands import CommandError
from .ledger import AccomplishmentLedger
from .logging import OperationScope

LOGGER = logging.getLogger(__name__)


class ProvisioningError(RuntimeError):
    """Raised by step actions and helpers when a provisioning action fails."""


class ProvisioningAborted(RuntimeError):
    """Fatal outcome of a step; the CLI reports it and exits non-zero."""

    def __init__(self, message: str, *, step: str | None = None) -> None:
        """Store the user-facing *message* and the failing step name."""
        super().__init__(message)
        self.step = step


class Outcome(Enum):
    """Optional return value of a step action."""

    CHANGED = "changed"
    # The action ran but found nothing to change (e.g. an up-to-date pull).
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class Step:
    """One guarded provisioning action."""

    name: str
    precondition: Callable[[], bool]
    action: Callable[[], object]
    success: str
    failure: str


class StepExecutor:
    """Run :class:`Step` objects, feeding the ledger and the operation log."""

    def __init__(
        self,
        ledger: AccomplishmentLedger,
        *,
        operation: OperationScope | None = None,
    ) -> None:
        """Bind the executor to *ledger* and an optional structured *operation*."""
        self.ledger = ledger
        self.operation = operation

    def perform(self, step: Step) -> bool:
        """Run *step*; return True when it changed something, False otherwise."""
        if not step.precondition():
            LOGGER.debug("Skipping %s; nothing to do.", step.name)
            self._add_step(step.name, "skipped")
            return False

        LOGGER.info("Running %s", step.name)
        try:
            outcome = step.action()
        except (CommandError, ProvisioningError, OSError) as exc:
            self._add_step(step.name, "error", str(exc))
            raise ProvisioningAborted(f"{step.failure}: {exc}", step=step.name) from exc
        if outcome is False:
            self._add_step(step.name, "error", step.failure)
            raise ProvisioningAborted(step.failure, step=step.name)
        if outcome is Outcome.UNCHANGED:
            self._add_step(step.name, "unchanged")
            return False

        self.ledger.record(step.success)
        self._add_step(step.name, "success", step.success)
        return True

    def run(
        self,
        name: str,
        *,
        when: Callable[[], bool],
        action: Callable[[], object],
        success: str,
        failure: str,
    ) -> bool:
        """Build a :class:`Step` from keyword arguments and perform it."""
        return self.perform(
            Step(name=name, precondition=when, action=action, success=success, failure=failure)
        )

    def fail(self, message: str, *, step: str | None = None) -> NoReturn:
        """Abort the run with *message* outside of a step action."""
        if step is not None:
            self._add_step(step, "error", message)
        raise ProvisioningAborted(message, step=step)

    def _add_step(self, name: str, status: str, detail: str | None = None) -> None:
        if self.operation is not None:
            self.operation.add_step(name, status=status, detail=detail)


def always() -> bool:
    """Precondition for steps that must run on every invocation."""
    return True


__all__ = [
    "Outcome",
    "ProvisioningAborted",
    "ProvisioningError",
    "Step",
    "StepExecutor",
    "always",
]
