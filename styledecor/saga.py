"""Minimal saga runner: ordered steps, each with an optional undo action."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from flask import current_app

from .errors import InternalError


@dataclass
class SagaStep:
    name: str
    action: Callable[[dict[str, Any]], Any]
    compensate: Callable[[dict[str, Any]], None] | None = None


class Saga:
    """Run steps in order, undoing completed ones in reverse if a step fails.

    Each action receives a shared ``context`` dict and its return value is
    stored there under the step name. The original error is re-raised after
    compensation; if an undo action fails, ``InternalError`` with code
    ``compensation_failed`` is raised, chained to the original error, instead.
    """

    def __init__(self, name: str, steps: list[SagaStep]) -> None:
        self.name = name
        self.steps = steps

    def run(self, context: dict[str, Any] | None = None) -> dict[str, Any]:
        context = {} if context is None else context
        completed: list[SagaStep] = []
        for step in self.steps:
            try:
                context[step.name] = step.action(context)
            except Exception as exc:
                current_app.logger.warning("Saga %s failed at step %s: %s", self.name, step.name, exc)
                self._compensate(completed, context, exc)
                raise
            completed.append(step)
        return context

    def _compensate(self, completed: list[SagaStep], context: dict[str, Any], cause: Exception) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                step.compensate(context)
            except Exception as exc:
                current_app.logger.exception(
                    "Saga %s could not undo step %s after failure: %s", self.name, step.name, cause, exc_info=exc
                )
                raise InternalError(
                    "An internal error occurred and cleanup did not complete.",
                    code="compensation_failed",
                    details={"step": step.name},
                ) from cause
