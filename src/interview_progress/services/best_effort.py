"""Run independent bookkeeping steps so one failure does not stop the rest."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass
class StepReport:
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class BestEffortSteps:
    """Named async steps executed in order with per-step failure capture.

    Args:
        operation: Name of the enclosing operation, used in log events.
        **context: Extra key-value pairs bound to every log event.
    """

    def __init__(self, operation: str, **context: Any):
        self.operation = operation
        self.context = context
        self._steps: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    def add(self, name: str, step: Callable[[], Awaitable[Any]]) -> "BestEffortSteps":
        self._steps.append((name, step))
        return self

    async def run(self) -> StepReport:
        report = StepReport()
        for name, step in self._steps:
            try:
                await step()
            except Exception as e:
                logger.exception(
                    "tracking_step_failed", operation=self.operation, step=name, **self.context
                )
                report.failed.append(name)
                report.errors[name] = str(e)
            else:
                report.succeeded.append(name)

        log = logger.warning if report.failed else logger.info
        log(
            "tracking_steps_finished",
            operation=self.operation,
            succeeded=report.succeeded,
            failed=report.failed,
            **self.context,
        )
        return report
