"""Task scheduler call sites and scheduled task classes."""

from __future__ import annotations

from pathlib import Path

from ..issues import Category, Issue, Severity
from ..php.ast_engine import CallSite, ParsedAST
from ..php.declarations import ClassRecord
from .base import BaseAnalyzer

# Ticks; the server runs at 20 ticks per second
MIN_REASONABLE_PERIOD = 20

# Method name -> (delay argument index, period argument index)
SCHEDULER_METHODS: dict[str, tuple[int | None, int | None]] = {
    "scheduletask": (None, None),
    "scheduledelayedtask": (1, None),
    "schedulerepeatingtask": (None, 1),
    "scheduledelayedrepeatingtask": (1, 2),
}

DEPRECATED_SCHEDULER_METHODS = {
    "addtask": "scheduleTask()",
    "scheduleasynctask": "AsyncPool::submitTask()",
}


class SchedulerAnalyzer(BaseAnalyzer):
    """Checks literal delays and periods passed to the scheduler."""

    name = "Scheduler"

    def analyze(self) -> list[Issue]:
        issues: list[Issue] = []
        names = set(SCHEDULER_METHODS) | set(DEPRECATED_SCHEDULER_METHODS)
        for path, ast in self.context.trees():
            for call in self.engine.find_calls(ast, names=names, kinds=("method",)):
                issues.extend(self._check_call(path, ast, call))
        for task in self.context.scheduled_tasks:
            issues.extend(self._check_task_class(task))
        return issues

    # ------------------------------------------------------------------
    # Scheduler calls
    # ------------------------------------------------------------------

    def _check_call(self, path: Path, ast: ParsedAST, call: CallSite) -> list[Issue]:
        method = call.name.lower()
        if method in DEPRECATED_SCHEDULER_METHODS:
            return [
                self.issue(
                    f"Deprecated scheduler method '{call.name}' used. "
                    f"Use {DEPRECATED_SCHEDULER_METHODS[method]} instead",
                    path,
                    call.line,
                    Category.SCHEDULER_MISUSE,
                    Severity.WARNING,
                    code="deprecated_scheduler_method",
                )
            ]

        issues: list[Issue] = []
        delay_index, period_index = SCHEDULER_METHODS[method]
        delay = self._literal_argument(ast, call, delay_index)
        if delay is not None and delay < 0:
            issues.append(
                self.issue(
                    f"Negative delay value ({delay}) in {call.name}()",
                    path,
                    call.line,
                    Category.SCHEDULER_MISUSE,
                    code="negative_scheduler_delay",
                    suggestion="Use a delay of zero or more ticks",
                )
            )

        period = self._literal_argument(ast, call, period_index)
        if period is None:
            return issues
        if period <= 0:
            issues.append(
                self.issue(
                    f"Period must be positive in {call.name}(), got {period}",
                    path,
                    call.line,
                    Category.SCHEDULER_MISUSE,
                    code="invalid_scheduler_period",
                )
            )
        elif period < MIN_REASONABLE_PERIOD:
            issues.append(
                self.issue(
                    f"Very short repeat period ({period} ticks) in {call.name}()",
                    path,
                    call.line,
                    Category.SCHEDULER_MISUSE,
                    Severity.INFO,
                    code="short_scheduler_period",
                    suggestion="Consider whether the task needs to run more than once per second",
                )
            )
        return issues

    def _literal_argument(self, ast: ParsedAST, call: CallSite, index: int | None) -> int | None:
        if index is None or len(call.arguments) <= index:
            return None
        return self.engine.int_value(ast, call.arguments[index])

    # ------------------------------------------------------------------
    # Task classes
    # ------------------------------------------------------------------

    def _check_task_class(self, task: ClassRecord) -> list[Issue]:
        issues: list[Issue] = []
        on_run = task.get_method("onRun")
        if on_run is None:
            if not task.is_abstract:
                issues.append(
                    self.issue(
                        f"Task class {task.fqcn} is missing the onRun() method",
                        task.file,
                        task.line,
                        Category.SCHEDULER_MISUSE,
                        code="task_missing_onrun",
                        suggestion="Implement the onRun(): void method",
                    )
                )
        elif not on_run.is_public:
            issues.append(
                self.issue(
                    f"Task {task.name}::onRun() must be public",
                    task.file,
                    on_run.line,
                    Category.VISIBILITY_VIOLATION,
                    code="task_onrun_not_public",
                )
            )

        get_handler = task.get_method("getHandler")
        if get_handler is not None:
            issues.append(
                self.issue(
                    f"Task class {task.name} overrides getHandler() which is deprecated",
                    task.file,
                    get_handler.line,
                    Category.DEPRECATED_API,
                    Severity.WARNING,
                    code="deprecated_task_gethandler",
                )
            )
        return issues
