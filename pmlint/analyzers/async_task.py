"""Validation of AsyncTask subclasses."""

from __future__ import annotations

import tree_sitter as ts

from ..issues import Category, Issue, Severity
from ..php.ast_engine import ASTEngine, CallSite, ParsedAST
from ..php.declarations import ClassRecord
from .base import BaseAnalyzer

RUN_METHOD = "onRun"
COMPLETION_METHOD = "onCompletion"

THREAD_LOCAL_METHODS = frozenset({"storeLocal", "fetchLocal"})

# Main-thread objects that must not be touched from a worker thread
THREAD_UNSAFE_METHODS = frozenset({
    "getserver",
    "getplugin",
    "getowningplugin",
    "getplayer",
    "getworld",
    "getlevel",
})


class AsyncTaskAnalyzer(BaseAnalyzer):
    """Checks that async tasks run safely off the main thread."""

    name = "AsyncTask"

    def analyze(self) -> list[Issue]:
        issues: list[Issue] = []
        for task in self.context.tasks:
            issues.extend(self._check_task(task))
        return issues

    def _check_task(self, task: ClassRecord) -> list[Issue]:
        issues: list[Issue] = []
        on_run = task.get_method(RUN_METHOD)
        if on_run is None:
            if not task.is_abstract:
                issues.append(
                    self.issue(
                        f"AsyncTask class {task.fqcn} is missing the onRun() method",
                        task.file,
                        task.line,
                        Category.ASYNC_TASK_MISUSE,
                        code="async_task_missing_onrun",
                        suggestion="Implement the onRun(): void method",
                    )
                )
        elif not on_run.is_public:
            issues.append(
                self.issue(
                    f"AsyncTask {task.name}::onRun() must be public",
                    task.file,
                    on_run.line,
                    Category.VISIBILITY_VIOLATION,
                    code="async_task_onrun_not_public",
                )
            )

        on_completion = task.get_method(COMPLETION_METHOD)
        if on_completion is not None and not on_completion.is_public:
            issues.append(
                self.issue(
                    f"AsyncTask {task.name}::onCompletion() must be public",
                    task.file,
                    on_completion.line,
                    Category.VISIBILITY_VIOLATION,
                    code="async_task_oncompletion_not_public",
                )
            )

        issues.extend(self._check_thread_safety(task))
        issues.extend(self._check_stored_data(task))
        return issues

    def _check_thread_safety(self, task: ClassRecord) -> list[Issue]:
        ast = self.context.get_parsed_file(task.file) if task.file else None
        if ast is None or task.node is None:
            return []

        def _visitor(node: ts.Node, in_scope: bool) -> CallSite | None:
            if not in_scope:
                return None
            call = self.engine.call_site(ast, node)
            if call is not None and call.kind == "method" and call.name.lower() in THREAD_UNSAFE_METHODS:
                return call
            return None

        calls = self.engine.walk_scoped(
            ast, self.engine.method_scope(ast, [RUN_METHOD]), _visitor, root=task.node
        )
        return [
            self.issue(
                f"Thread-unsafe call to {call.name}() in {task.name}::onRun()",
                task.file,
                call.line,
                Category.THREAD_SAFETY,
                code="async_task_thread_unsafe",
                suggestion=(
                    "Do not access server, plugin, player or world objects in onRun(); "
                    "pass plain data through the constructor or storeLocal() instead"
                ),
                column=call.column,
            )
            for call in calls
        ]

    def _check_stored_data(self, task: ClassRecord) -> list[Issue]:
        ast = self.context.get_parsed_file(task.file) if task.file else None
        if ast is None:
            return []
        if not stores_without_fetching(self.engine, ast):
            return []
        return [
            self.issue(
                f"AsyncTask {task.name} uses storeLocal() but never calls fetchLocal()",
                task.file,
                task.line,
                Category.ASYNC_TASK_MISUSE,
                Severity.WARNING,
                code="async_task_unfetched_data",
                suggestion="Call fetchLocal() in onCompletion() to retrieve the stored data",
            )
        ]


def stores_without_fetching(engine: ASTEngine, ast: ParsedAST) -> bool:
    """Whether *ast* calls ``storeLocal()`` but never ``fetchLocal()``."""
    called = {
        call.name.lower()
        for call in engine.find_calls(ast, names=THREAD_LOCAL_METHODS, kinds=("method",))
    }
    return "storelocal" in called and "fetchlocal" not in called
