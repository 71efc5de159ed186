"""Shared-state access from code that runs on worker threads."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import tree_sitter as ts

from ..issues import Category, Issue, Severity
from ..php.ast_engine import ParsedAST
from ..php.declarations import ClassRecord
from .base import BaseAnalyzer

# Methods of an async task whose bodies execute off the main thread
ASYNC_METHODS = ("onRun", "__construct")

SUPERGLOBALS = frozenset({
    "_SERVER",
    "_GET",
    "_POST",
    "_FILES",
    "_COOKIE",
    "_SESSION",
    "_REQUEST",
    "_ENV",
    "GLOBALS",
})

_SUGGESTION = "Avoid sharing mutable state between threads; pass data with storeLocal()/fetchLocal()"


@dataclass(frozen=True)
class _Finding:
    code: str
    message: str
    line: int


class ThreadSafetyAnalyzer(BaseAnalyzer):
    """Flags superglobals, static state and ``global`` in threaded code."""

    name = "ThreadSafety"

    def analyze(self) -> list[Issue]:
        issues: list[Issue] = []
        for task in self.context.tasks:
            issues.extend(self._check_task(task))
        for path, ast in self.context.trees():
            issues.extend(self._check_global_keyword(path, ast))
        return issues

    def _check_task(self, task: ClassRecord) -> list[Issue]:
        ast = self.context.get_parsed_file(task.file) if task.file else None
        if ast is None or task.node is None:
            return []

        def _visitor(node: ts.Node, in_scope: bool) -> _Finding | None:
            if not in_scope:
                return None
            return self._inspect(ast, node)

        findings = self.engine.walk_scoped(
            ast, self.engine.method_scope(ast, ASYNC_METHODS), _visitor, root=task.node
        )
        return [
            self.issue(
                finding.message,
                task.file,
                finding.line,
                Category.THREAD_SAFETY,
                code=finding.code,
                suggestion=_SUGGESTION,
            )
            for finding in findings
        ]

    def _inspect(self, ast: ParsedAST, node: ts.Node) -> _Finding | None:
        line = self.engine.line_of(node)
        if node.type == "variable_name":
            name = ast.get_text(node).lstrip("$")
            if name in SUPERGLOBALS:
                return _Finding(
                    "superglobal_in_async",
                    f"Access to superglobal ${name} in async context is thread-unsafe",
                    line,
                )
        elif node.type == "function_static_declaration":
            return _Finding(
                "static_in_async",
                "Static variable declaration in async context is thread-unsafe",
                line,
            )
        elif node.type == "scoped_property_access_expression":
            return _Finding(
                "static_property_in_async",
                "Static property access in async context may be thread-unsafe",
                line,
            )
        return None

    def _check_global_keyword(self, path: Path, ast: ParsedAST) -> list[Issue]:
        return [
            self.issue(
                "Use of the global keyword; globals are not shared with worker threads and hurt testability",
                path,
                self.engine.line_of(node),
                Category.THREAD_SAFETY,
                Severity.WARNING,
                code="global_keyword",
                suggestion="Pass the value in explicitly instead",
            )
            for node in self.engine.find_nodes_by_type(ast, "global_declaration")
        ]
