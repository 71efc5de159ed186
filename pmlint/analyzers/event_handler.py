"""Validation of event handler methods on listener classes."""

from __future__ import annotations

import re

import tree_sitter as ts

from ..issues import Category, Issue, Severity
from ..php.declarations import ClassRecord, MethodRecord
from .base import BaseAnalyzer

EVENT_NAMESPACE = "pocketmine\\event\\"

EVENT_PRIORITIES = ("LOWEST", "LOW", "NORMAL", "HIGH", "HIGHEST", "MONITOR")

# Calls that change an event's outcome; not allowed at MONITOR priority
EVENT_MUTATORS = frozenset({"cancel", "uncancel", "setcancelled"})

_PRIORITY_TAG = re.compile(r"@priority\s+(\w+)", re.IGNORECASE)
_HANDLE_CANCELLED_TAG = re.compile(r"@handleCancelled\b", re.IGNORECASE)
_NOT_HANDLER_TAG = re.compile(r"@notHandler\b", re.IGNORECASE)


def is_event_type(type_name: str | None) -> bool:
    """Whether a declared parameter type looks like a PocketMine event."""
    if not type_name:
        return False
    for part in re.split(r"[|&()]", type_name.lstrip("?")):
        part = part.strip().lstrip("?")
        if part.startswith(EVENT_NAMESPACE):
            return True
        if part.endswith("Event") and "\\" in part:
            return True
    return False


def is_event_handler(method: MethodRecord) -> bool:
    """Whether *method* would be registered as an event handler."""
    if method.name.startswith("__"):
        return False
    if method.doc_comment and _NOT_HANDLER_TAG.search(method.doc_comment):
        return False
    return is_event_type(method.first_parameter_type)


class EventHandlerAnalyzer(BaseAnalyzer):
    """Checks handler signatures and ``@priority``/``@handleCancelled`` tags."""

    name = "EventHandler"

    def analyze(self) -> list[Issue]:
        issues: list[Issue] = []
        for listener in self.context.listeners:
            for method in listener.methods.values():
                if is_event_handler(method):
                    issues.extend(self._check_handler(listener, method))
        return issues

    def _check_handler(self, listener: ClassRecord, method: MethodRecord) -> list[Issue]:
        file = listener.file
        label = f"{listener.name}::{method.name}()"
        issues: list[Issue] = []

        if not method.is_public:
            issues.append(
                self.issue(
                    f"Event handler {label} must be public",
                    file,
                    method.line,
                    Category.INVALID_EVENT_HANDLER,
                    code="event_handler_not_public",
                    suggestion="Declare the handler as public; non-public handlers are never called",
                )
            )
        if method.is_static:
            issues.append(
                self.issue(
                    f"Event handler {label} must not be static",
                    file,
                    method.line,
                    Category.INVALID_EVENT_HANDLER,
                    code="event_handler_static",
                )
            )
        if len(method.parameters) != 1:
            issues.append(
                self.issue(
                    f"Event handler {label} should take exactly one parameter, found {len(method.parameters)}",
                    file,
                    method.line,
                    Category.INVALID_EVENT_HANDLER,
                    Severity.WARNING,
                    code="event_handler_params",
                )
            )

        doc = method.doc_comment or ""
        priority_match = _PRIORITY_TAG.search(doc)
        if priority_match:
            priority = priority_match.group(1).upper()
            if priority not in EVENT_PRIORITIES:
                issues.append(
                    self.issue(
                        f"Invalid event priority '{priority_match.group(1)}' on {label}",
                        file,
                        method.line,
                        Category.INVALID_EVENT_PRIORITY,
                        code="invalid_event_priority",
                        suggestion="Use one of: " + ", ".join(EVENT_PRIORITIES),
                    )
                )
            elif priority == "MONITOR":
                issues.append(
                    self.issue(
                        f"{label} uses MONITOR priority; handlers at this priority must not modify the event",
                        file,
                        method.line,
                        Category.INVALID_EVENT_PRIORITY,
                        Severity.INFO,
                        code="monitor_priority_warning",
                    )
                )
                issues.extend(self._check_monitor_body(listener, method, label))

        if _HANDLE_CANCELLED_TAG.search(doc):
            issues.append(
                self.issue(
                    f"{label} also receives cancelled events",
                    file,
                    method.line,
                    Category.CANCELLED_EVENT_ACCESS,
                    Severity.INFO,
                    code="handles_cancelled_event",
                    suggestion="Check $event->isCancelled() before acting on the event",
                )
            )
        return issues

    def _check_monitor_body(self, listener: ClassRecord, method: MethodRecord, label: str) -> list[Issue]:
        ast = self.context.get_parsed_file(listener.file) if listener.file else None
        if ast is None or listener.node is None:
            return []

        def _visitor(node: ts.Node, in_scope: bool) -> int | None:
            if not in_scope:
                return None
            call = self.engine.call_site(ast, node)
            if call is not None and call.kind == "method" and call.name.lower() in EVENT_MUTATORS:
                return call.line
            return None

        lines = self.engine.walk_scoped(
            ast, self.engine.method_scope(ast, [method.name]), _visitor, root=listener.node
        )
        return [
            self.issue(
                f"{label} modifies the event at MONITOR priority",
                listener.file,
                line,
                Category.INVALID_EVENT_PRIORITY,
                Severity.WARNING,
                code="monitor_modifies_event",
                suggestion="Move the change to a handler with a lower priority",
            )
            for line in lines
        ]
