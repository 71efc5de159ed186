"""Listener interface and registration cross-reference."""

from __future__ import annotations

from ..issues import Category, Issue, Severity
from ..php.declarations import LISTENER_INTERFACE, ClassRecord
from .base import BaseAnalyzer
from .event_handler import is_event_handler

REGISTRATION_METHODS = frozenset({"registerEvents"})


class ListenerAnalyzer(BaseAnalyzer):
    """Checks listener classes for the Listener interface and for registration.

    Registration is matched by name: a listener counts as registered when
    ``new ItsClassName(...)`` is passed as the first argument of
    ``registerEvents()`` anywhere in the plugin. Listeners registered
    through a variable (including ``$this``) cannot be told apart and are
    reported.
    """

    name = "Listener"

    def analyze(self) -> list[Issue]:
        issues = self._check_interfaces()
        issues.extend(self._check_registration())
        return issues

    def _check_interfaces(self) -> list[Issue]:
        issues: list[Issue] = []
        for record in self.context.listeners:
            if any(_is_qualified_listener(name) for name in record.implements):
                continue
            if not any(is_event_handler(m) and not m.is_static for m in record.methods.values()):
                continue
            issues.append(
                self.issue(
                    f"Class {record.name} declares event handlers but does not implement {LISTENER_INTERFACE}",
                    record.file,
                    record.line,
                    Category.INVALID_EVENT_HANDLER,
                    code="listener_no_interface",
                    suggestion=f"Add 'implements Listener' and import {LISTENER_INTERFACE}",
                )
            )
        return issues

    def registered_class_names(self) -> set[str]:
        """Lower-cased short and qualified names passed as ``new X`` to a registration call."""
        registered: set[str] = set()
        for _path, ast in self.context.trees():
            for call in self.engine.find_calls(ast, names=REGISTRATION_METHODS, kinds=("method",)):
                if not call.arguments:
                    continue
                first = call.arguments[0]
                if first.type != "object_creation_expression":
                    continue
                creation = self.engine.object_creation(ast, first)
                if creation is None:
                    continue
                class_name = creation.class_name.lstrip("\\").lower()
                registered.add(class_name)
                registered.add(class_name.rsplit("\\", 1)[-1])
        return registered

    def _check_registration(self) -> list[Issue]:
        registered = self.registered_class_names()
        issues: list[Issue] = []
        for listener in self.context.listeners:
            if not _has_handlers(listener):
                continue
            if listener.name.lower() in registered or listener.fqcn.lower() in registered:
                continue
            issues.append(
                self.issue(
                    f"Listener {listener.name} does not appear to be registered",
                    listener.file,
                    listener.line,
                    Category.UNREGISTERED_LISTENER,
                    Severity.INFO,
                    code="listener_not_registered",
                    suggestion=(
                        "Register it with $this->getServer()->getPluginManager()"
                        f"->registerEvents(new {listener.name}(), $this)"
                    ),
                )
            )
        return issues


def _has_handlers(record: ClassRecord) -> bool:
    return any(is_event_handler(method) for method in record.methods.values())


def _is_qualified_listener(name: str) -> bool:
    # A bare "Listener" resolved to the global namespace is a missing import
    return name == LISTENER_INTERFACE or name.endswith("\\Listener")
