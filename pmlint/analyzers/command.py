"""Validation of declared commands and command classes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..issues import Category, Issue, Severity
from ..php.ast_engine import ParsedAST
from ..php.declarations import ClassRecord, MethodRecord
from .base import BaseAnalyzer

EXECUTE_METHOD = "execute"
EXECUTE_PARAMETER_COUNT = 3
ACCEPTED_EXECUTE_RETURN_TYPES = frozenset({"bool", "mixed"})

# Permissions registered by the server itself
CORE_PERMISSION_PREFIX = "pocketmine."

_MAX_INHERITANCE_DEPTH = 16


def split_permissions(value: Any) -> list[str]:
    """Split a command ``permission`` entry; several may be joined by ``;``."""
    if not isinstance(value, str):
        return []
    return [part.strip() for part in value.split(";") if part.strip()]


class CommandAnalyzer(BaseAnalyzer):
    """Cross-checks plugin.yml commands and validates command classes."""

    name = "Command"

    def analyze(self) -> list[Issue]:
        issues = self._check_declared_commands()
        for record in self.context.commands:
            issues.extend(self._check_command_class(record))
        issues.extend(self._check_undeclared_commands())
        return issues

    # ------------------------------------------------------------------
    # plugin.yml commands
    # ------------------------------------------------------------------

    def _check_declared_commands(self) -> list[Issue]:
        manifest = self.context.manifest
        declared_permissions = {str(name) for name in manifest.permissions}
        issues: list[Issue] = []

        for command_name, definition in manifest.commands.items():
            if not isinstance(definition, Mapping):
                continue

            for permission in split_permissions(definition.get("permission")):
                if permission in declared_permissions or permission.startswith(CORE_PERMISSION_PREFIX):
                    continue
                issues.append(
                    self.issue(
                        f"Command '{command_name}' uses permission '{permission}' which is not declared in plugin.yml",
                        self.manifest_path,
                        manifest.line_of("commands", str(command_name), "permission"),
                        Category.PERMISSION_MISMATCH,
                        Severity.WARNING,
                        code="command_undefined_permission",
                        suggestion=f"Declare '{permission}' under 'permissions'",
                    )
                )

            aliases = definition.get("aliases")
            if aliases is not None:
                entries = aliases if isinstance(aliases, list) else [aliases]
                for alias in entries:
                    if not isinstance(alias, str):
                        issues.append(
                            self.issue(
                                f"Command '{command_name}' has an invalid alias {alias!r}",
                                self.manifest_path,
                                manifest.line_of("commands", str(command_name), "aliases"),
                                Category.COMMAND_MISMATCH,
                                code="invalid_command_alias",
                                suggestion="Aliases must be a list of strings",
                            )
                        )
        return issues

    def _check_undeclared_commands(self) -> list[Issue]:
        concrete = [c for c in self.context.commands if not c.is_abstract]
        if not concrete or self.context.manifest.commands:
            return []
        names = ", ".join(sorted(c.name for c in concrete))
        return [
            self.issue(
                f"Command classes found ({names}) but plugin.yml declares no commands",
                self.manifest_path,
                1,
                Category.COMMAND_MISMATCH,
                Severity.WARNING,
                code="commands_not_declared",
                suggestion="Declare the commands under 'commands' or register them through the command map",
            )
        ]

    # ------------------------------------------------------------------
    # Command classes
    # ------------------------------------------------------------------

    def _check_command_class(self, record: ClassRecord) -> list[Issue]:
        issues: list[Issue] = []
        execute = self._find_method(record, EXECUTE_METHOD)

        if execute is None:
            if not record.is_abstract:
                issues.append(
                    self.issue(
                        f"Command class {record.name} does not implement execute()",
                        record.file,
                        record.line,
                        Category.COMMAND_MISMATCH,
                        code="command_missing_execute",
                        suggestion="Implement execute(CommandSender $sender, string $commandLabel, array $args)",
                    )
                )
        elif record.get_method(EXECUTE_METHOD) is execute:
            issues.extend(self._check_execute(record, execute))

        constructor = record.get_method("__construct")
        if constructor is not None and not self._calls_parent_constructor(record, constructor):
            issues.append(
                self.issue(
                    f"Constructor of command class {record.name} does not call parent::__construct()",
                    record.file,
                    constructor.line,
                    Category.COMMAND_MISMATCH,
                    Severity.INFO,
                    code="command_no_parent_construct",
                    suggestion="Call parent::__construct() with the command name and description",
                )
            )
        return issues

    def _check_execute(self, record: ClassRecord, execute: MethodRecord) -> list[Issue]:
        issues: list[Issue] = []
        label = f"{record.name}::{execute.name}()"
        if not execute.is_public:
            issues.append(
                self.issue(
                    f"{label} must be public",
                    record.file,
                    execute.line,
                    Category.VISIBILITY_VIOLATION,
                    code="command_execute_not_public",
                )
            )
        if len(execute.parameters) < EXECUTE_PARAMETER_COUNT:
            issues.append(
                self.issue(
                    f"{label} should take {EXECUTE_PARAMETER_COUNT} parameters, found {len(execute.parameters)}",
                    record.file,
                    execute.line,
                    Category.COMMAND_MISMATCH,
                    Severity.WARNING,
                    code="command_execute_params",
                    suggestion="Use execute(CommandSender $sender, string $commandLabel, array $args)",
                )
            )
        return_type = (execute.return_type or "").lower()
        if return_type and return_type not in ACCEPTED_EXECUTE_RETURN_TYPES:
            issues.append(
                self.issue(
                    f"{label} declares return type '{execute.return_type}', expected bool",
                    record.file,
                    execute.line,
                    Category.RETURN_TYPE,
                    Severity.WARNING,
                    code="command_execute_return_type",
                )
            )
        return issues

    def _find_method(self, record: ClassRecord, name: str) -> MethodRecord | None:
        current: ClassRecord | None = record
        for _ in range(_MAX_INHERITANCE_DEPTH):
            if current is None:
                return None
            method = current.get_method(name)
            if method is not None:
                return method
            current = self.context.get_class(current.superclass) if current.superclass else None
        return None

    def _calls_parent_constructor(self, record: ClassRecord, constructor: MethodRecord) -> bool:
        ast: ParsedAST | None = self.context.get_parsed_file(record.file) if record.file else None
        if ast is None or constructor.node is None:
            return True
        for call in self.engine.find_calls(ast, names={"__construct"}, kinds=("static",), root=constructor.node):
            if call.receiver is not None and call.receiver.lower() == "parent":
                return True
        return False
