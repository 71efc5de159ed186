"""Declared-permission validation and usage cross-reference."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..issues import Category, Issue, Severity
from .base import BaseAnalyzer
from .command import CORE_PERMISSION_PREFIX, split_permissions

PERMISSION_NAME_PATTERN = re.compile(r"^[a-z0-9._-]+$")

# Values the server's permission parser accepts for ``default``
VALID_PERMISSION_DEFAULTS = frozenset({
    "op", "isop", "operator", "isoperator", "admin", "isadmin",
    "!op", "notop", "!operator", "notoperator", "!admin", "notadmin",
    "true", "false",
})

# Method name -> index of the permission-name argument
PERMISSION_CALLS: dict[str, int] = {
    "hasPermission": 0,
    "isPermissionSet": 0,
    "setPermission": 0,
    "addAttachment": 1,
}


def is_valid_permission_default(value: Any) -> bool:
    """Whether *value* is an accepted ``default`` for a permission."""
    if isinstance(value, bool):
        return True
    return isinstance(value, str) and value.strip().lower() in VALID_PERMISSION_DEFAULTS


@dataclass(frozen=True)
class PermissionUsage:
    """A literal permission name passed to a permission-check call."""

    permission: str
    file: Path
    line: int
    method: str


class PermissionAnalyzer(BaseAnalyzer):
    """Checks declared permissions and reconciles them with code usage.

    A permission counts as used when its name appears as a literal
    argument of a known permission call, is referenced by a command in
    plugin.yml, or is listed as another permission's child.
    """

    name = "Permission"

    def analyze(self) -> list[Issue]:
        permissions = self.context.manifest.permissions
        issues = self._check_declarations(permissions)

        declared = {str(name) for name in permissions}
        usages = self.find_usages()
        for usage in usages:
            if usage.permission in declared or usage.permission.startswith(CORE_PERMISSION_PREFIX):
                continue
            issues.append(
                self.issue(
                    f"Permission '{usage.permission}' is used in {usage.method}() but not declared in plugin.yml",
                    usage.file,
                    usage.line,
                    Category.PERMISSION_MISMATCH,
                    Severity.WARNING,
                    code="undeclared_permission_usage",
                    suggestion=f"Declare '{usage.permission}' under 'permissions'",
                )
            )

        referenced = {usage.permission for usage in usages} | self._manifest_references(permissions)
        for permission in permissions:
            if str(permission) in referenced:
                continue
            issues.append(
                self.issue(
                    f"Permission '{permission}' is declared but never used",
                    self.manifest_path,
                    self.context.manifest.line_of("permissions", str(permission)),
                    Category.PERMISSION_MISMATCH,
                    Severity.INFO,
                    code="unused_permission",
                    suggestion="Remove the permission or check it where it applies",
                )
            )
        return issues

    def find_usages(self) -> list[PermissionUsage]:
        """Collect literal permission names passed to permission calls."""
        usages: list[PermissionUsage] = []
        for path, ast in self.context.trees():
            for call in self.engine.find_calls(ast, names=PERMISSION_CALLS, kinds=("method",)):
                index = next(
                    (i for name, i in PERMISSION_CALLS.items() if name.lower() == call.name.lower()),
                    0,
                )
                if len(call.arguments) <= index:
                    continue
                value = self.engine.string_value(ast, call.arguments[index])
                if value:
                    usages.append(PermissionUsage(value, path, call.line, call.name))
        return usages

    def _check_declarations(self, permissions: Mapping[str, Any]) -> list[Issue]:
        manifest = self.context.manifest
        declared = {str(name) for name in permissions}
        issues: list[Issue] = []

        for permission, definition in permissions.items():
            permission = str(permission)
            line = manifest.line_of("permissions", permission)
            if not PERMISSION_NAME_PATTERN.match(permission):
                issues.append(
                    self.issue(
                        f"Permission '{permission}' does not follow the naming convention",
                        self.manifest_path,
                        line,
                        Category.PERMISSION_MISMATCH,
                        Severity.WARNING,
                        code="permission_naming_convention",
                        suggestion="Use lowercase names such as myplugin.command.use",
                    )
                )
            if not isinstance(definition, Mapping):
                continue

            if "default" in definition and not is_valid_permission_default(definition["default"]):
                issues.append(
                    self.issue(
                        f"Permission '{permission}' has invalid default '{definition['default']}'",
                        self.manifest_path,
                        manifest.line_of("permissions", permission, "default"),
                        Category.PERMISSION_MISMATCH,
                        code="invalid_permission_default",
                        suggestion="Use one of: op, notop, true, false",
                    )
                )

            for child in _child_names(definition):
                if child in declared or child.startswith(CORE_PERMISSION_PREFIX):
                    continue
                issues.append(
                    self.issue(
                        f"Permission '{permission}' has undeclared child permission '{child}'",
                        self.manifest_path,
                        manifest.line_of("permissions", permission, "children"),
                        Category.PERMISSION_MISMATCH,
                        Severity.WARNING,
                        code="undefined_child_permission",
                        suggestion=f"Declare '{child}' under 'permissions'",
                    )
                )
        return issues

    def _manifest_references(self, permissions: Mapping[str, Any]) -> set[str]:
        referenced: set[str] = set()
        for definition in self.context.manifest.commands.values():
            if isinstance(definition, Mapping):
                referenced.update(split_permissions(definition.get("permission")))
        for definition in permissions.values():
            if isinstance(definition, Mapping):
                referenced.update(_child_names(definition))
        return referenced


def _child_names(definition: Mapping[str, Any]) -> list[str]:
    children = definition.get("children")
    if isinstance(children, Mapping):
        return [str(name) for name in children]
    if isinstance(children, list):
        return [str(name) for name in children if isinstance(name, str)]
    return []
