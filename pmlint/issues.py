"""Diagnostic model: issue categories, severities and the Issue record.

Every analyzer reports its findings as :class:`Issue` objects. Categories
and severities are closed enumerations; their display metadata lives in
module-level tables built once at import time.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    """Severity levels, ordered by :attr:`priority` (error is highest)."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"

    @property
    def label(self) -> str:
        return _SEVERITY_TABLE[self][0]

    @property
    def icon(self) -> str:
        return _SEVERITY_TABLE[self][1]

    @property
    def color(self) -> str:
        return _SEVERITY_TABLE[self][2]

    @property
    def priority(self) -> int:
        return _SEVERITY_TABLE[self][3]

    @classmethod
    def by_priority(cls) -> list[Severity]:
        """Return all severities from most to least severe."""
        return sorted(cls, key=lambda s: s.priority, reverse=True)


# severity -> (label, icon, color, priority)
_SEVERITY_TABLE: dict[Severity, tuple[str, str, str, int]] = {
    Severity.ERROR: ("Error", "❌", "red", 4),
    Severity.WARNING: ("Warning", "⚠️", "yellow", 3),
    Severity.INFO: ("Info", "ℹ️", "blue", 2),
    Severity.HINT: ("Hint", "\U0001f4a1", "gray", 1),
}


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------


class Category(str, Enum):
    """Kinds of problems an analyzer can report."""

    UNDEFINED_VARIABLE = "undefined_variable"
    UNDEFINED_METHOD = "undefined_method"
    UNDEFINED_CLASS = "undefined_class"
    UNDEFINED_CONSTANT = "undefined_constant"
    UNDEFINED_FUNCTION = "undefined_function"
    UNDEFINED_PROPERTY = "undefined_property"
    TYPE_MISMATCH = "type_mismatch"
    RETURN_TYPE = "return_type"
    PARAMETER_TYPE = "parameter_type"
    UNUSED_VARIABLE = "unused_variable"
    UNUSED_PARAMETER = "unused_parameter"
    UNUSED_IMPORT = "unused_import"
    DEAD_CODE = "dead_code"
    SYNTAX_ERROR = "syntax_error"

    # PocketMine-specific
    INVALID_EVENT_HANDLER = "invalid_event_handler"
    UNREGISTERED_LISTENER = "unregistered_listener"
    INVALID_PLUGIN_YML = "invalid_plugin_yml"
    MAIN_CLASS_MISMATCH = "main_class_mismatch"
    INVALID_API_VERSION = "invalid_api_version"
    DEPRECATED_API = "deprecated_api"
    ASYNC_TASK_MISUSE = "async_task_misuse"
    SCHEDULER_MISUSE = "scheduler_misuse"
    CONFIG_MISUSE = "config_misuse"
    PERMISSION_MISMATCH = "permission_mismatch"
    COMMAND_MISMATCH = "command_mismatch"
    RESOURCE_MISSING = "resource_missing"
    INVALID_EVENT_PRIORITY = "invalid_event_priority"
    CANCELLED_EVENT_ACCESS = "cancelled_event_access"
    THREAD_SAFETY = "thread_safety"

    MISSING_RETURN = "missing_return"
    INVALID_INHERITANCE = "invalid_inheritance"
    INTERFACE_VIOLATION = "interface_violation"
    ABSTRACT_VIOLATION = "abstract_violation"
    VISIBILITY_VIOLATION = "visibility_violation"
    STATIC_CALL_ERROR = "static_call_error"
    INSTANTIATION_ERROR = "instantiation_error"
    ARRAY_ACCESS_ERROR = "array_access_error"
    NULL_SAFETY = "null_safety"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @property
    def is_unused(self) -> bool:
        return self.value.startswith("unused_")

    @property
    def is_undefined(self) -> bool:
        return self.value.startswith("undefined_")

    @property
    def is_plugin_specific(self) -> bool:
        """True for categories that only make sense for PocketMine plugins."""
        return self in PLUGIN_SPECIFIC_CATEGORIES


_CATEGORY_LABELS: dict[Category, str] = {
    Category.UNDEFINED_VARIABLE: "Undefined Variable",
    Category.UNDEFINED_METHOD: "Undefined Method",
    Category.UNDEFINED_CLASS: "Undefined Class",
    Category.UNDEFINED_CONSTANT: "Undefined Constant",
    Category.UNDEFINED_FUNCTION: "Undefined Function",
    Category.UNDEFINED_PROPERTY: "Undefined Property",
    Category.TYPE_MISMATCH: "Type Mismatch",
    Category.RETURN_TYPE: "Return Type Error",
    Category.PARAMETER_TYPE: "Parameter Type Error",
    Category.UNUSED_VARIABLE: "Unused Variable",
    Category.UNUSED_PARAMETER: "Unused Parameter",
    Category.UNUSED_IMPORT: "Unused Import",
    Category.DEAD_CODE: "Dead Code",
    Category.SYNTAX_ERROR: "Syntax Error",
    Category.INVALID_EVENT_HANDLER: "Invalid Event Handler",
    Category.UNREGISTERED_LISTENER: "Unregistered Listener",
    Category.INVALID_PLUGIN_YML: "Invalid plugin.yml",
    Category.MAIN_CLASS_MISMATCH: "Main Class Mismatch",
    Category.INVALID_API_VERSION: "Invalid API Version",
    Category.DEPRECATED_API: "Deprecated API Usage",
    Category.ASYNC_TASK_MISUSE: "AsyncTask Misuse",
    Category.SCHEDULER_MISUSE: "Scheduler Misuse",
    Category.CONFIG_MISUSE: "Config Misuse",
    Category.PERMISSION_MISMATCH: "Permission Mismatch",
    Category.COMMAND_MISMATCH: "Command Mismatch",
    Category.RESOURCE_MISSING: "Missing Resource",
    Category.INVALID_EVENT_PRIORITY: "Invalid Event Priority",
    Category.CANCELLED_EVENT_ACCESS: "Cancelled Event Access",
    Category.THREAD_SAFETY: "Thread Safety Violation",
    Category.MISSING_RETURN: "Missing Return Statement",
    Category.INVALID_INHERITANCE: "Invalid Inheritance",
    Category.INTERFACE_VIOLATION: "Interface Violation",
    Category.ABSTRACT_VIOLATION: "Abstract Class Violation",
    Category.VISIBILITY_VIOLATION: "Visibility Violation",
    Category.STATIC_CALL_ERROR: "Static Call Error",
    Category.INSTANTIATION_ERROR: "Instantiation Error",
    Category.ARRAY_ACCESS_ERROR: "Array Access Error",
    Category.NULL_SAFETY: "Null Safety Issue",
    Category.OTHER: "Other",
}

PLUGIN_SPECIFIC_CATEGORIES: frozenset[Category] = frozenset({
    Category.INVALID_EVENT_HANDLER,
    Category.UNREGISTERED_LISTENER,
    Category.INVALID_PLUGIN_YML,
    Category.MAIN_CLASS_MISMATCH,
    Category.INVALID_API_VERSION,
    Category.DEPRECATED_API,
    Category.ASYNC_TASK_MISUSE,
    Category.SCHEDULER_MISUSE,
    Category.CONFIG_MISUSE,
    Category.PERMISSION_MISMATCH,
    Category.COMMAND_MISMATCH,
    Category.RESOURCE_MISSING,
    Category.INVALID_EVENT_PRIORITY,
    Category.CANCELLED_EVENT_ACCESS,
    Category.THREAD_SAFETY,
})


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------


class Issue(BaseModel):
    """A single finding reported by an analyzer.

    Attributes:
        message: Human-readable description of the problem.
        file: Path of the file the issue is reported against.
        line: 1-based line number.
        category: What kind of problem this is.
        severity: How serious the problem is.
        code: Short machine-readable identifier (defaults to the
            category value).
        column: Optional 1-based column.
        suggestion: Optional remediation hint.
        snippet: Optional rendered source excerpt around ``line``.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    file: str
    line: int = Field(default=1, ge=1)
    category: Category
    severity: Severity = Severity.ERROR
    code: str = ""
    column: int | None = None
    suggestion: str | None = None
    snippet: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_code(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("code") and data.get("category") is not None:
            category = data["category"]
            data = {**data, "code": Category(category).value}
        return data

    @property
    def location(self) -> str:
        location = f"{self.file}:{self.line}"
        if self.column is not None:
            location += f":{self.column}"
        return location

    def relative_file(self, base_path: str | Path) -> str:
        """Return :attr:`file` relative to *base_path* when it lies inside it."""
        try:
            return str(Path(self.file).relative_to(Path(base_path)))
        except ValueError:
            return self.file

    def with_snippet(self, snippet: str | None) -> Issue:
        """Return a copy of this issue with *snippet* attached."""
        return self.model_copy(update={"snippet": snippet})

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the record handed to report formatters."""
        return {
            "message": self.message,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "category": self.category.value,
            "category_label": self.category.label,
            "severity": self.severity.value,
            "severity_label": self.severity.label,
            "code": self.code,
            "suggestion": self.suggestion,
            "snippet": self.snippet,
        }


def render_snippet(lines: Sequence[str], line: int, context: int = 2) -> str | None:
    """Render the source lines around *line*, marking the offending one.

    Args:
        lines: The file's lines without trailing newlines.
        line: 1-based line number to highlight.
        context: Number of lines to show on each side.

    Returns:
        The rendered excerpt, or ``None`` when *line* is outside the file.
    """
    if line < 1 or line > len(lines):
        return None

    start = max(0, line - context - 1)
    end = min(len(lines), line + context)

    rendered = []
    for index in range(start, end):
        number = index + 1
        prefix = "> " if number == line else "  "
        rendered.append(f"{prefix}{number:4d} | {lines[index]}".rstrip())
    return "\n".join(rendered)
