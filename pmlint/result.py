"""Scan result container with grouping and summary views."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .issues import Category, Issue, Severity


class ScanResult(BaseModel):
    """Outcome of scanning one plugin.

    Issues keep the order in which analyzers reported them. All grouped
    views are recomputed on each call; filtering produces a new result
    (see :class:`pmlint.filters.ResultFilter`).

    Attributes:
        plugin_path: Root directory of the scanned plugin.
        plugin_name: ``name`` from plugin.yml, or ``"Unknown"``.
        plugin_version: ``version`` from plugin.yml, or ``"Unknown"``.
        issues: Reported issues in analyzer order.
        scanned_file_count: Number of PHP files discovered.
        scan_duration: Wall-clock seconds spent scanning.
        scan_date: When the result was created.
    """

    plugin_path: str
    plugin_name: str = "Unknown"
    plugin_version: str = "Unknown"
    issues: list[Issue] = Field(default_factory=list)
    scanned_file_count: int = 0
    scan_duration: float = 0.0
    scan_date: datetime = Field(default_factory=datetime.now)

    def add_issue(self, issue: Issue) -> None:
        self.issues.append(issue)

    def add_issues(self, issues: Iterable[Issue]) -> None:
        self.issues.extend(issues)

    # -- grouped views ------------------------------------------------------

    def issues_by_file(self) -> dict[str, list[Issue]]:
        grouped: dict[str, list[Issue]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.file, []).append(issue)
        return grouped

    def issues_by_category(self) -> dict[Category, list[Issue]]:
        grouped: dict[Category, list[Issue]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.category, []).append(issue)
        return grouped

    def issues_by_severity(self) -> dict[Severity, list[Issue]]:
        """Group issues by severity, most severe first."""
        grouped: dict[Severity, list[Issue]] = {}
        for severity in Severity.by_priority():
            matching = [issue for issue in self.issues if issue.severity == severity]
            if matching:
                grouped[severity] = matching
        return grouped

    def count_by_severity(self) -> dict[Severity, int]:
        return {
            severity: sum(1 for issue in self.issues if issue.severity == severity)
            for severity in Severity.by_priority()
        }

    def summary(self) -> dict[str, int]:
        """Map every category label to its issue count, zeros included."""
        counts = {category.label: 0 for category in Category}
        for issue in self.issues:
            counts[issue.category.label] += 1
        return counts

    # -- scalar views -------------------------------------------------------

    @property
    def total_issue_count(self) -> int:
        return len(self.issues)

    @property
    def affected_file_count(self) -> int:
        return len({issue.file for issue in self.issues})

    def has_issues(self) -> bool:
        return bool(self.issues)

    def has_errors(self) -> bool:
        return any(issue.severity == Severity.ERROR for issue in self.issues)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for report formatters."""
        return {
            "plugin": {
                "name": self.plugin_name,
                "version": self.plugin_version,
                "path": self.plugin_path,
            },
            "scan": {
                "date": self.scan_date.isoformat(),
                "duration": round(self.scan_duration, 3),
                "files_scanned": self.scanned_file_count,
                "issues_found": self.total_issue_count,
                "files_affected": self.affected_file_count,
            },
            "summary": self.summary(),
            "issues": [issue.to_dict() for issue in self.issues],
        }
