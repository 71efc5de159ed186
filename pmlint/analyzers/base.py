"""Base class shared by all rule analyzers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar

from ..issues import Category, Issue, Severity, render_snippet
from ..scanner.context import PluginContext

logger = logging.getLogger(__name__)


class BaseAnalyzer(ABC):
    """A rule unit that inspects a :class:`PluginContext` and reports issues.

    Subclasses set :attr:`name` to their registry name and implement
    :meth:`analyze`. Analyzers must treat the context as read-only.
    """

    name: ClassVar[str] = ""

    def __init__(self, plugin_path: Path, context: PluginContext) -> None:
        self.plugin_path = Path(plugin_path).resolve()
        self.context = context
        self.engine = context.engine
        self._line_cache: dict[Path, list[str]] = {}

    @abstractmethod
    def analyze(self) -> list[Issue]:
        """Run the analyzer and return the issues it found."""

    # ------------------------------------------------------------------
    # Issue construction
    # ------------------------------------------------------------------

    def issue(
        self,
        message: str,
        file: Path | str,
        line: int,
        category: Category,
        severity: Severity = Severity.ERROR,
        code: str | None = None,
        suggestion: str | None = None,
        column: int | None = None,
    ) -> Issue:
        """Build an issue with a relative path and a source snippet attached."""
        path = self._absolute(file)
        line = max(1, line)
        issue = Issue(
            message=message,
            file=self.relative_path(path),
            line=line,
            category=category,
            severity=severity,
            code=code or category.value,
            suggestion=suggestion,
            column=column,
        )
        return issue.with_snippet(render_snippet(self._lines(path), line))

    def relative_path(self, path: Path | str) -> str:
        path = self._absolute(path)
        try:
            return path.relative_to(self.plugin_path).as_posix()
        except ValueError:
            return str(path)

    @property
    def manifest_path(self) -> Path:
        return self.context.manifest.path

    def _absolute(self, path: Path | str) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.plugin_path / path

    def _lines(self, path: Path) -> list[str]:
        if path not in self._line_cache:
            source = self.context.get_source_file(path)
            if source is not None:
                self._line_cache[path] = source.lines
            else:
                try:
                    self._line_cache[path] = path.read_text(encoding="utf-8", errors="replace").splitlines()
                except OSError:
                    self._line_cache[path] = []
        return self._line_cache[path]
