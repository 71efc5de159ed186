"""Issue filtering: exclusion settings and the post-scan result filter.

A :class:`FilterConfig` holds three denylists (categories, analyzers and
severities). Analyzer exclusions decide which analyzers run at all;
category and severity exclusions are applied afterwards by
:class:`ResultFilter`, which always returns a new :class:`ScanResult`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .analyzers.registry import get_registry
from .core.exceptions import (
    FilterConfigError,
    InvalidAnalyzerError,
    InvalidCategoryError,
    InvalidSeverityError,
)
from .issues import Category, Issue, Severity
from .result import ScanResult

if TYPE_CHECKING:
    from .config import ScannerConfig

logger = logging.getLogger(__name__)

# Category presets that stand for a whole group of categories
PRESET_UNUSED = "unused"
PRESET_UNDEFINED = "undefined"
PRESET_POCKETMINE = "pocketmine"

CATEGORY_PRESETS: dict[str, tuple[Category, ...]] = {
    PRESET_UNUSED: tuple(c for c in Category if c.is_unused),
    PRESET_UNDEFINED: tuple(c for c in Category if c.is_undefined),
    PRESET_POCKETMINE: tuple(c for c in Category if c.is_plugin_specific),
}

MAX_SUGGESTION_DISTANCE = 3
MAX_SUGGESTIONS = 3


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def suggest(token: str, vocabulary: Iterable[str]) -> list[str]:
    """Closest vocabulary entries to *token*, nearest first."""
    needle = token.lower()
    scored = [
        (levenshtein(needle, candidate.lower()), candidate)
        for candidate in vocabulary
    ]
    close = sorted(
        (item for item in scored if item[0] <= MAX_SUGGESTION_DISTANCE),
        key=lambda item: item[0],
    )
    return [candidate for _distance, candidate in close[:MAX_SUGGESTIONS]]


def _dedupe(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


class FilterConfig(BaseModel):
    """Denylists applied to a scan.

    Keys may be given in snake_case or in the camelCase spellings used by
    ``pmlint.yml`` (``excludeCategories`` and ``excludedCategories`` are
    both accepted).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    exclude_categories: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_categories", "excludeCategories", "excludedCategories"),
        description="Category values or presets (unused, undefined, pocketmine) to hide",
    )
    exclude_analyzers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_analyzers", "excludeAnalyzers", "excludedAnalyzers"),
        description="Analyzer names that should not run",
    )
    exclude_severities: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_severities", "excludeSeverities", "excludedSeverities"),
        description="Severities to hide",
    )
    simple_report: bool = Field(
        default=False,
        validation_alias=AliasChoices("simple_report", "simpleReport"),
        description="Ask formatters for a condensed report",
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> FilterConfig:
        return cls.model_validate(dict(data or {}))

    @classmethod
    def from_scanner_config(cls, config: ScannerConfig) -> FilterConfig:
        return cls(
            exclude_categories=list(config.exclude_categories),
            exclude_analyzers=list(config.exclude_analyzers),
            exclude_severities=list(config.exclude_severities),
            simple_report=config.simple_report,
        )

    # ------------------------------------------------------------------
    # Presets and validation
    # ------------------------------------------------------------------

    def expand_presets(self) -> FilterConfig:
        """Return a copy with every category preset replaced by its members.

        Expansion is idempotent: the result contains no preset tokens, so
        expanding it again changes nothing.
        """
        return self.model_copy(update={"exclude_categories": self.expanded_categories()})

    def expanded_categories(self) -> list[str]:
        expanded: list[str] = []
        for token in self.exclude_categories:
            key = token.strip().lower()
            if key in CATEGORY_PRESETS:
                expanded.extend(category.value for category in CATEGORY_PRESETS[key])
            else:
                expanded.append(key)
        return _dedupe(expanded)

    def validate(self) -> None:
        """Check every denylist against its vocabulary.

        Raises:
            InvalidCategoryError: Unknown category or preset.
            InvalidAnalyzerError: Name that matches no registered analyzer.
            InvalidSeverityError: Unknown severity.
            FilterConfigError: A denylist covers its whole vocabulary.
        """
        self._validate_categories()
        self._validate_analyzers()
        self._validate_severities()

    def _validate_categories(self) -> None:
        valid = [category.value for category in Category]
        for token in self.exclude_categories:
            key = token.strip().lower()
            if key in CATEGORY_PRESETS or key in valid:
                continue
            raise InvalidCategoryError(token, suggest(token, [*valid, *CATEGORY_PRESETS]))

        if set(self.expanded_categories()) >= set(valid):
            raise FilterConfigError("Cannot exclude all categories. At least one must be shown.")

    def _validate_analyzers(self) -> None:
        registry = get_registry()
        available = list(registry.names())
        excluded: set[str] = set()
        for analyzer in self.exclude_analyzers:
            normalized = registry.normalize(analyzer)
            if normalized not in available:
                raise InvalidAnalyzerError(analyzer, available)
            excluded.add(normalized)

        if excluded >= set(available):
            raise FilterConfigError("Cannot exclude all analyzers. At least one must remain active.")

    def _validate_severities(self) -> None:
        available = [severity.value for severity in Severity]
        excluded: set[str] = set()
        for severity in self.exclude_severities:
            normalized = severity.strip().lower()
            if normalized not in available:
                raise InvalidSeverityError(severity, available)
            excluded.add(normalized)

        if excluded >= set(available):
            raise FilterConfigError("Cannot exclude all severities. At least one must be shown.")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def should_exclude_category(self, category: Category | str) -> bool:
        value = category.value if isinstance(category, Category) else str(category).lower()
        return value in self.expanded_categories()

    def should_exclude_analyzer(self, name: str) -> bool:
        registry = get_registry()
        normalized = registry.normalize(name)
        return any(registry.normalize(excluded) == normalized for excluded in self.exclude_analyzers)

    def should_exclude_severity(self, severity: Severity | str) -> bool:
        value = severity.value if isinstance(severity, Severity) else str(severity).lower()
        return value in {s.strip().lower() for s in self.exclude_severities}

    def is_empty(self) -> bool:
        return not (self.exclude_categories or self.exclude_analyzers or self.exclude_severities)


class ResultFilter:
    """Removes issues whose category or severity is excluded.

    Analyzer exclusions are not applied here; excluded analyzers never
    run in the first place.
    """

    def __init__(self, config: FilterConfig) -> None:
        self.config = config
        self._categories = set(config.expanded_categories())
        self._severities = {s.strip().lower() for s in config.exclude_severities}

    def keeps(self, issue: Issue) -> bool:
        return (
            issue.category.value not in self._categories
            and issue.severity.value not in self._severities
        )

    def filter(self, result: ScanResult) -> ScanResult:
        """Return a new result holding only the issues that pass.

        Everything except the issue list is carried over unchanged, so
        filtering an already-filtered result is a no-op.
        """
        kept = [issue for issue in result.issues if self.keeps(issue)]
        removed = len(result.issues) - len(kept)
        if removed:
            logger.debug(f"Filtered out {removed} of {len(result.issues)} issues")
        return result.model_copy(update={"issues": kept})
