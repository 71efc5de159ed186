"""
Analyzer registry.

This module maps stable analyzer names to analyzer classes and builds the
set of analyzers enabled for a scan. Names are compared after
normalization, so ``"eventhandler"``, ``"EventHandlerAnalyzer"`` and
``"EventHandler"`` all refer to the same analyzer.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..core.exceptions import UnknownAnalyzerError
from ..scanner.context import PluginContext
from .async_task import AsyncTaskAnalyzer
from .base import BaseAnalyzer
from .command import CommandAnalyzer
from .config import ConfigAnalyzer
from .deprecated_api import DeprecatedApiAnalyzer
from .event_handler import EventHandlerAnalyzer
from .listener import ListenerAnalyzer
from .main_class import MainClassAnalyzer
from .permission import PermissionAnalyzer
from .php_file import PhpFileAnalyzer
from .phpstan import PHPStanAnalyzer
from .plugin_yml import PluginYmlAnalyzer
from .resource import ResourceAnalyzer
from .scheduler import SchedulerAnalyzer
from .thread_safety import ThreadSafetyAnalyzer

if TYPE_CHECKING:
    from ..filters import FilterConfig

logger = logging.getLogger(__name__)

PHPSTAN_ANALYZER = "PHPStan"

_ANALYZER_SUFFIX = "analyzer"

# Registration order is the order issues appear in a scan result
DEFAULT_ANALYZERS: tuple[type[BaseAnalyzer], ...] = (
    PluginYmlAnalyzer,
    MainClassAnalyzer,
    PhpFileAnalyzer,
    EventHandlerAnalyzer,
    ListenerAnalyzer,
    CommandAnalyzer,
    PermissionAnalyzer,
    AsyncTaskAnalyzer,
    SchedulerAnalyzer,
    ConfigAnalyzer,
    ResourceAnalyzer,
    DeprecatedApiAnalyzer,
    ThreadSafetyAnalyzer,
    PHPStanAnalyzer,
)


def normalize_analyzer_name(name: str, known: tuple[str, ...] | None = None) -> str:
    """Canonical form of a user-supplied analyzer name.

    Strips a trailing ``Analyzer`` (any case), maps any casing of
    ``phpstan`` to ``PHPStan``, matches registered names
    case-insensitively and otherwise upper-cases the first character.

    Args:
        name: Name as written by the user.
        known: Registered names to match against; the default registry's
            names when omitted.
    """
    cleaned = name.strip()
    if cleaned.lower().endswith(_ANALYZER_SUFFIX) and len(cleaned) > len(_ANALYZER_SUFFIX):
        cleaned = cleaned[: -len(_ANALYZER_SUFFIX)]
    if not cleaned:
        return cleaned
    if cleaned.lower() == PHPSTAN_ANALYZER.lower():
        return PHPSTAN_ANALYZER

    if known is None:
        known = get_registry().names()
    for candidate in known:
        if candidate.lower() == cleaned.lower():
            return candidate
    return cleaned[0].upper() + cleaned[1:]


class AnalyzerRegistry:
    """
    Ordered collection of analyzer classes keyed by name.

    The PHPStan adapter is registered like any other analyzer but is
    never built by :meth:`create_analyzers`; it needs a rule level and is
    run separately by the scanner.
    """

    def __init__(self, analyzers: tuple[type[BaseAnalyzer], ...] = DEFAULT_ANALYZERS) -> None:
        self._analyzers: dict[str, type[BaseAnalyzer]] = {}
        for analyzer in analyzers:
            self.register(analyzer)

    def register(self, analyzer: type[BaseAnalyzer]) -> None:
        """Add *analyzer* under its ``name``; re-registering replaces it in place."""
        if not analyzer.name:
            raise ValueError(f"{analyzer.__name__} does not define a name")
        self._analyzers[analyzer.name] = analyzer
        logger.debug(f"Registered analyzer {analyzer.name}")

    def names(self) -> tuple[str, ...]:
        return tuple(self._analyzers)

    def normalize(self, name: str) -> str:
        return normalize_analyzer_name(name, self.names())

    def is_valid(self, name: str) -> bool:
        return self.normalize(name) in self._analyzers

    def get(self, name: str) -> type[BaseAnalyzer]:
        """
        Look up an analyzer class by (normalized) name.

        Raises:
            UnknownAnalyzerError: If no analyzer is registered under the name
        """
        canonical = self.normalize(name)
        try:
            return self._analyzers[canonical]
        except KeyError:
            raise UnknownAnalyzerError(
                f"Unknown analyzer '{name}'. Available analyzers: {', '.join(self.names())}"
            ) from None

    def enabled_names(self, filter_config: FilterConfig | None = None) -> list[str]:
        """Registered names not denied by *filter_config*, in registry order."""
        if filter_config is None:
            return list(self._analyzers)
        return [
            name for name in self._analyzers
            if not filter_config.should_exclude_analyzer(name)
        ]

    def create(self, name: str, plugin_path: Path, context: PluginContext) -> BaseAnalyzer:
        """Instantiate one analyzer with the common constructor."""
        return self.get(name)(plugin_path, context)

    def create_analyzers(
        self,
        plugin_path: Path,
        context: PluginContext,
        filter_config: FilterConfig | None = None,
    ) -> list[BaseAnalyzer]:
        """Instantiate every enabled analyzer except the PHPStan adapter."""
        return [
            self._analyzers[name](plugin_path, context)
            for name in self.enabled_names(filter_config)
            if name != PHPSTAN_ANALYZER
        ]


_registry: AnalyzerRegistry | None = None


def get_registry() -> AnalyzerRegistry:
    """Get the shared default registry."""
    global _registry
    if _registry is None:
        _registry = AnalyzerRegistry()
    return _registry
