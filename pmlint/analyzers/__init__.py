"""Rule analyzers for PocketMine-MP plugins.

Every analyzer receives the plugin root and a shared, read-only
:class:`~pmlint.scanner.context.PluginContext` and returns a list of
issues. The registry decides which analyzers run and in what order.
"""

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
from .registry import (
    PHPSTAN_ANALYZER,
    AnalyzerRegistry,
    get_registry,
    normalize_analyzer_name,
)
from .resource import ResourceAnalyzer
from .scheduler import SchedulerAnalyzer
from .thread_safety import ThreadSafetyAnalyzer

__all__ = [
    "BaseAnalyzer",
    "AnalyzerRegistry",
    "get_registry",
    "normalize_analyzer_name",
    "PHPSTAN_ANALYZER",
    "PluginYmlAnalyzer",
    "MainClassAnalyzer",
    "PhpFileAnalyzer",
    "EventHandlerAnalyzer",
    "ListenerAnalyzer",
    "CommandAnalyzer",
    "PermissionAnalyzer",
    "AsyncTaskAnalyzer",
    "SchedulerAnalyzer",
    "ConfigAnalyzer",
    "ResourceAnalyzer",
    "DeprecatedApiAnalyzer",
    "ThreadSafetyAnalyzer",
    "PHPStanAnalyzer",
]
