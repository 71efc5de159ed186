"""pmlint: static analysis for PocketMine-MP plugins.

Quick start::

    from pmlint import scan_plugin

    result = scan_plugin("path/to/MyPlugin")
    for issue in result.issues:
        print(issue.location, issue.severity.label, issue.message)
"""

from .config import ScannerConfig
from .filters import FilterConfig, ResultFilter
from .issues import Category, Issue, Severity
from .result import ScanResult
from .scanner.plugin_scanner import PluginScanner, scan_plugin

__version__ = "0.1.0"

__all__ = [
    "scan_plugin",
    "PluginScanner",
    "ScannerConfig",
    "FilterConfig",
    "ResultFilter",
    "ScanResult",
    "Issue",
    "Category",
    "Severity",
]
