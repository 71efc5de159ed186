"""Core utilities: exception hierarchy and scan logging."""

from .exceptions import (
    AnalyzerError,
    ConfigurationError,
    FilterConfigError,
    InvalidAnalyzerError,
    InvalidCategoryError,
    InvalidConfigError,
    InvalidSeverityError,
    ManifestNotFoundError,
    ManifestParseError,
    PluginNotFoundError,
    PmlintError,
    ScannerError,
    UnknownAnalyzerError,
)
from .logging_config import configure_scan_logging, get_scan_logger

__all__ = [
    # Logging
    "configure_scan_logging",
    "get_scan_logger",
    # Exceptions
    "PmlintError",
    "ScannerError",
    "PluginNotFoundError",
    "ManifestNotFoundError",
    "ManifestParseError",
    "ConfigurationError",
    "InvalidConfigError",
    "FilterConfigError",
    "InvalidCategoryError",
    "InvalidAnalyzerError",
    "InvalidSeverityError",
    "AnalyzerError",
    "UnknownAnalyzerError",
]
