"""Custom exception hierarchy for pmlint.

Scan input problems (a missing plugin directory or manifest) and invalid
user configuration are raised as exceptions. Everything that goes wrong
once the analyzer pipeline has started is reported as an ``Issue``
instead, so these types never escape a running scan.
"""


class PmlintError(Exception):
    """Base exception for all pmlint errors.

    All custom exceptions inherit from this class so callers can catch
    every pmlint-specific error with a single except clause.
    """
    pass


# =============================================================================
# Scanner Errors
# =============================================================================

class ScannerError(PmlintError):
    """Base exception for errors that abort a scan before it starts."""
    pass


class PluginNotFoundError(ScannerError):
    """The plugin root does not exist or is not a directory."""
    pass


class ManifestNotFoundError(ScannerError):
    """The plugin has no plugin.yml manifest."""
    pass


class ManifestParseError(ScannerError):
    """The plugin.yml manifest could not be parsed."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(PmlintError):
    """Base exception for configuration errors."""
    pass


class InvalidConfigError(ConfigurationError):
    """Configuration file is invalid or malformed."""
    pass


class FilterConfigError(ConfigurationError):
    """Issue filter settings are inconsistent or exclude everything."""
    pass


class InvalidCategoryError(FilterConfigError):
    """An excluded category is neither a known category nor a preset."""

    def __init__(self, category: str, suggestions: list[str] | None = None):
        self.category = category
        self.suggestions = suggestions or []
        message = f"Invalid category: '{category}'."
        if self.suggestions:
            message += " Did you mean: " + ", ".join(self.suggestions) + "?"
        super().__init__(message)


class InvalidAnalyzerError(FilterConfigError):
    """An excluded analyzer name does not match any registered analyzer."""

    def __init__(self, analyzer: str, available: list[str]):
        self.analyzer = analyzer
        self.available = available
        super().__init__(
            f"Invalid analyzer: '{analyzer}'. Available analyzers: {', '.join(available)}"
        )


class InvalidSeverityError(FilterConfigError):
    """An excluded severity is not one of error, warning, info or hint."""

    def __init__(self, severity: str, available: list[str]):
        self.severity = severity
        self.available = available
        super().__init__(
            f"Invalid severity: '{severity}'. Valid severities: {', '.join(available)}"
        )


# =============================================================================
# Analyzer Errors
# =============================================================================

class AnalyzerError(PmlintError):
    """Base exception for analyzer registry errors."""
    pass


class UnknownAnalyzerError(AnalyzerError):
    """Requested analyzer is not registered."""
    pass
