"""Scan orchestration.

:class:`PluginScanner` ties the pieces together: it checks the scan
inputs, loads settings and the manifest, builds the shared
:class:`PluginContext`, runs PHPStan and then every enabled analyzer, and
finally applies the category and severity filters.

Each analyzer is isolated: if one raises, its failure is logged and
reported as a single warning and the scan carries on with the rest.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from ..analyzers.base import BaseAnalyzer
from ..analyzers.phpstan import PHPStanAnalyzer
from ..analyzers.registry import PHPSTAN_ANALYZER, AnalyzerRegistry, get_registry
from ..config import ScannerConfig
from ..core.exceptions import PluginNotFoundError
from ..core.logging_config import get_scan_logger
from ..filters import FilterConfig, ResultFilter
from ..issues import Category, Issue, Severity
from ..result import ScanResult
from .context import PluginContext
from .manifest import MANIFEST_FILENAME, Manifest, load_manifest

logger = logging.getLogger(__name__)


class PluginScanner:
    """
    Scans one plugin directory.

    Args:
        plugin_path: Plugin root (the directory holding plugin.yml).
        level: PHPStan rule level; the configured level when ``None``.
        filter_config: Exclusions to apply; built from ``pmlint.yml`` when
            ``None``.
        config: Scanner settings; read from ``pmlint.yml`` when ``None``.
        lenient_manifest: Report an unparseable plugin.yml as an issue
            instead of failing the scan.
        concurrent: Run analyzers on worker threads.
        registry: Analyzer registry; the shared default when ``None``.
        stubs_path: Optional PHP stub directory passed to PHPStan.

    Raises:
        PluginNotFoundError: If *plugin_path* is not a directory.
        ConfigurationError: If the settings or filters are invalid.
        ManifestNotFoundError, ManifestParseError: From :meth:`scan`,
            before any analyzer has run.
    """

    def __init__(
        self,
        plugin_path: Path | str,
        level: int | None = None,
        filter_config: FilterConfig | None = None,
        config: ScannerConfig | None = None,
        lenient_manifest: bool = False,
        concurrent: bool = False,
        registry: AnalyzerRegistry | None = None,
        stubs_path: Path | None = None,
    ) -> None:
        self.plugin_path = Path(plugin_path).resolve()
        if not self.plugin_path.is_dir():
            raise PluginNotFoundError(f"Plugin directory not found: {plugin_path}")

        self.config = config if config is not None else ScannerConfig.for_plugin(self.plugin_path)
        self.level = level if level is not None else self.config.level
        filter_config = filter_config if filter_config is not None else self.config.to_filter_config()
        filter_config.validate()
        self.filter_config = filter_config.expand_presets()

        self.lenient_manifest = lenient_manifest
        self.concurrent = concurrent
        self.registry = registry or get_registry()
        self.stubs_path = stubs_path
        self.scan_logger = get_scan_logger()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def scan(self) -> ScanResult:
        """Run a complete scan.

        With ``concurrent=True`` this starts its own event loop; from async
        code call :meth:`scan_async` instead.
        """
        if self.concurrent:
            return asyncio.run(self.scan_async())

        started = time.perf_counter()
        context, result = self._prepare()
        for analyzer in self._analyzers(context):
            result.add_issues(self._run_analyzer(analyzer))
        return self._finish(result, started)

    async def scan_async(self) -> ScanResult:
        """Run a scan with analyzers on worker threads.

        Issues are still collected in registry order.
        """
        started = time.perf_counter()
        context, result = await asyncio.to_thread(self._prepare)
        analyzers = self._analyzers(context)

        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self._run_analyzer, analyzer) for analyzer in analyzers),
            return_exceptions=True,
        )
        for analyzer, outcome in zip(analyzers, outcomes):
            if isinstance(outcome, BaseException):
                # _run_analyzer already isolates analyzer errors
                result.add_issue(self._failure_issue(analyzer.name, outcome))
            else:
                result.add_issues(outcome)
        return self._finish(result, started)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def load_manifest(self) -> Manifest:
        return load_manifest(self.plugin_path / MANIFEST_FILENAME, lenient=self.lenient_manifest)

    def _prepare(self) -> tuple[PluginContext, ScanResult]:
        manifest = self.load_manifest()
        context = PluginContext(
            self.plugin_path,
            manifest,
            source_paths=self.config.paths,
            exclude_paths=self.config.exclude_paths,
        )
        context.initialize()

        result = ScanResult(
            plugin_path=str(self.plugin_path),
            plugin_name=manifest.name or "Unknown",
            plugin_version=manifest.version or "Unknown",
            scanned_file_count=len(context.php_files),
        )
        self.scan_logger.info(
            f"Scanning {result.plugin_name} {result.plugin_version}",
            extra={
                "event": "scan_started",
                "plugin": str(self.plugin_path),
                "files": len(context.php_files),
            },
        )
        return context, result

    def _analyzers(self, context: PluginContext) -> list[BaseAnalyzer]:
        """Enabled analyzers in run order, PHPStan first."""
        analyzers: list[BaseAnalyzer] = []
        if not self.filter_config.should_exclude_analyzer(PHPSTAN_ANALYZER):
            analyzers.append(
                PHPStanAnalyzer(self.plugin_path, context, level=self.level, stubs_path=self.stubs_path)
            )
        analyzers.extend(self.registry.create_analyzers(self.plugin_path, context, self.filter_config))
        return analyzers

    def _run_analyzer(self, analyzer: BaseAnalyzer) -> list[Issue]:
        started = time.perf_counter()
        try:
            issues = analyzer.analyze()
        except Exception as e:
            logger.exception(f"Analyzer {analyzer.name} failed")
            self.scan_logger.error(
                f"Analyzer {analyzer.name} failed",
                extra={
                    "event": "analyzer_failed",
                    "plugin": str(self.plugin_path),
                    "analyzer": analyzer.name,
                    "duration": round(time.perf_counter() - started, 3),
                    "error": str(e),
                },
            )
            return [self._failure_issue(analyzer.name, e)]

        self.scan_logger.info(
            f"Analyzer {analyzer.name} finished",
            extra={
                "event": "analyzer_finished",
                "plugin": str(self.plugin_path),
                "analyzer": analyzer.name,
                "issues": len(issues),
                "duration": round(time.perf_counter() - started, 3),
            },
        )
        return issues

    def _failure_issue(self, analyzer_name: str, error: BaseException) -> Issue:
        return Issue(
            message=f"Analyzer {analyzer_name} failed: {error}",
            file=MANIFEST_FILENAME,
            line=1,
            category=Category.OTHER,
            severity=Severity.WARNING,
            code="analyzer_failed",
            suggestion="The remaining analyzers still ran; please report this failure",
        )

    def _finish(self, result: ScanResult, started: float) -> ScanResult:
        filtered = ResultFilter(self.filter_config).filter(result)
        filtered.scan_duration = time.perf_counter() - started
        self.scan_logger.info(
            f"Scan of {result.plugin_name} finished",
            extra={
                "event": "scan_finished",
                "plugin": str(self.plugin_path),
                "issues": filtered.total_issue_count,
                "duration": round(filtered.scan_duration, 3),
            },
        )
        return filtered


def scan_plugin(plugin_path: Path | str, **kwargs: Any) -> ScanResult:
    """Scan *plugin_path* with :class:`PluginScanner` and return the result."""
    return PluginScanner(plugin_path, **kwargs).scan()
