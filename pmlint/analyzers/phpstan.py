"""Adapter that runs PHPStan and maps its findings onto issues.

PHPStan is an optional external dependency. When no binary can be found
the adapter reports a single informational issue; when the run fails or
times out it reports a single warning. It never raises.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any

from ..issues import Category, Issue, Severity
from ..scanner.context import PluginContext
from .base import BaseAnalyzer

logger = logging.getLogger("pmlint.phpstan")

PHPSTAN_TIMEOUT = 300
DEFAULT_LEVEL = 6
MIN_LEVEL = 1
MAX_LEVEL = 9

# First match wins; specific patterns precede the generic ones they overlap
CATEGORY_PATTERNS: list[tuple[re.Pattern[str], Category]] = [
    (re.compile(r"Undefined variable:?\s*\$"), Category.UNDEFINED_VARIABLE),
    (re.compile(r"Call to (an )?undefined method"), Category.UNDEFINED_METHOD),
    (re.compile(r"Access to undefined constant"), Category.UNDEFINED_CONSTANT),
    (re.compile(r"(Class|Interface|Trait) .+ not found"), Category.UNDEFINED_CLASS),
    (re.compile(r"Function .+ not found"), Category.UNDEFINED_FUNCTION),
    (re.compile(r"Call to undefined function"), Category.UNDEFINED_FUNCTION),
    (re.compile(r"Access to an undefined property"), Category.UNDEFINED_PROPERTY),
    (re.compile(r"Undefined property"), Category.UNDEFINED_PROPERTY),
    (re.compile(r"Parameter .+ expects .+, .+ given"), Category.PARAMETER_TYPE),
    (re.compile(r"expects .+, .+ given"), Category.TYPE_MISMATCH),
    (re.compile(r"should return .+ but return statement is missing"), Category.MISSING_RETURN),
    (re.compile(r"should return .+ but returns"), Category.RETURN_TYPE),
    (re.compile(r"Unused variable"), Category.UNUSED_VARIABLE),
    (re.compile(r"is never used"), Category.UNUSED_VARIABLE),
    (re.compile(r"Dead code"), Category.DEAD_CODE),
    (re.compile(r"Unreachable statement"), Category.DEAD_CODE),
    (re.compile(r"implements interface .+ but does not implement"), Category.INTERFACE_VIOLATION),
    (re.compile(r"must implement interface"), Category.INTERFACE_VIOLATION),
    (re.compile(r"cannot extend .+ class"), Category.INVALID_INHERITANCE),
    (re.compile(r"extends final class"), Category.INVALID_INHERITANCE),
    (re.compile(r"abstract class .+ contains abstract method"), Category.ABSTRACT_VIOLATION),
    (re.compile(r"Cannot instantiate (abstract class|interface)"), Category.INSTANTIATION_ERROR),
    (re.compile(r"Cannot call abstract method"), Category.ABSTRACT_VIOLATION),
    (re.compile(r"Visibility .+ must be"), Category.VISIBILITY_VIOLATION),
    (re.compile(r"Access to .+ (private|protected)"), Category.VISIBILITY_VIOLATION),
    (re.compile(r"Cannot access (private|protected)"), Category.VISIBILITY_VIOLATION),
    (re.compile(r"Static call to instance method"), Category.STATIC_CALL_ERROR),
    (re.compile(r"Non-static method .+ cannot be called statically"), Category.STATIC_CALL_ERROR),
    (re.compile(r"Cannot access offset .+ on"), Category.ARRAY_ACCESS_ERROR),
    (re.compile(r"Offset .+ does not exist"), Category.ARRAY_ACCESS_ERROR),
    (re.compile(r"on null"), Category.NULL_SAFETY),
    (re.compile(r"might be null"), Category.NULL_SAFETY),
    (re.compile(r"possibly null"), Category.NULL_SAFETY),
]

# Lower-cased fragments that downgrade an ignorable finding to a warning
_SOFT_MARKERS = ("deprecated", "unused", "never used", "might", "possibly")

_NO_FILES_MESSAGE = "No files found to analyse"


def categorize_message(message: str) -> Category:
    """Map a PHPStan message to a category; ``OTHER`` when nothing matches."""
    for pattern, category in CATEGORY_PATTERNS:
        if pattern.search(message):
            return category
    return Category.OTHER


def determine_severity(message: dict[str, Any]) -> Severity:
    """Severity of a PHPStan message from its ``ignorable`` flag and text."""
    if not message.get("ignorable", True):
        return Severity.ERROR
    text = str(message.get("message", "")).lower()
    if any(marker in text for marker in _SOFT_MARKERS):
        return Severity.WARNING
    return Severity.ERROR


def parse_phpstan_output(stdout: str) -> dict[str, Any] | None:
    """Decode PHPStan's JSON report.

    The whole output is tried first; if PHPStan printed anything around
    the report, the last line that decodes to an object is used.
    """
    stdout = stdout.strip()
    if not stdout:
        return None
    try:
        document = json.loads(stdout)
    except json.JSONDecodeError:
        document = None
    if isinstance(document, dict):
        return document

    for line in reversed(stdout.splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            document = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(document, dict):
            return document
    return None


class PHPStanAnalyzer(BaseAnalyzer):
    """Runs PHPStan over the plugin sources.

    Args:
        plugin_path: Plugin root directory.
        context: The plugin context; its source paths are analysed.
        level: PHPStan rule level, clamped to 1-9.
        stubs_path: Optional directory of PHP stubs to scan alongside the
            sources, e.g. PocketMine-MP API stubs.
        timeout: Seconds before the PHPStan process is abandoned.
    """

    name = "PHPStan"

    def __init__(
        self,
        plugin_path: Path,
        context: PluginContext,
        level: int = DEFAULT_LEVEL,
        stubs_path: Path | None = None,
        timeout: int = PHPSTAN_TIMEOUT,
    ) -> None:
        super().__init__(plugin_path, context)
        self.level = max(MIN_LEVEL, min(MAX_LEVEL, int(level)))
        self.stubs_path = Path(stubs_path) if stubs_path is not None else None
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Binary discovery
    # ------------------------------------------------------------------

    def candidate_paths(self) -> list[Path]:
        """Locations searched, in order, before falling back to ``PATH``."""
        return [
            self.plugin_path / "vendor" / "bin" / "phpstan",
            Path.cwd() / "vendor" / "bin" / "phpstan",
            Path("/usr/local/bin/phpstan"),
            Path("/usr/bin/phpstan"),
        ]

    def find_binary(self) -> str | None:
        for candidate in self.candidate_paths():
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
        return shutil.which("phpstan")

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def source_directories(self) -> list[Path]:
        return [
            self.plugin_path / relative
            for relative in self.context.source_paths
            if (self.plugin_path / relative).is_dir()
        ]

    def build_config(self, paths: list[Path]) -> str:
        """Render the temporary ``.neon`` configuration."""
        lines = ["parameters:", f"    level: {self.level}", "    paths:"]
        lines.extend(f"        - {path}" for path in paths)
        if self.stubs_path is not None and self.stubs_path.is_dir():
            lines.extend(["    scanDirectories:", f"        - {self.stubs_path}"])
            stub_files = sorted(self.stubs_path.rglob("*.php"))
            if stub_files:
                lines.append("    stubFiles:")
                lines.extend(f"        - {stub}" for stub in stub_files)
        lines.append("    reportUnmatchedIgnoredErrors: false")
        lines.append("    treatPhpDocTypesAsCertain: false")
        return "\n".join(lines) + "\n"

    def analyze(self) -> list[Issue]:
        binary = self.find_binary()
        if binary is None:
            logger.info("PHPStan binary not found; skipping deep analysis")
            return [
                self.issue(
                    "PHPStan binary not found. Install PHPStan for enhanced static analysis: "
                    "composer require --dev phpstan/phpstan",
                    self.plugin_path / "composer.json",
                    1,
                    Category.OTHER,
                    Severity.INFO,
                    code="phpstan_not_found",
                    suggestion="Run: composer require --dev phpstan/phpstan",
                )
            ]

        paths = self.source_directories()
        if not paths:
            return []

        config_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w", encoding="utf-8", prefix="pmlint-phpstan-", suffix=".neon", delete=False
            ) as config_file:
                config_file.write(self.build_config(paths))
                config_path = config_file.name

            command = [
                binary,
                "analyse",
                "--error-format=json",
                "--no-progress",
                "-c",
                config_path,
                "-l",
                str(self.level),
                *(str(path) for path in paths),
            ]
            logger.debug(f"Running {' '.join(command)}")
            result = subprocess.run(
                command,
                cwd=self.plugin_path,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )

            report = parse_phpstan_output(result.stdout)
            if report is not None:
                return self.parse_report(report)
            if _NO_FILES_MESSAGE in result.stderr:
                return []
            if result.returncode != 0:
                detail = result.stderr.strip().splitlines()
                reason = f"exit code {result.returncode}" + (f": {detail[-1]}" if detail else "")
                logger.error(f"PHPStan analysis failed: {reason}")
                return [self._failure(reason)]
            return []

        except subprocess.TimeoutExpired:
            logger.error(f"PHPStan timed out after {self.timeout} seconds")
            return [self._failure(f"timed out after {self.timeout} seconds")]
        except Exception as e:
            logger.error(f"PHPStan analysis failed: {e}")
            return [self._failure(str(e))]
        finally:
            if config_path is not None:
                try:
                    os.unlink(config_path)
                except OSError as e:
                    logger.warning(f"Failed to remove temporary PHPStan config {config_path}: {e}")

    def parse_report(self, report: dict[str, Any]) -> list[Issue]:
        """Convert PHPStan's ``files`` section into issues."""
        issues: list[Issue] = []
        files = report.get("files") or {}
        if not isinstance(files, dict):
            return issues
        for file, file_data in files.items():
            messages = file_data.get("messages", []) if isinstance(file_data, dict) else []
            for message in messages:
                if not isinstance(message, dict) or not message.get("message"):
                    continue
                category = categorize_message(message["message"])
                line = message.get("line")
                issues.append(
                    self.issue(
                        message["message"],
                        file,
                        line if isinstance(line, int) and line > 0 else 1,
                        category,
                        determine_severity(message),
                        code=message.get("identifier") or category.value,
                        suggestion=message.get("tip"),
                    )
                )
        return issues

    def _failure(self, reason: str) -> Issue:
        paths = self.source_directories()
        return self.issue(
            f"PHPStan analysis failed: {reason}",
            paths[0] if paths else self.plugin_path,
            1,
            Category.OTHER,
            Severity.WARNING,
            code="phpstan_analysis_failed",
            suggestion="Check the PHPStan installation and configuration",
        )
