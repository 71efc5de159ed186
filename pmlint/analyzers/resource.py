"""Bundled resource files referenced from code."""

from __future__ import annotations

from ..issues import Category, Issue, Severity
from .base import BaseAnalyzer
from .config import CONFIG_FILENAME

CONFIG_METHODS = frozenset({"getConfig", "saveDefaultConfig", "reloadConfig"})
RESOURCE_METHODS = frozenset({"getResource", "saveResource", "getResourcePath"})


class ResourceAnalyzer(BaseAnalyzer):
    """Cross-checks resource lookups against the resources/ directory."""

    name = "Resource"

    def analyze(self) -> list[Issue]:
        issues = self._check_resources_directory()
        issues.extend(self._check_resource_usage())
        return issues

    def available_resources(self) -> set[str]:
        """Paths of bundled files relative to resources/, in POSIX form."""
        root = self.context.resources_path
        if not root.is_dir():
            return set()
        available: set[str] = set()
        for path in root.rglob("*"):
            relative = path.relative_to(root)
            if path.is_file() and not any(part.startswith(".") for part in relative.parts):
                available.add(relative.as_posix())
        return available

    def uses_config(self) -> bool:
        """Whether any file calls one of the default-config helpers."""
        return any(
            self.engine.find_calls(ast, names=CONFIG_METHODS, kinds=("method",))
            for _path, ast in self.context.trees()
        )

    def _check_resources_directory(self) -> list[Issue]:
        manifest = self.context.manifest
        if not manifest.exists or not manifest.data:
            return []

        resources = self.context.resources_path
        if not resources.is_dir():
            return [
                self.issue(
                    "No resources directory found",
                    self.manifest_path,
                    1,
                    Category.RESOURCE_MISSING,
                    Severity.INFO,
                    code="no_resources_directory",
                    suggestion="Create a resources/ directory for config.yml and other assets",
                )
            ]

        if (resources / CONFIG_FILENAME).is_file() or not self.uses_config():
            return []
        return [
            self.issue(
                "Plugin uses getConfig() but no config.yml found in resources/",
                self.manifest_path,
                1,
                Category.RESOURCE_MISSING,
                Severity.WARNING,
                code="missing_config_yml",
                suggestion="Create resources/config.yml with the default configuration",
            )
        ]

    def _check_resource_usage(self) -> list[Issue]:
        available = self.available_resources()
        issues: list[Issue] = []
        for path, ast in self.context.trees():
            for call in self.engine.find_calls(ast, names=RESOURCE_METHODS, kinds=("method",)):
                if not call.arguments:
                    continue
                resource = self.engine.string_value(ast, call.arguments[0])
                if not resource:
                    continue
                resource = resource.replace("\\", "/").lstrip("/")
                if resource in available:
                    continue
                issues.append(
                    self.issue(
                        f"Resource file '{resource}' is referenced but not found in resources/",
                        path,
                        call.line,
                        Category.RESOURCE_MISSING,
                        code="missing_resource_file",
                        suggestion=f"Create the file resources/{resource}",
                    )
                )
        return issues
