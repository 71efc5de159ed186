"""Validation of the plugin.yml manifest itself."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from packaging.version import InvalidVersion, Version

from ..issues import Category, Issue, Severity
from .base import BaseAnalyzer

REQUIRED_FIELDS = ("name", "version", "main", "api")

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_\-. ]+$")
VERSION_PATTERN = re.compile(r"^\d+(\.\d+)*(-[\w.]+)?(\+[\w.]+)?$")
MAIN_CLASS_PATTERN = re.compile(r"^[^\W\d]\w*(\\[^\W\d]\w*)*$")
API_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

# Oldest API major version that is still supported
MIN_API_MAJOR = 4

VALID_LOAD_ORDERS = frozenset({"STARTUP", "POSTWORLD"})
DEPENDENCY_FIELDS = ("depend", "softdepend", "loadbefore")


class PluginYmlAnalyzer(BaseAnalyzer):
    """Checks plugin.yml for required fields, formats and structure."""

    name = "PluginYml"

    def analyze(self) -> list[Issue]:
        manifest = self.context.manifest
        path = manifest.path

        if not manifest.exists:
            return [
                self.issue(
                    "plugin.yml file not found",
                    path,
                    1,
                    Category.INVALID_PLUGIN_YML,
                    code="plugin_yml_missing",
                    suggestion="Create a plugin.yml file in the plugin root directory",
                )
            ]

        issues: list[Issue] = []
        if manifest.parse_error is not None:
            line, message = manifest.parse_error
            issues.append(
                self.issue(
                    message,
                    path,
                    line,
                    Category.SYNTAX_ERROR,
                    code="yaml_syntax_error",
                    suggestion="Fix the YAML syntax in plugin.yml",
                )
            )

        if not manifest.is_mapping:
            issues.append(
                self.issue(
                    "plugin.yml must contain a mapping of keys to values",
                    path,
                    1,
                    Category.INVALID_PLUGIN_YML,
                    code="invalid_plugin_yml_structure",
                )
            )
            return issues

        data = manifest.data
        for field_name in REQUIRED_FIELDS:
            if data.get(field_name) in (None, "", []):
                issues.append(
                    self.issue(
                        f"Missing required field '{field_name}' in plugin.yml",
                        path,
                        manifest.line_of(field_name),
                        Category.INVALID_PLUGIN_YML,
                        code="missing_required_field",
                        suggestion=f"Add '{field_name}' to plugin.yml",
                    )
                )

        issues.extend(self._check_name(data.get("name")))
        issues.extend(self._check_version(data.get("version")))
        issues.extend(self._check_main(data.get("main")))
        issues.extend(self._check_api(data.get("api")))
        issues.extend(self._check_commands(data.get("commands")))
        issues.extend(self._check_permissions(data.get("permissions")))
        issues.extend(self._check_dependencies(data))
        issues.extend(self._check_load(data.get("load")))
        return issues

    # ------------------------------------------------------------------
    # Field checks
    # ------------------------------------------------------------------

    def _check_name(self, name: Any) -> list[Issue]:
        if name in (None, ""):
            return []
        name = str(name)
        line = self.context.manifest.line_of("name")
        issues: list[Issue] = []
        if not NAME_PATTERN.match(name):
            issues.append(
                self.issue(
                    f"Plugin name '{name}' contains invalid characters",
                    self.manifest_path,
                    line,
                    Category.INVALID_PLUGIN_YML,
                    Severity.WARNING,
                    code="invalid_plugin_name",
                    suggestion="Use only letters, digits, spaces, dots, dashes and underscores",
                )
            )
        if " " in name:
            issues.append(
                self.issue(
                    f"Plugin name '{name}' contains spaces",
                    self.manifest_path,
                    line,
                    Category.INVALID_PLUGIN_YML,
                    Severity.INFO,
                    code="name_with_spaces",
                    suggestion="Plugin names without spaces are easier to reference in depend lists",
                )
            )
        return issues

    def _check_version(self, version: Any) -> list[Issue]:
        if version in (None, ""):
            return []
        if VERSION_PATTERN.match(str(version)):
            return []
        return [
            self.issue(
                f"Version '{version}' does not follow semantic versioning",
                self.manifest_path,
                self.context.manifest.line_of("version"),
                Category.INVALID_PLUGIN_YML,
                Severity.INFO,
                code="non_semver_version",
                suggestion="Use a version such as 1.0.0",
            )
        ]

    def _check_main(self, main: Any) -> list[Issue]:
        if main in (None, ""):
            return []
        if isinstance(main, str) and MAIN_CLASS_PATTERN.match(main):
            return []
        return [
            self.issue(
                f"Main class '{main}' is not a valid fully-qualified class name",
                self.manifest_path,
                self.context.manifest.line_of("main"),
                Category.INVALID_PLUGIN_YML,
                code="invalid_main_class_format",
                suggestion="Use a namespaced class name such as Vendor\\Plugin\\Main",
            )
        ]

    def _check_api(self, api: Any) -> list[Issue]:
        if api in (None, "", []):
            return []
        line = self.context.manifest.line_of("api")
        versions = api if isinstance(api, list) else [api]

        issues: list[Issue] = []
        for entry in versions:
            if not isinstance(entry, str):
                issues.append(
                    self.issue(
                        f"API version must be a string, got {type(entry).__name__}",
                        self.manifest_path,
                        line,
                        Category.INVALID_API_VERSION,
                        code="invalid_api_version_type",
                        suggestion='Quote the API version, e.g. api: "5.0.0"',
                    )
                )
                continue
            if not API_VERSION_PATTERN.match(entry):
                issues.append(
                    self.issue(
                        f"Invalid API version format '{entry}'",
                        self.manifest_path,
                        line,
                        Category.INVALID_API_VERSION,
                        code="invalid_api_version_format",
                        suggestion="Use the MAJOR.MINOR.PATCH format, e.g. 5.0.0",
                    )
                )
                continue
            try:
                major = Version(entry).major
            except InvalidVersion:
                continue
            if major < MIN_API_MAJOR:
                issues.append(
                    self.issue(
                        f"API version {entry} is outdated; PocketMine-MP API {MIN_API_MAJOR}.0.0 or newer is required",
                        self.manifest_path,
                        line,
                        Category.DEPRECATED_API,
                        Severity.WARNING,
                        code="outdated_api_version",
                        suggestion="Update the plugin to API 5.0.0",
                    )
                )
        return issues

    def _check_commands(self, commands: Any) -> list[Issue]:
        if commands is None:
            return []
        manifest = self.context.manifest
        if not isinstance(commands, Mapping):
            return [
                self.issue(
                    "'commands' must be a mapping of command names to definitions",
                    self.manifest_path,
                    manifest.line_of("commands"),
                    Category.COMMAND_MISMATCH,
                    code="invalid_commands_section",
                )
            ]
        issues: list[Issue] = []
        for command_name, definition in commands.items():
            if not isinstance(definition, Mapping):
                issues.append(
                    self.issue(
                        f"Command '{command_name}' must be defined as a mapping",
                        self.manifest_path,
                        manifest.line_of("commands", str(command_name)),
                        Category.COMMAND_MISMATCH,
                        code="invalid_command_definition",
                        suggestion="Add at least a 'description' key under the command",
                    )
                )
        return issues

    def _check_permissions(self, permissions: Any) -> list[Issue]:
        if permissions is None:
            return []
        manifest = self.context.manifest
        if not isinstance(permissions, Mapping):
            return [
                self.issue(
                    "'permissions' must be a mapping of permission names to definitions",
                    self.manifest_path,
                    manifest.line_of("permissions"),
                    Category.PERMISSION_MISMATCH,
                    code="invalid_permissions_section",
                )
            ]
        issues: list[Issue] = []
        # Default values and children are checked by the Permission analyzer
        for permission, definition in permissions.items():
            if not isinstance(definition, Mapping):
                issues.append(
                    self.issue(
                        f"Permission '{permission}' must be defined as a mapping",
                        self.manifest_path,
                        manifest.line_of("permissions", str(permission)),
                        Category.PERMISSION_MISMATCH,
                        code="invalid_permission_definition",
                    )
                )
        return issues

    def _check_dependencies(self, data: Mapping[str, Any]) -> list[Issue]:
        issues: list[Issue] = []
        for field_name in DEPENDENCY_FIELDS:
            value = data.get(field_name)
            if value is None:
                continue
            entries = value if isinstance(value, list) else [value]
            for entry in entries:
                if not isinstance(entry, str):
                    issues.append(
                        self.issue(
                            f"'{field_name}' entries must be plugin names, got {entry!r}",
                            self.manifest_path,
                            self.context.manifest.line_of(field_name),
                            Category.INVALID_PLUGIN_YML,
                            code="invalid_dependency",
                        )
                    )
        return issues

    def _check_load(self, load: Any) -> list[Issue]:
        if load is None or str(load).upper() in VALID_LOAD_ORDERS:
            return []
        return [
            self.issue(
                f"Invalid load order '{load}'",
                self.manifest_path,
                self.context.manifest.line_of("load"),
                Category.INVALID_PLUGIN_YML,
                code="invalid_load_order",
                suggestion="Use STARTUP or POSTWORLD",
            )
        ]
