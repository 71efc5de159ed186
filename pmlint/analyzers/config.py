"""Default config file validity and Config accessor usage."""

from __future__ import annotations

import re
from pathlib import Path

import tree_sitter as ts
import yaml

from ..issues import Category, Issue, Severity
from ..php.ast_engine import CallSite, ParsedAST
from ..scanner.manifest import yaml_error_line
from .base import BaseAnalyzer

CONFIG_FILENAME = "config.yml"

GETTER_METHODS = frozenset({"get", "getnested"})
SETTER_METHODS = frozenset({"set", "setnested"})
SAVE_METHOD = "saveconfig"

# get()/set() are common names; only receivers that look like a Config count
_CONFIG_RECEIVER = re.compile(r"config", re.IGNORECASE)

# Key expressions the analyzer can still reason about
_STATIC_KEY_TYPES = frozenset({"string", "encapsed_string", "variable_name"})


class ConfigAnalyzer(BaseAnalyzer):
    """Checks resources/config.yml and calls on Config objects."""

    name = "Config"

    def analyze(self) -> list[Issue]:
        issues = self._check_config_file()
        names = GETTER_METHODS | SETTER_METHODS | {SAVE_METHOD}
        for path, ast in self.context.trees():
            for call in self.engine.find_calls(ast, names=names, kinds=("method",)):
                issues.extend(self._check_call(path, ast, call))
        return issues

    def _check_config_file(self) -> list[Issue]:
        config_path = self.context.resources_path / CONFIG_FILENAME
        if not config_path.is_file():
            return []
        try:
            yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            message, line = f"config.yml could not be read: {e}", 1
        except yaml.YAMLError as e:
            message, line = f"Invalid YAML syntax in config.yml: {e}", yaml_error_line(e) or 1
        else:
            return []
        return [
            self.issue(
                message,
                config_path,
                line,
                Category.SYNTAX_ERROR,
                code="config_yaml_syntax",
                suggestion="Fix the YAML syntax in resources/config.yml",
            )
        ]

    def _check_call(self, path: Path, ast: ParsedAST, call: CallSite) -> list[Issue]:
        method = call.name.lower()
        if method == SAVE_METHOD:
            return [
                self.issue(
                    "saveConfig() is called; make sure config changes are intentional",
                    path,
                    call.line,
                    Category.CONFIG_MISUSE,
                    Severity.INFO,
                    code="config_save_notice",
                )
            ]

        if not call.receiver or not _CONFIG_RECEIVER.search(call.receiver):
            return []

        if method in SETTER_METHODS:
            if len(call.arguments) >= 2:
                return []
            return [
                self.issue(
                    f"Config {call.name}() requires both key and value arguments",
                    path,
                    call.line,
                    Category.CONFIG_MISUSE,
                    code="config_set_missing_args",
                )
            ]

        if not call.arguments:
            return [
                self.issue(
                    f"Config {call.name}() called without a key argument",
                    path,
                    call.line,
                    Category.CONFIG_MISUSE,
                    code="config_missing_key",
                )
            ]

        issues: list[Issue] = []
        if not _is_static_key(ast, call.arguments[0]):
            issues.append(
                self.issue(
                    "Config key should be a string literal for better static analysis",
                    path,
                    call.line,
                    Category.CONFIG_MISUSE,
                    Severity.INFO,
                    code="config_dynamic_key",
                )
            )
        if len(call.arguments) < 2:
            issues.append(
                self.issue(
                    f"Config {call.name}() called without a default value",
                    path,
                    call.line,
                    Category.CONFIG_MISUSE,
                    Severity.INFO,
                    code="config_no_default",
                    suggestion="Pass a default as the second argument",
                )
            )
        return issues


def _is_static_key(ast: ParsedAST, node: ts.Node) -> bool:
    if node.type in _STATIC_KEY_TYPES:
        return True
    if node.type == "binary_expression":
        operator = node.child_by_field_name("operator")
        return operator is not None and ast.get_text(operator) == "."
    return False
