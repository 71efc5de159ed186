"""Validation of the plugin's main (entry-point) class."""

from __future__ import annotations

from pathlib import Path

from ..issues import Category, Issue, Severity
from ..php.ast_engine import ASTEngine
from ..php.declarations import PLUGIN_BASE_CLASS, PLUGIN_INTERFACE, ClassRecord, extract_classes
from .base import BaseAnalyzer

LIFECYCLE_METHODS = ("onLoad", "onEnable", "onDisable")

# Guards against cyclic or absurdly deep inheritance chains
_MAX_INHERITANCE_DEPTH = 16


class MainClassAnalyzer(BaseAnalyzer):
    """Checks that ``main`` in plugin.yml points at a usable plugin class.

    The main class file is parsed on its own, so a broken or misplaced
    file is reported even if it falls outside the scanned source paths.
    """

    name = "MainClass"

    def analyze(self) -> list[Issue]:
        main = self.context.manifest.main
        if not main:
            return []
        main = main.strip("\\")
        main_line = self.context.manifest.line_of("main")

        expected = self.expected_path(main)
        if not expected.is_file():
            return [
                self.issue(
                    f"Main class file not found for '{main}': expected {self.relative_path(expected)}",
                    self.manifest_path,
                    main_line,
                    Category.MAIN_CLASS_MISMATCH,
                    code="main_class_not_found",
                    suggestion="Check the 'main' entry and that the file follows the namespace directory layout",
                )
            ]

        try:
            ast = ASTEngine().parse_file(expected)
        except OSError as e:
            return [
                self.issue(
                    f"Main class file could not be read: {e}",
                    expected,
                    1,
                    Category.MAIN_CLASS_MISMATCH,
                    code="main_class_unreadable",
                )
            ]

        error = ast.first_error()
        if error is not None:
            line, message = error
            return [
                self.issue(
                    f"Main class file has a syntax error: {message}",
                    expected,
                    line,
                    Category.SYNTAX_ERROR,
                    code="main_class_syntax_error",
                )
            ]

        classes = extract_classes(ast, expected)
        if not classes:
            return [
                self.issue(
                    "No class declaration found in main class file",
                    expected,
                    1,
                    Category.MAIN_CLASS_MISMATCH,
                    code="main_class_no_class",
                )
            ]

        record = next((c for c in classes if c.fqcn == main), classes[0])
        issues: list[Issue] = []

        if record.fqcn != main:
            issues.append(
                self.issue(
                    f"Main class mismatch: plugin.yml declares '{main}' but the file declares '{record.fqcn}'",
                    expected,
                    record.line,
                    Category.MAIN_CLASS_MISMATCH,
                    code="main_class_fqcn_mismatch",
                    suggestion="Make the namespace and class name match the 'main' entry",
                )
            )

        if record.is_abstract:
            issues.append(
                self.issue(
                    f"Main class '{record.fqcn}' must not be abstract",
                    expected,
                    record.line,
                    Category.MAIN_CLASS_MISMATCH,
                    code="main_class_abstract",
                )
            )

        if not self._is_plugin(record):
            issues.append(
                self.issue(
                    f"Main class '{record.fqcn}' must extend PluginBase or implement Plugin",
                    expected,
                    record.line,
                    Category.INVALID_INHERITANCE,
                    code="main_class_not_plugin",
                    suggestion="Extend pocketmine\\plugin\\PluginBase",
                )
            )

        for method_name in LIFECYCLE_METHODS:
            method = record.get_method(method_name)
            if method is not None and method.is_private:
                issues.append(
                    self.issue(
                        f"Lifecycle method {method.name}() must not be private",
                        expected,
                        method.line,
                        Category.VISIBILITY_VIOLATION,
                        Severity.WARNING,
                        code="lifecycle_method_visibility",
                        suggestion=f"Declare {method.name}() as protected",
                    )
                )

        return issues

    def expected_path(self, main: str) -> Path:
        """Map the main class name onto its file under ``src/``.

        Honors ``src-namespace-prefix`` (PSR-4 style layouts) when the
        manifest declares one.
        """
        relative = main
        prefix = self.context.manifest.get("src-namespace-prefix")
        if isinstance(prefix, str) and prefix.strip("\\"):
            prefix = prefix.strip("\\") + "\\"
            if main.startswith(prefix):
                relative = main[len(prefix):]
        return self.plugin_path / "src" / (relative.replace("\\", "/") + ".php")

    def _is_plugin(self, record: ClassRecord) -> bool:
        current: ClassRecord | None = record
        for _ in range(_MAX_INHERITANCE_DEPTH):
            if current is None:
                return False
            if any(_is_plugin_interface(name) for name in current.implements):
                return True
            superclass = current.superclass
            if superclass is None:
                return False
            if _is_plugin_base(superclass):
                return True
            current = self.context.get_class(superclass)
        return False


def _is_plugin_interface(name: str) -> bool:
    return name == PLUGIN_INTERFACE or name == "Plugin" or name.endswith("\\Plugin")


def _is_plugin_base(name: str) -> bool:
    return name == PLUGIN_BASE_CLASS or name == "PluginBase" or name.endswith("\\PluginBase")
