"""File-level PHP checks: syntax, namespaces, strict types and imports."""

from __future__ import annotations

import re
from pathlib import Path

import tree_sitter as ts

from ..issues import Category, Issue, Severity
from ..php.ast_engine import ParsedAST
from ..php.declarations import extract_imports
from ..scanner.context import SourceFile
from .base import BaseAnalyzer

_CLASS_LIKE_DECLARATIONS = frozenset({
    "class_declaration",
    "interface_declaration",
    "trait_declaration",
    "enum_declaration",
})


class PhpFileAnalyzer(BaseAnalyzer):
    """Reports syntax errors and file hygiene problems for each PHP file."""

    name = "PhpFile"

    def analyze(self) -> list[Issue]:
        issues: list[Issue] = []
        for source in self.context.source_files:
            if source.tree is None:
                issues.append(self._syntax_error(source))
                continue
            issues.extend(self._check_namespace(source.path, source.tree))
            issues.extend(self._check_strict_types(source.path, source.tree))
            issues.extend(self._check_unused_imports(source.path, source.tree))
        return issues

    def _syntax_error(self, source: SourceFile) -> Issue:
        line, message = source.parse_error or (1, "Syntax error")
        return self.issue(
            f"PHP syntax error: {message}",
            source.path,
            line,
            Category.SYNTAX_ERROR,
            code="php_syntax_error",
        )

    def _check_namespace(self, path: Path, ast: ParsedAST) -> list[Issue]:
        top_level = ast.root_node.named_children
        if any(node.type == "namespace_definition" for node in top_level):
            return []
        declaration = next((node for node in top_level if node.type in _CLASS_LIKE_DECLARATIONS), None)
        if declaration is None:
            return []
        return [
            self.issue(
                "File declares a class without a namespace",
                path,
                declaration.start_point.row + 1,
                Category.OTHER,
                Severity.WARNING,
                code="missing_namespace",
                suggestion="Add a namespace matching the file's directory under src/",
            )
        ]

    def _check_strict_types(self, path: Path, ast: ParsedAST) -> list[Issue]:
        for node in ast.root_node.named_children:
            if node.type == "declare_statement" and "strict_types" in ast.get_text(node):
                return []
        return [
            self.issue(
                "File does not declare strict_types",
                path,
                1,
                Category.OTHER,
                Severity.INFO,
                code="missing_strict_types",
                suggestion="Add declare(strict_types=1); after the opening tag",
            )
        ]

    def _check_unused_imports(self, path: Path, ast: ParsedAST) -> list[Issue]:
        imports = extract_imports(ast)
        if not imports:
            return []

        remaining = _text_without(ast, self.engine.find_nodes_by_type(ast, "namespace_use_declaration"))
        issues: list[Issue] = []
        for imported in imports:
            if re.search(rf"(?<![\w\\$]){re.escape(imported.alias)}\b", remaining, re.IGNORECASE):
                continue
            issues.append(
                self.issue(
                    f"Unused import '{imported.name}'",
                    path,
                    imported.line,
                    Category.UNUSED_IMPORT,
                    Severity.INFO,
                    code="unused_import",
                    suggestion="Remove the unused use statement",
                )
            )
        return issues


def _text_without(ast: ParsedAST, nodes: list[ts.Node]) -> str:
    """Source text with the spans of *nodes* blanked out."""
    source = ast.source_code.encode("utf-8")
    pieces: list[bytes] = []
    cursor = 0
    for node in sorted(nodes, key=lambda n: n.start_byte):
        pieces.append(source[cursor:node.start_byte])
        cursor = max(cursor, node.end_byte)
    pieces.append(source[cursor:])
    return b"\n".join(pieces).decode("utf-8", errors="replace")
