"""Core AST parsing engine for PHP analysis.

This module provides a high-level interface around tree-sitter for parsing
PHP source code into ASTs and locating the call sites, literals and
declarations that the plugin analyzers inspect.

Usage::

    engine = ASTEngine()
    ast = engine.parse("<?php $this->getServer()->getPluginManager();")
    calls = engine.find_calls(ast, names={"getPluginManager"})
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

import tree_sitter as ts
import tree_sitter_php as ts_php

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Data classes for structured query results
# ---------------------------------------------------------------------------


@dataclass
class CallSite:
    """A method, static-method or function call found in the AST.

    Attributes:
        name: The called method/function name (e.g. ``"registerEvents"``).
        kind: ``"method"`` for ``$a->b()`` and ``$a?->b()``, ``"static"``
            for ``A::b()``, ``"function"`` for ``b()``.
        arguments: Value node of each argument, in order.
        line: 1-based line number.
        column: 0-based column offset.
        receiver: Source text of the object or scope the call is made on.
            ``None`` for plain function calls.
        node: The call expression node itself.
    """

    name: str
    kind: str
    arguments: list[ts.Node] = field(default_factory=list)
    line: int = 0
    column: int = 0
    receiver: str | None = None
    node: ts.Node | None = field(default=None, repr=False)


@dataclass
class ObjectCreation:
    """A ``new ClassName(...)`` expression.

    Attributes:
        class_name: The class name exactly as written (may be relative).
        arguments: Value node of each constructor argument.
        line: 1-based line number.
        node: The ``object_creation_expression`` node.
    """

    class_name: str
    arguments: list[ts.Node] = field(default_factory=list)
    line: int = 0
    node: ts.Node | None = field(default=None, repr=False)


# ---------------------------------------------------------------------------
# ParsedAST wrapper
# ---------------------------------------------------------------------------


class ParsedAST:
    """Wrapper around a tree-sitter parse tree with convenience methods.

    Attributes:
        tree: The underlying ``tree_sitter.Tree``.
        source_code: Original source string that was parsed.
        path: File the source was read from, if any.
    """

    __slots__ = ("tree", "source_code", "path", "_source_bytes", "_lines")

    def __init__(
        self,
        tree: ts.Tree,
        source_code: str,
        path: Path | None = None,
    ) -> None:
        self.tree = tree
        self.source_code = source_code
        self.path = path
        self._source_bytes: bytes = source_code.encode("utf-8")
        self._lines: list[str] | None = None

    @property
    def root_node(self) -> ts.Node:
        """Return the root node of the parse tree."""
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        """Return ``True`` if the tree contains any parse errors."""
        return self.tree.root_node.has_error

    @property
    def lines(self) -> list[str]:
        """Source lines without line terminators."""
        if self._lines is None:
            self._lines = self.source_code.splitlines()
        return self._lines

    def get_text(self, node: ts.Node) -> str:
        """Extract the source text spanned by *node*.

        Args:
            node: Any node within this parse tree.

        Returns:
            The corresponding source substring.
        """
        return self._source_bytes[node.start_byte:node.end_byte].decode(
            "utf-8", errors="replace"
        )

    def walk(
        self,
        visitor: Callable[[ts.Node, int], bool | None],
        root: ts.Node | None = None,
    ) -> None:
        """Depth-first, document-order walk of the AST.

        The *visitor* is called with ``(node, depth)`` for every node.
        If the visitor returns ``False`` explicitly, the subtree rooted
        at that node is skipped.

        Args:
            visitor: Callable receiving ``(node, depth)``. Return ``False``
                to skip children.
            root: Node to start from. Defaults to the tree root.
        """
        # Explicit stack: long concatenation chains nest deeper than the
        # interpreter's recursion limit.
        stack: list[tuple[ts.Node, int]] = [(root or self.tree.root_node, 0)]
        while stack:
            node, depth = stack.pop()
            if visitor(node, depth) is False:
                continue
            for child in reversed(node.children):
                stack.append((child, depth + 1))

    def first_error(self) -> tuple[int, str] | None:
        """Locate the first syntax error in the tree.

        Returns:
            ``(line, message)`` for the first ``ERROR`` or missing node in
            document order, or ``None`` if the tree is clean.
        """
        if not self.has_errors:
            return None

        found: list[tuple[int, str]] = []

        def _visitor(node: ts.Node, _depth: int) -> bool | None:
            if found:
                return False
            if node.type == "ERROR":
                text = self.get_text(node).strip().splitlines()
                near = text[0][:40] if text else ""
                found.append((node.start_point.row + 1, f"Syntax error, unexpected '{near}'"))
                return False
            if node.is_missing:
                found.append((node.start_point.row + 1, f"Syntax error, missing '{node.type}'"))
                return False
            if not node.has_error:
                return False
            return None

        self.walk(_visitor)
        if found:
            return found[0]
        return (1, "Syntax error")


# ---------------------------------------------------------------------------
# Node type groups
# ---------------------------------------------------------------------------

_METHOD_CALL_TYPES = frozenset({
    "member_call_expression",
    "nullsafe_member_call_expression",
})

_LITERAL_STRING_PARTS = frozenset({"string_content", "string_value", "escape_sequence"})

_SINGLE_QUOTE_ESCAPE = re.compile(r"\\([\\'])")
_DOUBLE_QUOTE_ESCAPE = re.compile(r"\\([\\\"$nrtv0])")
_DOUBLE_QUOTE_MAP = {"n": "\n", "r": "\r", "t": "\t", "v": "\v", "0": "\0"}


def _parse_int(text: str) -> int | None:
    cleaned = text.replace("_", "").lower()
    try:
        if cleaned.startswith(("0x", "0b", "0o")):
            return int(cleaned, 0)
        if len(cleaned) > 1 and cleaned.startswith("0"):
            return int(cleaned, 8)
        return int(cleaned)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# ASTEngine
# ---------------------------------------------------------------------------


class ASTEngine:
    """Core AST parsing engine for PHP.

    Initialises the tree-sitter ``Language`` lazily on first use and
    caches it, together with its parser, for the lifetime of the engine.
    A single engine is not safe to share between threads while parsing.

    Example::

        engine = ASTEngine()
        ast = engine.parse(source)
        for call in engine.find_calls(ast, names={"registerEvents"}):
            print(call.line, call.receiver)
    """

    def __init__(self) -> None:
        self._language: ts.Language | None = None
        self._parser: ts.Parser | None = None

    # ------------------------------------------------------------------
    # Language / parser initialisation
    # ------------------------------------------------------------------

    def _get_language(self) -> ts.Language:
        """Return (and cache) the tree-sitter ``Language`` for PHP."""
        if self._language is None:
            self._language = ts.Language(ts_php.language_php())
        return self._language

    def _get_parser(self) -> ts.Parser:
        """Return (and cache) a ``Parser`` configured for PHP."""
        if self._parser is None:
            self._parser = ts.Parser(language=self._get_language())
        return self._parser

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, source_code: str, path: Path | None = None) -> ParsedAST:
        """Parse *source_code* into a ``ParsedAST``.

        Tree-sitter always produces a tree; syntax errors show up as
        ``ERROR`` nodes and are reported through ``ParsedAST.has_errors``.

        Args:
            source_code: The full file contents to parse, including the
                opening ``<?php`` tag.
            path: Optional file the source came from.

        Returns:
            A ``ParsedAST`` wrapping the parse tree.
        """
        tree = self._get_parser().parse(source_code.encode("utf-8"))
        return ParsedAST(tree=tree, source_code=source_code, path=path)

    def parse_file(self, path: Path) -> ParsedAST:
        """Read and parse a PHP file.

        Raises:
            OSError: If the file cannot be read.
        """
        source = path.read_text(encoding="utf-8", errors="replace")
        return self.parse(source, path=path)

    # ------------------------------------------------------------------
    # Structured finders
    # ------------------------------------------------------------------

    def find_calls(
        self,
        ast: ParsedAST,
        names: Collection[str] | None = None,
        kinds: Collection[str] | None = None,
        root: ts.Node | None = None,
    ) -> list[CallSite]:
        """Find method, static and function calls in the AST.

        Calls whose name is computed at runtime (``$obj->$method()``) are
        not reported.

        Args:
            ast: A previously parsed AST.
            names: If given, only return calls whose name is in this set.
                Method names are compared case-insensitively, as PHP does.
            kinds: If given, only return calls of these kinds
                (``"method"``, ``"static"``, ``"function"``).
            root: Restrict the search to this subtree.

        Returns:
            A list of ``CallSite`` objects in document order.
        """
        wanted = {name.lower() for name in names} if names is not None else None
        calls: list[CallSite] = []

        def _visitor(node: ts.Node, _depth: int) -> None:
            call = self.call_site(ast, node)
            if call is None:
                return
            if wanted is not None and call.name.lower() not in wanted:
                return
            if kinds is not None and call.kind not in kinds:
                return
            calls.append(call)

        ast.walk(_visitor, root=root)
        return calls

    def find_object_creations(
        self, ast: ParsedAST, root: ts.Node | None = None
    ) -> list[ObjectCreation]:
        """Find ``new ClassName(...)`` expressions with a static class name."""
        creations: list[ObjectCreation] = []

        def _visitor(node: ts.Node, _depth: int) -> None:
            if node.type != "object_creation_expression":
                return
            creation = self.object_creation(ast, node)
            if creation is not None:
                creations.append(creation)

        ast.walk(_visitor, root=root)
        return creations

    def find_nodes_by_type(
        self,
        ast: ParsedAST,
        node_types: str | Collection[str],
        root: ts.Node | None = None,
    ) -> list[ts.Node]:
        """Return all AST nodes matching *node_types*.

        This is a low-level helper. For most use cases the higher-level
        ``find_*`` methods are preferable.

        Args:
            ast: A previously parsed AST.
            node_types: A tree-sitter node type string, or several.
            root: Restrict the search to this subtree.

        Returns:
            A list of matching ``Node`` objects.
        """
        types = {node_types} if isinstance(node_types, str) else set(node_types)
        matches: list[ts.Node] = []

        def _visitor(node: ts.Node, _depth: int) -> None:
            if node.type in types:
                matches.append(node)

        ast.walk(_visitor, root=root)
        return matches

    def walk_scoped(
        self,
        ast: ParsedAST,
        is_scope: Callable[[ts.Node], bool],
        visitor: Callable[[ts.Node, bool], T | None],
        root: ts.Node | None = None,
    ) -> tuple[T, ...]:
        """Walk the tree tracking entry into and exit from designated scopes.

        Every node is passed to *visitor* together with a flag telling
        whether it lies inside a node for which *is_scope* returned
        ``True``. The scope node itself is not inside its own scope.
        Each frame on the traversal stack carries its scope depth, so
        leaving a scope needs no bookkeeping.

        Args:
            ast: A previously parsed AST.
            is_scope: Predicate marking scope-opening nodes.
            visitor: Called with ``(node, in_scope)``; any non-``None``
                return value is collected.
            root: Node to start from. Defaults to the tree root.

        Returns:
            The collected visitor results in document order.
        """
        results: list[T] = []
        stack: list[tuple[ts.Node, int]] = [(root or ast.root_node, 0)]
        while stack:
            node, scope_depth = stack.pop()
            result = visitor(node, scope_depth > 0)
            if result is not None:
                results.append(result)
            child_depth = scope_depth + 1 if is_scope(node) else scope_depth
            for child in reversed(node.children):
                stack.append((child, child_depth))
        return tuple(results)

    # ------------------------------------------------------------------
    # Node helpers
    # ------------------------------------------------------------------

    def object_creation(self, ast: ParsedAST, node: ts.Node) -> ObjectCreation | None:
        """Describe a ``new`` expression, or ``None`` for dynamic/anonymous classes."""
        class_name: str | None = None
        args_node: ts.Node | None = None
        for child in node.named_children:
            if class_name is None and child.type in ("name", "qualified_name", "relative_name"):
                class_name = ast.get_text(child)
            elif child.type == "arguments":
                args_node = child
        if class_name is None:
            return None
        return ObjectCreation(
            class_name=class_name,
            arguments=self.argument_values(args_node),
            line=node.start_point.row + 1,
            node=node,
        )

    @staticmethod
    def argument_values(args_node: ts.Node | None) -> list[ts.Node]:
        """Return the value node of each ``argument`` under *args_node*."""
        if args_node is None:
            return []
        values: list[ts.Node] = []
        for child in args_node.named_children:
            if child.type != "argument":
                continue
            # Named arguments (``name: value``) keep the value last
            named = child.named_children
            values.append(named[-1] if named else child)
        return values

    def string_value(self, ast: ParsedAST, node: ts.Node | None) -> str | None:
        """Return the value of a constant string literal.

        Args:
            ast: The AST *node* belongs to.
            node: Any expression node.

        Returns:
            The unquoted string for single- or double-quoted literals
            without interpolation, otherwise ``None``.
        """
        if node is None or node.type not in ("string", "encapsed_string"):
            return None
        if any(child.type not in _LITERAL_STRING_PARTS for child in node.named_children):
            return None

        text = ast.get_text(node)
        if text[:1] in ("b", "B"):
            text = text[1:]
        if len(text) < 2 or text[0] != text[-1] or text[0] not in ("'", '"'):
            return None

        inner = text[1:-1]
        if text[0] == "'":
            return _SINGLE_QUOTE_ESCAPE.sub(r"\1", inner)
        return _DOUBLE_QUOTE_ESCAPE.sub(
            lambda m: _DOUBLE_QUOTE_MAP.get(m.group(1), m.group(1)), inner
        )

    def int_value(self, ast: ParsedAST, node: ts.Node | None) -> int | None:
        """Return the value of an integer literal, including ``-N``."""
        if node is None:
            return None
        if node.type == "integer":
            return _parse_int(ast.get_text(node))
        if node.type == "parenthesized_expression" and node.named_child_count == 1:
            return self.int_value(ast, node.named_children[0])
        if node.type == "unary_op_expression" and node.named_child_count == 1:
            operand = node.named_children[0]
            if operand.type != "integer":
                return None
            value = _parse_int(ast.get_text(operand))
            if value is None:
                return None
            operator = ast.get_text(node)[: operand.start_byte - node.start_byte].strip()
            if operator == "-":
                return -value
            if operator == "+":
                return value
        return None

    @staticmethod
    def line_of(node: ts.Node) -> int:
        """1-based line on which *node* starts."""
        return node.start_point.row + 1

    def method_name(self, ast: ParsedAST, node: ts.Node) -> str | None:
        """Name of a ``method_declaration`` node, else ``None``."""
        if node.type != "method_declaration":
            return None
        name_node = node.child_by_field_name("name")
        return ast.get_text(name_node) if name_node is not None else None

    def method_scope(
        self, ast: ParsedAST, names: Collection[str]
    ) -> Callable[[ts.Node], bool]:
        """Scope predicate for :meth:`walk_scoped` matching methods by name."""
        wanted = {name.lower() for name in names}

        def _is_scope(node: ts.Node) -> bool:
            name = self.method_name(ast, node)
            return name is not None and name.lower() in wanted

        return _is_scope

    # ------------------------------------------------------------------
    # Call sites
    # ------------------------------------------------------------------

    def call_site(self, ast: ParsedAST, node: ts.Node) -> CallSite | None:
        """Describe *node* if it is a call with a static name, else ``None``."""
        if node.type in _METHOD_CALL_TYPES:
            kind = "method"
            target = node.child_by_field_name("object")
        elif node.type == "scoped_call_expression":
            kind = "static"
            target = node.child_by_field_name("scope")
        elif node.type == "function_call_expression":
            kind = "function"
            target = None
        else:
            return None

        if kind == "function":
            fn_node = node.child_by_field_name("function")
            if fn_node is None or fn_node.type not in ("name", "qualified_name"):
                return None
            name = ast.get_text(fn_node).rsplit("\\", 1)[-1]
        else:
            name_node = node.child_by_field_name("name")
            if name_node is None or name_node.type != "name":
                return None
            name = ast.get_text(name_node)

        return CallSite(
            name=name,
            kind=kind,
            arguments=self.argument_values(node.child_by_field_name("arguments")),
            line=node.start_point.row + 1,
            column=node.start_point.column,
            receiver=ast.get_text(target) if target is not None else None,
            node=node,
        )
