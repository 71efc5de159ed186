"""Class, method and import declarations extracted from PHP syntax trees.

Names are resolved the way PHP resolves them at compile time: ``use``
imports (including aliases and group imports) and the enclosing
namespace turn relative class names in ``extends``/``implements`` clauses
and type declarations into fully-qualified names without a leading
backslash.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import tree_sitter as ts

from .ast_engine import ParsedAST

logger = logging.getLogger(__name__)

LISTENER_INTERFACE = "pocketmine\\event\\Listener"
PLUGIN_INTERFACE = "pocketmine\\plugin\\Plugin"
PLUGIN_BASE_CLASS = "pocketmine\\plugin\\PluginBase"
SCHEDULER_TASK_CLASS = "pocketmine\\scheduler\\Task"

_BUILTIN_TYPES = frozenset({
    "array", "bool", "boolean", "callable", "double", "false", "float",
    "int", "integer", "iterable", "mixed", "never", "null", "object",
    "parent", "resource", "self", "static", "string", "true", "void",
})

_SPECIAL_CLASS_NAMES = frozenset({"self", "static", "parent"})

_USE_STATEMENT = re.compile(r"^use\s+(?:(function|const)\s+)?(.*?);?\s*$", re.IGNORECASE | re.DOTALL)
_USE_ITEM = re.compile(r"^(?:(function|const)\s+)?\\?([\w\\]+)(?:\s+as\s+(\w+))?$", re.IGNORECASE)
_TYPE_NAME = re.compile(r"\\?[^\W\d][\w\\]*")

_CLASS_NAME_NODES = ("name", "qualified_name")
_PARAMETER_NODES = ("simple_parameter", "variadic_parameter", "property_promotion_parameter")


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class Role(str, Enum):
    """Structural roles inferred from a class's superclass and interfaces."""

    LISTENER = "listener"
    COMMAND = "command"
    ASYNC_TASK = "async_task"
    TASK = "task"


def is_listener_capability(name: str) -> bool:
    return name == LISTENER_INTERFACE or name == "Listener" or name.endswith("\\Listener")


def classify(superclass: str | None, implemented: tuple[str, ...] | list[str]) -> frozenset[Role]:
    """Infer the roles of a class from names alone.

    Membership is a name match, not a type check: a class extending some
    unrelated ``FooCommand`` is still a command candidate.

    Args:
        superclass: Fully-qualified superclass name, if any.
        implemented: Fully-qualified names of implemented interfaces.

    Returns:
        The set of roles the class plays.
    """
    roles: set[Role] = set()
    if any(is_listener_capability(name) for name in implemented):
        roles.add(Role.LISTENER)
    if superclass:
        if superclass.endswith("Command"):
            roles.add(Role.COMMAND)
        if superclass.endswith("AsyncTask"):
            roles.add(Role.ASYNC_TASK)
        elif superclass in (SCHEDULER_TASK_CLASS, "Task") or superclass.endswith("\\Task"):
            roles.add(Role.TASK)
    return frozenset(roles)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParameterRecord:
    """A declared method parameter.

    Attributes:
        name: Variable name without the leading ``$``.
        type: Resolved declared type, or ``None`` when untyped.
        has_default: Whether the parameter declares a default value.
        is_variadic: ``True`` for ``...$rest`` parameters.
    """

    name: str
    type: str | None = None
    has_default: bool = False
    is_variadic: bool = False


@dataclass(frozen=True)
class MethodRecord:
    """A method declared in a class body.

    Attributes:
        name: Method name as declared.
        line: 1-based line of the declaration.
        parameters: Declared parameters in order.
        return_type: Resolved declared return type, if any.
        visibility: ``"public"``, ``"protected"`` or ``"private"``.
        is_static: Whether the method is static.
        is_abstract: Whether the method is abstract.
        doc_comment: The ``/** ... */`` block directly above the method.
        node: The ``method_declaration`` node.
    """

    name: str
    line: int
    parameters: tuple[ParameterRecord, ...] = ()
    return_type: str | None = None
    visibility: str = "public"
    is_static: bool = False
    is_abstract: bool = False
    doc_comment: str | None = None
    node: ts.Node | None = field(default=None, repr=False, compare=False)

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"

    @property
    def is_private(self) -> bool:
        return self.visibility == "private"

    @property
    def first_parameter_type(self) -> str | None:
        return self.parameters[0].type if self.parameters else None


@dataclass(frozen=True)
class PropertyRecord:
    """A property declared in a class body."""

    name: str
    line: int
    type: str | None = None
    visibility: str = "public"
    is_static: bool = False
    is_readonly: bool = False


@dataclass(frozen=True)
class ClassRecord:
    """A class declaration and everything the analyzers need to know about it.

    Attributes:
        fqcn: Fully-qualified class name without leading backslash.
        name: Short class name.
        file: File the class is declared in.
        line: 1-based line of the declaration.
        superclass: Resolved superclass name, if any.
        implements: Resolved interface names in declaration order.
        is_abstract: Whether the class is abstract.
        is_final: Whether the class is final.
        methods: Method name to record; the last declaration wins.
        properties: Property name (without ``$``) to record.
        roles: Roles inferred by :func:`classify`.
        node: The ``class_declaration`` node.
    """

    fqcn: str
    name: str
    file: Path | None
    line: int
    superclass: str | None = None
    implements: tuple[str, ...] = ()
    is_abstract: bool = False
    is_final: bool = False
    methods: dict[str, MethodRecord] = field(default_factory=dict)
    properties: dict[str, PropertyRecord] = field(default_factory=dict)
    roles: frozenset[Role] = frozenset()
    node: ts.Node | None = field(default=None, repr=False, compare=False)

    def get_method(self, name: str) -> MethodRecord | None:
        """Look up a method by name, case-insensitively as PHP does."""
        method = self.methods.get(name)
        if method is not None:
            return method
        lowered = name.lower()
        for candidate in self.methods.values():
            if candidate.name.lower() == lowered:
                return candidate
        return None

    def has_method(self, name: str) -> bool:
        return self.get_method(name) is not None

    def has_role(self, role: Role) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class UseImport:
    """One imported name from a ``use`` statement.

    Attributes:
        name: Fully-qualified imported name.
        alias: The local name (explicit ``as`` alias or last segment).
        kind: ``"class"``, ``"function"`` or ``"const"``.
        line: 1-based line of the ``use`` statement.
    """

    name: str
    alias: str
    kind: str = "class"
    line: int = 0


# ---------------------------------------------------------------------------
# Name resolution
# ---------------------------------------------------------------------------


class NameResolver:
    """Resolve class names against a namespace and its ``use`` imports."""

    def __init__(self, namespace: str | None = None) -> None:
        self.namespace = namespace or None
        self._aliases: dict[str, str] = {}

    def add_import(self, imported: UseImport) -> None:
        if imported.kind == "class":
            self._aliases[imported.alias.lower()] = imported.name

    def resolve_class(self, name: str) -> str:
        """Resolve a class reference to its fully-qualified name."""
        name = name.strip()
        if not name:
            return name
        if name.startswith("\\"):
            return name[1:]
        if name.lower() in _SPECIAL_CLASS_NAMES:
            return name
        if name.lower().startswith("namespace\\"):
            return self._qualify(name[len("namespace\\"):])

        head, _, rest = name.partition("\\")
        imported = self._aliases.get(head.lower())
        if imported is not None:
            return f"{imported}\\{rest}" if rest else imported
        return self._qualify(name)

    def resolve_type(self, type_text: str | None) -> str | None:
        """Resolve every class name inside a type declaration.

        Handles nullable (``?Foo``), union, intersection and DNF types;
        builtin types are left untouched.
        """
        if not type_text:
            return None
        compact = re.sub(r"\s+", "", type_text)

        def _resolve(match: re.Match[str]) -> str:
            word = match.group(0)
            if word.lower() in _BUILTIN_TYPES:
                return word
            return self.resolve_class(word)

        return _TYPE_NAME.sub(_resolve, compact)

    def _qualify(self, name: str) -> str:
        return f"{self.namespace}\\{name}" if self.namespace else name


def parse_use_statement(text: str, line: int = 0) -> list[UseImport]:
    """Split the source of a ``use`` statement into its imported names.

    Args:
        text: Source text of a ``namespace_use_declaration`` node.
        line: 1-based line to record on each import.

    Returns:
        One ``UseImport`` per imported name.
    """
    match = _USE_STATEMENT.match(text.strip())
    if match is None:
        return []
    default_kind = (match.group(1) or "class").lower()
    body = match.group(2).strip()

    prefix = ""
    if "{" in body:
        prefix, _, group = body.partition("{")
        prefix = prefix.strip().strip("\\")
        items = group.rstrip("} \t\r\n").split(",")
    else:
        items = body.split(",")

    imports: list[UseImport] = []
    for raw in items:
        item = raw.strip()
        if not item:
            continue
        item_match = _USE_ITEM.match(item)
        if item_match is None:
            continue
        kind = (item_match.group(1) or default_kind).lower()
        name = item_match.group(2).strip("\\")
        if prefix:
            name = f"{prefix}\\{name}"
        alias = item_match.group(3) or name.rsplit("\\", 1)[-1]
        imports.append(UseImport(name=name, alias=alias, kind=kind, line=line))
    return imports


def extract_imports(ast: ParsedAST) -> list[UseImport]:
    """Return every namespace-level ``use`` import in the file."""
    imports: list[UseImport] = []

    def _visitor(node: ts.Node, _depth: int) -> bool | None:
        if node.type == "namespace_use_declaration":
            imports.extend(parse_use_statement(ast.get_text(node), node.start_point.row + 1))
            return False
        # Trait ``use`` inside class bodies is a different node type
        if node.type in ("class_declaration", "function_definition"):
            return False
        return None

    ast.walk(_visitor)
    return imports


# ---------------------------------------------------------------------------
# Class extraction
# ---------------------------------------------------------------------------


def extract_classes(ast: ParsedAST, path: Path | None = None) -> list[ClassRecord]:
    """Extract every top-level and namespaced class declared in *ast*.

    Both ``namespace Foo;`` and ``namespace Foo { ... }`` forms are
    supported. Classes declared conditionally (inside functions or
    ``if`` blocks) are not extracted.

    Args:
        ast: A parsed PHP file.
        path: File to record on each class. Defaults to ``ast.path``.

    Returns:
        One ``ClassRecord`` per class, in declaration order.
    """
    path = path if path is not None else ast.path
    records: list[ClassRecord] = []
    resolver = NameResolver()

    for node in ast.root_node.named_children:
        if node.type == "namespace_definition":
            name_node = node.child_by_field_name("name")
            namespace = ast.get_text(name_node).strip("\\") if name_node is not None else None
            body = node.child_by_field_name("body")
            if body is None:
                # ``namespace Foo;`` applies to the statements that follow
                resolver = NameResolver(namespace)
            else:
                scoped = NameResolver(namespace)
                for inner in body.named_children:
                    _extract_statement(ast, inner, scoped, path, records)
                resolver = NameResolver()
            continue
        _extract_statement(ast, node, resolver, path, records)

    return records


def _extract_statement(
    ast: ParsedAST,
    node: ts.Node,
    resolver: NameResolver,
    path: Path | None,
    records: list[ClassRecord],
) -> None:
    if node.type == "namespace_use_declaration":
        for imported in parse_use_statement(ast.get_text(node), node.start_point.row + 1):
            resolver.add_import(imported)
    elif node.type == "class_declaration":
        record = _build_class(ast, node, resolver, path)
        if record is not None:
            records.append(record)


def _build_class(
    ast: ParsedAST,
    node: ts.Node,
    resolver: NameResolver,
    path: Path | None,
) -> ClassRecord | None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    name = ast.get_text(name_node)
    fqcn = f"{resolver.namespace}\\{name}" if resolver.namespace else name

    superclass: str | None = None
    implements: list[str] = []
    is_abstract = False
    is_final = False
    for child in node.children:
        if child.type == "base_clause":
            names = [c for c in child.named_children if c.type in _CLASS_NAME_NODES]
            if names:
                superclass = resolver.resolve_class(ast.get_text(names[0]))
        elif child.type == "class_interface_clause":
            implements.extend(
                resolver.resolve_class(ast.get_text(c))
                for c in child.named_children
                if c.type in _CLASS_NAME_NODES
            )
        elif child.type == "abstract_modifier":
            is_abstract = True
        elif child.type == "final_modifier":
            is_final = True

    methods: dict[str, MethodRecord] = {}
    properties: dict[str, PropertyRecord] = {}
    body = node.child_by_field_name("body")
    if body is not None:
        for member in body.named_children:
            if member.type == "method_declaration":
                method = _build_method(ast, member, resolver)
                if method is not None:
                    methods[method.name] = method
            elif member.type == "property_declaration":
                for prop in _build_properties(ast, member, resolver):
                    properties[prop.name] = prop

    return ClassRecord(
        fqcn=fqcn,
        name=name,
        file=path,
        line=node.start_point.row + 1,
        superclass=superclass,
        implements=tuple(implements),
        is_abstract=is_abstract,
        is_final=is_final,
        methods=methods,
        properties=properties,
        roles=classify(superclass, implements),
        node=node,
    )


def _modifiers(ast: ParsedAST, node: ts.Node) -> tuple[str, set[str]]:
    """Return ``(visibility, other_modifier_types)`` for a member declaration."""
    visibility = "public"
    others: set[str] = set()
    for child in node.children:
        if child.type == "visibility_modifier":
            visibility = ast.get_text(child).strip().lower()
        elif child.type.endswith("_modifier"):
            others.add(child.type)
    return visibility, others


def _build_method(ast: ParsedAST, node: ts.Node, resolver: NameResolver) -> MethodRecord | None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    visibility, modifiers = _modifiers(ast, node)

    parameters: list[ParameterRecord] = []
    params_node = node.child_by_field_name("parameters")
    if params_node is not None:
        for param in params_node.named_children:
            if param.type not in _PARAMETER_NODES:
                continue
            param_name = param.child_by_field_name("name")
            type_node = param.child_by_field_name("type")
            parameters.append(
                ParameterRecord(
                    name=ast.get_text(param_name).lstrip("&$") if param_name is not None else "",
                    type=resolver.resolve_type(ast.get_text(type_node)) if type_node is not None else None,
                    has_default=param.child_by_field_name("default_value") is not None,
                    is_variadic=param.type == "variadic_parameter",
                )
            )

    return_node = node.child_by_field_name("return_type")
    return MethodRecord(
        name=ast.get_text(name_node),
        line=node.start_point.row + 1,
        parameters=tuple(parameters),
        return_type=resolver.resolve_type(ast.get_text(return_node)) if return_node is not None else None,
        visibility=visibility,
        is_static="static_modifier" in modifiers,
        is_abstract="abstract_modifier" in modifiers,
        doc_comment=_doc_comment(ast, node),
        node=node,
    )


def _build_properties(ast: ParsedAST, node: ts.Node, resolver: NameResolver) -> list[PropertyRecord]:
    visibility, modifiers = _modifiers(ast, node)
    type_node = node.child_by_field_name("type")
    prop_type = resolver.resolve_type(ast.get_text(type_node)) if type_node is not None else None

    records: list[PropertyRecord] = []
    for element in node.named_children:
        if element.type != "property_element":
            continue
        var_node = element.child_by_field_name("name")
        if var_node is None:
            var_node = next((c for c in element.named_children if c.type == "variable_name"), None)
        if var_node is None:
            continue
        records.append(
            PropertyRecord(
                name=ast.get_text(var_node).lstrip("$"),
                line=element.start_point.row + 1,
                type=prop_type,
                visibility=visibility,
                is_static="static_modifier" in modifiers,
                is_readonly="readonly_modifier" in modifiers,
            )
        )
    return records


def _doc_comment(ast: ParsedAST, node: ts.Node) -> str | None:
    """Return the nearest ``/** */`` comment directly above *node*."""
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "comment":
        text = ast.get_text(sibling)
        if text.startswith("/**"):
            return text
        sibling = sibling.prev_named_sibling
    return None
