"""PHP front end: tree-sitter parsing and declaration extraction.

Quick start::

    from pmlint.php import ASTEngine, extract_classes

    engine = ASTEngine()
    ast = engine.parse(source_code)
    for record in extract_classes(ast):
        print(record.fqcn, record.superclass, sorted(record.roles))
"""

from .ast_engine import ASTEngine, CallSite, ObjectCreation, ParsedAST
from .declarations import (
    LISTENER_INTERFACE,
    PLUGIN_BASE_CLASS,
    PLUGIN_INTERFACE,
    SCHEDULER_TASK_CLASS,
    ClassRecord,
    MethodRecord,
    NameResolver,
    ParameterRecord,
    PropertyRecord,
    Role,
    UseImport,
    classify,
    extract_classes,
    extract_imports,
    is_listener_capability,
    parse_use_statement,
)

__all__ = [
    # AST engine
    "ASTEngine",
    "ParsedAST",
    "CallSite",
    "ObjectCreation",
    # Declarations
    "ClassRecord",
    "MethodRecord",
    "ParameterRecord",
    "PropertyRecord",
    "UseImport",
    "NameResolver",
    "Role",
    "classify",
    "extract_classes",
    "extract_imports",
    "is_listener_capability",
    "parse_use_statement",
    # Well-known names
    "LISTENER_INTERFACE",
    "PLUGIN_BASE_CLASS",
    "PLUGIN_INTERFACE",
    "SCHEDULER_TASK_CLASS",
]
