"""Tests for class, method and import extraction and name resolution."""

import pytest

from pmlint.php.ast_engine import ASTEngine
from pmlint.php.declarations import (
    LISTENER_INTERFACE,
    NameResolver,
    Role,
    UseImport,
    classify,
    extract_classes,
    extract_imports,
    parse_use_statement,
)


@pytest.fixture
def engine():
    return ASTEngine()


LISTENER_SOURCE = """<?php

namespace test\\plugin;

use pocketmine\\event\\Listener;
use pocketmine\\event\\player\\PlayerJoinEvent as JoinEvent;

final class JoinListener implements Listener {
    private int $joins = 0;
    public static ?string $last = null;

    /**
     * @priority HIGH
     */
    public function onJoin(JoinEvent $event): void {
    }

    protected function helper(int $a, ?string $b = null, ...$rest): ?self {
        return null;
    }
}

abstract class Base {
}
"""


# ===========================================================================
# Class records
# ===========================================================================


class TestExtractClasses:
    """ClassRecord construction from a parsed file."""

    @pytest.fixture
    def records(self, engine):
        return extract_classes(engine.parse(LISTENER_SOURCE))

    def test_multiple_classes_per_file(self, records):
        """Each class declaration gets its own record in order."""
        assert [record.fqcn for record in records] == ["test\\plugin\\JoinListener", "test\\plugin\\Base"]

    def test_interfaces_resolved(self, records):
        """Imported interface names are resolved to fully-qualified names."""
        listener = records[0]
        assert listener.implements == (LISTENER_INTERFACE,)
        assert listener.has_role(Role.LISTENER)
        assert listener.is_final
        assert not listener.is_abstract

    def test_abstract_flag(self, records):
        """Abstract classes are flagged."""
        assert records[1].is_abstract
        assert records[1].roles == frozenset()

    def test_method_record(self, records):
        """Method parameters, types and doc comments are captured."""
        method = records[0].get_method("onJoin")
        assert method.is_public
        assert method.return_type == "void"
        assert method.first_parameter_type == "pocketmine\\event\\player\\PlayerJoinEvent"
        assert "@priority HIGH" in method.doc_comment

    def test_method_modifiers_and_parameters(self, records):
        """Visibility, defaults, variadics and nullable types are recorded."""
        helper = records[0].get_method("HELPER")
        assert helper.visibility == "protected"
        assert [p.name for p in helper.parameters] == ["a", "b", "rest"]
        assert helper.parameters[0].type == "int"
        assert helper.parameters[1].type == "?string"
        assert helper.parameters[1].has_default
        assert helper.parameters[2].is_variadic
        assert helper.return_type == "?self"

    def test_properties(self, records):
        """Property records keep type, visibility and static flag."""
        properties = records[0].properties
        assert properties["joins"].visibility == "private"
        assert properties["joins"].type == "int"
        assert properties["last"].is_static

    def test_last_method_declaration_wins(self, engine):
        """A duplicated method name keeps the later declaration."""
        ast = engine.parse("<?php class A { function f() {} function f($x) {} }")
        record = extract_classes(ast)[0]
        assert len(record.get_method("f").parameters) == 1

    def test_braced_namespace(self, engine):
        """Classes in braced namespaces are qualified by their own block."""
        ast = engine.parse("<?php namespace a { class X {} } namespace b { class Y extends \\a\\X {} }")
        records = extract_classes(ast)
        assert [record.fqcn for record in records] == ["a\\X", "b\\Y"]
        assert records[1].superclass == "a\\X"

    def test_global_namespace(self, engine):
        """Classes without a namespace keep their short name."""
        record = extract_classes(engine.parse("<?php class Plain extends Other {}"))[0]
        assert record.fqcn == "Plain"
        assert record.superclass == "Other"


# ===========================================================================
# Roles
# ===========================================================================


class TestClassify:
    """Role inference from names."""

    @pytest.mark.parametrize(
        "superclass,implemented,expected",
        [
            (None, [LISTENER_INTERFACE], {Role.LISTENER}),
            ("pocketmine\\command\\Command", [], {Role.COMMAND}),
            ("my\\BaseCommand", [], {Role.COMMAND}),
            ("pocketmine\\scheduler\\AsyncTask", [], {Role.ASYNC_TASK}),
            ("pocketmine\\scheduler\\Task", [], {Role.TASK}),
            ("my\\Thing", [], set()),
        ],
    )
    def test_roles(self, superclass, implemented, expected):
        """Roles follow superclass suffixes and the listener capability."""
        assert classify(superclass, implemented) == frozenset(expected)

    def test_async_task_is_not_a_scheduler_task(self):
        """AsyncTask subclasses only get the async role."""
        assert Role.TASK not in classify("pocketmine\\scheduler\\AsyncTask", [])


# ===========================================================================
# Imports and resolution
# ===========================================================================


class TestUseStatements:
    """Parsing of use statements."""

    def test_simple_and_alias(self):
        """Plain and aliased imports."""
        imports = parse_use_statement("use a\\b\\C as D, e\\F;", line=4)
        assert imports == [
            UseImport(name="a\\b\\C", alias="D", kind="class", line=4),
            UseImport(name="e\\F", alias="F", kind="class", line=4),
        ]

    def test_group_use(self):
        """Group imports are expanded with their prefix."""
        imports = parse_use_statement("use pocketmine\\event\\{Listener, Event as E};")
        assert [(i.name, i.alias) for i in imports] == [
            ("pocketmine\\event\\Listener", "Listener"),
            ("pocketmine\\event\\Event", "E"),
        ]

    def test_function_and_const(self):
        """Function and const imports keep their kind."""
        assert parse_use_statement("use function a\\b;")[0].kind == "function"
        assert parse_use_statement("use const pocketmine\\RESOURCE_PATH;")[0].kind == "const"

    def test_extract_imports_skips_trait_use(self, engine):
        """Trait use inside a class body is not an import."""
        ast = engine.parse("<?php use a\\B; class C { use T; }")
        assert [i.name for i in extract_imports(ast)] == ["a\\B"]


class TestNameResolver:
    """Compile-time class name resolution."""

    def test_resolution(self):
        """Imports, namespace and leading backslashes resolve as PHP does."""
        resolver = NameResolver("my\\ns")
        resolver.add_import(UseImport(name="pocketmine\\player\\Player", alias="Player"))
        assert resolver.resolve_class("Player") == "pocketmine\\player\\Player"
        assert resolver.resolve_class("\\Other") == "Other"
        assert resolver.resolve_class("Local") == "my\\ns\\Local"
        assert resolver.resolve_class("self") == "self"

    def test_resolve_type(self):
        """Union and nullable types resolve each class name."""
        resolver = NameResolver("ns")
        assert resolver.resolve_type("?Foo") == "?ns\\Foo"
        assert resolver.resolve_type("int|Bar") == "int|ns\\Bar"
        assert resolver.resolve_type(None) is None
