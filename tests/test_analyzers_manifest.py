"""Tests for the manifest, main class and file-level analyzers."""

import pytest

from pmlint.analyzers.main_class import MainClassAnalyzer
from pmlint.analyzers.php_file import PhpFileAnalyzer
from pmlint.analyzers.plugin_yml import PluginYmlAnalyzer
from pmlint.issues import Category, Severity
from pmlint.scanner.context import PluginContext
from pmlint.scanner.manifest import Manifest, load_manifest


def _codes(issues):
    return [issue.code for issue in issues]


def _manifest(**overrides):
    """Render a manifest from the default fields plus *overrides* (raw YAML values)."""
    fields = {
        "name": "TestPlugin",
        "version": "1.0.0",
        "main": "test\\plugin\\Main",
        "api": "5.0.0",
    }
    fields.update(overrides)
    return "".join(f"{key}: {value}\n" for key, value in fields.items() if value is not None)


# ===========================================================================
# PluginYml
# ===========================================================================


class TestPluginYmlAnalyzer:
    """Manifest field validation."""

    def test_valid_manifest(self, make_plugin, run_analyzer):
        """A complete manifest produces no issues."""
        assert run_analyzer(PluginYmlAnalyzer, make_plugin()) == []

    def test_outdated_api_version(self, make_plugin, run_analyzer):
        """api: "3.0.0" yields exactly one outdated-API warning."""
        root = make_plugin(manifest=_manifest(api='"3.0.0"'))
        issues = run_analyzer(PluginYmlAnalyzer, root)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.code == "outdated_api_version"
        assert issue.severity == Severity.WARNING
        assert issue.category == Category.DEPRECATED_API
        assert issue.line == 4
        assert issue.file == "plugin.yml"

    def test_api_list(self, make_plugin, run_analyzer):
        """Each entry of an api list is checked on its own."""
        root = make_plugin(manifest=_manifest(api='["3.0.0", "5.0.0", "5.0"]'))
        codes = _codes(run_analyzer(PluginYmlAnalyzer, root))
        assert codes.count("outdated_api_version") == 1
        assert codes.count("invalid_api_version_format") == 1

    def test_api_must_be_string(self, make_plugin, run_analyzer):
        """An unquoted number is not a valid API version."""
        root = make_plugin(manifest=_manifest(api="5"))
        assert _codes(run_analyzer(PluginYmlAnalyzer, root)) == ["invalid_api_version_type"]

    def test_missing_required_fields(self, make_plugin, run_analyzer):
        """Each absent required field is reported."""
        root = make_plugin(manifest="name: TestPlugin\n")
        issues = run_analyzer(PluginYmlAnalyzer, root)
        assert _codes(issues) == ["missing_required_field"] * 3
        assert {issue.message.split("'")[1] for issue in issues} == {"version", "main", "api"}

    @pytest.mark.parametrize(
        "overrides,expected",
        [
            ({"name": "My Plugin"}, ["name_with_spaces"]),
            ({"name": "bad/name"}, ["invalid_plugin_name"]),
            ({"version": "release-one"}, ["non_semver_version"]),
            ({"main": "'1Bad\\Main'"}, ["invalid_main_class_format"]),
            ({"load": "LATER"}, ["invalid_load_order"]),
            ({"load": "startup"}, []),
            ({"depend": "[123]"}, ["invalid_dependency"]),
            ({"commands": "[hello]"}, ["invalid_commands_section"]),
            ({"permissions": "just-a-string"}, ["invalid_permissions_section"]),
        ],
    )
    def test_field_checks(self, make_plugin, run_analyzer, overrides, expected):
        """Individual field formats are validated."""
        root = make_plugin(manifest=_manifest(**overrides))
        assert _codes(run_analyzer(PluginYmlAnalyzer, root)) == expected

    def test_command_definition_must_be_mapping(self, make_plugin, run_analyzer):
        """A command entry that is not a mapping is reported at its line."""
        root = make_plugin(manifest=_manifest() + "commands:\n  hello: says hi\n")
        issues = run_analyzer(PluginYmlAnalyzer, root)
        assert _codes(issues) == ["invalid_command_definition"]
        assert issues[0].line == 6

    def test_non_mapping_manifest(self, make_plugin, run_analyzer):
        """A manifest that is not a mapping stops further checks."""
        root = make_plugin(manifest="- just\n- a list\n")
        assert _codes(run_analyzer(PluginYmlAnalyzer, root)) == ["invalid_plugin_yml_structure"]

    def test_lenient_parse_error_reported(self, make_plugin):
        """With lenient loading the YAML error becomes an issue."""
        root = make_plugin(manifest=_manifest() + "depend: [unclosed\n")
        manifest = load_manifest(root / "plugin.yml", lenient=True)
        issues = PluginYmlAnalyzer(root, PluginContext(root, manifest)).analyze()
        assert "yaml_syntax_error" in _codes(issues)

    def test_missing_manifest(self, tmp_path):
        """A placeholder manifest reports the missing file."""
        context = PluginContext(tmp_path, Manifest.missing(tmp_path / "plugin.yml"))
        issues = PluginYmlAnalyzer(tmp_path, context).analyze()
        assert _codes(issues) == ["plugin_yml_missing"]


# ===========================================================================
# MainClass
# ===========================================================================


class TestMainClassAnalyzer:
    """Entry-point class validation."""

    def test_valid_main_class(self, make_plugin, run_analyzer):
        """A PluginBase subclass at the expected path is accepted."""
        assert run_analyzer(MainClassAnalyzer, make_plugin()) == []

    def test_main_file_not_found(self, make_plugin, run_analyzer):
        """A main entry without a matching file is reported at the main key."""
        root = make_plugin(with_main=False)
        issues = run_analyzer(MainClassAnalyzer, root)
        assert _codes(issues) == ["main_class_not_found"]
        assert issues[0].line == 3
        assert "src/test/plugin/Main.php" in issues[0].message

    def test_abstract_and_not_plugin(self, make_plugin, run_analyzer):
        """An abstract class that is not a plugin gets both issues."""
        root = make_plugin(files={
            "src/test/plugin/Main.php": "<?php\nnamespace test\\plugin;\nabstract class Main {}\n",
        })
        assert _codes(run_analyzer(MainClassAnalyzer, root)) == [
            "main_class_abstract",
            "main_class_not_plugin",
        ]

    def test_fqcn_mismatch(self, make_plugin, run_analyzer):
        """A file declaring a different namespace is a mismatch."""
        root = make_plugin(files={
            "src/test/plugin/Main.php": (
                "<?php\nnamespace other;\nuse pocketmine\\plugin\\PluginBase;\n"
                "class Main extends PluginBase {}\n"
            ),
        })
        assert _codes(run_analyzer(MainClassAnalyzer, root)) == ["main_class_fqcn_mismatch"]

    def test_private_lifecycle_method(self, make_plugin, run_analyzer):
        """Private lifecycle methods are a visibility warning."""
        root = make_plugin(files={
            "src/test/plugin/Main.php": (
                "<?php\nnamespace test\\plugin;\nuse pocketmine\\plugin\\PluginBase;\n"
                "class Main extends PluginBase {\n    private function onEnable(): void {}\n}\n"
            ),
        })
        issues = run_analyzer(MainClassAnalyzer, root)
        assert _codes(issues) == ["lifecycle_method_visibility"]
        assert issues[0].severity == Severity.WARNING
        assert issues[0].line == 5

    def test_syntax_error(self, make_plugin, run_analyzer):
        """A main file that does not parse is reported as a syntax error."""
        root = make_plugin(files={"src/test/plugin/Main.php": "<?php\nclass Main {\n    function ( {\n"})
        issues = run_analyzer(MainClassAnalyzer, root)
        assert _codes(issues) == ["main_class_syntax_error"]
        assert issues[0].category == Category.SYNTAX_ERROR

    def test_indirect_plugin_base(self, make_plugin, run_analyzer):
        """Inheriting PluginBase through a project class is accepted."""
        root = make_plugin(files={
            "src/test/plugin/Main.php": "<?php\nnamespace test\\plugin;\nclass Main extends BasePlugin {}\n",
            "src/test/plugin/BasePlugin.php": (
                "<?php\nnamespace test\\plugin;\nuse pocketmine\\plugin\\PluginBase;\n"
                "abstract class BasePlugin extends PluginBase {}\n"
            ),
        })
        assert run_analyzer(MainClassAnalyzer, root) == []

    def test_namespace_prefix(self, make_plugin, run_analyzer):
        """src-namespace-prefix maps the main class to a shorter path."""
        root = make_plugin(
            manifest=_manifest() + "src-namespace-prefix: test\\plugin\n",
            files={
                "src/Main.php": (
                    "<?php\nnamespace test\\plugin;\nuse pocketmine\\plugin\\PluginBase;\n"
                    "class Main extends PluginBase {}\n"
                ),
            },
            with_main=False,
        )
        assert run_analyzer(MainClassAnalyzer, root) == []


# ===========================================================================
# PhpFile
# ===========================================================================


class TestPhpFileAnalyzer:
    """File-level hygiene checks."""

    def test_clean_file(self, make_plugin, run_analyzer):
        """The default main class is clean."""
        assert run_analyzer(PhpFileAnalyzer, make_plugin()) == []

    def test_syntax_error(self, make_plugin, run_analyzer):
        """Unparseable files are reported once and skip other checks."""
        root = make_plugin(files={"src/Broken.php": "<?php\n\nclass Broken {\n    function ( {\n"})
        issues = run_analyzer(PhpFileAnalyzer, root)
        assert _codes(issues) == ["php_syntax_error"]
        assert issues[0].file == "src/Broken.php"
        assert issues[0].line >= 3

    def test_missing_namespace_and_strict_types(self, make_plugin, run_analyzer):
        """A bare class file lacks both a namespace and strict_types."""
        root = make_plugin(files={"src/Bare.php": "<?php\nclass Bare {}\n"})
        issues = run_analyzer(PhpFileAnalyzer, root)
        assert _codes(issues) == ["missing_namespace", "missing_strict_types"]
        assert issues[0].line == 2
        assert issues[1].severity == Severity.INFO

    def test_unused_import(self, make_plugin, run_analyzer):
        """Imports never referenced in the file are reported."""
        root = make_plugin(files={
            "src/test/plugin/Util.php": (
                "<?php\ndeclare(strict_types=1);\nnamespace test\\plugin;\n"
                "use pocketmine\\player\\Player;\nuse pocketmine\\Server;\n"
                "class Util {\n    public function f(): void { Server::getInstance(); }\n}\n"
            ),
        })
        issues = run_analyzer(PhpFileAnalyzer, root)
        assert _codes(issues) == ["unused_import"]
        assert "pocketmine\\player\\Player" in issues[0].message
        assert issues[0].line == 4
        assert issues[0].category == Category.UNUSED_IMPORT
