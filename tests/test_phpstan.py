"""Tests for the PHPStan adapter."""

import json
import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from pmlint.analyzers.phpstan import (
    PHPStanAnalyzer,
    categorize_message,
    determine_severity,
    parse_phpstan_output,
)
from pmlint.issues import Category, Severity


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0):
    return subprocess.CompletedProcess(args=["phpstan"], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def analyzer(make_plugin, build_context):
    """PHPStan adapter over the default plugin."""
    root = make_plugin()
    return PHPStanAnalyzer(root, build_context(root))


# ===========================================================================
# Message mapping
# ===========================================================================


class TestCategorizeMessage:
    """Message text to category."""

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Undefined variable: $foo", Category.UNDEFINED_VARIABLE),
            ("Call to an undefined method test\\Foo::bar().", Category.UNDEFINED_METHOD),
            ("Class test\\Missing not found.", Category.UNDEFINED_CLASS),
            ("Function helper not found.", Category.UNDEFINED_FUNCTION),
            (
                "Parameter #1 $x of method test\\Foo::bar() expects int, string given.",
                Category.PARAMETER_TYPE,
            ),
            ("Method test\\Foo::bar() should return int but returns string.", Category.RETURN_TYPE),
            ("Method test\\Foo::bar() should return int but return statement is missing.", Category.MISSING_RETURN),
            ("Unreachable statement - code above always terminates.", Category.DEAD_CODE),
            ("Cannot call method getName() on null.", Category.NULL_SAFETY),
            ("Something PHPStan says that nobody anticipated.", Category.OTHER),
        ],
    )
    def test_categories(self, message, expected):
        """Known message shapes map onto their categories."""
        assert categorize_message(message) == expected


class TestDetermineSeverity:
    """Severity from the ignorable flag and wording."""

    def test_not_ignorable_is_error(self):
        """Non-ignorable findings are always errors."""
        assert determine_severity({"message": "Variable might be unused", "ignorable": False}) == Severity.ERROR

    def test_soft_wording_is_warning(self):
        """Hedged or deprecation messages are warnings."""
        assert determine_severity({"message": "Variable $x might not be defined.", "ignorable": True}) == Severity.WARNING
        assert determine_severity({"message": "Call to deprecated method foo()."}) == Severity.WARNING

    def test_default_is_error(self):
        """Everything else is an error."""
        assert determine_severity({"message": "Call to an undefined method foo()."}) == Severity.ERROR


class TestParsePhpstanOutput:
    """JSON report extraction."""

    def test_plain_report(self):
        """A clean JSON document is decoded."""
        assert parse_phpstan_output('{"totals": {"errors": 0}}') == {"totals": {"errors": 0}}

    def test_report_after_noise(self):
        """Leading chatter is skipped in favour of the last JSON line."""
        output = 'Note: Using configuration file\n{"files": {}}\n'
        assert parse_phpstan_output(output) == {"files": {}}

    @pytest.mark.parametrize("output", ["", "   \n", "not json", "[1, 2]"])
    def test_no_report(self, output):
        """Empty or non-object output yields None."""
        assert parse_phpstan_output(output) is None


# ===========================================================================
# Adapter
# ===========================================================================


class TestPHPStanAnalyzer:
    """Binary discovery, execution and report parsing."""

    def test_level_is_clamped(self, make_plugin, build_context):
        """Levels outside 1-9 are clamped."""
        root = make_plugin()
        context = build_context(root)
        assert PHPStanAnalyzer(root, context, level=12).level == 9
        assert PHPStanAnalyzer(root, context, level=0).level == 1
        assert PHPStanAnalyzer(root, context).level == 6

    def test_find_binary_prefers_plugin_vendor(self, analyzer):
        """An executable vendor/bin/phpstan inside the plugin wins."""
        binary = analyzer.plugin_path / "vendor" / "bin" / "phpstan"
        binary.parent.mkdir(parents=True)
        binary.write_text("#!/bin/sh\n")
        binary.chmod(0o755)
        assert analyzer.find_binary() == str(binary)

    def test_find_binary_falls_back_to_path(self, analyzer):
        """Without candidates the PATH lookup decides."""
        with patch.object(PHPStanAnalyzer, "candidate_paths", return_value=[]), \
                patch("pmlint.analyzers.phpstan.shutil.which", return_value="/opt/phpstan") as mock_which:
            assert analyzer.find_binary() == "/opt/phpstan"
            mock_which.assert_called_once_with("phpstan")

    def test_binary_not_found(self, analyzer):
        """A missing binary is a single informational issue."""
        with patch.object(PHPStanAnalyzer, "find_binary", return_value=None):
            issues = analyzer.analyze()
        assert len(issues) == 1
        assert issues[0].code == "phpstan_not_found"
        assert issues[0].severity == Severity.INFO
        assert issues[0].file == "composer.json"

    def test_binary_not_found_without_sources(self, make_plugin, build_context):
        """A missing binary is reported even when there is nothing to analyse."""
        root = make_plugin(with_main=False)
        analyzer = PHPStanAnalyzer(root, build_context(root))
        with patch.object(PHPStanAnalyzer, "find_binary", return_value=None):
            issues = analyzer.analyze()
        assert [issue.code for issue in issues] == ["phpstan_not_found"]

    def test_no_source_directories(self, make_plugin, build_context):
        """Nothing to analyse means no run and no issues."""
        root = make_plugin(with_main=False)
        analyzer = PHPStanAnalyzer(root, build_context(root))
        with patch.object(PHPStanAnalyzer, "find_binary", return_value="/opt/phpstan"), \
                patch("pmlint.analyzers.phpstan.subprocess.run") as mock_run:
            assert analyzer.analyze() == []
            mock_run.assert_not_called()

    def test_build_config(self, analyzer, tmp_path):
        """The config lists level, paths and any stubs."""
        stubs = tmp_path / "stubs"
        stubs.mkdir()
        (stubs / "Server.php").write_text("<?php\n")
        analyzer.stubs_path = stubs
        config = analyzer.build_config(analyzer.source_directories())
        assert "    level: 6" in config
        assert f"        - {analyzer.plugin_path / 'src'}" in config
        assert "    scanDirectories:" in config
        assert f"        - {stubs / 'Server.php'}" in config

    def test_report_is_parsed_and_config_removed(self, analyzer):
        """Report entries become issues; the temporary config is deleted afterwards."""
        main = analyzer.plugin_path / "src" / "test" / "plugin" / "Main.php"
        report = {
            "totals": {"errors": 0, "file_errors": 2},
            "files": {
                str(main): {
                    "errors": 2,
                    "messages": [
                        {
                            "message": "Call to an undefined method test\\plugin\\Main::nope().",
                            "line": 10,
                            "ignorable": True,
                            "identifier": "method.notFound",
                        },
                        {"message": "Variable $x is never used.", "line": 0, "ignorable": True},
                    ],
                },
            },
            "errors": [],
        }
        seen = {}

        def _run(command, **kwargs):
            config = Path(command[command.index("-c") + 1])
            seen["config"] = config
            seen["existed"] = config.is_file()
            seen["kwargs"] = kwargs
            return _completed(stdout=json.dumps(report), returncode=1)

        with patch.object(PHPStanAnalyzer, "find_binary", return_value="/opt/phpstan"), \
                patch("pmlint.analyzers.phpstan.subprocess.run", side_effect=_run):
            issues = analyzer.analyze()

        assert seen["existed"]
        assert not seen["config"].exists()
        assert seen["kwargs"]["timeout"] == analyzer.timeout
        assert seen["kwargs"]["check"] is False

        assert [issue.code for issue in issues] == ["method.notFound", "unused_variable"]
        first, second = issues
        assert first.file == "src/test/plugin/Main.php"
        assert first.line == 10
        assert first.category == Category.UNDEFINED_METHOD
        assert first.severity == Severity.ERROR
        assert second.line == 1
        assert second.severity == Severity.WARNING

    def test_timeout(self, analyzer):
        """A timeout becomes a single warning and still cleans up."""
        with patch.object(PHPStanAnalyzer, "find_binary", return_value="/opt/phpstan"), \
                patch(
                    "pmlint.analyzers.phpstan.subprocess.run",
                    side_effect=subprocess.TimeoutExpired(cmd="phpstan", timeout=300),
                ), \
                patch("pmlint.analyzers.phpstan.os.unlink", wraps=os.unlink) as mock_unlink:
            issues = analyzer.analyze()
        assert [issue.code for issue in issues] == ["phpstan_analysis_failed"]
        assert issues[0].severity == Severity.WARNING
        assert "timed out" in issues[0].message
        assert issues[0].file == "src"
        mock_unlink.assert_called_once()

    def test_failed_run(self, analyzer):
        """A non-zero exit without a report is a warning with the last stderr line."""
        with patch.object(PHPStanAnalyzer, "find_binary", return_value="/opt/phpstan"), \
                patch(
                    "pmlint.analyzers.phpstan.subprocess.run",
                    return_value=_completed(stderr="PHP Fatal error\nMemory exhausted", returncode=255),
                ):
            issues = analyzer.analyze()
        assert [issue.code for issue in issues] == ["phpstan_analysis_failed"]
        assert "exit code 255" in issues[0].message
        assert "Memory exhausted" in issues[0].message

    def test_process_error(self, analyzer):
        """An OS error launching PHPStan is reported, not raised."""
        with patch.object(PHPStanAnalyzer, "find_binary", return_value="/opt/phpstan"), \
                patch("pmlint.analyzers.phpstan.subprocess.run", side_effect=OSError("exec format error")):
            issues = analyzer.analyze()
        assert [issue.code for issue in issues] == ["phpstan_analysis_failed"]
        assert "exec format error" in issues[0].message

    def test_no_files_found(self, analyzer):
        """PHPStan's 'no files' complaint is not a failure."""
        with patch.object(PHPStanAnalyzer, "find_binary", return_value="/opt/phpstan"), \
                patch(
                    "pmlint.analyzers.phpstan.subprocess.run",
                    return_value=_completed(stderr="No files found to analyse.", returncode=1),
                ):
            assert analyzer.analyze() == []
