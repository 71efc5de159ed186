"""Tests for pmlint.yml scanner settings."""

import pytest

from pmlint.config import CONFIG_FILENAME, ScannerConfig
from pmlint.core.exceptions import InvalidConfigError
from pmlint.filters import FilterConfig


class TestScannerConfig:
    """Loading and converting scanner settings."""

    def test_defaults(self):
        """Every setting has a default."""
        config = ScannerConfig()
        assert config.level == 6
        assert config.paths == ["src"]
        assert config.exclude_paths == ["vendor", "tests"]
        assert config.report_format == "md"
        assert not config.simple_report
        assert config.exclude_categories == []

    def test_missing_file_gives_defaults(self, tmp_path):
        """No pmlint.yml means default settings."""
        assert ScannerConfig.for_plugin(tmp_path) == ScannerConfig()

    def test_empty_file_gives_defaults(self, tmp_path):
        """An empty document is treated like a missing one."""
        (tmp_path / CONFIG_FILENAME).write_text("")
        assert ScannerConfig.for_plugin(tmp_path) == ScannerConfig()

    def test_camel_case_keys(self, tmp_path):
        """The documented camelCase keys are read."""
        (tmp_path / CONFIG_FILENAME).write_text(
            "level: 8\n"
            "paths: [src, lib]\n"
            "excludePaths: [src/generated]\n"
            "reportFormat: json\n"
            "simpleReport: true\n"
            "excludeCategories: [unused]\n"
            "excludedAnalyzers: [PHPStan]\n"
            "excludeSeverities: [hint]\n"
            "someFutureKey: ignored\n"
        )
        config = ScannerConfig.for_plugin(tmp_path)
        assert config.level == 8
        assert config.paths == ["src", "lib"]
        assert config.exclude_paths == ["src/generated"]
        assert config.report_format == "json"
        assert config.simple_report
        assert config.exclude_categories == ["unused"]
        assert config.exclude_analyzers == ["PHPStan"]
        assert config.exclude_severities == ["hint"]

    def test_invalid_yaml(self, tmp_path):
        """Unparseable YAML is a configuration error."""
        (tmp_path / CONFIG_FILENAME).write_text("level: [6\n")
        with pytest.raises(InvalidConfigError, match="Invalid YAML"):
            ScannerConfig.for_plugin(tmp_path)

    def test_non_mapping(self, tmp_path):
        """The document must be a mapping."""
        (tmp_path / CONFIG_FILENAME).write_text("- level\n- 6\n")
        with pytest.raises(InvalidConfigError, match="mapping"):
            ScannerConfig.for_plugin(tmp_path)

    @pytest.mark.parametrize("content", ["level: 12\n", "level: 0\n", "paths: 5\n"])
    def test_invalid_values(self, tmp_path, content):
        """Out-of-range or mistyped values are rejected."""
        (tmp_path / CONFIG_FILENAME).write_text(content)
        with pytest.raises(InvalidConfigError, match="Invalid settings"):
            ScannerConfig.for_plugin(tmp_path)

    def test_to_filter_config(self):
        """Exclusions carry over into a filter config."""
        config = ScannerConfig(
            exclude_categories=["unused"],
            exclude_analyzers=["Listener"],
            exclude_severities=["info"],
            simple_report=True,
        )
        filter_config = config.to_filter_config()
        assert isinstance(filter_config, FilterConfig)
        assert filter_config.exclude_categories == ["unused"]
        assert filter_config.exclude_analyzers == ["Listener"]
        assert filter_config.exclude_severities == ["info"]
        assert filter_config.simple_report
