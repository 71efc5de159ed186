"""Per-plugin scanner settings read from ``pmlint.yml``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .core.exceptions import InvalidConfigError

if TYPE_CHECKING:
    from .filters import FilterConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "pmlint.yml"


class ScannerConfig(BaseModel):
    """Scanner settings; every key is optional.

    Example ``pmlint.yml``::

        level: 7
        paths: [src]
        excludePaths: [src/generated]
        excludeCategories: [unused]
        excludeAnalyzers: [PHPStan]
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    level: int = Field(default=6, ge=1, le=9, description="PHPStan rule level")
    paths: list[str] = Field(
        default_factory=lambda: ["src"], description="Source directories, relative to the plugin root"
    )
    exclude_paths: list[str] = Field(
        default_factory=lambda: ["vendor", "tests"],
        validation_alias=AliasChoices("exclude_paths", "excludePaths"),
        description="Paths skipped while collecting PHP files",
    )
    report_format: str = Field(
        default="md",
        validation_alias=AliasChoices("report_format", "reportFormat"),
        description="Preferred report format for presentation layers",
    )
    simple_report: bool = Field(
        default=False, validation_alias=AliasChoices("simple_report", "simpleReport")
    )
    exclude_categories: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_categories", "excludeCategories", "excludedCategories"),
    )
    exclude_analyzers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_analyzers", "excludeAnalyzers", "excludedAnalyzers"),
    )
    exclude_severities: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_severities", "excludeSeverities", "excludedSeverities"),
    )

    @classmethod
    def load(cls, path: Path) -> ScannerConfig:
        """Read settings from *path*; defaults when the file does not exist.

        Raises:
            InvalidConfigError: If the file is not valid YAML, is not a
                mapping, or holds values of the wrong type.
        """
        path = Path(path)
        if not path.is_file():
            return cls()

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise InvalidConfigError(f"Could not read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise InvalidConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise InvalidConfigError(f"{path} must contain a mapping of settings")

        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            raise InvalidConfigError(f"Invalid settings in {path}: {e}") from e
        logger.debug(f"Loaded scanner settings from {path}")
        return config

    @classmethod
    def for_plugin(cls, plugin_path: Path) -> ScannerConfig:
        """Settings from ``pmlint.yml`` in the plugin root."""
        return cls.load(Path(plugin_path) / CONFIG_FILENAME)

    def to_filter_config(self) -> FilterConfig:
        from .filters import FilterConfig

        return FilterConfig.from_scanner_config(self)
