"""Loading of the plugin.yml manifest.

The manifest is parsed once per scan with PyYAML. Besides the parsed
document, the loader keeps the line number of each mapping key so that
manifest issues point at the offending entry instead of line 1.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..core.exceptions import ManifestNotFoundError, ManifestParseError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "plugin.yml"

# Nested mappings whose keys get line numbers (commands -> name -> field)
_KEY_LINE_DEPTH = 3


@dataclass(frozen=True)
class Manifest:
    """A parsed plugin.yml.

    Attributes:
        path: Location of the manifest file.
        document: The parsed YAML document as loaded, of any type.
        key_lines: Line number of each mapping key, keyed by key path.
        parse_error: ``(line, message)`` when the YAML could not be
            parsed and a lenient line-based fallback was used instead.
        exists: Whether the file was present at all.
    """

    path: Path
    document: Any = None
    key_lines: Mapping[tuple[str, ...], int] = field(default_factory=dict)
    parse_error: tuple[int, str] | None = None
    exists: bool = True

    @classmethod
    def missing(cls, path: Path) -> Manifest:
        return cls(path=path, document=None, exists=False)

    @property
    def data(self) -> Mapping[str, Any]:
        """The document if it is a mapping, otherwise an empty mapping."""
        return self.document if isinstance(self.document, Mapping) else {}

    @property
    def is_mapping(self) -> bool:
        return isinstance(self.document, Mapping)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def line_of(self, *keys: str) -> int:
        """Line of the deepest known key along *keys*; 1 if none is known."""
        for depth in range(len(keys), 0, -1):
            line = self.key_lines.get(tuple(str(k) for k in keys[:depth]))
            if line is not None:
                return line
        return 1

    @property
    def name(self) -> str | None:
        value = self.get("name")
        return str(value) if value is not None else None

    @property
    def version(self) -> str | None:
        value = self.get("version")
        return str(value) if value is not None else None

    @property
    def main(self) -> str | None:
        value = self.get("main")
        return str(value) if value is not None else None

    @property
    def commands(self) -> Mapping[str, Any]:
        commands = self.get("commands")
        return commands if isinstance(commands, Mapping) else {}

    @property
    def permissions(self) -> Mapping[str, Any]:
        permissions = self.get("permissions")
        return permissions if isinstance(permissions, Mapping) else {}


def load_manifest(path: Path, lenient: bool = False) -> Manifest:
    """Load and parse a plugin.yml file.

    Args:
        path: Location of plugin.yml.
        lenient: When ``True``, a YAML syntax error does not raise;
            a best-effort line-based parse is returned instead, with the
            error recorded on ``Manifest.parse_error``.

    Returns:
        The parsed manifest.

    Raises:
        ManifestNotFoundError: If *path* does not exist.
        ManifestParseError: If the YAML is invalid and *lenient* is off.
    """
    if not path.is_file():
        raise ManifestNotFoundError(f"plugin.yml file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"plugin.yml could not be read: {e}") from e

    try:
        document = yaml.safe_load(text)
        root = yaml.compose(text)
    except yaml.YAMLError as e:
        line = yaml_error_line(e)
        message = f"plugin.yml parse error: {e}"
        if not lenient:
            raise ManifestParseError(message, line) from e
        logger.warning("Falling back to line-based plugin.yml parsing: %s", e)
        return Manifest(
            path=path,
            document=parse_manifest_fallback(text),
            parse_error=(line or 1, message),
        )

    key_lines: dict[tuple[str, ...], int] = {}
    if root is not None:
        _collect_key_lines(root, (), key_lines)
    return Manifest(path=path, document=document, key_lines=key_lines)


def yaml_error_line(error: yaml.YAMLError) -> int | None:
    """1-based line of a PyYAML error, when PyYAML reports one."""
    mark = getattr(error, "problem_mark", None) or getattr(error, "context_mark", None)
    return mark.line + 1 if mark is not None else None


def parse_manifest_fallback(text: str) -> dict[str, Any]:
    """Best-effort parse of top-level ``key: value`` and ``- item`` lines."""
    data: dict[str, Any] = {}
    current_key: str | None = None

    for raw_line in text.splitlines():
        line = raw_line.rstrip()
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if stripped.startswith("- ") and current_key is not None:
            existing = data.get(current_key)
            if not isinstance(existing, list):
                existing = []
                data[current_key] = existing
            existing.append(_unquote(stripped[2:].strip()))
            continue

        if line[:1].isspace() or ":" not in stripped:
            continue

        key, _, value = stripped.partition(":")
        current_key = key.strip()
        value = value.strip()
        data[current_key] = _unquote(value) if value else None

    return data


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _collect_key_lines(
    node: yaml.Node,
    prefix: tuple[str, ...],
    out: dict[tuple[str, ...], int],
) -> None:
    if not isinstance(node, yaml.MappingNode) or len(prefix) >= _KEY_LINE_DEPTH:
        return
    for key_node, value_node in node.value:
        if not isinstance(key_node, yaml.ScalarNode):
            continue
        path = prefix + (str(key_node.value),)
        out[path] = key_node.start_mark.line + 1
        _collect_key_lines(value_node, path, out)
