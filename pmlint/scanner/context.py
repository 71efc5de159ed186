"""Semantic index of a plugin source tree.

:class:`PluginContext` discovers the plugin's PHP files, parses each one
independently and extracts class records from every file that parsed
cleanly. Classes are sorted into role buckets (listeners, commands,
async tasks, scheduled tasks) as they are extracted. The index is built
lazily on first access and never changes afterwards; analyzers only read
from it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from ..php.ast_engine import ASTEngine, ParsedAST
from ..php.declarations import ClassRecord, Role, extract_classes
from .manifest import Manifest

logger = logging.getLogger(__name__)

PHP_EXTENSION = ".php"
DEFAULT_SOURCE_PATHS: tuple[str, ...] = ("src",)


@dataclass
class SourceFile:
    """A discovered PHP file.

    Attributes:
        path: Absolute path of the file.
        tree: Parsed AST, or ``None`` if reading or parsing failed.
        parse_error: ``(line, message)`` describing the failure.
    """

    path: Path
    tree: ParsedAST | None = field(default=None, repr=False)
    parse_error: tuple[int, str] | None = None

    @cached_property
    def text(self) -> str:
        """Raw file contents, read on first access."""
        if self.tree is not None:
            return self.tree.source_code
        try:
            return self.path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return ""

    @property
    def lines(self) -> list[str]:
        if self.tree is not None:
            return self.tree.lines
        return self.text.splitlines()

    @property
    def is_parsed(self) -> bool:
        return self.tree is not None


class PluginContext:
    """Read-only semantic model of one plugin.

    Args:
        plugin_path: Plugin root directory.
        manifest: The parsed plugin.yml.
        engine: Parser to use; a fresh :class:`ASTEngine` by default.
        source_paths: Directories (relative to the root) to collect PHP
            files from.
        exclude_paths: Relative paths to skip while collecting.

    Example::

        context = PluginContext(root, load_manifest(root / "plugin.yml"))
        for listener in context.listeners:
            print(listener.fqcn)
    """

    def __init__(
        self,
        plugin_path: Path,
        manifest: Manifest,
        engine: ASTEngine | None = None,
        source_paths: Iterable[str] = DEFAULT_SOURCE_PATHS,
        exclude_paths: Iterable[str] = (),
    ) -> None:
        self.plugin_path = Path(plugin_path).resolve()
        self.manifest = manifest
        self.engine = engine or ASTEngine()
        self.source_paths = tuple(source_paths)
        self.exclude_paths = tuple(
            (self.plugin_path / p).resolve() for p in exclude_paths
        )

        self._initialized = False
        self._files: dict[Path, SourceFile] = {}
        self._classes: dict[str, ClassRecord] = {}
        self._buckets: dict[Role, list[ClassRecord]] = {role: [] for role in Role}

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Discover, parse and index the source tree. Later calls are no-ops."""
        if self._initialized:
            return

        for path in self._discover_files():
            source = self._parse(path)
            self._files[path] = source
            if source.tree is None:
                continue
            for record in extract_classes(source.tree, path):
                self._add_class(record)

        self._initialized = True
        logger.debug(
            "Indexed %d files, %d classes under %s",
            len(self._files), len(self._classes), self.plugin_path,
        )

    def _discover_files(self) -> list[Path]:
        files: set[Path] = set()
        for relative in self.source_paths:
            directory = self.plugin_path / relative
            if not directory.is_dir():
                continue
            for path in directory.rglob(f"*{PHP_EXTENSION}"):
                if not path.is_file() or self._is_ignored(path, directory):
                    continue
                files.add(path.resolve())
        return sorted(files)

    def _is_ignored(self, path: Path, base: Path) -> bool:
        relative_parts = path.relative_to(base).parts
        if any(part.startswith(".") for part in relative_parts):
            return True
        resolved = path.resolve()
        return any(resolved == excluded or excluded in resolved.parents for excluded in self.exclude_paths)

    def _parse(self, path: Path) -> SourceFile:
        try:
            ast = self.engine.parse_file(path)
        except OSError as e:
            logger.debug("Could not read %s: %s", path, e)
            return SourceFile(path=path, parse_error=(1, f"Could not read file: {e}"))

        error = ast.first_error()
        if error is not None:
            logger.debug("Parse error in %s at line %d: %s", path, error[0], error[1])
            source = SourceFile(path=path, parse_error=error)
            source.text = ast.source_code
            return source
        return SourceFile(path=path, tree=ast)

    def _add_class(self, record: ClassRecord) -> None:
        self._classes[record.fqcn] = record
        for role in record.roles:
            self._buckets[role].append(record)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def source_files(self) -> list[SourceFile]:
        self.initialize()
        return list(self._files.values())

    @property
    def php_files(self) -> list[Path]:
        self.initialize()
        return list(self._files)

    @property
    def parsed_files(self) -> dict[Path, ParsedAST | None]:
        """Every discovered file mapped to its tree (``None`` on failure)."""
        self.initialize()
        return {path: source.tree for path, source in self._files.items()}

    def trees(self) -> list[tuple[Path, ParsedAST]]:
        """``(path, tree)`` pairs for files that parsed cleanly."""
        self.initialize()
        return [(path, source.tree) for path, source in self._files.items() if source.tree is not None]

    def get_source_file(self, path: Path) -> SourceFile | None:
        self.initialize()
        return self._files.get(Path(path).resolve())

    def get_parsed_file(self, path: Path) -> ParsedAST | None:
        source = self.get_source_file(path)
        return source.tree if source is not None else None

    @property
    def classes(self) -> dict[str, ClassRecord]:
        self.initialize()
        return dict(self._classes)

    def get_class(self, fqcn: str) -> ClassRecord | None:
        self.initialize()
        return self._classes.get(fqcn.lstrip("\\"))

    def class_exists(self, fqcn: str) -> bool:
        return self.get_class(fqcn) is not None

    def classes_with_role(self, role: Role) -> list[ClassRecord]:
        self.initialize()
        return list(self._buckets[role])

    @property
    def listeners(self) -> list[ClassRecord]:
        return self.classes_with_role(Role.LISTENER)

    @property
    def commands(self) -> list[ClassRecord]:
        return self.classes_with_role(Role.COMMAND)

    @property
    def tasks(self) -> list[ClassRecord]:
        """Async task candidates."""
        return self.classes_with_role(Role.ASYNC_TASK)

    @property
    def scheduled_tasks(self) -> list[ClassRecord]:
        return self.classes_with_role(Role.TASK)

    @property
    def main_class(self) -> ClassRecord | None:
        main = self.manifest.main
        return self.get_class(main) if main else None

    @property
    def resources_path(self) -> Path:
        return self.plugin_path / "resources"
