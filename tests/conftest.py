"""
Shared fixtures for pmlint tests.

Plugins are written as real directory trees under ``tmp_path`` so that
analyzers see exactly what they would see on disk.
"""

import textwrap
from pathlib import Path

import pytest

from pmlint.scanner.context import PluginContext
from pmlint.scanner.manifest import MANIFEST_FILENAME, load_manifest

DEFAULT_MANIFEST = """\
name: TestPlugin
version: 1.0.0
main: test\\plugin\\Main
api: 5.0.0
"""

MAIN_CLASS = """\
<?php

declare(strict_types=1);

namespace test\\plugin;

use pocketmine\\plugin\\PluginBase;

class Main extends PluginBase {
    protected function onEnable(): void {
    }
}
"""


def write_file(path: Path, content: str) -> Path:
    """Write *content* (dedented) to *path*, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.fixture
def make_plugin(tmp_path):
    """
    Factory that writes a plugin tree and returns its root.

    ``files`` maps paths relative to the plugin root to their contents.
    The default manifest points at ``src/test/plugin/Main.php``, which is
    written unless ``with_main`` is false or ``files`` provides it.
    """

    def _make(
        manifest: str | None = DEFAULT_MANIFEST,
        files: dict[str, str] | None = None,
        with_main: bool = True,
    ) -> Path:
        root = tmp_path / "plugin"
        root.mkdir(exist_ok=True)
        if manifest is not None:
            write_file(root / MANIFEST_FILENAME, manifest)
        files = dict(files or {})
        if with_main:
            files.setdefault("src/test/plugin/Main.php", MAIN_CLASS)
        for relative, content in files.items():
            write_file(root / relative, content)
        return root

    return _make


@pytest.fixture
def build_context():
    """Build an initialized PluginContext for a plugin root."""

    def _build(root: Path) -> PluginContext:
        context = PluginContext(root, load_manifest(root / MANIFEST_FILENAME))
        context.initialize()
        return context

    return _build


@pytest.fixture
def run_analyzer(build_context):
    """Run a single analyzer class against a plugin root."""

    def _run(analyzer_cls, root: Path):
        return analyzer_cls(root, build_context(root)).analyze()

    return _run
