"""Uses of PocketMine-MP APIs that were deprecated or removed."""

from __future__ import annotations

from pathlib import Path
from typing import NamedTuple

import tree_sitter as ts

from ..issues import Category, Issue, Severity
from ..php.ast_engine import ParsedAST
from ..php.declarations import extract_imports
from .async_task import THREAD_LOCAL_METHODS, stores_without_fetching
from .base import BaseAnalyzer


class Deprecation(NamedTuple):
    replacement: str
    since: str


DEPRECATED_METHODS: dict[str, Deprecation] = {
    # Level -> World
    "getLevel": Deprecation("getWorld", "4.0.0"),
    "setLevel": Deprecation("setWorld", "4.0.0"),
    "getLevelNonNull": Deprecation("getWorld", "4.0.0"),
    # Player
    "teleportImmediate": Deprecation("teleport", "4.0.0"),
    "addTitle": Deprecation("sendTitle", "4.0.0"),
    "addSubTitle": Deprecation("sendSubTitle", "4.0.0"),
    "addActionBarMessage": Deprecation("sendActionBarMessage", "4.0.0"),
    "sendPopup": Deprecation("sendToastNotification", "5.0.0"),
    "sendTip": Deprecation("sendToastNotification", "5.0.0"),
    "getDrops": Deprecation("getDrops with a cause parameter", "4.0.0"),
    "getSpawnLocation": Deprecation("getSpawnPoint", "4.0.0"),
    "setSpawnLocation": Deprecation("setSpawnPoint", "4.0.0"),
    "addParticle": Deprecation("getWorld()->addParticle()", "4.0.0"),
    "broadcastLevelEvent": Deprecation("broadcastPacketToViewers", "4.0.0"),
    "broadcastLevelSoundEvent": Deprecation("broadcastPacketToViewers", "4.0.0"),
    # Metadata
    "getMetadata": Deprecation("custom data storage", "4.0.0"),
    "setMetadata": Deprecation("custom data storage", "4.0.0"),
    "hasMetadata": Deprecation("custom data storage", "4.0.0"),
    "removeMetadata": Deprecation("custom data storage", "4.0.0"),
    # Server
    "getPlayerExact": Deprecation("getPlayerByPrefix or a custom lookup", "5.0.0"),
    # Entity
    "hidePlayer": Deprecation("hideEntity with despawnFromAll", "5.0.0"),
    "showPlayer": Deprecation("showEntity with spawnTo", "5.0.0"),
    "canSee": Deprecation("direct visibility checks", "5.0.0"),
    # PluginBase
    "getResource": Deprecation("PHP file functions with getResourcePath()", "5.0.0"),
    "saveResource": Deprecation("PHP file functions with getResourcePath()", "5.0.0"),
    # AsyncTask thread-local storage
    "peekLocal": Deprecation("static class properties", "5.0.0"),
    "fetchLocal": Deprecation("static class properties", "5.0.0"),
    "storeLocal": Deprecation("static class properties", "5.0.0"),
    "getFromThreadStore": Deprecation("static class properties", "5.0.0"),
    "saveToThreadStore": Deprecation("static class properties", "5.0.0"),
    "removeFromThreadStore": Deprecation("static class properties", "5.0.0"),
    # Effect
    "canTick": Deprecation("getApplyInterval()", "5.0.0"),
    # World
    "getCollisionCubes": Deprecation("getBlockCollisionBoxes", "5.0.0"),
    "getFullBlock": Deprecation("getBlock()->getStateId()", "5.0.0"),
    # Projectile
    "canSaveToDisk": Deprecation("returning false from onHitEntity()", "5.0.0"),
    # Item
    "equals": Deprecation("equalsExact or canStackWith", "5.0.0"),
    # Enchantment
    "getPrimaryItemFlags": Deprecation("ItemEnchantmentTags", "5.0.0"),
    "getSecondaryItemFlags": Deprecation("ItemEnchantmentTags", "5.0.0"),
    "hasPrimaryItemType": Deprecation("ItemEnchantmentTags", "5.0.0"),
    "hasSecondaryItemType": Deprecation("ItemEnchantmentTags", "5.0.0"),
    # TextFormat
    "toHTML": Deprecation("a custom implementation", "5.0.0"),
    # Utils
    "getMemoryUsage": Deprecation("Process::getAdvancedMemoryUsage()", "5.0.0"),
    # Timings
    "getStartTime": Deprecation("TimingsRecord", "5.0.0"),
}

DEPRECATED_CLASSES: dict[str, Deprecation] = {
    "pocketmine\\level\\Level": Deprecation("pocketmine\\world\\World", "4.0.0"),
    "pocketmine\\level\\Position": Deprecation("pocketmine\\world\\Position", "4.0.0"),
    "pocketmine\\level\\Location": Deprecation("pocketmine\\entity\\Location", "4.0.0"),
    "pocketmine\\level\\ChunkManager": Deprecation("pocketmine\\world\\ChunkManager", "4.0.0"),
    "pocketmine\\level\\format\\Chunk": Deprecation("pocketmine\\world\\format\\Chunk", "4.0.0"),
    "pocketmine\\tile\\Tile": Deprecation("pocketmine\\block\\tile\\Tile", "4.0.0"),
    "pocketmine\\metadata\\Metadatable": Deprecation("custom data storage", "4.0.0"),
    "pocketmine\\plugin\\PluginLogger": Deprecation("a PSR-3 logger", "4.0.0"),
}

DEPRECATED_CONSTANTS: dict[str, Deprecation] = {
    "pocketmine\\RESOURCE_PATH": Deprecation("Plugin::getResourcePath()", "4.0.0"),
}

_METHODS_LOWER = {name.lower(): (name, info) for name, info in DEPRECATED_METHODS.items()}
_CLASSES_LOWER = {name.lower(): (name, info) for name, info in DEPRECATED_CLASSES.items()}
_THREAD_LOCAL_LOWER = {name.lower() for name in THREAD_LOCAL_METHODS}


class DeprecatedApiAnalyzer(BaseAnalyzer):
    """Table-driven lookup of deprecated methods, classes and constants.

    Thread-local storage calls in an AsyncTask file that stores without
    fetching are left to the AsyncTask analyzer, which reports them once.
    """

    name = "DeprecatedApi"

    def analyze(self) -> list[Issue]:
        issues: list[Issue] = []
        task_files = {Path(task.file).resolve() for task in self.context.tasks if task.file}
        for path, ast in self.context.trees():
            skip_thread_local = path in task_files and stores_without_fetching(self.engine, ast)
            issues.extend(self._check_methods(path, ast, skip_thread_local))
            issues.extend(self._check_imports(path, ast))
            issues.extend(self._check_qualified_names(path, ast))
        return issues

    def _deprecation(self, kind: str, name: str, info: Deprecation, path: Path, line: int) -> Issue:
        return self.issue(
            f"{kind.capitalize()} '{name}' is deprecated since API {info.since}. "
            f"Use {info.replacement} instead.",
            path,
            line,
            Category.DEPRECATED_API,
            Severity.WARNING,
            code=f"deprecated_{kind}",
            suggestion=f"Replace with {info.replacement}",
        )

    def _check_methods(self, path: Path, ast: ParsedAST, skip_thread_local: bool = False) -> list[Issue]:
        issues: list[Issue] = []
        for call in self.engine.find_calls(ast, names=_METHODS_LOWER, kinds=("method", "static")):
            if skip_thread_local and call.name.lower() in _THREAD_LOCAL_LOWER:
                continue
            name, info = _METHODS_LOWER[call.name.lower()]
            issues.append(self._deprecation("method", name, info, path, call.line))
        return issues

    def _check_imports(self, path: Path, ast: ParsedAST) -> list[Issue]:
        issues: list[Issue] = []
        for imported in extract_imports(ast):
            if imported.kind == "class" and imported.name.lower() in _CLASSES_LOWER:
                name, info = _CLASSES_LOWER[imported.name.lower()]
                issues.append(self._deprecation("class", name, info, path, imported.line))
            elif imported.kind == "const" and imported.name in DEPRECATED_CONSTANTS:
                info = DEPRECATED_CONSTANTS[imported.name]
                issues.append(self._deprecation("constant", imported.name, info, path, imported.line))
        return issues

    def _check_qualified_names(self, path: Path, ast: ParsedAST) -> list[Issue]:
        """Fully-qualified (leading backslash) references outside ``use`` statements."""
        found: list[tuple[str, str, Deprecation, int]] = []

        def _visitor(node: ts.Node, _depth: int) -> bool | None:
            if node.type == "namespace_use_declaration":
                return False
            if node.type != "qualified_name":
                return None
            text = ast.get_text(node)
            if not text.startswith("\\"):
                return False
            name = text[1:]
            line = self.engine.line_of(node)
            if name.lower() in _CLASSES_LOWER:
                canonical, info = _CLASSES_LOWER[name.lower()]
                found.append(("class", canonical, info, line))
            elif name in DEPRECATED_CONSTANTS:
                found.append(("constant", name, DEPRECATED_CONSTANTS[name], line))
            return False

        ast.walk(_visitor)
        return [self._deprecation(kind, name, info, path, line) for kind, name, info, line in found]
