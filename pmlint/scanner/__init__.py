"""Plugin loading: the manifest and the shared semantic context.

The orchestrator lives in :mod:`pmlint.scanner.plugin_scanner`; it is not
imported here because the analyzers depend on this package.
"""

from .context import PluginContext, SourceFile
from .manifest import MANIFEST_FILENAME, Manifest, load_manifest

__all__ = [
    "PluginContext",
    "SourceFile",
    "Manifest",
    "MANIFEST_FILENAME",
    "load_manifest",
]
