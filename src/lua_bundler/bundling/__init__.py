"""Module graph discovery and bundle emission.

Finds every module an entry script depends on and serializes them into a
single Lua chunk.
"""

from lua_bundler.bundling.resolver import (
    classify,
    resolve,
    strip_quotes,
    PathResolver,
    ModuleKind,
    DEFAULT_RESERVED_NAMESPACES,
)
from lua_bundler.bundling.dependencies import (
    scan_line,
    scan_references,
    ModuleGraphBuilder,
    ModuleOrigin,
    ModuleRecord,
    ModuleReference,
    ModuleTable,
    ReferenceKind,
)
from lua_bundler.bundling.bundle import (
    lua_string,
    long_string,
    BundleEmitter,
    HEADER_MARKER,
)

__all__ = [
    # Reference classification and resolution
    "classify",
    "resolve",
    "strip_quotes",
    "PathResolver",
    "ModuleKind",
    "DEFAULT_RESERVED_NAMESPACES",
    # Dependency detection
    "scan_line",
    "scan_references",
    "ModuleGraphBuilder",
    "ModuleOrigin",
    "ModuleRecord",
    "ModuleReference",
    "ModuleTable",
    "ReferenceKind",
    # Bundle emission
    "lua_string",
    "long_string",
    "BundleEmitter",
    "HEADER_MARKER",
]
