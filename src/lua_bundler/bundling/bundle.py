"""Bundle emitter for Lua scripts.

Serializes a module table and the entry script into a single Lua chunk.
Local modules become loader functions behind a bundle-local ``require``;
remote modules are embedded as source strings served by a ``game`` proxy,
so unchanged ``loadstring(game:HttpGet(url))()`` calls load the embedded
copy instead of hitting the network. A bundle-local ``loadstring`` runs
those chunks with the bundle's ``require`` and ``game`` in scope.
"""

import logging
from typing import Iterable

from lua_bundler import __version__
from lua_bundler.bundling.dependencies import ModuleRecord

logger = logging.getLogger(__name__)

HEADER_MARKER = "-- Bundled with lua-bundler"
ENTRY_MARKER = "-- Entry"

# Runtime loader. require(key) serves embedded modules first and falls
# back to the host require for anything not bundled.
PRELUDE = '''local __bundle_modules = {}
local __bundle_loaded = {}
local __bundle_loading = {}
local __bundle_host_require = require

local function require(name)
    local cached = __bundle_loaded[name]
    if cached ~= nil then
        return cached
    end
    local loader = __bundle_modules[name]
    if loader == nil then
        return __bundle_host_require(name)
    end
    if __bundle_loading[name] then
        error("circular require of '" .. tostring(name) .. "'", 2)
    end
    __bundle_loading[name] = true
    local result = loader(name)
    __bundle_loading[name] = nil
    if result == nil then
        result = true
    end
    __bundle_loaded[name] = result
    return result
end
'''

# Emitted only when remote modules are embedded. Chunks compiled through the
# local loadstring run in an environment that sees the bundle's require,
# game and loadstring; globals they set still land in the host globals.
REMOTE_PRELUDE = '''
local __bundle_sources = {}
local __bundle_game = game
local __bundle_globals = getfenv and getfenv(0) or _G
local __bundle_host_loadstring = loadstring or load
local __bundle_env

local game = setmetatable({
    HttpGet = function(_, url, ...)
        local source = __bundle_sources[url]
        if source ~= nil then
            return source
        end
        return __bundle_game:HttpGet(url, ...)
    end,
}, {
    __index = function(_, key)
        local value = __bundle_game[key]
        if type(value) == "function" then
            return function(_, ...)
                return value(__bundle_game, ...)
            end
        end
        return value
    end,
})

local function loadstring(source, chunkname)
    if setfenv then
        local chunk, err = __bundle_host_loadstring(source, chunkname)
        if chunk ~= nil then
            setfenv(chunk, __bundle_env)
        end
        return chunk, err
    end
    return load(source, chunkname, "t", __bundle_env)
end

__bundle_env = setmetatable({
    require = require,
    game = game,
    loadstring = loadstring,
}, {
    __index = __bundle_globals,
    __newindex = __bundle_globals,
})
'''


def lua_string(value: str) -> str:
    """Quote a value as a double-quoted Lua string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def long_string(value: str) -> str:
    """Wrap a value in a long bracket string that the value cannot close.

    The newline after the opening bracket is skipped by Lua, so the value
    round-trips exactly.
    """
    level = 0
    while True:
        close = f"]{'=' * level}]"
        if (value + close).find(close) == len(value):
            break
        level += 1
    eq = "=" * level
    return f"[{eq}[\n{value}{close}"


def _with_newline(source: str) -> str:
    return source if source.endswith("\n") else source + "\n"


class BundleEmitter:
    """Turns discovered modules and entry source into bundle text.

    Attributes:
        version: Tool version written in the header
    """

    def __init__(self, version: str = __version__) -> None:
        self.version = version

    def header(self, module_count: int) -> str:
        return f"{HEADER_MARKER} {self.version}\n-- Modules: {module_count}\n"

    def module_block(self, record: ModuleRecord) -> str:
        """Wrap one module, labelled by its literal key."""
        key = lua_string(record.key)
        if record.is_remote:
            return f"__bundle_sources[{key}] = {long_string(record.source)}\n"
        return f"__bundle_modules[{key}] = function(...)\n{_with_newline(record.source)}end\n"

    def emit(self, modules: Iterable[ModuleRecord], entry_source: str) -> str:
        """Build the bundle text.

        Args:
            modules: Records in emission order
            entry_source: Entry script text, appended last

        Returns:
            Complete bundle
        """
        records = list(modules)
        has_remote = any(record.is_remote for record in records)

        parts = [self.header(len(records)), "\n", PRELUDE]
        if has_remote:
            parts.append(REMOTE_PRELUDE)
        parts.append("\n")

        for record in records:
            parts.append(self.module_block(record))
            parts.append("\n")

        parts.append(f"{ENTRY_MARKER}\n")
        parts.append(entry_source)

        logger.debug(f"Emitted bundle with {len(records)} modules")
        return "".join(parts)
