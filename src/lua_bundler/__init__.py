"""lua-bundler - bundle Lua scripts and their dependencies into one file.

Resolves require() modules from disk and loadstring(game:HttpGet(url))()
scripts from the network, optionally obfuscates local modules, and emits a
single self-contained script.

Quick Start:
    from lua_bundler import BundleConfig, BundlerSession

    with BundlerSession(BundleConfig(entry="main.lua", release=True)) as session:
        result = session.run()
"""

__version__ = "0.1.0"

from lua_bundler.config import BundleConfig
from lua_bundler.session import BundleResult, BundlerSession

__all__ = ["__version__", "BundleConfig", "BundleResult", "BundlerSession"]
