"""Bundler configuration.

Settings come from CLI flags, optionally layered over a YAML file:

    entry: src/main.lua
    output: dist/bundle.lua
    release: true
    obfuscation_level: 2
    use_cache: false
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from lua_bundler.bundling.resolver import DEFAULT_RESERVED_NAMESPACES
from lua_bundler.exceptions import ConfigError
from lua_bundler.fetcher import DEFAULT_TIMEOUT
from lua_bundler.obfuscator import LEVEL_NAMES, MAX_LEVEL
from lua_bundler.transforms import DEFAULT_DEBUG_FUNCTIONS

logger = logging.getLogger(__name__)


@dataclass
class BundleConfig:
    """Configuration for one bundling run.

    Attributes:
        entry: Entry point Lua file
        output: Output bundle file
        release: Remove debug statements and comments, then minify
        obfuscation_level: 0 disables, 1-3 increase intensity (clamped to 3)
        verbose: Report each processed module
        use_cache: Cache remote downloads
        cache_dir: Cache location (default ~/.lua-bundler/cache)
        cache_ttl: Maximum cache entry age in seconds, None for no expiry
        timeout: Remote fetch timeout in seconds
        serve: Serve the output over HTTP after writing it
        port: Port for the HTTP server
        reserved_namespaces: Leading segments of dotted references that
            name host objects rather than files
        debug_functions: Calls removed in release mode

    Example:
        >>> config = BundleConfig(entry="main.lua", obfuscation_level=5)
        >>> config.obfuscation_level
        3
    """

    entry: Path = Path("main.lua")
    output: Path = Path("bundle.lua")
    release: bool = False
    obfuscation_level: int = 0
    verbose: bool = False
    use_cache: bool = True
    cache_dir: Path | None = None
    cache_ttl: float | None = None
    timeout: float = DEFAULT_TIMEOUT
    serve: bool = False
    port: int = 8080
    reserved_namespaces: frozenset[str] = field(default_factory=lambda: DEFAULT_RESERVED_NAMESPACES)
    debug_functions: tuple[str, ...] = DEFAULT_DEBUG_FUNCTIONS

    def __post_init__(self) -> None:
        """Validate and normalize configuration after initialization."""
        self.entry = Path(self.entry)
        self.output = Path(self.output)
        if self.cache_dir is not None:
            self.cache_dir = Path(self.cache_dir).expanduser()

        if self.obfuscation_level < 0:
            raise ConfigError(
                f"Obfuscation level must be 0-{MAX_LEVEL}, got {self.obfuscation_level}",
                obfuscation_level=self.obfuscation_level,
            )
        self.obfuscation_level = min(self.obfuscation_level, MAX_LEVEL)

        if not 1 <= self.port <= 65535:
            raise ConfigError(f"Invalid port: {self.port}", port=self.port)

        if self.timeout <= 0:
            raise ConfigError(f"Timeout must be positive, got {self.timeout}", timeout=self.timeout)

        self.reserved_namespaces = frozenset(self.reserved_namespaces)
        self.debug_functions = tuple(self.debug_functions)

    @property
    def obfuscation_name(self) -> str:
        return LEVEL_NAMES[self.obfuscation_level]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        result: dict[str, Any] = {
            "entry": str(self.entry),
            "output": str(self.output),
            "release": self.release,
            "obfuscation_level": self.obfuscation_level,
            "verbose": self.verbose,
            "use_cache": self.use_cache,
            "timeout": self.timeout,
            "serve": self.serve,
            "port": self.port,
            "reserved_namespaces": sorted(self.reserved_namespaces),
            "debug_functions": list(self.debug_functions),
        }
        if self.cache_dir is not None:
            result["cache_dir"] = str(self.cache_dir)
        if self.cache_ttl is not None:
            result["cache_ttl"] = self.cache_ttl
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BundleConfig":
        """Create from a dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}", keys=unknown)
        try:
            return cls(**data)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def format_text(self) -> str:
        """Format configuration as human-readable text."""
        lines = [
            f"Entry: {self.entry}",
            f"Output: {self.output}",
            f"Mode: {'Release (debug statements removed)' if self.release else 'Development'}",
        ]
        if self.obfuscation_level > 0:
            lines.append(f"Obfuscation: {self.obfuscation_name}")
        if self.verbose:
            lines.append("Verbose: Enabled")
        if self.serve:
            lines.append(f"HTTP Server: Port {self.port}")
        lines.append(f"HTTP Cache: {'Enabled' if self.use_cache else 'Disabled'}")
        return "\n".join(lines)


def load_config(path: str | Path) -> dict[str, Any]:
    """Load bundler settings from a YAML file.

    Args:
        path: YAML file containing a mapping of BundleConfig fields

    Returns:
        Settings dictionary, suitable for BundleConfig.from_dict

    Raises:
        ConfigError: If the file cannot be read or is not a mapping
    """
    config_path = Path(path)
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config {config_path}: {e}", path=str(config_path)) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}", path=str(config_path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must contain a mapping", path=str(config_path))

    logger.debug(f"Loaded config from {config_path}: {sorted(data)}")
    return data


def resolve_base_dir(entry: str | Path) -> Path:
    """Directory module references are resolved from.

    The entry file's own directory, or the current working directory when
    the entry path has no directory component.

    Raises:
        ConfigError: If the working directory cannot be determined
    """
    parent = Path(entry).parent
    if str(parent) not in ("", "."):
        return parent

    try:
        return Path(os.getcwd())
    except OSError as e:
        raise ConfigError(f"failed to get working directory: {e}") from e
