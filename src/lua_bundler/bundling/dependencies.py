"""Dependency detection for Lua scripts.

Scans source line by line for ``require(...)`` calls and
``loadstring(game:HttpGet(url))()`` calls, then walks the module graph
depth-first, reading local modules from disk and downloading remote ones.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Protocol

from lua_bundler.bundling.resolver import PathResolver
from lua_bundler.exceptions import ReadError
from lua_bundler.logging import TRACE
from lua_bundler.obfuscator import SourceObfuscator

logger = logging.getLogger(__name__)

# Fetch-and-execute passed as a string to another call, e.g.
# queue_on_teleport("loadstring(game:HttpGet('...'))()"). Not a live dependency.
GUARD_PATTERN = re.compile(r"\w+\s*\([^)]*loadstring\s*\(\s*game:HttpGet")

FETCH_PATTERN = re.compile(
    r"""loadstring\s*\(\s*game:HttpGet\s*\(\s*['"]([^'"]+)['"]\s*\)\s*\)\s*\(\s*\)"""
)

# require("path.to.file"), require('x') or unquoted require(path.to.file)
REQUIRE_PATTERN = re.compile(
    r"""\brequire\s*\(\s*(?:['"]([^'"]+)['"]|([a-zA-Z_][a-zA-Z0-9_.]*))\s*\)"""
)


class ReferenceKind(str, Enum):
    """Which call idiom produced a reference."""

    REQUIRE = "require"
    FETCH = "fetch"


class ModuleOrigin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class ModuleReference:
    """A literal reference found at a call site.

    Attributes:
        literal: Text inside the call, without quotes; also the module key
        kind: The idiom that matched
        line: 1-based line number in the scanned source
    """

    literal: str
    kind: ReferenceKind
    line: int = 0


@dataclass
class ModuleRecord:
    """A discovered module.

    Attributes:
        key: Literal reference spelling, used as the module table key
        source: Stored source (already obfuscated for local modules when
            obfuscation is on)
        origin: LOCAL for files, REMOTE for downloads
        obfuscated: Whether source was passed through the obfuscator
        path: Resolved file path for local modules
    """

    key: str
    source: str
    origin: ModuleOrigin
    obfuscated: bool = False
    path: Path | None = None

    @property
    def is_remote(self) -> bool:
        return self.origin is ModuleOrigin.REMOTE


class ModuleTable:
    """Insertion-ordered mapping from reference key to ModuleRecord.

    A key that is present has been discovered and is never processed again.
    """

    def __init__(self) -> None:
        self._records: dict[str, ModuleRecord] = {}

    def add(self, record: ModuleRecord) -> None:
        self._records[record.key] = record

    def get(self, key: str) -> ModuleRecord | None:
        return self._records.get(key)

    def keys(self) -> list[str]:
        return list(self._records)

    @property
    def remote(self) -> list[ModuleRecord]:
        return [r for r in self._records.values() if r.is_remote]

    @property
    def local(self) -> list[ModuleRecord]:
        return [r for r in self._records.values() if not r.is_remote]

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ModuleRecord]:
        return iter(list(self._records.values()))


class SourceFetcher(Protocol):
    """Anything that can download a remote module's source."""

    def fetch(self, url: str) -> str:
        ...


def scan_line(line: str, line_number: int = 0) -> list[ModuleReference]:
    """Find dependency references on one line.

    The guard rule runs first and skips the whole line. Fetch and require
    matches are independent; all of both are returned, fetches first.

    Example:
        >>> [r.literal for r in scan_line('local m = require("utils.math")')]
        ['utils.math']
    """
    if GUARD_PATTERN.search(line):
        logger.debug(f"Skipping HttpGet passed as an argument on line {line_number}")
        return []

    refs = [
        ModuleReference(m.group(1), ReferenceKind.FETCH, line_number)
        for m in FETCH_PATTERN.finditer(line)
    ]
    for m in REQUIRE_PATTERN.finditer(line):
        literal = m.group(1) or m.group(2)
        if literal:
            refs.append(ModuleReference(literal, ReferenceKind.REQUIRE, line_number))
    return refs


def scan_references(source: str) -> list[ModuleReference]:
    """Find all dependency references in Lua source, in line order.

    Example:
        >>> source = '''
        ... local util = require("util")
        ... loadstring(game:HttpGet("https://example.com/lib.lua"))()
        ... '''
        >>> [(r.kind.value, r.literal) for r in scan_references(source)]
        [('require', 'util'), ('fetch', 'https://example.com/lib.lua')]
    """
    refs: list[ModuleReference] = []
    for number, line in enumerate(source.split("\n"), start=1):
        refs.extend(scan_line(line, number))
    return refs


class ModuleGraphBuilder:
    """Walks a script's dependency graph and fills a ModuleTable.

    The walk is depth-first in source line order. Every reference key is
    read or fetched at most once; the table lookup is also what stops
    cycles. Any read or fetch failure propagates and aborts the walk.

    Attributes:
        resolver: Classifies and resolves require references
        fetcher: Downloads remote modules
        obfuscator: Applied to local modules before storage, if set
        modules: The table being filled
    """

    def __init__(
        self,
        resolver: PathResolver,
        fetcher: SourceFetcher,
        obfuscator: SourceObfuscator | None = None,
        modules: ModuleTable | None = None,
    ) -> None:
        self.resolver = resolver
        self.fetcher = fetcher
        self.obfuscator = obfuscator
        self.modules = modules if modules is not None else ModuleTable()

    def build(self, entry_path: str | Path, entry_source: str) -> ModuleTable:
        """Discover every module reachable from the entry script.

        Args:
            entry_path: Path of the entry script
            entry_source: Entry script text, already obfuscated if enabled

        Returns:
            The filled module table
        """
        self.process_file(Path(entry_path), entry_source)
        return self.modules

    def process_file(self, current_file: Path | None, source: str) -> None:
        """Scan one source text and recurse into each new dependency.

        Args:
            current_file: File the source came from, None for remote sources
            source: Text to scan
        """
        origin = current_file if current_file is not None else "<remote>"
        tracing = logger.isEnabledFor(TRACE)

        for number, line in enumerate(source.split("\n"), start=1):
            if tracing:
                logger.log(TRACE, f"Scanning {origin}:{number}: {line}")
            for ref in scan_line(line, number):
                self._process_reference(current_file, ref)

    def _process_reference(self, current_file: Path | None, ref: ModuleReference) -> None:
        key = ref.literal

        if key in self.modules:
            logger.debug(f"Already processed: {key}")
            return

        if ref.kind is ReferenceKind.FETCH:
            record = self._fetch_remote(key)
        elif self.resolver.is_local(key):
            record = self._load_local(current_file, key)
        else:
            logger.debug(f"Leaving host reference to the runtime: {key}")
            return

        # Register before recursing so cycles terminate
        self.modules.add(record)
        self.process_file(record.path, record.source)

    def _fetch_remote(self, url: str) -> ModuleRecord:
        source = self.fetcher.fetch(url)
        return ModuleRecord(key=url, source=source, origin=ModuleOrigin.REMOTE)

    def _load_local(self, current_file: Path | None, key: str) -> ModuleRecord:
        path = self.resolver.resolve(current_file, key)
        logger.debug(f"Resolved {key} -> {path}")

        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ReadError(path, e) from e

        obfuscated = self.obfuscator is not None
        if self.obfuscator is not None:
            source = self.obfuscator.obfuscate(source)

        logger.info(f"Processed: {key}")
        return ModuleRecord(
            key=key,
            source=source,
            origin=ModuleOrigin.LOCAL,
            obfuscated=obfuscated,
            path=path,
        )
