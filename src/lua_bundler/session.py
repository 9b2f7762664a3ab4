"""Bundling session: one run from entry script to written bundle.

A session owns its module table, cache handle, fetcher and obfuscator, so
independent sessions never share state.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from lua_bundler.bundling.bundle import BundleEmitter
from lua_bundler.bundling.dependencies import ModuleGraphBuilder, ModuleTable
from lua_bundler.bundling.resolver import PathResolver
from lua_bundler.cache import FetchCache, FileCache
from lua_bundler.config import BundleConfig, resolve_base_dir
from lua_bundler.exceptions import BundlerError, ReadError, WriteError
from lua_bundler.fetcher import RemoteFetcher
from lua_bundler.logging import log_performance
from lua_bundler.obfuscator import Obfuscator, SourceObfuscator
from lua_bundler.transforms import TransformPipeline

logger = logging.getLogger(__name__)


@dataclass
class BundleResult:
    """Outcome of a bundling run.

    Attributes:
        text: The bundle
        modules: Every embedded module, in emission order
        entry: Entry script path
        release: Whether the release pipeline ran
        obfuscation_level: Level applied to local modules (0 for none)
    """

    text: str
    modules: ModuleTable
    entry: Path
    release: bool = False
    obfuscation_level: int = 0

    @property
    def module_count(self) -> int:
        return len(self.modules)

    def __str__(self) -> str:
        return f"Bundle({self.entry}, {self.module_count} modules, {len(self.text)} chars)"


def write_output(text: str, path: str | Path) -> Path:
    """Write text to path atomically.

    The text goes to a temporary file beside the destination, which is then
    renamed over it, so a failure never leaves a partial file behind.

    Raises:
        WriteError: If the destination cannot be written
    """
    path = Path(path)
    directory = path.parent if str(path.parent) else Path(".")
    tmp_name: str | None = None

    try:
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise WriteError(path, e) from e

    logger.info(f"Wrote bundle to {path}")
    return path


class BundlerSession:
    """Bundles one entry script.

    Collaborators can be injected; by default the session builds a
    FileCache, a RemoteFetcher and, when the level is above 0, an Obfuscator
    from the configuration.

    Attributes:
        config: Run configuration
        entry_path: Entry script path
        base_dir: Directory absolute and dot-path references resolve from
        cache: Fetch cache handle
        fetcher: Remote module fetcher
        obfuscator: Applied to local modules and the entry, or None
        modules: Module table filled by bundle()

    Example:
        >>> with BundlerSession(BundleConfig(entry="src/main.lua")) as session:
        ...     result = session.run()
        >>> result.module_count
        4
    """

    def __init__(
        self,
        config: BundleConfig,
        cache: FetchCache | None = None,
        fetcher: RemoteFetcher | None = None,
        obfuscator: SourceObfuscator | None = None,
    ) -> None:
        self.config = config
        self.entry_path = config.entry
        self.base_dir = resolve_base_dir(config.entry)

        if cache is None:
            cache = FileCache(config.cache_dir, enabled=config.use_cache, ttl=config.cache_ttl)
        self.cache = cache

        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher if fetcher is not None else RemoteFetcher(cache, timeout=config.timeout)

        if obfuscator is None and config.obfuscation_level > 0:
            obfuscator = Obfuscator(config.obfuscation_level)
        self.obfuscator = obfuscator

        self.resolver = PathResolver(self.base_dir, config.reserved_namespaces)
        self.modules = ModuleTable()
        self._used = False

        logger.debug(f"Session created: entry={self.entry_path}, base_dir={self.base_dir}")

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()

    def __enter__(self) -> "BundlerSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _read_entry(self) -> str:
        try:
            return self.entry_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ReadError(self.entry_path, e) from e

    def bundle(self) -> BundleResult:
        """Discover dependencies and produce the bundle text.

        Returns:
            BundleResult with the text and module table

        Raises:
            ReadError: If the entry or a local module cannot be read
            FetchError: If a remote module cannot be downloaded
        """
        if self._used:
            raise BundlerError("A BundlerSession can only bundle once")
        self._used = True

        with log_performance(logger, "Bundling", entry=self.entry_path):
            entry_source = self._read_entry()

            # The entry is obfuscated exactly once and scanned in that form,
            # the same as every local module.
            if self.obfuscator is not None:
                entry_source = self.obfuscator.obfuscate(entry_source)

            logger.info("Processing dependencies...")
            builder = ModuleGraphBuilder(self.resolver, self.fetcher, self.obfuscator, self.modules)
            builder.build(self.entry_path, entry_source)

            text = BundleEmitter().emit(self.modules, entry_source)

            if self.config.release:
                logger.info("Applying release mode...")
                text = TransformPipeline.release(self.config.debug_functions).apply(text)

        return BundleResult(
            text=text,
            modules=self.modules,
            entry=self.entry_path,
            release=self.config.release,
            obfuscation_level=self.config.obfuscation_level if self.obfuscator else 0,
        )

    def write(self, result: BundleResult, output: str | Path | None = None) -> Path:
        """Write a bundle result to the configured (or given) output path."""
        return write_output(result.text, output if output is not None else self.config.output)

    def run(self) -> BundleResult:
        """Bundle and write the output file."""
        result = self.bundle()
        self.write(result)
        return result
