"""Tests for dependency scanning and module graph discovery."""

import logging
import tempfile
from pathlib import Path
from unittest import mock

import pytest

from lua_bundler.bundling.dependencies import (
    ModuleGraphBuilder,
    ModuleOrigin,
    ModuleRecord,
    ModuleTable,
    ReferenceKind,
    scan_line,
    scan_references,
)
from lua_bundler.bundling.resolver import PathResolver
from lua_bundler.exceptions import FetchError, ReadError
from lua_bundler.logging import TRACE
from lua_bundler.obfuscator import Obfuscator

LIB_URL = "https://example.com/lib.lua"


class FakeFetcher:
    """Fetcher serving canned sources and recording requested URLs."""

    def __init__(self, sources=None):
        self.sources = sources or {}
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        if url not in self.sources:
            raise FetchError(url, "status 404", status=404)
        return self.sources[url]


def write_modules(base, files):
    """Write a dict of relative path -> source under base."""
    for name, source in files.items():
        path = Path(base) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source)


def build(base, entry_source, fetcher=None, obfuscator=None):
    builder = ModuleGraphBuilder(PathResolver(base), fetcher or FakeFetcher(), obfuscator)
    return builder.build(Path(base) / "main.lua", entry_source)


class TestScanLine:
    """Tests for scan_line function."""

    def test_require_double_quotes(self):
        """Test require with double quotes."""
        refs = scan_line('local m = require("utils.math")', 3)
        assert len(refs) == 1
        assert refs[0].literal == "utils.math"
        assert refs[0].kind is ReferenceKind.REQUIRE
        assert refs[0].line == 3

    def test_require_single_quotes(self):
        """Test require with single quotes."""
        refs = scan_line("local m = require('helper')")
        assert [r.literal for r in refs] == ["helper"]

    def test_require_unquoted(self):
        """Test unquoted dotted require."""
        refs = scan_line("local m = require(script.Parent.Module)")
        assert [r.literal for r in refs] == ["script.Parent.Module"]

    def test_require_with_spaces(self):
        """Test whitespace inside the call."""
        refs = scan_line('local m = require ( "helper" )')
        assert [r.literal for r in refs] == ["helper"]

    def test_require_word_boundary(self):
        """Test identifiers ending in require are not matched."""
        assert scan_line('local m = myrequire("helper")') == []

    def test_fetch(self):
        """Test fetch-and-execute idiom."""
        refs = scan_line(f'loadstring(game:HttpGet("{LIB_URL}"))()')
        assert len(refs) == 1
        assert refs[0].literal == LIB_URL
        assert refs[0].kind is ReferenceKind.FETCH

    def test_fetch_single_quotes(self):
        """Test fetch with single-quoted URL."""
        refs = scan_line(f"local lib = loadstring(game:HttpGet('{LIB_URL}'))()")
        assert [r.literal for r in refs] == [LIB_URL]

    def test_fetch_without_call_is_ignored(self):
        """Test loadstring result that is not executed is not a dependency."""
        assert scan_line(f'local f = loadstring(game:HttpGet("{LIB_URL}"))') == []

    def test_guard_nested_string(self):
        """Test fetch passed as a string argument is skipped."""
        line = f"queue_on_teleport(\"loadstring(game:HttpGet('{LIB_URL}'))()\")"
        assert scan_line(line) == []

    def test_guard_skips_whole_line(self):
        """Test guard also drops requires on the same line."""
        line = f"queue_on_teleport(\"loadstring(game:HttpGet('{LIB_URL}'))()\") require(\"x\")"
        assert scan_line(line) == []

    def test_multiple_requires(self):
        """Test every require on a line is found."""
        refs = scan_line('local a, b = require("a"), require("b")')
        assert [r.literal for r in refs] == ["a", "b"]

    def test_fetch_before_require(self):
        """Test fetches on a line are returned before requires."""
        line = f'local u = require("u") loadstring(game:HttpGet("{LIB_URL}"))()'
        refs = scan_line(line)
        assert [r.kind for r in refs] == [ReferenceKind.FETCH, ReferenceKind.REQUIRE]

    def test_no_references(self):
        """Test plain code has no references."""
        assert scan_line("local x = 1 + 2") == []


class TestScanReferences:
    """Tests for scan_references function."""

    def test_line_order(self):
        """Test references come back in line order with line numbers."""
        source = "\n".join([
            'local util = require("util")',
            f'loadstring(game:HttpGet("{LIB_URL}"))()',
            "print(util)",
            "local cfg = require('config')",
        ])
        refs = scan_references(source)
        assert [(r.kind, r.literal, r.line) for r in refs] == [
            (ReferenceKind.REQUIRE, "util", 1),
            (ReferenceKind.FETCH, LIB_URL, 2),
            (ReferenceKind.REQUIRE, "config", 4),
        ]

    def test_empty_source(self):
        """Test empty source has no references."""
        assert scan_references("") == []


class TestModuleTable:
    """Tests for ModuleTable class."""

    def test_insertion_order(self):
        """Test records iterate in insertion order."""
        table = ModuleTable()
        table.add(ModuleRecord("b", "return 2", ModuleOrigin.LOCAL))
        table.add(ModuleRecord(LIB_URL, "return 3", ModuleOrigin.REMOTE))
        table.add(ModuleRecord("a", "return 1", ModuleOrigin.LOCAL))

        assert table.keys() == ["b", LIB_URL, "a"]
        assert [r.key for r in table] == ["b", LIB_URL, "a"]
        assert len(table) == 3

    def test_membership(self):
        """Test membership and lookup."""
        table = ModuleTable()
        record = ModuleRecord("a", "return 1", ModuleOrigin.LOCAL)
        table.add(record)

        assert "a" in table
        assert "b" not in table
        assert table.get("a") is record
        assert table.get("b") is None

    def test_remote_and_local(self):
        """Test origin filters."""
        table = ModuleTable()
        table.add(ModuleRecord("a", "", ModuleOrigin.LOCAL))
        table.add(ModuleRecord(LIB_URL, "", ModuleOrigin.REMOTE))

        assert [r.key for r in table.local] == ["a"]
        assert [r.key for r in table.remote] == [LIB_URL]
        assert table.get(LIB_URL).is_remote


class TestModuleGraphBuilder:
    """Tests for ModuleGraphBuilder class."""

    def test_single_local_module(self):
        """Test a required file is read and stored."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {"helper.lua": "return { add = function(a, b) return a + b end }"})

            modules = build(tmpdir, 'local helper = require("helper")')

            record = modules.get("helper")
            assert record is not None
            assert record.origin is ModuleOrigin.LOCAL
            assert record.path == Path(tmpdir) / "helper.lua"
            assert "function(a, b)" in record.source
            assert not record.obfuscated

    def test_circular_dependency(self):
        """Test A requires B, B requires A terminates with one record each."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {
                "a.lua": 'local b = require("b")\nreturn {}',
                "b.lua": 'local a = require("a")\nreturn {}',
            })

            modules = build(tmpdir, 'require("a")')

            assert modules.keys() == ["a", "b"]

    def test_shared_reference_read_once(self):
        """Test a literal required from two files is read once."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {
                "a.lua": 'local s = require("shared")\nreturn {}',
                "shared.lua": "return {}",
            })
            builder = ModuleGraphBuilder(PathResolver(tmpdir), FakeFetcher())

            with mock.patch.object(builder, "_load_local", wraps=builder._load_local) as load:
                builder.build(Path(tmpdir) / "main.lua", 'require("shared")\nrequire("a")')

            assert load.call_count == 2
            assert builder.modules.keys() == ["shared", "a"]

    def test_shared_url_fetched_once(self):
        """Test a URL referenced from two files is fetched once."""
        fetch_line = f'loadstring(game:HttpGet("{LIB_URL}"))()'
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {"a.lua": fetch_line})
            fetcher = FakeFetcher({LIB_URL: "return 1"})

            modules = build(tmpdir, f'{fetch_line}\nrequire("a")', fetcher)

            assert fetcher.calls == [LIB_URL]
            assert modules.keys() == [LIB_URL, "a"]
            assert modules.get(LIB_URL).is_remote

    def test_depth_first_order(self):
        """Test dependencies of a module come before its later siblings."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {
                "a.lua": 'require("c")',
                "b.lua": "return 2",
                "c.lua": "return 3",
            })

            modules = build(tmpdir, 'require("a")\nrequire("b")')

            assert modules.keys() == ["a", "c", "b"]

    def test_guarded_fetch_not_downloaded(self):
        """Test a URL nested in a string argument triggers zero fetches."""
        with tempfile.TemporaryDirectory() as tmpdir:
            fetcher = FakeFetcher({LIB_URL: "return 1"})
            entry = f"queue_on_teleport(\"loadstring(game:HttpGet('{LIB_URL}'))()\")"

            modules = build(tmpdir, entry, fetcher)

            assert fetcher.calls == []
            assert len(modules) == 0

    def test_host_reference_skipped(self):
        """Test external references are left to the runtime."""
        with tempfile.TemporaryDirectory() as tmpdir:
            entry = "local shared = require(game.ReplicatedStorage.Shared)"
            modules = build(tmpdir, entry)
            assert len(modules) == 0

    def test_chain_with_obfuscation(self):
        """Test A -> B -> C with obfuscation level 2 yields all three."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {
                "a.lua": '-- module a\nlocal b = require("b")\nreturn { name = "a" }',
                "b.lua": 'local c = require("c")\nreturn { name = "b" }',
                "c.lua": 'return { name = "c" }',
            })

            modules = build(tmpdir, 'local a = require("a")', obfuscator=Obfuscator(2))

            assert modules.keys() == ["a", "b", "c"]
            for record in modules:
                assert record.obfuscated
                assert "-- module a" not in record.source
            assert '"\\099"' in modules.get("c").source

    def test_remote_module_requires_resolve_from_base(self):
        """Test requires inside a remote module resolve against base."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {"util.lua": "return {}"})
            fetcher = FakeFetcher({LIB_URL: 'local util = require("util")\nreturn util'})

            modules = build(tmpdir, f'loadstring(game:HttpGet("{LIB_URL}"))()', fetcher)

            assert modules.keys() == [LIB_URL, "util"]
            assert modules.get("util").path == Path(tmpdir) / "util.lua"

    def test_remote_module_not_obfuscated(self):
        """Test remote sources are stored as fetched."""
        with tempfile.TemporaryDirectory() as tmpdir:
            remote_source = '-- remote\nreturn "lib"'
            fetcher = FakeFetcher({LIB_URL: remote_source})

            modules = build(
                tmpdir,
                f'loadstring(game:HttpGet("{LIB_URL}"))()',
                fetcher,
                obfuscator=Obfuscator(3),
            )

            record = modules.get(LIB_URL)
            assert record.source == remote_source
            assert not record.obfuscated

    def test_nested_relative_requires(self):
        """Test relative references resolve from the requiring file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {
                "sub/a.lua": 'require("./b")',
                "sub/b.lua": "return 2",
            })

            modules = build(tmpdir, 'require("sub/a")')

            assert modules.keys() == ["sub/a", "./b"]
            assert modules.get("./b").path == Path(tmpdir) / "sub" / "b.lua"

    def test_missing_module_raises(self):
        """Test an unreadable module aborts with ReadError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ReadError) as exc_info:
                build(tmpdir, 'require("missing")')

            assert "missing.lua" in str(exc_info.value)
            assert exc_info.value.path == str(Path(tmpdir) / "missing.lua")

    def test_fetch_failure_propagates(self):
        """Test a failed fetch aborts the walk."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(FetchError) as exc_info:
                build(tmpdir, f'loadstring(game:HttpGet("{LIB_URL}"))()', FakeFetcher())

            assert exc_info.value.status == 404

    def test_scanned_lines_traced(self, caplog):
        """Test every scanned line is logged at TRACE."""
        with tempfile.TemporaryDirectory() as tmpdir:
            write_modules(tmpdir, {"a.lua": "return 1"})

            with caplog.at_level(TRACE, logger="lua_bundler.bundling.dependencies"):
                build(tmpdir, 'local a = require("a")\nreturn a')

            assert f"Scanning {Path(tmpdir) / 'main.lua'}:1: local a = require(\"a\")" in caplog.text
            assert f"Scanning {Path(tmpdir) / 'main.lua'}:2: return a" in caplog.text
            assert f"Scanning {Path(tmpdir) / 'a.lua'}:1: return 1" in caplog.text

    def test_scanned_lines_not_traced_by_default(self, caplog):
        """Test scanned lines stay out of DEBUG output."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with caplog.at_level(logging.DEBUG, logger="lua_bundler.bundling.dependencies"):
                build(tmpdir, "return 1")

            assert "Scanning" not in caplog.text
