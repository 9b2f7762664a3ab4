"""Tests for bundler exceptions."""

import pytest

from lua_bundler.exceptions import (
    BundlerError,
    CacheError,
    ConfigError,
    FetchError,
    ReadError,
    WriteError,
)


class TestBundlerError:
    """Tests for the exception hierarchy."""

    def test_context(self):
        """Test extra fields are kept in context."""
        err = BundlerError("Entry file missing", path="main.lua")
        assert err.msg == "Entry file missing"
        assert err.context == {"path": "main.lua"}
        assert str(err) == "Entry file missing"

    @pytest.mark.parametrize("cls", [ConfigError, ReadError, FetchError, WriteError, CacheError])
    def test_hierarchy(self, cls):
        """Test every error kind is a BundlerError."""
        assert issubclass(cls, BundlerError)

    def test_read_error(self):
        """Test read error message and fields."""
        cause = FileNotFoundError("No such file")
        err = ReadError("/project/util.lua", cause)
        assert str(err) == "failed to read file /project/util.lua: No such file"
        assert err.path == "/project/util.lua"
        assert err.cause is cause

    def test_fetch_error(self):
        """Test fetch error message and status."""
        err = FetchError("https://example.com/x.lua", "status 503", status=503)
        assert str(err) == "failed to download https://example.com/x.lua: status 503"
        assert err.status == 503
        assert err.context["url"] == "https://example.com/x.lua"

    def test_write_error(self):
        """Test write error message."""
        err = WriteError("out/bundle.lua", "permission denied")
        assert str(err) == "failed to write output out/bundle.lua: permission denied"

    def test_cache_error(self):
        """Test cache error message."""
        err = CacheError("https://example.com/x.lua", "disk full")
        assert err.key == "https://example.com/x.lua"
        assert "disk full" in str(err)
