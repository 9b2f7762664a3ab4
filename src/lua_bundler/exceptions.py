"""Bundler exceptions."""

from typing import Any


class BundlerError(Exception):
    """Base class for all bundling failures.

    Attributes:
        msg: Human-readable error message
        context: Extra fields describing the failure (path, url, cause, ...)

    Example:
        raise BundlerError("Entry file missing", path="main.lua")
        # err.context == {"path": "main.lua"}
    """

    def __init__(self, msg: str, **context: Any) -> None:
        super().__init__(msg)
        self.msg = msg
        self.context: dict[str, Any] = context

    def __str__(self) -> str:
        return self.msg


class ConfigError(BundlerError):
    """Raised when the bundler cannot be configured.

    Covers working-directory lookup failures and invalid settings.
    """


class ReadError(BundlerError):
    """Raised when an entry or module file cannot be read."""

    def __init__(self, path: Any, cause: BaseException | str) -> None:
        super().__init__(f"failed to read file {path}: {cause}", path=str(path), cause=cause)
        self.path = str(path)
        self.cause = cause


class FetchError(BundlerError):
    """Raised when a remote module cannot be downloaded."""

    def __init__(
        self,
        url: str,
        cause: BaseException | str,
        status: int | None = None,
    ) -> None:
        super().__init__(f"failed to download {url}: {cause}", url=url, cause=cause, status=status)
        self.url = url
        self.cause = cause
        self.status = status


class WriteError(BundlerError):
    """Raised when the bundle cannot be written to its destination."""

    def __init__(self, path: Any, cause: BaseException | str) -> None:
        super().__init__(f"failed to write output {path}: {cause}", path=str(path), cause=cause)
        self.path = str(path)
        self.cause = cause


class CacheError(BundlerError):
    """Raised by a fetch cache backend when storage fails.

    The fetcher treats this as non-fatal: a failed read is a miss and a
    failed write is ignored.
    """

    def __init__(self, key: str, cause: BaseException | str) -> None:
        super().__init__(f"cache failure for {key}: {cause}", key=key, cause=cause)
        self.key = key
        self.cause = cause
