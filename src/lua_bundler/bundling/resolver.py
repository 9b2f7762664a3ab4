"""Module reference classification and path resolution.

A reference is the literal text written inside ``require(...)``. It is
either Local (a file under the project) or External (a host API object
such as ``game.ReplicatedStorage.Shared``) that the runtime resolves itself.
"""

import os
from enum import Enum
from pathlib import Path

LUA_EXTENSION = ".lua"
NAMESPACE_SEPARATOR = "::"

# Leading segments of dotted references that name host services, not files
DEFAULT_RESERVED_NAMESPACES = frozenset({
    "game",
    "workspace",
    "script",
    "ReplicatedStorage",
    "ServerStorage",
    "StarterGui",
    "StarterPack",
    "StarterPlayer",
    "Lighting",
    "SoundService",
    "TweenService",
    "HttpService",
    "RunService",
    "UserInputService",
    "Players",
    "Teams",
    "Debris",
    "CollectionService",
})


class ModuleKind(str, Enum):
    """Where a module reference is satisfied from."""

    LOCAL = "local"
    EXTERNAL = "external"


def strip_quotes(ref: str) -> str:
    """Remove wrapping quote characters from a reference."""
    return ref.strip("'\"")


def classify(
    ref: str,
    reserved_namespaces: frozenset[str] | set[str] = DEFAULT_RESERVED_NAMESPACES,
) -> ModuleKind:
    """Classify a module reference as Local or External.

    External checks run first: a ``::`` separator, or a dotted chain whose
    first segment is a reserved host namespace. A bare name without a dot
    is always Local, even when it equals a reserved name.

    Args:
        ref: Literal reference, quoted or not
        reserved_namespaces: Leading segments treated as host namespaces

    Returns:
        ModuleKind.LOCAL or ModuleKind.EXTERNAL

    Example:
        >>> classify("utils/helper")
        <ModuleKind.LOCAL: 'local'>
        >>> classify("game.Workspace")
        <ModuleKind.EXTERNAL: 'external'>
    """
    ref = strip_quotes(ref)

    if NAMESPACE_SEPARATOR in ref:
        return ModuleKind.EXTERNAL

    if "." in ref and ref.split(".")[0] in reserved_namespaces:
        return ModuleKind.EXTERNAL

    # Relative, absolute-from-base, subdirectory, explicit extension,
    # dot-path and bare identifier forms all live on disk.
    return ModuleKind.LOCAL


def _is_dot_path(ref: str) -> bool:
    return (
        "." in ref
        and "/" not in ref
        and NAMESPACE_SEPARATOR not in ref
        and not ref.endswith(LUA_EXTENSION)
    )


def _with_extension(path: str) -> str:
    if not path.endswith(LUA_EXTENSION):
        path += LUA_EXTENSION
    return path


def resolve(current_file: str | Path | None, ref: str, base_dir: str | Path) -> Path:
    """Resolve a Local module reference to a file path.

    The order of checks matters: absolute-from-base (``/core``) and
    dot-path (``tasks.cook``) forms are tried before falling back to a path
    relative to the requiring file.

    Args:
        current_file: File containing the require, or None when the
            requiring source has no directory (a remote module)
        ref: Literal reference, quoted or not
        base_dir: Project base directory

    Returns:
        Normalized path ending in ``.lua``

    Example:
        >>> resolve("/base/main.lua", "helper", "/base")
        PosixPath('/base/helper.lua')
        >>> resolve("/base/sub/file.lua", "modules.tasks.cook", "/base")
        PosixPath('/base/modules/tasks/cook.lua')
    """
    ref = strip_quotes(ref)
    base = str(base_dir)

    if ref.startswith("/"):
        resolved = os.path.join(base, ref.lstrip("/"))
    elif _is_dot_path(ref):
        segments = [part for part in ref.split(".") if part]
        resolved = os.path.join(base, *segments)
    else:
        current_dir = os.path.dirname(str(current_file)) if current_file else base
        resolved = os.path.join(current_dir, ref)

    return Path(os.path.normpath(_with_extension(resolved)))


class PathResolver:
    """Classifies and resolves references against one base directory.

    Attributes:
        base_dir: Directory that absolute (``/x``) and dot-path references
            are resolved from
        reserved_namespaces: Leading segments treated as host namespaces
    """

    def __init__(
        self,
        base_dir: str | Path,
        reserved_namespaces: frozenset[str] | set[str] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.reserved_namespaces = frozenset(
            DEFAULT_RESERVED_NAMESPACES if reserved_namespaces is None else reserved_namespaces
        )

    def classify(self, ref: str) -> ModuleKind:
        """Classify a reference using this resolver's namespaces."""
        return classify(ref, self.reserved_namespaces)

    def is_local(self, ref: str) -> bool:
        return self.classify(ref) is ModuleKind.LOCAL

    def resolve(self, current_file: str | Path | None, ref: str) -> Path:
        """Resolve a Local reference from the given requiring file."""
        return resolve(current_file, ref, self.base_dir)
