"""Resolver contract and source factories.

A :class:`Source` describes what is being scanned (a directory or an ordered
stack of unpacked image layers). :meth:`Source.file_resolver` turns it into
a :class:`FileResolver` for a chosen :class:`Scope`.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    BinaryIO,
    ContextManager,
    Iterable,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

from ..core.errors import ConfigurationError, ResolutionError
from ..core.types import Location

if TYPE_CHECKING:  # pragma: no cover - import only for type hints
    from .layers import LayeredResolver


class Scope(str, Enum):
    """View of a source presented by its resolver."""

    SQUASHED = "squashed"
    ALL_LAYERS = "all-layers"

    @classmethod
    def parse(cls, value: Union[str, "Scope"]) -> "Scope":
        if isinstance(value, Scope):
            return value
        text = str(value).strip().lower().replace("_", "-")
        if text == "alllayers":
            text = cls.ALL_LAYERS.value
        for scope in cls:
            if scope.value == text:
                return scope
        raise ConfigurationError(f"bad scope value {value!r}")

    def __str__(self) -> str:
        return self.value


class FileResolver(Protocol):
    """Minimal surface the cataloger needs from a resolver."""

    concurrent_safe: bool

    def all_locations(self) -> Iterable[Location]:
        ...

    def file_contents(self, location: Location) -> ContextManager[BinaryIO]:
        ...


class Source:
    """A scannable tree made of one or more directories."""

    def __init__(self, layers: Sequence[Path], *, layered: bool) -> None:
        if not layers:
            raise ConfigurationError("a source needs at least one directory")
        resolved = []
        for layer in layers:
            path = Path(layer).expanduser()
            if not path.exists():
                raise ResolutionError(path.as_posix(), "Path does not exist")
            if not path.is_dir():
                raise ResolutionError(path.as_posix(), "Expected a directory")
            resolved.append(path.resolve())
        self._layers: Tuple[Path, ...] = tuple(resolved)
        self._layered = layered

    @classmethod
    def from_directory(cls, path: Union[str, Path]) -> "Source":
        return cls((Path(path),), layered=False)

    @classmethod
    def from_layers(cls, paths: Sequence[Union[str, Path]]) -> "Source":
        """Build a source from unpacked layer directories, lowest first."""

        return cls(tuple(Path(path) for path in paths), layered=True)

    @property
    def layers(self) -> Tuple[Path, ...]:
        return self._layers

    @property
    def layered(self) -> bool:
        return self._layered

    def file_resolver(self, scope: Union[str, Scope] = Scope.SQUASHED) -> "LayeredResolver":
        """Return a resolver presenting this source at ``scope``.

        A plain directory has a single view, so every scope resolves to the
        same locations.
        """

        selected = Scope.parse(scope)
        from .directory import DirectoryResolver
        from .layers import LayeredResolver

        if not self._layered:
            return DirectoryResolver(self._layers[0])
        return LayeredResolver(self._layers, scope=selected)

    def __repr__(self) -> str:
        kind = "layers" if self._layered else "directory"
        paths = ", ".join(path.as_posix() for path in self._layers)
        return f"Source({kind}: {paths})"


__all__ = ["FileResolver", "Scope", "Source"]
