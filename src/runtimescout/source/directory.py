"""Resolver for a single directory tree, such as an unpacked root filesystem."""

from __future__ import annotations

from pathlib import Path
from typing import Union

from .layers import LayeredResolver
from .resolver import Scope


class DirectoryResolver(LayeredResolver):
    """Single-layer view of ``root``.

    Files named like whiteout markers are ordinary files here. Symlinks
    resolve relative to ``root`` one component at a time, the way they
    would inside a chroot. Links to directories are followed during
    resolution but not enumerated; links that dangle or loop are enumerated
    under their own path and reported absent when opened.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        super().__init__((Path(root),), scope=Scope.SQUASHED, whiteouts=False)

    @property
    def root(self) -> Path:
        return self.layers[0]

    def __repr__(self) -> str:
        return f"DirectoryResolver(root={self.root.as_posix()!r})"


__all__ = ["DirectoryResolver"]
