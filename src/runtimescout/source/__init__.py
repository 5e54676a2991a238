"""Sources and resolvers that expose a filesystem tree to the cataloger."""

from .directory import DirectoryResolver
from .layers import LayeredResolver
from .resolver import FileResolver, Scope, Source

__all__ = [
    "DirectoryResolver",
    "FileResolver",
    "LayeredResolver",
    "Scope",
    "Source",
]
