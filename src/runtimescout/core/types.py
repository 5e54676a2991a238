"""Shared data structures for the classification cataloger.

Example
-------
>>> first = Location("/usr/bin/python3.6")
>>> alias = Location("/usr/bin/python3.6", virtual_path="/usr/bin/python3")
>>> first == alias
True
>>> found = Classification("python-binary", {"version": "3.6.3"})
>>> aggregator = ResultAggregator()
>>> aggregator.add(first, [found])
>>> aggregator.add(alias, [found])
>>> result = aggregator.build()
>>> len(result), result.get_by_path("/usr/bin/python3.6")[0].metadata["version"]
(1, '3.6.3')
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)


def normalise_real_path(raw: str) -> str:
    """Return ``raw`` as an absolute, normalised POSIX path.

    Only separators and dot segments are touched. Backslashes and
    surrounding whitespace are legal in POSIX file names and are kept.
    """

    text = str(raw)
    if not text:
        raise ValueError("location paths cannot be empty")
    return posixpath.normpath("/" + text.lstrip("/"))


@dataclass(frozen=True)
class Location:
    """Resolver-issued identity for one file inside the scanned tree.

    Equality and hashing use ``real_path`` only, so the same file reached
    through a symlink or through several layers collapses to one key.
    """

    real_path: str
    virtual_path: Optional[str] = field(default=None, compare=False)
    layer: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        real = normalise_real_path(self.real_path)
        object.__setattr__(self, "real_path", real)
        if self.virtual_path is None:
            object.__setattr__(self, "virtual_path", real)
        else:
            object.__setattr__(
                self, "virtual_path", normalise_real_path(self.virtual_path)
            )

    @property
    def basename(self) -> str:
        return posixpath.basename(self.real_path)

    def candidate_paths(self) -> Tuple[str, ...]:
        """Return the distinct paths a file-selector should consider."""

        if self.virtual_path and self.virtual_path != self.real_path:
            return (self.real_path, self.virtual_path)
        return (self.real_path,)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"real_path": self.real_path}
        if self.virtual_path != self.real_path:
            payload["virtual_path"] = self.virtual_path
        if self.layer is not None:
            payload["layer"] = self.layer
        return payload


@dataclass(frozen=True)
class Classification:
    """Outcome of one classifier matching one location."""

    class_name: str
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.class_name, str) or not self.class_name:
            raise ValueError("Classification.class_name must be a non-empty string")
        values: Dict[str, str] = {}
        for key, value in dict(self.metadata).items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValueError("Classification metadata must map str to str")
            values[key] = value
        object.__setattr__(self, "metadata", MappingProxyType(values))

    def __hash__(self) -> int:
        return hash((self.class_name, frozenset(self.metadata.items())))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class": self.class_name,
            "metadata": dict(sorted(self.metadata.items())),
        }


class CatalogResult(Mapping[Location, Tuple[Classification, ...]]):
    """Read-only mapping of location to its ordered classifications.

    A location that matched nothing is absent; keys never map to an empty
    tuple.
    """

    __slots__ = ("_entries",)

    def __init__(
        self,
        entries: Optional[Mapping[Location, Sequence[Classification]]] = None,
    ) -> None:
        self._entries: Dict[Location, Tuple[Classification, ...]] = {}
        for location, classifications in (entries or {}).items():
            if classifications:
                self._entries[location] = tuple(classifications)

    def __getitem__(self, location: Location) -> Tuple[Classification, ...]:
        return self._entries[location]

    def __iter__(self) -> Iterator[Location]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CatalogResult({len(self._entries)} location(s))"

    def get_by_path(self, real_path: str) -> Tuple[Classification, ...]:
        """Return classifications for ``real_path`` or an empty tuple."""

        return self._entries.get(Location(real_path), ())

    def locations(self) -> Tuple[Location, ...]:
        """Return the matched locations sorted by real path."""

        return tuple(sorted(self._entries, key=lambda location: location.real_path))

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Return a JSON-ready mapping keyed by real path in sorted order."""

        return {
            location.real_path: [
                classification.to_dict() for classification in self._entries[location]
            ]
            for location in self.locations()
        }


class ResultAggregator:
    """Single-writer reducer that folds per-location results together.

    Locations are unique by real path. When the same real path arrives more
    than once its classifications are appended in arrival order, skipping
    any classification already recorded for that path.
    """

    def __init__(self) -> None:
        self._entries: Dict[Location, List[Classification]] = {}

    def add(self, location: Location, classifications: Iterable[Classification]) -> None:
        incoming = list(classifications)
        if not incoming:
            return
        existing = self._entries.get(location)
        if existing is None:
            self._entries[location] = incoming
            return
        for classification in incoming:
            if classification not in existing:
                existing.append(classification)

    def __len__(self) -> int:
        return len(self._entries)

    def build(self) -> CatalogResult:
        return CatalogResult(self._entries)


__all__ = [
    "CatalogResult",
    "Classification",
    "Location",
    "ResultAggregator",
    "normalise_real_path",
]
