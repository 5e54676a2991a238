"""Overlay resolution for unpacked container image layers.

Layers are plain directories ordered lowest first. The squashed view
applies them in order: an upper entry shadows a lower one, ``.wh.<name>``
whiteout markers delete ``<name>`` from lower layers and a
``.wh..wh..opq`` marker hides everything lower layers put in its directory.
Symlinks are resolved inside the image namespace, never against the host
filesystem, so absolute link targets stay within the scanned tree.
"""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from ..core.errors import LocationAbsentError, ResolutionError, wrap_os_error
from ..core.types import Location
from .resolver import Scope

logger = logging.getLogger(__name__)

WHITEOUT_PREFIX = ".wh."
OPAQUE_MARKER = ".wh..wh..opq"
_MAX_LINK_HOPS = 40


@dataclass(frozen=True)
class _Entry:
    image_path: str
    host_path: Path
    layer: int
    kind: str  # "file", "symlink", "whiteout" or "opaque"
    link_target: Optional[str] = None


_View = Dict[str, _Entry]


def _raise_walk_error(exc: OSError) -> None:
    raise wrap_os_error(exc.filename or "<unknown>", exc) from exc


def scan_layer(root: Path, layer: int, *, whiteouts: bool = True) -> List[_Entry]:
    """Return the file, symlink, and marker entries of one layer directory.

    Entries are ordered by image path. Symlinks are reported whatever they
    point at; directories, devices and sockets are not.
    """

    entries: List[_Entry] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        relative_dir = Path(dirpath).relative_to(root).as_posix()
        image_dir = "/" if relative_dir == "." else "/" + relative_dir
        for name in dirnames:
            host_path = Path(dirpath) / name
            try:
                if host_path.is_symlink():
                    entries.append(
                        _Entry(
                            posixpath.join(image_dir, name),
                            host_path,
                            layer,
                            "symlink",
                            link_target=os.readlink(host_path),
                        )
                    )
            except OSError as exc:
                raise wrap_os_error(host_path.as_posix(), exc) from exc
        for name in sorted(filenames):
            host_path = Path(dirpath) / name
            image_path = posixpath.join(image_dir, name)
            if whiteouts and name == OPAQUE_MARKER:
                entries.append(_Entry(image_path, host_path, layer, "opaque"))
                continue
            if whiteouts and name.startswith(WHITEOUT_PREFIX):
                entries.append(_Entry(image_path, host_path, layer, "whiteout"))
                continue
            try:
                if host_path.is_symlink():
                    target = os.readlink(host_path)
                    entries.append(
                        _Entry(image_path, host_path, layer, "symlink", link_target=target)
                    )
                elif host_path.is_file():
                    entries.append(_Entry(image_path, host_path, layer, "file"))
                else:
                    logger.debug("Skipping special file %s", host_path)
            except OSError as exc:
                raise wrap_os_error(host_path.as_posix(), exc) from exc
    entries.sort(key=lambda entry: entry.image_path)
    return entries


def _remove_subtree(view: _View, directory: str) -> None:
    prefix = directory.rstrip("/") + "/"
    for key in [key for key in view if key.startswith(prefix)]:
        del view[key]


def _ancestors(image_path: str) -> Iterator[str]:
    parent = posixpath.dirname(image_path)
    while parent != "/":
        yield parent
        parent = posixpath.dirname(parent)


def apply_layer(view: _View, entries: Sequence[_Entry]) -> None:
    """Overlay ``entries`` of one layer on top of ``view`` in place."""

    for entry in entries:
        parent = posixpath.dirname(entry.image_path)
        if entry.kind == "opaque":
            _remove_subtree(view, parent)
        elif entry.kind == "whiteout":
            hidden = posixpath.join(parent, posixpath.basename(entry.image_path)[len(WHITEOUT_PREFIX):])
            view.pop(hidden, None)
            _remove_subtree(view, hidden)
    lower_directories = _directories(view)
    for entry in entries:
        if entry.kind in ("file", "symlink"):
            # a directory in this layer replaces a lower file or link and vice versa
            for ancestor in _ancestors(entry.image_path):
                view.pop(ancestor, None)
            if entry.image_path in lower_directories:
                _remove_subtree(view, entry.image_path)
            view[entry.image_path] = entry


def _split(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def resolve_path(view: _View, image_path: str) -> Optional[str]:
    """Resolve every symlink along ``image_path`` inside the image namespace.

    Each component is looked up in ``view``, so links through symlinked
    directories (``/lib -> usr/lib``) resolve. ``..`` never climbs above
    the image root. Returns ``None`` after too many link hops.
    """

    pending = _split(image_path)
    resolved = "/"
    hops = 0
    while pending:
        name = pending.pop(0)
        if name == ".":
            continue
        if name == "..":
            resolved = posixpath.dirname(resolved)
            continue
        candidate = posixpath.join(resolved, name)
        entry = view.get(candidate)
        if entry is not None and entry.kind == "symlink":
            hops += 1
            if hops > _MAX_LINK_HOPS:
                return None
            target = entry.link_target or ""
            if target.startswith("/"):
                resolved = "/"
            pending = _split(target) + pending
            continue
        resolved = candidate
    return resolved


def resolve_link(view: _View, image_path: str) -> Optional[_Entry]:
    """Follow symlinks from ``image_path`` until a regular file is reached.

    Returns ``None`` for dangling links, loops, and links to directories.
    """

    resolved = resolve_path(view, image_path)
    if resolved is None:
        return None
    entry = view.get(resolved)
    if entry is None or entry.kind != "file":
        return None
    return entry


def _directories(view: _View) -> Set[str]:
    found: Set[str] = {"/"}
    for image_path in view:
        for ancestor in _ancestors(image_path):
            if ancestor in found:
                break
            found.add(ancestor)
    return found


class LayeredResolver:
    """Resolver over an ordered stack of layer directories.

    Args:
        layers: Layer directories, lowest first.
        scope: ``squashed`` yields the final overlay view once;
            ``all-layers`` yields every file each layer contributes, with
            symlinks resolved against the overlay as of that layer.
        whiteouts: Interpret ``.wh.`` markers. Disabled for plain
            directories.
    """

    concurrent_safe = True

    def __init__(
        self,
        layers: Sequence[Union[str, Path]],
        *,
        scope: Union[str, Scope] = Scope.SQUASHED,
        whiteouts: bool = True,
    ) -> None:
        if not layers:
            raise ResolutionError("/", "no layers to resolve")
        self._layers: Tuple[Path, ...] = tuple(Path(layer) for layer in layers)
        self._scope = Scope.parse(scope)
        self._whiteouts = whiteouts
        self._views: Optional[List[_View]] = None
        self._layer_entries: List[List[_Entry]] = []

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def layers(self) -> Tuple[Path, ...]:
        return self._layers

    def _build(self) -> List[_View]:
        if self._views is not None:
            return self._views
        views: List[_View] = []
        layer_entries: List[List[_Entry]] = []
        view: _View = {}
        for index, layer in enumerate(self._layers):
            entries = scan_layer(layer, index, whiteouts=self._whiteouts)
            apply_layer(view, entries)
            layer_entries.append(entries)
            views.append(dict(view))
        logger.debug(
            "Resolved %s layer(s) into %s squashed entries",
            len(self._layers),
            len(view),
        )
        self._layer_entries = layer_entries
        self._views = views
        return views

    def _location(
        self, view: _View, directories: Set[str], entry: _Entry, layer: Optional[int]
    ) -> Optional[Location]:
        if entry.kind == "file":
            return Location(entry.image_path, layer=layer)
        target = resolve_link(view, entry.image_path)
        if target is not None:
            return Location(target.image_path, virtual_path=entry.image_path, layer=layer)
        if resolve_path(view, entry.image_path) in directories:
            logger.debug("Skipping directory link %s", entry.image_path)
            return None
        return Location(entry.image_path, layer=layer)

    def all_locations(self) -> Iterator[Location]:
        views = self._build()
        if self._scope is Scope.ALL_LAYERS:
            for index, entries in enumerate(self._layer_entries):
                directories = _directories(views[index])
                for entry in entries:
                    if entry.kind in ("file", "symlink"):
                        location = self._location(views[index], directories, entry, index)
                        if location is not None:
                            yield location
            return
        top = views[-1]
        directories = _directories(top)
        for image_path in sorted(top):
            location = self._location(top, directories, top[image_path], None)
            if location is not None:
                yield location

    def _view_for(self, location: Location) -> _View:
        views = self._build()
        if location.layer is None or not 0 <= location.layer < len(views):
            return views[-1]
        return views[location.layer]

    def file_contents(self, location: Location) -> BinaryIO:
        """Open the content behind ``location`` for binary reading.

        Raises:
            LocationAbsentError: For dangling symlinks.
            ResolutionError: When the path is not in the view or cannot be
                opened.
        """

        view = self._view_for(location)
        entry = view.get(location.real_path)
        if entry is None:
            raise ResolutionError(location.real_path, "not present in the resolved view")
        if entry.kind == "symlink":
            target = resolve_link(view, entry.image_path)
            if target is None:
                raise LocationAbsentError(location.real_path, "dangling symlink")
            entry = target
        try:
            return entry.host_path.open("rb")
        except OSError as exc:
            raise wrap_os_error(location.real_path, exc) from exc

    def __repr__(self) -> str:
        return f"{type(self).__name__}(layers={len(self._layers)}, scope={self._scope.value!r})"


__all__ = [
    "LayeredResolver",
    "OPAQUE_MARKER",
    "WHITEOUT_PREFIX",
    "apply_layer",
    "resolve_link",
    "resolve_path",
    "scan_layer",
]
