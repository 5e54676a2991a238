"""Evidence matching for a single classifier against a single location.

The matcher keeps two predicates apart: :func:`selector_values` is the cheap
path filter that never touches content, and :func:`extract_evidence` is the
content probe run over a bounded byte buffer. :func:`match` combines them
with scoped content acquisition.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import BinaryIO, Callable, ContextManager, Dict, Mapping, Optional

from .classifiers import Classifier
from .errors import LocationAbsentError, ResolutionError, wrap_os_error
from .types import Classification, Location

logger = logging.getLogger(__name__)

ContentOpener = Callable[[Location], ContextManager[BinaryIO]]


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def selector_values(classifier: Classifier, location: Location) -> Optional[Dict[str, str]]:
    """Return named selector groups when ``classifier`` selects ``location``.

    ``None`` means the location was rejected. An empty dict means it was
    selected without capturing any values.
    """

    for path in location.candidate_paths():
        for selector in classifier.selectors:
            found = selector.search(path)
            if found is not None:
                return {
                    name: value
                    for name, value in found.groupdict().items()
                    if value is not None
                }
    return None


def extract_evidence(
    classifier: Classifier,
    content: bytes,
    values: Optional[Mapping[str, str]] = None,
) -> Optional[Dict[str, str]]:
    """Search ``content`` with every evidence pattern of ``classifier``.

    Returns the participating named groups of the leftmost match of each
    pattern, or ``None`` when any pattern finds nothing.
    """

    try:
        regexes = classifier.evidence_regexes(values)
    except KeyError as exc:
        logger.debug(
            "Classifier %s has no selector value for %s", classifier.class_name, exc
        )
        return None
    metadata: Dict[str, str] = {}
    for regex in regexes:
        found = regex.search(content)
        if found is None:
            return None
        for name, value in found.groupdict().items():
            if value is not None:
                metadata[name] = _decode(value)
    return metadata


def read_content(
    classifier: Classifier,
    location: Location,
    opener: ContentOpener,
    *,
    lock: Optional[ContextManager[object]] = None,
) -> bytes:
    """Read up to ``classifier.read_limit`` bytes from ``location``.

    Raises:
        ResolutionError: When the location cannot be opened or read.
    """

    guard = lock if lock is not None else nullcontext()
    with guard:
        try:
            with opener(location) as handle:
                return handle.read(classifier.read_limit)
        except ResolutionError:
            raise
        except OSError as exc:
            raise wrap_os_error(location.real_path, exc) from exc


def match(
    classifier: Classifier,
    location: Location,
    opener: ContentOpener,
    *,
    lock: Optional[ContextManager[object]] = None,
) -> Optional[Classification]:
    """Evaluate ``classifier`` against ``location``.

    Args:
        classifier: Rule to apply.
        location: Candidate file.
        opener: Callable returning a context-managed binary handle for a
            location, usually ``resolver.file_contents``.
        lock: Optional lock held while opening and reading, for resolvers
            that cannot serve concurrent reads.

    Returns:
        A :class:`Classification`, or ``None`` for no match.

    Raises:
        ResolutionError: When content cannot be read, unless the resolver
            reported the location as absent.
    """

    values = selector_values(classifier, location)
    if values is None:
        return None
    try:
        content = read_content(classifier, location, opener, lock=lock)
    except LocationAbsentError as exc:
        logger.debug("Skipping absent location %s: %s", location.real_path, exc.reason)
        return None
    metadata = extract_evidence(classifier, content, values)
    if metadata is None:
        logger.debug(
            "No %s evidence in %s (%s bytes read)",
            classifier.class_name,
            location.real_path,
            len(content),
        )
        return None
    logger.debug("Classified %s as %s", location.real_path, classifier.class_name)
    return Classification(class_name=classifier.class_name, metadata=metadata)


__all__ = [
    "ContentOpener",
    "extract_evidence",
    "match",
    "read_content",
    "selector_values",
]
