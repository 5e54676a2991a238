"""Classification cataloging across every location a resolver exposes.

Examples
--------
>>> import io
>>> from contextlib import contextmanager
>>> from runtimescout.core.classifiers import Classifier
>>> class MemoryResolver:
...     concurrent_safe = True
...     files = {"/bin/tool": b"\\x00tool v1.2\\x00"}
...     def all_locations(self):
...         return [Location(path) for path in sorted(self.files)]
...     @contextmanager
...     def file_contents(self, location):
...         yield io.BytesIO(self.files[location.real_path])
>>> rule = Classifier(
...     class_name="tool-binary",
...     path_patterns=(r"(.*/|^)tool$",),
...     evidence_patterns=(r"tool v(?P<version>[0-9.]+[0-9])",),
... )
>>> result = ClassificationCataloger([rule], workers=1).catalog(MemoryResolver())
>>> result.get_by_path("/bin/tool")[0].metadata["version"]
'1.2'
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from .classifiers import DEFAULT_CLASSIFIERS, Classifier, validate_classifiers
from .errors import ConfigurationError, ResolutionError, wrap_os_error
from .matcher import ContentOpener, match, selector_values
from .types import CatalogResult, Classification, Location, ResultAggregator

if TYPE_CHECKING:  # pragma: no cover - import only for type hints
    from ..source.resolver import FileResolver

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


def _validate_workers(workers: int) -> int:
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ConfigurationError("workers must be a positive integer")
    return workers


class ClassificationCataloger:
    """Applies an ordered classifier set to every location of a resolver.

    The sweep is a map-then-reduce: workers classify locations
    independently and the calling thread folds their results into a
    :class:`ResultAggregator` in enumeration order, so the outcome does not
    depend on the worker count.
    """

    def __init__(
        self,
        classifiers: Optional[Sequence[Classifier]] = None,
        *,
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        """Create a cataloger.

        Args:
            classifiers: Ordered classifier set. ``None`` uses
                :data:`DEFAULT_CLASSIFIERS`; an empty sequence is rejected.
            workers: Upper bound on concurrent content probes. ``1`` runs
                inline on the calling thread.

        Raises:
            ConfigurationError: For an empty or invalid classifier set or a
                non-positive worker count.
        """

        selected = DEFAULT_CLASSIFIERS if classifiers is None else classifiers
        self._classifiers = validate_classifiers(selected)
        self._workers = _validate_workers(workers)

    @property
    def classifiers(self) -> Tuple[Classifier, ...]:
        return self._classifiers

    @property
    def workers(self) -> int:
        return self._workers

    def catalog(self, resolver: FileResolver) -> CatalogResult:
        """Classify every location ``resolver`` enumerates.

        Raises:
            ResolutionError: When enumeration fails or any selected location
                cannot be read. No partial result is returned.
        """

        locations = self._enumerate(resolver)
        candidates = [location for location in locations if self._is_candidate(location)]
        logger.debug(
            "Selected %s of %s location(s) for content probing",
            len(candidates),
            len(locations),
        )
        lock = None if getattr(resolver, "concurrent_safe", True) else threading.Lock()
        opener: ContentOpener = resolver.file_contents

        if self._workers == 1 or len(candidates) <= 1:
            pairs = [
                (location, self._classify(location, opener, lock, None))
                for location in candidates
            ]
        else:
            pairs = self._classify_concurrently(candidates, opener, lock)

        aggregator = ResultAggregator()
        for location, classifications in pairs:
            aggregator.add(location, classifications)
        result = aggregator.build()
        logger.info(
            "Cataloged %s location(s); %s classified", len(locations), len(result)
        )
        return result

    def _enumerate(self, resolver: FileResolver) -> List[Location]:
        try:
            return list(resolver.all_locations())
        except ResolutionError:
            raise
        except OSError as exc:
            raise wrap_os_error(exc.filename or "/", exc) from exc

    def _is_candidate(self, location: Location) -> bool:
        return any(
            selector_values(classifier, location) is not None
            for classifier in self._classifiers
        )

    def _classify(
        self,
        location: Location,
        opener: ContentOpener,
        lock: Optional[threading.Lock],
        abort: Optional[threading.Event],
    ) -> List[Classification]:
        found: List[Classification] = []
        for classifier in self._classifiers:
            if abort is not None and abort.is_set():
                break
            classification = match(classifier, location, opener, lock=lock)
            if classification is not None:
                found.append(classification)
        return found

    def _classify_concurrently(
        self,
        locations: Sequence[Location],
        opener: ContentOpener,
        lock: Optional[threading.Lock],
    ) -> List[Tuple[Location, List[Classification]]]:
        abort = threading.Event()
        with ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix="runtimescout-catalog"
        ) as executor:
            futures: List[Future[List[Classification]]] = [
                executor.submit(self._classify, location, opener, lock, abort)
                for location in locations
            ]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done and future.exception() is not None:
                    abort.set()
                    for waiting in pending:
                        waiting.cancel()
                    logger.debug("Aborting catalog run after failure: %s", future.exception())
                    raise future.exception()  # type: ignore[misc]
            return [
                (location, future.result())
                for location, future in zip(locations, futures)
            ]


def catalog(
    resolver: FileResolver,
    classifiers: Optional[Sequence[Classifier]] = None,
    *,
    workers: int = DEFAULT_WORKERS,
) -> CatalogResult:
    """Convenience wrapper that builds a cataloger for one run."""

    return ClassificationCataloger(classifiers, workers=workers).catalog(resolver)


__all__ = ["ClassificationCataloger", "DEFAULT_WORKERS", "catalog"]
