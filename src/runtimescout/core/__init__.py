"""runtimescout core module exports."""

from .cataloger import DEFAULT_WORKERS, ClassificationCataloger, catalog
from .classifiers import (
    DEFAULT_CLASSIFIERS,
    FULL_SCAN_LIMIT,
    Classifier,
    build_default_classifiers,
    classifier_summary,
    default_classifiers,
    validate_classifiers,
)
from .errors import (
    ConfigurationError,
    LocationAbsentError,
    ResolutionError,
    RuntimescoutError,
)
from .matcher import extract_evidence, match, selector_values
from .types import CatalogResult, Classification, Location, ResultAggregator

__all__ = [
    "CatalogResult",
    "Classification",
    "ClassificationCataloger",
    "Classifier",
    "ConfigurationError",
    "DEFAULT_CLASSIFIERS",
    "DEFAULT_WORKERS",
    "FULL_SCAN_LIMIT",
    "Location",
    "LocationAbsentError",
    "ResolutionError",
    "ResultAggregator",
    "RuntimescoutError",
    "build_default_classifiers",
    "catalog",
    "classifier_summary",
    "default_classifiers",
    "extract_evidence",
    "match",
    "selector_values",
    "validate_classifiers",
]
