"""runtimescout package.

Identifies embedded language runtimes and standalone binaries inside a
filesystem tree by matching path selectors and bounded byte patterns,
without executing anything it inspects.
"""

from __future__ import annotations

from .core import (
    DEFAULT_CLASSIFIERS,
    CatalogResult,
    Classification,
    ClassificationCataloger,
    Classifier,
    ConfigurationError,
    Location,
    LocationAbsentError,
    ResolutionError,
    RuntimescoutError,
    catalog,
    classifier_summary,
    default_classifiers,
    match,
)
from .source import DirectoryResolver, FileResolver, LayeredResolver, Scope, Source

__version__ = "0.1.0"

__all__ = [
    "CatalogResult",
    "Classification",
    "ClassificationCataloger",
    "Classifier",
    "ConfigurationError",
    "DEFAULT_CLASSIFIERS",
    "DirectoryResolver",
    "FileResolver",
    "LayeredResolver",
    "Location",
    "LocationAbsentError",
    "ResolutionError",
    "RuntimescoutError",
    "Scope",
    "Source",
    "catalog",
    "classifier_summary",
    "default_classifiers",
    "match",
]
