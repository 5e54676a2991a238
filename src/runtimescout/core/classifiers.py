"""Classifier definitions and the default fingerprint set.

A classifier pairs a cheap path selector with one or more byte-level
evidence patterns. Selector patterns run against the location's real and
virtual paths; named groups they capture may be referenced from evidence
patterns as ``${name}`` placeholders, which are substituted as escaped
literals before the evidence pattern is compiled. Named groups in the
evidence patterns become classification metadata.

Example
-------
>>> rule = Classifier(
...     class_name="demo-binary",
...     path_patterns=(r"(.*/|^)demo(?P<major>[0-9]+)$",),
...     evidence_patterns=(r"demo v(?P<version>${major}\\.[0-9]+)",),
...     max_bytes=1024,
... )
>>> rule.placeholders
('major',)
>>> rule.evidence_regexes({"major": "2"})[0].pattern
b'demo v(?P<version>2\\\\.[0-9]+)'
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

FULL_SCAN_LIMIT = 64 * 1024 * 1024  # Hard ceiling for any single read.
_HINT_FILE_LIMIT = 64 * 1024

_VALID_CLASS = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
_PLACEHOLDER = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)\}")
_VALIDATION_LITERAL = "0"


def _render(template: str, values: Mapping[str, str]) -> str:
    return _PLACEHOLDER.sub(lambda found: re.escape(values[found.group("name")]), template)


@functools.lru_cache(maxsize=512)
def _compile_evidence(rendered: str) -> "re.Pattern[bytes]":
    return re.compile(rendered.encode("utf-8"))


def _compile_selector(pattern: str, class_name: str) -> "re.Pattern[str]":
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(
            f"classifier {class_name!r}: invalid path pattern {pattern!r}: {exc}"
        ) from exc


def _as_pattern_tuple(value: Any, *, field_name: str, class_name: str) -> Tuple[str, ...]:
    if isinstance(value, (str, bytes)):
        value = (value,)
    patterns: List[str] = []
    for item in value:
        if isinstance(item, re.Pattern):
            item = item.pattern
        if isinstance(item, bytes):
            item = item.decode("utf-8")
        if not isinstance(item, str) or not item:
            raise ConfigurationError(
                f"classifier {class_name!r}: {field_name} entries must be non-empty strings"
            )
        patterns.append(item)
    if not patterns:
        raise ConfigurationError(
            f"classifier {class_name!r}: at least one entry is required in {field_name}"
        )
    return tuple(patterns)


@dataclass(frozen=True)
class Classifier:
    """Immutable rule that recognises one kind of embedded artifact.

    Args:
        class_name: Slug reported on every classification this rule makes.
        path_patterns: Regular expressions searched against the location's
            real and virtual paths. Any match selects the location.
        evidence_patterns: Byte regular expressions that must all match the
            content. Named groups become metadata keys.
        max_bytes: Optional read bound. ``None`` scans the whole file up to
            :data:`FULL_SCAN_LIMIT`.
        description: Free text used by summaries.

    Raises:
        ConfigurationError: When a pattern does not compile, a placeholder
            references an unknown selector group, or two evidence patterns
            define the same group name.
    """

    class_name: str
    path_patterns: Tuple[str, ...]
    evidence_patterns: Tuple[str, ...]
    max_bytes: Optional[int] = None
    description: str = field(default="", compare=False)
    _selectors: Tuple["re.Pattern[str]", ...] = field(
        init=False, repr=False, compare=False
    )
    _placeholders: Tuple[str, ...] = field(init=False, repr=False, compare=False)
    _group_names: Tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        name = self.class_name
        if not isinstance(name, str) or not _VALID_CLASS.match(name):
            raise ConfigurationError(
                f"classifier class name must be a lowercase slug, got {name!r}"
            )
        path_patterns = _as_pattern_tuple(
            self.path_patterns, field_name="path_patterns", class_name=name
        )
        evidence_patterns = _as_pattern_tuple(
            self.evidence_patterns, field_name="evidence_patterns", class_name=name
        )
        object.__setattr__(self, "path_patterns", path_patterns)
        object.__setattr__(self, "evidence_patterns", evidence_patterns)

        selectors = tuple(_compile_selector(pattern, name) for pattern in path_patterns)
        object.__setattr__(self, "_selectors", selectors)

        placeholders: List[str] = []
        for template in evidence_patterns:
            for found in _PLACEHOLDER.finditer(template):
                if found.group("name") not in placeholders:
                    placeholders.append(found.group("name"))
        for placeholder in placeholders:
            missing = [
                selector.pattern
                for selector in selectors
                if placeholder not in selector.groupindex
            ]
            if missing:
                raise ConfigurationError(
                    f"classifier {name!r}: placeholder ${{{placeholder}}} is not a named"
                    f" group of path pattern(s) {missing!r}"
                )
        object.__setattr__(self, "_placeholders", tuple(placeholders))

        stand_in = {placeholder: _VALIDATION_LITERAL for placeholder in placeholders}
        seen: Dict[str, str] = {}
        for template in evidence_patterns:
            try:
                compiled = _compile_evidence(_render(template, stand_in))
            except re.error as exc:
                raise ConfigurationError(
                    f"classifier {name!r}: invalid evidence pattern {template!r}: {exc}"
                ) from exc
            for group in compiled.groupindex:
                if group in seen:
                    raise ConfigurationError(
                        f"classifier {name!r}: group name {group!r} is defined by both"
                        f" {seen[group]!r} and {template!r}"
                    )
                seen[group] = template
        if not seen:
            raise ConfigurationError(
                f"classifier {name!r}: evidence patterns must define at least one"
                " named group"
            )
        object.__setattr__(self, "_group_names", tuple(seen))

        if self.max_bytes is not None:
            if not isinstance(self.max_bytes, int) or self.max_bytes <= 0:
                raise ConfigurationError(
                    f"classifier {name!r}: max_bytes must be a positive integer"
                )
            if self.max_bytes > FULL_SCAN_LIMIT:
                logger.warning(
                    "Classifier %s requests %s bytes; clamping to %s.",
                    name,
                    self.max_bytes,
                    FULL_SCAN_LIMIT,
                )
                object.__setattr__(self, "max_bytes", FULL_SCAN_LIMIT)

    @property
    def selectors(self) -> Tuple["re.Pattern[str]", ...]:
        return self._selectors

    @property
    def placeholders(self) -> Tuple[str, ...]:
        return self._placeholders

    @property
    def group_names(self) -> Tuple[str, ...]:
        """Named evidence groups, i.e. the possible metadata keys."""

        return self._group_names

    @property
    def read_limit(self) -> int:
        return FULL_SCAN_LIMIT if self.max_bytes is None else self.max_bytes

    def evidence_regexes(
        self, values: Optional[Mapping[str, str]] = None
    ) -> Tuple["re.Pattern[bytes]", ...]:
        """Return the compiled evidence patterns for ``values``.

        Raises:
            KeyError: When a placeholder has no value.
        """

        values = values or {}
        return tuple(
            _compile_evidence(_render(template, values))
            for template in self.evidence_patterns
        )


def validate_classifiers(classifiers: Iterable[Classifier]) -> Tuple[Classifier, ...]:
    """Return ``classifiers`` as a tuple after checking the set is usable.

    Raises:
        ConfigurationError: For an empty set, non-classifier members, or
            duplicate class names.
    """

    if classifiers is None:
        raise ConfigurationError("a classifier set is required")
    selected = tuple(classifiers)
    if not selected:
        raise ConfigurationError("the classifier set is empty")
    names: set[str] = set()
    for classifier in selected:
        if not isinstance(classifier, Classifier):
            raise ConfigurationError(f"not a Classifier: {classifier!r}")
        if classifier.class_name in names:
            raise ConfigurationError(
                f"a classifier named {classifier.class_name!r} is already defined"
            )
        names.add(classifier.class_name)
    return selected


def classifier_summary(
    classifiers: Optional[Sequence[Classifier]] = None,
) -> Tuple[Mapping[str, object], ...]:
    """Return an ordered summary of ``classifiers`` for manual auditing."""

    selected = DEFAULT_CLASSIFIERS if classifiers is None else tuple(classifiers)
    summary = []
    for index, classifier in enumerate(selected):
        summary.append(
            {
                "class": classifier.class_name,
                "order": index,
                "description": classifier.description,
                "path_patterns": list(classifier.path_patterns),
                "evidence_patterns": list(classifier.evidence_patterns),
                "metadata_keys": list(classifier.group_names),
                "max_bytes": classifier.max_bytes,
                "read_limit": classifier.read_limit,
            }
        )
    return tuple(summary)


def build_default_classifiers() -> Tuple[Classifier, ...]:
    """Construct a fresh copy of the built-in fingerprint set."""

    return validate_classifiers(
        (
            Classifier(
                class_name="python-binary",
                description="CPython interpreter executable or shared library",
                path_patterns=(
                    r"(.*/|^)python(?P<version>[0-9]+\.[0-9]+)$",
                    r"(.*/|^)libpython(?P<version>[0-9]+\.[0-9]+)\.so.*$",
                ),
                evidence_patterns=(
                    r"(?m)(?P<version>${version}\.[0-9]+[-_a-zA-Z0-9]*)",
                ),
            ),
            Classifier(
                class_name="cpython-source",
                description="CPython source tree version header",
                path_patterns=(r"(.*/|^)patchlevel\.h$",),
                evidence_patterns=(
                    r'(?m)#define\s+PY_VERSION\s+"?(?P<version>[0-9\.\-_a-zA-Z]+)"?',
                ),
                max_bytes=_HINT_FILE_LIMIT,
            ),
            Classifier(
                class_name="go-binary",
                description="Go toolchain binary",
                path_patterns=(r"(.*/|^)go$",),
                evidence_patterns=(
                    r"(?m)go(?P<version>[0-9]+\.[0-9]+(\.[0-9]+|beta[0-9]+|alpha[0-9]+|rc[0-9]+)?)",
                ),
            ),
            Classifier(
                class_name="go-binary-hint",
                description="VERSION file shipped next to a Go toolchain",
                path_patterns=(r"(.*/|^)VERSION$",),
                evidence_patterns=(
                    r"(?m)go(?P<version>[0-9]+\.[0-9]+(\.[0-9]+|beta[0-9]+|alpha[0-9]+|rc[0-9]+)?)",
                ),
                max_bytes=_HINT_FILE_LIMIT,
            ),
            Classifier(
                class_name="busybox-binary",
                description="BusyBox multi-call binary",
                path_patterns=(r"(.*/|^)busybox$",),
                evidence_patterns=(r"(?m)BusyBox\s+v(?P<version>[0-9]+\.[0-9]+\.[0-9]+)",),
            ),
            Classifier(
                class_name="nodejs-binary",
                description="Node.js runtime",
                path_patterns=(r"(.*/|^)node$",),
                evidence_patterns=(r"(?m)node\.js/v(?P<version>[0-9]+\.[0-9]+\.[0-9]+)",),
            ),
            Classifier(
                class_name="java-binary-openjdk",
                description="OpenJDK java launcher",
                path_patterns=(r"(.*/|^)java$",),
                evidence_patterns=(
                    r"(?m)\x00openjdk\x00java\x00(?P<release>[0-9]+[.0-9]*)\x00(?P<version>[0-9]+[^\x00]+)\x00",
                ),
            ),
            Classifier(
                class_name="php-cli-binary",
                description="PHP command line interpreter",
                path_patterns=(r"(.*/|^)php[0-9]*$",),
                evidence_patterns=(
                    r"(?m)X-Powered-By: PHP/(?P<version>[0-9]+\.[0-9]+\.[0-9]+(beta[0-9]+|alpha[0-9]+|RC[0-9]+)?)",
                ),
            ),
            Classifier(
                class_name="ruby-binary",
                description="Ruby interpreter or libruby",
                path_patterns=(r"(.*/|^)ruby$", r"(.*/|^)libruby\.so.*$"),
                evidence_patterns=(
                    r"(?m)ruby (?P<version>[0-9]+\.[0-9]+\.[0-9]+(p[0-9]+)?) \(",
                ),
            ),
            Classifier(
                class_name="perl-binary",
                description="Perl interpreter",
                path_patterns=(r"(.*/|^)perl$",),
                evidence_patterns=(
                    r"(?m)/usr/local/lib/perl[0-9]/(?P<version>[0-9]+\.[0-9]+\.[0-9]+)",
                ),
            ),
            Classifier(
                class_name="redis-binary",
                description="Redis server",
                path_patterns=(r"(.*/|^)redis-server$",),
                evidence_patterns=(
                    r"(?s)payload %5.{0,4096}?(?P<version>[0-9]+\.[0-9]+\.[0-9]+)\x00",
                ),
            ),
            Classifier(
                class_name="memcached-binary",
                description="memcached server",
                path_patterns=(r"(.*/|^)memcached$",),
                evidence_patterns=(
                    r"(?m)memcached\s(?P<version>[0-9]+\.[0-9]+\.[0-9]+)",
                ),
            ),
            Classifier(
                class_name="httpd-binary",
                description="Apache HTTP server",
                path_patterns=(r"(.*/|^)httpd$",),
                evidence_patterns=(r"(?m)Apache/(?P<version>[0-9]+\.[0-9]+\.[0-9]+)",),
            ),
            Classifier(
                class_name="nginx-binary",
                description="nginx web server",
                path_patterns=(r"(.*/|^)nginx$",),
                evidence_patterns=(r"(?m)nginx/(?P<version>[0-9]+\.[0-9]+\.[0-9]+)",),
            ),
            Classifier(
                class_name="haproxy-binary",
                description="HAProxy load balancer",
                path_patterns=(r"(.*/|^)haproxy$",),
                evidence_patterns=(
                    r"(?m)HA-Proxy version (?P<version>[0-9]+\.[0-9]+(\.[0-9]+)?)",
                ),
            ),
            Classifier(
                class_name="postgresql-binary",
                description="PostgreSQL server",
                path_patterns=(r"(.*/|^)postgres$",),
                evidence_patterns=(
                    r"(?m)PostgreSQL (?P<version>[0-9]+(\.[0-9]+){1,2})",
                ),
            ),
        )
    )


DEFAULT_CLASSIFIERS: Tuple[Classifier, ...] = build_default_classifiers()


def default_classifiers() -> Tuple[Classifier, ...]:
    """Return the process-wide default classifier set."""

    return DEFAULT_CLASSIFIERS


__all__ = [
    "Classifier",
    "DEFAULT_CLASSIFIERS",
    "FULL_SCAN_LIMIT",
    "build_default_classifiers",
    "classifier_summary",
    "default_classifiers",
    "validate_classifiers",
]
