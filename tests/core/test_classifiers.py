from __future__ import annotations

import logging

import pytest

from runtimescout.core.classifiers import (
    DEFAULT_CLASSIFIERS,
    FULL_SCAN_LIMIT,
    Classifier,
    build_default_classifiers,
    classifier_summary,
    default_classifiers,
    validate_classifiers,
)
from runtimescout.core.errors import ConfigurationError


def _rule(**overrides) -> Classifier:
    params = {
        "class_name": "demo-binary",
        "path_patterns": (r"(.*/|^)demo$",),
        "evidence_patterns": (r"demo v(?P<version>[0-9.]+)",),
    }
    params.update(overrides)
    return Classifier(**params)


def test_default_set_order_is_stable() -> None:
    names = [classifier.class_name for classifier in DEFAULT_CLASSIFIERS]

    assert names[:5] == [
        "python-binary",
        "cpython-source",
        "go-binary",
        "go-binary-hint",
        "busybox-binary",
    ]
    assert len(names) >= 12
    assert len(set(names)) == len(names)
    assert default_classifiers() is DEFAULT_CLASSIFIERS


def test_building_default_set_twice_is_equivalent() -> None:
    first = build_default_classifiers()
    second = build_default_classifiers()

    assert first == second
    assert first is not second
    assert [rule.read_limit for rule in first] == [rule.read_limit for rule in second]


def test_every_default_classifier_reports_a_version_key() -> None:
    for classifier in DEFAULT_CLASSIFIERS:
        assert "version" in classifier.group_names, classifier.class_name


def test_lists_are_coerced_to_tuples() -> None:
    rule = _rule(path_patterns=[r"(.*/|^)demo$"], evidence_patterns=r"v(?P<version>[0-9]+)")

    assert rule.path_patterns == (r"(.*/|^)demo$",)
    assert rule.evidence_patterns == (r"v(?P<version>[0-9]+)",)
    assert hash(rule) == hash(_rule(evidence_patterns=(r"v(?P<version>[0-9]+)",)))


@pytest.mark.parametrize(
    "overrides",
    [
        {"class_name": "Not A Slug"},
        {"class_name": ""},
        {"path_patterns": ()},
        {"evidence_patterns": ()},
        {"path_patterns": (r"(unclosed",)},
        {"evidence_patterns": (r"v(?P<version>[0-9]+",)},
        {"evidence_patterns": (r"(?P<version>1)(?P<version>2)",)},
        {"evidence_patterns": (r"demo v[0-9]+",)},
        {"max_bytes": 0},
        {"max_bytes": -5},
    ],
)
def test_invalid_definitions_raise_configuration_error(overrides) -> None:
    with pytest.raises(ConfigurationError):
        _rule(**overrides)


def test_configuration_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        _rule(path_patterns=(r"[",))


def test_group_name_collision_across_evidence_patterns() -> None:
    with pytest.raises(ConfigurationError, match="group name 'version'"):
        _rule(
            evidence_patterns=(
                r"demo v(?P<version>[0-9.]+)",
                r"build (?P<version>[0-9]+)",
            )
        )


def test_placeholder_must_be_a_selector_group_in_every_path_pattern() -> None:
    with pytest.raises(ConfigurationError, match="placeholder"):
        _rule(evidence_patterns=(r"(?P<version>${major}\.[0-9]+)",))

    with pytest.raises(ConfigurationError, match="placeholder"):
        _rule(
            path_patterns=(r"(.*/|^)demo(?P<major>[0-9]+)$", r"(.*/|^)libdemo\.so$"),
            evidence_patterns=(r"(?P<version>${major}\.[0-9]+)",),
        )


def test_placeholders_render_as_escaped_literals() -> None:
    rule = _rule(
        path_patterns=(r"(.*/|^)demo(?P<major>[0-9]+\.[0-9]+)$",),
        evidence_patterns=(r"(?P<version>${major}\.[0-9]+)",),
    )

    assert rule.placeholders == ("major",)
    (regex,) = rule.evidence_regexes({"major": "3.7"})
    assert regex.search(b"\x003.7.4\x00").group("version") == b"3.7.4"
    assert regex.search(b"\x00357.4\x00") is None
    with pytest.raises(KeyError):
        rule.evidence_regexes({})


def test_oversized_bound_is_clamped(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="runtimescout.core.classifiers"):
        rule = _rule(max_bytes=FULL_SCAN_LIMIT * 2)

    assert rule.max_bytes == FULL_SCAN_LIMIT
    assert rule.read_limit == FULL_SCAN_LIMIT
    assert "clamping" in caplog.text


def test_unbounded_rule_uses_full_scan_limit() -> None:
    assert _rule().read_limit == FULL_SCAN_LIMIT
    assert _rule(max_bytes=512).read_limit == 512


def test_validate_classifiers_rejects_bad_sets() -> None:
    with pytest.raises(ConfigurationError):
        validate_classifiers([])
    with pytest.raises(ConfigurationError):
        validate_classifiers([_rule(), _rule()])
    with pytest.raises(ConfigurationError):
        validate_classifiers([_rule(), "go-binary"])  # type: ignore[list-item]

    assert validate_classifiers([_rule()]) == (_rule(),)


def test_classifier_summary_is_ordered() -> None:
    summary = classifier_summary()

    assert [entry["order"] for entry in summary] == list(range(len(DEFAULT_CLASSIFIERS)))
    first = summary[0]
    assert first["class"] == "python-binary"
    assert first["metadata_keys"] == ["version"]
    assert first["read_limit"] == FULL_SCAN_LIMIT
    assert classifier_summary([_rule()])[0]["class"] == "demo-binary"
