from __future__ import annotations

import pytest

from runtimescout.core.types import (
    CatalogResult,
    Classification,
    Location,
    ResultAggregator,
    normalise_real_path,
)


def test_location_equality_uses_real_path_only() -> None:
    direct = Location("/usr/bin/python3.6")
    via_link = Location("/usr/bin/python3.6", virtual_path="/usr/bin/python3", layer=2)

    assert direct == via_link
    assert hash(direct) == hash(via_link)
    assert {direct: "first"}[via_link] == "first"
    assert via_link.virtual_path == "/usr/bin/python3"


def test_location_normalises_paths() -> None:
    location = Location("usr/lib/../bin/go")

    assert location.real_path == "/usr/bin/go"
    assert location.virtual_path == "/usr/bin/go"
    assert location.basename == "go"
    assert location.candidate_paths() == ("/usr/bin/go",)
    assert normalise_real_path("//opt///go") == "/opt/go"


def test_location_keeps_backslashes_and_whitespace() -> None:
    assert normalise_real_path("tools\\go") == "/tools\\go"
    assert normalise_real_path("/usr/bin/go ") == "/usr/bin/go "
    assert normalise_real_path(" /bin") == "/ /bin"
    assert Location("/a/busybox") != Location("/a\\busybox")
    assert len({Location("/a/busybox"), Location("/a\\busybox")}) == 2


def test_location_rejects_empty_path() -> None:
    with pytest.raises(ValueError):
        Location("")


def test_location_to_dict_omits_defaults() -> None:
    assert Location("/bin/go").to_dict() == {"real_path": "/bin/go"}
    assert Location("/bin/go", virtual_path="/usr/bin/go", layer=0).to_dict() == {
        "real_path": "/bin/go",
        "virtual_path": "/usr/bin/go",
        "layer": 0,
    }


def test_classification_equality_and_immutability() -> None:
    first = Classification("go-binary", {"version": "1.14"})
    second = Classification("go-binary", {"version": "1.14"})

    assert first == second
    assert hash(first) == hash(second)
    assert first != Classification("go-binary", {"version": "1.15"})
    assert first != Classification("go-binary-hint", {"version": "1.14"})
    assert first.metadata == {"version": "1.14"}
    with pytest.raises(TypeError):
        first.metadata["version"] = "2.0"  # type: ignore[index]


def test_classification_allows_empty_metadata() -> None:
    found = Classification("busybox-binary")

    assert dict(found.metadata) == {}
    assert found.to_dict() == {"class": "busybox-binary", "metadata": {}}


def test_classification_rejects_non_string_metadata() -> None:
    with pytest.raises(ValueError):
        Classification("go-binary", {"version": 1})  # type: ignore[dict-item]


def test_catalog_result_omits_empty_entries() -> None:
    matched = Location("/bin/busybox")
    unmatched = Location("/etc/hosts")
    result = CatalogResult(
        {
            matched: [Classification("busybox-binary", {"version": "1.36.1"})],
            unmatched: [],
        }
    )

    assert len(result) == 1
    assert matched in result
    assert unmatched not in result
    assert result.get_by_path("/etc/hosts") == ()
    assert result.get_by_path("/bin/busybox")[0].class_name == "busybox-binary"


def test_catalog_result_to_dict_is_sorted_by_real_path() -> None:
    result = CatalogResult(
        {
            Location("/usr/bin/go"): [Classification("go-binary", {"version": "1.20"})],
            Location("/bin/busybox"): [Classification("busybox-binary", {"version": "1.36.1"})],
        }
    )

    assert list(result.to_dict()) == ["/bin/busybox", "/usr/bin/go"]
    assert result.to_dict()["/usr/bin/go"] == [
        {"class": "go-binary", "metadata": {"version": "1.20"}}
    ]


def test_catalog_result_compares_as_mapping() -> None:
    entries = {Location("/bin/go"): (Classification("go-binary", {"version": "1.14"}),)}

    assert CatalogResult(entries) == CatalogResult(dict(entries))
    assert CatalogResult() == {}


def test_aggregator_merges_repeated_real_paths_in_arrival_order() -> None:
    aggregator = ResultAggregator()
    lower = Location("/usr/bin/python3.6", layer=0)
    upper = Location("/usr/bin/python3.6", layer=1)
    old = Classification("python-binary", {"version": "3.6.1"})
    new = Classification("python-binary", {"version": "3.6.9"})

    aggregator.add(lower, [old])
    aggregator.add(upper, [new, old])
    result = aggregator.build()

    assert len(result) == 1
    assert result[lower] == (old, new)


def test_aggregator_ignores_empty_lists() -> None:
    aggregator = ResultAggregator()
    aggregator.add(Location("/etc/passwd"), [])

    assert len(aggregator) == 0
    assert len(aggregator.build()) == 0
