"""Tests for tag and id-range check selection."""

import pytest
from conftest import static_check

from labctl.core.chain import ChainFilter, filter_checks
from labctl.core.errors import ConfigurationError, RangeFilterError


@pytest.fixture
def checks():
    return [
        static_check("a", tags=("smoke",)),
        static_check("b", tags=("net",)),
        static_check("c", tags=("smoke", "net")),
        static_check("d", tags=("disk",)),
        static_check("e", tags=("smoke",)),
    ]


def ids(checks):
    return [c.id for c in checks]


def test_no_filters_keeps_everything(checks):
    assert ids(filter_checks(checks)) == ["a", "b", "c", "d", "e"]


def test_tag_filter_keeps_any_match_in_order(checks):
    assert ids(filter_checks(checks, only_tags=["net", "disk"])) == [
        "b", "c", "d",
    ]


def test_tag_filter_with_unused_tag_selects_nothing(checks):
    assert filter_checks(checks, only_tags=["nope"]) == []


def test_range_is_inclusive(checks):
    assert ids(filter_checks(checks, from_id="b", to_id="d")) == [
        "b", "c", "d",
    ]


def test_open_ended_ranges(checks):
    assert ids(filter_checks(checks, from_id="d")) == ["d", "e"]
    assert ids(filter_checks(checks, to_id="b")) == ["a", "b"]


def test_single_check_range(checks):
    assert ids(filter_checks(checks, from_id="c", to_id="c")) == ["c"]


def test_range_applies_after_tag_filter(checks):
    selected = filter_checks(
        checks, only_tags=["smoke"], from_id="c", to_id="e"
    )
    assert ids(selected) == ["c", "e"]


def test_unknown_from_id_raises(checks):
    with pytest.raises(RangeFilterError, match="--from: zzz"):
        filter_checks(checks, from_id="zzz")


def test_unknown_to_id_raises(checks):
    with pytest.raises(RangeFilterError, match="--to: zzz"):
        filter_checks(checks, to_id="zzz")


def test_id_removed_by_tag_filter_is_unknown(checks):
    with pytest.raises(RangeFilterError):
        filter_checks(checks, only_tags=["disk"], from_id="a")


def test_inverted_range_raises(checks):
    with pytest.raises(RangeFilterError, match="comes after"):
        filter_checks(checks, from_id="d", to_id="b")


def test_range_error_is_configuration_error(checks):
    with pytest.raises(ConfigurationError):
        filter_checks(checks, from_id="zzz")


@pytest.mark.parametrize("value,expected", [
    (None, []),
    ("", []),
    ("smoke", ["smoke"]),
    ("smoke, net ,", ["smoke", "net"]),
])
def test_parse_tags(value, expected):
    assert ChainFilter.parse_tags(value) == expected
