"""
Tests for the common utilities
"""

# Third Party
import pytest

# Local
from istiocsr_operator import utils

## merge_configs ###############################################################


def test_merge_configs_nested():
    """Make sure nested dicts are merged and other values replaced"""
    base = {"a": {"b": 1, "c": [1, 2]}, "d": "keep"}
    res = utils.merge_configs(base, {"a": {"c": [3], "e": True}})
    assert res is base
    assert base == {"a": {"b": 1, "c": [3], "e": True}, "d": "keep"}


def test_merge_configs_replaces_non_dict():
    """Make sure a dict override replaces a non-dict base value"""
    assert utils.merge_configs({"a": 1}, {"a": {"b": 2}}) == {"a": {"b": 2}}


## nested_get ################################################################


def test_nested_get():
    """Make sure nested keys are found and missing keys give the default"""
    dct = {"a": {"b": {"c": 0}}, "x": 1}
    assert utils.nested_get(dct, "a.b.c") == 0
    assert utils.nested_get(dct, "x") == 1
    assert utils.nested_get(dct, "a.missing") is None
    assert utils.nested_get(dct, "x.y", "dflt") == "dflt"


## watch labels ################################################################


def test_make_watch_label_value():
    """Make sure the namespace and name are joined with the delimiter"""
    assert utils.make_watch_label_value("ns", "default") == "ns_default"


@pytest.mark.parametrize(
    ["value", "expected"],
    [
        ("ns_default", {"namespace": "ns", "name": "default"}),
        ("ns", None),
        ("a_b_c", None),
        ("_name", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_watch_label_value(value, expected):
    """Make sure only values with exactly a namespace and name parse"""
    assert utils.parse_watch_label_value(value) == expected
