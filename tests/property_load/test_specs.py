"""Source specifier parsing tests."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from PropsAgent.PropertyLoad.specs import SourceSpec, parse_source_specs


@pytest.mark.parametrize("raw", [None, ""])
def test_empty_input_yields_no_specs(raw):
    assert parse_source_specs(raw) == []


def test_force_marker_and_order_are_preserved():
    specs = parse_source_specs("!file:///tmp/a.properties,file:///tmp/b.properties,/etc/c")
    assert specs == [
        SourceSpec("file:///tmp/a.properties", force=True),
        SourceSpec("file:///tmp/b.properties", force=False),
        SourceSpec("/etc/c", force=False),
    ]


def test_force_marker_is_stripped_once():
    (spec,) = parse_source_specs("!!weird")
    assert spec.force is True
    assert spec.location == "!weird"


def test_tokens_are_not_validated_or_trimmed():
    specs = parse_source_specs(" spaced ,,!")
    assert specs == [
        SourceSpec(" spaced ", False),
        SourceSpec("", False),
        SourceSpec("", True),
    ]


def test_custom_delimiter_and_marker():
    specs = parse_source_specs("+a;b", delimiter=";", force_marker="+")
    assert specs == [SourceSpec("a", True), SourceSpec("b", False)]


def test_spec_str_round_trips_marker():
    assert str(SourceSpec("x", force=True)) == "!x"
    assert str(SourceSpec("x")) == "x"


@given(st.text(alphabet=st.characters(blacklist_characters=","), min_size=1))
def test_single_token_force_law(token):
    (spec,) = parse_source_specs(token)
    if token.startswith("!"):
        assert spec.force is True
        assert spec.location == token[1:]
    else:
        assert spec.force is False
        assert spec.location == token
