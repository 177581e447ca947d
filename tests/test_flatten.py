"""Tests for JSON → one-row CSV flattening."""

import json

import pandas as pd
import pytest

from orgpipe.flatten import flatten, render_value, to_csv, to_frame, to_json
from orgpipe.models import FetchResult


class TestFlatten:
    def test_nested_objects_use_dotted_paths(self):
        assert flatten({"a": {"b": 1, "c": 2}, "d": 3}) == {"a.b": 1, "a.c": 2, "d": 3}

    def test_column_order_follows_walk_order(self):
        row = flatten({"z": 1, "a": {"y": 2, "b": 3}})
        assert list(row) == ["z", "a.y", "a.b"]

    def test_arrays_are_indexed(self):
        payload = {"items": [{"name": "x"}, {"name": "y"}], "tags": ["p", "q"]}
        assert flatten(payload) == {
            "items.0.name": "x",
            "items.1.name": "y",
            "tags.0": "p",
            "tags.1": "q",
        }

    def test_empty_containers_contribute_nothing(self):
        assert flatten({"a": {}, "b": [], "c": 1}) == {"c": 1}

    def test_scalar_root(self):
        assert flatten(42) == {"value": 42}

    def test_top_level_array(self):
        assert flatten([10, 20]) == {"0": 10, "1": 20}

    def test_first_value_wins_on_colliding_paths(self):
        assert flatten({"a.b": 1, "a": {"b": 2}}) == {"a.b": 1}

    def test_none_leaf_is_kept(self):
        assert flatten({"a": None}) == {"a": None}


class TestRenderValue:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            (True, "true"),
            (False, "false"),
            (3, "3"),
            (1.5, "1.5"),
            ("AMZN", "AMZN"),
        ],
    )
    def test_render(self, value, expected):
        assert render_value(value) == expected


class TestToCsv:
    def test_example_payload(self):
        assert to_csv({"a": {"b": 1, "c": 2}, "d": 3}) == "a.b,a.c,d\n1,2,3"

    def test_exactly_two_lines(self):
        payload = {"result": {"top": [{"code": "US", "value": 12.5}]}, "success": True}
        header, data = to_csv(payload).split("\n")
        assert header == "result.top.0.code,result.top.0.value,success"
        assert data == "US,12.5,true"

    def test_none_quoting_does_not_escape(self):
        assert to_csv({"a": "x,y"}) == "a\nx,y"

    def test_csv_quoting_escapes_commas_and_quotes(self):
        assert to_csv({"a": "x,y", "b": 'say "hi"', "c": 1}, quoting="csv") == (
            'a,b,c\n"x,y","say ""hi""",1'
        )

    def test_csv_quoting_without_special_characters_matches_none(self):
        payload = {"a": {"b": 1, "c": None}, "d": "text"}
        assert to_csv(payload, quoting="csv") == to_csv(payload, quoting="none")

    def test_empty_payload(self):
        assert to_csv({}) == "\n"
        assert to_csv({}, quoting="csv") == "\n"

    def test_unknown_quoting(self):
        with pytest.raises(ValueError, match="quoting must be one of"):
            to_csv({"a": 1}, quoting="all")

    def test_deterministic(self):
        payload = {"a": [1, {"b": None}], "c": {"d": False}}
        assert to_csv(payload) == to_csv(json.loads(json.dumps(payload)))


class TestToFrame:
    def test_single_row_of_strings(self):
        frame = to_frame({"a": {"b": 1}, "c": None})
        expected = pd.DataFrame([["1", ""]], columns=["a.b", "c"])
        pd.testing.assert_frame_equal(frame, expected)


def test_to_json_is_the_whole_result():
    result = FetchResult(
        entity_id="155",
        parameters={"ticker_symbol": "AMZN"},
        payload={"a": 1},
        fetched_at="2024-01-15T00:00:00.000Z",
    )
    assert json.loads(to_json(result)) == {
        "orgId": "155",
        "connectorParams": {"ticker_symbol": "AMZN"},
        "payload": {"a": 1},
        "timestamp": "2024-01-15T00:00:00.000Z",
    }
