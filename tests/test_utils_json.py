"""Tests for JSON helpers."""

import pytest

from chattree.utils.json import entries_to_dict, parse_json_object


class TestEntriesToDict:
    def test_dict_passes_through(self):
        data = {"a": 1}
        assert entries_to_dict(data) is data

    def test_pairs(self):
        assert entries_to_dict([["a", 1], ("b", 2)]) == {"a": 1, "b": 2}

    def test_none_uses_fallback(self):
        assert entries_to_dict(None) == {}
        assert entries_to_dict(None, {"x": 0}) == {"x": 0}

    def test_fallback_is_copied(self):
        fallback = {"x": 0}
        result = entries_to_dict(None, fallback)
        result["y"] = 1
        assert fallback == {"x": 0}

    def test_malformed_pair(self):
        with pytest.raises(ValueError):
            entries_to_dict([["a", 1, 2]])

    def test_wrong_type(self):
        with pytest.raises(ValueError):
            entries_to_dict("abc")


class TestParseJsonObject:
    def test_string(self):
        assert parse_json_object('{"a": [1, 2]}') == {"a": [1, 2]}

    def test_bytes(self):
        assert parse_json_object(b'{"a": null}') == {"a": None}

    def test_dict_passes_through(self):
        data = {"a": 1}
        assert parse_json_object(data) is data

    def test_non_object_document(self):
        with pytest.raises(ValueError, match="Expected JSON object"):
            parse_json_object("[1]")

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_json_object("{nope")

    def test_non_document_input(self):
        with pytest.raises(ValueError, match="Expected JSON document"):
            parse_json_object(3.5)
