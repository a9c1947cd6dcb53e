"""Tests for the lenient JSON parser used on script responses."""

import json

import pytest

from oneshot.services.json_repair import (
    escape_control_chars,
    extract_json_object,
    parse_lenient,
    strip_control_chars,
    strip_trailing_commas,
)


def test_extract_json_object_drops_surrounding_prose():
    text = 'Sure! Here it is:\n```json\n{"a": {"b": 1}}\n```\nHope this helps.'
    assert extract_json_object(text) == '{"a": {"b": 1}}'


def test_extract_json_object_without_braces_raises():
    with pytest.raises(ValueError):
        extract_json_object("no json here")


def test_strip_trailing_commas_before_object_and_array_close():
    assert strip_trailing_commas('{"a": [1, 2, ], "b": 3,\n}') == '{"a": [1, 2], "b": 3}'


def test_escape_control_chars_only_inside_strings():
    text = '{\n\t"a": "line one\nline two\tend"\n}'
    repaired = escape_control_chars(text)
    assert json.loads(repaired) == {"a": "line one\nline two\tend"}
    # structural whitespace is untouched
    assert repaired.startswith("{\n\t")


def test_escape_control_chars_respects_escaped_quotes():
    text = '{"a": "say \\"hi\\"\nnow"}'
    assert json.loads(escape_control_chars(text)) == {"a": 'say "hi"\nnow'}


def test_strip_control_chars_replaces_with_space():
    assert strip_control_chars("a\x01b\x1fc") == "a b c"


def test_parse_lenient_strict_json_passes_through():
    assert parse_lenient('{"x": 1}') == {"x": 1}


def test_parse_lenient_prose_wrapper_and_trailing_comma():
    raw = 'Here is the script you asked for:\n{"segments": [{"script": "walk"},], "ok": true,}\nThanks!'
    assert parse_lenient(raw) == {"segments": [{"script": "walk"}], "ok": True}


def test_parse_lenient_last_resort_strips_other_control_chars():
    raw = '{"a": "bell\x07 inside"}'
    assert parse_lenient(raw) == {"a": "bell  inside"}


def test_parse_lenient_unrecoverable_raises_decode_error():
    with pytest.raises(json.JSONDecodeError):
        parse_lenient('{"a": [1, 2}')


def test_parse_lenient_unwraps_object_inside_array():
    assert parse_lenient('[{"segments": [], "ok": true}]') == {"segments": [], "ok": True}


def test_parse_lenient_array_without_object_raises():
    with pytest.raises(ValueError):
        parse_lenient("[1, 2, 3]")
