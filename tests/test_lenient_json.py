"""Tests for lenient decoding of provider output."""
import pytest
from matura.utils.lenient_json import LenientJSONError, extract_outermost, loads_lenient


def test_plain_json_is_parsed_as_is():
    assert loads_lenient('{"table_name": "tasks"}') == {"table_name": "tasks"}


def test_markdown_fence_is_stripped():
    text = 'Here is the schema:\n```json\n{"table_name": "tasks", "fields": []}\n```\nEnjoy!'
    assert loads_lenient(text) == {"table_name": "tasks", "fields": []}


def test_outermost_object_is_extracted_from_prose():
    text = 'Sure! {"code": "function f() { return 1 }", "n": 2} hope this helps'
    assert loads_lenient(text) == {"code": "function f() { return 1 }", "n": 2}


def test_cleanup_handles_js_style_object():
    """Unquoted keys, single quotes and trailing commas are repaired in one pass."""
    text = "{table_name: 'tasks', fields: [{name: 'title', type: 'text',},],}"
    assert loads_lenient(text) == {
        "table_name": "tasks",
        "fields": [{"name": "title", "type": "text"}],
    }


def test_default_returned_when_nothing_parses():
    assert loads_lenient("definitely not json", default=None) is None
    assert loads_lenient(None, default={}) == {}


def test_error_raised_without_default():
    with pytest.raises(LenientJSONError):
        loads_lenient("{ broken")


def test_extract_outermost_ignores_braces_in_strings():
    assert extract_outermost('x {"a": "}{"} y') == '{"a": "}{"}'
    assert extract_outermost("no object here") is None
