import pytest

from appforge.core.exceptions import JSONExtractionError
from appforge.utils.json_extraction import extract_json, find_balanced_object, strip_reasoning


def test_plain_json():
    assert extract_json('{"a": 1}') == {"a": 1}


def test_fenced_json():
    text = 'Here you go:\n```json\n{"schema": {"meta": {}}}\n```\nEnjoy!'

    assert extract_json(text) == {"schema": {"meta": {}}}


def test_unlabelled_fence():
    assert extract_json('```\n{"ok": true}\n```') == {"ok": True}


def test_object_embedded_in_prose():
    text = 'Sure! {"files": [], "note": "braces } inside { strings"} Hope that helps.'

    assert extract_json(text) == {"files": [], "note": "braces } inside { strings"}


def test_reasoning_block_removed():
    text = '<think>maybe {"wrong": 1}</think>{"right": 2}'

    assert extract_json(text) == {"right": 2}


def test_skips_invalid_leading_block():
    text = '{not json} then {"valid": true}'

    assert extract_json(text) == {"valid": True}


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_input(text):
    with pytest.raises(JSONExtractionError, match="Empty response"):
        extract_json(text)


def test_no_object():
    with pytest.raises(JSONExtractionError, match="No JSON object"):
        extract_json("I cannot help with that.")


def test_truncated_reports_brace_counts():
    with pytest.raises(JSONExtractionError) as exc_info:
        extract_json('{"files": [{"path": "a.ts", "content": "x"}')

    assert "truncated" in str(exc_info.value)
    assert "opening" in str(exc_info.value)
    assert exc_info.value.raw_content.startswith('{"files"')


def test_invalid_structure():
    with pytest.raises(JSONExtractionError, match="Invalid JSON structure"):
        extract_json("{'single': 'quotes'}")


def test_find_balanced_object_ignores_string_braces():
    assert find_balanced_object('x {"a": "}"} y') == '{"a": "}"}'
    assert find_balanced_object("no braces") is None


def test_strip_reasoning():
    assert strip_reasoning("<thinking>hmm</thinking> answer") == "answer"
