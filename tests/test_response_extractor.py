try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from strategic_analysis.services.response_extractor import (
    PLAIN_TEXT_KEY,
    coerce_result,
    extract_json,
)


def test_fenced_json_block_wins():
    text = 'Sure!\n```json\n{"a": 1}\n```\nAlso {"b": 2}'

    assert extract_json(text) == {"a": 1}


def test_brace_span_is_used_without_fence():
    assert extract_json('Result: {"fundamentals": "ok"} -- end') == {"fundamentals": "ok"}


def test_broken_fence_falls_back_to_brace_span():
    assert extract_json('```json\nnot json\n```\n{"ok": true}') == {"ok": True}


@pytest.mark.parametrize("value", [None, "", 42, ["{}"], "no braces here", "} reversed {"])
def test_non_json_inputs_return_none(value):
    assert extract_json(value) is None


def test_deeply_nested_input_does_not_raise():
    text = '{"a": ' + "[" * 100000 + "]" * 100000 + "}"

    assert extract_json(text) is None


def test_coerce_result_wraps_plain_text():
    assert coerce_result("just prose") == {PLAIN_TEXT_KEY: "just prose"}
    assert coerce_result('{"x": [1, 2]}') == {"x": [1, 2]}
