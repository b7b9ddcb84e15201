import ast

import pytest

from genui.sandbox import evaluate
from genui.transformer import sanitize_layout, transform_for_safety


@pytest.mark.parametrize("before, after", [
    ("x = data.items()", "x = (data or {}).items()"),
    ("x = data.get('rows').keys()", "x = (data.get('rows') or {}).keys()"),
    ("x = [r for r in data['rows']]", "x = [r for r in (data['rows'] or [])]"),
    ("x = len(data.rows)", "x = len((data.rows or []))"),
    ("x = max(values)", "x = max((values or []))"),
    ("x = map(str, items)", "x = map(str, (items or []))"),
    ("x = {**extra}", "x = {**(extra or {})}"),
    ("x = Card(Text('Tokyo'), **props)", "x = Card(Text('Tokyo'), **(props or {}))"),
])
def test_collection_accesses_are_guarded(before, after):
    assert transform_for_safety(before) == after


def test_for_loop_iterable_is_guarded():
    code = "for row in data['rows']:\n    pass\n"
    assert transform_for_safety(code) == "for row in (data['rows'] or []):\n    pass\n"


@pytest.mark.parametrize("code", [
    "x = max(a, b)",
    "x = (data or {}).items()",
    "x = Card(**(props or {}), class_name='w-full')",
    "x = [r for r in range(3)]",
    "x = data.get('rows', []).keys()",
    "x = sorted(safe_items(data))",
    "rows = data.get('rows', [])\nfor r in rows:\n    pass\n",
])
def test_guarded_or_scalar_code_is_untouched(code):
    assert transform_for_safety(code) == code


def test_transform_is_idempotent(weather_component):
    code = "def GeneratedComponent():\n    return Card([Text(k) for k in data.keys()], len(data['items']))\n"
    once = transform_for_safety(code)
    assert once != code
    assert transform_for_safety(once) == once
    ast.parse(once)


def test_safe_code_is_byte_identical(weather_component):
    assert transform_for_safety(weather_component) == weather_component
    assert sanitize_layout(weather_component) == weather_component


def test_non_ascii_text_keeps_offsets_right():
    code = 'title = "東京の天気 ☀"; x = data.items()'
    assert transform_for_safety(code) == 'title = "東京の天気 ☀"; x = (data or {}).items()'


def test_nested_targets_wrap_inner_and_outer():
    code = "x = [v for v in data['a'].values()]"
    out = transform_for_safety(code)
    assert "(data['a'] or {}).values()" in out
    ast.parse(out)


def test_unparseable_code_is_returned_unchanged():
    code = "def GeneratedComponent(:\n    data.items()"
    assert transform_for_safety(code) == code
    assert sanitize_layout(code) == code


# =============================================================================
# LAYOUT REPAIR
# =============================================================================

def test_sanitize_layout_removes_escaping_classes():
    code = 'x = Card(class_name="absolute md:fixed top-0 z-50 hover:z-20 p-4")'
    assert sanitize_layout(code) == "x = Card(class_name='top-0 z-10 hover:z-10 p-4')"


def test_sanitize_layout_hides_visible_overflow():
    code = 'x = Card(style={"overflow": "visible", "color": "red"})'
    assert sanitize_layout(code) == 'x = Card(style={"overflow": "hidden", "color": "red"})'


def test_sanitize_layout_is_idempotent():
    code = 'x = Card(className="fixed z-40", style={"overflow": "visible"})'
    once = sanitize_layout(code)
    assert sanitize_layout(once) == once


def test_clean_classes_are_not_rewritten():
    code = 'x = Card(class_name="p-4  z-10")'
    assert sanitize_layout(code) == code


def test_guarded_keyword_spread_renders_with_missing_props():
    code = (
        "def GeneratedComponent():\n"
        "    props = data.get('card')\n"
        "    return Card(Text('Tokyo'), **props)\n"
    )
    result = evaluate(transform_for_safety(code), {})
    assert not result.fell_back
    assert "Tokyo" in result.node.text_content()
