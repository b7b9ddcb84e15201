import pytest

from genui.extractor import extract, extract_code, extraction_diagnostics

CODE = "def GeneratedComponent():\n    return Card(Text(\"Tokyo\"))"


@pytest.mark.parametrize("raw, strategy", [
    (f"[[CODE]]\n{CODE}\n[[/CODE]]", "paired_markers"),
    (f"Sure! Here it is:\n[[CODE]]\n{CODE}\n[[/CODE]]\nEnjoy.", "markers_with_prose"),
    (f"[[CODE]]\n{CODE}\n", "unclosed_marker"),
    (f"Here:\n```python\n{CODE}\n```\n", "fenced_block"),
    (f"I think this works.\n\n{CODE}\n\nLet me know.", "anchor_pattern"),
])
def test_strategies_in_order(raw, strategy):
    artifact = extract(raw)
    assert artifact.ok
    assert artifact.extraction_strategy == strategy
    assert artifact.extracted_code.startswith("def GeneratedComponent():")
    assert "return Card" in artifact.extracted_code


def test_markers_are_case_insensitive():
    assert extract_code(f"[[code]]{CODE}[[/code]]") == CODE


def test_fence_inside_markers_is_unwrapped():
    raw = f"[[CODE]]\n```python\n{CODE}\n```\n[[/CODE]]"
    assert extract_code(raw) == CODE


def test_several_marker_pairs_take_the_first_pair():
    other = "def GeneratedComponent():\n    return Card(Text(\"Osaka\"))"
    artifact = extract(f"[[CODE]]\n{CODE}\n[[/CODE]]\n\n[[CODE]]\n{other}\n[[/CODE]]")
    assert artifact.extraction_strategy == "markers_with_prose"
    assert artifact.extracted_code == CODE


def test_renamed_declaration_gets_the_anchor_name():
    raw = "Output:\ndef WeatherCard():\n    return Card(Text(\"Tokyo\"))\n"
    artifact = extract(raw)
    assert artifact.extraction_strategy == "renamed_declaration"
    assert artifact.extracted_code.startswith("def GeneratedComponent():")


def test_anchor_pattern_stops_at_dedent():
    raw = f"{CODE}\nprint('trailing')\n"
    assert extract_code(raw) == CODE


def test_def_without_return_is_not_extracted():
    assert extract_code("def GeneratedComponent():\n    pass\n") == ""


@pytest.mark.parametrize("raw", ["", None, "   ", "I can't help with that."])
def test_total_failure_yields_empty_string(raw):
    artifact = extract(raw)
    assert not artifact.ok
    assert artifact.extraction_strategy == "none"
    assert extract_code(raw) == ""


def test_diagnostics_describe_the_reply():
    text = extraction_diagnostics("[[CODE]] something")
    assert "Contains [[CODE]]: True" in text
    assert "Contains [[/CODE]]: False" in text
    assert "Contains GeneratedComponent: False" in text
