from genui.graph import (
    MAX_DATA_PROMPT_CHARS,
    NO_HELPERS_WARNING,
    build_render_prompt,
    has_red_flags,
    renderer_system_prompt,
    route_after_plan,
    route_after_render,
    route_after_validate,
)
from genui.sandbox.catalog import CATALOG_VERSION
from genui.schemas import DataResult, Plan


PLAN = Plan(
    intent="comparison",
    content_context="iPhone models",
    key_entities=["iPhone 15", "iPhone 16"],
    suggested_components=["Tabs", "Card"],
    interactivity_type="tabs",
)


def test_render_prompt_carries_plan_and_data():
    prompt = build_render_prompt("compare iphones", PLAN, DataResult(data={"models": 2}, source="apple.com"))
    assert "Intent: comparison" in prompt
    assert "iPhone 15, iPhone 16" in prompt
    assert '"models": 2' in prompt
    assert "Source: apple.com" in prompt
    assert NO_HELPERS_WARNING not in prompt


def test_render_prompt_leads_with_feedback():
    prompt = build_render_prompt("compare iphones", PLAN, DataResult.empty(), feedback="Scope validation failed:")
    assert prompt.startswith("PREVIOUS ATTEMPT FAILED WITH ERROR:\nScope validation failed:")


def test_large_data_is_truncated():
    prompt = build_render_prompt("x", PLAN, DataResult(data={"blob": "x" * (MAX_DATA_PROMPT_CHARS * 2)}))
    assert "... (truncated)" in prompt


def test_red_flag_plans_get_the_no_helpers_warning():
    flagged = PLAN.model_copy(update={"description": "Use a helper WeatherIcon component"})
    assert has_red_flags(flagged)
    assert not has_red_flags(PLAN)
    assert not has_red_flags(None)
    assert NO_HELPERS_WARNING in build_render_prompt("x", flagged, DataResult.empty())


def test_system_prompt_embeds_catalog():
    prompt = renderer_system_prompt()
    assert "{{CATALOG}}" not in prompt
    assert f"Capability catalog v{CATALOG_VERSION}" in prompt


def test_routes():
    assert route_after_plan({"error": "Planning failed: x"}) == "complete_node"
    assert route_after_plan({"plan": PLAN}) == "acquire_data_node"
    assert route_after_render({"candidate_code": "code"}) == "validate_node"
    assert route_after_render({"candidate_code": None}) == "render_node"
    assert route_after_render({"error": "exhausted"}) == "complete_node"
    assert route_after_validate({"needs_critique": True}) == "critique_node"
    assert route_after_validate({"needs_critique": False}) == "complete_node"
