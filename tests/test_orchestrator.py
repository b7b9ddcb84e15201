from datetime import datetime

from genui.config import get_config, reset_config
from genui.orchestrator import refresh_data, run_pipeline, stream_pipeline
from genui.schemas import EngineEvent, EngineResult, Plan


HELPER_COMPONENT = '''def WeatherIcon():
    return Icons.Sun(size=24)

def GeneratedComponent():
    return Card(CardHeader(CardTitle("Weather in Tokyo")), CardContent(WeatherIcon(), Text(data.get("condition"))))'''

PLACEHOLDER_COMPONENT = '''def GeneratedComponent():
    return Card(CardHeader(CardTitle("Example 1")), CardContent(Text("Lorem ipsum dolor sit amet")))'''

MARGINAL_COMPONENT = '''def GeneratedComponent():
    return Card(CardHeader(CardTitle("Tokyo demo")), CardContent(Text("Tokyo")))'''


def _progress(updates):
    return [u for u in updates if u.get("type") == "progress"]


def test_weather_request_produces_component(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    engine = fake_engine([plan_reply(), data_reply, wrap_code(weather_component, "Here you go:\n")])
    updates = []

    response = run_pipeline("What's the weather in Tokyo?", engine=engine, on_update=updates.append, settings=settings)

    assert not response.is_error
    assert response.summary == "fact component"
    assert response.source == "example.com"
    assert response.data["city"] == "Tokyo"
    assert "def GeneratedComponent" in response.component_code
    assert engine.calls == 3

    values = [u["progress"] for u in _progress(updates)]
    assert values == sorted(values)
    assert values[-1] == 100
    phases = [u["phase"] for u in _progress(updates)]
    assert "searching" in phases and "preparing" not in phases
    assert updates[-1]["type"] == "complete"
    assert updates[-1]["payload"]["summary"] == "fact component"


def test_updates_include_plan_data_and_partial(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    engine = fake_engine([plan_reply(), data_reply, wrap_code(weather_component)])
    updates = []

    run_pipeline("weather in Tokyo", engine=engine, on_update=updates.append, settings=settings)

    kinds = [u["type"] for u in updates if u["type"] != "progress"]
    assert kinds.index("plan") < kinds.index("data") < kinds.index("partial") < kinds.index("complete")
    plan_update = next(u for u in updates if u["type"] == "plan")
    assert plan_update["payload"]["keyEntities"] == ["Tokyo", "weather"]


def test_example_data_path_when_no_search_needed(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply, wrap_code(weather_component)])
    updates = []

    response = run_pipeline("weather in Tokyo", engine=engine, on_update=updates.append, settings=settings)

    assert not response.is_error
    phases = [u["phase"] for u in _progress(updates)]
    assert "preparing" in phases and "searching" not in phases
    assert "Data Generator" in engine.requests[1].system_prompt


def test_web_search_events_become_steps(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    search = EngineEvent(type="tool_call", subtype="started", tool_name="web_search", tool_summary="Tokyo weather today")
    engine = fake_engine([
        plan_reply(),
        EngineResult(success=True, final_text=data_reply, events=[search]),
        wrap_code(weather_component),
    ])
    updates = []

    run_pipeline("weather in Tokyo", engine=engine, on_update=updates.append, settings=settings)

    steps = [u["message"] for u in updates if u["type"] == "step"]
    assert "Searching for Tokyo weather today" in steps
    assert [u["phase"] for u in _progress(updates)].count("extracting") == 1


def test_helper_component_triggers_scope_retry(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    engine = fake_engine([
        plan_reply(needsWebSearch=False),
        data_reply,
        wrap_code(HELPER_COMPONENT),
        wrap_code(weather_component),
    ])

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert not response.is_error
    assert engine.calls == 4
    retry_prompt = engine.requests[3].prompt
    assert retry_prompt.startswith("PREVIOUS ATTEMPT FAILED WITH ERROR:")
    assert 'helper component "WeatherIcon"' in retry_prompt
    assert "Icons.<Name>" in retry_prompt
    assert "WeatherIcon" not in response.component_code


def test_low_relevance_is_retried_with_feedback(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    engine = fake_engine([
        plan_reply(needsWebSearch=False),
        data_reply,
        wrap_code(PLACEHOLDER_COMPONENT),
        wrap_code(weather_component),
    ])

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert not response.is_error
    assert "Relevance score 30/100 is too low" in engine.requests[3].prompt
    assert "Tokyo, weather" in engine.requests[3].prompt


def test_marginal_relevance_gets_one_retry_then_is_accepted(fake_engine, plan_reply, data_reply, wrap_code, settings):
    engine = fake_engine([
        plan_reply(needsWebSearch=False, keyEntities=["Tokyo", "humidity", "forecast", "rainfall"]),
        data_reply,
        wrap_code(MARGINAL_COMPONENT),
        wrap_code(MARGINAL_COMPONENT),
    ])

    response = run_pipeline("Tokyo humidity forecast and rainfall", engine=engine, settings=settings)

    assert not response.is_error
    assert engine.calls == 4
    assert "Relevance score 55/100" in engine.requests[3].prompt


def test_retries_are_bounded(fake_engine, plan_reply, data_reply, settings):
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply] + ["nope"] * 10)

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert response.is_error
    assert "Response too short" in response.text_response
    assert engine.calls - 2 <= settings.render_max_attempts + 1


def test_scope_retries_share_the_overall_bound(fake_engine, plan_reply, data_reply, wrap_code, settings):
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply] + [wrap_code(HELPER_COMPONENT)] * 20)

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert response.is_error
    assert 'helper component "WeatherIcon"' in response.text_response
    assert engine.calls - 2 <= settings.render_max_attempts + 1 + settings.scope_max_retries


def test_module_body_failure_is_retried_with_compilation_feedback(
    fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings
):
    broken = "scale = 9 / 0\n\n" + weather_component
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply, wrap_code(broken), wrap_code(weather_component)])

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert not response.is_error
    assert engine.calls == 4
    assert engine.requests[3].prompt.startswith(
        "PREVIOUS ATTEMPT FAILED WITH ERROR:\nCompilation failed: Module body failed: ZeroDivisionError"
    )
    assert "scale" not in response.component_code


def test_toggle_state_named_open_is_delivered(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    toggle = weather_component.replace(
        '    unit, set_unit = use_state("C")\n',
        '    unit, set_unit = use_state("C")\n    open, set_open = use_state(False)\n',
    )
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply, wrap_code(toggle)])

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert not response.is_error
    assert "open, set_open = use_state(False)" in response.component_code
    assert engine.calls == 3


def test_timeout_ends_in_error_response(fake_engine, plan_reply, data_reply, settings):
    timeout = EngineResult(success=False, error="Process timed out after 300s")
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply] + [timeout] * 5)

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert response.is_error
    assert "timed out" in response.text_response
    assert response.to_payload() == {"textResponse": response.text_response, "error": True}


def test_planning_failure_is_fatal(fake_engine, settings):
    engine = fake_engine([EngineResult(success=False, error="Process timed out after 300s")])
    updates = []

    response = run_pipeline("weather in Tokyo", engine=engine, on_update=updates.append, settings=settings)

    assert response.is_error
    assert response.text_response.startswith("Planning failed:")
    assert engine.calls == 1
    assert updates[-1]["type"] == "complete"
    assert updates[-1]["payload"]["error"] is True


def test_unparseable_plan_is_retried_once_then_fatal(fake_engine, settings):
    engine = fake_engine(["not json at all", "still not json"])

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert response.is_error
    assert engine.calls == 2
    assert "CRITICAL" in engine.requests[1].prompt


def test_data_failure_continues_with_empty_data(fake_engine, plan_reply, weather_component, wrap_code, settings):
    engine = fake_engine([
        plan_reply(needsWebSearch=False),
        "garbage",
        "more garbage",
        wrap_code(weather_component),
    ])

    updates = []
    response = run_pipeline("weather in Tokyo", engine=engine, on_update=updates.append, settings=settings)

    assert not response.is_error
    assert response.data == {}
    assert response.source is None
    notices = [u["payload"] for u in updates if u["type"] == "notices"]
    assert notices == [["Data acquisition returned no data"]]
    assert updates[-1]["type"] == "complete"


def test_data_mode_override_forces_search(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply, wrap_code(weather_component)])

    run_pipeline("weather in Tokyo", engine=engine, data_mode="web-search", settings=settings)

    assert "Data Extractor" in engine.requests[1].system_prompt


def test_low_style_score_runs_critique(fake_engine, plan_reply, data_reply, wrap_code, monkeypatch):
    monkeypatch.setenv("ENABLE_CRITIQUE", "true")
    reset_config()
    settings = get_config()

    body = "\n".join(f"    v{i} = {i}" for i in range(125))
    code = f"def GeneratedComponent():\n{body}\n    return Container(Heading(\"Weather in Tokyo\"), Text(str(v1)))"
    critique = '{"approved": true, "qualityScore": 62, "issues": ["too long"], "suggestions": []}'
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply, wrap_code(code), critique])
    updates = []

    response = run_pipeline("weather in Tokyo", engine=engine, on_update=updates.append, settings=settings)

    assert not response.is_error
    assert engine.calls == 4
    assert "reviewing" in [u["phase"] for u in _progress(updates)]


def test_critique_failure_does_not_block_delivery(fake_engine, plan_reply, data_reply, wrap_code, monkeypatch):
    monkeypatch.setenv("ENABLE_CRITIQUE", "true")
    reset_config()
    settings = get_config()

    body = "\n".join(f"    v{i} = {i}" for i in range(125))
    code = f"def GeneratedComponent():\n{body}\n    return Container(Heading(\"Weather in Tokyo\"), Text(str(v1)))"
    engine = fake_engine([plan_reply(needsWebSearch=False), data_reply, wrap_code(code), "no json here"])

    response = run_pipeline("weather in Tokyo", engine=engine, settings=settings)

    assert not response.is_error


def test_empty_message_is_rejected_without_engine_calls(fake_engine, settings):
    engine = fake_engine([])
    response = run_pipeline("   ", engine=engine, settings=settings)
    assert response.is_error
    assert engine.calls == 0


def test_stream_pipeline_ends_with_complete(fake_engine, plan_reply, data_reply, weather_component, wrap_code, settings):
    engine = fake_engine([plan_reply(), data_reply, wrap_code(weather_component)])

    updates = list(stream_pipeline("weather in Tokyo", engine=engine, settings=settings))

    assert updates[-1]["type"] == "complete"
    assert updates[-1]["payload"]["componentCode"]
    assert sum(1 for u in updates if u["type"] == "complete") == 1


def test_refresh_honors_data_mode_override(fake_engine, data_reply, settings):
    plan = Plan(intent="fact", content_context="Tokyo weather", key_entities=["Tokyo"], needs_web_search=False)

    engine = fake_engine([data_reply])
    result = refresh_data("weather in Tokyo", plan, data_mode="web-search", engine=engine, settings=settings)
    assert "Data Extractor" in engine.requests[0].system_prompt
    assert result.source == "example.com"
    assert datetime.fromisoformat(result.refreshed_at).tzinfo is not None

    engine = fake_engine([data_reply])
    plan = plan.model_copy(update={"needs_web_search": True})
    refresh_data("weather in Tokyo", plan, data_mode="example-data", engine=engine, settings=settings)
    assert "Data Generator" in engine.requests[0].system_prompt


def test_refresh_failure_returns_empty_data(fake_engine, settings):
    plan = Plan(intent="fact", content_context="Tokyo weather", needs_web_search=True)
    engine = fake_engine([EngineResult(success=False, error="boom")])

    result = refresh_data("weather in Tokyo", plan, engine=engine, settings=settings)

    assert result.data == {}
    assert result.confidence == "low"
