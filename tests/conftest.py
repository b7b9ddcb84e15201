import json
import os
from typing import List, Optional, Union

import pytest

from genui.config import get_config, reset_config
from genui.llm.base import GenerationEngine
from genui.schemas import EngineEvent, EngineRequest, EngineResult

_ENV_PREFIXES = (
    "GENUI_", "CURSOR_", "AZURE_OPENAI_", "ENGINE_", "RENDER_", "SCOPE_", "RELEVANCE_", "ENABLE_",
)


@pytest.fixture(autouse=True)
def _env_isolation(monkeypatch):
    """
    • Every test starts from a clean, cursor-agent configuration
    • Critique is off unless a test turns it back on
    """
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GENUI_ENGINE", "cursor-agent")
    monkeypatch.setenv("ENABLE_CRITIQUE", "false")
    reset_config()
    yield
    reset_config()


class FakeEngine(GenerationEngine):
    """Replays scripted replies in order and records every request it received."""

    name = "fake"

    def __init__(self, replies: List[Union[str, EngineResult]], events: Optional[List[EngineEvent]] = None):
        self.replies = list(replies)
        self.events = list(events or [])
        self.requests: List[EngineRequest] = []

    def generate(self, request, on_event=None):
        self.requests.append(request)
        if not self.replies:
            return EngineResult(success=False, error="No scripted reply left")
        reply = self.replies.pop(0)
        result = reply if isinstance(reply, EngineResult) else EngineResult(success=True, final_text=reply)
        if on_event is not None:
            for event in self.events + list(result.events):
                on_event(event)
        return result

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def fake_engine():
    return FakeEngine


@pytest.fixture
def settings():
    return get_config()


@pytest.fixture
def plan_reply():
    """Planner JSON for the Tokyo weather request; keyword overrides replace fields."""
    def _mk(**overrides):
        plan = {
            "intent": "fact",
            "contentContext": "current weather in Tokyo",
            "keyEntities": ["Tokyo", "weather"],
            "needsWebSearch": True,
            "searchQuery": "Tokyo weather today",
            "suggestedComponents": ["Card", "Badge", "NumberFlow"],
            "interactivityType": "toggle",
        }
        plan.update(overrides)
        return json.dumps(plan)
    return _mk


@pytest.fixture
def data_reply():
    return json.dumps({
        "data": {"city": "Tokyo", "temperature": 21, "condition": "Sunny", "humidity": 60},
        "source": "example.com",
        "confidence": "high",
    })


WEATHER_COMPONENT = '''def GeneratedComponent():
    unit, set_unit = use_state("C")
    temp = safe_get(data, "temperature", 0)
    shown = temp if unit == "C" else round(temp * 9 / 5 + 32)
    return Card(
        CardHeader(CardTitle("Weather in Tokyo")),
        CardContent(
            motion.div(
                NumberFlow(value=shown, suffix=unit),
                Badge(safe_get(data, "condition", "Unknown")),
                initial={"opacity": 0},
                animate={"opacity": 1},
            ),
            Button("Toggle unit", on_click=lambda: set_unit(lambda u: "F" if u == "C" else "C")),
        ),
        class_name="w-full",
    )'''


@pytest.fixture
def weather_component():
    return WEATHER_COMPONENT


@pytest.fixture
def wrap_code():
    def _wrap(code: str, prose: str = "") -> str:
        return f"{prose}[[CODE]]\n{code}\n[[/CODE]]"
    return _wrap
