import json
import threading
import time

import pytest

from genui.config import Config, ConfigError, get_config, reset_config
from genui.errors import EngineError, JSONParseError
from genui.llm.azure_openai_client import AzureOpenAIEngine
from genui.llm.base import get_engine
from genui.llm.cursor_agent import CursorAgentEngine, parse_event, tool_name, tool_summary
from genui.llm.json_parsing import parse_json_robust
from genui.schemas import EngineRequest, EngineResult


# =============================================================================
# JSON PARSING
# =============================================================================

@pytest.mark.parametrize("text, expected", [
    ('{"a": 1}', {"a": 1}),
    ('```json\n{"a": 1}\n```', {"a": 1}),
    ('Here is the plan: {"a": 1} hope it helps', {"a": 1}),
    ('[1, 2, 3] trailing', [1, 2, 3]),
    ('{"a": [1, 2,], "b": True, "c": None,}', {"a": [1, 2], "b": True, "c": None}),
    ("{“a”: “b”}", {"a": "b"}),
])
def test_parse_json_robust(text, expected):
    assert parse_json_robust(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "no json here"])
def test_parse_json_robust_failures(text):
    with pytest.raises(JSONParseError):
        parse_json_robust(text)


# =============================================================================
# ENGINE CONTRACT
# =============================================================================

def test_generate_json_retries_with_stronger_reminder(fake_engine):
    engine = fake_engine(["nope", '{"ok": true}'])
    assert engine.generate_json(EngineRequest(prompt="plan")) == {"ok": True}
    assert "valid JSON only" in engine.requests[0].prompt
    assert "CRITICAL" in engine.requests[1].prompt


def test_generate_json_raises_engine_error(fake_engine):
    engine = fake_engine([EngineResult(success=False, error="boom")])
    with pytest.raises(EngineError, match="boom"):
        engine.generate_json(EngineRequest(prompt="plan"))


def test_get_engine_follows_config(monkeypatch):
    assert isinstance(get_engine(), CursorAgentEngine)

    monkeypatch.setenv("GENUI_ENGINE", "azure-openai")
    monkeypatch.setenv("AZURE_OPENAI_API_KEY", "key")
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
    monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT_NAME", "gpt-4o")
    reset_config()
    assert isinstance(get_engine(get_config()), AzureOpenAIEngine)


# =============================================================================
# CONFIG
# =============================================================================

def test_config_defaults(settings):
    assert settings.engine == "cursor-agent"
    assert settings.render_max_attempts == 2
    assert settings.scope_max_retries == 2
    assert settings.relevance_floor == 40
    assert settings.relevance_marginal == 70
    assert settings.engine_timeout_seconds == 300


@pytest.mark.parametrize("name, value, message", [
    ("GENUI_ENGINE", "gpt-cli", "GENUI_ENGINE must be one of"),
    ("RENDER_MAX_ATTEMPTS", "two", "RENDER_MAX_ATTEMPTS must be an integer"),
    ("RELEVANCE_FLOOR", "90", "RELEVANCE_FLOOR <= RELEVANCE_MARGINAL"),
    ("ENGINE_TIMEOUT_SECONDS", "0", "ENGINE_TIMEOUT_SECONDS must be positive"),
])
def test_config_rejects_bad_values(monkeypatch, name, value, message):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError, match=message):
        Config()


def test_azure_engine_requires_credentials(monkeypatch):
    monkeypatch.setenv("GENUI_ENGINE", "azure-openai")
    with pytest.raises(ConfigError, match="AZURE_OPENAI_API_KEY"):
        Config()


# =============================================================================
# CURSOR-AGENT
# =============================================================================

def line(**event):
    return json.dumps(event) + "\n"


class FakeStdout:
    def __init__(self, lines, block_until=None):
        self._lines = lines
        self._block_until = block_until
        self.closed = False

    def __iter__(self):
        for item in self._lines:
            yield item
        if self._block_until is not None:
            self._block_until.wait(5)

    def close(self):
        self.closed = True


class FakeProcess:
    """Stands in for subprocess.Popen; optionally blocks until killed."""

    def __init__(self, lines, returncode=0, block=False, stderr=()):
        self.returncode = returncode
        self.killed = threading.Event()
        self.stdout = FakeStdout(lines, self.killed if block else None)
        self.stderr = list(stderr)
        self.waits = 0

    def kill(self):
        self.killed.set()

    def wait(self, timeout=None):
        self.waits += 1
        return -9 if self.killed.is_set() else self.returncode


def popen_returning(process, calls=None):
    def _popen(command, **kwargs):
        if calls is not None:
            calls.append(command)
        return process
    return _popen


def test_parse_event_shapes():
    assistant = parse_event(line(type="assistant", message={"content": [{"text": "hello"}]}))
    assert assistant.type == "assistant" and assistant.text == "hello"

    tool = parse_event(line(
        type="tool_call", subtype="started",
        tool_call={"webSearchToolCall": {"args": {"search_term": "tokyo weather"}}},
    ))
    assert tool.tool_name == "web_search"
    assert tool.tool_summary == "tokyo weather"

    assert parse_event("not json") is None
    assert parse_event(line(type="mystery")) is None


def test_tool_helpers():
    assert tool_name({"shellToolCall": {}}) == "shell"
    assert tool_name({"fancyToolCall": {}}) == "fancy"
    assert tool_name(None) == "tool"
    assert tool_summary({"readToolCall": {"args": {"path": "x" * 60}}}) == "x" * 40 + "..."


def test_build_command():
    engine = CursorAgentEngine(binary="agent")
    command = engine.build_command(EngineRequest(prompt="hi", system_prompt="be brief", model="cheetah"))
    assert command[:5] == ["agent", "--print", "--output-format", "stream-json", "--force"]
    assert command[5:7] == ["--model", "cheetah"]
    assert command[-1] == "System: be brief\n\nUser: hi"


def test_result_event_ends_the_call():
    process = FakeProcess([
        line(type="system", subtype="init"),
        line(type="assistant", message={"content": [{"text": "[[CODE]]"}]}),
        line(type="assistant", message={"content": [{"text": "code[[/CODE]]"}]}),
        line(type="result", subtype="success", duration_ms=1234),
        line(type="assistant", message={"content": [{"text": "ignored"}]}),
    ], block=True)
    calls, events = [], []
    engine = CursorAgentEngine(popen=popen_returning(process, calls), timeout_seconds=5)

    result = engine.generate(EngineRequest(prompt="hi"), events.append)

    assert result.success
    assert result.final_text == "[[CODE]]code[[/CODE]]"
    assert result.duration_ms == 1234
    assert process.killed.is_set()
    assert process.stdout.closed
    assert process.waits == 1
    assert [e.type for e in events] == ["system", "assistant", "assistant", "result"]
    assert calls[0][0] == "cursor-agent"


def test_timeout_kills_the_process():
    process = FakeProcess([line(type="assistant", message={"content": [{"text": "thinking"}]})], block=True)
    engine = CursorAgentEngine(popen=popen_returning(process), timeout_seconds=0.05)

    result = engine.generate(EngineRequest(prompt="hi"))

    assert not result.success
    assert result.error == "Process timed out after 0.05s"
    assert result.final_text == "thinking"
    assert process.killed.is_set()


def test_missing_binary_is_reported():
    def missing(command, **kwargs):
        raise FileNotFoundError(2, "No such file or directory")

    result = CursorAgentEngine(binary="nope", popen=missing).generate(EngineRequest(prompt="hi"))

    assert not result.success
    assert result.error.startswith("Failed to start nope")


def test_nonzero_exit_without_result_fails():
    process = FakeProcess([], returncode=1, stderr=["auth required\n"])
    result = CursorAgentEngine(popen=popen_returning(process), timeout_seconds=5).generate(EngineRequest(prompt="hi"))

    assert not result.success
    assert result.error == "auth required"


# =============================================================================
# AZURE OPENAI
# =============================================================================

class _Delta:
    def __init__(self, content):
        self.content = content


class _Choice:
    def __init__(self, content):
        self.delta = _Delta(content)


class _Chunk:
    def __init__(self, content):
        self.choices = [_Choice(content)]


class _Completions:
    def __init__(self, chunks):
        self.chunks = chunks
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return iter(self.chunks)


class _Client:
    def __init__(self, chunks):
        self.chat = type("Chat", (), {})()
        self.chat.completions = _Completions(chunks)


def test_azure_engine_streams_chunks():
    client = _Client([_Chunk('{"a"'), _Chunk(None), _Chunk(": 1}")])
    engine = AzureOpenAIEngine(client, deployment="gpt-4o", timeout_seconds=30)
    events = []

    result = engine.generate(EngineRequest(prompt="hi", system_prompt="sys"), events.append)

    assert result.success
    assert result.final_text == '{"a": 1}'
    assert events[-1].type == "result"
    kwargs = client.chat.completions.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert kwargs["stream"] is True


class _SlowStream:
    """Yields one chunk per interval and records whether it was closed."""

    def __init__(self, chunks, interval):
        self.chunks = chunks
        self.interval = interval
        self.closed = False

    def __iter__(self):
        for chunk in self.chunks:
            time.sleep(self.interval)
            yield chunk

    def close(self):
        self.closed = True


def test_azure_engine_enforces_wall_clock_timeout():
    stream = _SlowStream([_Chunk("a"), _Chunk("b"), _Chunk("c"), _Chunk("d")], interval=0.05)
    client = _Client([])
    client.chat.completions.create = lambda **kwargs: stream
    engine = AzureOpenAIEngine(client, deployment="gpt-4o", timeout_seconds=0.08)

    result = engine.generate(EngineRequest(prompt="hi"))

    assert not result.success
    assert result.error == "Stream timed out after 0.08s"
    assert stream.closed
    assert "d" not in result.final_text
