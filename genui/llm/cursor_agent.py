"""
cursor-agent CLI engine.

Runs `cursor-agent --print --output-format stream-json` as a subprocess and
reads one JSON event per stdout line. Assistant text is accumulated; the
`result` event ends the call. The CLI does not always exit on its own after
the result, so the process is killed once it arrives.
"""

import json
import logging
import os
import subprocess
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from genui.llm.base import EventCallback, GenerationEngine
from genui.schemas import EngineEvent, EngineRequest, EngineResult

logger = logging.getLogger(__name__)

REAP_TIMEOUT_SECONDS = 5


TOOL_NAMES = {
    "readToolCall": "read_file",
    "writeToolCall": "write_file",
    "lsToolCall": "list_dir",
    "shellToolCall": "shell",
    "updateTodosToolCall": "update_todos",
    "searchReplaceToolCall": "edit_file",
    "grepToolCall": "grep",
    "deleteFileToolCall": "delete_file",
    "codebaseSearchToolCall": "codebase_search",
    "webSearchToolCall": "web_search",
    "runTerminalCmdToolCall": "terminal",
    "globFileSearchToolCall": "find_files",
}

# (tool key, argument holding the most useful summary)
_SUMMARY_ARGS = (
    ("readToolCall", "path"),
    ("writeToolCall", "path"),
    ("lsToolCall", "path"),
    ("shellToolCall", "command"),
    ("runTerminalCmdToolCall", "command"),
    ("searchReplaceToolCall", "file_path"),
    ("grepToolCall", "pattern"),
    ("codebaseSearchToolCall", "query"),
    ("webSearchToolCall", "search_term"),
    ("globFileSearchToolCall", "glob_pattern"),
)


def _truncate(text: str, limit: int = 40) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def tool_name(tool_call: Optional[Dict[str, Any]]) -> str:
    """Human-readable tool name from the CLI's `{"<kind>ToolCall": {...}}` shape."""
    tool_call = tool_call or {}
    for key, name in TOOL_NAMES.items():
        if key in tool_call:
            return name
    keys = [k for k in tool_call if k.endswith("ToolCall")]
    return keys[0][: -len("ToolCall")] if keys else "tool"


def tool_summary(tool_call: Optional[Dict[str, Any]]) -> str:
    tool_call = tool_call or {}
    for key, arg in _SUMMARY_ARGS:
        args = (tool_call.get(key) or {}).get("args") or {}
        value = args.get(arg)
        if value:
            return _truncate(str(value))
    return ""


def parse_event(line: str) -> Optional[EngineEvent]:
    """Parse one stdout line into an EngineEvent; non-JSON lines yield None."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(raw, dict) or raw.get("type") not in ("system", "user", "assistant", "tool_call", "result"):
        return None

    text = None
    content = (raw.get("message") or {}).get("content") or []
    if raw["type"] == "assistant" and content and isinstance(content[0], dict):
        text = content[0].get("text")

    name = summary = None
    if raw["type"] == "tool_call":
        name = tool_name(raw.get("tool_call"))
        summary = tool_summary(raw.get("tool_call")) or None

    return EngineEvent(
        type=raw["type"],
        subtype=raw.get("subtype"),
        text=text,
        tool_name=name,
        tool_summary=summary,
        duration_ms=raw.get("duration_ms"),
        raw=raw,
    )


class CursorAgentEngine(GenerationEngine):
    """Generation engine backed by the cursor-agent CLI."""

    name = "cursor-agent"

    def __init__(
        self,
        binary: str = "cursor-agent",
        api_key: Optional[str] = None,
        timeout_seconds: int = 300,
        popen: Callable[..., Any] = subprocess.Popen,
    ):
        self.binary = binary
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._popen = popen

    def build_command(self, request: EngineRequest) -> List[str]:
        command = [self.binary, "--print", "--output-format", "stream-json"]
        if request.force:
            command.append("--force")
        if request.model:
            command.extend(["--model", request.model])
        prompt = request.prompt
        if request.system_prompt:
            prompt = f"System: {request.system_prompt}\n\nUser: {request.prompt}"
        command.append(prompt)
        return command

    def _env(self) -> Dict[str, str]:
        env = dict(os.environ)
        if self.api_key:
            env["CURSOR_API_KEY"] = self.api_key
        return env

    def generate(self, request: EngineRequest, on_event: Optional[EventCallback] = None) -> EngineResult:
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            process = self._popen(
                self.build_command(request),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=self._env(),
                text=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            logger.error("cursor-agent is not available: %s", e)
            return EngineResult(
                success=False,
                error=f"Failed to start {self.binary}: {e}. Install cursor-agent or set CURSOR_AGENT_BIN.",
                duration_ms=elapsed(),
            )

        timed_out = threading.Event()

        def kill_on_timeout() -> None:
            timed_out.set()
            logger.warning("cursor-agent exceeded %ss, killing process", self.timeout_seconds)
            process.kill()

        watchdog = threading.Timer(self.timeout_seconds, kill_on_timeout)
        watchdog.daemon = True
        watchdog.start()

        stderr_lines: List[str] = []
        drain = threading.Thread(target=lambda: stderr_lines.extend(process.stderr or []), daemon=True)
        drain.start()

        events: List[EngineEvent] = []
        text_parts: List[str] = []
        try:
            for line in process.stdout:
                event = parse_event(line)
                if event is None:
                    continue
                events.append(event)
                self._log_event(event)
                if on_event is not None:
                    on_event(event)
                if event.type == "assistant" and event.text:
                    text_parts.append(event.text)
                if event.type == "result":
                    return EngineResult(
                        success=True,
                        final_text="".join(text_parts),
                        events=events,
                        duration_ms=event.duration_ms or elapsed(),
                    )
            returncode = process.wait()
        finally:
            watchdog.cancel()
            self._reap(process)

        if timed_out.is_set():
            return EngineResult(
                success=False,
                final_text="".join(text_parts),
                events=events,
                error=f"Process timed out after {self.timeout_seconds}s",
                duration_ms=elapsed(),
            )

        drain.join(timeout=1)
        stderr = "".join(stderr_lines).strip()
        return EngineResult(
            success=returncode == 0,
            final_text="".join(text_parts),
            events=events,
            error=None if returncode == 0 else (stderr or f"cursor-agent exited with code {returncode}"),
            duration_ms=elapsed(),
        )

    @staticmethod
    def _reap(process: Any) -> None:
        """Close stdout and collect the child's exit status."""
        process.kill()
        if process.stdout is not None:
            process.stdout.close()
        try:
            process.wait(timeout=REAP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("cursor-agent did not exit within %ss of being killed", REAP_TIMEOUT_SECONDS)

    @staticmethod
    def _log_event(event: EngineEvent) -> None:
        if event.type == "assistant" and event.text:
            logger.debug("assistant: %s", _truncate(event.text.strip().replace("\n", " "), 80))
        elif event.type == "tool_call":
            summary = f": {event.tool_summary}" if event.tool_summary else ""
            logger.debug("tool %s %s%s", event.subtype or "", event.tool_name, summary)
        elif event.type == "result":
            logger.debug("result received after %sms", event.duration_ms)
