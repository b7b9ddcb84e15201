"""
Progress reporting for the pipeline.

Phases carry fixed progress values. The emitter guarantees the stream a UI
sees never goes backwards: each phase is announced at most once, except
`generating`, which is announced once per render attempt.
"""

import logging
import re
import threading
from typing import Any, Callable, Dict, List, Optional, Set

from genui.schemas import EngineEvent, ProgressUpdate

logger = logging.getLogger(__name__)


# phase -> (progress, message, subtext)
PHASES: Dict[str, tuple] = {
    "analyzing": (5, "Understanding your question", "Analyzing intent and requirements"),
    "planning": (15, "Planning the UI", "Choosing components and layout"),
    "searching": (35, "Searching the web", "Finding live data sources"),
    "extracting": (50, "Processing results", "Extracting structured data"),
    "preparing": (55, "Preparing data", "Generating example data"),
    "designing": (65, "Designing the interface", "Creating interactive layout"),
    "generating": (80, "Generating component", "Building component code"),
    "validating": (90, "Validating", "Running safety checks"),
    "reviewing": (95, "Reviewing quality", "Final polish"),
    "complete": (100, "Complete", None),
}

REPEATABLE_PHASES = frozenset({"generating"})

STOP_WORDS = frozenset({
    "what", "whats", "how", "when", "where", "why", "who", "which", "can", "could", "would",
    "should", "is", "are", "was", "were", "do", "does", "did", "tell", "show", "give", "get",
    "me", "us", "my", "find", "compare", "please", "today", "now", "currently", "latest",
    "current", "vs", "versus", "and", "or", "the", "a", "an", "in", "on", "at", "for",
    "about", "of", "to", "with", "it", "its", "i", "you", "like", "right",
})

Update = Dict[str, Any]
UpdateCallback = Callable[[Update], None]


def progress_update(phase: str, message: Optional[str] = None, subtext: Optional[str] = None) -> ProgressUpdate:
    if phase not in PHASES:
        raise ValueError(f"Unknown progress phase: {phase}")
    value, default_message, default_subtext = PHASES[phase]
    return ProgressUpdate(
        phase=phase,
        message=message or default_message,
        progress=value,
        subtext=subtext if subtext is not None else default_subtext,
    )


def extract_key_terms(message: str, limit: int = 3) -> str:
    """Short topic string for progress messages, e.g. "tokyo weather"."""
    words = re.findall(r"[a-z0-9]+", (message or "").lower().replace("'", ""))
    terms = [w for w in words if w not in STOP_WORDS]
    return " ".join(terms[:limit])


def event_to_step(event: EngineEvent, user_message: str) -> Optional[str]:
    """Map an engine event to a human-readable step, or None if it is not worth showing."""
    if event.type == "tool_call" and event.subtype == "started":
        if event.tool_name == "web_search":
            term = (event.tool_summary or "").strip('"')
            context = term if term and len(term) < 50 else extract_key_terms(user_message)
            return f"Searching for {context}" if context else "Searching the web"
        if event.tool_name in ("shell", "terminal") and "curl" in (event.tool_summary or ""):
            context = extract_key_terms(user_message)
            return f"Fetching {context}" if context else "Fetching data"
    elif event.type == "assistant" and event.text and 10 < len(event.text) < 100:
        return "Analyzing response"
    elif event.type == "result":
        return "Creating component"
    return None


class ProgressEmitter:
    """
    Deduplicating, monotonic progress sink for one request.

    Args:
        callback: Receives every accepted update as a plain dict
    """

    def __init__(self, callback: Optional[UpdateCallback] = None):
        self._callback = callback
        self._lock = threading.Lock()
        self._last_progress = 0
        self._announced: Set[str] = set()
        self._steps: Set[str] = set()
        self.updates: List[Update] = []

    @property
    def last_progress(self) -> int:
        return self._last_progress

    def has_announced(self, phase: str) -> bool:
        return phase in self._announced

    def phase(self, phase: str, message: Optional[str] = None, subtext: Optional[str] = None) -> bool:
        """Announce a phase. Returns False when the update was dropped."""
        update = progress_update(phase, message, subtext)
        with self._lock:
            if phase in self._announced and phase not in REPEATABLE_PHASES:
                logger.debug("Dropping duplicate phase %s", phase)
                return False
            if update.progress < self._last_progress:
                logger.debug("Dropping regressing phase %s (%d < %d)", phase, update.progress, self._last_progress)
                return False
            self._announced.add(phase)
            self._last_progress = update.progress
        self._send(update.model_dump())
        return True

    def step(self, message: str) -> bool:
        """Emit a fine-grained step message once per request."""
        with self._lock:
            if message in self._steps:
                return False
            self._steps.add(message)
        self._send({"type": "step", "message": message, "progress": self._last_progress})
        return True

    def engine_event(self, event: EngineEvent, user_message: str) -> None:
        step = event_to_step(event, user_message)
        if step:
            self.step(step)

    def send(self, update_type: str, payload: Any) -> None:
        """Emit a non-progress update (plan, data, partial, complete)."""
        self._send({"type": update_type, "payload": payload})

    def _send(self, update: Update) -> None:
        self.updates.append(update)
        if self._callback is None:
            return
        try:
            self._callback(update)
        except Exception as e:
            # A broken UI callback must not break the pipeline
            logger.warning("Progress callback failed: %s", e)
