"""
Pydantic schemas for structured LLM outputs, validation outcomes and the response contract.
"""

from typing import Any, Dict, List, Literal, Optional, Union, get_args
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


IntentType = Literal[
    "metric", "trend", "comparison", "list", "fact", "status",
    "timeline", "profile", "gallery", "calculator", "quote", "map",
]

InteractivityType = Literal[
    "tabs", "slider", "accordion", "toggle", "expand", "hover", "switch", "animate",
]

INTENTS = get_args(IntentType)
INTERACTIVITY_TYPES = get_args(InteractivityType)

ExtractionStrategy = Literal[
    "paired_markers",
    "markers_with_prose",
    "unclosed_marker",
    "fenced_block",
    "anchor_pattern",
    "renamed_declaration",
    "none",
]

DataMode = Literal["auto", "web-search", "example-data"]


# =============================================================================
# PLANNING AND DATA
# =============================================================================

class Plan(BaseModel):
    """UI plan produced once per request by the planning phase."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    intent: IntentType = Field("fact", description="Kind of answer to visualize")
    content_context: str = Field("", alias="contentContext", description="Main subject of the request")
    key_entities: List[str] = Field(
        default_factory=list, alias="keyEntities", description="Key nouns the UI must mention"
    )
    needs_web_search: bool = Field(False, alias="needsWebSearch", description="Whether live data is required")
    search_query: Optional[str] = Field(None, alias="searchQuery", description="Query for the web search")
    suggested_components: List[str] = Field(
        default_factory=list, alias="suggestedComponents", description="Catalog components to use"
    )
    interactivity_type: InteractivityType = Field(
        "animate", alias="interactivityType", description="Main interaction pattern"
    )
    description: Optional[str] = Field(None, description="Free-form notes from the planner")

    @field_validator("intent", mode="before")
    @classmethod
    def _coerce_intent(cls, value: Any) -> str:
        value = str(value or "").strip().lower()
        return value if value in INTENTS else "fact"

    @field_validator("interactivity_type", mode="before")
    @classmethod
    def _coerce_interactivity(cls, value: Any) -> str:
        value = str(value or "").strip().lower()
        return value if value in INTERACTIVITY_TYPES else "animate"

    @field_validator("key_entities", "suggested_components", mode="before")
    @classmethod
    def _dedupe_strings(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        seen = []
        for item in value:
            item = str(item).strip()
            if item and item not in seen:
                seen.append(item)
        return seen

    def summary_text(self) -> str:
        """Text used for red-flag scanning of the plan."""
        return " ".join([self.description or "", self.content_context, " ".join(self.suggested_components)])


class DataResult(BaseModel):
    """Data obtained for a request, injected into the sandbox as `data`."""
    data: Any = Field(default_factory=dict, description="Arbitrary JSON value")
    source: Optional[str] = Field(None, description="Where the data came from")
    confidence: Literal["high", "medium", "low"] = Field("low", description="Data quality estimate")

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> str:
        value = str(value or "").strip().lower()
        return value if value in ("high", "medium", "low") else "low"

    @classmethod
    def empty(cls) -> "DataResult":
        return cls(data={}, source=None, confidence="low")


class RefreshResult(DataResult):
    """Result of re-running only the data acquisition phase."""
    refreshed_at: str = Field(..., description="ISO timestamp of the refresh")


class Critique(BaseModel):
    """Reviewer output for a generated component."""
    model_config = ConfigDict(populate_by_name=True)

    approved: bool = Field(True, description="Whether the component is acceptable")
    quality_score: int = Field(0, alias="qualityScore", description="0-100 quality estimate")
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


# =============================================================================
# CODE ARTIFACTS AND VALIDATION OUTCOMES
# =============================================================================

class CodeArtifact(BaseModel):
    """One render attempt's raw engine output and what was recovered from it."""
    raw_text: str = Field(..., description="Final text returned by the engine")
    extracted_code: Optional[str] = Field(None, description="Recovered code unit, if any")
    extraction_strategy: ExtractionStrategy = Field("none", description="Strategy that succeeded")

    @property
    def ok(self) -> bool:
        return bool(self.extracted_code)


class StructuralOutcome(BaseModel):
    valid: bool
    error: Optional[str] = None


class SafetyOutcome(BaseModel):
    safe: bool
    issues: List[str] = Field(default_factory=list)


class ScopeOutcome(BaseModel):
    valid: bool
    issues: List[str] = Field(default_factory=list)
    suggestions: Dict[str, str] = Field(
        default_factory=dict, description="Targeted fix keyed by offending identifier"
    )


class RelevanceOutcome(BaseModel):
    relevant: bool
    score: int
    issues: List[str] = Field(default_factory=list)
    missing_entities: List[str] = Field(default_factory=list)


class RuntimeSafetyOutcome(BaseModel):
    safe: bool
    warnings: List[str] = Field(default_factory=list)


class HookUsageOutcome(BaseModel):
    valid: bool
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class LayoutOutcome(BaseModel):
    safe: bool
    violations: List[str] = Field(default_factory=list)


class StyleOutcome(BaseModel):
    score: int
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# RETRY STATE
# =============================================================================

class RetryState(BaseModel):
    """
    Bounded retry counter for the render loop.

    `attempt` is the index of the current attempt. It only moves through
    `advance`, which refuses to go past `max_attempts`.
    """
    attempt: int = Field(0, ge=0)
    max_attempts: int = Field(2, ge=0)
    last_error: Optional[str] = None
    marginal_retry_used: bool = False

    @model_validator(mode="after")
    def _check_bound(self) -> "RetryState":
        if self.attempt > self.max_attempts:
            raise ValueError(f"attempt {self.attempt} exceeds max_attempts {self.max_attempts}")
        return self

    def can_retry(self) -> bool:
        return self.attempt < self.max_attempts

    def advance(self, error: str) -> bool:
        """Record a failure. Returns True if another attempt is allowed."""
        self.last_error = error
        if not self.can_retry():
            return False
        self.attempt += 1
        return True

    @property
    def exhausted(self) -> bool:
        return not self.can_retry()


class ScopeRetryState(RetryState):
    """Inner retry budget for scope-specific regeneration inside one render attempt."""
    max_attempts: int = Field(2, ge=0)


# =============================================================================
# ENGINE CONTRACT
# =============================================================================

class EngineRequest(BaseModel):
    """A single call to the generation engine."""
    prompt: str
    system_prompt: str = ""
    model: Optional[str] = None
    force: bool = Field(True, description="Allow the engine to run tools without asking")
    debug: bool = False


class EngineEvent(BaseModel):
    """A typed event streamed by the engine while a call is in flight."""
    type: Literal["system", "user", "assistant", "tool_call", "result"]
    subtype: Optional[str] = None
    text: Optional[str] = None
    tool_name: Optional[str] = None
    tool_summary: Optional[str] = None
    duration_ms: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class EngineResult(BaseModel):
    """Terminal outcome of an engine call."""
    success: bool
    final_text: str = ""
    events: List[EngineEvent] = Field(default_factory=list)
    error: Optional[str] = None
    duration_ms: Optional[int] = None


# =============================================================================
# RENDERING AND RESPONSES
# =============================================================================

class RenderNode(BaseModel):
    """Normalized, serializable element tree produced by the evaluator or fallback."""
    type: str
    props: Dict[str, Any] = Field(default_factory=dict)
    children: List[Union["RenderNode", str]] = Field(default_factory=list)

    def text_content(self) -> str:
        """Concatenated text of the subtree, mostly useful for tests and logs."""
        parts = []
        for child in self.children:
            parts.append(child if isinstance(child, str) else child.text_content())
        return " ".join(p for p in parts if p)

    def find_all(self, type_name: str) -> List["RenderNode"]:
        found = [self] if self.type == type_name else []
        for child in self.children:
            if isinstance(child, RenderNode):
                found.extend(child.find_all(type_name))
        return found


RenderNode.model_rebuild()


class RenderResult(BaseModel):
    """Outcome of evaluating a component inside the failure boundary."""
    node: RenderNode
    fell_back: bool = False
    error: Optional[str] = None


class AgentResponse(BaseModel):
    """
    Terminal artifact of a request.

    Exactly one shape is populated: the component shape
    (component_code, summary, source, data) or the error shape
    (text_response, error=True).
    """
    component_code: Optional[str] = None
    summary: Optional[str] = None
    source: Optional[str] = None
    data: Any = None
    text_response: Optional[str] = None
    error: bool = False

    @model_validator(mode="after")
    def _exactly_one_shape(self) -> "AgentResponse":
        is_component = self.component_code is not None
        is_error = self.text_response is not None or self.error
        if is_component == is_error:
            raise ValueError("AgentResponse must be either a component or an error, never both or neither")
        if is_error and not (self.error and self.text_response is not None):
            raise ValueError("Error responses need both text_response and error=True")
        if is_error and (self.summary is not None or self.source is not None or self.data is not None):
            raise ValueError("Error responses must not carry component fields")
        return self

    @classmethod
    def component(cls, code: str, summary: str, source: Optional[str], data: Any) -> "AgentResponse":
        return cls(component_code=code, summary=summary, source=source, data=data)

    @classmethod
    def failure(cls, message: str) -> "AgentResponse":
        return cls(text_response=message, error=True)

    @property
    def is_error(self) -> bool:
        return self.error

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the camelCase contract consumed by presentation layers."""
        if self.error:
            return {"textResponse": self.text_response, "error": True}
        return {
            "componentCode": self.component_code,
            "summary": self.summary,
            "source": self.source,
            "data": self.data,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AgentResponse":
        """Inverse of to_payload."""
        if payload.get("error"):
            return cls.failure(payload.get("textResponse") or "")
        return cls.component(
            code=payload.get("componentCode") or "",
            summary=payload.get("summary") or "",
            source=payload.get("source"),
            data=payload.get("data"),
        )


class ProgressUpdate(BaseModel):
    """Progress notification emitted on phase entry."""
    type: Literal["progress"] = "progress"
    phase: str
    message: str
    progress: int
    subtext: Optional[str] = None
