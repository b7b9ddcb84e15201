"""
LangGraph implementation of the generation pipeline.

Nodes:
- plan_node: Turns the request into a UI plan (fatal on failure)
- acquire_data_node: Web search or example data (falls back to empty data)
- render_node: One generation attempt, looping on itself while retries remain
- validate_node: Re-checks the transformed code and runs the advisory gates
- critique_node: Optional quality review for low style scores
- complete_node: Builds the AgentResponse

Per-request collaborators (engine, progress emitter, settings) arrive
through config["configurable"]; the compiled graph itself is shared.
"""

import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional, Tuple

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph
from pydantic import ValidationError

from genui.config import get_config
from genui.errors import CompilationError, EngineError, JSONParseError
from genui.extractor import extract, extraction_diagnostics
from genui.llm.base import GenerationEngine, get_engine
from genui.progress import ProgressEmitter
from genui.sandbox.catalog import DEFAULT_CATALOG
from genui.sandbox.evaluator import compile_component
from genui.schemas import AgentResponse, Critique, DataResult, EngineEvent, EngineRequest, Plan
from genui.state import GraphState
from genui.transformer import sanitize_layout, transform_for_safety
from genui.validation import (
    GateContext,
    format_relevance_feedback,
    format_scope_feedback,
    run_advisory_gates,
    run_blocking_gates,
    score_relevance,
    validate_scope,
)

logger = logging.getLogger(__name__)


MIN_RESPONSE_CHARS = 50
CRITIQUE_THRESHOLD = 70
MAX_DATA_PROMPT_CHARS = 6000

RED_FLAG_TERMS = ("helper", "wrapper", "component function", "icon component", "create component")

NO_HELPERS_WARNING = (
    "WARNING: The plan mentions helpers or wrappers. Do NOT define any function, class or "
    "lambda other than GeneratedComponent with a capitalized name. Use Icons.<Name> for icons "
    "and Card directly for containers. Inline every piece of the element tree."
)


def _load_prompt(filename: str) -> str:
    """Load a prompt template from the prompts directory."""
    prompt_path = Path(__file__).parent / "prompts" / filename
    return prompt_path.read_text(encoding="utf-8")


def _runtime(config: Optional[RunnableConfig]) -> Tuple[GenerationEngine, ProgressEmitter, Any]:
    """Pull the per-request engine, emitter and settings out of the run config."""
    configurable = (config or {}).get("configurable", {})
    settings = configurable.get("settings") or get_config()
    engine = configurable.get("engine") or get_engine(settings)
    emitter = configurable.get("emitter") or ProgressEmitter()
    return engine, emitter, settings


def _model(state: GraphState, settings: Any) -> Optional[str]:
    return state.get("model") or getattr(settings, "model", None)


def _gate_context(state: GraphState, settings: Any) -> GateContext:
    plan = state.get("plan")
    return GateContext.for_request(
        user_message=state["user_message"],
        key_entities=plan.key_entities if plan else (),
        relevance_floor=settings.relevance_floor,
        marginal_ceiling=settings.relevance_marginal,
    )


def _data_json(data: Any) -> str:
    text = json.dumps(data, indent=2, default=str, ensure_ascii=False)
    if len(text) > MAX_DATA_PROMPT_CHARS:
        text = text[:MAX_DATA_PROMPT_CHARS] + "\n... (truncated)"
    return text


def has_red_flags(plan: Optional[Plan]) -> bool:
    """True when the plan text invites helper components."""
    if plan is None:
        return False
    text = plan.summary_text().lower()
    return any(term in text for term in RED_FLAG_TERMS)


def build_render_prompt(
    user_message: str,
    plan: Plan,
    data_result: DataResult,
    feedback: Optional[str] = None,
) -> str:
    """User prompt for one render attempt."""
    parts = []
    if feedback:
        parts.extend([
            "PREVIOUS ATTEMPT FAILED WITH ERROR:",
            feedback,
            "",
            "Fix exactly this problem in your new attempt.",
            "",
        ])
    parts.extend([
        f"User request: {user_message}",
        f"Intent: {plan.intent}",
        f"Content: {plan.content_context or user_message}",
        f"Key entities (show them in visible text): {', '.join(plan.key_entities) or 'none'}",
        f"Suggested components: {', '.join(plan.suggested_components) or 'Card'}",
        f"Interactivity: {plan.interactivity_type}",
        "",
        "Data available as `data`:",
        _data_json(data_result.data),
    ])
    if data_result.source:
        parts.append(f"Source: {data_result.source}")
    if has_red_flags(plan):
        parts.extend(["", NO_HELPERS_WARNING])
    return "\n".join(parts)


def renderer_system_prompt() -> str:
    return _load_prompt("renderer.txt").replace("{{CATALOG}}", DEFAULT_CATALOG.format_for_prompt())


# =============================================================================
# DATA ACQUISITION
# =============================================================================

def acquire_data(
    engine: GenerationEngine,
    user_message: str,
    plan: Plan,
    use_search: bool,
    emitter: Optional[ProgressEmitter] = None,
    model: Optional[str] = None,
) -> DataResult:
    """
    Fetch live data or generate example data for a plan.

    Engine and parse failures are logged and yield DataResult.empty().
    """
    emitter = emitter or ProgressEmitter()

    if use_search:
        emitter.phase("searching")
        system_prompt = _load_prompt("data_extraction.txt")
        query = plan.search_query or plan.content_context or user_message
        prompt = f"User request: {user_message}\nSearch query: {query}\nIntent: {plan.intent}"
    else:
        emitter.phase("preparing")
        system_prompt = _load_prompt("data_generation.txt")
        prompt = (
            f"User request: {user_message}\n"
            f"Content: {plan.content_context or user_message}\n"
            f"Key entities: {', '.join(plan.key_entities) or 'none'}\n"
            f"Intent: {plan.intent}"
        )

    def on_event(event: EngineEvent) -> None:
        emitter.engine_event(event, user_message)
        if use_search and event.type == "tool_call" and event.tool_name == "web_search":
            emitter.phase("extracting")

    request = EngineRequest(prompt=prompt, system_prompt=system_prompt, model=model)
    try:
        raw = engine.generate_json(request, on_event)
    except (EngineError, JSONParseError) as e:
        logger.warning("Data acquisition failed, continuing with empty data: %s", e)
        return DataResult.empty()

    if use_search:
        emitter.phase("extracting")

    try:
        if isinstance(raw, dict) and "data" in raw:
            return DataResult.model_validate(raw)
        return DataResult(data=raw, source=None, confidence="low")
    except ValidationError as e:
        logger.warning("Data reply did not match the expected shape: %s", e)
        return DataResult.empty()


# =============================================================================
# GRAPH NODES
# =============================================================================

def plan_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """
    Generate the UI plan from the user's request.
    """
    engine, emitter, settings = _runtime(config)
    emitter.phase("analyzing")
    emitter.phase("planning")

    request = EngineRequest(
        prompt=f"User query: {state['user_message']}",
        system_prompt=_load_prompt("planner.txt"),
        model=_model(state, settings),
    )

    try:
        raw = engine.generate_json(request, lambda event: emitter.engine_event(event, state["user_message"]))
        plan = Plan.model_validate(raw)
    except (EngineError, JSONParseError, ValidationError) as e:
        logger.error("Planning failed: %s", e)
        state["error"] = f"Planning failed: {e}"
        state["errors"] = state.get("errors", []) + [state["error"]]
        return state

    logger.info("Plan: intent=%s entities=%s search=%s", plan.intent, plan.key_entities, plan.needs_web_search)
    state["plan"] = plan
    emitter.send("plan", plan.model_dump(by_alias=True))
    return state


def acquire_data_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """
    Obtain the data the component will display.
    """
    engine, emitter, settings = _runtime(config)
    plan = state["plan"]
    mode = state.get("data_mode") or "auto"
    if mode == "auto":
        use_search = plan.needs_web_search
    else:
        use_search = mode == "web-search"

    result = acquire_data(engine, state["user_message"], plan, use_search, emitter, _model(state, settings))
    if result.source is None and not result.data:
        state["errors"] = state.get("errors", []) + ["Data acquisition returned no data"]

    state["data_result"] = result
    emitter.send("data", result.model_dump())
    return state


def _attempt_render(state: GraphState, engine: GenerationEngine, emitter: ProgressEmitter, settings: Any) -> Optional[str]:
    """
    Run one outer render attempt, including inner scope regenerations.

    Returns:
        None on success (candidate_code is set), otherwise the failure reason
    """
    retry = state["retry"]
    scope_retry = state["scope_retry"]
    plan = state["plan"]
    data_result = state.get("data_result") or DataResult.empty()
    context = _gate_context(state, settings)
    system_prompt = renderer_system_prompt()

    feedback = retry.last_error if retry.attempt > 0 else None

    def on_event(event: EngineEvent) -> None:
        emitter.engine_event(event, state["user_message"])

    while True:
        request = EngineRequest(
            prompt=build_render_prompt(state["user_message"], plan, data_result, feedback),
            system_prompt=system_prompt,
            model=_model(state, settings),
        )
        result = engine.generate(request, on_event)

        if not result.success:
            return f"Engine error: {result.error or 'unknown error'}"

        text = result.final_text or ""
        if len(text.strip()) < MIN_RESPONSE_CHARS:
            return f"Response too short ({len(text.strip())} chars). Return the full component inside [[CODE]] markers."

        artifact = extract(text)
        if not artifact.ok:
            return f"Could not extract component code. {extraction_diagnostics(text)}"
        code = artifact.extracted_code

        blocking = run_blocking_gates(code, context)
        if blocking:
            return blocking

        relevance = score_relevance(code, context)
        if relevance.score < context.relevance_floor:
            return format_relevance_feedback(relevance)
        if not relevance.relevant:
            if retry.can_retry() and not retry.marginal_retry_used:
                retry.marginal_retry_used = True
                logger.info("Marginal relevance %d, requesting one improved attempt", relevance.score)
                return format_relevance_feedback(relevance)
            logger.info("Accepting marginal relevance %d", relevance.score)

        scope = validate_scope(code, context)
        if not scope.valid:
            scope_feedback = format_scope_feedback(scope)
            if scope_retry.advance(scope_feedback):
                logger.info(
                    "Scope retry %d/%d for %s",
                    scope_retry.attempt, scope_retry.max_attempts, ", ".join(scope.suggestions),
                )
                feedback = scope_feedback
                continue
            return scope_feedback

        transformed = sanitize_layout(transform_for_safety(code))
        try:
            compile_component(transformed, data_result.data)
        except CompilationError as e:
            return f"Compilation failed: {e}"

        state["candidate_code"] = transformed
        return None


def render_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """
    One generation attempt with feedback from the previous failure.
    """
    engine, emitter, settings = _runtime(config)
    retry = state["retry"]

    if not emitter.has_announced("designing"):
        emitter.phase("designing")
    emitter.phase("generating")

    state["candidate_code"] = None
    error = _attempt_render(state, engine, emitter, settings)

    if error is None:
        logger.info("Render attempt %d accepted", retry.attempt + 1)
        state["last_error"] = None
        emitter.send("partial", {"componentCode": state["candidate_code"]})
        return state

    logger.warning("Render attempt %d failed: %s", retry.attempt + 1, error.splitlines()[0])
    state["last_error"] = error
    if not retry.advance(error):
        logger.error("Render retries exhausted after %d attempt(s)", retry.attempt + 1)
        state["error"] = error
    return state


def validate_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """
    Re-run the blocking gates on transformed code and collect advisory warnings.
    """
    _, emitter, settings = _runtime(config)
    emitter.phase("validating")

    code = state["candidate_code"]
    context = _gate_context(state, settings)

    blocking = run_blocking_gates(code, context)
    if blocking:
        logger.error("Transformed code failed validation: %s", blocking)
        state["error"] = f"Post-transform validation failed: {blocking}"
        return state

    report = run_advisory_gates(code, context)
    warnings = report.warnings()
    if warnings:
        logger.info("%d advisory warning(s) for accepted component", len(warnings))

    state["component_code"] = code
    state["warnings"] = warnings
    state["style_score"] = report.style.score
    state["needs_critique"] = bool(settings.enable_critique) and report.style.score < CRITIQUE_THRESHOLD
    return state


def critique_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """
    Ask the critic for a review. Never blocks delivery.
    """
    engine, emitter, settings = _runtime(config)
    emitter.phase("reviewing")

    request = EngineRequest(
        prompt=f"User request: {state['user_message']}\n\nComponent:\n{state['component_code']}",
        system_prompt=_load_prompt("critic.txt"),
        model=_model(state, settings),
    )
    try:
        critique = Critique.model_validate(engine.generate_json(request, max_retries=0))
    except (EngineError, JSONParseError, ValidationError) as e:
        logger.warning("Critique skipped: %s", e)
        state["errors"] = state.get("errors", []) + [f"Critique failed: {e}"]
        return state

    logger.info("Critique: approved=%s score=%d issues=%d", critique.approved, critique.quality_score, len(critique.issues))
    state["critique"] = critique
    return state


def complete_node(state: GraphState, config: RunnableConfig) -> GraphState:
    """
    Build the terminal response.
    """
    _, emitter, _ = _runtime(config)

    if state.get("error") or not state.get("component_code"):
        message = state.get("error") or "Component generation failed"
        response = AgentResponse.failure(message)
    else:
        data_result = state.get("data_result") or DataResult.empty()
        response = AgentResponse.component(
            code=state["component_code"],
            summary=f"{state['plan'].intent} component",
            source=data_result.source,
            data=data_result.data,
        )
        if state.get("errors"):
            emitter.send("notices", list(state["errors"]))

    emitter.phase("complete")
    emitter.send("complete", response.to_payload())
    state["response"] = response
    return state


# =============================================================================
# ROUTING LOGIC
# =============================================================================

def route_after_plan(state: GraphState) -> Literal["acquire_data_node", "complete_node"]:
    """After planning, acquire data or end on error."""
    if state.get("error") or not state.get("plan"):
        return "complete_node"
    return "acquire_data_node"


def route_after_render(state: GraphState) -> Literal["render_node", "validate_node", "complete_node"]:
    """Accepted code goes to validation; failures retry until the budget is spent."""
    if state.get("error"):
        return "complete_node"
    if state.get("candidate_code"):
        return "validate_node"
    return "render_node"


def route_after_validate(state: GraphState) -> Literal["critique_node", "complete_node"]:
    if state.get("error"):
        return "complete_node"
    if state.get("needs_critique"):
        return "critique_node"
    return "complete_node"


# =============================================================================
# BUILD THE GRAPH
# =============================================================================

def build_graph() -> StateGraph:
    """Build and return the LangGraph state graph."""
    graph = StateGraph(GraphState)

    graph.add_node("plan_node", plan_node)
    graph.add_node("acquire_data_node", acquire_data_node)
    graph.add_node("render_node", render_node)
    graph.add_node("validate_node", validate_node)
    graph.add_node("critique_node", critique_node)
    graph.add_node("complete_node", complete_node)

    graph.set_entry_point("plan_node")

    graph.add_conditional_edges(
        "plan_node",
        route_after_plan,
        {
            "acquire_data_node": "acquire_data_node",
            "complete_node": "complete_node",
        }
    )
    graph.add_edge("acquire_data_node", "render_node")
    graph.add_conditional_edges(
        "render_node",
        route_after_render,
        {
            "render_node": "render_node",
            "validate_node": "validate_node",
            "complete_node": "complete_node",
        }
    )
    graph.add_conditional_edges(
        "validate_node",
        route_after_validate,
        {
            "critique_node": "critique_node",
            "complete_node": "complete_node",
        }
    )
    graph.add_edge("critique_node", "complete_node")
    graph.add_edge("complete_node", END)

    return graph


def get_compiled_graph():
    """Get the compiled graph ready for execution."""
    graph = build_graph()
    return graph.compile()


# Global compiled graph instance
_compiled_graph = None


def get_graph():
    """Get or create the global compiled graph instance."""
    global _compiled_graph
    if _compiled_graph is None:
        _compiled_graph = get_compiled_graph()
    return _compiled_graph
