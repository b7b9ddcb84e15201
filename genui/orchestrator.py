"""
Orchestrator for the generation pipeline.

Provides the entry points used by the app and by tests: run a request to
completion, stream its updates, or refresh only its data.
"""

import logging
import queue
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional

from genui.config import get_config
from genui.graph import acquire_data, get_graph
from genui.llm.base import GenerationEngine, get_engine
from genui.progress import ProgressEmitter
from genui.schemas import AgentResponse, DataMode, Plan, RefreshResult
from genui.state import GraphState, create_initial_state

logger = logging.getLogger(__name__)

_DONE = object()


# =============================================================================
# GRAPH-BASED ORCHESTRATION
# =============================================================================

def run_graph(
    message: str,
    model: Optional[str] = None,
    engine: Optional[GenerationEngine] = None,
    emitter: Optional[ProgressEmitter] = None,
    data_mode: Optional[DataMode] = None,
    settings: Any = None,
) -> GraphState:
    """
    Run the LangGraph workflow with the given inputs.

    Args:
        message: The user's request
        model: Engine model override
        engine: Generation engine (defaults to the configured one)
        emitter: Progress sink for this request
        data_mode: Override for how data is obtained
        settings: Config object (defaults to get_config())

    Returns:
        The final GraphState
    """
    settings = settings or get_config()
    engine = engine or get_engine(settings)
    emitter = emitter or ProgressEmitter()

    initial_state = create_initial_state(
        user_message=message,
        model=model,
        data_mode=data_mode,
        max_attempts=settings.render_max_attempts,
        scope_max_retries=settings.scope_max_retries,
    )

    graph = get_graph()
    return graph.invoke(
        initial_state,
        config={
            "configurable": {"engine": engine, "emitter": emitter, "settings": settings},
            "recursion_limit": settings.render_max_attempts + 20,
        },
    )


def run_pipeline(
    message: str,
    model: Optional[str] = None,
    engine: Optional[GenerationEngine] = None,
    on_update: Optional[Callable[[Dict[str, Any]], None]] = None,
    data_mode: Optional[DataMode] = None,
    settings: Any = None,
) -> AgentResponse:
    """
    Run a request end to end.

    Always returns an AgentResponse; unexpected failures become the error shape.

    Args:
        message: The user's request
        model: Engine model override
        engine: Generation engine (defaults to the configured one)
        on_update: Callback receiving every stream update as a dict
        data_mode: "auto", "web-search" or "example-data"
        settings: Config object (defaults to get_config())

    Returns:
        AgentResponse with either the component or the error shape
    """
    if not message or not message.strip():
        return AgentResponse.failure("Please enter a request")

    emitter = ProgressEmitter(on_update)
    try:
        final_state = run_graph(message, model, engine, emitter, data_mode, settings)
    except Exception as e:
        logger.exception("Pipeline crashed")
        response = AgentResponse.failure(f"Unexpected error: {e}")
        emitter.send("complete", response.to_payload())
        return response

    for error in final_state.get("errors", []):
        logger.info("Non-fatal: %s", error)

    response = final_state.get("response")
    if response is None:
        response = AgentResponse.failure(final_state.get("error") or "Pipeline ended without a response")
    return response


def stream_pipeline(
    message: str,
    model: Optional[str] = None,
    engine: Optional[GenerationEngine] = None,
    data_mode: Optional[DataMode] = None,
    settings: Any = None,
) -> Iterator[Dict[str, Any]]:
    """
    Run a request on a worker thread and yield its updates as they happen.

    The last update is always of type "complete".
    """
    updates: "queue.Queue[Any]" = queue.Queue()

    def worker() -> None:
        try:
            run_pipeline(message, model, engine, updates.put, data_mode, settings)
        finally:
            updates.put(_DONE)

    thread = threading.Thread(target=worker, name="genui-pipeline", daemon=True)
    thread.start()

    saw_complete = False
    while True:
        update = updates.get()
        if update is _DONE:
            break
        if update.get("type") == "complete":
            saw_complete = True
        yield update

    thread.join()
    if not saw_complete:
        yield {"type": "complete", "payload": AgentResponse.failure("Pipeline ended without a response").to_payload()}


def refresh_data(
    query: str,
    plan: Plan,
    data_mode: Optional[DataMode] = None,
    engine: Optional[GenerationEngine] = None,
    model: Optional[str] = None,
    settings: Any = None,
) -> RefreshResult:
    """
    Re-run only data acquisition for an existing plan.

    Args:
        query: The original user request
        plan: The plan the component was generated from
        data_mode: "web-search" forces extraction, "example-data" forces generation
        engine: Generation engine (defaults to the configured one)
        model: Engine model override

    Returns:
        RefreshResult with the new data and an ISO refresh timestamp
    """
    settings = settings or get_config()
    engine = engine or get_engine(settings)

    if data_mode == "web-search":
        use_search = True
    elif data_mode == "example-data":
        use_search = False
    else:
        use_search = plan.needs_web_search

    logger.info("Refreshing data (search=%s) for %r", use_search, query[:80])
    result = acquire_data(engine, query, plan, use_search, model=model or settings.model)
    return RefreshResult(
        data=result.data,
        source=result.source,
        confidence=result.confidence,
        refreshed_at=datetime.now(timezone.utc).isoformat(),
    )
