"""
State definitions for LangGraph orchestration.
"""

from typing import List, Optional, TypedDict

from genui.schemas import AgentResponse, Critique, DataMode, DataResult, Plan, RetryState, ScopeRetryState


class GraphState(TypedDict, total=False):
    """
    Typed state dictionary for the LangGraph workflow.

    One instance per request; it is the only place request data lives.
    """
    # User input
    user_message: str
    model: Optional[str]
    data_mode: Optional[DataMode]

    # Planning and data
    plan: Optional[Plan]
    data_result: Optional[DataResult]

    # Render loop
    retry: RetryState
    scope_retry: ScopeRetryState
    last_error: Optional[str]
    candidate_code: Optional[str]

    # Validation and review
    component_code: Optional[str]
    warnings: List[str]
    style_score: Optional[int]
    needs_critique: bool
    critique: Optional[Critique]

    # Outputs
    response: Optional[AgentResponse]

    # Fatal error (ends the run) and non-fatal error log
    error: Optional[str]
    errors: List[str]


def create_initial_state(
    user_message: str,
    model: Optional[str] = None,
    data_mode: Optional[DataMode] = None,
    max_attempts: int = 2,
    scope_max_retries: int = 2,
) -> GraphState:
    """
    Create an initial state for the graph with provided values.

    Args:
        user_message: The user's natural-language request
        model: Engine model override (None uses the configured default)
        data_mode: "auto", "web-search" or "example-data"
        max_attempts: Outer render retry bound
        scope_max_retries: Inner scope regeneration budget

    Returns:
        Initialized GraphState
    """
    return GraphState(
        user_message=user_message,
        model=model,
        data_mode=data_mode,
        plan=None,
        data_result=None,
        retry=RetryState(max_attempts=max_attempts),
        scope_retry=ScopeRetryState(max_attempts=scope_max_retries),
        last_error=None,
        candidate_code=None,
        component_code=None,
        warnings=[],
        style_score=None,
        needs_critique=False,
        critique=None,
        response=None,
        error=None,
        errors=[],
    )
