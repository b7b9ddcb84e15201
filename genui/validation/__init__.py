"""Validation gates for generated component code."""

from genui.validation.chain import AdvisoryReport, run_advisory_gates, run_blocking_gates
from genui.validation.context import GateContext
from genui.validation.hook_usage import check_hook_usage
from genui.validation.layout import check_layout
from genui.validation.relevance import format_relevance_feedback, score_relevance
from genui.validation.runtime_safety import check_runtime_safety
from genui.validation.safety import validate_safety
from genui.validation.scope import format_scope_feedback, validate_scope
from genui.validation.structural import validate_structure
from genui.validation.style import score_style

__all__ = [
    "AdvisoryReport",
    "GateContext",
    "check_hook_usage",
    "check_layout",
    "check_runtime_safety",
    "format_relevance_feedback",
    "format_scope_feedback",
    "run_advisory_gates",
    "run_blocking_gates",
    "score_relevance",
    "score_style",
    "validate_safety",
    "validate_scope",
    "validate_structure",
]
