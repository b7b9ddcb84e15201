"""
Validation Chain - composes the independent gates.

Blocking gates decide whether a candidate may proceed; advisory gates only
produce warnings.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from genui.schemas import HookUsageOutcome, LayoutOutcome, RuntimeSafetyOutcome, StyleOutcome
from genui.validation.context import DEFAULT_CONTEXT, GateContext
from genui.validation.hook_usage import check_hook_usage
from genui.validation.layout import check_layout
from genui.validation.runtime_safety import check_runtime_safety
from genui.validation.safety import validate_safety
from genui.validation.structural import validate_structure
from genui.validation.style import score_style

logger = logging.getLogger(__name__)


@dataclass
class AdvisoryReport:
    runtime: RuntimeSafetyOutcome
    hooks: HookUsageOutcome
    layout: LayoutOutcome
    style: StyleOutcome

    def warnings(self) -> List[str]:
        return (
            list(self.runtime.warnings)
            + list(self.hooks.issues)
            + list(self.layout.violations)
            + list(self.style.warnings)
        )


def run_blocking_gates(code: str, context: Optional[GateContext] = None) -> Optional[str]:
    """
    Run Structural then Safety.

    Returns:
        None when both pass, otherwise the error text for retry feedback
    """
    context = context or DEFAULT_CONTEXT

    structure = validate_structure(code, context)
    if not structure.valid:
        logger.info("Structural gate failed: %s", structure.error)
        return f"Structural validation failed: {structure.error}"

    safety = validate_safety(code, context)
    if not safety.safe:
        logger.warning("Safety gate failed: %s", "; ".join(safety.issues))
        return f"Safety validation failed: {'; '.join(safety.issues)}"

    return None


def run_advisory_gates(code: str, context: Optional[GateContext] = None) -> AdvisoryReport:
    context = context or DEFAULT_CONTEXT
    report = AdvisoryReport(
        runtime=check_runtime_safety(code, context),
        hooks=check_hook_usage(code, context),
        layout=check_layout(code, context),
        style=score_style(code, context),
    )
    for warning in report.warnings():
        logger.debug("Advisory: %s", warning)
    return report
