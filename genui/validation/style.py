"""
Style gate (advisory): a rough polish score used to decide whether to critique.
"""

import re
from typing import Optional

from genui.schemas import StyleOutcome
from genui.validation.context import GateContext

MAX_LINES = 120


def score_style(code: str, context: Optional[GateContext] = None) -> StyleOutcome:
    score = 100
    warnings = []
    if not re.search(r"\bCard\s*\(", code):
        score -= 20
        warnings.append("No Card container; wrap the content in Card(...)")
    if len(code.splitlines()) > MAX_LINES:
        score -= 15
        warnings.append(f"Component is longer than {MAX_LINES} lines")
    if "motion." not in code:
        score -= 5
        warnings.append("No motion.* animation")
    return StyleOutcome(score=score, warnings=warnings)
