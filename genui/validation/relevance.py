"""
Relevance gate: does the component actually talk about what the user asked for?
"""

import re
from typing import List, Optional

from genui.schemas import RelevanceOutcome
from genui.validation.context import DEFAULT_CONTEXT, GateContext


ENTITY_WEIGHT = 40
PLACEHOLDER_PENALTY = 15
PLACEHOLDER_CAP = 30

PLACEHOLDER_PATTERNS = (
    re.compile(r"\bexample\s+(?:\d+|n)\b"),
    re.compile(r"\bsample\s+data\b"),
    re.compile(r"\blorem\s+ipsum\b"),
    re.compile(r"\bplaceholder\b"),
    re.compile(r"\btodo\s+list\b"),
    re.compile(r"\btest\s+project\b"),
    re.compile(r"\bdemo\b"),
)

_WORD = re.compile(r"[a-z0-9]+")


def _entity_presence(entity: str, haystack: str) -> str:
    """'full', 'partial' or 'missing'."""
    needle = entity.lower().strip()
    if not needle:
        return "full"
    if needle in haystack:
        return "full"
    if any(len(word) >= 3 and word in haystack for word in _WORD.findall(needle)):
        return "partial"
    return "missing"


def score_relevance(code: str, context: Optional[GateContext] = None) -> RelevanceOutcome:
    context = context or DEFAULT_CONTEXT
    haystack = code.lower()
    entities = [e for e in context.key_entities if e and e.strip()]

    score = 100.0
    issues: List[str] = []
    missing: List[str] = []

    if entities:
        weight = ENTITY_WEIGHT / len(entities)
        for entity in entities:
            presence = _entity_presence(entity, haystack)
            if presence == "missing":
                score -= weight
                missing.append(entity)
            elif presence == "partial":
                score -= weight / 2
        if missing:
            issues.append(f"Missing key entities: {', '.join(missing)}")

    placeholders = [p.pattern for p in PLACEHOLDER_PATTERNS if p.search(haystack)]
    if placeholders:
        score -= min(PLACEHOLDER_PENALTY * len(placeholders), PLACEHOLDER_CAP)
        issues.append("Generic placeholder content detected")

    if "use_state" in code:
        score += 5
    if re.search(r"\bdata\b", code):
        score += 5

    final = int(max(0, min(100, round(score))))
    return RelevanceOutcome(
        relevant=final >= context.marginal_ceiling,
        score=final,
        issues=issues,
        missing_entities=missing,
    )


def format_relevance_feedback(outcome: RelevanceOutcome) -> str:
    text = f"Relevance score {outcome.score}/100 is too low."
    if outcome.missing_entities:
        text += f" The component must mention: {', '.join(outcome.missing_entities)}."
    if outcome.issues:
        text += " " + " ".join(outcome.issues) + "."
    return text
