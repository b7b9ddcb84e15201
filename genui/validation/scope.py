"""
Scope gate: every identifier the component uses must resolve inside the sandbox.

Two classes of problem are reported:

- free names that are neither bound locally nor provided by the catalog,
  the safe builtins or `data`
- capitalized helper declarations (defs, classes, lambda assignments) other
  than the anchor. Helper components are the most common source of
  "is not defined" failures, so they are refused outright.
"""

import ast
import logging
from typing import Dict, List, Optional

from genui.sandbox.catalog import ANCHOR_NAME, allowed_names
from genui.schemas import ScopeOutcome
from genui.validation._ast_tools import bound_names, parse
from genui.validation.context import DEFAULT_CONTEXT, GateContext

logger = logging.getLogger(__name__)


def suggest_fix(identifier: str) -> str:
    """Targeted advice for an offending identifier, fed back into the retry prompt."""
    if "Icon" in identifier or identifier.endswith(("Weather", "Condition")):
        return f"Use Icons.<Name> (e.g. Icons.Sun) instead of {identifier}"
    if identifier.endswith("Component"):
        return f"Inline the element tree of {identifier} directly inside {ANCHOR_NAME}"
    if identifier.endswith("Wrapper"):
        return f"Remove {identifier} and use Card directly"
    if identifier.endswith(("Card", "Button")):
        base = "Card" if identifier.endswith("Card") else "Button"
        return f"Use {base}(...) directly instead of {identifier}"
    if identifier.startswith("use_"):
        return f"Only use_state, use_effect, use_memo, use_callback and use_ref exist; replace {identifier}"
    return f"Remove {identifier} or define it as a local variable inside {ANCHOR_NAME}"


def _helper_declarations(tree: ast.Module) -> List[str]:
    names = []
    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            name = node.name
        elif (
            isinstance(node, ast.Assign)
            and isinstance(node.value, ast.Lambda)
            and len(node.targets) == 1
            and isinstance(node.targets[0], ast.Name)
        ):
            name = node.targets[0].id
        else:
            continue
        if name == ANCHOR_NAME or not name[:1].isupper() or name.startswith("set_"):
            continue
        if name not in names:
            names.append(name)
    return names


def _unknown_names(tree: ast.Module, known) -> List[ast.Name]:
    bound = bound_names(tree)
    unknown = []
    seen = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load):
            if node.id in known or node.id in bound or node.id in seen:
                continue
            seen.add(node.id)
            unknown.append(node)
    return unknown


def _called_ids(tree: ast.Module) -> set:
    return {
        node.func.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
    }


def validate_scope(code: str, context: Optional[GateContext] = None) -> ScopeOutcome:
    context = context or DEFAULT_CONTEXT
    tree = parse(code)
    if tree is None:
        # Structural reports syntax errors; nothing to resolve here
        return ScopeOutcome(valid=True)

    issues: List[str] = []
    suggestions: Dict[str, str] = {}

    helpers = _helper_declarations(tree)
    for name in helpers:
        issues.append(
            f'FORBIDDEN: helper component "{name}" declared. '
            f"Only {ANCHOR_NAME} may be defined; inline its content."
        )
        suggestions[name] = suggest_fix(name)

    called = _called_ids(tree)
    for node in _unknown_names(tree, allowed_names(context.catalog)):
        name = node.id
        if name.startswith("use_"):
            issues.append(f'Hook "{name}" is not available in runtime scope')
        elif name[:1].isupper() and name in called:
            issues.append(f'Component "{name}" is not available in runtime scope')
        else:
            issues.append(f'Identifier "{name}" is not defined')
        suggestions.setdefault(name, suggest_fix(name))

    if issues:
        logger.info("Scope gate found %d issue(s): %s", len(issues), ", ".join(suggestions))
    return ScopeOutcome(valid=not issues, issues=issues, suggestions=suggestions)


def format_scope_feedback(outcome: ScopeOutcome) -> str:
    """Render a scope failure as retry feedback naming each identifier and its fix."""
    lines = ["Scope validation failed:"]
    lines.extend(f"- {issue}" for issue in outcome.issues)
    if outcome.suggestions:
        lines.append("Fixes:")
        lines.extend(f"- {name}: {fix}" for name, fix in outcome.suggestions.items())
    return "\n".join(lines)
