"""
Structural gate: is this a single zero-argument anchor component without imports?
"""

import ast
from typing import Optional

from genui.sandbox.catalog import ANCHOR_NAME
from genui.schemas import StructuralOutcome
from genui.validation._ast_tools import find_anchor, own_nodes
from genui.validation.context import GateContext


def validate_structure(code: str, context: Optional[GateContext] = None) -> StructuralOutcome:
    try:
        tree = ast.parse(code)
    except (SyntaxError, ValueError) as e:
        line = getattr(e, "lineno", None)
        where = f" on line {line}" if line else ""
        return StructuralOutcome(valid=False, error=f"Invalid Python{where}: {getattr(e, 'msg', e)}")

    for node in ast.walk(tree):
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            return StructuralOutcome(
                valid=False,
                error="No imports allowed: every component, hook and helper is already in scope",
            )

    anchor = find_anchor(tree)
    if anchor is None:
        return StructuralOutcome(valid=False, error=f"Missing: def {ANCHOR_NAME}(): ... at the top level")

    args = anchor.args
    if args.posonlyargs or args.args or args.kwonlyargs or args.vararg or args.kwarg:
        return StructuralOutcome(valid=False, error=f"{ANCHOR_NAME} must not take any arguments")

    returns = [n for n in own_nodes(anchor) if isinstance(n, ast.Return) and n.value is not None]
    if not returns:
        return StructuralOutcome(valid=False, error=f"{ANCHOR_NAME} must return an element tree")

    return StructuralOutcome(valid=True)
