"""
Runtime-safety gate (advisory): spot collection accesses that blow up on None.
"""

import ast
from typing import List, Optional

from genui.schemas import RuntimeSafetyOutcome
from genui.validation._ast_tools import guarded_assignments, is_guarded, parse, root_name, source_of
from genui.validation.context import GateContext

_COLLECTION_METHODS = ("keys", "items", "values")


def check_runtime_safety(code: str, context: Optional[GateContext] = None) -> RuntimeSafetyOutcome:
    tree = parse(code)
    if tree is None:
        return RuntimeSafetyOutcome(safe=True)

    guarded = guarded_assignments(tree)
    warnings: List[str] = []

    def warn(message: str) -> None:
        if message not in warnings:
            warnings.append(message)

    for node in ast.walk(tree):
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and node.func.attr in _COLLECTION_METHODS
            and not is_guarded(node.func.value, guarded)
        ):
            warn(f"Unguarded .{node.func.attr}() on {source_of(node.func.value)}; use ({source_of(node.func.value)} or {{}})")
        elif isinstance(node, (ast.For, ast.comprehension)) and not is_guarded(node.iter, guarded):
            warn(f"Unguarded iteration over {source_of(node.iter)}; use ({source_of(node.iter)} or [])")
        elif isinstance(node, ast.Dict):
            for key, value in zip(node.keys, node.values):
                if key is None and not is_guarded(value, guarded):
                    warn(f"Unguarded spread of {source_of(value)}; use {{**({source_of(value)} or {{}})}}")
        elif isinstance(node, ast.keyword) and node.arg is None and not is_guarded(node.value, guarded):
            warn(f"Unguarded keyword spread of {source_of(node.value)}; use **({source_of(node.value)} or {{}})")
        elif (
            isinstance(node, ast.Subscript)
            and isinstance(node.value, ast.Subscript)
            and isinstance(node.ctx, ast.Load)
            and root_name(node) == "data"
        ):
            warn(f"Chained subscript {source_of(node)} may fail on missing keys; use safe_get")

    return RuntimeSafetyOutcome(safe=not warnings, warnings=warnings)
