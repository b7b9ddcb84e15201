"""
Safety Transformer - deterministic source rewrites applied to accepted code.

Two passes:

- `transform_for_safety` wraps collection accesses that may meet None with
  an `or` default, e.g. `data.items()` -> `(data or {}).items()` and
  `Card(**props)` -> `Card(**(props or {}))`.
- `sanitize_layout` repairs class names and styles that would escape the
  component container.

Edits are made at syntax-tree positions. `ast` reports columns as UTF-8 byte
offsets, so edits are applied to the encoded source. Both passes are
idempotent and return the input untouched when there is nothing to change
or the code does not parse.
"""

import ast
import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from genui.validation._ast_tools import guarded_assignments, is_guarded, is_wrappable, parse

logger = logging.getLogger(__name__)


_COLLECTION_METHODS = ("keys", "items", "values")
_FIRST_ARG_CALLS = frozenset({
    "enumerate", "sorted", "sum", "len", "list", "min", "max", "safe_map", "safe_filter",
})
_SECOND_ARG_CALLS = frozenset({"filter", "map", "reduce"})
# min(a, b) compares scalars; only the single-iterable form is guarded
_SINGLE_ARG_ONLY = frozenset({"min", "max"})

_Z_CLASS = re.compile(r"^z-(\d+)$")
_CLASS_KEYWORDS = ("class_name", "className")


# =============================================================================
# BYTE-OFFSET EDITING
# =============================================================================

def _line_offsets(source: bytes) -> List[int]:
    offsets = [0]
    for line in source.splitlines(keepends=True):
        offsets.append(offsets[-1] + len(line))
    return offsets


def _span(node: ast.AST, offsets: List[int]) -> Tuple[int, int]:
    start = offsets[node.lineno - 1] + node.col_offset
    end = offsets[node.end_lineno - 1] + node.end_col_offset
    return start, end


def _apply_insertions(source: bytes, insertions: List[Tuple[int, int, int, bytes]]) -> bytes:
    """
    Apply (offset, rank, tiebreak, text) insertions in one forward pass.

    At a shared offset, closing texts come before opening texts; inner
    spans close first and outer spans open first.
    """
    out = []
    cursor = 0
    for offset, _, _, text in sorted(insertions):
        out.append(source[cursor:offset])
        out.append(text)
        cursor = offset
    out.append(source[cursor:])
    return b"".join(out)


def _apply_replacements(source: bytes, replacements: List[Tuple[int, int, bytes]]) -> bytes:
    out = []
    cursor = 0
    for start, end, text in sorted(replacements):
        if start < cursor:
            continue
        out.append(source[cursor:start])
        out.append(text)
        cursor = end
    out.append(source[cursor:])
    return b"".join(out)


# =============================================================================
# NULL-SAFETY REWRITE
# =============================================================================

def _call_id(call: ast.Call) -> Optional[str]:
    return call.func.id if isinstance(call.func, ast.Name) else None


def _collect_targets(tree: ast.Module) -> List[Tuple[ast.AST, str]]:
    """(expression, default) pairs that should be wrapped as `(expr or default)`."""
    targets: List[Tuple[ast.AST, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            func = node.func
            if isinstance(func, ast.Attribute) and func.attr in _COLLECTION_METHODS and not node.args:
                targets.append((func.value, "{}"))
                continue
            name = _call_id(node)
            if name in _FIRST_ARG_CALLS and node.args:
                if name in _SINGLE_ARG_ONLY and len(node.args) != 1:
                    continue
                if not isinstance(node.args[0], ast.Starred):
                    targets.append((node.args[0], "[]"))
            elif name in _SECOND_ARG_CALLS and len(node.args) >= 2:
                if not isinstance(node.args[1], ast.Starred):
                    targets.append((node.args[1], "[]"))
        elif isinstance(node, (ast.For, ast.AsyncFor, ast.comprehension)):
            targets.append((node.iter, "[]"))
        elif isinstance(node, ast.Dict):
            for key, value in zip(node.keys, node.values):
                if key is None:
                    targets.append((value, "{}"))
        elif isinstance(node, ast.keyword) and node.arg is None:
            # Card(..., **props)
            targets.append((node.value, "{}"))
    return targets


def transform_for_safety(code: str) -> str:
    """Guard collection accesses against None. Idempotent."""
    tree = parse(code)
    if tree is None:
        return code

    guarded: Set[str] = guarded_assignments(tree)
    source = code.encode("utf-8")
    offsets = _line_offsets(source)

    spans: Dict[Tuple[int, int], str] = {}
    for node, default in _collect_targets(tree):
        if not is_wrappable(node) or is_guarded(node, guarded):
            continue
        spans.setdefault(_span(node, offsets), default)

    if not spans:
        return code

    insertions = []
    for (start, end), default in spans.items():
        length = end - start
        insertions.append((start, 1, -length, b"("))
        insertions.append((end, 0, length, f" or {default})".encode("utf-8")))

    logger.debug("Null-safety transform wrapped %d expression(s)", len(spans))
    return _apply_insertions(source, insertions).decode("utf-8")


# =============================================================================
# LAYOUT REPAIR
# =============================================================================

def _clean_class_string(value: str) -> str:
    tokens = []
    for token in value.split():
        prefix, _, base = token.rpartition(":")
        if base in ("absolute", "fixed"):
            continue
        z = _Z_CLASS.match(base)
        if z and int(z.group(1)) > 10:
            token = f"{prefix}:z-10" if prefix else "z-10"
        tokens.append(token)
    return " ".join(tokens)


def sanitize_layout(code: str) -> str:
    """Strip container-escaping classes, clamp z-index classes and hide overflow. Idempotent."""
    tree = parse(code)
    if tree is None:
        return code

    source = code.encode("utf-8")
    offsets = _line_offsets(source)
    replacements = []

    for node in ast.walk(tree):
        if isinstance(node, ast.keyword) and node.arg in _CLASS_KEYWORDS:
            value = node.value
            if isinstance(value, ast.Constant) and isinstance(value.value, str):
                cleaned = _clean_class_string(value.value)
                if cleaned != " ".join(value.value.split()):
                    start, end = _span(value, offsets)
                    replacements.append((start, end, repr(cleaned).encode("utf-8")))
        elif isinstance(node, ast.Dict):
            for key, value in zip(node.keys, node.values):
                if (
                    isinstance(key, ast.Constant)
                    and isinstance(key.value, str)
                    and key.value.lower() == "overflow"
                    and isinstance(value, ast.Constant)
                    and isinstance(value.value, str)
                    and value.value.strip().lower() == "visible"
                ):
                    start, end = _span(value, offsets)
                    replacements.append((start, end, b'"hidden"'))

    if not replacements:
        return code

    logger.debug("Layout sanitizer rewrote %d literal(s)", len(replacements))
    return _apply_replacements(source, replacements).decode("utf-8")
