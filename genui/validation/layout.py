"""
Layout gate (advisory): keep the component inside its own box.

Generated components are embedded in a host page, so anything that escapes
normal flow (absolute/fixed positioning, huge z-indices, large negative
margins, viewport-sized boxes, visible overflow) is reported.
"""

import ast
import re
from typing import List, Optional

from genui.schemas import LayoutOutcome
from genui.validation._ast_tools import parse
from genui.validation.context import GateContext

MAX_Z_INDEX = 10
MIN_MARGIN_PX = -16
MAX_NEGATIVE_MARGIN_STEP = 4

_Z_CLASS = re.compile(r"^z-(\d+)$")
_NEG_MARGIN_CLASS = re.compile(r"^-m[trblxy]?-(\d+)$")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def _normalize_key(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def _number(value) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER.match(value.strip())
        if match:
            return float(match.group(0))
    return None


def _literal(node: ast.AST):
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub) and isinstance(node.operand, ast.Constant):
        operand = node.operand.value
        return -operand if isinstance(operand, (int, float)) else None
    return None


def _style_violations(style: ast.Dict) -> List[str]:
    found = []
    for key_node, value_node in zip(style.keys, style.values):
        if not (isinstance(key_node, ast.Constant) and isinstance(key_node.value, str)):
            continue
        key = _normalize_key(key_node.value)
        value = _literal(value_node)
        if value is None:
            continue
        text = str(value).lower().strip()
        if key == "position" and text in ("absolute", "fixed"):
            found.append(f"position: {text} escapes the component container")
        elif key == "zindex":
            number = _number(value)
            if number is not None and number > MAX_Z_INDEX:
                found.append(f"z-index {int(number)} exceeds {MAX_Z_INDEX}")
        elif key.startswith("margin"):
            number = _number(value)
            if number is not None and number < MIN_MARGIN_PX:
                found.append(f"negative margin {text} is below {MIN_MARGIN_PX}px")
        elif key == "overflow" and text == "visible":
            found.append("overflow: visible lets content spill outside the container")
        if "100vw" in text or "100vh" in text:
            found.append(f"viewport-sized {key_node.value}: {text}")
    return found


def _class_violations(class_name: str) -> List[str]:
    found = []
    for token in class_name.split():
        base = token.split(":")[-1]
        if base in ("absolute", "fixed"):
            found.append(f"class {token} escapes the component container")
            continue
        z = _Z_CLASS.match(base)
        if z and int(z.group(1)) > MAX_Z_INDEX:
            found.append(f"class {token} exceeds z-{MAX_Z_INDEX}")
            continue
        margin = _NEG_MARGIN_CLASS.match(base)
        if margin and int(margin.group(1)) > MAX_NEGATIVE_MARGIN_STEP:
            found.append(f"class {token} is a large negative margin")
    return found


def check_layout(code: str, context: Optional[GateContext] = None) -> LayoutOutcome:
    tree = parse(code)
    if tree is None:
        return LayoutOutcome(safe=True)

    violations: List[str] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.keyword):
            continue
        if node.arg == "style" and isinstance(node.value, ast.Dict):
            violations.extend(_style_violations(node.value))
        elif node.arg in ("class_name", "className") and isinstance(node.value, ast.Constant):
            if isinstance(node.value.value, str):
                violations.extend(_class_violations(node.value.value))

    deduped = list(dict.fromkeys(violations))
    return LayoutOutcome(safe=not deduped, violations=deduped)
