"""
Safety gate: reject code that reaches for capabilities the sandbox does not offer.

HTML sinks, dynamic evaluation, network, storage and interpreter globals are
all absent from the sandbox; their presence means the model is trying to
step outside it.
"""

import ast
import re
from typing import Dict, Iterator, Optional, Tuple

from genui.schemas import SafetyOutcome
from genui.validation._ast_tools import bound_names
from genui.validation.context import GateContext


CATEGORIES: Dict[str, Tuple[str, frozenset]] = {
    "html": ("XSS risk", frozenset({
        "dangerously_set_inner_html", "dangerouslySetInnerHTML", "unsafe_allow_html",
        "RawHtml", "raw_html", "inner_html", "innerHTML",
    })),
    "eval": ("Code injection", frozenset({"eval", "exec", "compile", "__import__", "Function"})),
    "network": ("No network access", frozenset({
        "requests", "urllib", "urllib3", "httpx", "aiohttp", "socket", "http", "fetch", "axios",
    })),
    "storage": ("No storage access", frozenset({
        "open", "os", "pathlib", "Path", "shutil", "pickle", "shelve", "sqlite3",
        "localStorage", "sessionStorage", "local_storage", "session_storage",
    })),
    "globals": ("No global access", frozenset({
        "globals", "locals", "vars", "__builtins__", "builtins", "sys", "importlib",
        "getattr", "setattr", "delattr", "window", "document",
    })),
}

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _is_dunder(identifier: str) -> bool:
    return identifier.startswith("__") and identifier.endswith("__")


def _identifiers(tree: ast.AST) -> Iterator[Tuple[str, str]]:
    """(kind, identifier) pairs for every name-like token in the tree.

    A name the code binds itself (`open, set_open = use_state(False)`) is a
    local, not a capability, so only free loads are reported. Dunder names
    are reported wherever they appear.
    """
    local = bound_names(tree)
    for node in ast.walk(tree):
        if isinstance(node, ast.Name):
            if _is_dunder(node.id) or (isinstance(node.ctx, ast.Load) and node.id not in local):
                yield "name", node.id
        elif isinstance(node, ast.Attribute):
            yield "attr", node.attr
        elif isinstance(node, ast.keyword) and node.arg:
            yield "keyword", node.arg
        elif isinstance(node, ast.Dict):
            for key in node.keys:
                if isinstance(key, ast.Constant) and isinstance(key.value, str):
                    yield "key", key.value
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)) and _is_dunder(node.name):
            yield "name", node.name


def _classify(kind: str, identifier: str) -> Optional[str]:
    for category, (label, names) in CATEGORIES.items():
        if identifier in names:
            # `item.open`, `open=True` and {"fetch": ...} are harmless unless they are HTML sinks
            if kind != "name" and category != "html":
                continue
            return f"{label}: {identifier}"
    if kind == "attr" and _is_dunder(identifier):
        return f"No dunder attribute access: {identifier}"
    if kind == "name" and _is_dunder(identifier):
        return f"No global access: {identifier}"
    return None


def validate_safety(code: str, context: Optional[GateContext] = None) -> SafetyOutcome:
    try:
        tree = ast.parse(code)
        pairs = list(_identifiers(tree))
    except (SyntaxError, ValueError):
        # Unparseable code still gets a token scan
        pairs = [("name", token) for token in _IDENTIFIER.findall(code)]

    issues = []
    for kind, identifier in pairs:
        issue = _classify(kind, identifier)
        if issue and issue not in issues:
            issues.append(issue)
    return SafetyOutcome(safe=not issues, issues=issues)
