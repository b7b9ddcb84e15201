"""
Syntax-tree helpers shared by the gates and the safety transformer.
"""

import ast
from typing import Iterator, Optional, Set

from genui.sandbox.catalog import ANCHOR_NAME


# Calls whose result is never None when used as a collection.
SAFE_PRODUCERS = frozenset({
    "dict", "list", "tuple", "set", "sorted", "range", "enumerate", "zip", "reversed",
    "safe_keys", "safe_items", "safe_values", "safe_map", "safe_filter", "safe_get",
})

_LITERAL_NODES = (
    ast.Constant, ast.Dict, ast.List, ast.Tuple, ast.Set,
    ast.ListComp, ast.DictComp, ast.SetComp, ast.GeneratorExp, ast.JoinedStr,
)


def parse(code: str) -> Optional[ast.Module]:
    """Parse code, returning None when it is not valid Python."""
    try:
        return ast.parse(code)
    except (SyntaxError, ValueError):
        return None


def find_anchor(tree: ast.Module) -> Optional[ast.FunctionDef]:
    for node in tree.body:
        if isinstance(node, ast.FunctionDef) and node.name == ANCHOR_NAME:
            return node
    return None


def own_nodes(func: ast.AST) -> Iterator[ast.AST]:
    """Walk a function body without descending into nested functions or lambdas."""
    stack = list(ast.iter_child_nodes(func))
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)):
            continue
        stack.extend(ast.iter_child_nodes(node))


def dotted_name(node: ast.AST) -> Optional[str]:
    """`a.b.c` for Name/Attribute chains, otherwise None."""
    parts = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if isinstance(node, ast.Name):
        parts.append(node.id)
        return ".".join(reversed(parts))
    return None


def call_name(call: ast.Call) -> Optional[str]:
    return dotted_name(call.func)


def root_name(node: ast.AST) -> Optional[str]:
    """Name at the root of an attribute/subscript/call chain."""
    while isinstance(node, (ast.Attribute, ast.Subscript, ast.Call)):
        node = node.func if isinstance(node, ast.Call) else node.value
    return node.id if isinstance(node, ast.Name) else None


def source_of(node: ast.AST) -> str:
    try:
        return ast.unparse(node)
    except (AttributeError, ValueError, TypeError):
        return "<expr>"


def is_get_call(node: ast.AST) -> bool:
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Attribute)
        and node.func.attr == "get"
    )


def is_wrappable(node: ast.AST) -> bool:
    """Expressions the transformer knows how to guard with `or`."""
    if isinstance(node, (ast.Name, ast.Attribute, ast.Subscript)):
        return True
    return is_get_call(node) and len(node.args) < 2 and not node.keywords


def is_guarded(node: ast.AST, guarded_names: Set[str] = frozenset()) -> bool:
    """True when an expression can not evaluate to None in practice."""
    if isinstance(node, ast.BoolOp) and isinstance(node.op, ast.Or):
        return True
    if isinstance(node, _LITERAL_NODES):
        return True
    if isinstance(node, ast.IfExp):
        return is_guarded(node.body, guarded_names) and is_guarded(node.orelse, guarded_names)
    if isinstance(node, ast.Name):
        return node.id in guarded_names
    if isinstance(node, ast.Call):
        name = call_name(node)
        if name in SAFE_PRODUCERS:
            return True
        # .get(key, default) with an explicit non-None default
        if is_get_call(node) and len(node.args) >= 2:
            default = node.args[1]
            return not (isinstance(default, ast.Constant) and default.value is None)
    return False


def guarded_assignments(tree: ast.AST) -> Set[str]:
    """Names only ever assigned from guarded expressions."""
    guarded: Set[str] = set()
    unguarded: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Assign) and len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
            name = node.targets[0].id
            (guarded if is_guarded(node.value, guarded) else unguarded).add(name)
    return guarded - unguarded


def bound_names(tree: ast.AST) -> Set[str]:
    """Every name bound anywhere in the code (assignments, defs, args, loop targets...)."""
    bound: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            bound.add(node.name)
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
            args = node.args
            for arg in args.posonlyargs + args.args + args.kwonlyargs:
                bound.add(arg.arg)
            if args.vararg:
                bound.add(args.vararg.arg)
            if args.kwarg:
                bound.add(args.kwarg.arg)
        elif isinstance(node, ast.Name) and isinstance(node.ctx, (ast.Store, ast.Del)):
            bound.add(node.id)
        elif isinstance(node, ast.ExceptHandler) and node.name:
            bound.add(node.name)
        elif isinstance(node, (ast.Global, ast.Nonlocal)):
            bound.update(node.names)
    return bound


def called_names(tree: ast.AST) -> Set[str]:
    names = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            name = call_name(node)
            if name:
                names.add(name)
    return names


def state_setters(tree: ast.AST) -> Set[str]:
    """Setter names from `value, set_value = use_state(...)` unpacking."""
    setters = set()
    for node in ast.walk(tree):
        if (
            isinstance(node, ast.Assign)
            and isinstance(node.value, ast.Call)
            and call_name(node.value) == "use_state"
        ):
            for target in node.targets:
                if isinstance(target, (ast.Tuple, ast.List)) and len(target.elts) == 2:
                    setter = target.elts[1]
                    if isinstance(setter, ast.Name):
                        setters.add(setter.id)
    return setters


def local_functions(tree: ast.AST) -> dict:
    """Map of nested def name -> FunctionDef, for resolving callbacks passed by name."""
    return {
        node.name: node
        for node in ast.walk(tree)
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    }
