"""
Hook-usage gate (advisory).

Flags effects without dependency lists, timers that are never cleared,
timers started during render, and state setters given a stale value
inside a timer callback instead of an updater function.
"""

import ast
from typing import List, Optional

from genui.schemas import HookUsageOutcome
from genui.validation._ast_tools import call_name, find_anchor, local_functions, own_nodes, parse, state_setters
from genui.validation.context import GateContext

_TIMER_PAIRS = {"set_interval": "clear_interval", "set_timeout": "clear_timeout"}


def _calls(node: ast.AST) -> List[ast.Call]:
    return [n for n in ast.walk(node) if isinstance(n, ast.Call)]


def _has_deps(call: ast.Call) -> bool:
    return len(call.args) >= 2 or any(k.arg == "deps" for k in call.keywords)


def _resolve_callback(arg: ast.AST, functions: dict) -> Optional[ast.AST]:
    if isinstance(arg, ast.Lambda):
        return arg
    if isinstance(arg, ast.Name):
        return functions.get(arg.id)
    return None


def _is_callable_arg(arg: ast.AST, functions: dict) -> bool:
    return isinstance(arg, ast.Lambda) or (isinstance(arg, ast.Name) and arg.id in functions)


def check_hook_usage(code: str, context: Optional[GateContext] = None) -> HookUsageOutcome:
    tree = parse(code)
    if tree is None:
        return HookUsageOutcome(valid=True)

    functions = local_functions(tree)
    setters = state_setters(tree)
    issues: List[str] = []
    suggestions: List[str] = []

    def report(issue: str, suggestion: str) -> None:
        if issue not in issues:
            issues.append(issue)
            suggestions.append(suggestion)

    effect_bodies = []
    for call in _calls(tree):
        if call_name(call) != "use_effect":
            continue
        if not _has_deps(call):
            report(
                "use_effect called without a dependency list",
                "Pass a dependency list, e.g. use_effect(fn, []) to run once",
            )
        if call.args:
            body = _resolve_callback(call.args[0], functions)
            if body is not None:
                effect_bodies.append(body)

    for body in effect_bodies:
        names = {call_name(c) for c in _calls(body)}
        for start, clear in _TIMER_PAIRS.items():
            if start in names and clear not in names:
                report(
                    f"{start} inside use_effect without {clear}",
                    f"Return a cleanup function from the effect that calls {clear}",
                )

    anchor = find_anchor(tree)
    render_calls = set()
    if anchor is not None:
        render_calls = {id(n) for n in own_nodes(anchor) if isinstance(n, ast.Call)}

    timer_callbacks = []
    for call in _calls(tree):
        name = call_name(call)
        if name not in _TIMER_PAIRS:
            continue
        if id(call) in render_calls:
            report(
                f"{name} called during render",
                "Start timers inside use_effect and clear them in its cleanup",
            )
        if call.args:
            callback = _resolve_callback(call.args[0], functions)
            if callback is not None:
                timer_callbacks.append(callback)

    for callback in timer_callbacks:
        for call in _calls(callback):
            name = call_name(call)
            if name in setters and call.args and not _is_callable_arg(call.args[0], functions):
                report(
                    f"{name} called with a value inside a timer callback",
                    f"Use an updater: {name}(lambda prev: ...) to avoid stale state",
                )

    return HookUsageOutcome(valid=not issues, issues=issues, suggestions=suggestions)
