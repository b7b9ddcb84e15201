"""
Sandbox Evaluator - compile accepted code and render it inside a restricted scope.

Security model:
- The module body runs with `__builtins__` replaced by a small allow-list
- Only catalog bindings and `data` are visible as globals
- Every compilation gets a fresh globals dict
- Hook state lives in a per-render context, never at module level

This is not a general-purpose sandbox. The gates in front of it remove the
mistakes language models actually make; it does not defend against a
deliberately adversarial author.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from genui.errors import CompilationError, RenderError
from genui.sandbox.catalog import ANCHOR_NAME, DATA_NAME, DEFAULT_CATALOG, SAFE_BUILTINS, Catalog
from genui.sandbox.elements import to_render_node
from genui.sandbox.fallback import render_fallback
from genui.sandbox.hooks import RenderContext
from genui.schemas import RenderNode, RenderResult

logger = logging.getLogger(__name__)

FILENAME = "<generated>"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class CompiledComponent:
    """A compiled anchor function plus the scope it was compiled in."""
    component: Callable[[], Any]
    scope: Dict[str, Any]
    data: Any = None

    @property
    def name(self) -> str:
        return getattr(self.component, "__name__", ANCHOR_NAME)


# =============================================================================
# COMPILATION
# =============================================================================

def build_scope(data: Any, catalog: Optional[Catalog] = None) -> Dict[str, Any]:
    """Fresh globals for one evaluation."""
    catalog = catalog or DEFAULT_CATALOG
    scope: Dict[str, Any] = {"__builtins__": dict(SAFE_BUILTINS)}
    scope.update(catalog.bindings())
    scope[DATA_NAME] = data
    scope["__name__"] = "generated_component"
    return scope


def compile_component(code: str, data: Any = None, catalog: Optional[Catalog] = None) -> CompiledComponent:
    """
    Compile generated code and return its anchor component.

    Args:
        code: Transformed component source
        data: Value bound to `data` inside the component
        catalog: Capability catalog to bind (defaults to the shared catalog)

    Returns:
        CompiledComponent ready to render

    Raises:
        CompilationError: on syntax errors, module-body failures or a missing anchor
    """
    try:
        bytecode = compile(code, FILENAME, "exec")
    except SyntaxError as e:
        raise CompilationError(f"Syntax error on line {e.lineno}: {e.msg}") from e
    except ValueError as e:
        raise CompilationError(f"Invalid source: {e}") from e

    scope = build_scope(data, catalog)
    try:
        exec(bytecode, scope)
    except Exception as e:
        raise CompilationError(f"Module body failed: {type(e).__name__}: {e}") from e

    component = scope.get(ANCHOR_NAME)
    if component is None:
        raise CompilationError(f"{ANCHOR_NAME} is not defined")
    if not callable(component):
        raise CompilationError(f"{ANCHOR_NAME} is not callable")

    return CompiledComponent(component=component, scope=scope, data=data)


# =============================================================================
# RENDERING
# =============================================================================

def render(compiled: CompiledComponent) -> RenderNode:
    """
    Render once: call the anchor, run mount effects, then unmount.

    Raises:
        RenderError: if anything fails after compilation
    """
    try:
        with RenderContext() as ctx:
            tree = compiled.component()
            ctx.run_effects()
            ctx.teardown()
        return to_render_node(tree)
    except RenderError:
        raise
    except Exception as e:
        raise RenderError(f"{type(e).__name__}: {e}") from e


def evaluate(code: str, data: Any = None, catalog: Optional[Catalog] = None) -> RenderResult:
    """
    Compile and render inside a failure boundary.

    Compilation failures propagate as CompilationError. Render failures
    are logged and replaced by the raw-data fallback view.
    """
    compiled = compile_component(code, data, catalog)
    try:
        node = render(compiled)
    except RenderError as e:
        logger.warning("Component failed at render time, showing fallback: %s", e)
        return RenderResult(node=render_fallback(data, str(e)), fell_back=True, error=str(e))
    return RenderResult(node=node)
