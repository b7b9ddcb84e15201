"""
Hook runtime for generated components.

A render happens in a single pass: state setters update their slot but do
not trigger a re-render, effects run once after the tree is built, and
timers are recorded but never fire. Each render gets its own RenderContext
held in a ContextVar, so concurrent renders never share hook state.
"""

import logging
from contextvars import ContextVar
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from genui.errors import HookError

logger = logging.getLogger(__name__)


class Ref:
    """Mutable box returned by use_ref."""

    __slots__ = ("current",)

    def __init__(self, current: Any = None):
        self.current = current

    def __repr__(self) -> str:
        return f"Ref({self.current!r})"


class StateSlot:
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value


class RenderContext:
    """Per-render hook bookkeeping."""

    def __init__(self):
        self.slots: List[StateSlot] = []
        self.refs: List[Ref] = []
        self.effects: List[Tuple[Callable[[], Any], Optional[Sequence[Any]]]] = []
        self.cleanups: List[Callable[[], Any]] = []
        self.timers: Dict[int, Tuple[str, Callable[..., Any], int]] = {}
        self._next_timer_id = 1
        self._token = None

    def __enter__(self) -> "RenderContext":
        self._token = _current_context.set(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        _current_context.reset(self._token)
        self._token = None

    def add_timer(self, kind: str, callback: Callable[..., Any], delay_ms: int) -> int:
        timer_id = self._next_timer_id
        self._next_timer_id += 1
        self.timers[timer_id] = (kind, callback, delay_ms)
        return timer_id

    def remove_timer(self, timer_id: Any) -> None:
        self.timers.pop(timer_id, None)

    def run_effects(self) -> None:
        """Run mount effects once, collecting returned cleanups."""
        for effect, _deps in list(self.effects):
            cleanup = effect()
            if callable(cleanup):
                self.cleanups.append(cleanup)

    def teardown(self) -> None:
        """Run cleanups in reverse order, as an unmount would."""
        while self.cleanups:
            self.cleanups.pop()()
        if self.timers:
            logger.debug("Dropping %d uncleared timer(s) at teardown", len(self.timers))
            self.timers.clear()


_current_context: ContextVar[Optional[RenderContext]] = ContextVar("genui_render_context", default=None)


def current_context() -> RenderContext:
    ctx = _current_context.get()
    if ctx is None:
        raise HookError("Hooks can only be called while a component is rendering")
    return ctx


# =============================================================================
# HOOKS
# =============================================================================

def use_state(initial: Any = None) -> Tuple[Any, Callable[[Any], None]]:
    ctx = current_context()
    slot = StateSlot(initial() if callable(initial) else initial)
    ctx.slots.append(slot)

    def set_state(next_value: Any) -> None:
        slot.value = next_value(slot.value) if callable(next_value) else next_value

    return slot.value, set_state


def use_effect(effect: Callable[[], Any], deps: Optional[Sequence[Any]] = None) -> None:
    if not callable(effect):
        raise HookError("use_effect expects a callable")
    current_context().effects.append((effect, deps))


def use_memo(factory: Callable[[], Any], deps: Optional[Sequence[Any]] = None) -> Any:
    current_context()
    return factory()


def use_callback(callback: Callable[..., Any], deps: Optional[Sequence[Any]] = None) -> Callable[..., Any]:
    current_context()
    return callback


def use_ref(initial: Any = None) -> Ref:
    ctx = current_context()
    ref = Ref(initial)
    ctx.refs.append(ref)
    return ref


# =============================================================================
# TIMERS
# =============================================================================

def set_interval(callback: Callable[..., Any], delay_ms: int = 0) -> int:
    return current_context().add_timer("interval", callback, delay_ms)


def clear_interval(timer_id: Any) -> None:
    current_context().remove_timer(timer_id)


def set_timeout(callback: Callable[..., Any], delay_ms: int = 0) -> int:
    return current_context().add_timer("timeout", callback, delay_ms)


def clear_timeout(timer_id: Any) -> None:
    current_context().remove_timer(timer_id)
