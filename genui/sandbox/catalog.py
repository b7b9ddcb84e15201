"""
Capability Catalog - the enumerable set of names available inside the sandbox.

The Scope gate and the evaluator both read from the same Catalog object, so
the names a component may reference and the names it can actually resolve
at runtime cannot drift apart.
"""

import builtins
from collections.abc import Mapping
from functools import reduce
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Tuple

from genui.sandbox import hooks
from genui.sandbox.elements import icon_namespace, motion_namespace, primitive


CATALOG_VERSION = "1.2.0"

ANCHOR_NAME = "GeneratedComponent"
DATA_NAME = "data"


# =============================================================================
# NAME GROUPS
# =============================================================================

HOOK_NAMES = ("use_state", "use_effect", "use_memo", "use_callback", "use_ref")

TIMER_NAMES = ("set_interval", "clear_interval", "set_timeout", "clear_timeout")

UI_PRIMITIVES = (
    "Card", "CardHeader", "CardTitle", "CardDescription", "CardContent", "CardFooter",
    "Badge", "Button", "Input", "Label",
    "Tabs", "TabsList", "TabsTrigger", "TabsContent",
    "Slider", "Switch", "Select", "SelectTrigger", "SelectValue", "SelectContent", "SelectItem",
    "Accordion", "AccordionItem", "AccordionTrigger", "AccordionContent",
    "Table", "TableHeader", "TableBody", "TableRow", "TableHead", "TableCell",
    "Avatar", "AvatarImage", "AvatarFallback",
    "Progress", "ScrollArea", "Separator",
)

LAYOUT_PRIMITIVES = (
    "Container", "Grid", "Flex", "Stack", "Fragment",
    "Text", "Heading", "List", "ListItem", "Image", "Stat", "Metric",
)

CHART_PRIMITIVES = (
    "ChartContainer", "ResponsiveContainer",
    "LineChart", "BarChart", "AreaChart", "PieChart",
    "Line", "Bar", "Area", "Pie", "Cell",
    "XAxis", "YAxis", "CartesianGrid", "Tooltip", "Legend",
)

NUMERIC_PRIMITIVES = ("NumberFlow",)

NAMESPACES = ("Icons", "motion")

HELPER_NAMES = (
    "cn", "safe_keys", "safe_items", "safe_values",
    "safe_map", "safe_filter", "safe_reduce", "safe_get",
)

# Builtins a generated component may call. Anything that reaches the
# interpreter, the filesystem or attribute internals is left out.
SAFE_BUILTIN_NAMES = (
    "abs", "all", "any", "bool", "dict", "divmod", "enumerate", "filter", "float",
    "format", "int", "isinstance", "len", "list", "map", "max", "min", "pow",
    "range", "reversed", "round", "set", "sorted", "str", "sum", "tuple", "zip",
    "Exception", "KeyError", "IndexError", "TypeError", "ValueError", "ZeroDivisionError",
)


def _build_safe_builtins() -> Dict[str, Any]:
    safe = {name: getattr(builtins, name) for name in SAFE_BUILTIN_NAMES if hasattr(builtins, name)}
    safe["reduce"] = reduce
    return safe


SAFE_BUILTINS: Dict[str, Any] = _build_safe_builtins()


# =============================================================================
# SAFE HELPERS
# =============================================================================

def _as_sequence(value: Any) -> list:
    if value is None or isinstance(value, (str, bytes)):
        return []
    if isinstance(value, Mapping):
        return list(value.values())
    try:
        return list(value)
    except TypeError:
        return []


def safe_keys(obj: Any) -> list:
    return list(obj.keys()) if isinstance(obj, Mapping) else []


def safe_items(obj: Any) -> list:
    return list(obj.items()) if isinstance(obj, Mapping) else []


def safe_values(obj: Any) -> list:
    return list(obj.values()) if isinstance(obj, Mapping) else []


def safe_map(seq: Any, fn: Callable[[Any], Any]) -> list:
    return [fn(item) for item in _as_sequence(seq)]


def safe_filter(seq: Any, fn: Callable[[Any], Any]) -> list:
    return [item for item in _as_sequence(seq) if fn(item)]


def safe_reduce(seq: Any, fn: Callable[[Any, Any], Any], initial: Any = None) -> Any:
    items = _as_sequence(seq)
    if initial is None:
        if not items:
            return None
        return reduce(fn, items)
    return reduce(fn, items, initial)


def safe_get(obj: Any, path: str, default: Any = None) -> Any:
    """Walk a dotted path (`"a.b.0.c"`) through mappings and lists."""
    current = obj
    for part in str(path).split("."):
        if current is None:
            return default
        if isinstance(current, Mapping):
            if part not in current:
                return default
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.lstrip("-").isdigit():
            index = int(part)
            if not -len(current) <= index < len(current):
                return default
            current = current[index]
        else:
            return default
    return default if current is None else current


def cn(*classes: Any) -> str:
    """Join class names, skipping falsy values; dicts map class -> condition."""
    parts = []
    for item in classes:
        if not item:
            continue
        if isinstance(item, Mapping):
            parts.extend(str(name) for name, enabled in item.items() if enabled)
        elif isinstance(item, (list, tuple)):
            parts.append(cn(*item))
        else:
            parts.append(str(item))
    return " ".join(p for p in parts if p)


# =============================================================================
# CATALOG
# =============================================================================

class Catalog:
    """Versioned, enumerable mapping of sandbox names to their bindings."""

    def __init__(self, version: str, groups: Dict[str, Tuple[str, ...]], bindings: Dict[str, Any]):
        declared = {name for names in groups.values() for name in names}
        missing = declared - set(bindings)
        extra = set(bindings) - declared
        if missing or extra:
            raise ValueError(
                f"Catalog groups and bindings diverge: missing={sorted(missing)} extra={sorted(extra)}"
            )
        self.version = version
        self._groups = {key: tuple(names) for key, names in groups.items()}
        self._bindings = dict(bindings)

    def names(self) -> FrozenSet[str]:
        return frozenset(self._bindings)

    def bindings(self) -> Dict[str, Any]:
        """Fresh copy of the bindings; callers may add `data` without touching the catalog."""
        return dict(self._bindings)

    def group(self, key: str) -> Tuple[str, ...]:
        return self._groups.get(key, ())

    @property
    def groups(self) -> Dict[str, Tuple[str, ...]]:
        return dict(self._groups)

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    def format_for_prompt(self) -> str:
        """Human-readable listing embedded in the renderer prompt."""
        labels = {
            "hooks": "Hooks",
            "timers": "Timers",
            "ui": "UI components",
            "layout": "Layout and text",
            "charts": "Charts",
            "numeric": "Animated numbers",
            "namespaces": "Namespaces (Icons.<Name>, motion.div)",
            "helpers": "Safe helpers",
        }
        lines = [f"Capability catalog v{self.version}:"]
        for key, names in self._groups.items():
            lines.append(f"- {labels.get(key, key)}: {', '.join(names)}")
        lines.append(f"- Data: {DATA_NAME} (already in scope)")
        lines.append(f"- Builtins: {', '.join(n for n in SAFE_BUILTIN_NAMES if n[0].islower())}, reduce")
        return "\n".join(lines)


def _primitives(names: Iterable[str]) -> Dict[str, Callable[..., Any]]:
    return {name: primitive(name) for name in names}


def build_default_catalog(extra: Optional[Dict[str, Any]] = None) -> Catalog:
    """Build the catalog bound in every sandbox evaluation."""
    groups = {
        "hooks": HOOK_NAMES,
        "timers": TIMER_NAMES,
        "ui": UI_PRIMITIVES,
        "layout": LAYOUT_PRIMITIVES,
        "charts": CHART_PRIMITIVES,
        "numeric": NUMERIC_PRIMITIVES,
        "namespaces": NAMESPACES,
        "helpers": HELPER_NAMES,
    }
    bindings: Dict[str, Any] = {name: getattr(hooks, name) for name in HOOK_NAMES + TIMER_NAMES}
    bindings.update(_primitives(UI_PRIMITIVES + LAYOUT_PRIMITIVES + CHART_PRIMITIVES + NUMERIC_PRIMITIVES))
    bindings["Icons"] = icon_namespace()
    bindings["motion"] = motion_namespace()
    bindings.update({
        "cn": cn,
        "safe_keys": safe_keys,
        "safe_items": safe_items,
        "safe_values": safe_values,
        "safe_map": safe_map,
        "safe_filter": safe_filter,
        "safe_reduce": safe_reduce,
        "safe_get": safe_get,
    })
    if extra:
        groups["extra"] = tuple(extra)
        bindings.update(extra)
    return Catalog(CATALOG_VERSION, groups, bindings)


# Immutable in practice: bindings() always hands out copies.
DEFAULT_CATALOG = build_default_catalog()


def allowed_names(catalog: Optional[Catalog] = None) -> FrozenSet[str]:
    """Every free name a generated component may reference."""
    catalog = catalog or DEFAULT_CATALOG
    return catalog.names() | frozenset(SAFE_BUILTINS) | {DATA_NAME}
