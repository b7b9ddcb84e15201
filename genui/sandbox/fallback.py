"""
Fallback Renderer - a deterministic raw-data view shown when a component fails.
"""

from collections.abc import Mapping
from typing import Any, List, Optional, Union

from genui.schemas import RenderNode

FALLBACK_TITLE = "Component Error - Showing Raw Data"
EMPTY_MESSAGE = "No data available"

MAX_DEPTH = 2
MAX_LIST_ITEMS = 10
MAX_DICT_ENTRIES = 20


def _node(type_: str, *children: Union[RenderNode, str], **props: Any) -> RenderNode:
    return RenderNode(type=type_, props=props, children=list(children))


def _scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _summarize(value: Any) -> str:
    """Short description of a value beyond the depth limit."""
    if isinstance(value, Mapping):
        return "{...}"
    if isinstance(value, (list, tuple)):
        return f"[{len(value)} items]"
    return _scalar(value)


def _walk(value: Any, depth: int) -> RenderNode:
    if isinstance(value, Mapping):
        if depth >= MAX_DEPTH:
            return _node("Text", "{...}")
        entries: List[RenderNode] = []
        items = list(value.items())
        for key, item in items[:MAX_DICT_ENTRIES]:
            entries.append(_node("ListItem", _node("Text", f"{key}:", class_name="font-medium"), _walk(item, depth + 1)))
        if len(items) > MAX_DICT_ENTRIES:
            entries.append(_node("ListItem", f"... and {len(items) - MAX_DICT_ENTRIES} more"))
        return _node("List", *entries, kind="object")

    if isinstance(value, (list, tuple)):
        if depth >= MAX_DEPTH:
            return _node("Text", f"[{len(value)} items]")
        entries = [_node("ListItem", _walk(item, depth + 1)) for item in value[:MAX_LIST_ITEMS]]
        if len(value) > MAX_LIST_ITEMS:
            entries.append(_node("ListItem", f"... and {len(value) - MAX_LIST_ITEMS} more"))
        return _node("List", *entries, kind="array")

    return _node("Text", _summarize(value))


def render_fallback(data: Any, error: Optional[str] = None) -> RenderNode:
    """Card showing the error note and a bounded structural view of `data`."""
    note = "The generated component failed to render."
    if error:
        note = f"{note} {error}"

    if data is None:
        body = _node("Text", EMPTY_MESSAGE)
    else:
        body = _walk(data, 0)

    return _node(
        "Card",
        _node("CardHeader", _node("CardTitle", FALLBACK_TITLE)),
        _node(
            "CardContent",
            _node("Text", note, class_name="text-sm text-muted-foreground"),
            body,
        ),
        class_name="w-full",
    )
