"""
Element primitives exposed to generated components.

Every UI primitive is a plain callable: positional arguments become children,
keyword arguments become props. Calling one builds an `Element`; the
evaluator normalizes the finished tree into a `RenderNode`.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from genui.schemas import RenderNode


class Element:
    """A node in the tree returned by a generated component."""

    __slots__ = ("type", "props", "children")

    def __init__(self, type_: str, props: Optional[Dict[str, Any]] = None, children: Optional[List[Any]] = None):
        self.type = type_
        self.props = props or {}
        self.children = children or []

    def __repr__(self) -> str:
        return f"Element({self.type!r}, props={sorted(self.props)}, children={len(self.children)})"


def _flatten(children: Iterable[Any]) -> List[Any]:
    """Flatten nested lists/tuples/generators and drop None and booleans."""
    flat = []
    for child in children:
        if child is None or isinstance(child, bool):
            continue
        if isinstance(child, (list, tuple)) or hasattr(child, "__next__"):
            flat.extend(_flatten(child))
        else:
            flat.append(child)
    return flat


def primitive(type_: str, **defaults: Any) -> Callable[..., Element]:
    """Create the callable bound in the sandbox for one element type."""

    def factory(*children: Any, **props: Any) -> Element:
        merged = dict(defaults)
        # `children=` as a keyword behaves like positional children
        extra = props.pop("children", None)
        merged.update(props)
        kids = list(children)
        if extra is not None:
            kids.append(extra)
        return Element(type_, merged, _flatten(kids))

    factory.__name__ = type_.replace(".", "_")
    factory.__qualname__ = factory.__name__
    return factory


class _Namespace:
    """
    Attribute namespace whose members are element factories.

    `Icons.CloudSun(size=24)` builds an `Icon` element named CloudSun and
    `motion.div(...)` builds a `motion.div` element.
    """

    def __init__(self, label: str, builder: Callable[[str], Callable[..., Element]]):
        self._label = label
        self._builder = builder
        self._cache: Dict[str, Callable[..., Element]] = {}

    def __getattr__(self, name: str) -> Callable[..., Element]:
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._cache:
            self._cache[name] = self._builder(name)
        return self._cache[name]

    def __repr__(self) -> str:
        return f"<namespace {self._label}>"


def icon_namespace() -> _Namespace:
    return _Namespace("Icons", lambda name: primitive("Icon", name=name))


def motion_namespace() -> _Namespace:
    return _Namespace("motion", lambda tag: primitive(f"motion.{tag}"))


# =============================================================================
# NORMALIZATION
# =============================================================================

HANDLER_PLACEHOLDER = "<handler>"


def _normalize_prop(value: Any) -> Any:
    if callable(value) and not isinstance(value, Element):
        return HANDLER_PLACEHOLDER
    if isinstance(value, Element):
        return to_render_node(value).model_dump()
    if isinstance(value, dict):
        return {str(k): _normalize_prop(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_prop(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _normalize_child(child: Any) -> Optional[Any]:
    if isinstance(child, Element):
        return to_render_node(child)
    if child is None or isinstance(child, bool):
        return None
    if isinstance(child, float) and child.is_integer():
        return str(int(child))
    return str(child)


def to_render_node(value: Any) -> RenderNode:
    """Normalize whatever a component returned into a RenderNode."""
    if isinstance(value, RenderNode):
        return value
    if isinstance(value, Element):
        children = []
        for child in _flatten(value.children):
            normalized = _normalize_child(child)
            if normalized is not None:
                children.append(normalized)
        props = {key: _normalize_prop(prop) for key, prop in value.props.items()}
        return RenderNode(type=value.type, props=props, children=children)
    if isinstance(value, (list, tuple)):
        return to_render_node(Element("Fragment", {}, _flatten(value)))
    if value is None:
        return RenderNode(type="Fragment")
    return RenderNode(type="Text", children=[str(value)])
