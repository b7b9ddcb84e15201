"""
Read-only context handed to every gate.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from genui.sandbox.catalog import DEFAULT_CATALOG, Catalog


@dataclass(frozen=True)
class GateContext:
    """What a gate may know about the request besides the code itself."""
    user_message: str = ""
    key_entities: Tuple[str, ...] = ()
    relevance_floor: int = 40
    marginal_ceiling: int = 70
    catalog: Catalog = field(default=DEFAULT_CATALOG, repr=False)

    @classmethod
    def for_request(
        cls,
        user_message: str,
        key_entities=(),
        relevance_floor: int = 40,
        marginal_ceiling: int = 70,
        catalog: Optional[Catalog] = None,
    ) -> "GateContext":
        return cls(
            user_message=user_message,
            key_entities=tuple(key_entities or ()),
            relevance_floor=relevance_floor,
            marginal_ceiling=marginal_ceiling,
            catalog=catalog or DEFAULT_CATALOG,
        )


DEFAULT_CONTEXT = GateContext()
