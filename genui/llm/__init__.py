"""Generation engines."""

from genui.llm.base import EventCallback, GenerationEngine, get_engine
from genui.llm.json_parsing import parse_json_robust

__all__ = ["EventCallback", "GenerationEngine", "get_engine", "parse_json_robust"]
