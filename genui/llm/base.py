"""
Generation engine contract and factory.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from genui.errors import ConfigError, EngineError, JSONParseError
from genui.llm.json_parsing import parse_json_robust
from genui.schemas import EngineEvent, EngineRequest, EngineResult

logger = logging.getLogger(__name__)

EventCallback = Callable[[EngineEvent], None]

JSON_REMINDER = (
    "\n\nIMPORTANT: Respond with valid JSON only. No markdown, no code fences, no additional text."
)
JSON_RETRY_REMINDER = (
    "\n\nCRITICAL: Your previous response was invalid JSON. You MUST return ONLY valid JSON.\n"
    "Do NOT include any text before or after the JSON.\n"
    "Do NOT wrap in markdown code fences.\n"
    "Return ONLY the raw JSON object."
)


class GenerationEngine(ABC):
    """An external text generator that streams typed events while it works."""

    name = "engine"

    @abstractmethod
    def generate(self, request: EngineRequest, on_event: Optional[EventCallback] = None) -> EngineResult:
        """
        Run one generation.

        Implementations never raise for engine-side problems (missing
        binary, timeouts, API errors); they return EngineResult(success=False).
        """

    def generate_json(
        self,
        request: EngineRequest,
        on_event: Optional[EventCallback] = None,
        max_retries: int = 1,
    ) -> Any:
        """
        Generate and parse the reply as JSON with retry logic.

        Args:
            request: Prompt and system prompt for the call
            on_event: Optional callback for streamed events
            max_retries: Number of retries on JSON parse failure

        Returns:
            Parsed JSON value

        Raises:
            EngineError: If the engine call itself fails
            JSONParseError: If JSON parsing fails after all retry attempts
        """
        last_error: Optional[JSONParseError] = None

        for attempt in range(max_retries + 1):
            reminder = JSON_REMINDER if attempt == 0 else JSON_RETRY_REMINDER
            call = request.model_copy(update={"prompt": request.prompt + reminder})
            result = self.generate(call, on_event)

            if not result.success:
                raise EngineError(result.error or f"{self.name} call failed")

            try:
                return parse_json_robust(result.final_text)
            except JSONParseError as e:
                logger.warning("JSON parse failed on attempt %d/%d: %s", attempt + 1, max_retries + 1, str(e)[:200])
                last_error = e
                continue

        raise last_error or JSONParseError("Failed to get valid JSON after retries")


def get_engine(config=None) -> GenerationEngine:
    """Build the engine selected by GENUI_ENGINE."""
    if config is None:
        from genui.config import get_config
        config = get_config()

    if config.engine == "cursor-agent":
        from genui.llm.cursor_agent import CursorAgentEngine
        return CursorAgentEngine(
            binary=config.cursor_agent_bin,
            api_key=config.cursor_api_key,
            timeout_seconds=config.engine_timeout_seconds,
        )
    if config.engine == "azure-openai":
        from genui.llm.azure_openai_client import AzureOpenAIEngine
        return AzureOpenAIEngine.from_config(config)

    raise ConfigError(f"Unknown engine: {config.engine}")
