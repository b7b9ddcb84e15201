"""
Azure OpenAI engine with streaming chat completions.
"""

import logging
import time
from typing import Any, List, Optional

from openai import AzureOpenAI, OpenAIError

from genui.llm.base import EventCallback, GenerationEngine
from genui.schemas import EngineEvent, EngineRequest, EngineResult

logger = logging.getLogger(__name__)


class AzureOpenAIEngine(GenerationEngine):
    """Generation engine backed by an Azure OpenAI deployment."""

    name = "azure-openai"

    def __init__(self, client: Any, deployment: str, timeout_seconds: float = 300):
        self.client = client
        self.deployment = deployment
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config) -> "AzureOpenAIEngine":
        client = AzureOpenAI(
            api_key=config.azure_openai_api_key,
            api_version=config.azure_openai_api_version,
            azure_endpoint=config.azure_openai_endpoint,
            timeout=config.engine_timeout_seconds,
        )
        return cls(client, config.azure_openai_deployment_name, config.engine_timeout_seconds)

    def generate(self, request: EngineRequest, on_event: Optional[EventCallback] = None) -> EngineResult:
        """
        Stream one chat completion.

        The request's model name selects an engine-side model for the CLI
        engine only; here the deployment decides the model.
        """
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        start = time.monotonic()
        events: List[EngineEvent] = []
        parts: List[str] = []

        def emit(event: EngineEvent) -> None:
            events.append(event)
            if on_event is not None:
                on_event(event)

        try:
            stream = self.client.chat.completions.create(
                model=self.deployment,
                messages=messages,
                temperature=0.7,
                max_tokens=4096,
                stream=True,
                timeout=self.timeout_seconds,
            )
            for chunk in stream:
                # The client timeout applies per read; this bounds the whole stream
                if time.monotonic() - start > self.timeout_seconds:
                    close = getattr(stream, "close", None)
                    if close is not None:
                        close()
                    logger.error("Azure OpenAI stream exceeded %ss", self.timeout_seconds)
                    return EngineResult(
                        success=False,
                        final_text="".join(parts),
                        events=events,
                        error=f"Stream timed out after {self.timeout_seconds}s",
                        duration_ms=int((time.monotonic() - start) * 1000),
                    )
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                text = getattr(delta, "content", None)
                if text:
                    parts.append(text)
                    emit(EngineEvent(type="assistant", text=text))
        except OpenAIError as e:
            logger.error("Azure OpenAI call failed: %s", e)
            return EngineResult(
                success=False,
                final_text="".join(parts),
                events=events,
                error=f"Azure OpenAI error: {e}",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        emit(EngineEvent(type="result", subtype="success", duration_ms=duration_ms))
        return EngineResult(success=True, final_text="".join(parts), events=events, duration_ms=duration_ms)
