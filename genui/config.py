"""
Configuration module for loading and validating environment variables.
"""

import logging
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

from genui.errors import ConfigError

__all__ = ["Config", "ConfigError", "get_config", "reset_config", "configure_logging"]


SUPPORTED_ENGINES = ("cursor-agent", "azure-openai")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, errors: list) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        errors.append(f"{name} must be an integer (got {value!r})")
        return default


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        # Load .env file from project root
        env_path = Path(__file__).parent.parent / ".env"
        load_dotenv(dotenv_path=env_path)

        malformed = []

        # Engine selection
        self.engine = os.getenv("GENUI_ENGINE", "cursor-agent").strip().lower()
        self.model = os.getenv("CURSOR_MODEL", "cheetah")
        self.cursor_agent_bin = os.getenv("CURSOR_AGENT_BIN", "cursor-agent")
        self.cursor_api_key = os.getenv("CURSOR_API_KEY")
        self.engine_timeout_seconds = _env_int("ENGINE_TIMEOUT_SECONDS", 300, malformed)

        # Azure OpenAI settings (only required for the azure-openai engine)
        self.azure_openai_api_key = os.getenv("AZURE_OPENAI_API_KEY")
        self.azure_openai_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        self.azure_openai_deployment_name = os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME")
        self.azure_openai_api_version = os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview")

        # Render loop bounds and gate thresholds
        self.render_max_attempts = _env_int("RENDER_MAX_ATTEMPTS", 2, malformed)
        self.scope_max_retries = _env_int("SCOPE_MAX_RETRIES", 2, malformed)
        self.relevance_floor = _env_int("RELEVANCE_FLOOR", 40, malformed)
        self.relevance_marginal = _env_int("RELEVANCE_MARGINAL", 70, malformed)
        self.enable_critique = _env_bool("ENABLE_CRITIQUE", True)

        self.log_level = os.getenv("GENUI_LOG_LEVEL", "INFO").upper()

        # Validate required settings
        self._validate(malformed)

    def _validate(self, malformed: list):
        """Validate that all required environment variables are set and sane."""
        problems = list(malformed)

        if self.engine not in SUPPORTED_ENGINES:
            problems.append(
                f"GENUI_ENGINE must be one of {', '.join(SUPPORTED_ENGINES)} (got {self.engine!r})"
            )

        if self.engine == "azure-openai":
            missing = []
            if not self.azure_openai_api_key:
                missing.append("AZURE_OPENAI_API_KEY")
            if not self.azure_openai_endpoint:
                missing.append("AZURE_OPENAI_ENDPOINT")
            if not self.azure_openai_deployment_name:
                missing.append("AZURE_OPENAI_DEPLOYMENT_NAME")
            if missing:
                problems.append(f"Missing required environment variables: {', '.join(missing)}")

        if self.engine_timeout_seconds <= 0:
            problems.append("ENGINE_TIMEOUT_SECONDS must be positive")
        if self.render_max_attempts < 0 or self.scope_max_retries < 0:
            problems.append("RENDER_MAX_ATTEMPTS and SCOPE_MAX_RETRIES must not be negative")
        if not 0 <= self.relevance_floor <= self.relevance_marginal <= 100:
            problems.append("Expected 0 <= RELEVANCE_FLOOR <= RELEVANCE_MARGINAL <= 100")

        if problems:
            raise ConfigError(
                "\n".join(problems) + "\n"
                "Please fix your .env file. See .env.example for reference."
            )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the entry points (app, scripts)."""
    if level is None:
        level = os.getenv("GENUI_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
