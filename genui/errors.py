"""
Exception hierarchy shared across the pipeline.
"""


class GenUIError(Exception):
    """Base class for all genui errors."""
    pass


class ConfigError(GenUIError):
    """Raised when configuration is invalid or missing."""
    pass


class EngineError(GenUIError):
    """Raised when the generation engine is unavailable or fails."""
    pass


class JSONParseError(GenUIError):
    """Raised when JSON parsing fails even after repair attempts."""
    pass


class CompilationError(GenUIError):
    """
    Raised when generated code cannot be compiled into a component.

    Covers syntax errors, failures while executing the module body and a
    missing or non-callable anchor. The orchestrator treats it as a
    retryable rendering failure.
    """
    pass


class RenderError(GenUIError):
    """Raised when a compiled component fails while rendering."""
    pass


class HookError(RenderError):
    """Raised when a hook is called outside of a render."""
    pass
