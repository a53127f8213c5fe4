"""Error taxonomy for the turn loop."""

from __future__ import annotations


class ToolvoteError(RuntimeError):
    """Base error for toolvote."""


class GenerationError(ToolvoteError):
    """Raised when the text-generation backend fails; callers retry it."""


class NonRetryableError(ToolvoteError):
    """Raised for failures that retry helpers must not swallow."""


class GenerationCancelled(NonRetryableError):
    """Raised when a shutdown signal aborts an in-flight call."""


class ToolTimeoutError(ToolvoteError):
    """Raised when a tool call exceeds its timeout."""


class UnknownToolError(ToolvoteError):
    """Raised when a tool name is not registered with the boundary."""
