"""Base model interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from toolvote.core.sampling import SamplingParams


class ToolCall(BaseModel):
    id: str | None = None
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ModelResponse(BaseModel):
    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def tool_call(self) -> ToolCall | None:
        return self.tool_calls[0] if self.tool_calls else None

    def is_empty(self) -> bool:
        return not self.text.strip() and not self.tool_calls


class BaseChatModel(ABC):
    """Abstract text-generation backend.

    The backend is a pure function of its inputs from the caller's point of
    view, but may return different text on every call.
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        sampling: SamplingParams | None = None,
    ) -> ModelResponse:
        """Send a chat request and return the model response."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any held connections."""
