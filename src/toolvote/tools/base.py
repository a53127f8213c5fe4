"""Base tool definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from pydantic import BaseModel

ProgressCallback = Callable[[str], None]


class ToolResult(BaseModel):
    output: Any = None
    text: str | None = None
    is_error: bool = False


class Tool(ABC):
    """Abstract tool.

    ``tier`` orders tools in prompts: tiers 1 and 2 are described in full,
    higher tiers are listed by name only.
    """

    name: str
    description: str
    input_schema: type[BaseModel]
    tier: int = 2

    @abstractmethod
    def run(
        self, data: BaseModel | dict[str, Any], progress: ProgressCallback | None = None
    ) -> ToolResult:
        """Execute the tool."""
        raise NotImplementedError

    def openai_schema(self) -> dict[str, Any]:
        """Return OpenAI-compatible tool schema."""
        schema = self.input_schema.model_json_schema()
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }
