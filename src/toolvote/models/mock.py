"""Scripted chat model for offline runs and tests."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable

from toolvote.core.sampling import SamplingParams
from toolvote.models.base import BaseChatModel, ModelResponse, ToolCall

Responder = Callable[[list[dict[str, Any]], Any], Any]


class MockChatModel(BaseChatModel):
    """Deterministic model that replays scripted responses.

    Scripted items may be ``ModelResponse`` objects, plain strings (free text)
    or exceptions, which are raised. Once the script is exhausted the model
    falls back to ``USE_TOOL:`` prompt handling, then to echoing the prompt.
    """

    def __init__(
        self,
        scripted: Iterable[ModelResponse | str | BaseException] | None = None,
        responder: Responder | None = None,
    ) -> None:
        self._scripted: list[ModelResponse | str | BaseException] = list(scripted or [])
        self._responder = responder
        self.calls: list[dict[str, Any]] = []

    async def generate(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        sampling: SamplingParams | None = None,
    ) -> ModelResponse:
        self.calls.append({"messages": messages, "tools": tools, "sampling": sampling})
        if self._responder is not None:
            produced = self._responder(messages, tools)
            if produced is not None:
                return _as_response(produced)
        if self._scripted:
            item = self._scripted.pop(0)
            if isinstance(item, BaseException):
                raise item
            return _as_response(item)
        last = messages[-1].get("content") if messages else ""
        if isinstance(last, str) and last.startswith("USE_TOOL:"):
            response = self._tool_call_from_prompt(last, tools)
            if response is not None:
                return response
        return ModelResponse(text=f"Mock response to: {last}")

    def _tool_call_from_prompt(
        self, prompt: str, tools: list[dict[str, Any]] | None
    ) -> ModelResponse | None:
        if not tools:
            return None
        stripped = prompt[len("USE_TOOL:") :].strip()
        parts = stripped.split(maxsplit=1)
        if not parts:
            return None
        tool_name = parts[0]
        tool_names = {tool["function"]["name"] for tool in tools}
        if tool_name not in tool_names:
            return None
        try:
            arguments = json.loads(parts[1]) if len(parts) > 1 else {}
        except json.JSONDecodeError:
            return None
        if not isinstance(arguments, dict):
            return None
        return ModelResponse(tool_calls=[ToolCall(name=tool_name, arguments=arguments)])


def _as_response(item: ModelResponse | str) -> ModelResponse:
    if isinstance(item, ModelResponse):
        return item
    return ModelResponse(text=item)
