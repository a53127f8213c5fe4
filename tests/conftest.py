from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel

from toolvote.config import Settings
from toolvote.core.services import LLMService, MachineDeps
from toolvote.tools.base import Tool, ToolResult
from toolvote.tools.boundary import RegistryToolBoundary
from toolvote.tools.registry import ToolRegistry

REWRITE = "TASK: Rewrite"
COMBINE = "TASK: Combine"
ROUTE = "TASK: Can this request"
SELECT = "TASK: Select the NEXT tool"
EXECUTE = "YOUR ONLY JOB"
DECISION = "TASK: Is the ORIGINAL REQUEST"
REMAINING = "TASK: What remains"
SUMMARY = "TASK: Summarize"
QUESTION = "TASK: What question"


class LightsInput(BaseModel):
    room: str = "all"


class LightsOnTool(Tool):
    name = "lights_on"
    description = "Turn the lights on."
    input_schema = LightsInput
    tier = 1

    def run(self, data, progress=None):
        return ToolResult(output={"status": "success", "lights": "on"})


class ThermostatInput(BaseModel):
    target: float


class ThermostatTool(Tool):
    name = "thermostat"
    description = "Set the heating target in degrees Celsius."
    input_schema = ThermostatInput
    tier = 2

    def run(self, data, progress=None):
        payload = ThermostatInput.model_validate(data)
        if payload.target > 30:
            return ToolResult(output={"status": "error", "reason": "target too high"})
        return ToolResult(output={"status": "success", "target": payload.target})


def system_text(messages: list[dict[str, Any]]) -> str:
    return messages[0]["content"] if messages else ""


def user_text(messages: list[dict[str, Any]]) -> str:
    return messages[-1]["content"] if len(messages) > 1 else ""


def responder(rules: dict[str, Any]):
    """Answer each prompt by the first marker it contains.

    Values are replies or callables taking ``(messages, tools)``.
    """

    def respond(messages, tools):
        system = system_text(messages)
        for marker, reply in rules.items():
            if marker in system:
                return reply(messages, tools) if callable(reply) else reply
        return None

    return respond


def calls_with(model, marker: str) -> list[dict[str, Any]]:
    return [call for call in model.calls if marker in system_text(call["messages"])]


@pytest.fixture
def make_deps():
    def factory(model, boundary=None, **overrides) -> MachineDeps:
        settings = Settings(**overrides)
        if boundary is None:
            registry = ToolRegistry()
            registry.register_all([LightsOnTool(), ThermostatTool()])
            boundary = RegistryToolBoundary(registry)
        return MachineDeps(
            llm=LLMService(
                model,
                timeout_seconds=settings.generation_timeout_seconds,
                max_attempts=settings.llm_max_attempts,
            ),
            boundary=boundary,
            settings=settings,
        )

    return factory
