import asyncio
import threading
import time

import pytest
from pydantic import BaseModel

from toolvote.errors import ToolTimeoutError, UnknownToolError
from toolvote.tools.base import Tool, ToolResult
from toolvote.tools.boundary import RegistryToolBoundary
from toolvote.tools.builtins import CalculatorTool, UnitConvertTool
from toolvote.tools.registry import ToolRegistry


class WaitInput(BaseModel):
    seconds: float


class WaitTool(Tool):
    name = "wait"
    description = "Sleep for a while, reporting progress."
    input_schema = WaitInput
    tier = 3

    def run(self, data, progress=None):
        payload = WaitInput.model_validate(data)
        if progress is not None:
            progress("halfway")
        time.sleep(payload.seconds)
        return ToolResult(text=f"waited {payload.seconds}s")


def make_boundary():
    registry = ToolRegistry()
    registry.register_all([WaitTool(), CalculatorTool(), UnitConvertTool()])
    return RegistryToolBoundary(registry)


def test_registry_register_and_list():
    registry = ToolRegistry()
    tool = CalculatorTool()
    registry.register(tool)
    assert registry.get("calculator") is tool
    assert "calculator" in registry
    assert registry.list() == [tool]
    assert registry.names() == ["calculator"]


def test_registry_lists_tools_by_tier_then_registration():
    registry = ToolRegistry()
    registry.register_all([WaitTool(), UnitConvertTool(), CalculatorTool()])
    assert registry.names() == ["calculator", "unit_convert", "wait"]
    registry.register(UnitConvertTool())
    assert len(registry) == 3
    assert make_boundary().tools()[0].name == "calculator"


def test_registry_rejects_nameless_tool():
    class Nameless(WaitTool):
        name = ""

    with pytest.raises(ValueError):
        ToolRegistry().register(Nameless())


def test_boundary_returns_structured_result():
    result = asyncio.run(make_boundary().call_tool("calculator", {"expression": "6*7"}, 5))
    assert not result.is_error
    assert result.structured["value"] == "42"


def test_boundary_reports_invalid_arguments_as_error_result():
    result = asyncio.run(make_boundary().call_tool("calculator", {}, 5))
    assert result.is_error
    assert "expression" in result.text_segments[0]


def test_boundary_reports_tool_exceptions_as_error_result():
    result = asyncio.run(make_boundary().call_tool("calculator", {"expression": "1/0"}, 5))
    assert result.is_error
    assert result.text_segments[0].startswith("ZeroDivisionError")


def test_boundary_rejects_unknown_tool():
    with pytest.raises(UnknownToolError):
        asyncio.run(make_boundary().call_tool("missing", {}, 5))


def test_boundary_enforces_timeout():
    with pytest.raises(ToolTimeoutError):
        asyncio.run(make_boundary().call_tool("wait", {"seconds": 0.5}, 0.05))


def test_boundary_forwards_progress():
    messages = []
    result = asyncio.run(
        make_boundary().call_tool("wait", {"seconds": 0}, 5, on_progress=messages.append)
    )
    assert messages == ["halfway"]
    assert result.text_segments == ["waited 0.0s"]
    assert make_boundary().find("wait").tier == 3


def test_timed_out_tool_finishes_in_background():
    finished = threading.Event()

    class FlagTool(WaitTool):
        name = "flag"

        def run(self, data, progress=None):
            result = super().run(data, progress)
            finished.set()
            return result

    registry = ToolRegistry()
    registry.register(FlagTool())
    with pytest.raises(ToolTimeoutError):
        asyncio.run(RegistryToolBoundary(registry).call_tool("flag", {"seconds": 0.2}, 0.05))
    assert finished.wait(2)
