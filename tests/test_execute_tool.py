import asyncio

from conftest import EXECUTE, LightsOnTool, ThermostatTool, calls_with, responder

from toolvote.core.types import ToolEvent, TurnWorkingState
from toolvote.models.base import ModelResponse, ToolCall
from toolvote.models.mock import MockChatModel
from toolvote.steps.execute_tool import execute_tool
from toolvote.tools.boundary import RegistryToolBoundary
from toolvote.tools.builtins import CalculatorTool
from toolvote.tools.registry import ToolRegistry


class UnreachableBoundary(RegistryToolBoundary):
    async def call_tool(self, name, arguments, timeout, on_progress=None):
        raise ConnectionError("tool server unreachable")


def state_for(tool, query="turn on the kitchen lights"):
    state = TurnWorkingState.start(query, max_iterations=20)
    state.iteration = 1
    state.current_tool = tool
    return state


def call(name, **arguments):
    return ModelResponse(tool_calls=[ToolCall(name=name, arguments=arguments)])


def test_successful_call_normalizes_arguments(make_deps):
    model = MockChatModel(
        responder=responder({EXECUTE: call("lights_on", room="kitchen", bogus="x")})
    )
    state = state_for("lights_on")
    event = asyncio.run(execute_tool(state, make_deps(model)))
    assert event.success
    assert event.tool_name == "lights_on"
    assert event.args == {"room": "kitchen"}
    assert event.result.split("\n")[0] == "success: lights=on"
    assert event.group_id == state.group_id
    tools = calls_with(model, EXECUTE)[0]["tools"]
    assert [tool["function"]["name"] for tool in tools] == ["lights_on"]


def test_no_structured_call_returns_last_free_text(make_deps):
    replies = iter(["I am not sure.", "Which room should I light?"])
    model = MockChatModel(responder=responder({EXECUTE: lambda messages, tools: next(replies)}))
    event = asyncio.run(execute_tool(state_for("lights_on"), make_deps(model)))
    assert not event.success
    assert event.result == "Which room should I light?"
    calls = calls_with(model, EXECUTE)
    assert len(calls) == 2
    assert [c["sampling"].temperature for c in calls] == [0.1, 0.4]


def test_call_for_a_different_tool_counts_as_no_call(make_deps):
    model = MockChatModel(responder=responder({EXECUTE: call("thermostat", target=20)}))
    event = asyncio.run(execute_tool(state_for("lights_on"), make_deps(model)))
    assert not event.success
    assert event.result == "Model did not call lights_on."


def test_structured_error_status_is_a_failure(make_deps):
    model = MockChatModel(responder=responder({EXECUTE: call("thermostat", target="40")}))
    event = asyncio.run(execute_tool(state_for("thermostat", "set heat to 40"), make_deps(model)))
    assert not event.success
    assert event.args == {"target": 40}
    assert "reason=target too high" in event.result


def test_unknown_tool_fails_without_querying(make_deps):
    model = MockChatModel()
    event = asyncio.run(execute_tool(state_for("fly"), make_deps(model)))
    assert not event.success
    assert event.result == "Tool 'fly' not found"
    assert model.calls == []


def test_missing_selection_fails(make_deps):
    event = asyncio.run(execute_tool(state_for(None), make_deps(MockChatModel())))
    assert not event.success
    assert event.tool_name == "(none)"


def test_transport_failure_becomes_failed_event(make_deps):
    registry = ToolRegistry()
    registry.register_all([LightsOnTool(), ThermostatTool()])
    model = MockChatModel(responder=responder({EXECUTE: call("lights_on")}))
    deps = make_deps(model, boundary=UnreachableBoundary(registry))
    event = asyncio.run(execute_tool(state_for("lights_on"), deps))
    assert not event.success
    assert event.result == "tool server unreachable"


def test_previous_error_is_shown_verbatim(make_deps):
    state = state_for("thermostat", "set heat to 25")
    state.record_event(
        ToolEvent(
            tool_name="thermostat",
            args={"target": 40},
            result="error: reason=target too high",
            success=False,
            group_id=state.group_id,
        )
    )
    model = MockChatModel(responder=responder({EXECUTE: call("thermostat", target=25)}))
    event = asyncio.run(execute_tool(state, make_deps(model)))
    assert event.success
    system = calls_with(model, EXECUTE)[0]["messages"][0]["content"]
    assert "PREVIOUS ERROR:\nerror: reason=target too high" in system
    assert "Previous: thermostat → error: reason=target too high" in system


def test_numeric_text_for_string_parameter_stays_a_string(make_deps):
    registry = ToolRegistry()
    registry.register(CalculatorTool())
    model = MockChatModel(responder=responder({EXECUTE: call("calculator", expression="42")}))
    deps = make_deps(model, boundary=RegistryToolBoundary(registry))
    event = asyncio.run(execute_tool(state_for("calculator", "what is 42"), deps))
    assert event.success
    assert event.args == {"expression": "42"}
    assert "value=42" in event.result


def test_earlier_free_text_survives_a_failed_last_attempt(make_deps):
    model = MockChatModel(scripted=["Which room should I light?", RuntimeError("backend down")])
    event = asyncio.run(execute_tool(state_for("lights_on"), make_deps(model)))
    assert not event.success
    assert event.result == "Which room should I light?"
    assert len(model.calls) == 2
