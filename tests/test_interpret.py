import asyncio

from conftest import COMBINE, REWRITE, ROUTE, calls_with, responder, user_text

from toolvote.core.types import TurnInput, TurnWorkingState
from toolvote.models.mock import MockChatModel
from toolvote.status import StaticStatusSource
from toolvote.steps.interpret import Ask, ExecuteDirectly, Proceed, Respond, interpret


def echo(messages, tools):
    return user_text(messages)


def run(rules, make_deps, text="turn on the lights", history=(), previous=""):
    model = MockChatModel(responder=responder(rules))
    deps = make_deps(model)
    state = TurnWorkingState.start(text, max_iterations=20, interpret_history=tuple(history))
    result = asyncio.run(interpret(state, TurnInput(text, previous_response=previous), deps))
    return result, model, state


def test_rewrite_and_route_to_tools(make_deps):
    result, model, _ = run({REWRITE: "turn on the lights", ROUTE: "TOOLS"}, make_deps, "turn on the likes")
    assert result == Proceed("turn on the lights")
    assert calls_with(model, REWRITE)[0]["sampling"].temperature == 0.3
    assert len(calls_with(model, ROUTE)) == 2
    assert calls_with(model, COMBINE) == []


def test_empty_rewrite_keeps_original(make_deps):
    result, _, _ = run({REWRITE: "", ROUTE: "TOOLS"}, make_deps)
    assert result == Proceed("turn on the lights")


def test_exact_tool_name_skips_routing(make_deps):
    result, model, _ = run({REWRITE: "Lights_On"}, make_deps, "lights on")
    assert result == ExecuteDirectly(tool="lights_on", query="lights_on")
    assert calls_with(model, ROUTE) == []


def test_direct_response_and_question_routes(make_deps):
    result, _, _ = run({REWRITE: echo, ROUTE: "RESPOND: Hello there!"}, make_deps, "hi")
    assert result == Respond("Hello there!")
    result, _, _ = run({REWRITE: echo, ROUTE: "ASK: Which room?"}, make_deps)
    assert result == Ask("Which room?")


def test_earlier_requests_are_combined(make_deps):
    result, model, _ = run(
        {REWRITE: echo, COMBINE: "turn on the kitchen lights", ROUTE: "TOOLS"},
        make_deps,
        "the kitchen one",
        history=["turn on the lights"],
    )
    assert result == Proceed("turn on the kitchen lights")
    user = calls_with(model, COMBINE)[0]["messages"][-1]["content"]
    assert "1. turn on the lights" in user
    assert user.endswith("LATEST REQUEST:\nthe kitchen one")


def test_status_and_previous_response_reach_the_rewrite_prompt(make_deps):
    model = MockChatModel(responder=responder({REWRITE: echo, ROUTE: "TOOLS"}))
    deps = make_deps(model)
    deps.status = StaticStatusSource({"summary": "Lights off, 18C"})
    state = TurnWorkingState.start("yes", max_iterations=20)
    asyncio.run(interpret(state, TurnInput("yes", previous_response="Shall I heat up?"), deps))
    system = calls_with(model, REWRITE)[0]["messages"][0]["content"]
    assert "Lights off, 18C" in system
    assert "Shall I heat up?" in system
    assert state.cached_status == "Lights off, 18C"
