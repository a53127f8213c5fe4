import asyncio

from conftest import COMBINE, DECISION, EXECUTE, REWRITE, ROUTE, SELECT, SUMMARY, calls_with, responder, user_text

from toolvote.cli import apply_overrides, parse_args, render
from toolvote.config import Settings
from toolvote.core.types import TurnBranch, TurnOutput
from toolvote.factory import build_model, build_registry, build_session
from toolvote.models.base import ModelResponse, ToolCall
from toolvote.models.mock import MockChatModel
from toolvote.models.openai_compat import OpenAICompatChatModel


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("MAX_ITERATIONS", "5")
    monkeypatch.setenv("INTERPRET_ENABLED", "false")
    settings = Settings()
    assert settings.max_iterations == 5
    assert settings.interpret_enabled is False
    assert settings.select_max_queries == 7
    assert settings.tool_timeout_seconds == 900


def test_cli_overrides_settings():
    args = parse_args(
        ["--max-iterations", "3", "--no-interpret", "--trace-dir", "traces", "--model", "m1"]
    )
    settings = apply_overrides(Settings(), args)
    assert settings.max_iterations == 3
    assert settings.interpret_enabled is False
    assert settings.trace_dir == "traces"
    assert settings.openai_model == "m1"


def test_build_model_uses_mock_without_key():
    assert isinstance(build_model(Settings(openai_api_key=None)), MockChatModel)


def test_build_model_uses_http_client_with_key():
    settings = Settings(openai_api_key="sk-test", openai_extra_headers='{"X-Org": "home"}')
    model = build_model(settings)
    assert isinstance(model, OpenAICompatChatModel)
    assert model.extra_headers == {"X-Org": "home"}
    asyncio.run(model.aclose())


def test_default_registry_has_builtins():
    assert build_registry().names() == ["calculator", "unit_convert"]


def test_render_shows_summary_for_unfinished_turns():
    output = TurnOutput(
        response="Maximum iterations reached. calculator: 42",
        state_summary="calculator: 42",
        branch=TurnBranch.MAX_ITERATIONS,
    )
    assert render(output).split("\n")[1] == "[max_iterations] calculator: 42"


def test_session_records_history_across_turns():
    def execute(messages, tools):
        return ModelResponse(tool_calls=[ToolCall(name="calculator", arguments={"expression": "6*7"})])

    model = MockChatModel(
        responder=responder(
            {
                REWRITE: lambda messages, tools: user_text(messages),
                COMBINE: "what is 6 times 7 in total",
                ROUTE: "TOOLS",
                SELECT: "calculator",
                EXECUTE: execute,
                DECISION: "DONE",
                SUMMARY: "It is 42.",
            }
        )
    )
    session = build_session(Settings(openai_api_key=None), model=model)

    async def conversation():
        first = await session.run("what is 6 times 7")
        second = await session.run("in total")
        return first, second

    first, second = asyncio.run(conversation())
    assert first.response == "It is 42."
    assert second.interpreted_query == "what is 6 times 7 in total"
    assert session.history.interpreted == ["what is 6 times 7", "what is 6 times 7 in total"]
    assert len(session.history) == 2
    assert session.history.entries[0].tool_events[0].name == "calculator"
    assert "1. what is 6 times 7" in calls_with(model, SELECT)[-1]["messages"][0]["content"]
    rewrite = calls_with(model, REWRITE)[-1]["messages"][0]["content"]
    assert "PREVIOUS RESPONSE TO THE USER:\nIt is 42." in rewrite
