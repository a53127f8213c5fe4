import pytest

from toolvote.steps.parsing import (
    AskRoute,
    Decision,
    DoneChoice,
    QuestionChoice,
    RespondRoute,
    ToolChoice,
    ToolsRoute,
    exact_tool_name,
    find_tool_match,
    is_nothing_remains,
    parse_decision,
    parse_route,
    parse_selection,
    selections_equivalent,
)

TOOLS = ["lights_on", "lights_off", "thermostat"]


@pytest.mark.parametrize(
    "text",
    ["lights_on", '"Lights_On".', "I would use lights_on now", "lights-on", "lightson"],
)
def test_selection_resolves_a_single_tool(text):
    assert parse_selection(text, TOOLS) == ToolChoice("lights_on")


@pytest.mark.parametrize("text", ["null", "None.", "N/A", "no tool", "'done'", "Finished!"])
def test_selection_completion_markers(text):
    assert parse_selection(text, TOOLS) == DoneChoice()


def test_selection_with_two_tools_is_unusable():
    assert parse_selection("lights_on then thermostat", TOOLS) is None


def test_selection_empty_is_unusable():
    assert parse_selection("   ", TOOLS) is None
    assert parse_selection(None, TOOLS) is None


def test_selection_free_text_is_a_question():
    assert parse_selection("Which room do you mean?", TOOLS) == QuestionChoice(
        "Which room do you mean?"
    )


def test_shorter_name_inside_longer_match_is_one_tool():
    assert parse_selection("lights_on", ["lights", "lights_on"]) == ToolChoice("lights_on")


def test_fuzzy_matching_rules():
    assert find_tool_match("thermo", TOOLS) == "thermostat"
    assert find_tool_match("Thermostat", TOOLS) == "thermostat"
    assert find_tool_match("off", TOOLS) == "lights_off"
    assert find_tool_match("thermostar", TOOLS) == "thermostat"
    assert find_tool_match("xyz", TOOLS) is None


def test_selection_equivalence_ignores_question_content():
    assert selections_equivalent(QuestionChoice("a?"), QuestionChoice("b?"))
    assert selections_equivalent(DoneChoice(), DoneChoice())
    assert selections_equivalent(ToolChoice("x"), ToolChoice("x"))
    assert not selections_equivalent(ToolChoice("x"), ToolChoice("y"))
    assert not selections_equivalent(ToolChoice("x"), DoneChoice())


@pytest.mark.parametrize(
    "text, expected",
    [
        ("DONE", Decision.DONE),
        ("The request is satisfied.", Decision.DONE),
        ("ASK", Decision.ASK),
        ("needs clarification", Decision.ASK),
        ("Continue.", Decision.CONTINUE),
        ("more", Decision.CONTINUE),
        ("incomplete", None),
        ("", None),
    ],
)
def test_parse_decision(text, expected):
    assert parse_decision(text) == expected


def test_nothing_remains_markers():
    assert is_nothing_remains("None.")
    assert is_nothing_remains("nothing remains")
    assert is_nothing_remains("")
    assert not is_nothing_remains("land on the Mun")


def test_parse_route():
    assert parse_route("TOOLS") == ToolsRoute()
    assert parse_route("RESPOND: hello there") == RespondRoute("hello there")
    assert parse_route("ask:") == AskRoute("Could you clarify your request?")
    assert parse_route("not sure") == ToolsRoute()


def test_exact_tool_name_is_case_insensitive():
    assert exact_tool_name(" Lights_ON ", TOOLS) == "lights_on"
    assert exact_tool_name("turn on lights_on", TOOLS) is None
