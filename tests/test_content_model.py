from __future__ import annotations

from pydantic import ValidationError
import pytest

from flexinfer.content import (
    CacheControl,
    ContentItem,
    ContentItemKind,
    ImageItem,
    Message,
    RefusalItem,
    Role,
    TextItem,
)
from flexinfer.errors import InvalidUnionError
from flexinfer.models import CompletionRequest, OutputFormat, OutputFormatKind
from flexinfer.tools import (
    ToolCall,
    ToolChoice,
    ToolOutput,
    ToolOutputItem,
    ToolType,
    WebSearchArguments,
)
from flexinfer.turns import InputKind, InputTurn, OutputKind, OutputTurn

pytestmark = pytest.mark.unit


# =============================================================================
# Tagged unions
# =============================================================================


def test_union_rejects_payload_that_does_not_match_kind() -> None:
    with pytest.raises(ValidationError, match="requires only 'text_item'"):
        ContentItem(kind=ContentItemKind.TEXT, refusal_item=RefusalItem(refusal="no"))


def test_union_rejects_two_payloads() -> None:
    with pytest.raises(ValidationError):
        ContentItem(
            kind="text",
            text_item=TextItem(text="a"),
            refusal_item=RefusalItem(refusal="b"),
        )


def test_union_rejects_unknown_kind() -> None:
    with pytest.raises(ValidationError):
        InputTurn(kind="telepathy")


def test_payload_rechecks_unvalidated_values() -> None:
    item = ContentItem.model_construct(kind=ContentItemKind.TEXT)
    with pytest.raises(InvalidUnionError):
        item.payload()


def test_payload_returns_selected_variant() -> None:
    item = ContentItem.text("hello")
    assert item.payload() == TextItem(text="hello")


def test_models_are_frozen_and_closed() -> None:
    message = Message(role=Role.USER, contents=(ContentItem.text("hi"),))
    with pytest.raises(ValidationError):
        message.role = Role.ASSISTANT  # type: ignore[misc]
    with pytest.raises(ValidationError):
        Message(role=Role.USER, colour="blue")  # type: ignore[call-arg]


# =============================================================================
# Turns
# =============================================================================


def test_assistant_message_becomes_output_message_turn() -> None:
    assert InputTurn.assistant_text("done").kind is InputKind.OUTPUT_MESSAGE
    assert InputTurn.user_text("go").kind is InputKind.INPUT_MESSAGE


def test_tool_turn_kind_follows_tool_type() -> None:
    call = ToolCall(type=ToolType.CUSTOM, call_id="c1", name="grep", arguments="{}")
    output = ToolOutput(type=ToolType.FUNCTION, call_id="c1", contents=(ToolOutputItem.text("ok"),))

    assert InputTurn.tool_call(call).kind is InputKind.CUSTOM_TOOL_CALL
    assert InputTurn.tool_output(output).kind is InputKind.FUNCTION_TOOL_OUTPUT


def test_output_turn_replays_as_input_of_same_kind() -> None:
    turn = OutputTurn.message(Message(role=Role.ASSISTANT, contents=(ContentItem.text("x"),)))
    replay = turn.to_input()

    assert turn.kind is OutputKind.OUTPUT_MESSAGE
    assert replay.kind is InputKind.OUTPUT_MESSAGE
    assert replay.output_message == turn.output_message


def test_only_web_search_outputs_can_be_model_outputs() -> None:
    with pytest.raises(InvalidUnionError):
        OutputTurn.web_search_output(ToolOutput(type=ToolType.FUNCTION, call_id="c1"))


# =============================================================================
# Tools and output format
# =============================================================================


def test_tool_choice_argument_forms_are_exclusive() -> None:
    with pytest.raises(ValidationError, match="mutually exclusive"):
        ToolChoice(
            type=ToolType.WEB_SEARCH,
            id="w",
            name="search",
            arguments={"type": "object"},
            web_search_arguments=WebSearchArguments(max_uses=2),
        )
    with pytest.raises(ValidationError, match="requires type webSearch"):
        ToolChoice(
            type=ToolType.FUNCTION,
            id="f",
            name="lookup",
            web_search_arguments=WebSearchArguments(),
        )


def test_tool_description_falls_back_to_name() -> None:
    blank = ToolChoice(type=ToolType.FUNCTION, id="a", name="lookup", description="  ")
    described = ToolChoice(type=ToolType.FUNCTION, id="b", name="lookup", description="Find")

    assert blank.description_or_name() == "lookup"
    assert described.description_or_name() == "Find"


def test_json_schema_format_requires_schema_param() -> None:
    with pytest.raises(ValidationError):
        OutputFormat(kind=OutputFormatKind.JSON_SCHEMA)
    assert OutputFormat(kind=OutputFormatKind.TEXT).json_schema_param is None


# =============================================================================
# Wire form
# =============================================================================


def test_wire_form_uses_camel_case_aliases() -> None:
    item = ContentItem.image(ImageItem(image_url="https://x.test/a.png", image_mime="image/png"))
    wire = item.to_wire()

    assert wire["kind"] == "image"
    assert wire["imageItem"]["imageMIME"] == "image/png"
    assert wire["imageItem"]["imageURL"] == "https://x.test/a.png"


def test_cache_control_wire_form() -> None:
    assert CacheControl.ephemeral("1h").to_wire() == {
        "kind": "ephemeral",
        "cacheControlEphemeral": {"ttl": "1h"},
    }


def test_request_parses_from_wire() -> None:
    request = CompletionRequest.from_wire(
        {
            "modelParam": {
                "name": "claude-sonnet-4-5",
                "maxOutputLength": 256,
                "additionalParametersRawJSON": '{"top_k": 5}',
            },
            "inputs": [
                {
                    "kind": "inputMessage",
                    "inputMessage": {
                        "role": "user",
                        "contents": [{"kind": "text", "textItem": {"text": "hi"}}],
                    },
                },
                {
                    "kind": "functionToolCall",
                    "functionToolCall": {
                        "type": "function",
                        "choiceID": "t1",
                        "callID": "call_1",
                        "name": "lookup",
                        "arguments": "{}",
                    },
                },
            ],
            "toolChoices": [
                {"type": "function", "id": "t1", "name": "lookup", "arguments": {"type": "object"}}
            ],
        }
    )

    assert request.model_param.max_output_length == 256
    assert request.model_param.additional_parameters_raw_json == '{"top_k": 5}'
    assert request.inputs[0].input_message.text() == "hi"
    assert request.inputs[1].function_tool_call.choice_id == "t1"
    assert request.to_wire()["toolChoices"][0]["name"] == "lookup"
