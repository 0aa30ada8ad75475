from __future__ import annotations

import pytest

from flexinfer.content import (
    ContentItem,
    ContentItemKind,
    FileItem,
    ImageItem,
    Message,
    ReasoningContent,
    RefusalItem,
    Role,
    Status,
    TextItem,
)
from flexinfer.emptiness import (
    drop_empty_turns,
    is_content_item_empty,
    is_message_empty,
    is_reasoning_empty,
    is_turn_empty,
)
from flexinfer.tools import ToolCall, ToolType
from flexinfer.turns import InputTurn

pytestmark = pytest.mark.unit


def test_text_item_emptiness() -> None:
    assert is_content_item_empty(ContentItem(kind="text", text_item=TextItem(text="", citations=())))
    assert not is_content_item_empty(ContentItem.text("hi"))


@pytest.mark.parametrize(
    "item",
    [
        ContentItem(kind=ContentItemKind.REFUSAL, refusal_item=RefusalItem(refusal="")),
        ContentItem.image(ImageItem()),
        ContentItem.file(FileItem()),
    ],
)
def test_metadata_free_items_are_empty(item: ContentItem) -> None:
    assert is_content_item_empty(item)


def test_image_with_url_is_not_empty() -> None:
    assert not is_content_item_empty(ContentItem.image(ImageItem(image_url="https://x.test/a.png")))


def test_message_with_only_metadata_is_empty() -> None:
    message = Message(id="m1", role=Role.USER, status=Status.COMPLETED)
    assert is_message_empty(message)
    assert is_turn_empty(InputTurn.message(message))


def test_reasoning_with_only_signature_is_empty() -> None:
    reasoning = ReasoningContent(signature="")
    assert is_reasoning_empty(reasoning)
    assert is_turn_empty(InputTurn.reasoning(reasoning))
    assert is_reasoning_empty(ReasoningContent(signature="sig"))
    assert not is_reasoning_empty(ReasoningContent(summary=("s",)))


def test_tool_turns_only_need_a_payload() -> None:
    turn = InputTurn.tool_call(ToolCall(type=ToolType.FUNCTION))
    assert not is_turn_empty(turn)


def test_predicates_are_total() -> None:
    assert is_turn_empty(None)
    assert is_message_empty(None)
    assert is_reasoning_empty(None)
    assert is_content_item_empty(None)
    assert is_turn_empty(InputTurn.model_construct(kind="bogus"))


def test_drop_empty_turns_keeps_order() -> None:
    first = InputTurn.user_text("a")
    second = InputTurn.assistant_text("b")
    turns = [first, InputTurn.user_text(""), second]

    assert drop_empty_turns(turns) == [first, second]
