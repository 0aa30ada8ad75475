"""Decide whether a turn or content item carries anything worth sending.

Metadata-only values (ids, roles, statuses with no content) count as empty.
These predicates are total: they never raise, whatever they are handed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from flexinfer.content import ContentItem, Message, ReasoningContent
    from flexinfer.turns import InputTurn, OutputTurn

_MESSAGE_KINDS = frozenset({"inputMessage", "outputMessage"})
_PAYLOAD_FIELDS: dict[str, str] = {
    "inputMessage": "input_message",
    "outputMessage": "output_message",
    "reasoningMessage": "reasoning_message",
    "functionToolCall": "function_tool_call",
    "functionToolOutput": "function_tool_output",
    "customToolCall": "custom_tool_call",
    "customToolOutput": "custom_tool_output",
    "webSearchToolCall": "web_search_tool_call",
    "webSearchToolOutput": "web_search_tool_output",
}


def _kind(value: Any) -> str:
    kind = getattr(value, "kind", None)
    return str(getattr(kind, "value", kind))


def is_turn_empty(turn: InputTurn | OutputTurn | None) -> bool:
    """Return True when *turn* has nothing worth transmitting."""
    if turn is None:
        return True
    kind = _kind(turn)
    field = _PAYLOAD_FIELDS.get(kind)
    if field is None:
        return True
    payload = getattr(turn, field, None)
    if kind in _MESSAGE_KINDS:
        return is_message_empty(payload)
    if kind == "reasoningMessage":
        return is_reasoning_empty(payload)
    # Tool calls and outputs are only inspected for presence.
    return payload is None


def is_message_empty(message: Message | None) -> bool:
    if message is None:
        return True
    return all(is_content_item_empty(item) for item in message.contents)


def is_reasoning_empty(reasoning: ReasoningContent | None) -> bool:
    # Signature alone is not content.
    if reasoning is None:
        return True
    return not (
        reasoning.summary
        or reasoning.thinking
        or reasoning.redacted_thinking
        or reasoning.encrypted_content
    )


def is_content_item_empty(item: ContentItem | None) -> bool:
    if item is None:
        return True
    kind = _kind(item)
    if kind == "text":
        text = getattr(item, "text_item", None)
        return text is None or (text.text == "" and not text.citations)
    if kind == "refusal":
        refusal = getattr(item, "refusal_item", None)
        return refusal is None or refusal.refusal == ""
    if kind == "image":
        img = getattr(item, "image_item", None)
        return img is None or not (
            img.id
            or img.detail
            or img.image_name
            or img.image_mime
            or img.image_url
            or img.image_data
        )
    if kind == "file":
        f = getattr(item, "file_item", None)
        return f is None or (
            not (f.id or f.file_name or f.file_url or f.file_data or f.additional_context)
            and f.citation_config is None
        )
    return True


def drop_empty_turns(turns: Iterable[InputTurn]) -> list[InputTurn]:
    """Return the non-empty turns of *turns*, preserving order."""
    return [t for t in turns if not is_turn_empty(t)]
