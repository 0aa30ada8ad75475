"""Conversation turns: the tagged unions that make up request inputs and outputs.

The position of a turn in its enclosing sequence is conversation order.
"""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar

from flexinfer._model import TaggedUnion
from flexinfer.content import ContentItem, Message, ReasoningContent, Role
from flexinfer.errors import InvalidUnionError
from flexinfer.tools import ToolCall, ToolOutput, ToolType


class InputKind(StrEnum):
    INPUT_MESSAGE = "inputMessage"
    OUTPUT_MESSAGE = "outputMessage"
    REASONING_MESSAGE = "reasoningMessage"
    FUNCTION_TOOL_CALL = "functionToolCall"
    FUNCTION_TOOL_OUTPUT = "functionToolOutput"
    CUSTOM_TOOL_CALL = "customToolCall"
    CUSTOM_TOOL_OUTPUT = "customToolOutput"
    WEB_SEARCH_TOOL_CALL = "webSearchToolCall"
    WEB_SEARCH_TOOL_OUTPUT = "webSearchToolOutput"


class OutputKind(StrEnum):
    OUTPUT_MESSAGE = "outputMessage"
    REASONING_MESSAGE = "reasoningMessage"
    FUNCTION_TOOL_CALL = "functionToolCall"
    CUSTOM_TOOL_CALL = "customToolCall"
    WEB_SEARCH_TOOL_CALL = "webSearchToolCall"
    WEB_SEARCH_TOOL_OUTPUT = "webSearchToolOutput"


_CALL_KINDS: dict[ToolType, str] = {
    ToolType.FUNCTION: "functionToolCall",
    ToolType.CUSTOM: "customToolCall",
    ToolType.WEB_SEARCH: "webSearchToolCall",
}
_OUTPUT_KINDS: dict[ToolType, str] = {
    ToolType.FUNCTION: "functionToolOutput",
    ToolType.CUSTOM: "customToolOutput",
    ToolType.WEB_SEARCH: "webSearchToolOutput",
}
_FIELD_BY_KIND: dict[str, str] = {
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


class InputTurn(TaggedUnion):
    """One item of conversation history sent to the model."""

    VARIANTS: ClassVar[dict[str, str]] = dict(_FIELD_BY_KIND)

    kind: InputKind
    input_message: Message | None = None
    output_message: Message | None = None
    reasoning_message: ReasoningContent | None = None
    function_tool_call: ToolCall | None = None
    function_tool_output: ToolOutput | None = None
    custom_tool_call: ToolCall | None = None
    custom_tool_output: ToolOutput | None = None
    web_search_tool_call: ToolCall | None = None
    web_search_tool_output: ToolOutput | None = None

    @classmethod
    def message(cls, message: Message) -> InputTurn:
        """Wrap a message; assistant messages become ``outputMessage`` turns."""
        if message.role == Role.ASSISTANT:
            return cls(kind=InputKind.OUTPUT_MESSAGE, output_message=message)
        return cls(kind=InputKind.INPUT_MESSAGE, input_message=message)

    @classmethod
    def user_text(cls, text: str) -> InputTurn:
        return cls.message(Message(role=Role.USER, contents=(ContentItem.text(text),)))

    @classmethod
    def assistant_text(cls, text: str) -> InputTurn:
        return cls.message(
            Message(role=Role.ASSISTANT, contents=(ContentItem.text(text),))
        )

    @classmethod
    def reasoning(cls, reasoning: ReasoningContent) -> InputTurn:
        return cls(kind=InputKind.REASONING_MESSAGE, reasoning_message=reasoning)

    @classmethod
    def tool_call(cls, call: ToolCall) -> InputTurn:
        kind = _CALL_KINDS[call.type]
        return cls(kind=kind, **{_FIELD_BY_KIND[kind]: call})

    @classmethod
    def tool_output(cls, output: ToolOutput) -> InputTurn:
        kind = _OUTPUT_KINDS[output.type]
        return cls(kind=kind, **{_FIELD_BY_KIND[kind]: output})


class OutputTurn(TaggedUnion):
    """One item produced by the model."""

    VARIANTS: ClassVar[dict[str, str]] = {
        k: _FIELD_BY_KIND[k] for k in OutputKind
    }

    kind: OutputKind
    output_message: Message | None = None
    reasoning_message: ReasoningContent | None = None
    function_tool_call: ToolCall | None = None
    custom_tool_call: ToolCall | None = None
    web_search_tool_call: ToolCall | None = None
    web_search_tool_output: ToolOutput | None = None

    @classmethod
    def message(cls, message: Message) -> OutputTurn:
        return cls(kind=OutputKind.OUTPUT_MESSAGE, output_message=message)

    @classmethod
    def reasoning(cls, reasoning: ReasoningContent) -> OutputTurn:
        return cls(kind=OutputKind.REASONING_MESSAGE, reasoning_message=reasoning)

    @classmethod
    def tool_call(cls, call: ToolCall) -> OutputTurn:
        kind = _CALL_KINDS[call.type]
        return cls(kind=kind, **{_FIELD_BY_KIND[kind]: call})

    @classmethod
    def web_search_output(cls, output: ToolOutput) -> OutputTurn:
        if output.type is not ToolType.WEB_SEARCH:
            raise InvalidUnionError("only web-search tool outputs can be model outputs")
        return cls(kind=OutputKind.WEB_SEARCH_TOOL_OUTPUT, web_search_tool_output=output)

    def to_input(self) -> InputTurn:
        """Replay this output as conversation history."""
        field = self.VARIANTS[self.kind]
        return InputTurn(kind=self.kind.value, **{field: getattr(self, field)})
