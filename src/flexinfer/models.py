"""Request, response, and streaming records exchanged with provider adapters."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, ClassVar, Self

from pydantic import Field, model_validator

from flexinfer._model import FrozenModel, TaggedUnion
from flexinfer.errors import InvalidUnionError
from flexinfer.tools import ToolChoice, ToolPolicy
from flexinfer.turns import InputTurn, OutputTurn


class ReasoningType(StrEnum):
    #: Explicit token budget (``ReasoningParam.tokens``).
    HYBRID_WITH_TOKENS = "hybridWithTokens"
    #: Qualitative levels (``ReasoningParam.level``).
    SINGLE_WITH_LEVELS = "singleWithLevels"


class ReasoningLevel(StrEnum):
    NONE = "none"
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    XHIGH = "xhigh"


class ReasoningSummaryStyle(StrEnum):
    AUTO = "auto"
    CONCISE = "concise"
    DETAILED = "detailed"


class ReasoningParam(FrozenModel):
    # Plain strings are accepted so unknown values degrade to "not requested"
    # instead of failing validation.
    type: ReasoningType | str
    level: ReasoningLevel | str = ""
    tokens: int = 0
    #: OpenAI Responses only.
    summary_style: ReasoningSummaryStyle | None = None


class OutputVerbosity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OutputFormatKind(StrEnum):
    TEXT = "text"
    JSON_SCHEMA = "jsonSchema"


class JSONSchemaParam(FrozenModel):
    #: ``[a-zA-Z0-9_-]``, at most 64 characters.
    name: str
    description: str = ""
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    strict: bool = False


class OutputFormat(FrozenModel):
    """Text output, or JSON constrained by ``json_schema_param``."""

    kind: OutputFormatKind
    json_schema_param: JSONSchemaParam | None = None

    @model_validator(mode="after")
    def _check_schema(self) -> Self:
        wants_schema = self.kind == OutputFormatKind.JSON_SCHEMA
        if wants_schema != (self.json_schema_param is not None):
            raise InvalidUnionError(
                f"OutputFormat: kind {self.kind.value!r} "
                + ("requires" if wants_schema else "does not accept")
                + " json_schema_param",
            )
        return self


class OutputParam(FrozenModel):
    format: OutputFormat | None = None
    #: Not supported by Anthropic; maps to ``output_config.effort`` there.
    verbosity: OutputVerbosity | None = None


class ModelParam(FrozenModel):
    name: str
    stream: bool = False
    max_prompt_length: int = 0
    max_output_length: int = 0
    temperature: float | None = None
    reasoning: ReasoningParam | None = None
    system_prompt: str = ""
    #: Seconds; 0 means the provider default.
    timeout: float = 0
    output_param: OutputParam | None = None
    stop_sequences: tuple[str, ...] = ()
    additional_parameters_raw_json: str | None = Field(
        default=None, alias="additionalParametersRawJSON"
    )


class CompletionRequest(FrozenModel):
    model_param: ModelParam
    inputs: tuple[InputTurn, ...] = ()
    tool_policy: ToolPolicy | None = None
    tool_choices: tuple[ToolChoice, ...] = ()

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> CompletionRequest:
        return cls.model_validate(data)


class Usage(FrozenModel):
    input_tokens_total: int = 0
    input_tokens_cached: int = 0
    input_tokens_uncached: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0


class Error(FrozenModel):
    code: str = ""
    message: str = ""


class CompletionResponse(FrozenModel):
    outputs: tuple[OutputTurn, ...] = ()
    usage: Usage | None = None
    error: Error | None = None
    #: Scrubbed diagnostics for this call; None when nothing was captured.
    debug_details: dict[str, Any] | None = None

    def text(self) -> str:
        """Concatenate the text of all output messages."""
        return "".join(
            o.output_message.text() for o in self.outputs if o.output_message is not None
        )


# --- Streaming ---


class StreamContentKind(StrEnum):
    TEXT = "text"
    THINKING = "thinking"


class StreamChunk(FrozenModel):
    text: str


class StreamEvent(TaggedUnion):
    VARIANTS: ClassVar[dict[str, str]] = {
        StreamContentKind.TEXT: "text",
        StreamContentKind.THINKING: "thinking",
    }

    kind: StreamContentKind
    provider: str = ""
    model: str = ""
    text: StreamChunk | None = None
    thinking: StreamChunk | None = None


class StreamConfig(FrozenModel):
    #: Maximum delay between flushes of buffered chunks; 0 flushes immediately.
    flush_interval_ms: int = 0
    #: Target size of coalesced chunks; 0 disables coalescing.
    flush_chunk_size: int = 0


StreamHandler = Callable[[StreamEvent], Awaitable[None] | None]


class CompletionOptions(FrozenModel):
    """Per-call options. ``stream_handler`` is never serialized."""

    stream_handler: StreamHandler | None = Field(default=None, exclude=True)
    stream_config: StreamConfig | None = None
