"""Tool declarations, tool calls, tool outputs, and tool-use policy."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, ClassVar, Self

from pydantic import Field, model_validator

from flexinfer._model import FrozenModel, TaggedUnion
from flexinfer.content import (
    CacheControl,
    ContentItemKind,
    FileItem,
    ImageItem,
    Role,
    Status,
    TextItem,
)
from flexinfer.errors import InvalidUnionError

DEFAULT_WEB_SEARCH_TOOL_NAME = "webSearchToolChoice"


class ToolType(StrEnum):
    FUNCTION = "function"
    CUSTOM = "custom"
    WEB_SEARCH = "webSearch"


# --- Declarations ---


class WebSearchUserLocation(FrozenModel):
    city: str = ""
    #: Two-letter ISO country code.
    country: str = ""
    region: str = ""
    #: IANA timezone name.
    timezone: str = ""


class WebSearchArguments(FrozenModel):
    max_uses: int = 0
    #: One of ``low``, ``medium`` or ``high``.
    search_context_size: str = ""
    allowed_domains: tuple[str, ...] = ()
    blocked_domains: tuple[str, ...] = ()
    user_location: WebSearchUserLocation | None = None


class ToolChoice(FrozenModel):
    """A tool the model may call.

    Function and custom tools carry free-form ``arguments`` (usually a JSON
    Schema object); web-search tools carry ``web_search_arguments``. Never both.
    """

    type: ToolType
    id: str
    cache_control: CacheControl | None = None
    name: str
    description: str = ""
    arguments: dict[str, Any] | None = None
    web_search_arguments: WebSearchArguments | None = None

    @model_validator(mode="after")
    def _check_arguments(self) -> Self:
        if self.arguments is not None and self.web_search_arguments is not None:
            raise InvalidUnionError(
                f"ToolChoice {self.name!r}: arguments and web_search_arguments "
                "are mutually exclusive",
            )
        if self.type is not ToolType.WEB_SEARCH and self.web_search_arguments is not None:
            raise InvalidUnionError(
                f"ToolChoice {self.name!r}: web_search_arguments requires type webSearch",
            )
        return self

    def description_or_name(self) -> str:
        return self.description.strip() or self.name


# --- Calls ---


class WebSearchCallKind(StrEnum):
    SEARCH = "search"
    OPEN_PAGE = "openPage"
    FIND = "find"


class WebSearchSource(FrozenModel):
    url: str


class WebSearchCallSearch(FrozenModel):
    query: str = ""
    sources: tuple[WebSearchSource, ...] = ()
    #: Raw provider input when it does not fit ``query``.
    input: dict[str, Any] | None = None


class WebSearchCallOpenPage(FrozenModel):
    url: str


class WebSearchCallFind(FrozenModel):
    url: str
    pattern: str


class WebSearchCallItem(TaggedUnion):
    VARIANTS: ClassVar[dict[str, str]] = {
        WebSearchCallKind.SEARCH: "search_item",
        WebSearchCallKind.OPEN_PAGE: "open_page_item",
        WebSearchCallKind.FIND: "find_item",
    }

    kind: WebSearchCallKind
    search_item: WebSearchCallSearch | None = None
    open_page_item: WebSearchCallOpenPage | None = None
    find_item: WebSearchCallFind | None = None


class ToolCall(FrozenModel):
    """A tool invocation requested by the model.

    ``choice_id`` refers back to the originating ToolChoice.id.
    """

    type: ToolType
    choice_id: str = Field(default="", alias="choiceID")
    id: str = ""
    role: Role = Role.ASSISTANT
    status: Status | None = None
    cache_control: CacheControl | None = None

    call_id: str = Field(default="", alias="callID")
    name: str = ""
    #: Serialized JSON arguments.
    arguments: str = ""
    web_search_call_items: tuple[WebSearchCallItem, ...] = ()


# --- Outputs ---


class WebSearchOutputKind(StrEnum):
    SEARCH = "search"
    ERROR = "error"


class WebSearchOutputSearch(FrozenModel):
    url: str
    title: str = ""
    encrypted_content: str = ""
    rendered_content: str = ""
    page_age: str = ""


class WebSearchOutputError(FrozenModel):
    code: str


class WebSearchOutputItem(TaggedUnion):
    VARIANTS: ClassVar[dict[str, str]] = {
        WebSearchOutputKind.SEARCH: "search_item",
        WebSearchOutputKind.ERROR: "error_item",
    }

    kind: WebSearchOutputKind
    search_item: WebSearchOutputSearch | None = None
    error_item: WebSearchOutputError | None = None


class ToolOutputItem(TaggedUnion):
    """Tool result content: text, image, or file (no refusals)."""

    VARIANTS: ClassVar[dict[str, str]] = {
        ContentItemKind.TEXT: "text_item",
        ContentItemKind.IMAGE: "image_item",
        ContentItemKind.FILE: "file_item",
    }

    kind: ContentItemKind
    text_item: TextItem | None = None
    image_item: ImageItem | None = None
    file_item: FileItem | None = None

    @classmethod
    def text(cls, text: str) -> ToolOutputItem:
        return cls(kind=ContentItemKind.TEXT, text_item=TextItem(text=text))


class ToolOutput(FrozenModel):
    """The result of running a tool, fed back to the model.

    ``call_id`` must match the ToolCall it answers; this is not enforced here.
    """

    type: ToolType
    choice_id: str = Field(default="", alias="choiceID")
    id: str = ""
    role: Role = Role.TOOL
    status: Status | None = None
    cache_control: CacheControl | None = None

    call_id: str = Field(default="", alias="callID")
    name: str = ""
    is_error: bool = False
    signature: str = ""

    contents: tuple[ToolOutputItem, ...] = ()
    web_search_output_items: tuple[WebSearchOutputItem, ...] = ()


# --- Policy ---


class ToolPolicyMode(StrEnum):
    AUTO = "auto"
    ANY = "any"
    TOOL = "tool"
    NONE = "none"


class AllowedTool(FrozenModel):
    """Identifies a declared tool by id and/or name (original or provider name)."""

    tool_choice_id: str = Field(default="", alias="toolChoiceID")
    tool_choice_name: str = ""


class ToolPolicy(FrozenModel):
    """How (or whether) the model may use the declared tools.

    ``allowed_tools`` narrows ``any``/``tool`` modes to a subset.
    """

    mode: ToolPolicyMode = ToolPolicyMode.AUTO
    allowed_tools: tuple[AllowedTool, ...] = ()
    disable_parallel: bool = False
