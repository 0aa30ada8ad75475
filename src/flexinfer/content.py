"""Provider-agnostic conversation content: messages, content items, reasoning."""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar

from pydantic import Field

from flexinfer._model import FrozenModel, TaggedUnion


class Role(StrEnum):
    SYSTEM = "system"
    DEVELOPER = "developer"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"
    TOOL = "tool"


class Status(StrEnum):
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    FAILED = "failed"
    CANCELLED = "cancelled"
    QUEUED = "queued"
    SEARCHING = "searching"


class ContentItemKind(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    REFUSAL = "refusal"


class ImageDetail(StrEnum):
    HIGH = "high"
    LOW = "low"
    AUTO = "auto"


# --- Cache hints ---


class CacheControlKind(StrEnum):
    EPHEMERAL = "ephemeral"


class CacheControlEphemeral(FrozenModel):
    ttl: str = ""


class CacheControl(TaggedUnion):
    """Provider prompt-cache hint attached to a message, tool, or block."""

    VARIANTS: ClassVar[dict[str, str]] = {
        CacheControlKind.EPHEMERAL: "cache_control_ephemeral",
    }

    kind: CacheControlKind
    cache_control_ephemeral: CacheControlEphemeral | None = None

    @classmethod
    def ephemeral(cls, ttl: str = "") -> CacheControl:
        return cls(
            kind=CacheControlKind.EPHEMERAL,
            cache_control_ephemeral=CacheControlEphemeral(ttl=ttl),
        )


# --- Citations ---


class CitationKind(StrEnum):
    URL = "urlCitation"


class URLCitation(FrozenModel):
    url: str
    title: str = ""
    cited_text: str = ""
    #: Index semantics (inclusive, bytes vs chars) vary between providers.
    start_index: int = 0
    end_index: int = 0
    encrypted_index: str = ""


class Citation(TaggedUnion):
    VARIANTS: ClassVar[dict[str, str]] = {CitationKind.URL: "url_citation"}

    kind: CitationKind
    url_citation: URLCitation | None = None


class CitationConfig(FrozenModel):
    enabled: bool = False


# --- Content items ---


class TextItem(FrozenModel):
    text: str = ""
    citations: tuple[Citation, ...] = ()


class RefusalItem(FrozenModel):
    refusal: str = ""


class ImageItem(FrozenModel):
    id: str = ""
    detail: ImageDetail | str = ""
    image_name: str = ""
    image_mime: str = Field(default="", alias="imageMIME")
    image_url: str = Field(default="", alias="imageURL")
    #: Base64 encoded bytes.
    image_data: str = ""


class FileItem(FrozenModel):
    id: str = ""
    file_name: str = ""
    file_mime: str = Field(default="", alias="fileMIME")
    file_url: str = Field(default="", alias="fileURL")
    #: Base64 encoded bytes.
    file_data: str = ""
    additional_context: str = ""
    citation_config: CitationConfig | None = None


class ContentItem(TaggedUnion):
    """One item of message content: text, refusal, image, or file."""

    VARIANTS: ClassVar[dict[str, str]] = {
        ContentItemKind.TEXT: "text_item",
        ContentItemKind.REFUSAL: "refusal_item",
        ContentItemKind.IMAGE: "image_item",
        ContentItemKind.FILE: "file_item",
    }

    kind: ContentItemKind
    text_item: TextItem | None = None
    refusal_item: RefusalItem | None = None
    image_item: ImageItem | None = None
    file_item: FileItem | None = None

    @classmethod
    def text(cls, text: str, *citations: Citation) -> ContentItem:
        return cls(
            kind=ContentItemKind.TEXT,
            text_item=TextItem(text=text, citations=citations),
        )

    @classmethod
    def refusal(cls, refusal: str) -> ContentItem:
        return cls(kind=ContentItemKind.REFUSAL, refusal_item=RefusalItem(refusal=refusal))

    @classmethod
    def image(cls, image: ImageItem) -> ContentItem:
        return cls(kind=ContentItemKind.IMAGE, image_item=image)

    @classmethod
    def file(cls, file: FileItem) -> ContentItem:
        return cls(kind=ContentItemKind.FILE, file_item=file)


class Message(FrozenModel):
    """A conversational message: role, status, and ordered content items."""

    id: str = ""
    role: Role
    status: Status | None = None
    cache_control: CacheControl | None = None
    contents: tuple[ContentItem, ...] = ()

    def text(self) -> str:
        """Concatenate the text items of this message."""
        return "".join(
            c.text_item.text for c in self.contents if c.text_item is not None
        )


class ReasoningContent(FrozenModel):
    """Model reasoning: summaries, raw thinking, redacted or encrypted blobs.

    ``signature`` authenticates ``thinking`` for providers that require signed
    reasoning to be replayed verbatim.
    """

    id: str = ""
    role: Role = Role.ASSISTANT
    status: Status | None = None
    cache_control: CacheControl | None = None

    signature: str = ""
    summary: tuple[str, ...] = ()
    thinking: tuple[str, ...] = ()
    redacted_thinking: tuple[str, ...] = ()
    #: Opaque provider blobs (OpenAI ``reasoning.encrypted_content``).
    encrypted_content: tuple[str, ...] = ()
