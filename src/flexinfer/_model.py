"""Shared base classes for the immutable wire model.

All records are frozen pydantic models with camelCase wire aliases. Tagged
unions declare a ``VARIANTS`` table (tag -> payload field) and are checked
for "exactly one payload, matching the tag" at construction and again when
their payload is read.
"""

from __future__ import annotations

from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from flexinfer.errors import InvalidUnionError


class FrozenModel(BaseModel):
    """Immutable value object with camelCase wire names."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        # ``model_param`` is a wire field name.
        protected_namespaces=(),
    )

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready wire form, omitting absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TaggedUnion(FrozenModel):
    """Closed sum type: ``kind`` selects exactly one populated payload field."""

    VARIANTS: ClassVar[dict[str, str]] = {}

    @model_validator(mode="after")
    def _check_single_payload(self) -> Self:
        check_union(self)
        return self

    def payload(self) -> Any:
        """Return the payload selected by ``kind``, re-validating the union."""
        check_union(self)
        return getattr(self, self.VARIANTS[_tag(self)])


def _tag(value: Any) -> str:
    kind = getattr(value, "kind", None)
    return str(getattr(kind, "value", kind))


def check_union(value: TaggedUnion) -> None:
    """Raise InvalidUnionError unless exactly the tagged payload is populated."""
    tag = _tag(value)
    expected = value.VARIANTS.get(tag)
    populated = [
        name for name in value.VARIANTS.values() if getattr(value, name, None) is not None
    ]
    if expected is None:
        raise InvalidUnionError(
            f"{type(value).__name__}: unknown kind {tag!r}",
            hint=f"Use one of: {', '.join(value.VARIANTS)}.",
        )
    if populated != [expected]:
        got = ", ".join(populated) or "none"
        raise InvalidUnionError(
            f"{type(value).__name__}: kind {tag!r} requires only {expected!r} "
            f"to be set (populated: {got})",
        )
