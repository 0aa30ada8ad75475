"""Provider-safe tool names and allowed-tool resolution.

Tool names sent to providers are derived from the declared names:

- lower-cased, anything outside ``[a-z0-9_-]`` replaced by ``_``, leading and
  trailing ``_``/``-`` trimmed, ``"tool"`` if nothing is left;
- at most 64 characters;
- the first tool with a given base keeps it, later ones get ``base_2``,
  ``base_3``... with the base shortened so the suffix always fits.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import TYPE_CHECKING

from flexinfer.errors import ToolResolutionError
from flexinfer.tools import ToolType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flexinfer.tools import AllowedTool, ToolChoice

MAX_TOOL_NAME_LENGTH = 64

_UNSAFE_CHARS = re.compile(r"[^a-z0-9_-]")
_RESOLVABLE_TYPES = frozenset({ToolType.FUNCTION, ToolType.CUSTOM})


@dataclass(frozen=True)
class NamedTool:
    """A declared tool paired with the name sent to the provider."""

    choice: ToolChoice
    name: str


@dataclass(frozen=True)
class ResolvedAllowedTool:
    type: ToolType
    name: str


def sanitize_tool_name(name: str) -> str:
    """Reduce *name* to a provider-safe slug (may be empty)."""
    return _UNSAFE_CHARS.sub("_", name.lower()).strip("_-")


def _with_suffix(base: str, n: int) -> str:
    suffix = f"_{n}"
    return base[: MAX_TOOL_NAME_LENGTH - len(suffix)] + suffix


def build_tool_name_mapping(
    tools: Sequence[ToolChoice],
) -> tuple[list[NamedTool], dict[str, ToolChoice]]:
    """Assign unique provider names to *tools*, in input order.

    Returns the tools paired with their names, and a map from provider name
    back to the declaration (used to translate tool calls back).
    """
    named: list[NamedTool] = []
    by_name: dict[str, ToolChoice] = {}
    used: dict[str, int] = {}

    for choice in tools:
        base = sanitize_tool_name(choice.name) or "tool"
        base = base[:MAX_TOOL_NAME_LENGTH]

        count = used.get(base, 0) + 1
        name = base if count == 1 else _with_suffix(base, count)
        # A suffixed name can collide with a literal declaration such as "foo_2".
        while name in by_name:
            count += 1
            name = _with_suffix(base, count)
        used[base] = count

        named.append(NamedTool(choice=choice, name=name))
        by_name[name] = choice

    return named, by_name


def resolve_allowed_tools(
    allowed: Sequence[AllowedTool],
    name_map: dict[str, ToolChoice],
) -> list[ResolvedAllowedTool]:
    """Map caller-specified allowed tools to provider names.

    An entry matches a declaration whose id equals ``tool_choice_id`` (when
    given) and whose original or provider name equals ``tool_choice_name``
    case-insensitively (when given). Only function and custom tools are
    eligible. Entries with neither field, or with no match, are skipped.
    """
    if not name_map:
        raise ToolResolutionError("got empty tool name map")
    if not allowed:
        raise ToolResolutionError("got empty allowed tool choices")

    resolved: list[ResolvedAllowedTool] = []
    for entry in allowed:
        want_name = entry.tool_choice_name.strip()
        want_id = entry.tool_choice_id.strip()
        if not want_name and not want_id:
            continue
        for api_name, choice in name_map.items():
            if want_id and choice.id != want_id:
                continue
            if want_name and not (
                choice.name.casefold() == want_name.casefold()
                or api_name.casefold() == want_name.casefold()
            ):
                continue
            if choice.type not in _RESOLVABLE_TYPES:
                continue
            resolved.append(ResolvedAllowedTool(type=choice.type, name=api_name))
            break

    if not resolved:
        raise ToolResolutionError(
            "no eligible allowed tool found",
            hint="Allowed tools must name a declared function or custom tool.",
        )
    return resolved
