"""Extended-thinking policy for the Anthropic Messages API.

Anthropic constrains when thinking may be toggled within a tool loop:

- With no reasoning anywhere in the history, a conversation whose last user
  turn is a tool result must run with thinking disabled.
- When every reasoning block is signed or redacted, the last user turn is a
  tool result, and the assistant turn that produced the tool call started
  with thinking, thinking must stay enabled.
- Mixed signed/unsigned (or all-unsigned) histories get no override; unsigned
  blocks are dropped when messages are converted.

Signed/redacted blocks present in the prompt additionally require thinking
to be enabled, so a disabled result is flipped back on as a fail-safe unless
the policy explicitly forced it off.

Nothing here raises: unknown reasoning settings mean "not requested".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
import logging
from typing import TYPE_CHECKING, Any

from flexinfer.emptiness import is_turn_empty

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flexinfer.content import ReasoningContent
    from flexinfer.models import ModelParam
    from flexinfer.turns import InputTurn

log = logging.getLogger(__name__)

DEFAULT_THINKING_BUDGET = 1024

# (budget tokens, output effort) per qualitative level; adaptive thinking.
_LEVEL_SETTINGS: dict[str, tuple[int, str]] = {
    "minimal": (1024, "low"),
    "low": (1024, "low"),
    "medium": (2048, "medium"),
    "high": (8192, "high"),
    "xhigh": (16384, "max"),
}


class ThinkingOverride(StrEnum):
    NONE = "none"
    FORCE_ENABLED = "forceEnabled"
    FORCE_DISABLED = "forceDisabled"


@dataclass(frozen=True)
class ThinkingAnalysis:
    """What the conversation history implies for Anthropic thinking."""

    override: ThinkingOverride = ThinkingOverride.NONE
    total_reasoning: int = 0
    signed_or_redacted: int = 0
    unsigned: int = 0
    last_user_is_tool_result: bool = False
    prev_assistant_starts_thinking: bool = False


@dataclass(frozen=True)
class EffectiveThinking:
    """Thinking settings Anthropic will accept for this request."""

    enabled: bool = False
    adaptive: bool = False
    budget_tokens: int = 0
    #: ``output_config.effort``; only set for adaptive thinking.
    effort: str | None = None
    #: Sampling temperature to send; always None while thinking is enabled.
    temperature: float | None = None

    def apply(self, params: dict[str, Any]) -> None:
        """Write these settings into ``messages.create`` keyword arguments."""
        if self.enabled:
            if self.adaptive:
                params["thinking"] = {"type": "adaptive"}
            else:
                params["thinking"] = {
                    "type": "enabled",
                    "budget_tokens": self.budget_tokens,
                }
            if self.effort is not None:
                params.setdefault("output_config", {})["effort"] = self.effort
            # Anthropic rejects temperature alongside thinking.
            params.pop("temperature", None)
            return
        params.pop("thinking", None)
        if self.temperature is not None:
            params["temperature"] = self.temperature


def _kind(turn: Any) -> str:
    kind = getattr(turn, "kind", None)
    return str(getattr(kind, "value", kind))


def is_signed_or_redacted(reasoning: ReasoningContent | None) -> bool:
    """Whether Anthropic will accept *reasoning* replayed as a prompt block."""
    if reasoning is None:
        return False
    if any(s.strip() for s in reasoning.redacted_thinking):
        return True
    if not reasoning.signature.strip():
        return False
    return any(t.strip() for t in reasoning.thinking)


def _is_user_authored(turn: InputTurn) -> tuple[bool, bool]:
    """Return (is user-authored, is a tool result)."""
    if is_turn_empty(turn):
        return False, False
    kind = _kind(turn)
    if kind == "inputMessage":
        message = turn.input_message
        return message is not None and message.role == "user", False
    if kind in ("functionToolOutput", "customToolOutput"):
        return True, True
    return False, False


def _is_assistant_authored(turn: InputTurn) -> bool:
    if is_turn_empty(turn):
        return False
    kind = _kind(turn)
    if kind == "outputMessage":
        message = turn.output_message
        return message is not None and message.role == "assistant"
    # Web search results are assistant blocks in the Anthropic adapter.
    return kind in (
        "reasoningMessage",
        "functionToolCall",
        "customToolCall",
        "webSearchToolCall",
        "webSearchToolOutput",
    )


def _find_last_user_turn(turns: Sequence[InputTurn]) -> tuple[int, bool]:
    for idx in range(len(turns) - 1, -1, -1):
        is_user, is_tool_result = _is_user_authored(turns[idx])
        if is_user:
            return idx, is_tool_result
    return -1, False


def _prev_assistant_starts_with_thinking(
    turns: Sequence[InputTurn], tool_result_idx: int
) -> bool:
    """Whether the assistant turn before *tool_result_idx* opens with signed thinking."""
    if tool_result_idx <= 0 or tool_result_idx >= len(turns):
        return False
    prev_user_idx = -1
    for j in range(tool_result_idx - 1, -1, -1):
        if _is_user_authored(turns[j])[0]:
            prev_user_idx = j
            break
    for turn in turns[prev_user_idx + 1 : tool_result_idx]:
        if not _is_assistant_authored(turn):
            continue
        return _kind(turn) == "reasoningMessage" and is_signed_or_redacted(
            turn.reasoning_message
        )
    return False


def analyze_thinking(turns: Sequence[InputTurn]) -> ThinkingAnalysis:
    """Classify the reasoning in *turns* and pick a thinking override."""
    if not turns:
        return ThinkingAnalysis()

    signed = unsigned = 0
    for turn in turns:
        if _kind(turn) != "reasoningMessage" or is_turn_empty(turn):
            continue
        if is_signed_or_redacted(turn.reasoning_message):
            signed += 1
        else:
            unsigned += 1
    total = signed + unsigned

    last_user_idx, last_user_is_tool_result = _find_last_user_turn(turns)
    prev_starts_thinking = last_user_is_tool_result and (
        _prev_assistant_starts_with_thinking(turns, last_user_idx)
    )

    override = ThinkingOverride.NONE
    if total == 0:
        if last_user_is_tool_result:
            override = ThinkingOverride.FORCE_DISABLED
    elif signed > 0 and unsigned == 0:
        if last_user_is_tool_result and prev_starts_thinking:
            override = ThinkingOverride.FORCE_ENABLED

    analysis = ThinkingAnalysis(
        override=override,
        total_reasoning=total,
        signed_or_redacted=signed,
        unsigned=unsigned,
        last_user_is_tool_result=last_user_is_tool_result,
        prev_assistant_starts_thinking=prev_starts_thinking,
    )
    if override is not ThinkingOverride.NONE:
        log.debug(
            "anthropic: thinking override applied: %s",
            override.value,
            extra={
                "override": override.value,
                "reasoning_total": total,
                "reasoning_signed": signed,
                "reasoning_unsigned": unsigned,
                "last_user_is_tool_result": last_user_is_tool_result,
                "prev_assistant_starts_thinking": prev_starts_thinking,
            },
        )
    return analysis


def requested_thinking(model_param: ModelParam | None) -> tuple[bool, bool, int]:
    """Return (enabled, adaptive, budget) as requested by the caller."""
    reasoning = getattr(model_param, "reasoning", None)
    if reasoning is None:
        return False, False, 0
    if reasoning.type == "hybridWithTokens":
        tokens = reasoning.tokens if isinstance(reasoning.tokens, int) else 0
        return True, False, max(tokens, DEFAULT_THINKING_BUDGET)
    if reasoning.type == "singleWithLevels":
        settings = _LEVEL_SETTINGS.get(str(reasoning.level))
        if settings is None:
            # "none" and unknown levels.
            return False, False, 0
        return True, True, settings[0]
    return False, False, 0


def _effort_for(model_param: ModelParam) -> str | None:
    reasoning = model_param.reasoning
    if reasoning is None or reasoning.type != "singleWithLevels":
        return None
    output_param = model_param.output_param
    if output_param is not None and output_param.verbosity is not None:
        # Explicit verbosity wins; the adapter maps it separately.
        return None
    settings = _LEVEL_SETTINGS.get(str(reasoning.level))
    return settings[1] if settings is not None else None


def resolve_thinking(
    model_param: ModelParam | None, analysis: ThinkingAnalysis
) -> EffectiveThinking:
    """Combine the caller's request with the history analysis."""
    enabled, adaptive, budget = requested_thinking(model_param)

    if analysis.override is ThinkingOverride.FORCE_DISABLED:
        enabled, adaptive, budget = False, False, 0
    elif analysis.override is ThinkingOverride.FORCE_ENABLED:
        # Adaptive stays only if the caller asked for it.
        enabled = True
        if budget <= 0:
            budget = DEFAULT_THINKING_BUDGET

    if (
        analysis.override is not ThinkingOverride.FORCE_DISABLED
        and not enabled
        and analysis.signed_or_redacted > 0
    ):
        log.warning(
            "anthropic: signed/redacted reasoning present in input but thinking "
            "is disabled; enabling thinking as a fail-safe (model=%s)",
            getattr(model_param, "name", ""),
        )
        enabled, adaptive, budget = True, False, DEFAULT_THINKING_BUDGET

    if not enabled:
        return EffectiveThinking(temperature=getattr(model_param, "temperature", None))

    if budget <= 0:
        budget = DEFAULT_THINKING_BUDGET
    effort = _effort_for(model_param) if adaptive and model_param is not None else None
    return EffectiveThinking(
        enabled=True, adaptive=adaptive, budget_tokens=budget, effort=effort
    )
