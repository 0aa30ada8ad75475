"""Anthropic Messages API provider."""

from __future__ import annotations

import asyncio
from dataclasses import replace
import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from flexinfer.config import (
    DEFAULT_ANTHROPIC_PATH_PREFIX,
    ProviderConfig,
    ProviderSDKType,
)
from flexinfer.content import (
    Citation,
    CitationKind,
    ContentItem,
    Message,
    ReasoningContent,
    Role,
    Status,
    URLCitation,
)
from flexinfer.debug.span import CompletionSpanEnd, CompletionSpanStart
from flexinfer.emptiness import drop_empty_turns
from flexinfer.errors import APIError, ConfigurationError, FlexinferError
from flexinfer.models import (
    CompletionOptions,
    CompletionResponse,
    Error,
    OutputFormatKind,
    StreamContentKind,
    Usage,
)
from flexinfer.providers._errors import wrap_provider_error
from flexinfer.providers._tool_names import (
    build_tool_name_mapping,
    resolve_allowed_tools,
    sanitize_tool_name,
)
from flexinfer.providers.anthropic_thinking import (
    analyze_thinking,
    is_signed_or_redacted,
    resolve_thinking,
)
from flexinfer.providers.base import ProviderCapabilities
from flexinfer.streaming import StreamEmitter
from flexinfer.tools import (
    ToolCall,
    ToolOutput,
    ToolPolicyMode,
    ToolType,
    WebSearchCallItem,
    WebSearchCallKind,
    WebSearchCallSearch,
    WebSearchOutputError,
    WebSearchOutputItem,
    WebSearchOutputKind,
    WebSearchOutputSearch,
)
from flexinfer.turns import InputKind, OutputTurn

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx

    from flexinfer.content import CacheControl, FileItem, ImageItem
    from flexinfer.debug.span import CompletionDebugger, CompletionSpan
    from flexinfer.models import CompletionRequest, ModelParam
    from flexinfer.providers._tool_names import NamedTool
    from flexinfer.tools import ToolChoice, ToolOutputItem, ToolPolicy
    from flexinfer.turns import InputTurn

log = logging.getLogger(__name__)

_ANTHROPIC_MAX_TOKENS = 8192
_WEB_SEARCH_TOOL_TYPE = "web_search_20250305"
_WEB_SEARCH_TOOL_NAME = "web_search"


class AnthropicProvider:
    """Anthropic Messages API provider.

    Example:
        provider = AnthropicProvider(
            ProviderConfig(name="anthropic", sdk_type=ProviderSDKType.ANTHROPIC),
            debugger=HTTPCompletionDebugger(),
        )
        provider.set_api_key(key)
        response = await provider.fetch_completion(request)
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        debugger: CompletionDebugger | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if config.sdk_type is not ProviderSDKType.ANTHROPIC:
            raise ConfigurationError(
                f"AnthropicProvider cannot serve sdk_type {config.sdk_type.value!r}",
                hint="Use ProviderSDKType.ANTHROPIC.",
            )
        self._config = config
        self._debugger = debugger
        self._base_http_client = http_client
        self._client: Any = None
        # Guards credential rotation against concurrent client (re)builds.
        self._lock = threading.Lock()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Return supported feature flags."""
        return ProviderCapabilities(
            streaming=True,
            reasoning=True,
            tools=True,
            web_search=True,
            structured_outputs=True,
        )

    def init(self) -> None:
        """Build the async SDK client (idempotent)."""
        with self._lock:
            if self._client is None:
                self._client = self._build_client(self._config)

    def _build_client(self, config: ProviderConfig) -> Any:
        try:
            from anthropic import AsyncAnthropic
        except ImportError as e:
            raise ConfigurationError(
                "anthropic package not installed",
                hint="pip install anthropic",
            ) from e

        http_client = self._base_http_client
        if self._debugger is not None:
            http_client = self._debugger.http_client(http_client)

        kwargs: dict[str, Any] = {
            "base_url": _base_url(config),
            "timeout": config.timeout_s,
        }
        headers = dict(config.default_headers)
        auth = _auth_kwargs(config)
        headers.update(auth.pop("default_headers", {}))
        kwargs.update(auth)
        if headers:
            kwargs["default_headers"] = headers
        if http_client is not None:
            kwargs["http_client"] = http_client
        return AsyncAnthropic(**kwargs)

    def _get_client(self) -> Any:
        if self._client is None:
            self.init()
        return self._client

    def is_configured(self) -> bool:
        return self._config.is_configured

    def set_api_key(self, api_key: str) -> None:
        """Rotate the API key; calls already in flight keep the old one."""
        if not api_key or not api_key.strip():
            raise ConfigurationError(
                "api_key must be non-empty",
                hint="Pass the provider API key, not an empty string.",
            )
        with self._lock:
            self._config = replace(self._config, api_key=api_key)
            if self._client is not None:
                self._client = self._client.with_options(**_auth_kwargs(self._config))

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            await client.close()

    async def fetch_completion(
        self,
        request: CompletionRequest,
        options: CompletionOptions | None = None,
    ) -> CompletionResponse:
        """Run one Messages API call and normalize the result.

        Raises:
            APIError: The SDK call failed or timed out. ``err.response``
                carries the normalized response with any captured
                ``debug_details``.
            StreamAbortedError: The stream handler raised.
            ToolResolutionError: ``tool_policy.allowed_tools`` matched nothing.
            ConfigurationError: The provider has no API key, or the request
                carries invalid extra parameters.
            asyncio.CancelledError: The call was cancelled.

        Once a debug span is open, any of these carries its output on
        ``err.debug_details``.
        """
        options = options or CompletionOptions()
        model_param = request.model_param
        if not self.is_configured():
            raise ConfigurationError(
                f"provider {self._config.name!r} has no API key",
                hint="Call set_api_key() before fetching completions.",
            )
        client = self._get_client()

        span = self._start_span(request, options)
        raw: Any = None
        try:
            params, name_map = build_message_params(request)
            emitter = StreamEmitter(
                options.stream_handler,
                provider=self._config.name,
                model=model_param.name,
                config=options.stream_config,
            )
            if model_param.timeout > 0:
                async with asyncio.timeout(model_param.timeout):
                    raw = await _call(client, params, model_param, emitter)
            else:
                raw = await _call(client, params, model_param, emitter)
            response = parse_message(raw, name_map, request.tool_choices)
        except asyncio.CancelledError as e:
            details = _end_span(span, CompletionSpanEnd(provider_response=raw, error=e))
            e.debug_details = details  # type: ignore[attr-defined]
            raise
        except APIError as e:
            details = _end_span(span, CompletionSpanEnd(provider_response=raw, error=e))
            err = wrap_provider_error(
                e,
                provider=self._config.name,
                phase="fetch_completion",
                allow_network_errors=True,
                response=_error_response(e, details),
            )
            err.debug_details = details
            raise err
        except FlexinferError as e:
            # Local failures (tool resolution, stream abort, bad params) keep their type.
            e.debug_details = _end_span(span, CompletionSpanEnd(provider_response=raw, error=e))
            raise
        except Exception as e:
            details = _end_span(span, CompletionSpanEnd(provider_response=raw, error=e))
            message = (
                f"{self._config.name} request exceeded {model_param.timeout}s deadline"
                if isinstance(e, TimeoutError)
                else f"{self._config.name} fetch_completion failed"
            )
            err = wrap_provider_error(
                e,
                provider=self._config.name,
                phase="fetch_completion",
                allow_network_errors=True,
                message=message,
                response=_error_response(e, details),
            )
            err.debug_details = details
            raise err from e

        details = _end_span(
            span,
            CompletionSpanEnd(
                provider_response=raw,
                response=response,
                nil_response=not response.outputs,
            ),
        )
        if details is not None:
            response = response.model_copy(update={"debug_details": details})
        return response

    def _start_span(
        self, request: CompletionRequest, options: CompletionOptions
    ) -> CompletionSpan | None:
        if self._debugger is None:
            return None
        return self._debugger.start_span(
            CompletionSpanStart(
                provider=self._config.name,
                model=request.model_param.name,
                request=request,
                options=options,
            )
        )


def _end_span(span: CompletionSpan | None, info: CompletionSpanEnd) -> dict[str, Any] | None:
    if span is None:
        return None
    return span.end(info)


def _error_response(exc: BaseException, details: dict[str, Any] | None) -> CompletionResponse:
    code = getattr(exc, "status_code", None)
    return CompletionResponse(
        error=Error(code=str(code) if code is not None else type(exc).__name__, message=str(exc)),
        debug_details=details,
    )


def _base_url(config: ProviderConfig) -> str:
    """Derive the SDK base URL; the SDK appends ``/v1/messages`` itself."""
    prefix = config.path_prefix.rstrip("/")
    if not prefix.endswith(DEFAULT_ANTHROPIC_PATH_PREFIX):
        raise ConfigurationError(
            f"path_prefix {config.path_prefix!r} must end with {DEFAULT_ANTHROPIC_PATH_PREFIX!r}",
            hint="The Anthropic SDK always posts to <base_url>/v1/messages.",
        )
    return config.origin + prefix[: -len(DEFAULT_ANTHROPIC_PATH_PREFIX)]


def _auth_kwargs(config: ProviderConfig) -> dict[str, Any]:
    header = config.api_key_header.lower()
    if header == "x-api-key":
        return {"api_key": config.api_key}
    if header == "authorization":
        return {"auth_token": config.api_key.removeprefix("Bearer ").strip()}
    return {
        "api_key": config.api_key,
        "default_headers": {config.api_key_header: config.api_key},
    }


async def _call(
    client: Any,
    params: dict[str, Any],
    model_param: ModelParam,
    emitter: StreamEmitter,
) -> Any:
    if not (model_param.stream and emitter.enabled):
        return await client.messages.create(**params)

    async with client.messages.stream(**params) as stream:
        async for event in stream:
            if getattr(event, "type", None) != "content_block_delta":
                continue
            delta = event.delta
            delta_type = getattr(delta, "type", None)
            if delta_type == "text_delta":
                await emitter.emit(StreamContentKind.TEXT, delta.text)
            elif delta_type == "thinking_delta":
                await emitter.emit(StreamContentKind.THINKING, delta.thinking)
        await emitter.flush()
        return await stream.get_final_message()


# =============================================================================
# Request building
# =============================================================================


def build_message_params(
    request: CompletionRequest,
) -> tuple[dict[str, Any], dict[str, ToolChoice]]:
    """Build ``messages.create`` keyword arguments for *request*.

    Returns the params and the provider-name -> ToolChoice map used to
    translate tool calls in the response back to their declarations.
    """
    model_param = request.model_param
    inputs = drop_empty_turns(request.inputs)

    function_tools = [
        t for t in request.tool_choices if t.type in (ToolType.FUNCTION, ToolType.CUSTOM)
    ]
    web_search_tools = [t for t in request.tool_choices if t.type is ToolType.WEB_SEARCH]
    named, name_map = build_tool_name_mapping(function_tools)
    api_name_by_id = {n.choice.id: n.name for n in named if n.choice.id}

    system_parts, messages = build_messages(inputs, api_name_by_id)
    if model_param.system_prompt.strip():
        system_parts.insert(0, model_param.system_prompt)

    params: dict[str, Any] = {
        "model": model_param.name,
        "messages": messages,
        "max_tokens": model_param.max_output_length or _ANTHROPIC_MAX_TOKENS,
    }
    if system_parts:
        params["system"] = "\n\n".join(system_parts)
    if model_param.stop_sequences:
        params["stop_sequences"] = list(model_param.stop_sequences)
    if model_param.temperature is not None:
        params["temperature"] = model_param.temperature

    effective = resolve_thinking(model_param, analyze_thinking(inputs))
    effective.apply(params)
    if effective.enabled and not effective.adaptive:
        # budget_tokens must stay below max_tokens.
        params["max_tokens"] = max(
            params["max_tokens"], effective.budget_tokens + _ANTHROPIC_MAX_TOKENS // 8
        )

    _apply_output_param(params, model_param)

    tools = [_tool_definition(n) for n in named]
    tools.extend(_web_search_definition(t) for t in web_search_tools)
    if tools:
        params["tools"] = tools
        tool_choice, allowed_names = _map_tool_policy(request.tool_policy, name_map)
        if allowed_names is not None:
            params["tools"] = [t for t in tools if t.get("name") in allowed_names]
        if tool_choice is not None:
            params["tool_choice"] = tool_choice

    if model_param.additional_parameters_raw_json:
        params["extra_body"] = _parse_extra_body(model_param.additional_parameters_raw_json)

    return params, name_map


def _apply_output_param(params: dict[str, Any], model_param: ModelParam) -> None:
    output_param = model_param.output_param
    if output_param is None:
        return
    output_config: dict[str, Any] = params.setdefault("output_config", {})
    fmt = output_param.format
    if fmt is not None and fmt.kind == OutputFormatKind.JSON_SCHEMA and fmt.json_schema_param:
        output_config["format"] = {
            "type": "json_schema",
            "schema": fmt.json_schema_param.schema_ or {"type": "object"},
        }
    if output_param.verbosity is not None:
        output_config["effort"] = output_param.verbosity.value
    if not output_config:
        del params["output_config"]


def _parse_extra_body(raw: str) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(
            "additionalParametersRawJSON is not valid JSON",
            hint="Pass a JSON object, e.g. '{\"top_k\": 5}'.",
        ) from e
    if not isinstance(value, dict):
        raise ConfigurationError(
            "additionalParametersRawJSON must be a JSON object",
            hint="Pass a JSON object, e.g. '{\"top_k\": 5}'.",
        )
    return value


def _cache_control(cc: CacheControl | None) -> dict[str, Any] | None:
    if cc is None or cc.cache_control_ephemeral is None:
        return None
    out: dict[str, Any] = {"type": "ephemeral"}
    if cc.cache_control_ephemeral.ttl:
        out["ttl"] = cc.cache_control_ephemeral.ttl
    return out


def _tool_definition(named: NamedTool) -> dict[str, Any]:
    choice = named.choice
    tool: dict[str, Any] = {
        "name": named.name,
        "description": choice.description_or_name(),
        "input_schema": choice.arguments or {"type": "object", "properties": {}},
    }
    cc = _cache_control(choice.cache_control)
    if cc is not None:
        tool["cache_control"] = cc
    return tool


def _web_search_definition(choice: ToolChoice) -> dict[str, Any]:
    tool: dict[str, Any] = {"type": _WEB_SEARCH_TOOL_TYPE, "name": _WEB_SEARCH_TOOL_NAME}
    args = choice.web_search_arguments
    if args is not None:
        if args.max_uses > 0:
            tool["max_uses"] = args.max_uses
        if args.allowed_domains:
            tool["allowed_domains"] = list(args.allowed_domains)
        if args.blocked_domains:
            tool["blocked_domains"] = list(args.blocked_domains)
        loc = args.user_location
        if loc is not None:
            location = {
                k: v
                for k, v in (
                    ("city", loc.city),
                    ("country", loc.country),
                    ("region", loc.region),
                    ("timezone", loc.timezone),
                )
                if v
            }
            if location:
                tool["user_location"] = {"type": "approximate", **location}
    cc = _cache_control(choice.cache_control)
    if cc is not None:
        tool["cache_control"] = cc
    return tool


def _map_tool_policy(
    policy: ToolPolicy | None, name_map: dict[str, ToolChoice]
) -> tuple[dict[str, Any] | None, set[str] | None]:
    """Map a ToolPolicy to ``tool_choice``, plus the tool names to keep (None: all)."""
    if policy is None:
        return None, None
    if policy.mode == ToolPolicyMode.NONE:
        return {"type": "none"}, None

    allowed_names: set[str] | None = None
    choice: dict[str, Any]
    if policy.mode == ToolPolicyMode.AUTO:
        choice = {"type": "auto"}
    elif policy.allowed_tools:
        resolved = resolve_allowed_tools(policy.allowed_tools, name_map)
        allowed_names = {r.name for r in resolved}
        if policy.mode == ToolPolicyMode.TOOL and len(resolved) == 1:
            choice = {"type": "tool", "name": resolved[0].name}
        else:
            choice = {"type": "any"}
    elif policy.mode == ToolPolicyMode.TOOL:
        if len(name_map) != 1:
            raise ConfigurationError(
                "tool policy mode 'tool' needs allowed_tools when several tools are declared",
                hint="Set ToolPolicy.allowed_tools to the tool the model must call.",
            )
        choice = {"type": "tool", "name": next(iter(name_map))}
    else:
        choice = {"type": "any"}

    if policy.disable_parallel:
        choice["disable_parallel_tool_use"] = True
    return choice, allowed_names


def _append_message(messages: list[dict[str, Any]], role: str, blocks: list[dict[str, Any]]) -> None:
    """Append blocks, merging into the previous message when roles match.

    Anthropic requires strict user/assistant alternation.
    """
    if not blocks:
        return
    if messages and messages[-1]["role"] == role:
        messages[-1]["content"].extend(blocks)
    else:
        messages.append({"role": role, "content": list(blocks)})


def build_messages(
    turns: Sequence[InputTurn], api_name_by_id: dict[str, str] | None = None
) -> tuple[list[str], list[dict[str, Any]]]:
    """Convert input turns to Anthropic messages.

    Returns system/developer texts separately, since Anthropic takes them as
    the top-level ``system`` parameter. Unsigned reasoning is dropped.
    """
    api_name_by_id = api_name_by_id or {}
    system: list[str] = []
    messages: list[dict[str, Any]] = []

    for turn in turns:
        kind = turn.kind
        if kind in (InputKind.INPUT_MESSAGE, InputKind.OUTPUT_MESSAGE):
            message = turn.payload()
            if message.role in (Role.SYSTEM, Role.DEVELOPER):
                text = message.text()
                if text.strip():
                    system.append(text)
                continue
            role = "assistant" if message.role == Role.ASSISTANT else "user"
            blocks = [b for b in map(_content_block, message.contents) if b is not None]
            _apply_block_cache_control(blocks, message.cache_control)
            _append_message(messages, role, blocks)
        elif kind == InputKind.REASONING_MESSAGE:
            reasoning = turn.reasoning_message
            if not is_signed_or_redacted(reasoning):
                log.debug("anthropic: dropping unsigned reasoning turn id=%s", reasoning.id)
                continue
            _append_message(messages, "assistant", _reasoning_blocks(reasoning))
        elif kind in (InputKind.FUNCTION_TOOL_CALL, InputKind.CUSTOM_TOOL_CALL):
            call = turn.payload()
            name = api_name_by_id.get(call.choice_id) or sanitize_tool_name(call.name) or "tool"
            block = {
                "type": "tool_use",
                "id": call.call_id or call.id,
                "name": name,
                "input": _parse_arguments(call.arguments),
            }
            _apply_block_cache_control([block], call.cache_control)
            _append_message(messages, "assistant", [block])
        elif kind == InputKind.WEB_SEARCH_TOOL_CALL:
            call = turn.web_search_tool_call
            _append_message(messages, "assistant", [_server_tool_use_block(call)])
        elif kind == InputKind.WEB_SEARCH_TOOL_OUTPUT:
            output = turn.web_search_tool_output
            _append_message(messages, "assistant", [_web_search_result_block(output)])
        elif kind in (InputKind.FUNCTION_TOOL_OUTPUT, InputKind.CUSTOM_TOOL_OUTPUT):
            output = turn.payload()
            block = {
                "type": "tool_result",
                "tool_use_id": output.call_id,
                "content": [
                    b for b in map(_tool_output_block, output.contents) if b is not None
                ],
            }
            if output.is_error:
                block["is_error"] = True
            _apply_block_cache_control([block], output.cache_control)
            _append_message(messages, "user", [block])

    return system, messages


def _apply_block_cache_control(blocks: list[dict[str, Any]], cc: CacheControl | None) -> None:
    mapped = _cache_control(cc)
    if mapped is not None and blocks:
        blocks[-1]["cache_control"] = mapped


def _parse_arguments(arguments: str) -> Any:
    if not arguments.strip():
        return {}
    try:
        return json.loads(arguments)
    except ValueError:
        log.warning("anthropic: tool call arguments are not valid JSON; sending {}")
        return {}


def _reasoning_blocks(reasoning: ReasoningContent) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    thinking = "".join(reasoning.thinking)
    if reasoning.signature.strip() and thinking.strip():
        blocks.append(
            {"type": "thinking", "thinking": thinking, "signature": reasoning.signature}
        )
    blocks.extend(
        {"type": "redacted_thinking", "data": data}
        for data in reasoning.redacted_thinking
        if data.strip()
    )
    return blocks


def _content_block(item: ContentItem) -> dict[str, Any] | None:
    if item.text_item is not None:
        if not item.text_item.text:
            return None
        return {"type": "text", "text": item.text_item.text}
    if item.refusal_item is not None:
        return {"type": "text", "text": item.refusal_item.refusal} if item.refusal_item.refusal else None
    if item.image_item is not None:
        return _image_block(item.image_item)
    if item.file_item is not None:
        return _document_block(item.file_item)
    return None


def _tool_output_block(item: ToolOutputItem) -> dict[str, Any] | None:
    if item.text_item is not None:
        return {"type": "text", "text": item.text_item.text} if item.text_item.text else None
    if item.image_item is not None:
        return _image_block(item.image_item)
    if item.file_item is not None:
        return _document_block(item.file_item)
    return None


def _image_block(image: ImageItem) -> dict[str, Any] | None:
    if image.image_data:
        source = {
            "type": "base64",
            "media_type": image.image_mime or "image/png",
            "data": image.image_data,
        }
    elif image.image_url:
        source = {"type": "url", "url": image.image_url}
    else:
        return None
    return {"type": "image", "source": source}


def _document_block(file: FileItem) -> dict[str, Any] | None:
    mime = file.file_mime or "application/pdf"
    if file.file_data:
        source = {"type": "base64", "media_type": mime, "data": file.file_data}
    elif file.file_url:
        source = {"type": "url", "url": file.file_url}
    else:
        return None
    block: dict[str, Any] = {"type": "document", "source": source}
    if file.file_name:
        block["title"] = file.file_name
    if file.additional_context:
        block["context"] = file.additional_context
    if file.citation_config is not None and file.citation_config.enabled:
        block["citations"] = {"enabled": True}
    return block


def _server_tool_use_block(call: ToolCall) -> dict[str, Any]:
    tool_input: Any = _parse_arguments(call.arguments)
    for item in call.web_search_call_items:
        if item.search_item is not None:
            tool_input = item.search_item.input or {"query": item.search_item.query}
            break
    return {
        "type": "server_tool_use",
        "id": call.call_id or call.id,
        "name": _WEB_SEARCH_TOOL_NAME,
        "input": tool_input,
    }


def _web_search_result_block(output: ToolOutput) -> dict[str, Any]:
    content: Any = []
    for item in output.web_search_output_items:
        if item.error_item is not None:
            content = {"type": "web_search_tool_result_error", "error_code": item.error_item.code}
            break
        if item.search_item is not None:
            result = {
                "type": "web_search_result",
                "url": item.search_item.url,
                "title": item.search_item.title,
                "encrypted_content": item.search_item.encrypted_content,
            }
            if item.search_item.page_age:
                result["page_age"] = item.search_item.page_age
            content.append(result)
    return {"type": "web_search_tool_result", "tool_use_id": output.call_id, "content": content}


# =============================================================================
# Response parsing
# =============================================================================


def parse_message(
    message: Any,
    name_map: dict[str, ToolChoice],
    tool_choices: Sequence[ToolChoice] = (),
) -> CompletionResponse:
    """Parse an Anthropic Message into a CompletionResponse.

    Consecutive text blocks become one assistant message; every other block
    becomes its own output turn, in the order Anthropic returned them.
    """
    if message is None:
        return CompletionResponse()

    web_search = next((t for t in tool_choices if t.type is ToolType.WEB_SEARCH), None)
    stop_reason = getattr(message, "stop_reason", None)
    status = Status.INCOMPLETE if stop_reason == "max_tokens" else Status.COMPLETED
    outputs: list[OutputTurn] = []
    pending_text: list[ContentItem] = []

    def flush_text() -> None:
        if pending_text:
            outputs.append(
                OutputTurn.message(
                    Message(
                        id=getattr(message, "id", "") or "",
                        role=Role.ASSISTANT,
                        status=status,
                        contents=tuple(pending_text),
                    )
                )
            )
            pending_text.clear()

    for block in getattr(message, "content", None) or []:
        block_type = getattr(block, "type", None)
        if block_type == "text":
            citations = [
                c for c in map(_parse_citation, getattr(block, "citations", None) or []) if c
            ]
            pending_text.append(ContentItem.text(getattr(block, "text", "") or "", *citations))
            continue
        flush_text()
        if block_type == "thinking":
            outputs.append(
                OutputTurn.reasoning(
                    ReasoningContent(
                        signature=getattr(block, "signature", "") or "",
                        thinking=(getattr(block, "thinking", "") or "",),
                        status=status,
                    )
                )
            )
        elif block_type == "redacted_thinking":
            outputs.append(
                OutputTurn.reasoning(
                    ReasoningContent(redacted_thinking=(getattr(block, "data", "") or "",))
                )
            )
        elif block_type == "tool_use":
            api_name = getattr(block, "name", "") or ""
            choice = name_map.get(api_name)
            outputs.append(
                OutputTurn.tool_call(
                    ToolCall(
                        type=choice.type if choice is not None else ToolType.FUNCTION,
                        choice_id=choice.id if choice is not None else "",
                        id=getattr(block, "id", "") or "",
                        call_id=getattr(block, "id", "") or "",
                        name=choice.name if choice is not None else api_name,
                        arguments=json.dumps(getattr(block, "input", None) or {}),
                        status=status,
                    )
                )
            )
        elif block_type == "server_tool_use":
            tool_input = _as_dict(getattr(block, "input", None))
            query = tool_input.get("query")
            outputs.append(
                OutputTurn.tool_call(
                    ToolCall(
                        type=ToolType.WEB_SEARCH,
                        choice_id=web_search.id if web_search is not None else "",
                        id=getattr(block, "id", "") or "",
                        call_id=getattr(block, "id", "") or "",
                        name=web_search.name if web_search is not None else _WEB_SEARCH_TOOL_NAME,
                        arguments=json.dumps(tool_input),
                        web_search_call_items=(
                            WebSearchCallItem(
                                kind=WebSearchCallKind.SEARCH,
                                search_item=WebSearchCallSearch(
                                    query=query if isinstance(query, str) else "",
                                    input=tool_input or None,
                                ),
                            ),
                        ),
                    )
                )
            )
        elif block_type == "web_search_tool_result":
            outputs.append(
                OutputTurn.web_search_output(
                    ToolOutput(
                        type=ToolType.WEB_SEARCH,
                        choice_id=web_search.id if web_search is not None else "",
                        call_id=getattr(block, "tool_use_id", "") or "",
                        name=web_search.name if web_search is not None else _WEB_SEARCH_TOOL_NAME,
                        web_search_output_items=_parse_web_search_content(
                            getattr(block, "content", None)
                        ),
                    )
                )
            )
        else:
            log.debug("anthropic: ignoring unsupported content block type %s", block_type)
    flush_text()

    return CompletionResponse(outputs=tuple(outputs), usage=_parse_usage(message))


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        dumped = dump()
        if isinstance(dumped, dict):
            return dumped
    return {}


def _parse_citation(raw: Any) -> Citation | None:
    url = getattr(raw, "url", None)
    if not isinstance(url, str) or not url:
        return None
    return Citation(
        kind=CitationKind.URL,
        url_citation=URLCitation(
            url=url,
            title=getattr(raw, "title", "") or "",
            cited_text=getattr(raw, "cited_text", "") or "",
            encrypted_index=getattr(raw, "encrypted_index", "") or "",
        ),
    )


def _parse_web_search_content(content: Any) -> tuple[WebSearchOutputItem, ...]:
    if content is None:
        return ()
    if not isinstance(content, list):
        code = getattr(content, "error_code", None)
        return (
            WebSearchOutputItem(
                kind=WebSearchOutputKind.ERROR,
                error_item=WebSearchOutputError(code=str(code or "unknown")),
            ),
        )
    items: list[WebSearchOutputItem] = []
    for result in content:
        url = getattr(result, "url", None)
        if not isinstance(url, str):
            continue
        items.append(
            WebSearchOutputItem(
                kind=WebSearchOutputKind.SEARCH,
                search_item=WebSearchOutputSearch(
                    url=url,
                    title=getattr(result, "title", "") or "",
                    encrypted_content=getattr(result, "encrypted_content", "") or "",
                    page_age=getattr(result, "page_age", "") or "",
                ),
            )
        )
    return tuple(items)


def _parse_usage(message: Any) -> Usage | None:
    raw = getattr(message, "usage", None)
    if raw is None:
        return None

    def _int(name: str) -> int:
        value = getattr(raw, name, None)
        return value if isinstance(value, int) else 0

    uncached = _int("input_tokens") + _int("cache_creation_input_tokens")
    cached = _int("cache_read_input_tokens")
    return Usage(
        input_tokens_total=uncached + cached,
        input_tokens_cached=cached,
        input_tokens_uncached=uncached,
        output_tokens=_int("output_tokens"),
    )
