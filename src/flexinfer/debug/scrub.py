"""Redaction of captured payloads.

Scrubbing walks decoded-JSON values (dicts, lists, scalars). Free-form text
fields and base64 payloads are replaced by length markers; ids, roles,
statuses, counts and other structure are kept.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
import dataclasses
import json
import re
import shlex
from typing import Any

REDACTED = "[redacted]"

# Keys compared after lower-casing and dropping underscores.
_CONTENT_KEYS = frozenset(
    {
        "text",
        "thinking",
        "content",
        "partialjson",
        "refusal",
        "arguments",
        "system",
        "instructions",
        "prompt",
        "citedtext",
        "renderedcontent",
        "additionalcontext",
    }
)
_BASE64_KEYS = frozenset(
    {
        "data",
        "imagedata",
        "filedata",
        "b64json",
        "encryptedcontent",
        "encryptedindex",
        "signature",
    }
)
_SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "x-api-key",
        "api-key",
        "x-goog-api-key",
        "cookie",
        "set-cookie",
    }
)

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/_-]+={0,2}$")
_MIN_BASE64_LEN = 256


def _norm_key(key: Any) -> str:
    return str(key).lower().replace("_", "")


def _looks_like_base64(value: str) -> bool:
    if value.startswith("data:") and ";base64," in value[:100]:
        return True
    return len(value) >= _MIN_BASE64_LEN and bool(_BASE64_RE.match(value))


def _content_marker(value: str) -> str:
    return f"[redacted: {len(value)} chars]"


def _base64_marker(value: str) -> str:
    return f"[base64: {len(value)} chars]"


def scrub_any_for_debug(value: Any, strip_content: bool) -> Any:
    """Return a copy of *value* with bulky or sensitive payloads replaced.

    When *strip_content* is False the value is returned unchanged.
    """
    if not strip_content:
        return value
    return _scrub(value, key=None)


def _scrub(value: Any, key: str | None) -> Any:
    if isinstance(value, Mapping):
        return {k: _scrub(v, _norm_key(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub(v, key) for v in value]
    if not isinstance(value, str) or not value:
        return value
    if key in _BASE64_KEYS or _looks_like_base64(value):
        return _base64_marker(value)
    if key in _CONTENT_KEYS:
        return _content_marker(value)
    return value


def redact_headers(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy *headers*, masking credentials whatever the scrub setting."""
    if not headers:
        return {}
    return {
        k: (REDACTED if str(k).lower() in _SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


def _json_default(obj: Any) -> Any:
    dump = getattr(obj, "model_dump", None)
    if callable(dump):
        return dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return str(obj)


def to_plain(obj: Any) -> Any:
    """Convert SDK objects, models and JSON text into decoded-JSON shape."""
    if obj is None:
        return None
    if isinstance(obj, (bytes, bytearray)):
        obj = bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, str):
        try:
            return json.loads(obj)
        except ValueError:
            return obj
    return json.loads(json.dumps(obj, default=_json_default))


def build_curl_command(
    method: str, url: str, headers: Mapping[str, Any], body: Any
) -> str:
    """Reconstruct a shell command equivalent to a captured request."""
    parts = ["curl", "-X", method.upper(), shlex.quote(url)]
    for name, value in headers.items():
        parts.extend(["-H", shlex.quote(f"{name}: {value}")])
    if body is not None:
        text = body if isinstance(body, str) else json.dumps(body)
        parts.extend(["--data-raw", shlex.quote(text)])
    return " ".join(parts)
