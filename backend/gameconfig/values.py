"""Configuration value decoding and output filtering.

Stored values are raw text. When a cache artifact is built each value is tried
as JSON; clean decodes become structured values (numbers, booleans, arrays,
objects), anything else stays a plain string. Before a value leaves the public
endpoint every string inside it passes a content-safety filter, since game
clients may render them in naive UI widgets.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

import bleach
import structlog

from shared.errors import InvalidConfigEntry

logger = structlog.get_logger()

# Cheap pre-check: text without anything tag- or script-URL-like is returned
# untouched so ordinary values (including "a < b") keep their exact content.
_MARKUP_HINT = re.compile(r"<[a-zA-Z!/?]|(?:java|vb)script\s*:", re.IGNORECASE)

# Elements whose *content* is executable and must go along with the tags.
_EXECUTABLE_BLOCK = re.compile(
    r"<\s*(script|style|iframe|object|embed|noscript)\b[^>]*>.*?<\s*/\s*\1\s*>",
    re.IGNORECASE | re.DOTALL,
)

_SCRIPT_SCHEME = re.compile(r"(?:java|vb)script\s*:", re.IGNORECASE)


def _reject_constant(name: str) -> Any:  # noqa: ANN401
    # NaN/Infinity are not JSON; keep such values as strings.
    raise ValueError(f"non-standard JSON constant {name}")


def _finite_float(text: str) -> float:
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"number out of range: {text}")
    return number


def decode_value(raw: str) -> Any:  # noqa: ANN401
    """Return the decoded JSON structure of raw, or raw itself when it is not JSON."""
    try:
        return json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)
    except ValueError:
        return raw


def encode_value(value: Any) -> str:  # noqa: ANN401
    """Turn an admin-supplied value into stored text.

    Strings are stored verbatim; any other JSON value is stored as its JSON text
    so it decodes back to the same structure.
    """
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False)
    except ValueError as exc:
        raise InvalidConfigEntry("Configuration value must be a finite JSON value") from exc


def sanitize_text(text: str) -> str:
    """Strip markup that could execute in an HTML context."""
    if not _MARKUP_HINT.search(text):
        return text
    without_blocks = _EXECUTABLE_BLOCK.sub("", text)
    cleaned = bleach.clean(without_blocks, tags=set(), attributes={}, strip=True, strip_comments=True)
    return _SCRIPT_SCHEME.sub("", cleaned)


def sanitize_value(value: Any) -> Any:  # noqa: ANN401
    """Apply sanitize_text to every string inside value (keys included)."""
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    if isinstance(value, dict):
        return {sanitize_text(str(k)): sanitize_value(v) for k, v in value.items()}
    return value


def encoded_size(value: Any) -> int:  # noqa: ANN401
    """Size in bytes of value in the same terms as the write-time limit.

    Strings count their UTF-8 bytes; structured values their compact JSON text.
    """
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    return len(json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))


def filter_config(config: dict[str, Any], *, max_value_bytes: int) -> dict[str, Any]:
    """Sanitize every value and drop the ones that are too large to serve.

    Oversized values are logged and omitted rather than failing the request.
    """
    result: dict[str, Any] = {}
    for key, value in config.items():
        safe = sanitize_value(value)
        size = encoded_size(safe)
        if size > max_value_bytes:
            logger.warning("dropping oversized config value", config_key=key, size=size, limit=max_value_bytes)
            continue
        result[key] = safe
    return result
