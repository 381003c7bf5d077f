"""Request parsing and error rendering shared by the public and admin handlers."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from starlette.responses import JSONResponse

from shared.errors import MalformedRequestBody, RateLimited

if TYPE_CHECKING:
    from starlette.requests import Request

    from shared.errors import GameConfigError

API_KEY_HEADER = "x-api-key"
API_KEY_FIELD = "api_key"

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _reject_constant(name: str) -> Any:  # noqa: ANN401
    raise ValueError(f"non-standard JSON constant {name}")


def error_response(exc: GameConfigError, headers: dict[str, str] | None = None) -> JSONResponse:
    """Render a domain error as ``{"error": <public message>}``."""
    merged = dict(headers or {})
    if isinstance(exc, RateLimited):
        merged.update(exc.headers)
    return JSONResponse({"error": exc.public_message}, status_code=int(exc.status_code), headers=merged or None)


async def parse_json_body(request: Request, *, allow_empty: bool = False) -> dict[str, Any]:
    """Parse the request body as a JSON object.

    Raises MalformedRequestBody for invalid JSON or a non-object body. An
    empty body yields ``{}`` when allow_empty is set.
    """
    raw_body = await request.body()
    if not raw_body.strip():
        if allow_empty:
            return {}
        raise MalformedRequestBody
    try:
        body = json.loads(raw_body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedRequestBody from exc
    if not isinstance(body, dict):
        raise MalformedRequestBody
    return body


def client_identifier(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Identify the caller for rate limiting: the peer address, or the first
    X-Forwarded-For hop when the deployment sits behind a trusted proxy."""
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return first_hop
    if request.client is not None:
        return request.client.host
    return "unknown"


async def extract_api_key(request: Request) -> str | None:
    """Find the raw API key: X-API-Key header, then ``api_key`` query
    parameter, then ``api_key`` in a JSON or form POST body.

    A present but non-string value counts as missing.
    """
    header_key = request.headers.get(API_KEY_HEADER)
    if header_key:
        return header_key
    query_key = request.query_params.get(API_KEY_FIELD)
    if query_key:
        return query_key
    if request.method != "POST":
        return None

    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type in _FORM_CONTENT_TYPES:
        form = await request.form()
        value: Any = form.get(API_KEY_FIELD)
    else:
        body = await parse_json_body(request, allow_empty=True)
        value = body.get(API_KEY_FIELD)
    return value if isinstance(value, str) and value else None
