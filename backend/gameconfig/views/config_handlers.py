"""Public configuration endpoints used by game clients."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from starlette.responses import JSONResponse

from gameconfig.views.common import client_identifier, error_response, extract_api_key
from shared.errors import GameConfigError, StorageUnavailable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response

    from gameconfig.service import ConfigService
    from gameconfig.server.settings import GameConfigSettings

logger = structlog.get_logger()


async def get_config(request: Request) -> Response:
    """GET|POST /config - return the caller's game configuration.

    The request is counted against the client's rate limit before the key is
    even parsed, so malformed and unknown keys cost the same as valid ones.
    """
    service: ConfigService = request.app.state.config_service
    return await _serve_config(request, service.get_config)


async def get_config_value(request: Request) -> Response:
    """GET|POST /config/{key} - return a single entry as ``{"config": {key: value}}``.

    A key that is missing or inactive for the caller's game is a 404.
    """
    service: ConfigService = request.app.state.config_service
    config_key = request.path_params["key"]

    async def lookup(raw_key: str | None) -> dict[str, Any]:
        return {config_key: await service.get_config_value(raw_key, config_key)}

    return await _serve_config(request, lookup)


async def _serve_config(
    request: Request,
    lookup: Callable[[str | None], Awaitable[dict[str, Any]]],
) -> Response:
    service: ConfigService = request.app.state.config_service
    settings: GameConfigSettings = request.app.state.settings

    client_id = client_identifier(request, trust_forwarded_for=settings.trust_forwarded_for)
    try:
        decision = service.admit(client_id)
    except GameConfigError as exc:
        return error_response(exc)

    headers = decision.headers()
    try:
        raw_key = await extract_api_key(request)
        config = await lookup(raw_key)
    except GameConfigError as exc:
        if isinstance(exc, StorageUnavailable):
            logger.error("config request failed", client=client_id, error=str(exc))
        return error_response(exc, headers)

    return JSONResponse({"success": True, "config": config}, headers=headers)
