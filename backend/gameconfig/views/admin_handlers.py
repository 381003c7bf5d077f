"""Admin JSON API: login, game management, and configuration entries."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.responses import JSONResponse, Response

from gameconfig.types import (
    CreateConfigRequest,
    CreateGameRequest,
    LoginRequest,
    UpdateConfigRequest,
    UpdateGameRequest,
)
from gameconfig.views.common import client_identifier, error_response, parse_json_body
from shared.auth.service import AuthError
from shared.errors import GameConfigError

if TYPE_CHECKING:
    from starlette.requests import Request

    from gameconfig.admin import AdminService
    from gameconfig.rate_limit import LoginThrottle
    from gameconfig.server.settings import GameConfigSettings
    from shared.auth.service import AdminAuthService
    from shared.dal.models import ConfigEntry

logger = structlog.get_logger()


def _validation_error(exc: ValidationError) -> JSONResponse:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "body"
    return JSONResponse({"error": f"{field}: {first['msg']}"}, status_code=HTTPStatus.BAD_REQUEST)


def _entry_view(entry: ConfigEntry) -> dict[str, object]:
    return entry.model_dump()


def _admin_service(request: Request) -> AdminService:
    return request.app.state.admin_service


async def login(request: Request) -> Response:
    """POST /admin/login {username, password} - issue a bearer session token."""
    auth_service: AdminAuthService = request.app.state.auth_service
    throttle: LoginThrottle = request.app.state.login_throttle
    settings: GameConfigSettings = request.app.state.settings

    client_id = client_identifier(request, trust_forwarded_for=settings.trust_forwarded_for)
    if not throttle.consume(client_id):
        logger.warning("admin login throttled", client=client_id)
        return JSONResponse({"error": "Too many login attempts"}, status_code=HTTPStatus.TOO_MANY_REQUESTS)

    try:
        req = LoginRequest.model_validate(await parse_json_body(request))
    except GameConfigError as exc:
        return error_response(exc)
    except ValidationError as exc:
        return _validation_error(exc)

    try:
        session = await auth_service.login(req.username, req.password)
    except AuthError as e:
        return JSONResponse({"error": str(e)}, status_code=HTTPStatus.UNAUTHORIZED)

    return JSONResponse({"token": session.session_id, "expires_at": session.expires_at})


async def logout(request: Request) -> Response:
    """POST /admin/logout - revoke the caller's session token."""
    auth_service: AdminAuthService = request.app.state.auth_service
    auth_service.logout(request.user.token)
    return Response(status_code=HTTPStatus.NO_CONTENT)


async def list_games(request: Request) -> Response:
    try:
        games = await _admin_service(request).list_games()
    except GameConfigError as exc:
        return error_response(exc)
    return JSONResponse({"games": [g.public_view() for g in games]})


async def create_game(request: Request) -> Response:
    """POST /admin/games {name} - the API key in the response is never shown again."""
    try:
        req = CreateGameRequest.model_validate(await parse_json_body(request))
        game, raw_key = await _admin_service(request).create_game(req.name)
    except GameConfigError as exc:
        return error_response(exc)
    except ValidationError as exc:
        return _validation_error(exc)
    return JSONResponse({"game": game.public_view(), "api_key": raw_key}, status_code=HTTPStatus.CREATED)


async def update_game(request: Request) -> Response:
    """PATCH /admin/games/{game_id} {active}"""
    game_id = request.path_params["game_id"]
    try:
        req = UpdateGameRequest.model_validate(await parse_json_body(request))
        game = await _admin_service(request).set_game_active(game_id, active=req.active)
    except GameConfigError as exc:
        return error_response(exc)
    except ValidationError as exc:
        return _validation_error(exc)
    return JSONResponse({"game": game.public_view()})


async def regenerate_key(request: Request) -> Response:
    game_id = request.path_params["game_id"]
    try:
        game, raw_key = await _admin_service(request).regenerate_key(game_id)
    except GameConfigError as exc:
        return error_response(exc)
    return JSONResponse({"game": game.public_view(), "api_key": raw_key})


async def delete_game(request: Request) -> Response:
    game_id = request.path_params["game_id"]
    try:
        await _admin_service(request).delete_game(game_id)
    except GameConfigError as exc:
        return error_response(exc)
    return Response(status_code=HTTPStatus.NO_CONTENT)


async def list_configs(request: Request) -> Response:
    game_id = request.path_params["game_id"]
    try:
        entries = await _admin_service(request).list_configs(game_id)
    except GameConfigError as exc:
        return error_response(exc)
    return JSONResponse({"configs": [_entry_view(e) for e in entries]})


async def create_config(request: Request) -> Response:
    """POST /admin/games/{game_id}/configs {key, value, description?, active?}"""
    game_id = request.path_params["game_id"]
    try:
        req = CreateConfigRequest.model_validate(await parse_json_body(request))
        entry = await _admin_service(request).create_config(
            game_id, req.key, req.value, req.description, active=req.active
        )
    except GameConfigError as exc:
        return error_response(exc)
    except ValidationError as exc:
        return _validation_error(exc)
    return JSONResponse(_entry_view(entry), status_code=HTTPStatus.CREATED)


async def update_config(request: Request) -> Response:
    """PUT /admin/configs/{entry_id} - omitted fields are left unchanged."""
    entry_id = request.path_params["entry_id"]
    try:
        req = UpdateConfigRequest.model_validate(await parse_json_body(request))
        entry = await _admin_service(request).update_config(
            entry_id,
            key=req.key,
            value=req.value,
            description=req.description,
            active=req.active,
        )
    except GameConfigError as exc:
        return error_response(exc)
    except ValidationError as exc:
        return _validation_error(exc)
    return JSONResponse(_entry_view(entry))


async def delete_config(request: Request) -> Response:
    entry_id = request.path_params["entry_id"]
    try:
        await _admin_service(request).delete_config(entry_id)
    except GameConfigError as exc:
        return error_response(exc)
    return Response(status_code=HTTPStatus.NO_CONTENT)
