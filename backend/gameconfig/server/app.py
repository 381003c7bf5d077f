from __future__ import annotations

import contextlib
from http import HTTPStatus
from pathlib import Path
from typing import TYPE_CHECKING, cast

import structlog
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from gameconfig.admin import AdminService
from gameconfig.auth.backend import BearerSessionBackend
from gameconfig.auth.policy import protected_api, public_route, validate_route_auth_policy
from gameconfig.cache import ConfigCache
from gameconfig.rate_limit import (
    FileRateLimitStorage,
    FixedWindowRateLimiter,
    LoginThrottle,
    RateLimitStorage,
    SqliteRateLimitStorage,
)
from gameconfig.server.middleware import SecurityHeadersMiddleware, SlashNormalizationMiddleware
from gameconfig.server.settings import GameConfigSettings, RateLimitBackend
from gameconfig.service import ConfigService
from gameconfig.views import admin_handlers, config_handlers
from gameconfig.views.common import error_response
from shared.auth import AdminAuthService, AuthSessionStore
from shared.auth.password import get_hasher
from shared.auth.settings import AuthSettings
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.db import Database, SqliteAdminUserRepository, SqliteConfigStore
from shared.errors import GameConfigError
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request


async def _http_error_handler(_request: Request, exc: Exception) -> Response:
    """Rewrite HTTP errors to JSON bodies; 401s come from admin routes without a session."""
    http_exc = cast("HTTPException", exc)
    if http_exc.status_code == HTTPStatus.UNAUTHORIZED:
        return JSONResponse({"error": "Authentication required"}, status_code=HTTPStatus.UNAUTHORIZED)
    if http_exc.status_code in {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}:
        return Response(status_code=http_exc.status_code, headers=http_exc.headers)
    return JSONResponse(
        {"error": http_exc.detail or HTTPStatus(http_exc.status_code).phrase},
        status_code=http_exc.status_code,
        headers=http_exc.headers,
    )


async def _domain_error_handler(_request: Request, exc: Exception) -> Response:
    """Last resort for domain errors that escaped a handler."""
    return error_response(cast("GameConfigError", exc))


async def _unhandled_error_handler(request: Request, exc: Exception) -> Response:
    logger.error("unhandled error", path=request.url.path, error=repr(exc))
    return JSONResponse({"error": "Internal server error"}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


def _build_rate_limit_storage(settings: GameConfigSettings, db: Database) -> RateLimitStorage:
    if settings.rate_limit_backend == RateLimitBackend.SQLITE:
        return SqliteRateLimitStorage(db)
    return FileRateLimitStorage(Path(settings.rate_limit_dir))


def create_app(
    settings: GameConfigSettings | None = None,
    auth_settings: AuthSettings | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameConfigSettings()
    if auth_settings is None:  # pragma: no cover
        auth_settings = AuthSettings()

    routes = [
        # Public routes
        Route("/health", public_route(health), methods=["GET"], name="health"),
        Route("/config", public_route(config_handlers.get_config), methods=["GET", "POST"], name="config"),
        Route(
            "/config/{key}",
            public_route(config_handlers.get_config_value),
            methods=["GET", "POST"],
            name="config_value",
        ),
        Route("/admin/login", public_route(admin_handlers.login), methods=["POST"], name="admin_login"),
        # Admin JSON routes (401 JSON when unauthenticated)
        Route("/admin/logout", protected_api(admin_handlers.logout), methods=["POST"], name="admin_logout"),
        Route("/admin/games", protected_api(admin_handlers.list_games), methods=["GET"], name="list_games"),
        Route("/admin/games", protected_api(admin_handlers.create_game), methods=["POST"], name="create_game"),
        Route(
            "/admin/games/{game_id}",
            protected_api(admin_handlers.update_game),
            methods=["PATCH"],
            name="update_game",
        ),
        Route(
            "/admin/games/{game_id}",
            protected_api(admin_handlers.delete_game),
            methods=["DELETE"],
            name="delete_game",
        ),
        Route(
            "/admin/games/{game_id}/regenerate-key",
            protected_api(admin_handlers.regenerate_key),
            methods=["POST"],
            name="regenerate_key",
        ),
        Route(
            "/admin/games/{game_id}/configs",
            protected_api(admin_handlers.list_configs),
            methods=["GET"],
            name="list_configs",
        ),
        Route(
            "/admin/games/{game_id}/configs",
            protected_api(admin_handlers.create_config),
            methods=["POST"],
            name="create_config",
        ),
        Route(
            "/admin/configs/{entry_id}",
            protected_api(admin_handlers.update_config),
            methods=["PUT"],
            name="update_config",
        ),
        Route(
            "/admin/configs/{entry_id}",
            protected_api(admin_handlers.delete_config),
            methods=["DELETE"],
            name="delete_config",
        ),
    ]

    validate_route_auth_policy(routes)

    # Storage, cache and services
    db = Database(settings.database_path, timeout=settings.store_timeout_seconds)
    db.connect()
    store = SqliteConfigStore(db, max_value_bytes=settings.max_value_bytes)
    cache = ConfigCache(Path(settings.cache_dir), store, ttl_seconds=settings.cache_ttl_seconds)
    limiter = FixedWindowRateLimiter(
        _build_rate_limit_storage(settings, db),
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    config_service = ConfigService(store, cache, limiter, max_value_bytes=settings.max_value_bytes)
    admin_service = AdminService(store, cache)

    session_store = AuthSessionStore(ttl_seconds=auth_settings.session_ttl_seconds)
    hasher = get_hasher(auth_settings.password_hasher)
    auth_service = AdminAuthService(SqliteAdminUserRepository(db), session_store, password_hasher=hasher)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        session_store.start_cleanup()
        cache.sweep_temp_files()
        await auth_service.ensure_admin(auth_settings.admin_username, auth_settings.admin_password)
        yield
        await session_store.stop_cleanup()
        db.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={
            HTTPException: _http_error_handler,
            GameConfigError: _domain_error_handler,
            Exception: _unhandled_error_handler,
        },
    )
    app.add_middleware(SlashNormalizationMiddleware)  # type: ignore[arg-type]
    app.add_middleware(AuthenticationMiddleware, backend=BearerSessionBackend(auth_service))  # type: ignore[arg-type]
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-API-Key"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    )
    app.add_middleware(SecurityHeadersMiddleware)  # type: ignore[arg-type]

    app.state.db = db
    app.state.settings = settings
    app.state.auth_settings = auth_settings
    app.state.config_service = config_service
    app.state.admin_service = admin_service
    app.state.auth_service = auth_service
    app.state.login_throttle = LoginThrottle(auth_settings.login_rate_per_second, auth_settings.login_burst)
    app.state.cache = cache

    logger.info("game config server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory gameconfig.server.app:get_app."""
    s = GameConfigSettings()
    auth = AuthSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s, auth_settings=auth)
