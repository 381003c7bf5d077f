"""Tests for auth policy helpers and route validation."""

from __future__ import annotations

import pytest
from starlette.authentication import AuthCredentials
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from gameconfig.auth.policy import AUTH_POLICY_ATTR, protected_api, public_route, validate_route_auth_policy


def _make_request(*, authenticated: bool) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/admin/games",
        "query_string": b"",
        "headers": [],
        "auth": AuthCredentials(["authenticated"] if authenticated else []),
    }
    return Request(scope)


async def _dummy_handler(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})


def _sync_dummy_handler(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})


class TestProtectedApi:
    async def test_unauthenticated_raises_401(self) -> None:
        wrapped = protected_api(_dummy_handler)
        with pytest.raises(HTTPException) as exc_info:
            await wrapped(_make_request(authenticated=False))
        assert exc_info.value.status_code == 401

    async def test_authenticated_passes_through(self) -> None:
        wrapped = protected_api(_dummy_handler)
        result = await wrapped(_make_request(authenticated=True))
        assert result.status_code == 200

    def test_sets_marker(self) -> None:
        assert getattr(protected_api(_dummy_handler), AUTH_POLICY_ATTR) == "protected_api"


class TestPublicRoute:
    async def test_async_wrapper(self) -> None:
        wrapped = public_route(_dummy_handler)
        assert getattr(wrapped, AUTH_POLICY_ATTR) == "public"
        result = await wrapped(_make_request(authenticated=False))
        assert result.status_code == 200

    def test_sync_wrapper(self) -> None:
        wrapped = public_route(_sync_dummy_handler)
        assert getattr(wrapped, AUTH_POLICY_ATTR) == "public"
        assert wrapped(_make_request(authenticated=False)).status_code == 200

    def test_marker_not_leaked_to_original(self) -> None:
        public_route(_dummy_handler)
        assert not hasattr(_dummy_handler, AUTH_POLICY_ATTR)


class TestValidateRouteAuthPolicy:
    def test_all_classified(self) -> None:
        routes = [
            Route("/health", public_route(_dummy_handler)),
            Route("/admin/games", protected_api(_dummy_handler)),
            Mount("/static", routes=[]),
        ]
        validate_route_auth_policy(routes)

    def test_unclassified_route_raises(self) -> None:
        routes = [
            Route("/health", public_route(_dummy_handler)),
            Route("/admin/secret", _dummy_handler, name="secret"),
        ]
        with pytest.raises(RuntimeError, match=r"/admin/secret \(secret\)"):
            validate_route_auth_policy(routes)
