"""Starlette AuthenticationBackend that validates admin bearer tokens."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.authentication import AuthCredentials, AuthenticationBackend

from gameconfig.auth.models import AuthenticatedAdmin

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from shared.auth.service import AdminAuthService

_BEARER_PREFIX = "bearer "


def bearer_token(conn: HTTPConnection) -> str | None:
    """Return the token from ``Authorization: Bearer <token>``, if present."""
    header = conn.headers.get("authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    return header[len(_BEARER_PREFIX) :].strip() or None


class BearerSessionBackend(AuthenticationBackend):
    """Authenticate admin requests via an opaque session token.

    Only ``/admin`` paths are considered: public config clients authenticate
    with API keys inside the config handlers instead.
    """

    def __init__(self, auth_service: AdminAuthService) -> None:
        self._auth_service = auth_service

    async def authenticate(
        self,
        conn: HTTPConnection,
    ) -> tuple[AuthCredentials, AuthenticatedAdmin] | None:
        if not conn.url.path.startswith("/admin"):
            return None
        token = bearer_token(conn)
        session = self._auth_service.validate_session(token)
        if session is None or token is None:
            return None
        return AuthCredentials(["authenticated"]), AuthenticatedAdmin(
            user_id=session.user_id,
            username=session.username,
            token=token,
        )
