"""ASGI middleware for the game config server."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

# JSON-only API: nothing may be framed, scripted or sniffed.
SECURITY_HEADERS: list[tuple[bytes, bytes]] = [
    (b"x-content-type-options", b"nosniff"),
    (b"x-frame-options", b"DENY"),
    (b"referrer-policy", b"no-referrer"),
    (b"content-security-policy", b"default-src 'none'; frame-ancestors 'none'"),
]

# Admin responses carry secrets (session tokens, freshly issued API keys).
_NO_STORE: tuple[bytes, bytes] = (b"cache-control", b"no-store")


class SecurityHeadersMiddleware:
    """Inject standard security headers into every HTTP response.

    Admin and config responses are additionally marked ``no-store``.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        extra_headers = list(SECURITY_HEADERS)
        path: str = scope["path"]
        if path.startswith(("/admin", "/config")):
            extra_headers.append(_NO_STORE)

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.extend(extra_headers)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)


class SlashNormalizationMiddleware:
    """Strip trailing slashes so that /path/ is handled the same as /path.

    Starlette's default ``redirect_slashes=True`` answers the trailing-slash
    variant with a 307 redirect that bypasses authentication, so unauthenticated
    requests to ``/admin/games/`` would get a redirect instead of a 401.
    Rewriting the path before routing avoids duplicate route definitions.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path: str = scope["path"]
            if len(path) > 1 and path.endswith("/"):
                scope["path"] = path.rstrip("/")
        await self.app(scope, receive, send)
