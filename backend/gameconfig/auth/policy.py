"""Route auth policy helpers for fail-closed authorization.

Each helper wraps a route endpoint and sets the ``AUTH_POLICY_ATTR`` marker
so that startup validation can verify every route has an explicit auth policy.
"""

from __future__ import annotations

import functools
import inspect
from typing import TYPE_CHECKING

from starlette.authentication import requires
from starlette.routing import Mount, Route

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import BaseRoute

AUTH_POLICY_ATTR = "__auth_policy__"


def protected_api(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Require an admin session; raise 401 for unauthenticated requests."""
    wrapped = requires("authenticated", status_code=401)(endpoint)
    setattr(wrapped, AUTH_POLICY_ATTR, "protected_api")
    return wrapped


def public_route(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Mark endpoint as explicitly public (no admin session required).

    Returns a thin wrapper so the marker lives on the wrapper, not on the
    original callable. This prevents accidental policy leakage when the
    same function object is reused on another route without wrapping.
    """
    if inspect.iscoroutinefunction(endpoint):

        @functools.wraps(endpoint)
        async def async_wrapper(request: Request, **kwargs: str) -> Response:
            return await endpoint(request, **kwargs)

        setattr(async_wrapper, AUTH_POLICY_ATTR, "public")
        return async_wrapper

    @functools.wraps(endpoint)
    def sync_wrapper(request: Request, **kwargs: str) -> Response:
        return endpoint(request, **kwargs)

    setattr(sync_wrapper, AUTH_POLICY_ATTR, "public")
    return sync_wrapper


def validate_route_auth_policy(routes: list[BaseRoute]) -> None:
    """Verify every Route has an auth policy marker. Mount routes are exempt.

    Raises RuntimeError listing all unclassified routes if any are found.
    """
    unclassified: list[str] = []
    for route in routes:
        if isinstance(route, Mount):
            continue
        if isinstance(route, Route) and not hasattr(route.endpoint, AUTH_POLICY_ATTR):
            name = route.name or getattr(route.endpoint, "__name__", "unknown")
            unclassified.append(f"{route.path} ({name})")

    if unclassified:
        details = ", ".join(unclassified)
        msg = f"Unclassified routes missing auth policy: {details}"
        raise RuntimeError(msg)
