"""Admin API authentication: Starlette backend, user model, and route policy."""

from gameconfig.auth.backend import BearerSessionBackend
from gameconfig.auth.models import AuthenticatedAdmin
from gameconfig.auth.policy import protected_api, public_route, validate_route_auth_policy

__all__ = [
    "AuthenticatedAdmin",
    "BearerSessionBackend",
    "protected_api",
    "public_route",
    "validate_route_auth_policy",
]
