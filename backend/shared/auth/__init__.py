"""API key handling and admin authentication shared by the service and tooling."""

from shared.auth.models import AdminUser, AuthSession
from shared.auth.service import AdminAuthService, AuthError
from shared.auth.session_store import AuthSessionStore
from shared.auth.settings import AuthSettings

__all__ = [
    "AdminAuthService",
    "AdminUser",
    "AuthError",
    "AuthSession",
    "AuthSessionStore",
    "AuthSettings",
]
