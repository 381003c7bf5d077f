"""Admin auth service coordinating account bootstrap, login, and sessions."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from shared.auth.models import AdminUser

if TYPE_CHECKING:
    from shared.auth.models import AuthSession
    from shared.auth.password import PasswordHasher
    from shared.auth.session_store import AuthSessionStore
    from shared.dal.admin_user_repository import AdminUserRepository

logger = structlog.get_logger()

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72  # bcrypt truncates at 72 bytes


class AuthError(Exception):
    """Authentication or authorization failure."""


class AdminAuthService:
    """Coordinate admin account creation, login, and token validation."""

    def __init__(
        self,
        user_repo: AdminUserRepository,
        session_store: AuthSessionStore,
        *,
        password_hasher: PasswordHasher,
    ) -> None:
        self._user_repo = user_repo
        self._session_store = session_store
        self._hasher = password_hasher

    async def create_admin(self, username: str, password: str) -> AdminUser:
        _validate_username(username)
        _validate_password(password)
        if await self._user_repo.get_by_username(username) is not None:
            raise AuthError(f"Username '{username}' is already taken")

        user = AdminUser(
            user_id=str(uuid4()),
            username=username,
            password_hash=await self._hasher.hash(password),
        )
        try:
            await self._user_repo.create_user(user)
        except ValueError as e:
            raise AuthError(str(e)) from e
        return user

    async def ensure_admin(self, username: str | None, password: str | None) -> AdminUser | None:
        """Create the bootstrap admin from settings unless it already exists."""
        if not username or not password:
            return None
        existing = await self._user_repo.get_by_username(username)
        if existing is not None:
            return existing
        user = await self.create_admin(username, password)
        logger.info("created bootstrap admin account", username=username)
        return user

    async def login(self, username: str, password: str) -> AuthSession:
        """Validate credentials and issue a session token.

        Unknown usernames and wrong passwords produce the same error.
        """
        user = await self._user_repo.get_by_username(username)
        if user is None or not await self._hasher.verify(password, user.password_hash):
            logger.warning("admin login failed", username=username)
            raise AuthError("Invalid credentials")
        logger.info("admin logged in", username=user.username)
        return self._session_store.issue(user.user_id, user.username)

    def validate_session(self, token: str | None) -> AuthSession | None:
        if not token:
            return None
        return self._session_store.resolve(token)

    def logout(self, token: str) -> None:
        self._session_store.revoke(token)


def _validate_username(username: str) -> None:
    """Validate username: 3-30 chars, alphanumeric + underscores."""
    if len(username) < USERNAME_MIN_LENGTH or len(username) > USERNAME_MAX_LENGTH:
        raise AuthError(f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters")
    if not USERNAME_PATTERN.match(username):
        raise AuthError("Username must contain only letters, numbers, and underscores")


def _validate_password(password: str) -> None:
    """Validate password: 8-72 chars, max 72 UTF-8 bytes (bcrypt limit)."""
    if len(password) < PASSWORD_MIN_LENGTH or len(password) > PASSWORD_MAX_LENGTH:
        raise AuthError(f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters")
    if len(password.encode("utf-8")) > PASSWORD_MAX_LENGTH:
        raise AuthError(f"Password must not exceed {PASSWORD_MAX_LENGTH} bytes when encoded")
