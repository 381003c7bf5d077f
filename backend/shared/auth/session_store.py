"""In-memory admin session store issuing opaque bearer tokens."""

import asyncio
import contextlib
import secrets
import time

import structlog

from shared.auth.models import AuthSession

CLEANUP_INTERVAL_SECONDS = 300  # 5 minutes
DEFAULT_SESSION_TTL_SECONDS = 1800  # 30 minutes

# 32 random bytes, URL-safe base64.
_TOKEN_BYTES = 32

logger = structlog.get_logger()


class AuthSessionStore:
    """Token-addressed admin sessions with expiry.

    Sessions are ephemeral: a server restart means re-login.
    Call start_cleanup() on app startup and stop_cleanup() on shutdown.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        self._ttl_seconds = ttl_seconds
        self._sessions: dict[str, AuthSession] = {}
        self._cleanup_task: asyncio.Task[None] | None = None

    def issue(self, user_id: str, username: str) -> AuthSession:
        """Create a session for an authenticated admin and return it with its token."""
        now = time.time()
        session = AuthSession(
            session_id=secrets.token_urlsafe(_TOKEN_BYTES),
            user_id=user_id,
            username=username,
            created_at=now,
            expires_at=now + self._ttl_seconds,
        )
        self._sessions[session.session_id] = session
        return session

    def resolve(self, token: str) -> AuthSession | None:
        """Return the live session for token, dropping it if expired."""
        session = self._sessions.get(token)
        if session is None:
            return None
        if time.time() > session.expires_at:
            del self._sessions[token]
            return None
        return session

    def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)

    def cleanup_expired(self) -> int:
        """Remove all expired sessions. Return count of removed sessions."""
        now = time.time()
        expired = [token for token, s in self._sessions.items() if now > s.expires_at]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info("cleaned up expired admin sessions", count=len(expired))
        return len(expired)

    def start_cleanup(self) -> None:
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
            self.cleanup_expired()
