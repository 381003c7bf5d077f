"""Admin account and session models."""

from dataclasses import dataclass

from pydantic import BaseModel, field_validator


class AdminUser(BaseModel, frozen=True):
    """Admin account stored in the admin user repository."""

    user_id: str
    username: str
    password_hash: str  # bcrypt hash ("simple$..." in tests)

    @field_validator("password_hash")
    @classmethod
    def _require_hash(cls, v: str) -> str:
        if not v:
            raise ValueError("Admin accounts must have a password hash")
        return v


@dataclass
class AuthSession:
    """Server-side admin session addressed by an opaque bearer token."""

    session_id: str  # opaque token, sent as "Authorization: Bearer <token>"
    user_id: str
    username: str
    created_at: float  # time.time()
    expires_at: float  # time.time() + TTL
