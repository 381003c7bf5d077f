"""Admin authentication settings."""

from pydantic import Field
from pydantic_settings import BaseSettings

from shared.auth.session_store import DEFAULT_SESSION_TTL_SECONDS


class AuthSettings(BaseSettings):
    model_config = {"env_prefix": "AUTH_"}

    # "bcrypt" in production; "simple" keeps tests fast
    password_hasher: str = "bcrypt"

    # Bootstrap admin account, created on startup when both are set and the
    # username does not exist yet.
    admin_username: str | None = None
    admin_password: str | None = Field(default=None, min_length=8)

    session_ttl_seconds: int = Field(default=DEFAULT_SESSION_TTL_SECONDS, gt=0)

    # Per-IP token bucket for POST /admin/login
    login_rate_per_second: float = Field(default=0.2, gt=0)
    login_burst: int = Field(default=5, ge=1)
