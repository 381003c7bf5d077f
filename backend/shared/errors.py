"""Domain errors for the game configuration service.

Every error carries a stable public message and an HTTP status so the view
layer can map it to a response without echoing internal details.
"""

from http import HTTPStatus


class GameConfigError(Exception):
    """Base class for all domain errors."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message: str = "Internal server error"


class InvalidKeyFormat(GameConfigError):
    """Raw API key failed the syntax check."""

    status_code = HTTPStatus.UNAUTHORIZED
    public_message = "Invalid API key"


class Unauthorized(GameConfigError):
    """Unknown or inactive API key, or missing admin credentials."""

    status_code = HTTPStatus.UNAUTHORIZED
    public_message = "Invalid API key"


class RateLimited(GameConfigError):
    status_code = HTTPStatus.TOO_MANY_REQUESTS
    public_message = "Rate limit exceeded"

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        super().__init__(self.public_message)
        self.headers = headers or {}


class DuplicateConfigKey(GameConfigError):
    status_code = HTTPStatus.CONFLICT
    public_message = "Configuration key already exists for this game"


class GameNotFound(GameConfigError):
    status_code = HTTPStatus.NOT_FOUND
    public_message = "Game not found"


class ConfigNotFound(GameConfigError):
    status_code = HTTPStatus.NOT_FOUND
    public_message = "Configuration not found"


class StorageUnavailable(GameConfigError):
    """Store or cache could not be read or written (includes lock timeouts)."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message = "Service unavailable"


class MalformedRequestBody(GameConfigError):
    status_code = HTTPStatus.BAD_REQUEST
    public_message = "Malformed request body"


class InvalidConfigEntry(GameConfigError):
    """Configuration key or value rejected by write-time validation."""

    status_code = HTTPStatus.BAD_REQUEST
    public_message = "Invalid configuration entry"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.public_message = reason
