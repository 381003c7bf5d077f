"""Persistence models for games and configuration entries."""

from pydantic import BaseModel


class Game(BaseModel, frozen=True):
    """A tenant of the configuration service.

    Only the SHA-256 lookup hash of the API key is stored; the raw key is
    returned once at creation or rotation.
    """

    id: str
    name: str
    key_hash: str
    active: bool = True
    created_at: str  # ISO 8601, UTC

    def public_view(self) -> dict[str, object]:
        """Admin-facing representation (never includes the key hash)."""
        return {"id": self.id, "name": self.name, "active": self.active, "created_at": self.created_at}


class ConfigEntry(BaseModel, frozen=True):
    """One key/value configuration row owned by a game.

    ``value`` is the raw stored text; it is decoded as JSON (when possible)
    only when the cache artifact is built.
    """

    id: str
    game_id: str
    key: str
    value: str
    description: str | None = None
    active: bool = True
    updated_at: str  # ISO 8601, UTC
