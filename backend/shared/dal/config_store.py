"""Abstract interface for the configuration source of truth."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import ConfigEntry, Game


class ConfigStore(ABC):
    """Persistent games and configuration entries.

    Every operation may raise StorageUnavailable. Write operations raise
    GameNotFound, ConfigNotFound, DuplicateConfigKey or InvalidConfigEntry
    as documented on the implementation.
    """

    @abstractmethod
    async def find_active_game_by_key_hash(self, key_hash: str) -> Game | None: ...

    @abstractmethod
    async def get_game(self, game_id: str) -> Game | None: ...

    @abstractmethod
    async def list_games(self) -> list[Game]: ...

    @abstractmethod
    async def list_active_config_entries(self, game_id: str) -> list[ConfigEntry]:
        """Active entries of an active game, ordered by key."""

    @abstractmethod
    async def list_config_entries(self, game_id: str) -> list[ConfigEntry]: ...

    @abstractmethod
    async def get_config_entry(self, entry_id: str) -> ConfigEntry | None: ...

    @abstractmethod
    async def create_game(self, name: str) -> tuple[Game, str]:
        """Create a game and return it together with its raw API key."""

    @abstractmethod
    async def regenerate_key(self, game_id: str) -> tuple[Game, str, str]:
        """Replace the game's key hash; return the game, the new raw API key and the revoked hash."""

    @abstractmethod
    async def set_game_active(self, game_id: str, *, active: bool) -> Game: ...

    @abstractmethod
    async def upsert_config_entry(  # noqa: PLR0913
        self,
        game_id: str,
        key: str,
        value: str,
        description: str | None = None,
        *,
        active: bool = True,
        entry_id: str | None = None,
    ) -> ConfigEntry: ...

    @abstractmethod
    async def delete_game(self, game_id: str) -> Game: ...

    @abstractmethod
    async def delete_config_entry(self, entry_id: str) -> ConfigEntry: ...
