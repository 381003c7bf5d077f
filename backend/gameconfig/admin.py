"""Admin operations on games and configuration entries.

Every successful write brings the cache in line with the store before it
returns: the affected artifact is rebuilt, or deleted when the game no longer
resolves (inactive, deleted, or its key was rotated).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from gameconfig.cache import CacheWriteError
from gameconfig.values import encode_value
from shared.errors import ConfigNotFound, GameNotFound

if TYPE_CHECKING:
    from gameconfig.cache import ConfigCache
    from shared.dal.config_store import ConfigStore
    from shared.dal.models import ConfigEntry, Game

logger = structlog.get_logger()


class AdminService:
    def __init__(self, store: ConfigStore, cache: ConfigCache) -> None:
        self._store = store
        self._cache = cache

    async def list_games(self) -> list[Game]:
        return await self._store.list_games()

    async def create_game(self, name: str) -> tuple[Game, str]:
        """Register a game. The raw API key is returned here and nowhere else.

        No artifact is written: the first public read builds it.
        """
        game, raw_key = await self._store.create_game(name)
        logger.info("created game", game_id=game.id, name=game.name)
        return game, raw_key

    async def regenerate_key(self, game_id: str) -> tuple[Game, str]:
        """Rotate the key and drop the artifact of the hash this rotation revoked."""
        game, raw_key, previous_key_hash = await self._store.regenerate_key(game_id)
        self._cache.invalidate(previous_key_hash)
        await self._refresh(game.id)
        logger.info("regenerated api key", game_id=game.id)
        return game, raw_key

    async def set_game_active(self, game_id: str, *, active: bool) -> Game:
        game = await self._store.set_game_active(game_id, active=active)
        await self._refresh(game.id)
        logger.info("changed game status", game_id=game.id, active=active)
        return game

    async def delete_game(self, game_id: str) -> Game:
        game = await self._store.delete_game(game_id)
        self._cache.invalidate(game.key_hash)
        logger.info("deleted game", game_id=game.id)
        return game

    async def list_configs(self, game_id: str) -> list[ConfigEntry]:
        await self._require_game(game_id)
        return await self._store.list_config_entries(game_id)

    async def create_config(
        self,
        game_id: str,
        key: str,
        value: Any,  # noqa: ANN401
        description: str | None = None,
        *,
        active: bool = True,
    ) -> ConfigEntry:
        entry = await self._store.upsert_config_entry(
            game_id, key, encode_value(value), description, active=active
        )
        await self._refresh(game_id)
        logger.info("created config entry", game_id=game_id, config_key=entry.key)
        return entry

    async def update_config(  # noqa: PLR0913
        self,
        entry_id: str,
        *,
        key: str | None = None,
        value: Any = None,  # noqa: ANN401
        description: str | None = None,
        active: bool | None = None,
    ) -> ConfigEntry:
        """Update an entry in place; omitted fields keep their current value.

        An empty or blank ``description`` clears the stored description.
        """
        existing = await self._store.get_config_entry(entry_id)
        if existing is None:
            raise ConfigNotFound
        entry = await self._store.upsert_config_entry(
            existing.game_id,
            key if key is not None else existing.key,
            encode_value(value) if value is not None else existing.value,
            description if description is not None else existing.description,
            active=active if active is not None else existing.active,
            entry_id=entry_id,
        )
        await self._refresh(existing.game_id)
        logger.info("updated config entry", game_id=existing.game_id, config_key=entry.key)
        return entry

    async def delete_config(self, entry_id: str) -> ConfigEntry:
        entry = await self._store.delete_config_entry(entry_id)
        await self._refresh(entry.game_id)
        logger.info("deleted config entry", game_id=entry.game_id, config_key=entry.key)
        return entry

    async def _require_game(self, game_id: str) -> Game:
        game = await self._store.get_game(game_id)
        if game is None:
            raise GameNotFound
        return game

    async def _refresh(self, game_id: str) -> None:
        """Rebuild the game's artifact after a committed write.

        If the new artifact cannot be written the old one is removed so reads
        fall through to the store. When that removal fails too, invalidate
        raises StorageUnavailable and the write is reported as failed.
        """
        try:
            await self._cache.rebuild(game_id)
        except CacheWriteError:
            game = await self._store.get_game(game_id)
            if game is not None:
                self._cache.invalidate(game.key_hash)
            logger.warning("cache refresh failed, artifact dropped", game_id=game_id)
