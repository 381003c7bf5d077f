"""Public configuration retrieval: key check, throttle, cache, store fallback."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from gameconfig.cache import CacheWriteError
from gameconfig.values import filter_config
from shared.auth.api_keys import require_valid
from shared.errors import ConfigNotFound, RateLimited, Unauthorized

if TYPE_CHECKING:
    from gameconfig.cache import CacheArtifact, ConfigCache
    from gameconfig.rate_limit import FixedWindowRateLimiter, RateLimitDecision
    from shared.dal.config_store import ConfigStore

logger = structlog.get_logger()


class ConfigService:
    def __init__(
        self,
        store: ConfigStore,
        cache: ConfigCache,
        limiter: FixedWindowRateLimiter,
        *,
        max_value_bytes: int,
    ) -> None:
        self._store = store
        self._cache = cache
        self._limiter = limiter
        self._max_value_bytes = max_value_bytes

    def admit(self, client_id: str) -> RateLimitDecision:
        """Count one request against client_id's window. Raises RateLimited when over."""
        decision = self._limiter.check(client_id)
        if not decision.allowed:
            raise RateLimited(decision.headers())
        return decision

    async def get_config(self, raw_key: str | None) -> dict[str, Any]:
        """Resolve raw_key to its game's filtered active configuration.

        A malformed key is rejected before any lookup. Unknown keys, inactive
        games and deleted games all raise Unauthorized with the same message.
        """
        key_hash = require_valid(raw_key)

        artifact = self._cache.lookup(key_hash)
        if artifact is None:
            artifact = await self._load(key_hash)
        else:
            logger.debug("config served from cache", key_hash=key_hash[:12])

        return filter_config(artifact.config, max_value_bytes=self._max_value_bytes)

    async def get_config_value(self, raw_key: str | None, config_key: str) -> Any:  # noqa: ANN401
        """Return one value of the active configuration; ConfigNotFound when config_key is not in it."""
        config = await self.get_config(raw_key)
        if config_key not in config:
            raise ConfigNotFound
        return config[config_key]

    async def _load(self, key_hash: str) -> CacheArtifact:
        game = await self._store.find_active_game_by_key_hash(key_hash)
        if game is None:
            logger.info("rejected unknown or inactive api key", key_hash=key_hash[:12])
            raise Unauthorized

        try:
            artifact = await self._cache.rebuild(game.id)
        except CacheWriteError as exc:
            # Serve the freshly computed snapshot; the next request retries the write.
            logger.warning("serving uncached config", game_id=game.id)
            return exc.artifact

        if artifact is None:
            # Rotated, deactivated or deleted while we were rebuilding.
            raise Unauthorized
        return artifact
