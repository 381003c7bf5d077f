"""File-backed configuration cache, one artifact per API-key hash.

An artifact is the fully resolved ``{key: value}`` mapping of a game's active
entries, stored as ``<key_hash>.json``. It is derived entirely from the store
and may be deleted or rebuilt at any time.

Readers never lock: writers always go through temp-file-then-rename, so a
reader sees either the previous artifact or the complete new one. Consistency
comes from rebuilding on every admin write; the optional TTL only bounds
staleness if a rebuild was ever skipped.
"""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel

from gameconfig.values import decode_value
from shared.auth.api_keys import is_lookup_hash
from shared.errors import StorageUnavailable
from shared.storage import atomic_write_bytes, ensure_private_dir, remove_file, remove_stale_temp_files

if TYPE_CHECKING:
    from shared.dal.config_store import ConfigStore

logger = structlog.get_logger()

_ARTIFACT_SUFFIX = ".json"
_TMP_PREFIX = ".artifact_"

# Temp files older than this belong to a writer that died mid-write.
_STALE_TEMP_SECONDS = 300


class CacheArtifact(BaseModel, frozen=True):
    """Materialized configuration snapshot for one game."""

    game_id: str
    config: dict[str, Any]

    def to_bytes(self) -> bytes:
        """Canonical encoding: identical store state gives identical bytes."""
        return json.dumps(
            self.model_dump(),
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            allow_nan=False,
        ).encode("utf-8")


class CacheWriteError(StorageUnavailable):
    """The artifact was computed but could not be persisted."""

    def __init__(self, artifact: CacheArtifact) -> None:
        super().__init__("cache artifact write failed")
        self.artifact = artifact


class ConfigCache:
    def __init__(
        self,
        cache_dir: str | Path,
        store: ConfigStore,
        *,
        ttl_seconds: float | None = None,
    ) -> None:
        self._dir = Path(cache_dir).resolve()
        self._store = store
        self._ttl_seconds = ttl_seconds

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key_hash: str) -> Path:
        if not is_lookup_hash(key_hash):
            raise ValueError("not a lookup hash")
        return self._dir / f"{key_hash}{_ARTIFACT_SUFFIX}"

    def lookup(self, key_hash: str) -> CacheArtifact | None:
        """Return the artifact for key_hash, or None on a miss.

        Missing, unreadable, corrupt and expired artifacts are all misses;
        the caller falls back to the store.
        """
        if not is_lookup_hash(key_hash):
            return None
        path = self.path_for(key_hash)
        try:
            with path.open("rb") as f:
                if self._ttl_seconds is not None:
                    age = time.time() - os.fstat(f.fileno()).st_mtime
                    if age > self._ttl_seconds:
                        logger.debug("cache artifact expired", key_hash=key_hash[:12], age=round(age, 1))
                        return None
                raw = f.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("cache artifact unreadable", key_hash=key_hash[:12], error=str(exc))
            return None

        try:
            return CacheArtifact.model_validate(json.loads(raw))
        except ValueError:
            logger.warning("discarding corrupt cache artifact", key_hash=key_hash[:12])
            return None

    async def rebuild(self, game_id: str) -> CacheArtifact | None:
        """Recompute and atomically replace the artifact for game_id.

        Returns the written artifact, or None when the game is missing or
        inactive (its artifact is deleted instead). The store is re-read after
        the write: if the game was deleted, deactivated or had its key rotated
        meanwhile, the just-written artifact is removed again so a slow rebuild
        can never resurrect a stale key.

        Raises StorageUnavailable when the store fails and CacheWriteError when
        the artifact cannot be written.
        """
        game = await self._store.get_game(game_id)
        if game is None:
            logger.info("cache rebuild skipped, game not found", game_id=game_id)
            return None
        if not game.active:
            self.invalidate(game.key_hash)
            return None

        entries = await self._store.list_active_config_entries(game_id)
        artifact = CacheArtifact(game_id=game.id, config={e.key: decode_value(e.value) for e in entries})
        self._write(game.key_hash, artifact)

        current = await self._store.get_game(game_id)
        if current is None or not current.active or current.key_hash != game.key_hash:
            self.invalidate(game.key_hash)
            logger.info("discarded cache artifact superseded during rebuild", game_id=game_id)
            return None

        logger.info("rebuilt cache artifact", game_id=game_id, entries=len(artifact.config))
        return artifact

    def invalidate(self, key_hash: str) -> bool:
        """Delete the artifact for key_hash. Return False if there was none."""
        if not is_lookup_hash(key_hash):
            return False
        try:
            removed = remove_file(self.path_for(key_hash))
        except OSError as exc:
            logger.error("cache invalidation failed", key_hash=key_hash[:12], error=str(exc))
            raise StorageUnavailable("cache invalidation failed") from exc
        if removed:
            logger.info("invalidated cache artifact", key_hash=key_hash[:12])
        return removed

    def sweep_temp_files(self) -> int:
        """Remove temp files left behind by crashed writers."""
        if not self._dir.is_dir():
            return 0
        return remove_stale_temp_files(self._dir, prefix=_TMP_PREFIX, older_than=_STALE_TEMP_SECONDS, now=time.time())

    def _write(self, key_hash: str, artifact: CacheArtifact) -> None:
        try:
            ensure_private_dir(self._dir)
            atomic_write_bytes(self.path_for(key_hash), artifact.to_bytes(), prefix=_TMP_PREFIX)
        except OSError as exc:
            logger.error("cache artifact write failed", game_id=artifact.game_id, error=str(exc))
            raise CacheWriteError(artifact) from exc
