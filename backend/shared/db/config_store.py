"""SQLite-backed configuration store."""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from shared.auth.api_keys import derive_lookup_hash, generate_raw_key
from shared.dal.config_store import ConfigStore
from shared.dal.models import ConfigEntry, Game
from shared.errors import ConfigNotFound, DuplicateConfigKey, GameNotFound, StorageUnavailable
from shared.validators import (
    validate_config_key,
    validate_config_value,
    validate_description,
    validate_game_name,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from shared.db.connection import Database

logger = structlog.get_logger()

DEFAULT_MAX_VALUE_BYTES = 10_000

# Attempts at drawing a fresh API key when the derived hash collides.
_KEY_ATTEMPTS = 3

_GAME_COLUMNS = "id, name, key_hash, active, created_at"
_ENTRY_COLUMNS = "id, game_id, key, value, description, active, updated_at"


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


def _game_from_row(row: sqlite3.Row) -> Game:
    return Game(
        id=row["id"],
        name=row["name"],
        key_hash=row["key_hash"],
        active=bool(row["active"]),
        created_at=row["created_at"],
    )


def _entry_from_row(row: sqlite3.Row) -> ConfigEntry:
    return ConfigEntry(
        id=row["id"],
        game_id=row["game_id"],
        key=row["key"],
        value=row["value"],
        description=row["description"],
        active=bool(row["active"]),
        updated_at=row["updated_at"],
    )


def _is_key_hash_conflict(exc: sqlite3.IntegrityError) -> bool:
    msg = str(exc).lower()
    return "games.key_hash" in msg or "idx_games_key_hash" in msg


def _is_config_key_conflict(exc: sqlite3.IntegrityError) -> bool:
    msg = str(exc).lower()
    return "config_entries.game_id, config_entries.key" in msg or "idx_config_entries_game_key" in msg


class SqliteConfigStore(ConfigStore):
    """SQLite implementation of ConfigStore.

    Writes are serialized within the process by an asyncio lock; across
    processes the UNIQUE indexes on ``games.key_hash`` and
    ``config_entries(game_id, key)`` are the arbiter. Every write commits
    before returning so a subsequent cache rebuild observes it.
    """

    def __init__(self, db: Database, *, max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES) -> None:
        self._db = db
        self._max_value_bytes = max_value_bytes
        self._lock = asyncio.Lock()

    @contextlib.contextmanager
    def _storage(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield the connection; roll back and raise StorageUnavailable on SQLite errors.

        IntegrityError is re-raised untouched so callers can map constraint
        violations to domain errors.
        """
        conn = self._db.connection
        try:
            yield conn
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as exc:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            logger.error("config store operation failed", operation=operation, error=str(exc))
            raise StorageUnavailable from exc

    # -- reads --

    async def find_active_game_by_key_hash(self, key_hash: str) -> Game | None:
        with self._storage("find_active_game_by_key_hash") as conn:
            row = conn.execute(
                f"SELECT {_GAME_COLUMNS} FROM games WHERE key_hash = ? AND active = 1",  # noqa: S608
                (key_hash,),
            ).fetchone()
        return _game_from_row(row) if row is not None else None

    async def get_game(self, game_id: str) -> Game | None:
        with self._storage("get_game") as conn:
            row = conn.execute(f"SELECT {_GAME_COLUMNS} FROM games WHERE id = ?", (game_id,)).fetchone()  # noqa: S608
        return _game_from_row(row) if row is not None else None

    async def list_games(self) -> list[Game]:
        with self._storage("list_games") as conn:
            rows = conn.execute(f"SELECT {_GAME_COLUMNS} FROM games ORDER BY created_at DESC, id").fetchall()  # noqa: S608
        return [_game_from_row(r) for r in rows]

    async def list_active_config_entries(self, game_id: str) -> list[ConfigEntry]:
        with self._storage("list_active_config_entries") as conn:
            rows = conn.execute(
                "SELECT e.id, e.game_id, e.key, e.value, e.description, e.active, e.updated_at "
                "FROM config_entries e JOIN games g ON g.id = e.game_id "
                "WHERE e.game_id = ? AND e.active = 1 AND g.active = 1 "
                "ORDER BY e.key",
                (game_id,),
            ).fetchall()
        return [_entry_from_row(r) for r in rows]

    async def list_config_entries(self, game_id: str) -> list[ConfigEntry]:
        with self._storage("list_config_entries") as conn:
            rows = conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM config_entries WHERE game_id = ? ORDER BY key",  # noqa: S608
                (game_id,),
            ).fetchall()
        return [_entry_from_row(r) for r in rows]

    async def get_config_entry(self, entry_id: str) -> ConfigEntry | None:
        with self._storage("get_config_entry") as conn:
            row = conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM config_entries WHERE id = ?",  # noqa: S608
                (entry_id,),
            ).fetchone()
        return _entry_from_row(row) if row is not None else None

    # -- game writes --

    async def create_game(self, name: str) -> tuple[Game, str]:
        """Insert a new active game. The raw key is returned once and never stored."""
        name = validate_game_name(name)
        async with self._lock:
            for _ in range(_KEY_ATTEMPTS):
                raw_key = generate_raw_key()
                game = Game(id=str(uuid4()), name=name, key_hash=derive_lookup_hash(raw_key), created_at=_now())
                try:
                    with self._storage("create_game") as conn:
                        conn.execute(
                            "INSERT INTO games (id, name, key_hash, active, created_at) VALUES (?, ?, ?, 1, ?)",
                            (game.id, game.name, game.key_hash, game.created_at),
                        )
                        conn.commit()
                except sqlite3.IntegrityError as exc:
                    if _is_key_hash_conflict(exc):
                        continue
                    raise StorageUnavailable from exc
                return game, raw_key
        raise StorageUnavailable("could not allocate a unique API key")

    async def regenerate_key(self, game_id: str) -> tuple[Game, str, str]:
        """Swap in a fresh key hash and return ``(game, raw_key, previous_key_hash)``.

        The current hash is read and replaced inside one IMMEDIATE transaction,
        so ``previous_key_hash`` is exactly the hash this call revoked even when
        another worker rotates the same game concurrently.
        """
        async with self._lock:
            for _ in range(_KEY_ATTEMPTS):
                raw_key = generate_raw_key()
                key_hash = derive_lookup_hash(raw_key)
                try:
                    with self._storage("regenerate_key") as conn:
                        conn.execute("BEGIN IMMEDIATE")
                        previous = conn.execute("SELECT key_hash FROM games WHERE id = ?", (game_id,)).fetchone()
                        if previous is None:
                            conn.rollback()
                            raise GameNotFound
                        conn.execute("UPDATE games SET key_hash = ? WHERE id = ?", (key_hash, game_id))
                        row = conn.execute(f"SELECT {_GAME_COLUMNS} FROM games WHERE id = ?", (game_id,)).fetchone()  # noqa: S608
                        conn.commit()
                except sqlite3.IntegrityError as exc:
                    if _is_key_hash_conflict(exc):
                        continue
                    raise StorageUnavailable from exc
                return _game_from_row(row), raw_key, previous["key_hash"]
        raise StorageUnavailable("could not allocate a unique API key")

    async def set_game_active(self, game_id: str, *, active: bool) -> Game:
        async with self._lock:
            with self._storage("set_game_active") as conn:
                cursor = conn.execute("UPDATE games SET active = ? WHERE id = ?", (int(active), game_id))
                conn.commit()
            if cursor.rowcount == 0:
                raise GameNotFound
            game = await self.get_game(game_id)
        if game is None:  # pragma: no cover
            raise GameNotFound
        return game

    async def delete_game(self, game_id: str) -> Game:
        """Delete a game; its entries go with it through ON DELETE CASCADE.

        Returns the game as it was when deleted, read in the same transaction,
        so its ``key_hash`` is the one that was live at that moment.
        """
        async with self._lock:
            with self._storage("delete_game") as conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(f"SELECT {_GAME_COLUMNS} FROM games WHERE id = ?", (game_id,)).fetchone()  # noqa: S608
                if row is None:
                    conn.rollback()
                    raise GameNotFound
                conn.execute("DELETE FROM games WHERE id = ?", (game_id,))
                conn.commit()
        return _game_from_row(row)

    # -- entry writes --

    async def upsert_config_entry(  # noqa: PLR0913
        self,
        game_id: str,
        key: str,
        value: str,
        description: str | None = None,
        *,
        active: bool = True,
        entry_id: str | None = None,
    ) -> ConfigEntry:
        """Insert (entry_id is None) or update an entry.

        Raises InvalidConfigEntry for a bad key/value/description, GameNotFound
        for an unknown game, ConfigNotFound when entry_id does not belong to the
        game, and DuplicateConfigKey when (game_id, key) is already taken.
        """
        key = validate_config_key(key)
        value = validate_config_value(value, max_bytes=self._max_value_bytes)
        description = validate_description(description)

        async with self._lock:
            if await self.get_game(game_id) is None:
                raise GameNotFound
            entry = ConfigEntry(
                id=entry_id or str(uuid4()),
                game_id=game_id,
                key=key,
                value=value,
                description=description,
                active=active,
                updated_at=_now(),
            )
            try:
                with self._storage("upsert_config_entry") as conn:
                    if entry_id is None:
                        conn.execute(
                            "INSERT INTO config_entries (id, game_id, key, value, description, active, updated_at) "
                            "VALUES (?, ?, ?, ?, ?, ?, ?)",
                            (entry.id, game_id, key, value, description, int(active), entry.updated_at),
                        )
                    else:
                        cursor = conn.execute(
                            "UPDATE config_entries SET key = ?, value = ?, description = ?, active = ?, updated_at = ? "
                            "WHERE id = ? AND game_id = ?",
                            (key, value, description, int(active), entry.updated_at, entry_id, game_id),
                        )
                        if cursor.rowcount == 0:
                            conn.rollback()
                            raise ConfigNotFound
                    conn.commit()
            except sqlite3.IntegrityError as exc:
                if _is_config_key_conflict(exc):
                    raise DuplicateConfigKey from exc
                if "foreign key" in str(exc).lower():
                    raise GameNotFound from exc
                raise StorageUnavailable from exc
        return entry

    async def delete_config_entry(self, entry_id: str) -> ConfigEntry:
        async with self._lock:
            entry = await self.get_config_entry(entry_id)
            if entry is None:
                raise ConfigNotFound
            with self._storage("delete_config_entry") as conn:
                conn.execute("DELETE FROM config_entries WHERE id = ?", (entry_id,))
                conn.commit()
        return entry
