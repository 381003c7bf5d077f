"""Tests for SqliteConfigStore."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from shared.auth.api_keys import derive_lookup_hash, validate_syntax
from shared.db.config_store import SqliteConfigStore
from shared.db.connection import Database
from shared.errors import (
    ConfigNotFound,
    DuplicateConfigKey,
    GameNotFound,
    InvalidConfigEntry,
    StorageUnavailable,
)

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def store(db: Database) -> SqliteConfigStore:
    return SqliteConfigStore(db, max_value_bytes=100)


class TestGames:
    async def test_create_game_stores_only_hash(self, store: SqliteConfigStore, db: Database) -> None:
        game, raw_key = await store.create_game("  Space Miners ")

        assert game.name == "Space Miners"
        assert game.active is True
        assert validate_syntax(raw_key)
        assert game.key_hash == derive_lookup_hash(raw_key)
        stored = [tuple(row) for row in db.connection.execute("SELECT * FROM games")]
        assert all(raw_key not in str(value) for row in stored for value in row)

    async def test_create_game_rejects_blank_name(self, store: SqliteConfigStore) -> None:
        with pytest.raises(InvalidConfigEntry):
            await store.create_game("   ")

    async def test_find_active_game_by_key_hash(self, store: SqliteConfigStore) -> None:
        game, raw_key = await store.create_game("Demo")
        assert await store.find_active_game_by_key_hash(derive_lookup_hash(raw_key)) == game
        assert await store.find_active_game_by_key_hash(derive_lookup_hash("x" * 32)) is None

    async def test_inactive_game_not_found_by_key(self, store: SqliteConfigStore) -> None:
        game, raw_key = await store.create_game("Demo")
        await store.set_game_active(game.id, active=False)
        assert await store.find_active_game_by_key_hash(derive_lookup_hash(raw_key)) is None

    async def test_list_games(self, store: SqliteConfigStore) -> None:
        await store.create_game("A")
        await store.create_game("B")
        assert {g.name for g in await store.list_games()} == {"A", "B"}

    async def test_regenerate_key(self, store: SqliteConfigStore) -> None:
        game, old_key = await store.create_game("Demo")
        rotated, new_key, previous_key_hash = await store.regenerate_key(game.id)

        assert new_key != old_key
        assert previous_key_hash == game.key_hash
        assert rotated.id == game.id
        assert rotated.key_hash == derive_lookup_hash(new_key)
        assert await store.find_active_game_by_key_hash(derive_lookup_hash(old_key)) is None
        assert await store.find_active_game_by_key_hash(derive_lookup_hash(new_key)) == rotated

    async def test_regenerate_key_reports_hash_replaced_by_this_call(
        self, store: SqliteConfigStore, tmp_path: Path
    ) -> None:
        game, _ = await store.create_game("Demo")
        other = Database(tmp_path / "test.db")
        other.connect()
        try:
            rotated_elsewhere, _, _ = await SqliteConfigStore(other).regenerate_key(game.id)
        finally:
            other.close()

        rotated, _, previous_key_hash = await store.regenerate_key(game.id)

        assert previous_key_hash == rotated_elsewhere.key_hash
        assert previous_key_hash != game.key_hash
        assert rotated.key_hash not in (game.key_hash, rotated_elsewhere.key_hash)

    async def test_regenerate_key_leaves_no_open_transaction(self, store: SqliteConfigStore, db: Database) -> None:
        game, _ = await store.create_game("Demo")
        await store.regenerate_key(game.id)
        with pytest.raises(GameNotFound):
            await store.regenerate_key("missing")
        assert not db.connection.in_transaction

    async def test_regenerate_key_retries_on_hash_collision(self, store: SqliteConfigStore) -> None:
        _, taken_key = await store.create_game("First")
        game, _ = await store.create_game("Second")
        keys = iter([taken_key, "e" * 64])
        with patch("shared.db.config_store.generate_raw_key", side_effect=lambda: next(keys)):
            rotated, raw_key, previous_key_hash = await store.regenerate_key(game.id)
        assert raw_key == "e" * 64
        assert previous_key_hash == game.key_hash
        assert rotated.key_hash == derive_lookup_hash("e" * 64)

    async def test_regenerate_key_unknown_game(self, store: SqliteConfigStore) -> None:
        with pytest.raises(GameNotFound):
            await store.regenerate_key("missing")

    async def test_create_game_retries_on_hash_collision(self, store: SqliteConfigStore) -> None:
        _, taken_key = await store.create_game("First")
        keys = iter([taken_key, "f" * 64])
        with patch("shared.db.config_store.generate_raw_key", side_effect=lambda: next(keys)):
            game, raw_key = await store.create_game("Second")
        assert raw_key == "f" * 64
        assert game.key_hash == derive_lookup_hash("f" * 64)

    async def test_create_game_gives_up_after_repeated_collisions(self, store: SqliteConfigStore) -> None:
        _, taken_key = await store.create_game("First")
        with (
            patch("shared.db.config_store.generate_raw_key", return_value=taken_key),
            pytest.raises(StorageUnavailable),
        ):
            await store.create_game("Second")

    async def test_set_game_active_unknown(self, store: SqliteConfigStore) -> None:
        with pytest.raises(GameNotFound):
            await store.set_game_active("missing", active=False)

    async def test_delete_game_cascades(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        entry = await store.upsert_config_entry(game.id, "max_players", "10")

        deleted = await store.delete_game(game.id)

        assert deleted == game
        assert await store.get_game(game.id) is None
        assert await store.get_config_entry(entry.id) is None

    async def test_delete_game_returns_hash_live_at_delete(self, store: SqliteConfigStore, tmp_path: Path) -> None:
        game, _ = await store.create_game("Demo")
        other = Database(tmp_path / "test.db")
        other.connect()
        try:
            rotated, _, _ = await SqliteConfigStore(other).regenerate_key(game.id)
        finally:
            other.close()

        deleted = await store.delete_game(game.id)

        assert deleted.key_hash == rotated.key_hash

    async def test_delete_unknown_game(self, store: SqliteConfigStore) -> None:
        with pytest.raises(GameNotFound):
            await store.delete_game("missing")


class TestConfigEntries:
    async def test_insert_and_list(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        await store.upsert_config_entry(game.id, "welcome_msg", "hello", "Shown on the title screen")
        await store.upsert_config_entry(game.id, "max_players", "10")

        entries = await store.list_active_config_entries(game.id)

        assert [e.key for e in entries] == ["max_players", "welcome_msg"]
        assert entries[1].description == "Shown on the title screen"

    async def test_inactive_entries_filtered(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        await store.upsert_config_entry(game.id, "on", "1")
        await store.upsert_config_entry(game.id, "off", "0", active=False)

        assert [e.key for e in await store.list_active_config_entries(game.id)] == ["on"]
        assert [e.key for e in await store.list_config_entries(game.id)] == ["off", "on"]

    async def test_inactive_game_has_no_active_entries(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        await store.upsert_config_entry(game.id, "on", "1")
        await store.set_game_active(game.id, active=False)
        assert await store.list_active_config_entries(game.id) == []

    async def test_update_in_place(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        entry = await store.upsert_config_entry(game.id, "max_players", "10")

        updated = await store.upsert_config_entry(game.id, "max_players", "12", entry_id=entry.id)

        assert updated.id == entry.id
        stored = await store.get_config_entry(entry.id)
        assert stored is not None
        assert stored.value == "12"

    async def test_update_unknown_entry(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        with pytest.raises(ConfigNotFound):
            await store.upsert_config_entry(game.id, "k", "v", entry_id="missing")

    async def test_duplicate_key_rejected(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        await store.upsert_config_entry(game.id, "max_players", "10")
        with pytest.raises(DuplicateConfigKey):
            await store.upsert_config_entry(game.id, "max_players", "11")

    async def test_rename_onto_existing_key_rejected(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        await store.upsert_config_entry(game.id, "a", "1")
        b = await store.upsert_config_entry(game.id, "b", "2")
        with pytest.raises(DuplicateConfigKey):
            await store.upsert_config_entry(game.id, "a", "2", entry_id=b.id)

    async def test_same_key_in_different_games(self, store: SqliteConfigStore) -> None:
        g1, _ = await store.create_game("One")
        g2, _ = await store.create_game("Two")
        await store.upsert_config_entry(g1.id, "max_players", "4")
        await store.upsert_config_entry(g2.id, "max_players", "8")
        assert (await store.list_active_config_entries(g2.id))[0].value == "8"

    async def test_unknown_game(self, store: SqliteConfigStore) -> None:
        with pytest.raises(GameNotFound):
            await store.upsert_config_entry("missing", "k", "v")

    async def test_oversized_value_rejected_before_storage(self, store: SqliteConfigStore) -> None:
        with pytest.raises(InvalidConfigEntry, match="100 bytes"):
            await store.upsert_config_entry("any", "k", "v" * 101)

    async def test_invalid_key_rejected(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        with pytest.raises(InvalidConfigEntry):
            await store.upsert_config_entry(game.id, "bad key", "v")

    async def test_delete_entry(self, store: SqliteConfigStore) -> None:
        game, _ = await store.create_game("Demo")
        entry = await store.upsert_config_entry(game.id, "k", "v")
        assert await store.delete_config_entry(entry.id) == entry
        assert await store.list_config_entries(game.id) == []

    async def test_delete_unknown_entry(self, store: SqliteConfigStore) -> None:
        with pytest.raises(ConfigNotFound):
            await store.delete_config_entry("missing")


class TestStorageErrors:
    async def test_sqlite_errors_become_storage_unavailable(self) -> None:
        db = MagicMock()
        db.connection.execute.side_effect = sqlite3.OperationalError("database is locked")
        store = SqliteConfigStore(db)
        with pytest.raises(StorageUnavailable):
            await store.get_game("g1")
        db.connection.rollback.assert_called_once()
