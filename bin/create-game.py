"""Create a game and print its API key.

Usage: uv run python bin/create-game.py <game_name>

The API key is printed once and never stored. Save it securely.
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from gameconfig.server.settings import GameConfigSettings
from shared.db import Database, SqliteConfigStore
from shared.errors import GameConfigError


async def main() -> None:
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <game_name>")
        sys.exit(1)

    game_name = sys.argv[1]
    settings = GameConfigSettings()

    db = Database(settings.database_path, timeout=settings.store_timeout_seconds)
    db.connect()

    try:
        store = SqliteConfigStore(db, max_value_bytes=settings.max_value_bytes)

        try:
            game, raw_api_key = await store.create_game(game_name)
        except GameConfigError as e:
            print(f"Error: {e.public_message}")
            sys.exit(1)

        print(f"Game created: {game.name} (id: {game.id})")
        print(f"API key: {raw_api_key}")
        print("Save this key securely - it cannot be retrieved again.")
    finally:
        db.close()


if __name__ == "__main__":
    asyncio.run(main())
