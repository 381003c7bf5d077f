"""SQLite database layer: connection management and repository implementations."""

from shared.db.admin_user_repository import SqliteAdminUserRepository
from shared.db.config_store import SqliteConfigStore
from shared.db.connection import Database

__all__ = [
    "Database",
    "SqliteAdminUserRepository",
    "SqliteConfigStore",
]
