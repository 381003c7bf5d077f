"""SQLite-backed admin user repository."""

from __future__ import annotations

import asyncio
import sqlite3
from typing import TYPE_CHECKING

from shared.auth.models import AdminUser
from shared.dal.admin_user_repository import AdminUserRepository
from shared.errors import StorageUnavailable

if TYPE_CHECKING:
    from shared.db.connection import Database


class SqliteAdminUserRepository(AdminUserRepository):
    """SQLite implementation of AdminUserRepository.

    Relies on the case-insensitive unique index on username and maps
    IntegrityError to ValueError.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_user(self, user: AdminUser) -> None:
        """Insert an admin. Raises ValueError on duplicate id or username."""
        async with self._lock:
            conn = self._db.connection
            try:
                conn.execute(
                    "INSERT INTO admin_users (id, username, password_hash) VALUES (?, ?, ?)",
                    (user.user_id, user.username, user.password_hash),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                error_msg = str(exc).lower()
                if "admin_users.id" in error_msg:
                    raise ValueError(f"Admin with id '{user.user_id}' already exists") from exc
                raise ValueError(f"Username '{user.username}' already taken") from exc
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageUnavailable from exc

    async def get_by_username(self, username: str) -> AdminUser | None:
        """Look up an admin by username (case-insensitive)."""
        try:
            row = self._db.connection.execute(
                "SELECT id, username, password_hash FROM admin_users WHERE username = ? COLLATE NOCASE",
                (username,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable from exc
        if row is None:
            return None
        return AdminUser(user_id=row["id"], username=row["username"], password_hash=row["password_hash"])
