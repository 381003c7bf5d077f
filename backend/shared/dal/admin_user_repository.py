"""Abstract interface for admin account persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.auth.models import AdminUser


class AdminUserRepository(ABC):
    """Abstract interface for admin account persistence.

    Implementations can use SQLite, PostgreSQL, etc.
    """

    @abstractmethod
    async def create_user(self, user: AdminUser) -> None: ...

    @abstractmethod
    async def get_by_username(self, username: str) -> AdminUser | None: ...
