"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.admin_user_repository import AdminUserRepository
from shared.dal.config_store import ConfigStore
from shared.dal.models import ConfigEntry, Game

__all__ = [
    "AdminUserRepository",
    "ConfigEntry",
    "ConfigStore",
    "Game",
]
