import pytest
from pydantic import ValidationError

from gameconfig.server.settings import GameConfigSettings, RateLimitBackend


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "GAMECONFIG_CORS_ORIGINS",
        "GAMECONFIG_RATE_LIMIT_BACKEND",
        "GAMECONFIG_RATE_LIMIT_REQUESTS",
        "GAMECONFIG_CACHE_TTL_SECONDS",
        "GAMECONFIG_DATABASE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


class TestGameConfigSettings:
    def test_defaults(self):
        settings = GameConfigSettings()
        assert settings.database_path == "backend/storage.db"
        assert settings.cache_ttl_seconds is None
        assert settings.rate_limit_backend == RateLimitBackend.FILE
        assert settings.rate_limit_requests == 60
        assert settings.rate_limit_window_seconds == 60.0
        assert settings.max_value_bytes == 10_000
        assert settings.cors_origins == []
        assert settings.trust_forwarded_for is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("GAMECONFIG_DATABASE_PATH", "/srv/config.db")
        monkeypatch.setenv("GAMECONFIG_RATE_LIMIT_BACKEND", "sqlite")
        monkeypatch.setenv("GAMECONFIG_CACHE_TTL_SECONDS", "300")
        settings = GameConfigSettings()
        assert settings.database_path == "/srv/config.db"
        assert settings.rate_limit_backend == RateLimitBackend.SQLITE
        assert settings.cache_ttl_seconds == 300

    def test_cors_origins_json_array(self, monkeypatch):
        monkeypatch.setenv("GAMECONFIG_CORS_ORIGINS", '["http://x.com","http://y.com"]')
        assert GameConfigSettings().cors_origins == ["http://x.com", "http://y.com"]

    def test_cors_origins_csv(self, monkeypatch):
        monkeypatch.setenv("GAMECONFIG_CORS_ORIGINS", "http://x.com, http://y.com")
        assert GameConfigSettings().cors_origins == ["http://x.com", "http://y.com"]

    def test_cors_origins_invalid_json(self, monkeypatch):
        monkeypatch.setenv("GAMECONFIG_CORS_ORIGINS", "[not json")
        with pytest.raises(ValidationError, match="cors_origins"):
            GameConfigSettings()

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("GAMECONFIG_RATE_LIMIT_BACKEND", "redis")
        with pytest.raises(ValidationError):
            GameConfigSettings()

    def test_zero_requests_rejected(self, monkeypatch):
        monkeypatch.setenv("GAMECONFIG_RATE_LIMIT_REQUESTS", "0")
        with pytest.raises(ValidationError):
            GameConfigSettings()
