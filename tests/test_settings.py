import pytest

from apps.api.settings import APIConfig
from storage.relational.database import DEFAULT_DATABASE_URL, DatabaseConfig, DatabaseManager


@pytest.mark.parametrize("value, expected", [("true", True), ("1", True), ("YES", True), ("false", False), ("", False)])
def test_auth_disabled_from_env(monkeypatch, value, expected):
    monkeypatch.setenv("API_AUTH_DISABLED", value)
    assert APIConfig().auth_disabled is expected


def test_explicit_argument_overrides_env(monkeypatch):
    monkeypatch.setenv("API_AUTH_DISABLED", "true")
    assert APIConfig(auth_disabled=False).auth_disabled is False


def test_defaults(monkeypatch):
    for name in ("API_PORT", "HEALTH_PATH", "RATE_LIMIT_MAX_REQUESTS", "RATE_LIMIT_WINDOW_SECONDS", "CORS_ORIGINS", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)

    config = APIConfig()
    assert config.port == 5000
    assert config.health_path == "/api/health"
    assert config.rate_limit_max_requests == 10
    assert config.rate_limit_window_seconds == 60
    assert "http://localhost:5173" in config.cors_origins
    assert not config.is_production


def test_cors_origins_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://brohelp.example, ,http://localhost:3000")
    assert APIConfig().cors_origins == ["https://brohelp.example", "http://localhost:3000"]


def test_database_config_default(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    config = DatabaseConfig()
    assert config.connection_string == DEFAULT_DATABASE_URL
    assert config.is_sqlite


def test_database_manager_creates_parent_directory(tmp_path):
    db_file = tmp_path / "nested" / "dir" / "keys.db"
    db = DatabaseManager(DatabaseConfig(f"sqlite:///{db_file}"))
    try:
        assert db_file.parent.is_dir()
        assert db.health_check() is True
    finally:
        db.dispose()
