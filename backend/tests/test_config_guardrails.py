import pytest

from core import config as config_module


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


def test_non_local_debug_mode_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("DRAFT_STORE_BACKEND", "redis")

    with pytest.raises(ValueError, match="debug=true"):
        config_module.get_settings()


def test_non_local_memory_drafts_are_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("DRAFT_STORE_BACKEND", "memory")

    with pytest.raises(ValueError, match="drafts in process memory"):
        config_module.get_settings()


def test_production_with_redis_drafts(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("DRAFT_STORE_BACKEND", "redis")

    settings = config_module.get_settings()
    assert settings.draft_store_backend == "redis"


def test_local_allows_dev_defaults(monkeypatch):
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("DRAFT_STORE_BACKEND", "memory")

    settings = config_module.get_settings()
    assert settings.app_env == "local"
    assert settings.payable_due_days == 1
