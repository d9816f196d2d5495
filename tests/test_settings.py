"""Tests for settings loading."""

import pytest

from config.settings import Settings, get_settings
from core.errors import ConfigurationError

ENV_VARS = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "BACKEND", "POSTGRES_URL", "RECONNECT_POLICY")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No .env file and no related environment variables."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestSettings:
    """Tests for Settings and get_settings."""

    def test_missing_required_raises_configuration_error(self, clean_env):
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings()
        assert "supabase_url" in str(exc_info.value)

    def test_defaults(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://proj.supabase.co/")
        clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "key")

        settings = get_settings()

        assert settings.feed_url == "wss://pumpportal.fun/api/data"
        assert settings.reconnect_policy == "terminate"
        assert settings.backend == "supabase"
        assert settings.retry_max_attempts == 3
        assert settings.ipfs_gateway == "https://ipfs.io/ipfs/"
        assert settings.supabase_url == "https://proj.supabase.co/"

    def test_cached(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://proj.supabase.co")
        clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "key")
        assert get_settings() is get_settings()

    def test_env_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text(
            "SUPABASE_URL=https://file.supabase.co\n"
            "SUPABASE_SERVICE_ROLE_KEY=file-key\n"
            "RECONNECT_POLICY=reconnect\n"
        )

        settings = get_settings()

        assert settings.supabase_url == "https://file.supabase.co"
        assert settings.reconnect_policy == "reconnect"

    def test_postgres_backend_requires_url(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://proj.supabase.co")
        clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "key")
        clean_env.setenv("BACKEND", "postgres")

        with pytest.raises(ConfigurationError):
            get_settings()

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            Settings(supabase_url="u", supabase_service_role_key="k", reconnect_policy="sometimes")
