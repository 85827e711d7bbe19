"""Tests for settings."""

from meez.config import Settings, get_settings, settings


class TestSettings:
    def test_defaults(self):
        s = Settings(openai_api_key="k", _env_file=None)

        assert s.openai_model == "gpt-4.1-mini"
        assert s.similarity_threshold == 0.55
        assert s.cache_table == "processed_recipes_cache"
        assert s.is_development

    def test_optional_integrations_off_without_credentials(self):
        s = Settings(openai_api_key="k", _env_file=None)
        assert not s.fallback_enabled
        assert not s.storage_enabled

    def test_storage_needs_url_and_key(self):
        s = Settings(openai_api_key="k", supabase_url="https://db.example.com", _env_file=None)
        assert not s.storage_enabled
        s = Settings(
            openai_api_key="k",
            supabase_url="https://db.example.com",
            supabase_service_role_key="service",
            _env_file=None,
        )
        assert s.storage_enabled

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SIMILARITY_THRESHOLD", "0.8")
        monkeypatch.setenv("SCRAPERAPI_KEY", "proxy-key")
        s = Settings(_env_file=None)
        assert s.similarity_threshold == 0.8
        assert s.fallback_enabled


def test_lazy_proxy_reads_cached_settings():
    assert settings.openai_model == get_settings().openai_model
