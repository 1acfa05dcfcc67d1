"""Tests for EnrichmentConfig defaults, validation and env loading."""

from __future__ import annotations

import pytest

from flavortown.core.config import EnrichmentConfig

_ENV_VARS = [
    "OPENAI_API_KEY",
    "TAVILY_API_KEY",
    "GOOGLE_PLACES_API_KEY",
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "LM_STUDIO_URL",
    "FLAVORTOWN_SKIP_LOCAL",
    "FLAVORTOWN_REMOTE_CACHE",
    "FLAVORTOWN_LOG_LEVEL",
    "FLAVORTOWN_LOG_DIR",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestDefaults:
    def test_defaults(self):
        config = EnrichmentConfig()
        assert config.accuracy_model == "gpt-4o-mini"
        assert config.creative_model == "qwen3-8b"
        assert config.skip_local is True
        assert config.search_interval_cap == 900
        assert config.search_concurrency == 5
        assert config.llm_interval_cap == 50
        assert config.llm_concurrency == 10
        assert not config.has_places
        assert not config.has_supabase

    def test_has_places_and_supabase(self):
        config = EnrichmentConfig(
            google_places_api_key="g-key", supabase_url="https://x.supabase.co", supabase_key="s-key",
        )
        assert config.has_places
        assert config.has_supabase


class TestValidation:
    @pytest.mark.parametrize("field", ["llm_timeout", "search_interval", "llm_interval"])
    def test_non_positive_float_rejected(self, field):
        with pytest.raises(ValueError, match=field):
            EnrichmentConfig(**{field: 0})

    @pytest.mark.parametrize(
        "field", ["search_interval_cap", "search_concurrency", "llm_interval_cap", "llm_concurrency"]
    )
    def test_non_positive_limits_rejected(self, field):
        with pytest.raises(ValueError, match=field):
            EnrichmentConfig(**{field: 0})

    def test_bad_log_level_rejected(self):
        with pytest.raises(ValueError, match="log_level"):
            EnrichmentConfig(log_level="LOUD")


class TestFromEnv:
    def test_reads_environment(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("TAVILY_API_KEY", "tvly-test")
        clean_env.setenv("NEXT_PUBLIC_SUPABASE_URL", "https://x.supabase.co")
        clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
        clean_env.setenv("FLAVORTOWN_SKIP_LOCAL", "false")
        clean_env.setenv("FLAVORTOWN_LOG_LEVEL", "DEBUG")

        config = EnrichmentConfig.from_env(env_file=None)

        assert config.openai_api_key == "sk-test"
        assert config.tavily_api_key == "tvly-test"
        assert config.supabase_url == "https://x.supabase.co"
        assert config.supabase_key == "service"
        assert config.skip_local is False
        assert config.log_level == "DEBUG"
        assert config.google_places_api_key is None

    def test_supabase_url_fallback(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://fallback.supabase.co")
        config = EnrichmentConfig.from_env(env_file=None)
        assert config.supabase_url == "https://fallback.supabase.co"

    def test_reads_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env.local"
        env_file.write_text("TAVILY_API_KEY=from-file\n")
        config = EnrichmentConfig.from_env(env_file=str(env_file))
        assert config.tavily_api_key == "from-file"

    def test_overrides_win(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-env")
        config = EnrichmentConfig.from_env(env_file=None, openai_api_key="sk-override")
        assert config.openai_api_key == "sk-override"

    def test_for_development(self):
        config = EnrichmentConfig.for_development()
        assert config.skip_local is False
        assert config.log_level == "DEBUG"
