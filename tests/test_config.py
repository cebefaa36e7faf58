"""Tests for configuration loading (master JSON key + individual env vars)."""

import json

import pytest

from quillpost.config import DEFAULT_HTTP_TIMEOUT, QuillpostConfig, load_config
from quillpost.errors import ConfigurationError

ENV_VARS = ("QUILLPOST_CONFIG", "SUPABASE_URL", "SUPABASE_KEY", "MEDIA_BUCKET", "HTTP_TIMEOUT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:

    def test_defaults(self):
        config = load_config()
        assert config.supabase_url is None
        assert config.media_bucket == "blog-images"
        assert config.http_timeout == DEFAULT_HTTP_TIMEOUT
        assert not config.has_supabase()

    def test_individual_vars(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "secret")
        monkeypatch.setenv("MEDIA_BUCKET", "media")
        monkeypatch.setenv("HTTP_TIMEOUT", "5")

        config = load_config()

        assert config.has_supabase()
        assert config.rest_url == "https://abc.supabase.co/rest/v1"
        assert config.storage_url == "https://abc.supabase.co/storage/v1"
        assert config.media_bucket == "media"
        assert config.http_timeout == 5.0

    def test_master_config_wins(self, monkeypatch):
        monkeypatch.setenv("QUILLPOST_CONFIG", json.dumps({
            "supabase_url": "https://master.supabase.co",
            "supabase_key": "master-key",
        }))
        monkeypatch.setenv("SUPABASE_URL", "https://individual.supabase.co")

        config = load_config()

        assert config.supabase_url == "https://master.supabase.co"
        assert config.supabase_key == "master-key"

    def test_master_gaps_filled_from_env(self, monkeypatch):
        monkeypatch.setenv("QUILLPOST_CONFIG", json.dumps({"SUPABASE_URL": "https://m.supabase.co"}))
        monkeypatch.setenv("SUPABASE_KEY", "from-env")

        config = load_config()

        assert config.supabase_url == "https://m.supabase.co"
        assert config.supabase_key == "from-env"

    def test_invalid_master_json_ignored(self, monkeypatch):
        monkeypatch.setenv("QUILLPOST_CONFIG", "{broken")
        monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
        assert load_config().supabase_url == "https://x.supabase.co"

    def test_invalid_timeout_falls_back(self, monkeypatch):
        monkeypatch.setenv("HTTP_TIMEOUT", "soon")
        assert load_config().http_timeout == DEFAULT_HTTP_TIMEOUT


class TestRequireSupabase:

    def test_names_missing_vars(self):
        with pytest.raises(ConfigurationError) as exc:
            QuillpostConfig(supabase_url="https://x.supabase.co").require_supabase()
        assert exc.value.details["missing"] == ["SUPABASE_KEY"]

    def test_configured(self):
        QuillpostConfig(supabase_url="https://x.supabase.co", supabase_key="k").require_supabase()


class TestBuildServices:

    def test_memory_without_supabase(self):
        from quillpost.media.storage import MemoryStorage
        from quillpost.persistence.memory import MemoryRepository
        from quillpost.services import build_services

        services = build_services(QuillpostConfig())
        assert isinstance(services.storage, MemoryStorage)
        assert isinstance(services.repository, MemoryRepository)

    def test_supabase_when_configured(self):
        from quillpost.media.storage import SupabaseStorage
        from quillpost.persistence.supabase import SupabaseRepository
        from quillpost.services import build_services

        services = build_services(QuillpostConfig(supabase_url="https://x.supabase.co", supabase_key="k"))
        assert isinstance(services.storage, SupabaseStorage)
        assert isinstance(services.repository, SupabaseRepository)
        assert services.posts.repository is services.repository

    def test_in_memory_overrides(self):
        from quillpost.media.storage import MemoryStorage
        from quillpost.services import build_services

        services = build_services(
            QuillpostConfig(supabase_url="https://x.supabase.co", supabase_key="k"),
            in_memory=True,
        )
        assert isinstance(services.storage, MemoryStorage)
