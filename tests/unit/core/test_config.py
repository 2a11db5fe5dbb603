"""Unit tests for forge.core.config."""

import pytest
from pydantic import ValidationError

from forge.core.config import Settings, get_settings


class TestSettings:

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.service_name == "forge"
        assert settings.oracle_backend == "cli"
        assert settings.store_backend == "memory"
        assert settings.min_quorum == 2
        assert settings.concern_weight == 0.3
        assert settings.max_plan_revisions == 2
        assert settings.fast_track_skips_critique is True

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("FORGE_MIN_QUORUM", "3")
        monkeypatch.setenv("FORGE_ORACLE_BACKEND", "http")
        monkeypatch.setenv("FORGE_ORACLE_API_KEY", "secret")

        settings = Settings(_env_file=None)

        assert settings.min_quorum == 3
        assert settings.oracle_backend == "http"
        assert settings.oracle_api_key.get_secret_value() == "secret"

    def test_invalid_backend(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, store_backend="sqlite")

    def test_quorum_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, min_quorum=0)

    def test_secrets_are_masked(self) -> None:
        settings = Settings(_env_file=None)

        assert "dev-service-key" not in repr(settings)

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestFactories:

    def test_create_store(self) -> None:
        from forge.store import InMemoryStore, PostgrestStore, create_store

        assert isinstance(create_store(Settings(_env_file=None)), InMemoryStore)
        assert isinstance(create_store(Settings(_env_file=None, store_backend="postgrest")), PostgrestStore)

    def test_create_oracle(self) -> None:
        from forge.oracle import CliOracle, HttpOracle, OracleProtocol, create_oracle

        cli = create_oracle(Settings(_env_file=None, oracle_command="/usr/local/bin/claude"))
        http = create_oracle(Settings(_env_file=None, oracle_backend="http", oracle_url="http://llm:8085/"))

        assert isinstance(cli, CliOracle)
        assert cli.command == "/usr/local/bin/claude"
        assert isinstance(http, HttpOracle)
        assert http.base_url == "http://llm:8085"
        assert isinstance(http, OracleProtocol)
