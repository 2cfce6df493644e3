"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from perplexity_chat.adapters.perplexity.exceptions import ConfigurationError
from perplexity_chat.config import API_URL, load_config, validate_model_name


class TestLoadConfig:
    def test_defaults(self) -> None:
        cfg = load_config()

        assert cfg.perplexity.api_key is None
        assert cfg.perplexity.model == "sonar"
        assert cfg.perplexity.base_url == API_URL
        assert cfg.perplexity.max_response_size_mb == 10
        assert cfg.runtime.log_level == "INFO"
        assert cfg.runtime.request_timeout_sec == 60
        assert cfg.runtime.debug_payloads is False

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PERPLEXITY_API_KEY", "pplx-env-key")
        monkeypatch.setenv("PERPLEXITY_MODEL", "sonar-pro")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("REQUEST_TIMEOUT_SEC", "30")

        cfg = load_config()

        assert cfg.perplexity.api_key == "pplx-env-key"
        assert cfg.perplexity.model == "sonar-pro"
        assert cfg.runtime.log_level == "DEBUG"
        assert cfg.runtime.request_timeout_sec == 30

    def test_overrides_win_over_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PERPLEXITY_MODEL", "sonar-pro")

        cfg = load_config(perplexity={"model": "sonar"})

        assert cfg.perplexity.model == "sonar"

    def test_empty_api_key_is_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PERPLEXITY_API_KEY", "")

        assert load_config().perplexity.api_key is None

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("LOG_LEVEL", "LOUD"),
            ("REQUEST_TIMEOUT_SEC", "0"),
            ("REQUEST_TIMEOUT_SEC", "9000"),
            ("PERPLEXITY_BASE_URL", "ftp://example.com"),
            ("PERPLEXITY_MAX_RESPONSE_SIZE_MB", "500"),
            ("PERPLEXITY_API_KEY", "has space"),
        ],
    )
    def test_invalid_values_raise_configuration_error(
        self, monkeypatch: pytest.MonkeyPatch, name: str, value: str
    ) -> None:
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError, match="Configuration validation failed"):
            load_config()


class TestValidateModelName:
    @pytest.mark.parametrize("model", ["sonar", "sonar-pro", "sonar-reasoning-pro"])
    def test_accepts_known_shapes(self, model: str) -> None:
        assert validate_model_name(model) == model

    @pytest.mark.parametrize("model", ["", "a" * 101, "../etc", "sonar pro"])
    def test_rejects_bad_names(self, model: str) -> None:
        with pytest.raises(ValueError):
            validate_model_name(model)
