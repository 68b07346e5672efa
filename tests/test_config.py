"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from concept2_mcp import config
from concept2_mcp.config import Settings, get_settings, reset_settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.base_url == "https://log.concept2.com"
        assert settings.scopes == "user:read,results:read"
        assert settings.redirect_port == 49721
        assert settings.token_file == Path.home() / ".concept2_mcp_tokens.json"
        assert settings.auth_timeout_ms == 60_000
        assert settings.log_level == "none"
        assert settings.client_id is None
        assert not settings.has_oauth_credentials
        assert not settings.has_static_token

    def test_derived_endpoints(self):
        settings = Settings(_env_file=None, base_url="https://log-dev.concept2.com/", redirect_port=5000)

        assert settings.base_url == "https://log-dev.concept2.com"
        assert settings.redirect_uri == "http://localhost:5000/callback"
        assert settings.authorize_endpoint == "https://log-dev.concept2.com/oauth/authorize"
        assert settings.token_endpoint == "https://log-dev.concept2.com/oauth/access_token"
        assert settings.api_base == "https://log-dev.concept2.com/api"
        assert settings.is_dev_server
        assert settings.developer_portal_url == "https://log-dev.concept2.com/developers/keys"

    def test_environment_variables(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CONCEPT2_CLIENT_ID", "id")
        monkeypatch.setenv("CONCEPT2_CLIENT_SECRET", "secret")
        monkeypatch.setenv("CONCEPT2_REDIRECT_PORT", "50000")
        monkeypatch.setenv("CONCEPT2_TOKEN_FILE", str(tmp_path / "t.json"))
        monkeypatch.setenv("CONCEPT2_LOG_LEVEL", "DEBUG")

        settings = Settings(_env_file=None)

        assert settings.has_oauth_credentials
        assert settings.redirect_port == 50000
        assert settings.token_file == tmp_path / "t.json"
        assert settings.log_level == "debug"

    def test_blank_values_are_unset(self, monkeypatch):
        monkeypatch.setenv("CONCEPT2_ACCESS_TOKEN", "  ")
        monkeypatch.setenv("CONCEPT2_CLIENT_ID", "")

        settings = Settings(_env_file=None)

        assert settings.access_token is None
        assert settings.client_id is None

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="verbose")

    @pytest.mark.parametrize("port", [80, 70000])
    def test_invalid_port(self, port):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, redirect_port=port)

    def test_invalid_callback_path(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, callback_path="callback")

    def test_frozen(self):
        settings = Settings(_env_file=None)
        with pytest.raises(ValidationError):
            settings.client_id = "changed"

    def test_yaml_config_file(self, monkeypatch, tmp_path):
        """Values come from the YAML file when the environment is silent."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump({"client_id": "from-yaml", "scopes": "user:read"}))
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        settings = Settings(_env_file=None)

        assert settings.client_id == "from-yaml"
        assert settings.scopes == "user:read"

    def test_environment_overrides_yaml(self, monkeypatch, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump({"client_id": "from-yaml"}))
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)
        monkeypatch.setenv("CONCEPT2_CLIENT_ID", "from-env")

        assert Settings(_env_file=None).client_id == "from-env"

    def test_broken_yaml_is_ignored(self, monkeypatch, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("client_id: [unclosed")
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        assert Settings(_env_file=None).client_id is None


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("CONCEPT2_ACCESS_TOKEN", "abc123")

    first = get_settings()
    assert get_settings() is first
    assert first.access_token == "abc123"

    reset_settings()
    assert get_settings() is not first
