"""Tests for the configuration module."""

import pytest
from pydantic import ValidationError

from vergeos_mcp.config import (
    Config,
    ServerConfig,
    VergeOSConfig,
    load_config,
    require_host,
)
from vergeos_mcp.exceptions import ConfigurationError, EnvironmentVariableError


class TestVergeOSConfig:
    """Tests for VergeOSConfig model."""

    def test_valid_config(self, sample_vergeos_config):
        """Test creating a valid configuration."""
        assert sample_vergeos_config.host == "verge.example.com"
        assert sample_vergeos_config.username == "test_user"
        assert sample_vergeos_config.port == 8443
        assert sample_vergeos_config.tls_verify is False

    def test_defaults(self):
        """Test default port and TLS verification."""
        config = VergeOSConfig(host="verge")
        assert config.port == 443
        assert config.tls_verify is False
        assert config.token is None

    def test_host_scheme_is_stripped(self):
        """Test that a URL-style host is reduced to the host name."""
        config = VergeOSConfig(host="https://verge.example.com/")
        assert config.host == "verge.example.com"

    def test_has_credentials_with_password(self, sample_vergeos_config):
        """Test credentials detection with username and password."""
        assert sample_vergeos_config.has_credentials is True

    def test_has_credentials_with_token(self):
        """Test credentials detection with an API token only."""
        assert VergeOSConfig(host="verge", token="abc").has_credentials is True

    def test_has_credentials_without_host(self):
        """Test that credentials without a host are not usable."""
        assert VergeOSConfig(username="u", password="p").has_credentials is False


class TestServerConfig:
    """Tests for ServerConfig model."""

    def test_defaults(self):
        """Test default server configuration values."""
        config = ServerConfig()
        assert config.port == 3000
        assert config.log_level == "INFO"
        assert config.allowed_verbs == ["Get"]
        assert config.action_wait_timeout == 60000

    def test_invalid_port(self):
        """Test that invalid port raises error."""
        with pytest.raises(ValidationError):
            ServerConfig(port=70000)

    def test_invalid_log_level(self):
        """Test that invalid log level raises error."""
        with pytest.raises(ValidationError):
            ServerConfig(log_level="VERBOSE")

    def test_verbs_are_normalized(self):
        """Test that verbs are matched case-insensitively."""
        config = ServerConfig(allowed_verbs=["get", "START", "stop"])
        assert config.allowed_verbs == ["Get", "Start", "Stop"]

    def test_unknown_verb_rejected(self):
        """Test that unknown verbs are rejected."""
        with pytest.raises(ValidationError):
            ServerConfig(allowed_verbs=["Get", "Destroy"])


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_from_env(self, env_without_credentials, env_with_credentials):
        """Test loading configuration from environment variables."""
        config = load_config()
        assert config.vergeos.host == "verge.example.com"
        assert config.vergeos.username == "test_user"
        assert config.vergeos.port == 8443
        assert config.vergeos.tls_verify is False

    def test_load_without_credentials(self, env_without_credentials):
        """Test loading configuration with nothing set."""
        config = load_config()
        assert config.vergeos.host is None
        assert config.vergeos.has_credentials is False
        assert config.server.allowed_verbs == ["Get"]

    def test_allowed_verbs_from_env(self, env_without_credentials, monkeypatch):
        """Test parsing ALLOWED_VERBS."""
        monkeypatch.setenv("ALLOWED_VERBS", "Get, Start ,stop")
        config = load_config()
        assert config.server.allowed_verbs == ["Get", "Start", "Stop"]

    def test_millisecond_settings(self, env_without_credentials, monkeypatch):
        """Test timing settings read from the environment."""
        monkeypatch.setenv("ACTION_WAIT_TIMEOUT", "120000")
        monkeypatch.setenv("ACTION_POLL_INTERVAL", "250")
        config = load_config()
        assert config.server.action_wait_timeout == 120000
        assert config.server.action_poll_interval == 250

    def test_invalid_value_raises_configuration_error(self, env_without_credentials, monkeypatch):
        """Test that malformed values raise ConfigurationError."""
        monkeypatch.setenv("VERGEOS_PORT", "not-a-number")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_unknown_verb_raises_configuration_error(self, env_without_credentials, monkeypatch):
        """Test that an unknown verb in ALLOWED_VERBS is a configuration error."""
        monkeypatch.setenv("ALLOWED_VERBS", "Get,Explode")
        with pytest.raises(ConfigurationError):
            load_config()


class TestRequireHost:
    """Tests for require_host."""

    def test_returns_host(self, sample_vergeos_config):
        """Test that a configured host is returned."""
        assert require_host(Config(vergeos=sample_vergeos_config)) == "verge.example.com"

    def test_missing_host(self):
        """Test that a missing host names the environment variable."""
        with pytest.raises(EnvironmentVariableError) as exc_info:
            require_host(Config())
        assert exc_info.value.variable == "VERGEOS_HOST"
