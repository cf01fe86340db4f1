"""Configuration loader for the VergeOS MCP server.

This module provides configuration management using Pydantic models
for validation and environment variable loading.

Example:
    >>> from vergeos_mcp.config import load_config
    >>> config = load_config()
    >>> print(config.server.port)
    3000

Environment Variables:
    VERGEOS_HOST: VergeOS host (optional).
    VERGEOS_USERNAME: Username for session login (optional).
    VERGEOS_PASSWORD: Password for session login (optional).
    VERGEOS_TOKEN: Pre-issued API token, used instead of a password (optional).
    VERGEOS_PORT: API port (default: 443).
    VERGEOS_TLS_VERIFY: Verify TLS certificates (default: false).
    HTTP_SERVER_PORT: HTTP server port (default: 3000).
    LOG_LEVEL: Logging level (default: INFO).
    ALLOWED_VERBS: Comma-separated verbs exposed as tools (default: Get).
    ACTION_WAIT_TIMEOUT: Max wait for post-action state, ms (default: 60000).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError, EnvironmentVariableError
from .logging_config import get_logger

logger = get_logger(__name__)

KNOWN_VERBS = (
    "Connect",
    "Disconnect",
    "Get",
    "New",
    "Set",
    "Remove",
    "Start",
    "Stop",
    "Restart",
    "Move",
    "Restore",
    "Import",
    "Enable",
    "Disable",
    "Send",
    "Invoke",
)


class VergeOSConfig(BaseModel):
    """VergeOS connection configuration.

    Attributes:
        host: VergeOS host name or address.
        username: Login user name.
        password: Login password.
        token: Pre-issued API token; skips the login call when set.
        tls_verify: Whether to verify TLS certificates.
        port: API port.
    """

    host: str | None = Field(
        default=None,
        description="VergeOS host name or address",
    )
    username: str | None = Field(
        default=None,
        description="VergeOS username",
    )
    password: str | None = Field(
        default=None,
        description="VergeOS password",
    )
    token: str | None = Field(
        default=None,
        description="Pre-issued API token",
    )
    tls_verify: bool = Field(
        default=False,
        description="Verify TLS certificates",
    )
    port: int = Field(
        default=443,
        ge=1,
        le=65535,
        description="VergeOS API port",
    )

    @field_validator("host")
    @classmethod
    def strip_scheme(cls, v: str | None) -> str | None:
        """Accept ``https://host/`` as well as a bare host name."""
        if v is None:
            return v
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.lower().startswith(prefix):
                v = v[len(prefix):]
        return v.rstrip("/") or None

    @property
    def has_credentials(self) -> bool:
        return bool(self.host and (self.token or (self.username and self.password)))

    model_config = {"extra": "ignore"}


class ServerConfig(BaseModel):
    """Server configuration.

    Attributes:
        port: HTTP server port.
        log_level: Logging level.
        log_json: Use JSON format for logs.
        log_file: Optional log file path.
        allowed_verbs: Operation verbs exposed as tools.
        max_retries: Max API retry attempts.
        retry_delay: Retry delay in milliseconds.
        request_timeout: Request timeout in milliseconds.
        action_wait_timeout: Deadline for post-action polling in milliseconds.
        action_poll_interval: First poll delay in milliseconds.
    """

    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="HTTP server port",
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON format for logs",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )
    allowed_verbs: list[str] = Field(
        default=["Get"],
        description="Operation verbs exposed as tools",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum API retry attempts",
    )
    retry_delay: int = Field(
        default=500,
        ge=100,
        le=30000,
        description="Retry delay in milliseconds",
    )
    request_timeout: int = Field(
        default=30000,
        ge=1000,
        le=300000,
        description="Request timeout in milliseconds",
    )
    action_wait_timeout: int = Field(
        default=60000,
        ge=1000,
        le=3600000,
        description="Deadline for post-action polling in milliseconds",
    )
    action_poll_interval: int = Field(
        default=500,
        ge=50,
        le=60000,
        description="Initial post-action poll delay in milliseconds",
    )

    @field_validator("allowed_verbs")
    @classmethod
    def validate_verbs(cls, v: list[str]) -> list[str]:
        normalized = []
        for verb in v:
            match = next((k for k in KNOWN_VERBS if k.lower() == verb.lower()), None)
            if match is None:
                raise ValueError(f"Unknown operation verb: {verb}")
            normalized.append(match)
        return normalized

    model_config = {"extra": "ignore"}


class Config(BaseModel):
    """Main configuration container.

    Attributes:
        vergeos: VergeOS connection settings.
        server: Server settings.
    """

    vergeos: VergeOSConfig = Field(default_factory=VergeOSConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    model_config = {"extra": "ignore"}


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config(env_file: str | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file.

    Returns:
        Validated Config object.

    Raises:
        ConfigurationError: If a value is present but invalid.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    logger.debug("Loading configuration from environment")

    try:
        vergeos_config = VergeOSConfig(
            host=os.getenv("VERGEOS_HOST"),
            username=os.getenv("VERGEOS_USERNAME"),
            password=os.getenv("VERGEOS_PASSWORD"),
            token=os.getenv("VERGEOS_TOKEN"),
            tls_verify=_env_bool("VERGEOS_TLS_VERIFY"),
            port=int(os.getenv("VERGEOS_PORT", "443")),
        )

        verbs_str = os.getenv("ALLOWED_VERBS", "Get")
        allowed_verbs = [v.strip() for v in verbs_str.split(",") if v.strip()]

        server_config = ServerConfig(
            port=int(os.getenv("HTTP_SERVER_PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON"),
            log_file=os.getenv("LOG_FILE"),
            allowed_verbs=allowed_verbs,
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_delay=int(os.getenv("RETRY_DELAY", "500")),
            request_timeout=int(os.getenv("REQUEST_TIMEOUT", "30000")),
            action_wait_timeout=int(os.getenv("ACTION_WAIT_TIMEOUT", "60000")),
            action_poll_interval=int(os.getenv("ACTION_POLL_INTERVAL", "500")),
        )

        config = Config(
            vergeos=vergeos_config,
            server=server_config,
        )

        logger.info(
            "Configuration loaded successfully",
            extra={
                "vergeos_host": config.vergeos.host,
                "allowed_verbs": config.server.allowed_verbs,
            },
        )

        return config

    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def require_host(config: Config) -> str:
    """Return the configured host or fail with a pointer to the variable.

    Raises:
        EnvironmentVariableError: If no host is configured.
    """
    if not config.vergeos.host:
        raise EnvironmentVariableError(
            "VERGEOS_HOST",
            message="No VergeOS host configured and none given in the call",
        )
    return config.vergeos.host
