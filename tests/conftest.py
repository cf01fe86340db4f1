"""Pytest configuration and fixtures for VergeOS MCP Server tests."""

from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from vergeos_mcp.client import VergeClient
from vergeos_mcp.config import ServerConfig, VergeOSConfig
from vergeos_mcp.connection import Connection
from vergeos_mcp.transport import VergeTransport


@pytest.fixture
def sample_vergeos_config() -> VergeOSConfig:
    """Create a sample VergeOS configuration for testing."""
    return VergeOSConfig(
        host="verge.example.com",
        username="test_user",
        password="test_password",
        port=8443,
        tls_verify=False,
    )


@pytest.fixture
def sample_server_config() -> ServerConfig:
    """Create a sample server configuration for testing."""
    return ServerConfig(
        log_level="DEBUG",
        log_json=False,
    )


@pytest.fixture
def mock_httpx_response():
    """Create a mock httpx response."""
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"$key": 1, "name": "test"}
    mock_response.text = '{"$key": 1, "name": "test"}'
    mock_response.content = mock_response.text.encode()
    mock_response.headers = {"content-type": "application/json"}
    return mock_response


@pytest.fixture
def mock_httpx_client(mock_httpx_response):
    """Create a mock httpx async client."""
    mock_client = AsyncMock()
    mock_client.get.return_value = mock_httpx_response
    mock_client.post.return_value = mock_httpx_response
    mock_client.put.return_value = mock_httpx_response
    mock_client.delete.return_value = mock_httpx_response
    mock_client.headers = {}
    mock_client.aclose = AsyncMock()
    return mock_client


@pytest.fixture
def transport() -> VergeTransport:
    """Transport whose ``request`` is mocked; no HTTP client is created."""
    t = VergeTransport(host="verge.example.com", retry_delay=0)
    t.set_token("test-token")
    t.request = AsyncMock(return_value=None)
    return t


@pytest.fixture
def connection(transport) -> Connection:
    """Connection wrapped around the mocked transport."""
    return Connection(host="verge.example.com", username="admin", transport=transport)


@pytest.fixture
def verge_client(connection) -> VergeClient:
    """Client with short waits so polling tests run quickly."""
    return VergeClient(connection, action_timeout=1.0, poll_interval=0.01)


@pytest.fixture
def vm_row():
    """Factory for VM rows as the API returns them."""

    def make(key: int = 5, name: str = "web01", status: str = "stopped", **extra: Any) -> Dict[str, Any]:
        row = {
            "$key": key,
            "name": name,
            "machine": key * 10,
            "cpu_cores": 2,
            "ram": 2048,
            "status": status,
            "running": status == "running",
            "node_name": "node1",
            "node_key": 1,
        }
        row.update(extra)
        return row

    return make


@pytest.fixture
def env_with_credentials(monkeypatch):
    """Set environment variables with test credentials."""
    monkeypatch.setenv("VERGEOS_HOST", "verge.example.com")
    monkeypatch.setenv("VERGEOS_USERNAME", "test_user")
    monkeypatch.setenv("VERGEOS_PASSWORD", "test_password")
    monkeypatch.setenv("VERGEOS_PORT", "8443")
    monkeypatch.setenv("VERGEOS_TLS_VERIFY", "false")


@pytest.fixture
def env_without_credentials(monkeypatch):
    """Clear environment variables for credential-free testing."""
    for var in [
        "VERGEOS_HOST",
        "VERGEOS_USERNAME",
        "VERGEOS_PASSWORD",
        "VERGEOS_TOKEN",
        "VERGEOS_PORT",
        "VERGEOS_TLS_VERIFY",
        "ALLOWED_VERBS",
        "LOG_LEVEL",
        "LOG_JSON",
        "LOG_FILE",
        "HTTP_SERVER_PORT",
        "MAX_RETRIES",
        "RETRY_DELAY",
        "REQUEST_TIMEOUT",
        "ACTION_WAIT_TIMEOUT",
        "ACTION_POLL_INTERVAL",
    ]:
        monkeypatch.delenv(var, raising=False)
