"""Tests for the implicit MCP session."""

import pytest

from vergeos_mcp.config import Config, ServerConfig, VergeOSConfig
from vergeos_mcp.connection import ConnectionRegistry
from vergeos_mcp.exceptions import AuthenticationError, NotFoundError
from vergeos_mcp.session import Session, connection_info


@pytest.fixture
def session(connection) -> Session:
    registry = ConnectionRegistry()
    registry.add(connection)
    return Session(Config(), registry)


class TestSession:
    """Tests for Session."""

    @pytest.mark.asyncio
    async def test_client_for_default(self, session, connection):
        """Test that the default connection is used without a host."""
        client = await session.client()
        assert client.connection is connection
        assert await session.client() is client

    @pytest.mark.asyncio
    async def test_client_for_unknown_host(self, session):
        """Test that an unknown host is not found."""
        with pytest.raises(NotFoundError):
            await session.client("other.example.com")

    @pytest.mark.asyncio
    async def test_not_connected_without_credentials(self):
        """Test that nothing is opened without configured credentials."""
        with pytest.raises(AuthenticationError):
            await Session(Config()).client()

    @pytest.mark.asyncio
    async def test_lazy_connect_from_config(self):
        """Test that configured credentials open the default connection."""
        config = Config(
            vergeos=VergeOSConfig(host="verge.example.com", token="api-token"),
            server=ServerConfig(action_wait_timeout=5000, action_poll_interval=100),
        )
        session = Session(config)

        client = await session.client()

        assert client.connection.host == "verge.example.com"
        assert client.connection.token == "api-token"
        assert client.action_timeout == 5.0
        assert client.poll_interval == 0.1
        assert len(session.registry) == 1

    @pytest.mark.asyncio
    async def test_disconnect(self, session, connection, transport):
        """Test closing the default connection."""
        closed = await session.disconnect()
        assert closed is connection
        assert len(session.registry) == 0
        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_describe(self, session):
        """Test listing open connections."""
        described = await session.describe()
        assert described[0]["host"] == "verge.example.com"
        assert described[0]["is_default"] is True

    def test_set_default_unknown(self, session):
        """Test that only open connections can become the default."""
        with pytest.raises(NotFoundError):
            session.set_default("other.example.com")

    def test_connection_info(self, connection):
        """Test the connection summary."""
        info = connection_info(connection)
        assert info["username"] == "admin"
        assert info["is_connected"] is True
