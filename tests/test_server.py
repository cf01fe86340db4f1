"""Tests for the MCP server tool execution."""

import json

import pytest

from vergeos_mcp.config import Config, ServerConfig
from vergeos_mcp.connection import ConnectionRegistry
from vergeos_mcp.exceptions import NotFoundError
from vergeos_mcp.server import VergeMCPServer
from vergeos_mcp.session import Session


def payload(result):
    return json.loads(result.content[0].text)


@pytest.fixture
def mcp_server(connection) -> VergeMCPServer:
    registry = ConnectionRegistry()
    registry.add(connection)
    return VergeMCPServer(Config(), Session(Config(), registry))


class TestVergeMCPServer:
    """Tests for VergeMCPServer."""

    @pytest.mark.asyncio
    async def test_initialize(self, mcp_server):
        """Test that initialization exposes the read-only tools."""
        await mcp_server.initialize()
        names = {t["name"] for t in mcp_server.tools}
        assert "get_vm" in names
        assert "new_vm" not in names

    @pytest.mark.asyncio
    async def test_get_vm(self, mcp_server, transport, vm_row):
        """Test a successful tool call returns JSON records."""
        await mcp_server.initialize()
        transport.request.return_value = [vm_row(status="running")]

        result = await mcp_server._execute_tool("get_vm", {"vm": "web*"})

        assert result.isError is False
        records = payload(result)
        assert records[0]["name"] == "web01"
        assert records[0]["status_display"] == "Running"

    @pytest.mark.asyncio
    async def test_disabled_tool(self, mcp_server, transport):
        """Test that a tool whose verb is not allowed is refused."""
        await mcp_server.initialize()

        result = await mcp_server._execute_tool("remove_vm", {"vm": 5})

        assert result.isError is True
        assert payload(result)["error"] == "ValidationError"
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_tool(self, mcp_server):
        """Test that unknown tools are refused."""
        await mcp_server.initialize()
        result = await mcp_server._execute_tool("format_disk", {})
        assert result.isError is True

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, mcp_server, transport):
        """Test that unexpected arguments are rejected before any request."""
        await mcp_server.initialize()

        result = await mcp_server._execute_tool("get_vm", {"vm": "web01", "colour": "red"})

        assert result.isError is True
        assert payload(result)["error"] == "ValidationError"
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_library_error(self, mcp_server, transport):
        """Test that library errors carry their kind and status."""
        await mcp_server.initialize()
        transport.request.side_effect = NotFoundError("vms", 99)

        result = await mcp_server._execute_tool("get_vm", {"vm": "web01"})

        assert result.isError is True
        body = payload(result)
        assert body["error"] == "NotFoundError"
        assert body["status_code"] == 404

    @pytest.mark.asyncio
    async def test_unexpected_error(self, mcp_server, transport):
        """Test that unexpected exceptions become error results."""
        await mcp_server.initialize()
        transport.request.side_effect = RuntimeError("boom")

        result = await mcp_server._execute_tool("get_vm", {})

        assert result.isError is True
        assert payload(result) == {"error": "RuntimeError", "message": "boom"}

    @pytest.mark.asyncio
    async def test_session_tools_always_available(self, mcp_server):
        """Test that session tools work under a read-only verb list."""
        await mcp_server.initialize()

        result = await mcp_server._execute_tool("get_connection", {})

        assert result.isError is False
        assert payload(result)[0]["host"] == "verge.example.com"

    @pytest.mark.asyncio
    async def test_write_verbs_enabled(self, connection, transport, vm_row):
        """Test that enabling a verb exposes its tools."""
        registry = ConnectionRegistry()
        registry.add(connection)
        config = Config(server=ServerConfig(allowed_verbs=["Get", "Start"]))
        server = VergeMCPServer(config, Session(config, registry))
        await server.initialize()
        transport.request.side_effect = [[vm_row(status="stopped")], None]

        result = await server._execute_tool("start_vm", {"vm": "web01"})

        assert result.isError is False
        assert payload(result)["action"] == "poweron"

    @pytest.mark.asyncio
    async def test_digit_string_is_a_name(self, mcp_server, transport):
        """Test that a quoted number is looked up as a tenant name."""
        await mcp_server.initialize()
        transport.request.return_value = [{"$key": 3, "name": "2024"}]

        result = await mcp_server._execute_tool("get_tenant", {"tenant": "2024"})

        assert result.isError is False
        assert payload(result)[0]["key"] == 3
        assert transport.request.call_args.args == ("GET", "tenants")
        assert "name eq '2024'" in transport.request.call_args.kwargs["params"]["filter"]

    @pytest.mark.asyncio
    async def test_number_is_a_key(self, mcp_server, transport):
        """Test that a JSON number is fetched as a key."""
        await mcp_server.initialize()
        transport.request.return_value = {"$key": 2024, "name": "t1"}

        result = await mcp_server._execute_tool("get_tenant", {"tenant": 2024})

        assert result.isError is False
        assert transport.request.call_args.args == ("GET", "tenants/2024")
