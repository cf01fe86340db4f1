"""MCP server exposing VergeOS operations as tools.

Example:
    >>> config = load_config()
    >>> server = VergeMCPServer(config)
    >>> await server.initialize()
    >>> result = await server._execute_tool("get_vm", {"vm": "web*"})
"""

from __future__ import annotations

import json
from typing import Any

from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool
from pydantic import ValidationError as PydanticValidationError

from . import __version__
from .config import Config
from .exceptions import ValidationError, VergeError
from .logging_config import get_logger
from .operations import OPERATIONS_BY_NAME, to_output
from .session import Session
from .tool_generator import ToolGenerator

logger = get_logger(__name__)

SERVER_NAME = "vergeos-mcp-server"


class ToolCallError(Exception):
    """Carries the JSON error body of a failed tool call to the MCP runtime."""


def _text(data: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


class VergeMCPServer:
    """MCP server for one VergeOS session.

    Attributes:
        config: Loaded configuration.
        session: Connections opened for tool calls.
        server: Low-level MCP server.
        tools: Exposed tool definitions.
    """

    def __init__(self, config: Config, session: Session | None = None) -> None:
        self.config = config
        self.session = session or Session(config)
        self.server = Server(SERVER_NAME)
        self.tools: list[dict[str, Any]] = []
        self._initialized = False

    async def initialize(self) -> None:
        """Generate tools and register the MCP handlers."""
        if self._initialized:
            return

        generator = ToolGenerator(allowed_verbs=self.config.server.allowed_verbs)
        self.tools = generator.generate_tools()
        self._register_handlers()
        self._initialized = True

        logger.info(
            "VergeOS MCP server initialized",
            extra={
                "tool_count": len(self.tools),
                "vergeos_host": self.config.vergeos.host,
            },
        )

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def handle_list_tools() -> list[Tool]:
            return [
                Tool(
                    name=tool["name"],
                    description=tool["description"],
                    inputSchema=tool["inputSchema"],
                )
                for tool in self.tools
            ]

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
            result = await self._execute_tool(name, arguments or {})
            if result.isError:
                raise ToolCallError(result.content[0].text)
            return list(result.content)

    def _exposed(self, name: str):
        if not any(tool["name"] == name for tool in self.tools):
            raise ValidationError(f"Unknown or disabled tool: {name}")
        return OPERATIONS_BY_NAME[name]

    async def _execute_tool(self, name: str, arguments: dict[str, Any]) -> CallToolResult:
        """Run one tool call and wrap its outcome.

        Library errors become error results carrying their ``to_dict()``
        form; anything else is logged with its traceback first.
        """
        logger.info("Executing tool", extra={"tool": name})
        try:
            operation = self._exposed(name)
            try:
                params = operation.params_model.model_validate(arguments)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid arguments for {name}: {e}") from e
            result = await operation.handler(self.session, params)
            return CallToolResult(content=_text(to_output(result)), isError=False)
        except VergeError as e:
            logger.warning(
                "Tool failed",
                extra={"tool": name, "error": type(e).__name__, "message": e.message},
            )
            return CallToolResult(content=_text(e.to_dict()), isError=True)
        except Exception as e:
            logger.exception("Unexpected error in tool", extra={"tool": name})
            return CallToolResult(
                content=_text({"error": type(e).__name__, "message": str(e)}),
                isError=True,
            )

    def initialization_options(self) -> InitializationOptions:
        return InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=self.server.get_capabilities(NotificationOptions(), {}),
        )

    async def run_stdio(self) -> None:
        """Serve over stdin/stdout until the client disconnects."""
        await self.initialize()
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(read_stream, write_stream, self.initialization_options())
        finally:
            await self.close()

    async def close(self) -> None:
        await self.session.close()
