"""HTTP front end for the VergeOS MCP server.

One :class:`VergeHTTPApp` wraps a :class:`~vergeos_mcp.server.VergeMCPServer`
and its :class:`~vergeos_mcp.session.Session`. It speaks raw ASGI because
MCP's SSE transport writes its own responses.

Routes:

==========  ==================  ============================================
Method      Path                Purpose
==========  ==================  ============================================
GET         ``/health``         server state and open connection count
GET         ``/tools``          exposed tools (``?verb=Get&noun=Vm``)
GET         ``/connections``    open VergeOS connections (``?check=true``)
GET         ``/sse``            MCP over Server-Sent Events
POST        ``/messages``       MCP client messages for an SSE stream
POST        ``/call``           one tool call, ``{"tool": ..., "arguments": {...}}``
==========  ==================  ============================================

Example:
    Running with uvicorn::

        $ uvicorn vergeos_mcp.http_server:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs

from mcp.server.sse import SseServerTransport

from . import __version__
from .config import Config, load_config
from .logging_config import get_logger, setup_logging
from .server import SERVER_NAME, VergeMCPServer
from .session import Session

logger = get_logger(__name__)

Scope = dict[str, Any]
Receive = Callable[[], Awaitable[dict[str, Any]]]
Send = Callable[[dict[str, Any]], Awaitable[None]]
JsonReply = tuple[int, dict[str, Any]]

CORS_HEADERS = [
    (b"access-control-allow-origin", b"*"),
    (b"access-control-allow-methods", b"GET, POST, OPTIONS"),
    (b"access-control-allow-headers", b"*"),
]


class BadRequest(Exception):
    """A request body the ``/call`` route cannot use."""


async def send_json(send: Send, status: int, data: Any) -> None:
    body = json.dumps(data, default=str).encode()
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode()),
                *CORS_HEADERS,
            ],
        }
    )
    await send({"type": "http.response.body", "body": body})


async def read_json(receive: Receive) -> dict[str, Any]:
    """Read a whole request body as a JSON object.

    Raises:
        BadRequest: The body is not a JSON object.
    """
    chunks = []
    more = True
    while more:
        message = await receive()
        chunks.append(message.get("body", b""))
        more = message.get("more_body", False)
    try:
        data = json.loads(b"".join(chunks) or b"{}")
    except ValueError as e:
        raise BadRequest(f"Body is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise BadRequest("Body must be a JSON object")
    return data


def query_params(scope: Scope) -> dict[str, str]:
    parsed = parse_qs(scope.get("query_string", b"").decode())
    return {name: values[-1] for name, values in parsed.items()}


class VergeHTTPApp:
    """ASGI application serving one MCP server over HTTP.

    Args:
        config: Loaded configuration; read from the environment when omitted.
        mcp_server: A prepared server, mainly for tests. Its session is
            the one every route uses.
    """

    def __init__(
        self,
        config: Config | None = None,
        mcp_server: VergeMCPServer | None = None,
    ) -> None:
        self.config = config
        self.mcp_server = mcp_server
        self.sse = SseServerTransport("/messages")
        self._ready = False
        self._json_routes: dict[tuple[str, str], Callable[..., Awaitable[JsonReply]]] = {
            ("GET", "/health"): self.health,
            ("GET", "/tools"): self.tools,
            ("GET", "/connections"): self.connections,
            ("POST", "/call"): self.call,
        }

    @property
    def session(self) -> Session:
        return self.mcp_server.session

    async def startup(self) -> None:
        if self._ready:
            return
        if self.mcp_server is None:
            config = self.config or load_config()
            setup_logging(
                log_level=config.server.log_level,
                json_format=config.server.log_json,
                log_file=config.server.log_file,
            )
            self.mcp_server = VergeMCPServer(config)
        await self.mcp_server.initialize()
        self._ready = True
        logger.info(
            "HTTP server ready",
            extra={"tool_count": len(self.mcp_server.tools)},
        )

    async def shutdown(self) -> None:
        if self.mcp_server is not None:
            await self.mcp_server.close()
        self._ready = False

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        await self.startup()
        method, path = scope["method"], scope["path"]

        if method == "OPTIONS":
            await send({"type": "http.response.start", "status": 204, "headers": CORS_HEADERS})
            await send({"type": "http.response.body", "body": b""})
        elif (method, path) == ("GET", "/sse"):
            await self._stream(scope, receive, send)
        elif (method, path) == ("POST", "/messages"):
            await self.sse.handle_post_message(scope, receive, self._with_cors(send))
        elif (method, path) in self._json_routes:
            status, data = await self._json_routes[(method, path)](scope, receive)
            await send_json(send, status, data)
        else:
            await send_json(send, 404, {"error": "NotFound", "message": f"No route for {method} {path}"})

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as e:
                    logger.error(f"Startup failed: {e}")
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                else:
                    await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    def _with_cors(self, send: Send) -> Send:
        async def wrapped(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                message = {**message, "headers": [*message.get("headers", []), *CORS_HEADERS]}
            await send(message)

        return wrapped

    async def _stream(self, scope: Scope, receive: Receive, send: Send) -> None:
        async with self.sse.connect_sse(scope, receive, self._with_cors(send)) as (reader, writer):
            await self.mcp_server.server.run(
                reader, writer, self.mcp_server.initialization_options()
            )

    async def health(self, scope: Scope, receive: Receive) -> JsonReply:
        default = self.session.registry.get_default() if len(self.session.registry) else None
        return 200, {
            "status": "healthy",
            "server": SERVER_NAME,
            "version": __version__,
            "tool_count": len(self.mcp_server.tools),
            "connections": len(self.session.registry),
            "default_host": default.host if default else None,
        }

    async def tools(self, scope: Scope, receive: Receive) -> JsonReply:
        wanted = query_params(scope)
        tools = [
            {
                "name": tool["name"],
                "verb": tool["_verb"],
                "noun": tool["_noun"],
                "description": tool["description"],
                "inputSchema": tool["inputSchema"],
            }
            for tool in self.mcp_server.tools
            if wanted.get("verb", tool["_verb"]).lower() == tool["_verb"].lower()
            and wanted.get("noun", tool["_noun"]).lower() == tool["_noun"].lower()
        ]
        return 200, {"tools": tools, "count": len(tools)}

    async def connections(self, scope: Scope, receive: Receive) -> JsonReply:
        check = query_params(scope).get("check", "").lower() in ("1", "true", "yes")
        described = await self.session.describe(check=check)
        return 200, {"connections": described, "count": len(described)}

    async def call(self, scope: Scope, receive: Receive) -> JsonReply:
        """Run one tool. Tool failures come back with ``success: false``."""
        try:
            data = await read_json(receive)
            tool = data.get("tool")
            arguments = data.get("arguments") or {}
            if not isinstance(tool, str) or not tool:
                raise BadRequest("'tool' must name a tool")
            if not isinstance(arguments, dict):
                raise BadRequest("'arguments' must be a JSON object")
        except BadRequest as e:
            return 400, {"success": False, "error": "BadRequest", "message": str(e)}

        result = await self.mcp_server._execute_tool(tool, arguments)
        payload = json.loads(result.content[0].text) if result.content else None
        if result.isError:
            return 400, {"success": False, **payload}
        return 200, {"success": True, "result": payload}


app = VergeHTTPApp()
