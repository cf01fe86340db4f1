"""VergeOS MCP Server - typed VergeOS client and MCP tools.

This package provides a typed async client for the VergeOS REST API
(VMs, tenants, networks, storage and infrastructure) and a Model Context
Protocol (MCP) server that exposes it as verb-noun tools over stdio or
HTTP/SSE.

Features:
    - Token sessions with several concurrent connections and a default
    - Name, key and wildcard references resolved to ``$key`` values
    - Typed pydantic records with display units (GB, dates, status names)
    - Power actions with optional bounded waits for the resulting state
    - Read-only Get tools by default (configurable through ALLOWED_VERBS)

Example:
    Using as a CLI tool (stdio transport)::

        $ python -m vergeos_mcp

    Using as HTTP server (SSE transport)::

        $ uvicorn vergeos_mcp.http_server:app --host 0.0.0.0 --port 3000

    Using as a library::

        from vergeos_mcp import VergeClient

        async with await VergeClient.connect("verge.example.com", "admin", "pw") as vc:
            await vc.vms.start("web01", wait=True)

Attributes:
    __version__: Package version following semantic versioning.
"""

__version__ = "1.0.0"

# Import public API
from .client import VergeClient
from .config import load_config
from .connection import Connection, ConnectionRegistry, connect, disconnect
from .server import VergeMCPServer

__all__ = [
    "__version__",
    "Connection",
    "ConnectionRegistry",
    "VergeClient",
    "VergeMCPServer",
    "connect",
    "disconnect",
    "load_config",
]
