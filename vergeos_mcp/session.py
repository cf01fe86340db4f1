"""Implicit session for front ends that keep a default connection.

Library code passes a :class:`~vergeos_mcp.client.VergeClient` around
explicitly. The MCP server instead serves tool calls that do not name a
connection, so it keeps one :class:`Session`: a connection registry plus
the configured defaults, connecting lazily on first use.
"""

from __future__ import annotations

import asyncio
from typing import Any

from .client import VergeClient
from .config import Config, require_host
from .connection import Connection, ConnectionRegistry, check_connection, connect, disconnect
from .exceptions import AuthenticationError, NotFoundError
from .logging_config import get_logger

logger = get_logger(__name__)


def connection_info(connection: Connection) -> dict[str, Any]:
    return {
        "host": connection.host,
        "username": connection.username,
        "base_url": connection.base_url,
        "tls_verify": connection.tls_verify,
        "is_default": connection.is_default,
        "is_connected": connection.is_connected,
        "connected_at": connection.connected_at.isoformat(),
    }


class Session:
    """Connections opened on behalf of tool calls."""

    def __init__(self, config: Config, registry: ConnectionRegistry | None = None) -> None:
        self.config = config
        self.registry = registry or ConnectionRegistry()
        self._clients: dict[int, VergeClient] = {}
        self._connect_lock = asyncio.Lock()

    async def connect(
        self,
        host: str | None = None,
        username: str | None = None,
        password: str | None = None,
        token: str | None = None,
        port: int | None = None,
        tls_verify: bool | None = None,
        set_default: bool = True,
    ) -> Connection:
        """Open a connection, filling missing arguments from configuration.

        Raises:
            EnvironmentVariableError: No host given and none configured.
            AuthenticationError: Missing or rejected credentials.
        """
        vergeos = self.config.vergeos
        server = self.config.server
        if host is None:
            host = require_host(self.config)
            username = username or vergeos.username
            password = password or vergeos.password
            token = token or vergeos.token

        return await connect(
            host,
            username,
            password,
            token=token,
            port=port or vergeos.port,
            tls_verify=vergeos.tls_verify if tls_verify is None else tls_verify,
            timeout=server.request_timeout / 1000,
            max_retries=server.max_retries,
            retry_delay=server.retry_delay / 1000,
            registry=self.registry,
            set_default=set_default,
        )

    def _wrap(self, connection: Connection) -> VergeClient:
        client = self._clients.get(id(connection))
        if client is None:
            client = VergeClient(
                connection,
                action_timeout=self.config.server.action_wait_timeout / 1000,
                poll_interval=self.config.server.action_poll_interval / 1000,
            )
            self._clients[id(connection)] = client
        return client

    def find(self, host: str) -> Connection:
        connection = self.registry.find(host)
        if connection is None:
            raise NotFoundError("Connection", host)
        return connection

    async def client(self, host: str | None = None) -> VergeClient:
        """Client for ``host``, or for the default connection.

        With no open connection and credentials in the configuration, a
        connection is opened and made the default.
        """
        if host:
            return self._wrap(self.find(host))

        async with self._connect_lock:
            try:
                connection = self.registry.get_default()
            except AuthenticationError:
                if not self.config.vergeos.has_credentials:
                    raise
                logger.info(
                    "Opening default connection from configuration",
                    extra={"host": self.config.vergeos.host},
                )
                connection = await self.connect()
        return self._wrap(connection)

    async def disconnect(self, host: str | None = None) -> Connection:
        connection = self.find(host) if host else self.registry.get_default()
        self._clients.pop(id(connection), None)
        await disconnect(connection, self.registry)
        return connection

    def set_default(self, host: str) -> Connection:
        connection = self.find(host)
        self.registry.set_default(connection)
        return connection

    async def describe(self, check: bool = False) -> list[dict[str, Any]]:
        """Open connections, optionally checking each one."""
        described = []
        for connection in self.registry.list():
            info = connection_info(connection)
            if check:
                info["status"] = await check_connection(connection)
            described.append(info)
        return described

    async def close(self) -> None:
        for connection in self.registry.list():
            await disconnect(connection, self.registry)
        self._clients.clear()
