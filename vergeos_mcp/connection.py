"""Connections (authenticated sessions) to VergeOS systems.

A :class:`Connection` couples one host with its session token and HTTP
transport. Library code passes connections explicitly; the optional
:class:`ConnectionRegistry` tracks several open connections and which one
is the default, for front ends that keep an implicit session (the MCP
server does).

Example:
    >>> conn = await connect("verge.example.com", "admin", "secret")
    >>> try:
    ...     vms = await conn.transport.request("GET", "vms")
    ... finally:
    ...     await disconnect(conn)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .exceptions import AuthenticationError, VergeError
from .logging_config import get_logger
from .transport import VergeTransport

logger = get_logger(__name__)

TOKENS_ENDPOINT = "/api/sys/tokens"


@dataclass(eq=False)
class Connection:
    """An authenticated session against one VergeOS system."""

    host: str
    username: str | None
    transport: VergeTransport
    tls_verify: bool = False
    is_default: bool = False
    connected_at: datetime = field(default_factory=datetime.now)
    # True when the token came from the caller rather than our own login.
    external_token: bool = False

    @property
    def base_url(self) -> str:
        return self.transport.base_url

    @property
    def token(self) -> str | None:
        return self.transport.token

    @property
    def is_connected(self) -> bool:
        return self.transport.token is not None

    def __repr__(self) -> str:
        return (
            f"Connection(host={self.host!r}, username={self.username!r}, "
            f"is_default={self.is_default}, connected={self.is_connected})"
        )


class ConnectionRegistry:
    """Thread-safe set of open connections with one default."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: list[Connection] = []

    def add(self, connection: Connection, set_default: bool = True) -> None:
        with self._lock:
            if connection not in self._connections:
                self._connections.append(connection)
            if set_default or len(self._connections) == 1:
                self._set_default_locked(connection)

    def remove(self, connection: Connection) -> None:
        with self._lock:
            if connection in self._connections:
                self._connections.remove(connection)
            if connection.is_default:
                connection.is_default = False
                if self._connections:
                    self._connections[0].is_default = True

    def set_default(self, connection: Connection) -> None:
        with self._lock:
            if connection not in self._connections:
                raise AuthenticationError(
                    f"Connection to {connection.host} is not registered"
                )
            self._set_default_locked(connection)

    def _set_default_locked(self, connection: Connection) -> None:
        for conn in self._connections:
            conn.is_default = conn is connection

    def get_default(self) -> Connection:
        """Return the default connection.

        Raises:
            AuthenticationError: If no connection is open.
        """
        with self._lock:
            for conn in self._connections:
                if conn.is_default:
                    return conn
        raise AuthenticationError(
            "Not connected to a VergeOS system; connect first"
        )

    def find(self, host: str) -> Connection | None:
        with self._lock:
            for conn in self._connections:
                if conn.host.lower() == host.lower():
                    return conn
        return None

    def list(self) -> list[Connection]:
        with self._lock:
            return list(self._connections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)


async def connect(
    host: str,
    username: str | None = None,
    password: str | None = None,
    *,
    token: str | None = None,
    port: int = 443,
    tls_verify: bool = False,
    timeout: float = 30,
    max_retries: int = 3,
    retry_delay: float = 0.5,
    registry: ConnectionRegistry | None = None,
    set_default: bool = True,
) -> Connection:
    """Open a session against a VergeOS system.

    With ``token`` the session reuses a pre-issued API token and no login
    request is made. Otherwise the credentials are exchanged for a
    session token.

    Raises:
        AuthenticationError: Missing or rejected credentials.
        TransportError: The host could not be reached.
    """
    if not token and not (username and password):
        raise AuthenticationError("A username and password, or a token, is required")

    transport = VergeTransport(
        host=host,
        port=port,
        tls_verify=tls_verify,
        timeout=timeout,
        max_retries=max_retries,
        retry_delay=retry_delay,
    )

    if token:
        transport.set_token(token)
    else:
        try:
            result = await transport.request(
                "POST",
                TOKENS_ENDPOINT,
                body={"login": username, "password": password},
            )
        except AuthenticationError:
            await transport.close()
            raise AuthenticationError(
                f"Login to {host} failed for user '{username}'", status_code=401
            ) from None
        except VergeError:
            await transport.close()
            raise

        session_token = result.get("$key") if isinstance(result, dict) else None
        if not session_token:
            await transport.close()
            raise AuthenticationError(f"Login to {host} returned no session token")
        transport.set_token(str(session_token))

    connection = Connection(
        host=host,
        username=username,
        transport=transport,
        tls_verify=tls_verify,
        external_token=bool(token),
    )

    if registry is not None:
        registry.add(connection, set_default=set_default)

    logger.info("Connected to VergeOS", extra={"host": host, "user": username})
    return connection


async def disconnect(
    connection: Connection,
    registry: ConnectionRegistry | None = None,
) -> None:
    """Log out, close the transport and forget the connection.

    Session tokens created by :func:`connect` are deleted on the server;
    caller-supplied API tokens are left alone.
    """
    try:
        if connection.is_connected and not connection.external_token:
            await connection.transport.request(
                "DELETE", f"{TOKENS_ENDPOINT}/{connection.token}"
            )
    except VergeError as e:
        logger.warning(
            "Session logout failed; closing locally",
            extra={"host": connection.host, "error": str(e)},
        )
    finally:
        connection.transport.set_token(None)
        await connection.transport.close()
        if registry is not None:
            registry.remove(connection)

    logger.info("Disconnected from VergeOS", extra={"host": connection.host})


async def check_connection(connection: Connection) -> dict[str, Any]:
    """Check a connection and report the cloud name.

    Returns:
        ``{"success": bool, "message": str, "host": str, ...}``.
    """
    try:
        result = await connection.transport.request(
            "GET",
            "settings",
            params={"filter": "key eq 'cloud_name'", "fields": "key,value"},
        )
        rows = result if isinstance(result, list) else [result] if result else []
        cloud_name = rows[0].get("value", "Unknown") if rows else "Unknown"
        return {
            "success": True,
            "message": f"Connected to system: {cloud_name}",
            "host": connection.host,
            "cloud_name": cloud_name,
        }
    except AuthenticationError:
        return {
            "success": False,
            "message": "Authentication failed - session expired or invalid",
            "host": connection.host,
        }
    except VergeError as e:
        return {
            "success": False,
            "message": f"Connection check failed: {e}",
            "host": connection.host,
        }
