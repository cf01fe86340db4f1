"""Exception hierarchy for the VergeOS client and MCP server.

Every error raised by this package derives from :class:`VergeError`, so
callers can catch one type at the boundary and still distinguish the
failure kind when they need to.

Hierarchy:
    VergeError
    ├── AuthenticationError      no connection, bad credentials, expired token
    ├── AuthorizationError       authenticated but not permitted
    ├── ValidationError          malformed caller input, raised before any I/O
    ├── NotFoundError            a required lookup matched nothing
    ├── ConflictError            uniqueness, in-use and state preconditions
    ├── TransportError           network failure, timeout
    ├── APIResponseError         any other non-2xx response
    │   └── RateLimitError
    ├── ActionTimeoutError       a post-action wait ran out of time
    └── ConfigurationError
        └── EnvironmentVariableError
"""

from __future__ import annotations

from typing import Any


class VergeError(Exception):
    """Base class for all VergeOS errors.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code, when the error came from the server.
        details: Additional structured context.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for tool responses and JSON logs."""
        data: dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.details:
            data["details"] = self.details
        return data


class AuthenticationError(VergeError):
    """Raised when there is no usable connection or login fails."""


class AuthorizationError(VergeError):
    """Raised when the authenticated user lacks permission."""


class ValidationError(VergeError):
    """Raised for invalid caller input before any request is sent.

    Args:
        message: What is wrong with the input.
        field: Name of the offending parameter, if known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class NotFoundError(VergeError):
    """Raised when a lookup that requires a match finds none.

    Args:
        resource: Resource type or endpoint that was searched.
        identifier: The key or name that did not match.
    """

    def __init__(
        self,
        resource: str,
        identifier: Any = None,
        message: str | None = None,
    ) -> None:
        if message is None:
            if identifier is None:
                message = f"Resource not found: {resource}"
            else:
                message = f"{resource} '{identifier}' not found"
        super().__init__(
            message,
            status_code=404,
            details={"resource": resource, "identifier": identifier},
        )
        self.resource = resource
        self.identifier = identifier


# Kept for callers that catch the HTTP-flavoured name.
ResourceNotFoundError = NotFoundError


class ConflictError(VergeError):
    """Raised when the server (or a local precondition) rejects a change.

    Attributes:
        server_message: The server's original message, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        server_message: str | None = None,
    ) -> None:
        if server_message and server_message not in message:
            message = f"{message}: {server_message}"
        super().__init__(
            message,
            status_code=status_code,
            details={"server_message": server_message} if server_message else None,
        )
        self.server_message = server_message


class TransportError(VergeError):
    """Raised when the server cannot be reached or the request times out.

    Args:
        host: Host that was being contacted.
        original_error: The underlying httpx exception.
    """

    def __init__(self, host: str, original_error: Exception | None = None) -> None:
        reason = str(original_error) if original_error else "unknown error"
        super().__init__(
            f"Failed to communicate with {host}: {reason}",
            details={"host": host},
        )
        self.host = host
        self.original_error = original_error


ConnectionError = TransportError  # noqa: A001


class APIResponseError(VergeError):
    """Raised for non-2xx responses without a more specific mapping.

    Attributes:
        response_body: Raw response text, for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.response_body = response_body


class RateLimitError(APIResponseError):
    """Raised on HTTP 429."""

    def __init__(self, retry_after: int | None = None) -> None:
        message = "Rate limit exceeded"
        if retry_after:
            message += f", retry after {retry_after}s"
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ActionTimeoutError(VergeError):
    """Raised when a post-action state never became visible in time.

    This does not mean the action failed; the server may still apply it.
    """

    def __init__(self, description: str, timeout: float) -> None:
        super().__init__(
            f"Timed out after {timeout:g}s waiting for {description}",
            details={"timeout": timeout},
        )
        self.timeout = timeout


class ConfigurationError(VergeError):
    """Raised for invalid or missing configuration."""


class EnvironmentVariableError(ConfigurationError):
    """Raised when a required environment variable is not set."""

    def __init__(self, variable: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Required environment variable not set: {variable}",
            details={"variable": variable},
        )
        self.variable = variable
