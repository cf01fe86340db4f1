"""Translation of VergeOS server error messages into error kinds.

The API reports most rejections as free text. The substrings below are
matched against that text to pick an actionable error class. They must
stay byte-for-byte identical to what the server sends, so edit them only
against a live system.

Rules are checked in order; the first rule whose endpoint matches
(``"*"`` matches any) and whose substring occurs in the message wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .exceptions import (
    APIResponseError,
    ConflictError,
    NotFoundError,
    VergeError,
)


@dataclass(frozen=True)
class ErrorRule:
    endpoint: str
    substring: str
    error_class: type[VergeError]
    template: str

    def matches(self, endpoint: str, message: str) -> bool:
        if self.endpoint != "*" and self.endpoint != endpoint:
            return False
        return self.substring in message.lower()


ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule("vms", "must be powered off", ConflictError,
              "The VM must be powered off for this change"),
    ErrorRule("machine_drives", "must be powered off", ConflictError,
              "The VM must be powered off to change this drive"),
    ErrorRule("machine_drives", "cannot shrink", ConflictError,
              "Drives can only be grown, not shrunk"),
    ErrorRule("tenants", "is running", ConflictError,
              "The tenant must be stopped first"),
    ErrorRule("tenant_storage", "not enough", ConflictError,
              "Not enough free capacity in the requested storage tier"),
    ErrorRule("tenant_storage", "in use", ConflictError,
              "Tenant storage is in use and cannot be reduced below usage"),
    ErrorRule("vnet_cidrs", "overlap", ConflictError,
              "The network block overlaps an existing block"),
    ErrorRule("vnets", "referencing", ConflictError,
              "The network is still referenced by other objects"),
    ErrorRule("vnets", "in use", ConflictError,
              "The network is in use"),
    ErrorRule("*", "already exists", ConflictError,
              "An object with that name already exists"),
    ErrorRule("*", "unique", ConflictError,
              "An object with that name already exists"),
    ErrorRule("*", "referencing", ConflictError,
              "The object is still referenced by other objects"),
    ErrorRule("*", "in use", ConflictError,
              "The object is in use"),
    ErrorRule("*", "must be powered off", ConflictError,
              "The object must be powered off first"),
    ErrorRule("*", "does not exist", NotFoundError,
              "The referenced object does not exist"),
)


def root_endpoint(endpoint: str) -> str:
    """``vms/12`` -> ``vms``; strips any version prefix and query."""
    path = endpoint.split("?", 1)[0].strip("/")
    for prefix in ("api/v4/", "v4/"):
        if path.startswith(prefix):
            path = path[len(prefix):]
    return path.split("/", 1)[0]


def extract_message(body: Any, fallback: str = "") -> str:
    """Pull the human-readable message out of an error body."""
    if isinstance(body, dict):
        for key in ("err", "error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict):
                return str(first.get("message", first))
            return str(first)
    if isinstance(body, str) and body:
        return body
    return fallback


def translate(
    endpoint: str,
    status_code: int,
    message: str,
    response_body: str | None = None,
) -> VergeError:
    """Map a failed response to the most specific error kind available."""
    resource = root_endpoint(endpoint)
    for rule in ERROR_RULES:
        if rule.matches(resource, message):
            if rule.error_class is NotFoundError:
                return NotFoundError(
                    resource, message=f"{rule.template}: {message}"
                )
            return ConflictError(
                rule.template, status_code=status_code, server_message=message
            )
    if status_code == 409:
        return ConflictError("Request conflicts with current state",
                             status_code=409, server_message=message)
    return APIResponseError(
        message=f"VergeOS API error ({status_code}) on {resource}: {message}",
        status_code=status_code,
        response_body=response_body,
    )
