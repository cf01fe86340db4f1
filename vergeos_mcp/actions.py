"""Dispatch of named actions and bounded waits for their effect.

Actions (power on/off, clone, migrate, restore, isolate...) are POSTed to
``<noun>_actions`` with the envelope ``{<noun>: key, "action": name,
"params": {...}}``. The server queues the action and answers at once; it
never reports completion. When a caller needs the post-action state,
:func:`wait_for` polls with exponential backoff until a predicate holds
or a deadline passes.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, TypeVar

from .exceptions import ActionTimeoutError, ValidationError
from .logging_config import get_logger
from .models import ActionResult
from .transport import VergeTransport

logger = get_logger(__name__)

T = TypeVar("T")

VM_ACTIONS = frozenset(
    {"poweron", "poweroff", "kill", "reset", "guestreset", "clone", "migrate", "restore"}
)
TENANT_ACTIONS = frozenset(
    {"poweron", "poweroff", "kill", "reset", "isolateon", "isolateoff", "restore", "give_file"}
)
VNET_ACTIONS = frozenset({"poweron", "poweroff", "reset", "apply", "applydns"})
NODE_ACTIONS = frozenset({"maintenance", "leavemaintenance"})
SHARED_OBJECT_ACTIONS = frozenset({"import"})

KNOWN_ACTIONS: dict[str, frozenset[str]] = {
    "vm": VM_ACTIONS,
    "tenant": TENANT_ACTIONS,
    "vnet": VNET_ACTIONS,
    "node": NODE_ACTIONS,
    "shared_object": SHARED_OBJECT_ACTIONS,
}


def action_envelope(
    noun: str, entity_key: int, action: str, params: dict[str, Any] | None = None
) -> dict[str, Any]:
    envelope: dict[str, Any] = {noun: entity_key, "action": action}
    if params:
        envelope["params"] = params
    return envelope


class ActionDispatcher:
    """Sends action envelopes over one transport."""

    def __init__(self, transport: VergeTransport) -> None:
        self.transport = transport

    async def invoke(
        self,
        noun: str,
        entity_key: int,
        action: str,
        params: dict[str, Any] | None = None,
    ) -> ActionResult:
        """Queue an action and return the server's acknowledgement.

        Raises:
            ValidationError: Unknown noun or action, checked before sending.
        """
        allowed = KNOWN_ACTIONS.get(noun)
        if allowed is None:
            raise ValidationError(f"Objects of type '{noun}' do not support actions")
        if action not in allowed:
            raise ValidationError(
                f"Unknown {noun} action '{action}'; expected one of: "
                f"{', '.join(sorted(allowed))}",
                field="action",
            )

        body = action_envelope(noun, entity_key, action, params)
        logger.info(
            f"Dispatching {noun} action {action}",
            extra={"entity_key": entity_key, "noun": noun, "action": action},
        )
        response = await self.transport.request("POST", f"{noun}_actions", body=body)
        return ActionResult(
            noun=noun,
            entity_key=entity_key,
            action=action,
            params=params,
            response=response,
        )


async def wait_for(
    fetch: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    *,
    description: str,
    timeout: float = 60.0,
    initial_delay: float = 0.5,
    max_delay: float = 8.0,
    backoff: float = 2.0,
) -> T:
    """Poll ``fetch`` until ``predicate`` accepts its result.

    The first poll happens after ``initial_delay``; each following delay
    is multiplied by ``backoff`` up to ``max_delay``. The last sleep is
    clipped so the total never exceeds ``timeout``.

    Returns:
        The first fetched value that satisfied ``predicate``.

    Raises:
        ActionTimeoutError: The deadline passed first.
    """
    deadline = time.monotonic() + timeout
    delay = initial_delay
    attempts = 0

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        await asyncio.sleep(min(delay, remaining))
        attempts += 1
        value = await fetch()
        if predicate(value):
            logger.debug(
                f"Observed {description}",
                extra={"attempts": attempts},
            )
            return value
        delay = min(delay * backoff, max_delay)

    raise ActionTimeoutError(description, timeout)
