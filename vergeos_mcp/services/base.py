"""Power-state handling shared by VMs, tenants and networks."""

from __future__ import annotations

from typing import Any, Callable, Sequence

from ..client import ResourceClient
from ..exceptions import ConflictError
from ..logging_config import get_logger
from ..mapper import R
from ..models import ActionResult, BulkResult
from ..resolver import ResourceReference

logger = get_logger(__name__)


class PoweredService(ResourceClient[R]):
    """Adds start/stop/restart with local short-circuits and optional waits.

    Subclasses serve models derived from
    :class:`~vergeos_mcp.models.PoweredResource` that declare a ``noun``.
    """

    graceful_stop_action = "poweroff"
    force_stop_action = "kill"
    graceful_restart_action = "reset"
    force_restart_action = "reset"

    async def current(self, reference: ResourceReference) -> R:
        """Use a record passed in as-is; fetch anything else."""
        if isinstance(reference, self.model):
            return reference
        return await self.get(reference)

    def _skipped(self, record: R, action: str, message: str) -> ActionResult:
        logger.warning(message, extra={"resource": self.model.endpoint, "key": record.key})
        return ActionResult(
            noun=self.model.noun,
            entity_key=record.key,
            action=action,
            accepted=False,
            skipped=True,
            message=message,
            record=record.to_display(),
        )

    async def dispatch(
        self,
        record: R,
        action: str,
        params: dict[str, Any] | None = None,
        *,
        wait: bool = False,
        until: Callable[[R], bool] | None = None,
        description: str | None = None,
    ) -> ActionResult:
        """Send an action; with ``wait``, poll until ``until`` holds."""
        result = await self.client.actions.invoke(self.model.noun, record.key, action, params)
        if wait and until is not None:
            refreshed = await self.client.wait_until(
                lambda: self.fetch(record.key),
                until,
                description or f"{action} on {record}",
            )
            result.record = refreshed.to_display()
        return result

    async def start(self, reference: ResourceReference, wait: bool = False) -> ActionResult:
        record = await self.current(reference)
        if record.is_running:
            return self._skipped(record, "poweron", f"{record} is already running")
        return await self.dispatch(
            record,
            "poweron",
            wait=wait,
            until=lambda r: r.is_running,
            description=f"{record} to start",
        )

    async def stop(
        self,
        reference: ResourceReference,
        force: bool = False,
        wait: bool = False,
    ) -> ActionResult:
        record = await self.current(reference)
        action = self.force_stop_action if force else self.graceful_stop_action
        if record.is_stopped:
            return self._skipped(record, action, f"{record} is already stopped")
        return await self.dispatch(
            record,
            action,
            wait=wait,
            until=lambda r: r.is_stopped,
            description=f"{record} to stop",
        )

    async def restart(
        self,
        reference: ResourceReference,
        force: bool = False,
        wait: bool = False,
    ) -> ActionResult:
        record = await self.current(reference)
        action = self.force_restart_action if force else self.graceful_restart_action
        if not record.is_running:
            return self._skipped(record, action, f"{record} is not running")
        return await self.dispatch(
            record,
            action,
            wait=wait,
            until=lambda r: r.is_running,
            description=f"{record} to come back up",
        )

    async def ensure_stopped(self, record: R, force: bool, purpose: str) -> R:
        """Return a stopped record, killing it first only when ``force`` is set.

        Raises:
            ConflictError: The record is running and ``force`` is not set.
                No request has been sent in that case.
        """
        if record.is_stopped:
            return record
        if not force:
            raise ConflictError(
                f"{record} is {record.status or 'running'}; "
                f"stop it first or use force to {purpose}"
            )
        await self.dispatch(record, self.force_stop_action)
        return await self.client.wait_until(
            lambda: self.fetch(record.key),
            lambda r: r.is_stopped,
            f"{record} to stop",
        )

    async def remove(self, reference: ResourceReference, force: bool = False) -> int:
        """Delete a record that must be stopped first."""
        record = await self.current(reference)
        record = await self.ensure_stopped(record, force, "remove it")
        await self.delete_key(record.key)
        return record.key

    async def start_many(
        self, references: Sequence[ResourceReference], wait: bool = False
    ) -> BulkResult:
        return await self.for_each(references, lambda r: self.start(r, wait=wait))

    async def stop_many(
        self,
        references: Sequence[ResourceReference],
        force: bool = False,
        wait: bool = False,
    ) -> BulkResult:
        return await self.for_each(references, lambda r: self.stop(r, force=force, wait=wait))
