"""Tenant services.

A tenant is a nested VergeOS system. Besides its own lifecycle it owns
storage allocations per tier, layer 2 pass-through networks, network
blocks routed to it, snapshots, and shared objects (VMs offered to it).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from .. import conversions as conv
from ..client import ResourceClient
from ..exceptions import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import (
    ActionResult,
    SharedObject,
    Tenant,
    TenantLayer2Network,
    TenantNetworkBlock,
    TenantSnapshot,
    TenantStorage,
)
from ..query import Predicate
from ..resolver import ResourceReference
from .base import PoweredService

logger = get_logger(__name__)


class TenantService(PoweredService[Tenant]):
    """Tenant lifecycle, isolation and file hand-off."""

    def __init__(self, client) -> None:
        super().__init__(client, Tenant)

    async def new(
        self,
        name: str,
        description: str | None = None,
        password: str | None = None,
        url: str | None = None,
        expose_cloud_snapshots: bool = True,
        allow_hotplug: bool = True,
    ) -> Tenant:
        if not name or not name.strip():
            raise ValidationError("Tenant name is required", field="name")
        return await self.create(
            {
                "name": name,
                "description": description,
                "password": password,
                "url": url,
                "expose_cloud_snapshots": expose_cloud_snapshots,
                "allow_hotplug": allow_hotplug,
            }
        )

    async def set(self, reference: ResourceReference, **values: Any) -> Tenant:
        return await self.update(reference, values)

    async def set_isolation(self, reference: ResourceReference, enabled: bool) -> ActionResult:
        """Cut a tenant off from (or reconnect it to) its networks."""
        tenant = await self.current(reference)
        action = "isolateon" if enabled else "isolateoff"
        if tenant.isolated is enabled:
            state = "isolated" if enabled else "not isolated"
            return self._skipped(tenant, action, f"{tenant} is already {state}")
        return await self.dispatch(tenant, action)

    async def send_file(
        self, reference: ResourceReference, file: ResourceReference
    ) -> ActionResult:
        """Give the tenant a copy of a file from the parent system."""
        tenant = await self.current(reference)
        file_key = await self.client.files.resolve_key(file)
        return await self.dispatch(tenant, "give_file", {"file": file_key})


class _TenantChildService(ResourceClient):
    """Records scoped to one tenant."""

    scope_field = "tenant"

    async def _scope(self, tenant: ResourceReference) -> tuple[int, list[Predicate]]:
        key = await self.client.tenants.resolve_key(tenant)
        return key, [Predicate.eq(self.scope_field, key)]

    async def list_for(
        self, tenant: ResourceReference | None = None, name: str | None = None
    ) -> list:
        if tenant is None:
            return await self.list(name=name)
        _, scope = await self._scope(tenant)
        return await self.list(name=name, filters=scope)

    async def get_for(self, tenant: ResourceReference, reference: ResourceReference):
        _, scope = await self._scope(tenant)
        return await self.get(reference, scope)

    async def remove(self, tenant: ResourceReference, reference: ResourceReference) -> int:
        _, scope = await self._scope(tenant)
        return await self.delete(reference, scope)


def _check_storage_tier(tier: int) -> None:
    if not 1 <= tier <= 5:
        raise ValidationError("Tenant storage tier must be between 1 and 5", field="tier")


class TenantStorageService(_TenantChildService):
    """Per-tier storage allocations; records are identified by tier."""

    def __init__(self, client) -> None:
        super().__init__(client, TenantStorage)

    async def for_tier(self, tenant: ResourceReference, tier: int) -> TenantStorage:
        _check_storage_tier(tier)
        _, scope = await self._scope(tenant)
        rows = await self.list(filters=[*scope, Predicate.eq("tier", tier)])
        if not rows:
            raise NotFoundError(self.model.label, f"tier {tier}")
        return rows[0]

    async def new(self, tenant: ResourceReference, tier: int, provisioned_gb: float) -> TenantStorage:
        _check_storage_tier(tier)
        if provisioned_gb <= 0:
            raise ValidationError("provisioned_gb must be positive", field="provisioned_gb")
        key, _ = await self._scope(tenant)
        return await self.create(
            {"tenant_key": key, "tier": tier, "provisioned_gb": provisioned_gb}
        )

    async def set(self, tenant: ResourceReference, tier: int, provisioned_gb: float) -> TenantStorage:
        """Resize an allocation; it cannot drop below what is already used.

        Raises:
            ValidationError: The new size is below current usage.
        """
        allocation = await self.for_tier(tenant, tier)
        if allocation.used_bytes is not None and conv.gb_to_bytes(provisioned_gb) < allocation.used_bytes:
            raise ValidationError(
                f"Cannot provision {provisioned_gb} GB on tier {tier}; "
                f"{allocation.used_gb} GB is in use",
                field="provisioned_gb",
            )
        return await self.update(allocation, {"provisioned_gb": provisioned_gb})

    async def remove_tier(self, tenant: ResourceReference, tier: int) -> int:
        allocation = await self.for_tier(tenant, tier)
        await self.delete_key(allocation.key)
        return allocation.key


class TenantLayer2Service(_TenantChildService):
    def __init__(self, client) -> None:
        super().__init__(client, TenantLayer2Network)

    async def new(
        self, tenant: ResourceReference, network: ResourceReference, enabled: bool = True
    ) -> TenantLayer2Network:
        key, _ = await self._scope(tenant)
        network_key = await self.client.networks.resolve_key(network)
        return await self.create(
            {"tenant_key": key, "network_key": network_key, "enabled": enabled}
        )

    async def for_network(
        self, tenant: ResourceReference, network: ResourceReference
    ) -> TenantLayer2Network:
        """The layer 2 record passing ``network`` through to ``tenant``."""
        _, scope = await self._scope(tenant)
        network_key = await self.client.networks.resolve_key(network)
        rows = await self.list(filters=[*scope, Predicate.eq("vnet", network_key)])
        if not rows:
            raise NotFoundError(self.model.label, network)
        return rows[0]

    async def remove(self, tenant: ResourceReference, network: ResourceReference) -> int:
        """Stop passing a network through; ``network`` names the vnet, not the record."""
        record = await self.for_network(tenant, network)
        await self.delete_key(record.key)
        return record.key


class TenantNetworkBlockService(_TenantChildService):
    """CIDR blocks on a parent network routed to a tenant.

    Blocks are owned through ``owner = "tenants/<key>"`` rather than a
    tenant column.
    """

    def __init__(self, client) -> None:
        super().__init__(client, TenantNetworkBlock)

    async def _scope(self, tenant: ResourceReference) -> tuple[int, list[Predicate]]:
        key = await self.client.tenants.resolve_key(tenant)
        return key, [Predicate.eq("owner", f"tenants/{key}")]

    async def new(
        self,
        tenant: ResourceReference,
        network: ResourceReference,
        cidr: str,
        description: str | None = None,
    ) -> TenantNetworkBlock:
        block = conv.parse_cidr(cidr)
        if network is None:
            raise ValidationError("A network is required for a network block", field="network")
        key, _ = await self._scope(tenant)
        network_key = await self.client.networks.resolve_key(network)
        return await self.create(
            {
                "network_key": network_key,
                "cidr": str(block),
                "description": description,
                "owner": f"tenants/{key}",
            }
        )


class TenantSnapshotService(_TenantChildService):
    def __init__(self, client) -> None:
        super().__init__(client, TenantSnapshot)

    async def new(
        self,
        tenant: ResourceReference,
        name: str | None = None,
        retention_hours: int = 24,
        description: str | None = None,
    ) -> TenantSnapshot:
        """Snapshot a tenant. ``retention_hours=0`` keeps it forever."""
        if retention_hours < 0:
            raise ValidationError("retention_hours cannot be negative", field="retention_hours")
        record = await self.client.tenants.current(tenant)
        now = datetime.now()
        return await self.create(
            {
                "tenant_key": record.key,
                "name": name or f"{record.name}_{now:%Y%m%d_%H%M%S}",
                "description": description,
                "expires": now + timedelta(hours=retention_hours) if retention_hours else 0,
            }
        )

    async def restore(
        self,
        tenant: ResourceReference,
        reference: ResourceReference,
        force: bool = False,
    ) -> ActionResult:
        """Restore a tenant from a snapshot; the tenant must be stopped.

        Raises:
            ConflictError: The tenant is running and ``force`` is not set.
        """
        tenants = self.client.tenants
        record = await tenants.current(tenant)
        snapshot = await self.get(reference, [Predicate.eq("tenant", record.key)])
        record = await tenants.ensure_stopped(record, force, "restore it")
        return await tenants.dispatch(record, "restore", {"snapshot": snapshot.key})


class SharedObjectService(_TenantChildService):
    """VMs offered to a tenant; the tenant side imports them."""

    scope_field = "recipient"

    def __init__(self, client) -> None:
        super().__init__(client, SharedObject)

    async def new(
        self,
        tenant: ResourceReference,
        vm: ResourceReference,
        name: str | None = None,
        description: str | None = None,
        snapshot: ResourceReference | None = None,
    ) -> SharedObject:
        key, _ = await self._scope(tenant)
        record = await self.client.vms.current(vm)
        values: dict[str, Any] = {
            "tenant_key": key,
            "type": "vm",
            "name": name or record.name,
            "description": description,
            "object_id": f"vms/{record.key}",
        }
        if snapshot is not None:
            snap = await self.client.vm_snapshots.get_for(record, snapshot)
            values["snapshot_key"] = snap.key
        return await self.create(values)

    async def import_object(
        self, tenant: ResourceReference, reference: ResourceReference
    ) -> ActionResult:
        _, scope = await self._scope(tenant)
        shared = await self.get(reference, scope)
        return await self.client.actions.invoke(self.model.noun, shared.key, "import")
