"""Virtual machine services: VMs and their drives, NICs and snapshots."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from .. import conversions as conv
from ..client import ResourceClient
from ..exceptions import ConflictError, ValidationError
from ..logging_config import get_logger
from ..models import DRIVE_MEDIA, ActionResult, Drive, Nic, Vm, VmSnapshot
from ..query import Predicate
from ..resolver import ResourceReference
from .base import PoweredService

logger = get_logger(__name__)

MIN_RAM_MB = 256
MAX_CPU_CORES = 256


def _check_sizing(cpu_cores: int | None, ram_mb: int | None) -> None:
    if cpu_cores is not None and not 1 <= cpu_cores <= MAX_CPU_CORES:
        raise ValidationError(
            f"cpu_cores must be between 1 and {MAX_CPU_CORES}", field="cpu_cores"
        )
    if ram_mb is not None and ram_mb < MIN_RAM_MB:
        raise ValidationError(f"ram must be at least {MIN_RAM_MB} MB", field="ram_mb")


class VmService(PoweredService[Vm]):
    """VM lifecycle: CRUD, power, clone and migrate."""

    graceful_restart_action = "guestreset"
    force_restart_action = "reset"

    def __init__(self, client) -> None:
        super().__init__(client, Vm)

    async def new(
        self,
        name: str,
        cpu_cores: int = 1,
        ram_mb: int = 1024,
        description: str | None = None,
        os_family: str = "linux",
        uefi: bool = False,
        guest_agent: bool = False,
        cluster: ResourceReference | None = None,
        enabled: bool = True,
    ) -> Vm:
        if not name or not name.strip():
            raise ValidationError("VM name is required", field="name")
        _check_sizing(cpu_cores, ram_mb)

        values: dict[str, Any] = {
            "name": name,
            "description": description,
            "cpu_cores": cpu_cores,
            "ram_mb": ram_mb,
            "os_family": os_family,
            "uefi": uefi,
            "guest_agent": guest_agent,
            "enabled": enabled,
        }
        if cluster is not None:
            values["cluster_key"] = await self.client.clusters.resolve_key(cluster)
        return await self.create(values)

    async def set(self, reference: ResourceReference, **values: Any) -> Vm:
        """Change VM properties; only the given values are sent.

        ``ram_gb`` is accepted as an alternative to ``ram_mb``.
        """
        ram_mb = values.get("ram_mb")
        if ram_mb is None and values.get("ram_gb") is not None:
            ram_mb = int(values["ram_gb"] * 1024)
        _check_sizing(values.get("cpu_cores"), ram_mb)
        return await self.update(reference, values)

    async def clone(
        self,
        reference: ResourceReference,
        name: str | None = None,
        preserve_macs: bool = False,
        wait: bool = False,
    ) -> ActionResult:
        """Clone a VM; the clone is named ``<source>_clone`` unless given."""
        vm = await self.current(reference)
        clone_name = name or f"{vm.name}_clone"
        result = await self.dispatch(
            vm, "clone", {"name": clone_name, "preserve_macs": preserve_macs}
        )
        if wait:
            clone = await self.client.wait_until(
                lambda: self.list(name=clone_name),
                bool,
                f"clone '{clone_name}' to appear",
            )
            result.record = clone[0].to_display()
        return result

    async def move(
        self,
        reference: ResourceReference,
        node: ResourceReference,
        wait: bool = False,
    ) -> ActionResult:
        """Live-migrate a running VM to another node.

        Raises:
            ConflictError: The VM is not running.
        """
        vm = await self.current(reference)
        if not vm.is_running:
            raise ConflictError(f"{vm} must be running to be migrated")
        target = await self.client.nodes.get(node)
        if vm.node_key == target.key:
            return self._skipped(vm, "migrate", f"{vm} is already on node '{target.name}'")
        return await self.dispatch(
            vm,
            "migrate",
            {"preferred_node": target.key},
            wait=wait,
            until=lambda r: r.node_key == target.key and r.is_running,
            description=f"{vm} to reach node '{target.name}'",
        )

    async def machine_key(self, reference: ResourceReference) -> int:
        """Key of the machine behind a VM; drives, NICs and snapshots hang off it."""
        vm = await self.current(reference)
        if vm.machine_key is None:
            vm = await self.fetch(vm.key)
        if vm.machine_key is None:
            raise ValidationError(f"{vm} has no machine")
        return vm.machine_key


class _MachineChildService(ResourceClient):
    """Records scoped to one VM's machine."""

    async def _scope(self, vm: ResourceReference) -> tuple[int, list[Predicate]]:
        machine = await self.client.vms.machine_key(vm)
        return machine, [Predicate.eq("machine", machine)]

    async def list_for(self, vm: ResourceReference, name: str | None = None) -> list:
        _, scope = await self._scope(vm)
        return await self.list(name=name, filters=scope, sort="orderid")

    async def get_for(self, vm: ResourceReference, reference: ResourceReference):
        _, scope = await self._scope(vm)
        return await self.get(reference, scope)

    async def remove(self, vm: ResourceReference, reference: ResourceReference) -> int:
        _, scope = await self._scope(vm)
        return await self.delete(reference, scope)


class DriveService(_MachineChildService):
    def __init__(self, client) -> None:
        super().__init__(client, Drive)

    async def new(
        self,
        vm: ResourceReference,
        size_gb: float | None = None,
        name: str | None = None,
        interface: str = "virtio-scsi",
        media: str = "disk",
        tier: int | None = None,
        description: str | None = None,
        media_source: ResourceReference | None = None,
    ) -> Drive:
        """Add a drive to a VM.

        Disks need a size; CD-ROM and import drives take a file as
        ``media_source`` instead.
        """
        media_wire = conv.wire_value(DRIVE_MEDIA, media)
        if media_wire == "disk" and not size_gb:
            raise ValidationError("size_gb is required for a disk", field="size_gb")
        if size_gb is not None and size_gb <= 0:
            raise ValidationError("size_gb must be positive", field="size_gb")

        machine, _ = await self._scope(vm)
        values: dict[str, Any] = {
            "machine_key": machine,
            "name": name,
            "description": description,
            "interface": interface,
            "media": media_wire,
            "size_gb": size_gb,
            "tier": tier,
        }
        if media_source is not None:
            values["media_source_key"] = await self.client.files.resolve_key(media_source)
        return await self.create(values)

    async def set(
        self,
        vm: ResourceReference,
        reference: ResourceReference,
        **values: Any,
    ) -> Drive:
        """Change a drive. Disks can grow but never shrink.

        Raises:
            ValidationError: The new size is smaller than the current one.
        """
        _, scope = await self._scope(vm)
        drive = await self.get(reference, scope)
        size_gb = values.get("size_gb")
        if size_gb is not None and drive.size_bytes is not None:
            if conv.gb_to_bytes(size_gb) < drive.size_bytes:
                raise ValidationError(
                    f"Cannot shrink {drive} from {drive.size_gb} GB to {size_gb} GB",
                    field="size_gb",
                )
        return await self.update(drive, values)


class NicService(_MachineChildService):
    def __init__(self, client) -> None:
        super().__init__(client, Nic)

    async def new(
        self,
        vm: ResourceReference,
        network: ResourceReference,
        name: str | None = None,
        interface: str = "virtio",
        mac_address: str | None = None,
        ip_address: str | None = None,
        description: str | None = None,
    ) -> Nic:
        machine, _ = await self._scope(vm)
        values = {
            "machine_key": machine,
            "network_key": await self.client.networks.resolve_key(network),
            "name": name,
            "interface": interface,
            "mac_address": mac_address,
            "ip_address": ip_address,
            "description": description,
        }
        return await self.create(values)

    async def set(
        self,
        vm: ResourceReference,
        reference: ResourceReference,
        network: ResourceReference | None = None,
        **values: Any,
    ) -> Nic:
        _, scope = await self._scope(vm)
        if network is not None:
            values["network_key"] = await self.client.networks.resolve_key(network)
        return await self.update(reference, values, scope)


class VmSnapshotService(_MachineChildService):
    def __init__(self, client) -> None:
        super().__init__(client, VmSnapshot)

    async def new(
        self,
        vm: ResourceReference,
        name: str | None = None,
        retention_hours: int = 24,
        quiesce: bool = False,
        description: str | None = None,
    ) -> VmSnapshot:
        """Snapshot a VM. ``retention_hours=0`` keeps the snapshot forever."""
        if retention_hours < 0:
            raise ValidationError("retention_hours cannot be negative", field="retention_hours")
        record = await self.client.vms.current(vm)
        machine, _ = await self._scope(record)
        now = datetime.now()
        expires = now + timedelta(hours=retention_hours) if retention_hours else 0
        values = {
            "machine_key": machine,
            "name": name or f"{record.name}_{now:%Y%m%d_%H%M%S}",
            "description": description,
            "expires": expires,
            "quiesce": quiesce,
        }
        return await self.create(values)

    async def list_for(self, vm: ResourceReference, name: str | None = None) -> list:
        _, scope = await self._scope(vm)
        return await self.list(name=name, filters=scope, sort="created", descending=True)

    async def restore(
        self,
        vm: ResourceReference,
        reference: ResourceReference,
        force: bool = False,
    ) -> ActionResult:
        """Restore a VM in place from one of its snapshots.

        Raises:
            ConflictError: The VM is running and ``force`` is not set.
        """
        vms = self.client.vms
        record = await vms.current(vm)
        _, scope = await self._scope(record)
        snapshot = await self.get(reference, scope)
        record = await vms.ensure_stopped(record, force, "restore it")
        return await vms.dispatch(record, "restore", {"snapshot": snapshot.key})
