"""Registry of verb-noun operations exposed as MCP tools.

Each :class:`Operation` pairs a pydantic parameter model (which becomes
the tool's input schema) with an async handler taking the
:class:`~vergeos_mcp.session.Session` and validated parameters. Handlers
return records, action results or plain data; :func:`to_output` turns
those into JSON-ready values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, ConfigDict, Field

from .client import VergeClient
from .mapper import Resource
from .models import ActionResult, BulkResult
from .query import Predicate
from .session import Session, connection_info

# JSON numbers are keys; strings are always names, even "2024".
Ref = Union[int, str]

Handler = Callable[[Session, Any], Awaitable[Any]]


@dataclass(frozen=True)
class Operation:
    """One tool: ``name`` is the tool name, ``verb`` gates exposure."""

    verb: str
    noun: str
    name: str
    description: str
    params_model: type[BaseModel]
    handler: Handler
    # Exposed whatever ALLOWED_VERBS says (session management).
    always_available: bool = False


def to_output(value: Any) -> Any:
    if isinstance(value, (Resource, ActionResult, BulkResult)):
        return value.to_display()
    if isinstance(value, (list, tuple)):
        return [to_output(v) for v in value]
    return value


class Params(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def values(self, *names: str) -> dict[str, Any]:
        """Subset of parameters, with unset ones dropped."""
        return {n: getattr(self, n) for n in names if getattr(self, n) is not None}


class HostParams(Params):
    host: str | None = Field(
        default=None, description="Connection to use (defaults to the default connection)"
    )


async def _client(session: Session, params: HostParams) -> VergeClient:
    return await session.client(params.host)


async def _find_child(service, parent: Ref, reference: Ref | None) -> list:
    """Children of ``parent``; all of them, a name pattern, or one key."""
    if reference is None or isinstance(reference, str):
        return await service.list_for(parent, reference)
    return [await service.get_for(parent, reference)]


# Connection

class ConnectParams(Params):
    host: str | None = Field(default=None, description="VergeOS host (defaults to VERGEOS_HOST)")
    username: str | None = Field(default=None, description="Login user name")
    password: str | None = Field(default=None, description="Login password")
    token: str | None = Field(default=None, description="Pre-issued API token instead of a password")
    port: int | None = Field(default=None, ge=1, le=65535)
    tls_verify: bool | None = Field(default=None, description="Verify the TLS certificate")
    set_default: bool = Field(default=True, description="Make this the default connection")


class ConnectionParams(Params):
    host: str | None = Field(default=None, description="Host of an open connection")


class GetConnectionParams(Params):
    check: bool = Field(default=False, description="Check that each connection still answers")


class SetDefaultConnectionParams(Params):
    host: str = Field(description="Host of an open connection")


async def _connect(session: Session, p: ConnectParams) -> Any:
    connection = await session.connect(
        p.host, p.username, p.password, p.token, p.port, p.tls_verify, p.set_default
    )
    return connection_info(connection)


async def _disconnect(session: Session, p: ConnectionParams) -> Any:
    connection = await session.disconnect(p.host)
    return {"disconnected": connection.host}


async def _get_connection(session: Session, p: GetConnectionParams) -> Any:
    return await session.describe(check=p.check)


async def _set_default_connection(session: Session, p: SetDefaultConnectionParams) -> Any:
    return connection_info(session.set_default(p.host))


# VMs

class GetVmParams(HostParams):
    vm: Ref | None = Field(default=None, description="VM key, name or wildcard pattern")
    limit: int | None = Field(default=None, ge=1)


class VmParams(HostParams):
    vm: Ref = Field(description="VM key or name")


class NewVmParams(HostParams):
    name: str
    cpu_cores: int = Field(default=1, ge=1, le=256)
    ram_mb: int = Field(default=1024, ge=256, description="RAM in MB")
    description: str | None = None
    os_family: str = Field(default="linux", description="linux, windows, freebsd or other")
    uefi: bool = False
    guest_agent: bool = False
    cluster: Ref | None = None


class SetVmParams(VmParams):
    name: str | None = None
    description: str | None = None
    cpu_cores: int | None = Field(default=None, ge=1, le=256)
    ram_mb: int | None = Field(default=None, ge=256)
    os_family: str | None = None
    enabled: bool | None = None
    uefi: bool | None = None
    guest_agent: bool | None = None


class RemoveVmParams(VmParams):
    force: bool = Field(default=False, description="Kill a running VM before removing it")


class VmPowerParams(VmParams):
    wait: bool = Field(default=False, description="Wait for the new power state")


class StopVmParams(VmPowerParams):
    force: bool = Field(default=False, description="Kill instead of a graceful shutdown")


class RestartVmParams(VmPowerParams):
    force: bool = Field(default=False, description="Hard reset instead of a guest reboot")


class CloneVmParams(VmParams):
    name: str | None = Field(default=None, description="Clone name (default <vm>_clone)")
    preserve_macs: bool = False
    wait: bool = False


class MoveVmParams(VmParams):
    node: Ref = Field(description="Target node key or name")
    wait: bool = False


class VmsPowerParams(HostParams):
    vms: list[Ref] = Field(description="VM keys, names or wildcard patterns")
    wait: bool = False


class StopVmsParams(VmsPowerParams):
    force: bool = False


async def _get_vm(session: Session, p: GetVmParams) -> Any:
    vc = await _client(session, p)
    if p.vm is None or isinstance(p.vm, str):
        return await vc.vms.list(name=p.vm, sort="name", limit=p.limit)
    return await vc.vms.find(p.vm)


async def _new_vm(session: Session, p: NewVmParams) -> Any:
    vc = await _client(session, p)
    return await vc.vms.new(
        p.name,
        cpu_cores=p.cpu_cores,
        ram_mb=p.ram_mb,
        description=p.description,
        os_family=p.os_family,
        uefi=p.uefi,
        guest_agent=p.guest_agent,
        cluster=p.cluster,
    )


async def _set_vm(session: Session, p: SetVmParams) -> Any:
    vc = await _client(session, p)
    values = p.values(
        "name", "description", "cpu_cores", "ram_mb", "os_family", "enabled", "uefi", "guest_agent"
    )
    return await vc.vms.set(p.vm, **values)


async def _remove_vm(session: Session, p: RemoveVmParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.vms.remove(p.vm, force=p.force)}


async def _start_vm(session: Session, p: VmPowerParams) -> Any:
    return await (await _client(session, p)).vms.start(p.vm, wait=p.wait)


async def _stop_vm(session: Session, p: StopVmParams) -> Any:
    return await (await _client(session, p)).vms.stop(p.vm, force=p.force, wait=p.wait)


async def _restart_vm(session: Session, p: RestartVmParams) -> Any:
    return await (await _client(session, p)).vms.restart(p.vm, force=p.force, wait=p.wait)


async def _clone_vm(session: Session, p: CloneVmParams) -> Any:
    vc = await _client(session, p)
    return await vc.vms.clone(p.vm, name=p.name, preserve_macs=p.preserve_macs, wait=p.wait)


async def _move_vm(session: Session, p: MoveVmParams) -> Any:
    return await (await _client(session, p)).vms.move(p.vm, p.node, wait=p.wait)


async def _start_vms(session: Session, p: VmsPowerParams) -> Any:
    return await (await _client(session, p)).vms.start_many(p.vms, wait=p.wait)


async def _stop_vms(session: Session, p: StopVmsParams) -> Any:
    vc = await _client(session, p)
    return await vc.vms.stop_many(p.vms, force=p.force, wait=p.wait)


# Drives

class GetDriveParams(VmParams):
    drive: Ref | None = Field(default=None, description="Drive key, name or pattern")


class DriveParams(VmParams):
    drive: Ref = Field(description="Drive key or name")


class NewDriveParams(VmParams):
    size_gb: float | None = Field(default=None, gt=0, description="Size in GB (disks)")
    name: str | None = None
    interface: str = Field(default="virtio-scsi", description="Bus, e.g. virtio-scsi, ide, nvme")
    media: str = Field(default="disk", description="disk, cdrom, clone, import, efidisk")
    tier: int | None = Field(default=None, ge=0, le=5, description="Preferred storage tier")
    description: str | None = None
    media_source: Ref | None = Field(default=None, description="File for cdrom or import media")


class SetDriveParams(DriveParams):
    size_gb: float | None = Field(default=None, gt=0, description="New size in GB; grow only")
    name: str | None = None
    description: str | None = None
    tier: int | None = Field(default=None, ge=0, le=5)
    enabled: bool | None = None


async def _get_drive(session: Session, p: GetDriveParams) -> Any:
    return await _find_child((await _client(session, p)).drives, p.vm, p.drive)


async def _new_drive(session: Session, p: NewDriveParams) -> Any:
    vc = await _client(session, p)
    return await vc.drives.new(
        p.vm,
        size_gb=p.size_gb,
        name=p.name,
        interface=p.interface,
        media=p.media,
        tier=p.tier,
        description=p.description,
        media_source=p.media_source,
    )


async def _set_drive(session: Session, p: SetDriveParams) -> Any:
    vc = await _client(session, p)
    values = p.values("size_gb", "name", "description", "tier", "enabled")
    return await vc.drives.set(p.vm, p.drive, **values)


async def _remove_drive(session: Session, p: DriveParams) -> Any:
    return {"removed": await (await _client(session, p)).drives.remove(p.vm, p.drive)}


# NICs

class GetNicParams(VmParams):
    nic: Ref | None = Field(default=None, description="NIC key, name or pattern")


class NicParams(VmParams):
    nic: Ref = Field(description="NIC key or name")


class NewNicParams(VmParams):
    network: Ref = Field(description="Network key or name")
    name: str | None = None
    interface: str = Field(default="virtio", description="virtio, e1000, e1000e, vmxnet3...")
    mac_address: str | None = Field(default=None, description="Fixed MAC (generated if unset)")
    ip_address: str | None = None
    description: str | None = None


class SetNicParams(NicParams):
    network: Ref | None = None
    name: str | None = None
    description: str | None = None
    mac_address: str | None = None
    ip_address: str | None = None
    enabled: bool | None = None


async def _get_nic(session: Session, p: GetNicParams) -> Any:
    return await _find_child((await _client(session, p)).nics, p.vm, p.nic)


async def _new_nic(session: Session, p: NewNicParams) -> Any:
    vc = await _client(session, p)
    return await vc.nics.new(
        p.vm,
        p.network,
        name=p.name,
        interface=p.interface,
        mac_address=p.mac_address,
        ip_address=p.ip_address,
        description=p.description,
    )


async def _set_nic(session: Session, p: SetNicParams) -> Any:
    vc = await _client(session, p)
    values = p.values("name", "description", "mac_address", "ip_address", "enabled")
    return await vc.nics.set(p.vm, p.nic, network=p.network, **values)


async def _remove_nic(session: Session, p: NicParams) -> Any:
    return {"removed": await (await _client(session, p)).nics.remove(p.vm, p.nic)}


# VM snapshots

class GetVmSnapshotParams(VmParams):
    snapshot: Ref | None = None


class VmSnapshotParams(VmParams):
    snapshot: Ref


class NewVmSnapshotParams(VmParams):
    name: str | None = None
    retention_hours: int = Field(default=24, ge=0, description="0 keeps the snapshot forever")
    quiesce: bool = Field(default=False, description="Pause guest I/O (needs the guest agent)")
    description: str | None = None


class RestoreVmSnapshotParams(VmSnapshotParams):
    force: bool = Field(default=False, description="Kill a running VM before restoring")


async def _get_vm_snapshot(session: Session, p: GetVmSnapshotParams) -> Any:
    return await _find_child((await _client(session, p)).vm_snapshots, p.vm, p.snapshot)


async def _new_vm_snapshot(session: Session, p: NewVmSnapshotParams) -> Any:
    vc = await _client(session, p)
    return await vc.vm_snapshots.new(
        p.vm,
        name=p.name,
        retention_hours=p.retention_hours,
        quiesce=p.quiesce,
        description=p.description,
    )


async def _remove_vm_snapshot(session: Session, p: VmSnapshotParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.vm_snapshots.remove(p.vm, p.snapshot)}


async def _restore_vm_snapshot(session: Session, p: RestoreVmSnapshotParams) -> Any:
    vc = await _client(session, p)
    return await vc.vm_snapshots.restore(p.vm, p.snapshot, force=p.force)


# Tenants

class GetTenantParams(HostParams):
    tenant: Ref | None = Field(default=None, description="Tenant key, name or pattern")


class TenantParams(HostParams):
    tenant: Ref = Field(description="Tenant key or name")


class NewTenantParams(HostParams):
    name: str
    description: str | None = None
    password: str | None = Field(default=None, description="Initial admin password")
    url: str | None = None
    expose_cloud_snapshots: bool = True
    allow_hotplug: bool = True


class SetTenantParams(TenantParams):
    name: str | None = None
    description: str | None = None
    url: str | None = None
    expose_cloud_snapshots: bool | None = None
    allow_hotplug: bool | None = None


class RemoveTenantParams(TenantParams):
    force: bool = False


class TenantPowerParams(TenantParams):
    wait: bool = False


class StopTenantParams(TenantPowerParams):
    force: bool = False


class SendFileParams(TenantParams):
    file: Ref = Field(description="File key or name on the parent system")


async def _get_tenant(session: Session, p: GetTenantParams) -> Any:
    vc = await _client(session, p)
    if p.tenant is None or isinstance(p.tenant, str):
        return await vc.tenants.list(name=p.tenant, sort="name")
    return await vc.tenants.find(p.tenant)


async def _new_tenant(session: Session, p: NewTenantParams) -> Any:
    vc = await _client(session, p)
    return await vc.tenants.new(
        p.name,
        description=p.description,
        password=p.password,
        url=p.url,
        expose_cloud_snapshots=p.expose_cloud_snapshots,
        allow_hotplug=p.allow_hotplug,
    )


async def _set_tenant(session: Session, p: SetTenantParams) -> Any:
    vc = await _client(session, p)
    values = p.values("name", "description", "url", "expose_cloud_snapshots", "allow_hotplug")
    return await vc.tenants.set(p.tenant, **values)


async def _remove_tenant(session: Session, p: RemoveTenantParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.tenants.remove(p.tenant, force=p.force)}


async def _start_tenant(session: Session, p: TenantPowerParams) -> Any:
    return await (await _client(session, p)).tenants.start(p.tenant, wait=p.wait)


async def _stop_tenant(session: Session, p: StopTenantParams) -> Any:
    vc = await _client(session, p)
    return await vc.tenants.stop(p.tenant, force=p.force, wait=p.wait)


async def _restart_tenant(session: Session, p: TenantPowerParams) -> Any:
    return await (await _client(session, p)).tenants.restart(p.tenant, wait=p.wait)


async def _enable_isolation(session: Session, p: TenantParams) -> Any:
    return await (await _client(session, p)).tenants.set_isolation(p.tenant, True)


async def _disable_isolation(session: Session, p: TenantParams) -> Any:
    return await (await _client(session, p)).tenants.set_isolation(p.tenant, False)


async def _send_file(session: Session, p: SendFileParams) -> Any:
    return await (await _client(session, p)).tenants.send_file(p.tenant, p.file)


# Tenant storage

class TenantStorageParams(TenantParams):
    tier: int = Field(ge=1, le=5)


class NewTenantStorageParams(TenantStorageParams):
    provisioned_gb: float = Field(gt=0)


async def _get_tenant_storage(session: Session, p: TenantParams) -> Any:
    return await (await _client(session, p)).tenant_storage.list_for(p.tenant)


async def _new_tenant_storage(session: Session, p: NewTenantStorageParams) -> Any:
    vc = await _client(session, p)
    return await vc.tenant_storage.new(p.tenant, p.tier, p.provisioned_gb)


async def _set_tenant_storage(session: Session, p: NewTenantStorageParams) -> Any:
    vc = await _client(session, p)
    return await vc.tenant_storage.set(p.tenant, p.tier, p.provisioned_gb)


async def _remove_tenant_storage(session: Session, p: TenantStorageParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.tenant_storage.remove_tier(p.tenant, p.tier)}


# Tenant layer 2 networks

class TenantNetworkParams(TenantParams):
    network: Ref = Field(description="Network key or name")


class NewTenantLayer2Params(TenantNetworkParams):
    enabled: bool = True


async def _get_tenant_layer2(session: Session, p: TenantParams) -> Any:
    return await (await _client(session, p)).tenant_layer2.list_for(p.tenant)


async def _new_tenant_layer2(session: Session, p: NewTenantLayer2Params) -> Any:
    vc = await _client(session, p)
    return await vc.tenant_layer2.new(p.tenant, p.network, enabled=p.enabled)


async def _remove_tenant_layer2(session: Session, p: TenantNetworkParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.tenant_layer2.remove(p.tenant, p.network)}


# Tenant network blocks

class TenantBlockParams(TenantParams):
    cidr: str = Field(description="Block in CIDR notation, e.g. 192.168.10.0/24")


class NewTenantBlockParams(TenantBlockParams):
    network: Ref = Field(description="Parent network the block is carved from")
    description: str | None = None


async def _get_tenant_block(session: Session, p: GetTenantParams) -> Any:
    vc = await _client(session, p)
    if p.tenant is None:
        rows = await vc.tenant_network_blocks.list(
            filters=[Predicate.contains("owner", "tenants/")]
        )
        return rows
    return await vc.tenant_network_blocks.list_for(p.tenant)


async def _new_tenant_block(session: Session, p: NewTenantBlockParams) -> Any:
    vc = await _client(session, p)
    return await vc.tenant_network_blocks.new(
        p.tenant, p.network, p.cidr, description=p.description
    )


async def _remove_tenant_block(session: Session, p: TenantBlockParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.tenant_network_blocks.remove(p.tenant, p.cidr)}


# Tenant snapshots

class GetTenantSnapshotParams(TenantParams):
    snapshot: Ref | None = None


class TenantSnapshotParams(TenantParams):
    snapshot: Ref


class NewTenantSnapshotParams(TenantParams):
    name: str | None = None
    retention_hours: int = Field(default=24, ge=0, description="0 keeps the snapshot forever")
    description: str | None = None


class RestoreTenantSnapshotParams(TenantSnapshotParams):
    force: bool = False


async def _get_tenant_snapshot(session: Session, p: GetTenantSnapshotParams) -> Any:
    return await _find_child((await _client(session, p)).tenant_snapshots, p.tenant, p.snapshot)


async def _new_tenant_snapshot(session: Session, p: NewTenantSnapshotParams) -> Any:
    vc = await _client(session, p)
    return await vc.tenant_snapshots.new(
        p.tenant, name=p.name, retention_hours=p.retention_hours, description=p.description
    )


async def _remove_tenant_snapshot(session: Session, p: TenantSnapshotParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.tenant_snapshots.remove(p.tenant, p.snapshot)}


async def _restore_tenant_snapshot(session: Session, p: RestoreTenantSnapshotParams) -> Any:
    vc = await _client(session, p)
    return await vc.tenant_snapshots.restore(p.tenant, p.snapshot, force=p.force)


# Shared objects

class SharedObjectParams(TenantParams):
    shared_object: Ref = Field(description="Shared object key or name")


class NewSharedObjectParams(TenantParams):
    vm: Ref = Field(description="VM to share")
    name: str | None = None
    description: str | None = None
    snapshot: Ref | None = Field(default=None, description="Share this VM snapshot instead")


async def _get_shared_object(session: Session, p: GetTenantParams) -> Any:
    return await (await _client(session, p)).shared_objects.list_for(p.tenant)


async def _new_shared_object(session: Session, p: NewSharedObjectParams) -> Any:
    vc = await _client(session, p)
    return await vc.shared_objects.new(
        p.tenant, p.vm, name=p.name, description=p.description, snapshot=p.snapshot
    )


async def _import_shared_object(session: Session, p: SharedObjectParams) -> Any:
    vc = await _client(session, p)
    return await vc.shared_objects.import_object(p.tenant, p.shared_object)


async def _remove_shared_object(session: Session, p: SharedObjectParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.shared_objects.remove(p.tenant, p.shared_object)}


# Networks

class GetNetworkParams(HostParams):
    network: Ref | None = Field(default=None, description="Network key, name or pattern")
    network_type: str | None = Field(default=None, description="internal, external, dmz...")


class NetworkParams(HostParams):
    network: Ref = Field(description="Network key or name")


class NewNetworkParams(HostParams):
    name: str
    network_type: str = "internal"
    network_address: str | None = Field(default=None, description="CIDR, e.g. 10.0.0.0/24")
    ip_address: str | None = Field(default=None, description="Router address on the network")
    gateway: str | None = None
    dhcp_enabled: bool = False
    dhcp_start: str | None = None
    dhcp_stop: str | None = None
    mtu: int | None = Field(default=None, ge=576, le=9216)
    description: str | None = None
    interface_network: Ref | None = Field(default=None, description="Uplink network")


class SetNetworkParams(NetworkParams):
    name: str | None = None
    description: str | None = None
    gateway: str | None = None
    dhcp_enabled: bool | None = None
    dhcp_start: str | None = None
    dhcp_stop: str | None = None
    mtu: int | None = Field(default=None, ge=576, le=9216)


class RemoveNetworkParams(NetworkParams):
    force: bool = False


class NetworkPowerParams(NetworkParams):
    wait: bool = False


async def _get_network(session: Session, p: GetNetworkParams) -> Any:
    vc = await _client(session, p)
    filters = [Predicate.eq("type", p.network_type)] if p.network_type else []
    if p.network is None or isinstance(p.network, str):
        return await vc.networks.list(name=p.network, filters=filters, sort="name")
    return await vc.networks.find(p.network)


async def _new_network(session: Session, p: NewNetworkParams) -> Any:
    vc = await _client(session, p)
    return await vc.networks.new(
        p.name,
        network_type=p.network_type,
        network_address=p.network_address,
        ip_address=p.ip_address,
        gateway=p.gateway,
        dhcp_enabled=p.dhcp_enabled,
        dhcp_start=p.dhcp_start,
        dhcp_stop=p.dhcp_stop,
        mtu=p.mtu,
        description=p.description,
        interface_network=p.interface_network,
    )


async def _set_network(session: Session, p: SetNetworkParams) -> Any:
    vc = await _client(session, p)
    values = p.values(
        "name", "description", "gateway", "dhcp_enabled", "dhcp_start", "dhcp_stop", "mtu"
    )
    return await vc.networks.set(p.network, **values)


async def _remove_network(session: Session, p: RemoveNetworkParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.networks.remove(p.network, force=p.force)}


async def _start_network(session: Session, p: NetworkPowerParams) -> Any:
    return await (await _client(session, p)).networks.start(p.network, wait=p.wait)


async def _stop_network(session: Session, p: NetworkPowerParams) -> Any:
    return await (await _client(session, p)).networks.stop(p.network, wait=p.wait)


async def _restart_network(session: Session, p: NetworkPowerParams) -> Any:
    return await (await _client(session, p)).networks.restart(p.network, wait=p.wait)


async def _apply_rules(session: Session, p: NetworkParams) -> Any:
    return await (await _client(session, p)).networks.apply_rules(p.network)


# Network rules

class GetRuleParams(NetworkParams):
    rule: Ref | None = None


class RuleParams(NetworkParams):
    rule: Ref
    apply: bool = Field(default=False, description="Apply rules after the change")


class NewRuleParams(NetworkParams):
    name: str
    action: str = Field(default="accept", description="accept, drop, reject, translate, route")
    direction: str = Field(default="incoming", description="incoming or outgoing")
    protocol: str = Field(default="any", description="any, tcp, udp, tcpudp, icmp")
    source_ip: str | None = None
    source_ports: str | None = None
    destination_ip: str | None = None
    destination_ports: str | None = None
    description: str | None = None
    apply: bool = Field(default=False, description="Apply rules after the change")


async def _get_rule(session: Session, p: GetRuleParams) -> Any:
    return await _find_child((await _client(session, p)).network_rules, p.network, p.rule)


async def _new_rule(session: Session, p: NewRuleParams) -> Any:
    vc = await _client(session, p)
    return await vc.network_rules.new(
        p.network,
        p.name,
        action=p.action,
        direction=p.direction,
        protocol=p.protocol,
        source_ip=p.source_ip,
        source_ports=p.source_ports,
        destination_ip=p.destination_ip,
        destination_ports=p.destination_ports,
        description=p.description,
        apply=p.apply,
    )


async def _remove_rule(session: Session, p: RuleParams) -> Any:
    vc = await _client(session, p)
    return {"removed": await vc.network_rules.remove(p.network, p.rule, apply=p.apply)}


# Infrastructure

class GetStorageTierParams(HostParams):
    tier: int | None = Field(default=None, ge=0, le=5)


class GetNamedParams(HostParams):
    name: Ref | None = Field(default=None, description="Key, name or wildcard pattern")


class NodeParams(HostParams):
    node: Ref = Field(description="Node key or name")


async def _get_storage_tier(session: Session, p: GetStorageTierParams) -> Any:
    return await (await _client(session, p)).storage_tiers.list_tiers(p.tier)


def _named_getter(attr: str) -> Handler:
    async def handler(session: Session, p: GetNamedParams) -> Any:
        service = getattr(await _client(session, p), attr)
        if p.name is None or isinstance(p.name, str):
            return await service.list(name=p.name, sort="name")
        return await service.find(p.name)

    return handler


async def _enable_maintenance(session: Session, p: NodeParams) -> Any:
    return await (await _client(session, p)).nodes.set_maintenance(p.node, True)


async def _disable_maintenance(session: Session, p: NodeParams) -> Any:
    return await (await _client(session, p)).nodes.set_maintenance(p.node, False)


def _op(verb, noun, name, description, params_model, handler, **kwargs) -> Operation:
    return Operation(verb, noun, name, description, params_model, handler, **kwargs)


OPERATIONS: tuple[Operation, ...] = (
    _op("Connect", "Connection", "connect", "Log in to a VergeOS system and open a connection.",
        ConnectParams, _connect, always_available=True),
    _op("Disconnect", "Connection", "disconnect", "Log out and close a connection.",
        ConnectionParams, _disconnect, always_available=True),
    _op("Get", "Connection", "get_connection", "List open connections.",
        GetConnectionParams, _get_connection, always_available=True),
    _op("Set", "Connection", "set_default_connection", "Make an open connection the default.",
        SetDefaultConnectionParams, _set_default_connection, always_available=True),

    _op("Get", "VM", "get_vm", "List VMs, or get VMs by key, name or wildcard pattern.",
        GetVmParams, _get_vm),
    _op("New", "VM", "new_vm", "Create a VM.", NewVmParams, _new_vm),
    _op("Set", "VM", "set_vm", "Change VM properties.", SetVmParams, _set_vm),
    _op("Remove", "VM", "remove_vm", "Delete a stopped VM (force kills a running one first).",
        RemoveVmParams, _remove_vm),
    _op("Start", "VM", "start_vm", "Power on a VM.", VmPowerParams, _start_vm),
    _op("Stop", "VM", "stop_vm", "Shut down a VM gracefully, or kill it with force.",
        StopVmParams, _stop_vm),
    _op("Restart", "VM", "restart_vm", "Reboot a VM through the guest, or hard reset with force.",
        RestartVmParams, _restart_vm),
    _op("New", "VMClone", "new_vm_clone", "Clone a VM.", CloneVmParams, _clone_vm),
    _op("Move", "VM", "move_vm", "Live-migrate a running VM to another node.",
        MoveVmParams, _move_vm),
    _op("Start", "VMs", "start_vms", "Power on several VMs; failures are reported per VM.",
        VmsPowerParams, _start_vms),
    _op("Stop", "VMs", "stop_vms", "Shut down several VMs; failures are reported per VM.",
        StopVmsParams, _stop_vms),

    _op("Get", "VMDrive", "get_vm_drive", "List a VM's drives.", GetDriveParams, _get_drive),
    _op("New", "VMDrive", "new_vm_drive", "Add a drive to a VM.", NewDriveParams, _new_drive),
    _op("Set", "VMDrive", "set_vm_drive", "Change a drive; disks can only grow.",
        SetDriveParams, _set_drive),
    _op("Remove", "VMDrive", "remove_vm_drive", "Delete a drive from a VM.",
        DriveParams, _remove_drive),

    _op("Get", "VMNic", "get_vm_nic", "List a VM's NICs.", GetNicParams, _get_nic),
    _op("New", "VMNic", "new_vm_nic", "Add a NIC to a VM.", NewNicParams, _new_nic),
    _op("Set", "VMNic", "set_vm_nic", "Change a NIC.", SetNicParams, _set_nic),
    _op("Remove", "VMNic", "remove_vm_nic", "Delete a NIC from a VM.", NicParams, _remove_nic),

    _op("Get", "VMSnapshot", "get_vm_snapshot", "List a VM's snapshots.",
        GetVmSnapshotParams, _get_vm_snapshot),
    _op("New", "VMSnapshot", "new_vm_snapshot", "Snapshot a VM.",
        NewVmSnapshotParams, _new_vm_snapshot),
    _op("Remove", "VMSnapshot", "remove_vm_snapshot", "Delete a VM snapshot.",
        VmSnapshotParams, _remove_vm_snapshot),
    _op("Restore", "VMSnapshot", "restore_vm_snapshot",
        "Restore a stopped VM from one of its snapshots.",
        RestoreVmSnapshotParams, _restore_vm_snapshot),

    _op("Get", "Tenant", "get_tenant", "List tenants, or get tenants by key, name or pattern.",
        GetTenantParams, _get_tenant),
    _op("New", "Tenant", "new_tenant", "Create a tenant.", NewTenantParams, _new_tenant),
    _op("Set", "Tenant", "set_tenant", "Change tenant properties.",
        SetTenantParams, _set_tenant),
    _op("Remove", "Tenant", "remove_tenant", "Delete a stopped tenant.",
        RemoveTenantParams, _remove_tenant),
    _op("Start", "Tenant", "start_tenant", "Power on a tenant.",
        TenantPowerParams, _start_tenant),
    _op("Stop", "Tenant", "stop_tenant", "Power off a tenant.", StopTenantParams, _stop_tenant),
    _op("Restart", "Tenant", "restart_tenant", "Reset a running tenant.",
        TenantPowerParams, _restart_tenant),
    _op("Enable", "TenantIsolation", "enable_tenant_isolation",
        "Isolate a tenant from its networks.", TenantParams, _enable_isolation),
    _op("Disable", "TenantIsolation", "disable_tenant_isolation",
        "End a tenant's network isolation.", TenantParams, _disable_isolation),
    _op("Send", "FileToTenant", "send_file_to_tenant", "Give a tenant a copy of a file.",
        SendFileParams, _send_file),

    _op("Get", "TenantStorage", "get_tenant_storage", "List a tenant's storage allocations.",
        TenantParams, _get_tenant_storage),
    _op("New", "TenantStorage", "new_tenant_storage", "Allocate storage on a tier to a tenant.",
        NewTenantStorageParams, _new_tenant_storage),
    _op("Set", "TenantStorage", "set_tenant_storage", "Resize a tenant's storage on a tier.",
        NewTenantStorageParams, _set_tenant_storage),
    _op("Remove", "TenantStorage", "remove_tenant_storage",
        "Remove a tenant's storage allocation on a tier.",
        TenantStorageParams, _remove_tenant_storage),

    _op("Get", "TenantLayer2Network", "get_tenant_layer2_network",
        "List networks passed through to a tenant at layer 2.",
        TenantParams, _get_tenant_layer2),
    _op("New", "TenantLayer2Network", "new_tenant_layer2_network",
        "Pass a network through to a tenant at layer 2.",
        NewTenantLayer2Params, _new_tenant_layer2),
    _op("Remove", "TenantLayer2Network", "remove_tenant_layer2_network",
        "Stop passing a network through to a tenant.",
        TenantNetworkParams, _remove_tenant_layer2),

    _op("Get", "TenantNetworkBlock", "get_tenant_network_block",
        "List network blocks routed to tenants.", GetTenantParams, _get_tenant_block),
    _op("New", "TenantNetworkBlock", "new_tenant_network_block",
        "Route a CIDR block to a tenant.", NewTenantBlockParams, _new_tenant_block),
    _op("Remove", "TenantNetworkBlock", "remove_tenant_network_block",
        "Remove a tenant's network block.", TenantBlockParams, _remove_tenant_block),

    _op("Get", "TenantSnapshot", "get_tenant_snapshot", "List a tenant's snapshots.",
        GetTenantSnapshotParams, _get_tenant_snapshot),
    _op("New", "TenantSnapshot", "new_tenant_snapshot", "Snapshot a tenant.",
        NewTenantSnapshotParams, _new_tenant_snapshot),
    _op("Remove", "TenantSnapshot", "remove_tenant_snapshot", "Delete a tenant snapshot.",
        TenantSnapshotParams, _remove_tenant_snapshot),
    _op("Restore", "TenantSnapshot", "restore_tenant_snapshot",
        "Restore a stopped tenant from a snapshot.",
        RestoreTenantSnapshotParams, _restore_tenant_snapshot),

    _op("Get", "SharedObject", "get_shared_object", "List objects shared with tenants.",
        GetTenantParams, _get_shared_object),
    _op("New", "SharedObject", "new_shared_object", "Share a VM with a tenant.",
        NewSharedObjectParams, _new_shared_object),
    _op("Import", "SharedObject", "import_shared_object",
        "Import a shared object into the tenant.", SharedObjectParams, _import_shared_object),
    _op("Remove", "SharedObject", "remove_shared_object", "Withdraw a shared object.",
        SharedObjectParams, _remove_shared_object),

    _op("Get", "Network", "get_network", "List networks, or get networks by key, name or pattern.",
        GetNetworkParams, _get_network),
    _op("New", "Network", "new_network", "Create a network.", NewNetworkParams, _new_network),
    _op("Set", "Network", "set_network", "Change network properties.",
        SetNetworkParams, _set_network),
    _op("Remove", "Network", "remove_network", "Delete a stopped network.",
        RemoveNetworkParams, _remove_network),
    _op("Start", "Network", "start_network", "Power on a network.",
        NetworkPowerParams, _start_network),
    _op("Stop", "Network", "stop_network", "Power off a network.",
        NetworkPowerParams, _stop_network),
    _op("Restart", "Network", "restart_network", "Reset a running network.",
        NetworkPowerParams, _restart_network),
    _op("Invoke", "NetworkRules", "apply_network_rules", "Apply pending firewall rule changes.",
        NetworkParams, _apply_rules),

    _op("Get", "NetworkRule", "get_network_rule", "List a network's firewall rules.",
        GetRuleParams, _get_rule),
    _op("New", "NetworkRule", "new_network_rule", "Add a firewall rule to a network.",
        NewRuleParams, _new_rule),
    _op("Remove", "NetworkRule", "remove_network_rule", "Delete a firewall rule.",
        RuleParams, _remove_rule),

    _op("Get", "StorageTier", "get_storage_tier", "List storage tiers with capacity and usage.",
        GetStorageTierParams, _get_storage_tier),
    _op("Get", "Node", "get_node", "List nodes.", GetNamedParams, _named_getter("nodes")),
    _op("Enable", "NodeMaintenance", "enable_node_maintenance",
        "Put a node into maintenance mode.", NodeParams, _enable_maintenance),
    _op("Disable", "NodeMaintenance", "disable_node_maintenance",
        "Take a node out of maintenance mode.", NodeParams, _disable_maintenance),
    _op("Get", "Cluster", "get_cluster", "List clusters with resource totals.",
        GetNamedParams, _named_getter("clusters")),
    _op("Get", "File", "get_file", "List files in the media catalog.",
        GetNamedParams, _named_getter("files")),
)


OPERATIONS_BY_NAME: dict[str, Operation] = {op.name: op for op in OPERATIONS}
