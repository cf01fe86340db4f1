"""Typed VergeOS records.

Each model maps one API collection. Stored fields hold wire units (bytes,
MB for RAM); display conversions are properties listed in
``display_fields`` so they show up in :meth:`Resource.to_display`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from . import conversions as conv
from .exceptions import ValidationError
from .mapper import EpochDatetime, Resource, WriteField
from .query import FieldSpec, Predicate

# Machine status values shared by VMs, networks and nodes.
MACHINE_STATUS = {
    "running": "Running",
    "stopped": "Stopped",
    "starting": "Starting",
    "stopping": "Stopping",
    "migrating": "Migrating",
    "hibernating": "Hibernating",
    "hibernated": "Hibernated",
    "restoring": "Restoring",
    "error": "Error",
}

STORAGE_STATUS = {
    "online": "Online",
    "offline": "Offline",
    "repairing": "Repairing",
    "degraded": "Degraded",
    "verifying": "Verifying",
    "nodesoffline": "Error (Nodes Offline)",
    "noredundant": "Warning (No Redundancy)",
    "outofspace": "Error (Out of Space)",
}

DRIVE_INTERFACES = {
    "virtio-scsi": "Virtio-SCSI",
    "virtio-scsi-dedicated": "Virtio-SCSI (Dedicated)",
    "virtio": "Virtio (Legacy)",
    "ide": "IDE",
    "ahci": "SATA (AHCI)",
    "nvme": "NVMe",
    "lsi53c895a": "LSI SCSI",
}

DRIVE_MEDIA = {
    "disk": "Disk",
    "cdrom": "CD-ROM",
    "clone": "Clone Disk",
    "import": "Import Disk",
    "efidisk": "EFI Disk",
    "nonpersistent": "Non-Persistent",
}

NIC_INTERFACES = {
    "virtio": "Virtio",
    "e1000": "Intel e1000",
    "e1000e": "Intel e1000e",
    "rtl8139": "Realtek 8139",
    "pcnet": "AMD PCnet",
    "igb": "Intel 82576",
    "vmxnet3": "VMware Paravirt v3",
    "direct": "Direct",
}

NETWORK_TYPES = {
    "internal": "Internal",
    "external": "External",
    "dmz": "DMZ",
    "vpn": "VPN",
    "bgp": "BGP",
    "core": "Core",
    "physical": "Physical",
}

RULE_ACTIONS = {
    "accept": "Accept",
    "drop": "Drop",
    "reject": "Reject",
    "translate": "Translate",
    "route": "Route",
}

RULE_DIRECTIONS = {"incoming": "Incoming", "outgoing": "Outgoing"}

RULE_PROTOCOLS = {
    "any": "Any",
    "tcp": "TCP",
    "udp": "UDP",
    "tcpudp": "TCP/UDP",
    "icmp": "ICMP",
}

OS_FAMILIES = {
    "linux": "Linux",
    "windows": "Windows",
    "freebsd": "FreeBSD",
    "other": "Other",
}

# Snapshot copies of VMs and tenants are stored as rows flagged ``is_snapshot``.
NOT_SNAPSHOT = Predicate.eq("is_snapshot", False)


def _tier(value: Any) -> str:
    tier = int(value)
    if not 0 <= tier <= 5:
        raise ValueError("storage tier must be between 0 and 5")
    return str(tier)


def _machine_status_display(status: str | None) -> str | None:
    return conv.display_name(MACHINE_STATUS, status)


class PoweredResource(Resource):
    """Records with a machine power state (VMs, tenants, networks)."""

    status: str | None = None
    running: bool | None = None
    node_name: str | None = None

    @property
    def status_display(self) -> str | None:
        return _machine_status_display(self.status)

    @property
    def is_running(self) -> bool:
        return bool(self.running) or self.status == "running"

    @property
    def is_stopped(self) -> bool:
        return self.status == "stopped" or (self.status is None and not self.running)


class Vm(PoweredResource):
    endpoint: ClassVar[str] = "vms"
    noun: ClassVar[str | None] = "vm"
    label: ClassVar[str] = "VM"
    base_filters: ClassVar[tuple[Predicate, ...]] = (NOT_SNAPSHOT,)
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("enabled"),
        FieldSpec("machine"),
        FieldSpec("cpu_cores"),
        FieldSpec("ram"),
        FieldSpec("os_family"),
        FieldSpec("machine_type"),
        FieldSpec("uefi"),
        FieldSpec("guest_agent"),
        FieldSpec("created"),
        FieldSpec("cluster#name", "cluster_name"),
        FieldSpec("machine#status#status", "status"),
        FieldSpec("machine#status#running", "running"),
        FieldSpec("machine#status#node#name", "node_name"),
        FieldSpec("machine#status#node", "node_key"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "name": WriteField("name"),
        "description": WriteField("description"),
        "enabled": WriteField("enabled"),
        "cpu_cores": WriteField("cpu_cores", int),
        "ram_mb": WriteField("ram", int),
        "ram_gb": WriteField("ram", lambda gb: int(gb * 1024)),
        "os_family": WriteField("os_family", lambda v: conv.wire_value(OS_FAMILIES, v)),
        "machine_type": WriteField("machine_type"),
        "uefi": WriteField("uefi", bool),
        "guest_agent": WriteField("guest_agent", bool),
        "cluster_key": WriteField("cluster", int),
        "preferred_node_key": WriteField("preferred_node", int),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("ram_gb", "status_display")

    description: str | None = None
    enabled: bool | None = None
    machine_key: int | None = Field(default=None, alias="machine")
    cpu_cores: int | None = None
    ram: int | None = None
    os_family: str | None = None
    machine_type: str | None = None
    uefi: bool | None = None
    guest_agent: bool | None = None
    created: EpochDatetime = None
    cluster_name: str | None = None
    node_key: int | None = None

    @property
    def ram_gb(self) -> float | None:
        return None if self.ram is None else round(self.ram / 1024, 2)


class Drive(Resource):
    endpoint: ClassVar[str] = "machine_drives"
    label: ClassVar[str] = "Drive"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("machine"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("interface"),
        FieldSpec("media"),
        FieldSpec("disksize"),
        FieldSpec("used_bytes"),
        FieldSpec("preferred_tier"),
        FieldSpec("enabled"),
        FieldSpec("orderid"),
        FieldSpec("media_source"),
        FieldSpec("media_source#name", "media_source_name"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "machine_key": WriteField("machine", int),
        "name": WriteField("name"),
        "description": WriteField("description"),
        "interface": WriteField("interface", lambda v: conv.wire_value(DRIVE_INTERFACES, v)),
        "media": WriteField("media", lambda v: conv.wire_value(DRIVE_MEDIA, v)),
        "size_gb": WriteField("disksize", conv.gb_to_bytes),
        "tier": WriteField("preferred_tier", _tier),
        "enabled": WriteField("enabled", bool),
        "media_source_key": WriteField("media_source", int),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("size_gb", "used_gb", "interface_display")

    machine_key: int | None = Field(default=None, alias="machine")
    description: str | None = None
    interface: str | None = None
    media: str | None = None
    size_bytes: int | None = Field(default=None, alias="disksize")
    used_bytes: int | None = None
    preferred_tier: int | None = None
    enabled: bool | None = None
    order: int | None = Field(default=None, alias="orderid")
    media_source: int | None = None
    media_source_name: str | None = None

    @property
    def size_gb(self) -> float | None:
        return conv.bytes_to_gb(self.size_bytes)

    @property
    def used_gb(self) -> float | None:
        return conv.bytes_to_gb(self.used_bytes)

    @property
    def interface_display(self) -> str | None:
        return conv.display_name(DRIVE_INTERFACES, self.interface)


class Nic(Resource):
    endpoint: ClassVar[str] = "machine_nics"
    label: ClassVar[str] = "NIC"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("machine"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("interface"),
        FieldSpec("vnet"),
        FieldSpec("vnet#name", "network_name"),
        FieldSpec("macaddress"),
        FieldSpec("ipaddress"),
        FieldSpec("enabled"),
        FieldSpec("orderid"),
        FieldSpec("status#status", "status"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "machine_key": WriteField("machine", int),
        "name": WriteField("name"),
        "description": WriteField("description"),
        "interface": WriteField("interface", lambda v: conv.wire_value(NIC_INTERFACES, v)),
        "network_key": WriteField("vnet", int),
        "mac_address": WriteField("macaddress", conv.validate_mac),
        "ip_address": WriteField("ipaddress", conv.validate_ipv4),
        "enabled": WriteField("enabled", bool),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("interface_display",)

    machine_key: int | None = Field(default=None, alias="machine")
    description: str | None = None
    interface: str | None = None
    network_key: int | None = Field(default=None, alias="vnet")
    network_name: str | None = None
    mac_address: str | None = Field(default=None, alias="macaddress")
    ip_address: str | None = Field(default=None, alias="ipaddress")
    enabled: bool | None = None
    order: int | None = Field(default=None, alias="orderid")
    status: str | None = None

    @property
    def interface_display(self) -> str | None:
        return conv.display_name(NIC_INTERFACES, self.interface)


class VmSnapshot(Resource):
    endpoint: ClassVar[str] = "machine_snapshots"
    label: ClassVar[str] = "VM snapshot"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("machine"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("created"),
        FieldSpec("expires"),
        FieldSpec("quiesced"),
        FieldSpec("created_manually"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "machine_key": WriteField("machine", int),
        "name": WriteField("name"),
        "description": WriteField("description"),
        "expires": WriteField("expires", conv.datetime_to_epoch),
        "quiesce": WriteField("quiesce", bool),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("expires_display", "never_expires")

    machine_key: int | None = Field(default=None, alias="machine")
    description: str | None = None
    created: EpochDatetime = None
    expires: EpochDatetime = None
    quiesced: bool | None = None
    created_manually: bool | None = None

    @property
    def never_expires(self) -> bool:
        return self.expires is None

    @property
    def expires_display(self) -> str:
        return conv.expires_display(self.expires)


class Tenant(PoweredResource):
    endpoint: ClassVar[str] = "tenants"
    noun: ClassVar[str | None] = "tenant"
    label: ClassVar[str] = "Tenant"
    base_filters: ClassVar[tuple[Predicate, ...]] = (Predicate.eq("is_snapshot", False),)
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("url"),
        FieldSpec("isolate"),
        FieldSpec("expose_cloud_snapshots"),
        FieldSpec("allow_hotplug"),
        FieldSpec("created"),
        FieldSpec("vnet"),
        FieldSpec("vnet#name", "network_name"),
        FieldSpec("ui_address_ip"),
        FieldSpec("status#status", "status"),
        FieldSpec("status#running", "running"),
        FieldSpec("status#node#name", "node_name"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "name": WriteField("name"),
        "description": WriteField("description"),
        "url": WriteField("url"),
        "password": WriteField("password"),
        "expose_cloud_snapshots": WriteField("expose_cloud_snapshots", bool),
        "allow_hotplug": WriteField("allow_hotplug", bool),
        "ui_address_ip": WriteField("ui_address_ip", conv.validate_ipv4),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("status_display",)

    description: str | None = None
    url: str | None = None
    isolated: bool | None = Field(default=None, alias="isolate")
    expose_cloud_snapshots: bool | None = None
    allow_hotplug: bool | None = None
    created: EpochDatetime = None
    network_key: int | None = Field(default=None, alias="vnet")
    network_name: str | None = None
    ui_address_ip: str | None = None


class TenantStorage(Resource):
    endpoint: ClassVar[str] = "tenant_storage"
    label: ClassVar[str] = "Tenant storage"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("tenant"),
        FieldSpec("tenant#name", "tenant_name"),
        FieldSpec("tier"),
        FieldSpec("provisioned"),
        FieldSpec("used"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "tenant_key": WriteField("tenant", int),
        "tier": WriteField("tier", lambda v: int(_tier(v))),
        "provisioned_gb": WriteField("provisioned", conv.gb_to_bytes),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("provisioned_gb", "used_gb", "used_percent")

    tenant_key: int | None = Field(default=None, alias="tenant")
    tenant_name: str | None = None
    tier: int | None = None
    provisioned_bytes: int | None = Field(default=None, alias="provisioned")
    used_bytes: int | None = Field(default=None, alias="used")

    @property
    def provisioned_gb(self) -> float | None:
        return conv.bytes_to_gb(self.provisioned_bytes)

    @property
    def used_gb(self) -> float | None:
        return conv.bytes_to_gb(self.used_bytes)

    @property
    def used_percent(self) -> float | None:
        if not self.provisioned_bytes or self.used_bytes is None:
            return None
        return round(self.used_bytes / self.provisioned_bytes * 100, 1)


class TenantLayer2Network(Resource):
    endpoint: ClassVar[str] = "tenant_layer2_vnets"
    label: ClassVar[str] = "Tenant layer 2 network"
    name_field: ClassVar[str] = "vnet#name"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("tenant"),
        FieldSpec("vnet"),
        FieldSpec("vnet#name", "name"),
        FieldSpec("enabled"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "tenant_key": WriteField("tenant", int),
        "network_key": WriteField("vnet", int),
        "enabled": WriteField("enabled", bool),
    }

    tenant_key: int | None = Field(default=None, alias="tenant")
    network_key: int | None = Field(default=None, alias="vnet")
    enabled: bool | None = None


class TenantNetworkBlock(Resource):
    endpoint: ClassVar[str] = "vnet_cidrs"
    label: ClassVar[str] = "Network block"
    name_field: ClassVar[str] = "cidr"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("vnet"),
        FieldSpec("vnet#name", "network_name"),
        FieldSpec("cidr"),
        FieldSpec("description"),
        FieldSpec("owner"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "network_key": WriteField("vnet", int),
        "cidr": WriteField("cidr", lambda v: str(conv.parse_cidr(v))),
        "description": WriteField("description"),
        "owner": WriteField("owner"),
    }
    display_fields: ClassVar[tuple[str, ...]] = (
        "network_address",
        "prefix_length",
        "address_count",
    )

    network_key: int | None = Field(default=None, alias="vnet")
    network_name: str | None = None
    cidr: str | None = None
    description: str | None = None
    owner: str | None = None

    @property
    def block(self) -> conv.CidrBlock | None:
        if not self.cidr:
            return None
        try:
            return conv.parse_cidr(self.cidr)
        except ValidationError:
            return None

    @property
    def network_address(self) -> str | None:
        return self.block.network_address if self.block else None

    @property
    def prefix_length(self) -> int | None:
        return self.block.prefix_length if self.block else None

    @property
    def address_count(self) -> int | None:
        return self.block.address_count if self.block else None

    @property
    def tenant_key(self) -> int | None:
        if self.owner and self.owner.startswith("tenants/"):
            return int(self.owner.split("/", 1)[1])
        return None


class TenantSnapshot(Resource):
    endpoint: ClassVar[str] = "tenant_snapshots"
    label: ClassVar[str] = "Tenant snapshot"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("tenant"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("created"),
        FieldSpec("expires"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "tenant_key": WriteField("tenant", int),
        "name": WriteField("name"),
        "description": WriteField("description"),
        "expires": WriteField("expires", conv.datetime_to_epoch),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("expires_display", "never_expires")

    tenant_key: int | None = Field(default=None, alias="tenant")
    description: str | None = None
    created: EpochDatetime = None
    expires: EpochDatetime = None

    @property
    def never_expires(self) -> bool:
        return self.expires is None

    @property
    def expires_display(self) -> str:
        return conv.expires_display(self.expires)


class SharedObject(Resource):
    endpoint: ClassVar[str] = "shared_objects"
    noun: ClassVar[str | None] = "shared_object"
    label: ClassVar[str] = "Shared object"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("recipient"),
        FieldSpec("recipient#name", "tenant_name"),
        FieldSpec("type"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("id"),
        FieldSpec("inbox"),
        FieldSpec("snapshot"),
        FieldSpec("created"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "tenant_key": WriteField("recipient", int),
        "type": WriteField("type"),
        "name": WriteField("name"),
        "description": WriteField("description"),
        "object_id": WriteField("id"),
        "snapshot_key": WriteField("snapshot", int),
    }

    tenant_key: int | None = Field(default=None, alias="recipient")
    tenant_name: str | None = None
    type: str | None = None
    description: str | None = None
    object_id: str | None = Field(default=None, alias="id")
    inbox: bool | None = None
    snapshot: int | None = None
    created: EpochDatetime = None


class Network(PoweredResource):
    endpoint: ClassVar[str] = "vnets"
    noun: ClassVar[str | None] = "vnet"
    label: ClassVar[str] = "Network"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("type"),
        FieldSpec("network"),
        FieldSpec("ipaddress"),
        FieldSpec("gateway"),
        FieldSpec("mtu"),
        FieldSpec("dhcp_enabled"),
        FieldSpec("dhcp_start"),
        FieldSpec("dhcp_stop"),
        FieldSpec("need_fw_apply"),
        FieldSpec("need_restart"),
        FieldSpec("machine#status#status", "status"),
        FieldSpec("machine#status#running", "running"),
        FieldSpec("machine#status#node#name", "node_name"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "name": WriteField("name"),
        "description": WriteField("description"),
        "type": WriteField("type", lambda v: conv.wire_value(NETWORK_TYPES, v)),
        "network_address": WriteField("network", lambda v: str(conv.parse_cidr(v))),
        "ip_address": WriteField("ipaddress", conv.validate_ipv4),
        "gateway": WriteField("gateway", lambda v: conv.validate_ipv4(v, "gateway")),
        "mtu": WriteField("mtu", int),
        "dhcp_enabled": WriteField("dhcp_enabled", bool),
        "dhcp_start": WriteField("dhcp_start", lambda v: conv.validate_ipv4(v, "dhcp_start")),
        "dhcp_stop": WriteField("dhcp_stop", lambda v: conv.validate_ipv4(v, "dhcp_stop")),
        "interface_network_key": WriteField("interface_vnet", int),
    }
    display_fields: ClassVar[tuple[str, ...]] = ("status_display", "address_count")

    description: str | None = None
    type: str | None = None
    network_address: str | None = Field(default=None, alias="network")
    ip_address: str | None = Field(default=None, alias="ipaddress")
    gateway: str | None = None
    mtu: int | None = None
    dhcp_enabled: bool | None = None
    dhcp_start: str | None = None
    dhcp_stop: str | None = None
    need_fw_apply: bool | None = None
    need_restart: bool | None = None

    @property
    def address_count(self) -> int | None:
        if not self.network_address:
            return None
        try:
            return conv.parse_cidr(self.network_address).address_count
        except ValidationError:
            return None


class NetworkRule(Resource):
    endpoint: ClassVar[str] = "vnet_rules"
    label: ClassVar[str] = "Network rule"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("vnet"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("enabled"),
        FieldSpec("action"),
        FieldSpec("direction"),
        FieldSpec("protocol"),
        FieldSpec("source_ip"),
        FieldSpec("source_ports"),
        FieldSpec("destination_ip"),
        FieldSpec("destination_ports"),
        FieldSpec("orderid"),
        FieldSpec("system_rule"),
    )
    write_fields: ClassVar[dict[str, WriteField]] = {
        "network_key": WriteField("vnet", int),
        "name": WriteField("name"),
        "description": WriteField("description"),
        "enabled": WriteField("enabled", bool),
        "action": WriteField("action", lambda v: conv.wire_value(RULE_ACTIONS, v)),
        "direction": WriteField("direction", lambda v: conv.wire_value(RULE_DIRECTIONS, v)),
        "protocol": WriteField("protocol", lambda v: conv.wire_value(RULE_PROTOCOLS, v)),
        "source_ip": WriteField("source_ip"),
        "source_ports": WriteField("source_ports"),
        "destination_ip": WriteField("destination_ip"),
        "destination_ports": WriteField("destination_ports"),
    }

    network_key: int | None = Field(default=None, alias="vnet")
    description: str | None = None
    enabled: bool | None = None
    action: str | None = None
    direction: str | None = None
    protocol: str | None = None
    source_ip: str | None = None
    source_ports: str | None = None
    destination_ip: str | None = None
    destination_ports: str | None = None
    order: int | None = Field(default=None, alias="orderid")
    system_rule: bool | None = None


class StorageTier(Resource):
    endpoint: ClassVar[str] = "storage_tiers"
    label: ClassVar[str] = "Storage tier"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("tier"),
        FieldSpec("description"),
        FieldSpec("capacity"),
        FieldSpec("used"),
        FieldSpec("allocated"),
        FieldSpec("dedupe_ratio"),
        FieldSpec("status#status", "status"),
    )
    display_fields: ClassVar[tuple[str, ...]] = (
        "capacity_gb",
        "used_gb",
        "free_gb",
        "used_percent",
        "status_display",
    )

    tier: int
    description: str | None = None
    capacity: int | None = None
    used: int | None = None
    allocated: int | None = None
    dedupe_ratio: float | None = None
    status: str | None = None

    @property
    def capacity_gb(self) -> float | None:
        return conv.bytes_to_gb(self.capacity)

    @property
    def used_gb(self) -> float | None:
        return conv.bytes_to_gb(self.used)

    @property
    def free_gb(self) -> float | None:
        if self.capacity is None or self.used is None:
            return None
        return conv.bytes_to_gb(self.capacity - self.used)

    @property
    def used_percent(self) -> float | None:
        if not self.capacity or self.used is None:
            return None
        return round(self.used / self.capacity * 100, 1)

    @property
    def status_display(self) -> str | None:
        return conv.display_name(STORAGE_STATUS, self.status)


class Node(Resource):
    endpoint: ClassVar[str] = "nodes"
    noun: ClassVar[str | None] = "node"
    label: ClassVar[str] = "Node"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("cluster"),
        FieldSpec("cluster#name", "cluster_name"),
        FieldSpec("ram"),
        FieldSpec("cores"),
        FieldSpec("ipaddress"),
        FieldSpec("maintenance"),
        FieldSpec("vergeos_version"),
        FieldSpec("machine#status#status", "status"),
        FieldSpec("machine#status#running", "running"),
    )
    display_fields: ClassVar[tuple[str, ...]] = ("ram_gb", "status_display")

    description: str | None = None
    cluster_key: int | None = Field(default=None, alias="cluster")
    cluster_name: str | None = None
    ram: int | None = None
    cores: int | None = None
    ip_address: str | None = Field(default=None, alias="ipaddress")
    maintenance: bool | None = None
    version: str | None = Field(default=None, alias="vergeos_version")
    status: str | None = None
    running: bool | None = None

    @property
    def ram_gb(self) -> float | None:
        return None if self.ram is None else round(self.ram / 1024, 2)

    @property
    def status_display(self) -> str | None:
        return _machine_status_display(self.status)


class Cluster(Resource):
    endpoint: ClassVar[str] = "clusters"
    label: ClassVar[str] = "Cluster"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("enabled"),
        FieldSpec("nested_virtualization"),
        FieldSpec("status#status", "status"),
        FieldSpec("status#online_nodes", "online_nodes"),
        FieldSpec("status#total_nodes", "total_nodes"),
        FieldSpec("status#total_ram", "total_ram"),
        FieldSpec("status#used_ram", "used_ram"),
        FieldSpec("status#total_cores", "total_cores"),
        FieldSpec("status#used_cores", "used_cores"),
    )
    display_fields: ClassVar[tuple[str, ...]] = ("total_ram_gb", "used_ram_gb")

    description: str | None = None
    enabled: bool | None = None
    nested_virtualization: bool | None = None
    status: str | None = None
    online_nodes: int | None = None
    total_nodes: int | None = None
    total_ram: int | None = None
    used_ram: int | None = None
    total_cores: int | None = None
    used_cores: int | None = None

    @property
    def total_ram_gb(self) -> float | None:
        return None if self.total_ram is None else round(self.total_ram / 1024, 2)

    @property
    def used_ram_gb(self) -> float | None:
        return None if self.used_ram is None else round(self.used_ram / 1024, 2)


class File(Resource):
    endpoint: ClassVar[str] = "files"
    label: ClassVar[str] = "File"
    projection: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("$key"),
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("type"),
        FieldSpec("filesize"),
        FieldSpec("allocated_bytes"),
        FieldSpec("creator"),
        FieldSpec("modified"),
    )
    display_fields: ClassVar[tuple[str, ...]] = ("size_gb",)

    description: str | None = None
    type: str | None = None
    size_bytes: int | None = Field(default=None, alias="filesize")
    allocated_bytes: int | None = None
    creator: str | None = None
    modified: EpochDatetime = None

    @property
    def size_gb(self) -> float | None:
        return conv.bytes_to_gb(self.size_bytes)


class ActionResult(BaseModel):
    """Acknowledgement of a queued action.

    ``record`` is the refreshed entity when the caller asked to wait for
    the post-action state (or when the action was skipped locally).
    """

    noun: str
    entity_key: int
    action: str
    params: dict[str, Any] | None = None
    accepted: bool = True
    skipped: bool = False
    message: str | None = None
    response: Any = None
    requested_at: datetime = Field(default_factory=datetime.now)
    record: dict[str, Any] | None = None

    def to_display(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class BulkResult(BaseModel):
    """Outcome of an operation fanned out over several targets.

    Failures on one target never stop the others; they are collected in
    ``errors`` as ``{"target": ..., "error": ..., "message": ...}``.
    """

    succeeded: list[Any] = Field(default_factory=list)
    errors: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_display(self) -> dict[str, Any]:
        return {
            "succeeded": [
                item.to_display() if hasattr(item, "to_display") else item
                for item in self.succeeded
            ],
            "errors": self.errors,
        }


ALL_RESOURCES: tuple[type[Resource], ...] = (
    Vm,
    Drive,
    Nic,
    VmSnapshot,
    Tenant,
    TenantStorage,
    TenantLayer2Network,
    TenantNetworkBlock,
    TenantSnapshot,
    SharedObject,
    Network,
    NetworkRule,
    StorageTier,
    Node,
    Cluster,
    File,
)
