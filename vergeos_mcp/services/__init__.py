"""Per-resource services built on :class:`~vergeos_mcp.client.ResourceClient`."""

from .infrastructure import ClusterService, FileService, NodeService, StorageTierService
from .networks import NetworkRuleService, NetworkService
from .tenants import (
    SharedObjectService,
    TenantLayer2Service,
    TenantNetworkBlockService,
    TenantService,
    TenantSnapshotService,
    TenantStorageService,
)
from .vms import DriveService, NicService, VmService, VmSnapshotService

__all__ = [
    "ClusterService",
    "DriveService",
    "FileService",
    "NetworkRuleService",
    "NetworkService",
    "NicService",
    "NodeService",
    "SharedObjectService",
    "StorageTierService",
    "TenantLayer2Service",
    "TenantNetworkBlockService",
    "TenantService",
    "TenantSnapshotService",
    "TenantStorageService",
    "VmService",
    "VmSnapshotService",
]
