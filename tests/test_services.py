"""Tests for the resource services."""

from unittest.mock import call

import pytest

from vergeos_mcp import conversions as conv
from vergeos_mcp.exceptions import ConflictError, NotFoundError, ValidationError
from vergeos_mcp.models import Tenant, Vm


@pytest.fixture
def running_vm(vm_row) -> Vm:
    return Vm.model_validate(vm_row(status="running"))


@pytest.fixture
def stopped_vm(vm_row) -> Vm:
    return Vm.model_validate(vm_row(status="stopped"))


class TestVmPower:
    """Tests for VM power actions."""

    @pytest.mark.asyncio
    async def test_start_sends_poweron(self, verge_client, transport, stopped_vm):
        """Test that starting a stopped VM posts poweron."""
        result = await verge_client.vms.start(stopped_vm)

        transport.request.assert_called_once_with(
            "POST", "vm_actions", body={"vm": 5, "action": "poweron"}
        )
        assert result.accepted is True
        assert result.skipped is False

    @pytest.mark.asyncio
    async def test_start_running_is_skipped(self, verge_client, transport, running_vm):
        """Test that starting a running VM sends nothing."""
        result = await verge_client.vms.start(running_vm)

        transport.request.assert_not_called()
        assert result.skipped is True
        assert result.accepted is False
        assert result.record["name"] == "web01"

    @pytest.mark.asyncio
    async def test_start_and_wait(self, verge_client, transport, stopped_vm, vm_row):
        """Test waiting for the running state after poweron."""
        transport.request.side_effect = [None, vm_row(status="starting"), vm_row(status="running")]

        result = await verge_client.vms.start(stopped_vm, wait=True)

        assert result.record["status"] == "running"
        assert transport.request.call_count == 3

    @pytest.mark.asyncio
    async def test_stop_stopped_is_skipped(self, verge_client, transport, stopped_vm):
        """Test that stopping a stopped VM sends nothing."""
        result = await verge_client.vms.stop(stopped_vm)
        transport.request.assert_not_called()
        assert result.skipped is True

    @pytest.mark.asyncio
    async def test_force_stop_kills(self, verge_client, transport, running_vm):
        """Test that a forced stop uses kill."""
        await verge_client.vms.stop(running_vm, force=True)
        assert transport.request.call_args.kwargs["body"]["action"] == "kill"

    @pytest.mark.asyncio
    async def test_restart_uses_guest_reset(self, verge_client, transport, running_vm):
        """Test graceful and forced restart actions."""
        await verge_client.vms.restart(running_vm)
        await verge_client.vms.restart(running_vm, force=True)
        actions = [c.kwargs["body"]["action"] for c in transport.request.call_args_list]
        assert actions == ["guestreset", "reset"]


class TestVmLifecycle:
    """Tests for VM create, remove, clone and move."""

    @pytest.mark.asyncio
    async def test_remove_running_requires_force(self, verge_client, transport, running_vm):
        """Test that a running VM is not removed without force."""
        with pytest.raises(ConflictError):
            await verge_client.vms.remove(running_vm)
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_remove_stopped(self, verge_client, transport, stopped_vm):
        """Test removing a stopped VM."""
        assert await verge_client.vms.remove(stopped_vm) == 5
        transport.request.assert_called_once_with("DELETE", "vms/5")

    @pytest.mark.asyncio
    async def test_force_remove_kills_first(self, verge_client, transport, running_vm, vm_row):
        """Test that a forced remove kills, waits, then deletes."""
        transport.request.side_effect = [None, vm_row(status="stopped"), None]

        await verge_client.vms.remove(running_vm, force=True)

        calls = transport.request.call_args_list
        assert calls[0] == call("POST", "vm_actions", body={"vm": 5, "action": "kill"})
        assert calls[-1] == call("DELETE", "vms/5")

    @pytest.mark.asyncio
    async def test_new_validates_sizing(self, verge_client, transport):
        """Test that out-of-range sizing is refused locally."""
        with pytest.raises(ValidationError):
            await verge_client.vms.new("web01", cpu_cores=0)
        with pytest.raises(ValidationError):
            await verge_client.vms.new("web01", ram_mb=128)
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_clone_default_name(self, verge_client, transport, stopped_vm):
        """Test that the clone name defaults to <name>_clone."""
        await verge_client.vms.clone(stopped_vm)

        body = transport.request.call_args.kwargs["body"]
        assert body == {
            "vm": 5,
            "action": "clone",
            "params": {"name": "web01_clone", "preserve_macs": False},
        }

    @pytest.mark.asyncio
    async def test_move_requires_running(self, verge_client, transport, stopped_vm):
        """Test that only running VMs can be migrated, before the node is looked up."""
        with pytest.raises(ConflictError):
            await verge_client.vms.move(stopped_vm, "node2")
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_move_same_node_is_skipped(self, verge_client, transport, running_vm):
        """Test that moving to the current node sends no action."""
        transport.request.return_value = {"$key": 1, "name": "node1"}

        result = await verge_client.vms.move(running_vm, 1)

        assert result.skipped is True
        assert transport.request.call_count == 1

    @pytest.mark.asyncio
    async def test_move(self, verge_client, transport, running_vm):
        """Test migrating to another node."""
        transport.request.side_effect = [{"$key": 2, "name": "node2"}, None]

        await verge_client.vms.move(running_vm, 2)

        assert transport.request.call_args == call(
            "POST",
            "vm_actions",
            body={"vm": 5, "action": "migrate", "params": {"preferred_node": 2}},
        )


class TestDrivesAndSnapshots:
    """Tests for machine child services."""

    @pytest.mark.asyncio
    async def test_disk_needs_size(self, verge_client, transport, stopped_vm):
        """Test that a disk without a size is refused."""
        with pytest.raises(ValidationError):
            await verge_client.drives.new(stopped_vm)
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_drive(self, verge_client, transport, stopped_vm):
        """Test that drive sizes are sent in bytes."""
        transport.request.side_effect = [{"$key": 7}, {"$key": 7, "machine": 50}]

        await verge_client.drives.new(stopped_vm, size_gb=20, tier=3)

        body = transport.request.call_args_list[0].kwargs["body"]
        assert body["machine"] == 50
        assert body["disksize"] == conv.gb_to_bytes(20)
        assert body["preferred_tier"] == "3"
        assert body["interface"] == "virtio-scsi"

    @pytest.mark.asyncio
    async def test_drive_shrink_refused(self, verge_client, transport, stopped_vm):
        """Test that drives can only grow."""
        transport.request.return_value = {
            "$key": 7,
            "machine": 50,
            "name": "disk0",
            "disksize": conv.gb_to_bytes(20),
        }

        with pytest.raises(ValidationError) as exc_info:
            await verge_client.drives.set(stopped_vm, 7, size_gb=10)

        assert exc_info.value.field == "size_gb"
        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_snapshot_without_retention_never_expires(
        self, verge_client, transport, stopped_vm
    ):
        """Test that retention 0 is sent as expires 0."""
        transport.request.side_effect = [
            {"$key": 9},
            {"$key": 9, "machine": 50, "name": "keep", "expires": 0},
        ]

        snap = await verge_client.vm_snapshots.new(stopped_vm, name="keep", retention_hours=0)

        assert transport.request.call_args_list[0] == call(
            "POST",
            "machine_snapshots",
            body={"machine": 50, "name": "keep", "expires": 0, "quiesce": False},
        )
        assert snap.never_expires is True
        assert snap.expires_display == "Never"

    @pytest.mark.asyncio
    async def test_snapshot_default_name(self, verge_client, transport, stopped_vm):
        """Test the generated snapshot name and expiry."""
        transport.request.side_effect = [{"$key": 9}, {"$key": 9, "machine": 50}]

        await verge_client.vm_snapshots.new(stopped_vm)

        body = transport.request.call_args_list[0].kwargs["body"]
        assert body["name"].startswith("web01_")
        assert body["expires"] > 0

    @pytest.mark.asyncio
    async def test_restore_running_requires_force(self, verge_client, transport, running_vm):
        """Test that restoring onto a running VM needs force."""
        transport.request.return_value = {"$key": 9, "machine": 50, "name": "snap"}
        with pytest.raises(ConflictError):
            await verge_client.vm_snapshots.restore(running_vm, 9)
        assert transport.request.call_count == 1

    @pytest.mark.asyncio
    async def test_remove_drive_of_other_vm(self, verge_client, transport, stopped_vm):
        """Test that a drive key is only removed from its own VM."""
        transport.request.return_value = []

        with pytest.raises(NotFoundError):
            await verge_client.drives.remove(stopped_vm, 7)

        transport.request.assert_called_once_with(
            "GET",
            "machine_drives",
            params={"fields": "$key", "filter": "machine eq 50 and $key eq 7"},
        )

    @pytest.mark.asyncio
    async def test_remove_drive(self, verge_client, transport, stopped_vm):
        """Test removing a drive that belongs to the VM."""
        transport.request.side_effect = [[{"$key": 7}], None]

        assert await verge_client.drives.remove(stopped_vm, 7) == 7

        assert transport.request.call_args == call("DELETE", "machine_drives/7")

    @pytest.mark.asyncio
    async def test_set_drive_of_other_vm(self, verge_client, transport, stopped_vm):
        """Test that another VM's drive cannot be resized."""
        transport.request.return_value = []

        with pytest.raises(NotFoundError):
            await verge_client.drives.set(stopped_vm, 7, size_gb=40)

        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_remove_nic_of_other_vm(self, verge_client, transport, stopped_vm):
        """Test that a NIC key is only removed from its own VM."""
        transport.request.return_value = []

        with pytest.raises(NotFoundError):
            await verge_client.nics.remove(stopped_vm, 4)

        assert transport.request.call_args.args == ("GET", "machine_nics")


class TestTenants:
    """Tests for tenant services."""

    @pytest.mark.asyncio
    async def test_isolation_already_on(self, verge_client, transport):
        """Test that isolating an isolated tenant sends nothing."""
        tenant = Tenant.model_validate({"$key": 3, "name": "t1", "isolate": True})

        result = await verge_client.tenants.set_isolation(tenant, True)

        assert result.skipped is True
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_isolation_off(self, verge_client, transport):
        """Test lifting isolation."""
        tenant = Tenant.model_validate({"$key": 3, "name": "t1", "isolate": True})

        await verge_client.tenants.set_isolation(tenant, False)

        transport.request.assert_called_once_with(
            "POST", "tenant_actions", body={"tenant": 3, "action": "isolateoff"}
        )

    @pytest.mark.asyncio
    async def test_storage_tier_range(self, verge_client, transport):
        """Test that tenant storage tiers are checked locally."""
        with pytest.raises(ValidationError):
            await verge_client.tenant_storage.new(3, tier=9, provisioned_gb=100)
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_network_block_cidr(self, verge_client, transport):
        """Test that a malformed block is refused locally."""
        with pytest.raises(ValidationError):
            await verge_client.tenant_network_blocks.new(3, 4, "10.0.0.5/24")
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_below_usage_refused(self, verge_client, transport):
        """Test that an allocation cannot shrink below what is used."""
        transport.request.return_value = [
            {
                "$key": 2,
                "tenant": 3,
                "tier": 1,
                "provisioned": conv.gb_to_bytes(200),
                "used": conv.gb_to_bytes(80),
            }
        ]

        with pytest.raises(ValidationError) as exc_info:
            await verge_client.tenant_storage.set(3, 1, 50)

        assert exc_info.value.field == "provisioned_gb"
        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_storage_grow(self, verge_client, transport):
        """Test resizing an allocation above its usage."""
        row = {"$key": 2, "tenant": 3, "tier": 1, "used": conv.gb_to_bytes(80)}
        transport.request.side_effect = [[row], None, {**row, "provisioned": conv.gb_to_bytes(100)}]

        allocation = await verge_client.tenant_storage.set(3, 1, 100)

        assert transport.request.call_args_list[1] == call(
            "PUT", "tenant_storage/2", body={"provisioned": conv.gb_to_bytes(100)}
        )
        assert allocation.provisioned_gb == 100

    @pytest.mark.asyncio
    async def test_layer2_new(self, verge_client, transport):
        """Test passing a network through to a tenant."""
        transport.request.side_effect = [
            {"$key": 11},
            {"$key": 11, "tenant": 3, "vnet": 7, "name": "lan", "enabled": True},
        ]

        layer2 = await verge_client.tenant_layer2.new(3, 7)

        assert transport.request.call_args_list[0] == call(
            "POST", "tenant_layer2_vnets", body={"tenant": 3, "vnet": 7, "enabled": True}
        )
        assert layer2.network_key == 7

    @pytest.mark.asyncio
    async def test_layer2_remove_by_network(self, verge_client, transport):
        """Test that the network key selects the tenant's layer 2 record."""
        transport.request.side_effect = [[{"$key": 11, "tenant": 3, "vnet": 7}], None]

        assert await verge_client.tenant_layer2.remove(3, 7) == 11

        calls = transport.request.call_args_list
        assert calls[0].args == ("GET", "tenant_layer2_vnets")
        assert calls[0].kwargs["params"]["filter"] == "tenant eq 3 and vnet eq 7"
        assert calls[1] == call("DELETE", "tenant_layer2_vnets/11")

    @pytest.mark.asyncio
    async def test_layer2_remove_not_attached(self, verge_client, transport):
        """Test that a network not passed to the tenant is not found."""
        transport.request.return_value = []

        with pytest.raises(NotFoundError):
            await verge_client.tenant_layer2.remove(3, 7)

        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_layer2_remove_by_network_name(self, verge_client, transport):
        """Test that a network name is resolved before the lookup."""
        transport.request.side_effect = [
            [{"$key": 7, "name": "lan"}],
            [{"$key": 11, "tenant": 3, "vnet": 7}],
            None,
        ]

        await verge_client.tenant_layer2.remove(3, "lan")

        assert transport.request.call_args_list[0].args == ("GET", "vnets")
        assert transport.request.call_args == call("DELETE", "tenant_layer2_vnets/11")

    @pytest.mark.asyncio
    async def test_remove_snapshot_of_other_tenant(self, verge_client, transport):
        """Test that a snapshot key is only removed from its own tenant."""
        transport.request.return_value = []

        with pytest.raises(NotFoundError):
            await verge_client.tenant_snapshots.remove(3, 8)

        params = transport.request.call_args.kwargs["params"]
        assert params["filter"] == "tenant eq 3 and $key eq 8"

    @pytest.mark.asyncio
    async def test_snapshot_restore_running_requires_force(self, verge_client, transport):
        """Test that a running tenant is not restored without force."""
        tenant = Tenant.model_validate({"$key": 3, "name": "t1", "status": "running", "running": True})
        transport.request.return_value = [{"$key": 8, "tenant": 3, "name": "nightly"}]

        with pytest.raises(ConflictError):
            await verge_client.tenant_snapshots.restore(tenant, 8)

        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_snapshot_restore_stopped(self, verge_client, transport):
        """Test restoring a stopped tenant."""
        tenant = Tenant.model_validate({"$key": 3, "name": "t1", "status": "stopped"})
        transport.request.side_effect = [[{"$key": 8, "tenant": 3, "name": "nightly"}], None]

        await verge_client.tenant_snapshots.restore(tenant, 8)

        assert transport.request.call_args == call(
            "POST",
            "tenant_actions",
            body={"tenant": 3, "action": "restore", "params": {"snapshot": 8}},
        )

    @pytest.mark.asyncio
    async def test_snapshot_restore_forced(self, verge_client, transport):
        """Test that force kills the tenant, waits, then restores."""
        tenant = Tenant.model_validate({"$key": 3, "name": "t1", "status": "running", "running": True})
        transport.request.side_effect = [
            [{"$key": 8, "tenant": 3, "name": "nightly"}],
            None,
            {"$key": 3, "name": "t1", "status": "stopped"},
            None,
        ]

        await verge_client.tenant_snapshots.restore(tenant, 8, force=True)

        calls = transport.request.call_args_list
        assert calls[1] == call("POST", "tenant_actions", body={"tenant": 3, "action": "kill"})
        assert calls[-1].kwargs["body"]["action"] == "restore"

    @pytest.mark.asyncio
    async def test_send_file(self, verge_client, transport):
        """Test that a file is given to the tenant by key."""
        tenant = Tenant.model_validate({"$key": 3, "name": "t1"})
        transport.request.side_effect = [[{"$key": 14, "name": "ubuntu.iso"}], None]

        result = await verge_client.tenants.send_file(tenant, "ubuntu.iso")

        assert transport.request.call_args == call(
            "POST",
            "tenant_actions",
            body={"tenant": 3, "action": "give_file", "params": {"file": 14}},
        )
        assert result.action == "give_file"

    @pytest.mark.asyncio
    async def test_share_vm(self, verge_client, transport, stopped_vm):
        """Test offering a VM to a tenant."""
        transport.request.side_effect = [{"$key": 21}, {"$key": 21, "recipient": 3, "name": "web01"}]

        shared = await verge_client.shared_objects.new(3, stopped_vm)

        assert transport.request.call_args_list[0] == call(
            "POST",
            "shared_objects",
            body={"recipient": 3, "type": "vm", "name": "web01", "id": "vms/5"},
        )
        assert shared.tenant_key == 3

    @pytest.mark.asyncio
    async def test_share_vm_snapshot(self, verge_client, transport, stopped_vm):
        """Test offering a VM at one of its snapshots."""
        transport.request.side_effect = [
            [{"$key": 9, "machine": 50, "name": "nightly"}],
            {"$key": 21},
            {"$key": 21, "recipient": 3, "name": "web01", "snapshot": 9},
        ]

        await verge_client.shared_objects.new(3, stopped_vm, snapshot="nightly")

        lookup = transport.request.call_args_list[0]
        assert lookup.args == ("GET", "machine_snapshots")
        assert lookup.kwargs["params"]["filter"] == "machine eq 50 and name eq 'nightly'"
        assert transport.request.call_args_list[1].kwargs["body"]["snapshot"] == 9

    @pytest.mark.asyncio
    async def test_share_snapshot_of_other_vm(self, verge_client, transport, stopped_vm):
        """Test that a snapshot of another VM cannot be shared."""
        transport.request.return_value = []

        with pytest.raises(NotFoundError):
            await verge_client.shared_objects.new(3, stopped_vm, snapshot=9)

        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_import_shared_object(self, verge_client, transport):
        """Test importing an object shared with the tenant."""
        transport.request.side_effect = [[{"$key": 21, "recipient": 3, "name": "web01"}], None]

        await verge_client.shared_objects.import_object(3, 21)

        params = transport.request.call_args_list[0].kwargs["params"]
        assert params["filter"] == "recipient eq 3 and $key eq 21"
        assert transport.request.call_args == call(
            "POST", "shared_object_actions", body={"shared_object": 21, "action": "import"}
        )


class TestInfrastructure:
    """Tests for nodes and storage tiers."""

    @pytest.mark.asyncio
    async def test_node_maintenance(self, verge_client, transport):
        """Test entering maintenance."""
        transport.request.side_effect = [{"$key": 1, "name": "node1", "maintenance": False}, None]

        await verge_client.nodes.set_maintenance(1, True)

        assert transport.request.call_args == call(
            "POST", "node_actions", body={"node": 1, "action": "maintenance"}
        )

    @pytest.mark.asyncio
    async def test_node_already_in_maintenance(self, verge_client, transport):
        """Test that a no-op change is reported as skipped."""
        transport.request.return_value = {"$key": 1, "name": "node1", "maintenance": True}
        result = await verge_client.nodes.set_maintenance(1, True)
        assert result.skipped is True
        assert transport.request.call_count == 1

    @pytest.mark.asyncio
    async def test_storage_tier_range(self, verge_client, transport):
        """Test that tier numbers are checked locally."""
        with pytest.raises(ValidationError):
            await verge_client.storage_tiers.list_tiers(6)
        transport.request.assert_not_called()


class TestNetworks:
    """Tests for network services."""

    @pytest.mark.asyncio
    async def test_dhcp_range_inside_network(self, verge_client, transport):
        """Test that a DHCP range outside the network is refused locally."""
        with pytest.raises(ValidationError) as exc_info:
            await verge_client.networks.new(
                "lan",
                network_address="10.0.0.0/24",
                ip_address="10.0.0.1",
                dhcp_enabled=True,
                dhcp_start="10.0.0.100",
                dhcp_stop="10.0.1.200",
            )
        assert exc_info.value.field == "dhcp_stop"
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_dhcp_needs_range(self, verge_client, transport):
        """Test that enabling DHCP requires a range."""
        with pytest.raises(ValidationError):
            await verge_client.networks.new("lan", dhcp_enabled=True)
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_system_rule_not_removed(self, verge_client, transport):
        """Test that VergeOS-managed rules are refused."""
        transport.request.side_effect = [
            {"$key": 4, "name": "lan"},
            [{"$key": 12, "vnet": 4, "name": "DHCP", "system_rule": True}],
        ]

        with pytest.raises(ValidationError):
            await verge_client.network_rules.remove(4, 12)

        assert transport.request.call_count == 2
        params = transport.request.call_args.kwargs["params"]
        assert params["filter"] == "vnet eq 4 and $key eq 12"

    @pytest.mark.asyncio
    async def test_remove_rule_and_apply(self, verge_client, transport):
        """Test that apply=True applies the network's rules after the delete."""
        transport.request.side_effect = [
            {"$key": 4, "name": "lan"},
            [{"$key": 12, "vnet": 4, "name": "allow-ssh", "system_rule": False}],
            None,
            None,
        ]

        assert await verge_client.network_rules.remove(4, 12, apply=True) == 12

        calls = transport.request.call_args_list
        assert calls[2] == call("DELETE", "vnet_rules/12")
        assert calls[3] == call("POST", "vnet_actions", body={"vnet": 4, "action": "apply"})

    @pytest.mark.asyncio
    async def test_new_rule_and_apply(self, verge_client, transport):
        """Test creating a rule and applying it in one call."""
        transport.request.side_effect = [
            {"$key": 4, "name": "lan"},
            {"$key": 12},
            {"$key": 12, "vnet": 4, "name": "allow-ssh"},
            None,
        ]

        rule = await verge_client.network_rules.new(
            4, "allow-ssh", protocol="tcp", destination_ports="22", apply=True
        )

        body = transport.request.call_args_list[1].kwargs["body"]
        assert body["vnet"] == 4
        assert body["name"] == "allow-ssh"
        assert body["destination_ports"] == "22"
        assert transport.request.call_args == call(
            "POST", "vnet_actions", body={"vnet": 4, "action": "apply"}
        )
        assert rule.key == 12

    @pytest.mark.asyncio
    async def test_new_rule_without_apply(self, verge_client, transport):
        """Test that rules are left pending unless applied."""
        transport.request.side_effect = [
            {"$key": 4, "name": "lan"},
            {"$key": 12},
            {"$key": 12, "vnet": 4, "name": "allow-ssh"},
        ]

        await verge_client.network_rules.new(4, "allow-ssh")

        assert transport.request.call_count == 3
