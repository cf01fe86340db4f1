"""Tests for the generic resource client."""

from unittest.mock import call

import pytest

from vergeos_mcp.exceptions import NotFoundError, ValidationError
from vergeos_mcp.models import Vm
from vergeos_mcp.query import Predicate


class TestResourceClient:
    """Tests for ResourceClient through the VM service."""

    @pytest.mark.asyncio
    async def test_list_by_pattern(self, verge_client, transport, vm_row):
        """Test listing with a glob pattern."""
        transport.request.return_value = [
            vm_row(key=1, name="Web1"),
            vm_row(key=2, name="OldWeb"),
        ]

        vms = await verge_client.vms.list(name="web*")

        assert [vm.name for vm in vms] == ["Web1"]
        params = transport.request.call_args.kwargs["params"]
        assert params["filter"] == "is_snapshot eq false and name ct 'web'"
        assert "machine#status#status as status" in params["fields"]

    @pytest.mark.asyncio
    async def test_pattern_limit_applied_after_narrowing(self, verge_client, transport, vm_row):
        """Test that a glob is narrowed before the limit is applied."""
        transport.request.return_value = [
            vm_row(key=1, name="OldWeb"),
            vm_row(key=2, name="Web1"),
            vm_row(key=3, name="Web2"),
        ]

        vms = await verge_client.vms.list(name="Web*", limit=1)

        assert [vm.name for vm in vms] == ["Web1"]
        assert "limit" not in transport.request.call_args.kwargs["params"]

    @pytest.mark.asyncio
    async def test_exact_name_limit_sent_to_server(self, verge_client, transport, vm_row):
        """Test that a limit without a glob is left to the server."""
        transport.request.return_value = [vm_row()]

        await verge_client.vms.list(name="web01", limit=1)

        assert transport.request.call_args.kwargs["params"]["limit"] == 1

    @pytest.mark.asyncio
    async def test_find_digit_name(self, verge_client, transport):
        """Test that a tenant named with digits is found by name."""
        transport.request.return_value = [{"$key": 3, "name": "2024"}]

        tenants = await verge_client.tenants.find("2024")

        assert [t.key for t in tenants] == [3]
        method, endpoint = transport.request.call_args.args
        assert (method, endpoint) == ("GET", "tenants")
        assert "name eq '2024'" in transport.request.call_args.kwargs["params"]["filter"]

    @pytest.mark.asyncio
    async def test_list_single_object(self, verge_client, transport, vm_row):
        """Test that a bare object response is one record."""
        transport.request.return_value = vm_row()
        vms = await verge_client.vms.list()
        assert len(vms) == 1
        assert vms[0].machine_key == 50

    @pytest.mark.asyncio
    async def test_get_by_name_single_query(self, verge_client, transport, vm_row):
        """Test that a name lookup takes one list request."""
        transport.request.return_value = [vm_row(name="web01", status="running")]

        vm = await verge_client.vms.get("web01")

        assert vm.key == 5
        assert vm.is_running
        transport.request.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_missing(self, verge_client, transport):
        """Test that a name matching nothing is not found."""
        transport.request.return_value = []
        with pytest.raises(NotFoundError):
            await verge_client.vms.get("ghost")

    @pytest.mark.asyncio
    async def test_get_ambiguous(self, verge_client, transport, vm_row):
        """Test that a pattern matching several VMs is rejected."""
        transport.request.return_value = [vm_row(key=1, name="web1"), vm_row(key=2, name="web2")]
        with pytest.raises(ValidationError):
            await verge_client.vms.get("web*")

    @pytest.mark.asyncio
    async def test_get_by_key(self, verge_client, transport, vm_row):
        """Test fetching by key."""
        transport.request.return_value = vm_row(key=9)
        vm = await verge_client.vms.get(9)
        assert vm.key == 9
        assert transport.request.call_args.args == ("GET", "vms/9")

    @pytest.mark.asyncio
    async def test_get_key_within_scope(self, verge_client, transport):
        """Test that a scoped key lookup checks the parent in one query."""
        transport.request.return_value = [{"$key": 7, "machine": 50, "name": "disk0"}]

        drive = await verge_client.drives.get(7, [Predicate.eq("machine", 50)])

        assert drive.key == 7
        transport.request.assert_called_once()
        method, endpoint = transport.request.call_args.args
        assert (method, endpoint) == ("GET", "machine_drives")
        assert transport.request.call_args.kwargs["params"]["filter"] == "machine eq 50 and $key eq 7"

    @pytest.mark.asyncio
    async def test_get_key_outside_scope(self, verge_client, transport):
        """Test that a key owned by another parent is not found."""
        transport.request.return_value = []
        with pytest.raises(NotFoundError):
            await verge_client.drives.get(7, [Predicate.eq("machine", 50)])

    @pytest.mark.asyncio
    async def test_update_sends_only_changed_fields(self, verge_client, transport, vm_row):
        """Test that PUT carries only the given values."""
        transport.request.side_effect = [None, vm_row(cpu_cores=4)]

        vm = await verge_client.vms.set(5, cpu_cores=4)

        assert transport.request.call_args_list[0] == call("PUT", "vms/5", body={"cpu_cores": 4})
        assert vm.cpu_cores == 4

    @pytest.mark.asyncio
    async def test_update_nothing(self, verge_client, transport):
        """Test that an empty change is refused."""
        with pytest.raises(ValidationError):
            await verge_client.vms.set(5)
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_field(self, verge_client, transport):
        """Test that an unwritable field is refused."""
        with pytest.raises(ValidationError) as exc_info:
            await verge_client.vms.update(5, {"status": "running"})
        assert exc_info.value.field == "status"
        transport.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_fetches_new_record(self, verge_client, transport, vm_row):
        """Test that create returns the stored record."""
        transport.request.side_effect = [{"$key": 5}, vm_row()]

        vm = await verge_client.vms.new("web01", cpu_cores=2, ram_mb=2048)

        method, endpoint = transport.request.call_args_list[0].args
        body = transport.request.call_args_list[0].kwargs["body"]
        assert (method, endpoint) == ("POST", "vms")
        assert body["name"] == "web01"
        assert body["ram"] == 2048
        assert body["os_family"] == "linux"
        assert "description" not in body
        assert vm.key == 5

    @pytest.mark.asyncio
    async def test_delete(self, verge_client, transport):
        """Test deleting by key."""
        assert await verge_client.files.delete(4) == 4
        transport.request.assert_called_once_with("DELETE", "files/4")

    @pytest.mark.asyncio
    async def test_for_each_collects_failures(self, verge_client, transport, vm_row):
        """Test that a failing target does not stop the others."""
        running = Vm.model_validate(vm_row(key=1, name="web1", status="running"))
        transport.request.side_effect = [None, []]

        result = await verge_client.vms.stop_many([running, "ghost"])

        assert len(result.succeeded) == 1
        assert result.ok is False
        assert result.errors[0]["target"] == "ghost"
        assert result.errors[0]["error"] == "NotFoundError"
