"""Virtual network (vnet) services and firewall rules."""

from __future__ import annotations

from typing import Any

from .. import conversions as conv
from ..client import ResourceClient
from ..exceptions import ValidationError
from ..logging_config import get_logger
from ..models import ActionResult, Network, NetworkRule
from ..query import Predicate
from ..resolver import ResourceReference
from .base import PoweredService

logger = get_logger(__name__)


class NetworkService(PoweredService[Network]):
    """Network lifecycle. Networks have no guest, so restart is always ``reset``."""

    graceful_stop_action = "poweroff"
    force_stop_action = "poweroff"

    def __init__(self, client) -> None:
        super().__init__(client, Network)

    async def new(
        self,
        name: str,
        network_type: str = "internal",
        network_address: str | None = None,
        ip_address: str | None = None,
        gateway: str | None = None,
        dhcp_enabled: bool = False,
        dhcp_start: str | None = None,
        dhcp_stop: str | None = None,
        mtu: int | None = None,
        description: str | None = None,
        interface_network: ResourceReference | None = None,
    ) -> Network:
        if not name or not name.strip():
            raise ValidationError("Network name is required", field="name")
        if dhcp_enabled and not (dhcp_start and dhcp_stop):
            raise ValidationError(
                "dhcp_start and dhcp_stop are required when DHCP is enabled",
                field="dhcp_start",
            )
        if network_address:
            block = conv.parse_cidr(network_address)
            for field, address in (
                ("ip_address", ip_address),
                ("dhcp_start", dhcp_start),
                ("dhcp_stop", dhcp_stop),
            ):
                if address and not block.contains(conv.validate_ipv4(address, field)):
                    raise ValidationError(f"{field} {address} is outside {block}", field=field)

        values: dict[str, Any] = {
            "name": name,
            "type": network_type,
            "network_address": network_address,
            "ip_address": ip_address,
            "gateway": gateway,
            "dhcp_enabled": dhcp_enabled,
            "dhcp_start": dhcp_start,
            "dhcp_stop": dhcp_stop,
            "mtu": mtu,
            "description": description,
        }
        if interface_network is not None:
            values["interface_network_key"] = await self.resolve_key(interface_network)
        return await self.create(values)

    async def set(self, reference: ResourceReference, **values: Any) -> Network:
        return await self.update(reference, values)

    async def apply_rules(self, reference: ResourceReference) -> ActionResult:
        """Apply pending firewall rule changes."""
        network = await self.current(reference)
        return await self.dispatch(network, "apply")


class NetworkRuleService(ResourceClient[NetworkRule]):
    """Firewall rules of one network. Changes take effect once applied."""

    def __init__(self, client) -> None:
        super().__init__(client, NetworkRule)

    async def _scope(self, network: ResourceReference) -> tuple[Network, list[Predicate]]:
        record = await self.client.networks.current(network)
        return record, [Predicate.eq("vnet", record.key)]

    async def list_for(self, network: ResourceReference, name: str | None = None) -> list[NetworkRule]:
        _, scope = await self._scope(network)
        return await self.list(name=name, filters=scope, sort="orderid")

    async def get_for(self, network: ResourceReference, reference: ResourceReference) -> NetworkRule:
        _, scope = await self._scope(network)
        return await self.get(reference, scope)

    async def new(
        self,
        network: ResourceReference,
        name: str,
        action: str = "accept",
        direction: str = "incoming",
        protocol: str = "any",
        source_ip: str | None = None,
        source_ports: str | None = None,
        destination_ip: str | None = None,
        destination_ports: str | None = None,
        description: str | None = None,
        apply: bool = False,
    ) -> NetworkRule:
        record, _ = await self._scope(network)
        rule = await self.create(
            {
                "network_key": record.key,
                "name": name,
                "action": action,
                "direction": direction,
                "protocol": protocol,
                "source_ip": source_ip,
                "source_ports": source_ports,
                "destination_ip": destination_ip,
                "destination_ports": destination_ports,
                "description": description,
                "enabled": True,
            }
        )
        if apply:
            await self.client.networks.apply_rules(record)
        return rule

    async def remove(
        self,
        network: ResourceReference,
        reference: ResourceReference,
        apply: bool = False,
    ) -> int:
        """Delete a rule. System rules are managed by VergeOS and refused.

        Raises:
            ValidationError: The rule is a system rule.
        """
        record, scope = await self._scope(network)
        rule = await self.get(reference, scope)
        if rule.system_rule:
            raise ValidationError(f"{rule} is a system rule and cannot be removed")
        await self.delete_key(rule.key)
        if apply:
            await self.client.networks.apply_rules(record)
        return rule.key
