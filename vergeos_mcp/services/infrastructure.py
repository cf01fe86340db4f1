"""Read-mostly infrastructure: storage tiers, nodes, clusters and files."""

from __future__ import annotations

from ..client import ResourceClient
from ..exceptions import NotFoundError, ValidationError
from ..models import ActionResult, Cluster, File, Node, StorageTier
from ..query import Predicate
from ..resolver import ResourceReference


class StorageTierService(ResourceClient[StorageTier]):
    """Storage tiers are identified by tier number, not name."""

    def __init__(self, client) -> None:
        super().__init__(client, StorageTier)

    async def list_tiers(self, tier: int | None = None) -> list[StorageTier]:
        if tier is None:
            return await self.list(sort="tier")
        if not 0 <= tier <= 5:
            raise ValidationError("Storage tier must be between 0 and 5", field="tier")
        return await self.list(filters=[Predicate.eq("tier", tier)])

    async def for_tier(self, tier: int) -> StorageTier:
        tiers = await self.list_tiers(tier)
        if not tiers:
            raise NotFoundError(self.model.label, tier)
        return tiers[0]


class NodeService(ResourceClient[Node]):
    def __init__(self, client) -> None:
        super().__init__(client, Node)

    async def set_maintenance(self, reference: ResourceReference, enabled: bool) -> ActionResult:
        """Put a node into maintenance (migrating its workloads away) or take it out."""
        node = await self.get(reference)
        action = "maintenance" if enabled else "leavemaintenance"
        if node.maintenance is enabled:
            state = "in" if enabled else "out of"
            return ActionResult(
                noun=self.model.noun,
                entity_key=node.key,
                action=action,
                accepted=False,
                skipped=True,
                message=f"{node} is already {state} maintenance",
                record=node.to_display(),
            )
        return await self.client.actions.invoke(self.model.noun, node.key, action)


class ClusterService(ResourceClient[Cluster]):
    def __init__(self, client) -> None:
        super().__init__(client, Cluster)


class FileService(ResourceClient[File]):
    def __init__(self, client) -> None:
        super().__init__(client, File)
