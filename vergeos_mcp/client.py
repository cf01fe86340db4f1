"""Typed VergeOS client.

:class:`ResourceClient` implements the list/get/create/update/delete
sequence once for any :class:`~vergeos_mcp.mapper.Resource` type:
resolve the reference, build the body, send one request, reshape the
response. :class:`VergeClient` is the context object every operation
receives; it owns one connection and exposes a service per resource.

Example:
    >>> async with await VergeClient.connect("verge.example.com", "admin", "pw") as vc:
    ...     for vm in await vc.vms.list(name="web*"):
    ...         print(vm.name, vm.status_display)
"""

from __future__ import annotations

from typing import Any, Generic, Mapping, Sequence

from .actions import ActionDispatcher, wait_for
from .connection import Connection, ConnectionRegistry, connect, disconnect
from .conversions import has_wildcards
from .exceptions import NotFoundError, ValidationError, VergeError
from .logging_config import LoggerAdapter, get_logger
from .mapper import R, ResourceMapper, normalize_rows
from .models import BulkResult
from .query import Predicate, build_filter, build_sort
from .resolver import ReferenceResolver, ResourceReference, name_predicates, narrow_by_name

logger = get_logger(__name__)


class ResourceClient(Generic[R]):
    """Generic CRUD client for one resource type.

    Args:
        client: The owning :class:`VergeClient`.
        model: Resource model class.
    """

    def __init__(self, client: "VergeClient", model: type[R]) -> None:
        self.client = client
        self.model = model
        self.mapper: ResourceMapper[R] = ResourceMapper(model)

    @property
    def transport(self):
        return self.client.transport

    @property
    def resolver(self) -> ReferenceResolver:
        return self.client.resolver

    async def list(
        self,
        name: str | None = None,
        filters: Sequence[Predicate] = (),
        sort: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[R]:
        """List records, optionally narrowed by name or glob pattern."""
        predicates = [*self.model.base_filters, *filters]
        if name:
            predicates.extend(name_predicates(name, self.model.name_field))

        params: dict[str, Any] = {"fields": self.model.fields_param()}
        if predicates:
            params["filter"] = build_filter(predicates)
        if sort:
            params["sort"] = build_sort(sort, descending)
        # A glob is narrowed client-side, so the server cannot apply the limit.
        narrowed = bool(name) and has_wildcards(name)
        if limit and not narrowed:
            params["limit"] = limit

        payload = await self.transport.request("GET", self.model.endpoint, params=params)
        rows = normalize_rows(payload)
        if name:
            rows = narrow_by_name(rows, name, self.model.name_output())
        if limit and narrowed:
            rows = rows[:limit]
        return self.mapper.from_wire(rows)

    async def fetch(self, key: int) -> R:
        """Fetch one record by key.

        Raises:
            NotFoundError: No record has that key.
        """
        payload = await self.transport.request(
            "GET",
            f"{self.model.endpoint}/{key}",
            params={"fields": self.model.fields_param()},
        )
        record = self.mapper.one_from_wire(payload)
        if record is None:
            raise NotFoundError(self.model.label, key)
        return record

    async def find(
        self,
        reference: ResourceReference | None = None,
        filters: Sequence[Predicate] = (),
    ) -> list[R]:
        """Records matching a reference; an empty list when none match.

        Records passed in are returned as they are, without a new query,
        unless scoping ``filters`` have to be checked.
        """
        if reference is None:
            return await self.list(filters=filters)
        if isinstance(reference, self.model) and not filters:
            return [reference]
        if isinstance(reference, str):
            return await self.list(name=reference, filters=filters)
        keys = await self.resolver.resolve(reference, self.model, filters)
        records = []
        for key in keys:
            try:
                records.append(await self.fetch(key))
            except NotFoundError:
                continue
        return records

    async def get(
        self,
        reference: ResourceReference,
        filters: Sequence[Predicate] = (),
    ) -> R:
        """Exactly one record, freshly fetched.

        A name is looked up with a single list query, as is a key or record
        checked against scoping ``filters``; otherwise keys and records are
        fetched by key.

        Raises:
            NotFoundError: Nothing matched.
            ValidationError: The reference matched several records.
        """
        if isinstance(reference, str) and reference:
            return self._single(await self.list(name=reference, filters=filters), reference)
        key = await self.resolver.resolve_one(reference, self.model)
        if filters:
            records = await self.list(filters=[*filters, Predicate.eq("$key", key)])
            return self._single(records, key)
        return await self.fetch(key)

    def _single(self, records: list[R], reference: Any) -> R:
        if not records:
            raise NotFoundError(self.model.label, reference)
        if len(records) > 1:
            raise ValidationError(
                f"'{reference}' matches {len(records)} {self.model.label} records; "
                "use a more specific name or a key"
            )
        return records[0]

    async def resolve_key(
        self,
        reference: ResourceReference,
        filters: Sequence[Predicate] = (),
    ) -> int:
        return await self.resolver.resolve_one(reference, self.model, filters)

    async def create(self, values: Mapping[str, Any]) -> R:
        """Create a record and return it as stored by the server."""
        body = self.mapper.to_wire(values)
        payload = await self.transport.request("POST", self.model.endpoint, body=body)
        key = payload.get("$key") if isinstance(payload, dict) else None
        if key is None:
            raise VergeError(f"Server did not return a key for the new {self.model.label}")
        logger.info(
            f"Created {self.model.label}",
            extra={"resource": self.model.endpoint, "key": key},
        )
        return await self.fetch(int(key))

    async def update(
        self,
        reference: ResourceReference,
        values: Mapping[str, Any],
        filters: Sequence[Predicate] = (),
    ) -> R:
        """Change only the given fields of one record.

        Raises:
            ValidationError: No field to change was given.
        """
        body = self.mapper.to_wire(values)
        if not body:
            raise ValidationError(f"No {self.model.label} properties to change")
        key = await self.resolve_key(reference, filters)
        await self.transport.request("PUT", f"{self.model.endpoint}/{key}", body=body)
        logger.info(
            f"Updated {self.model.label}",
            extra={"resource": self.model.endpoint, "key": key, "fields": sorted(body)},
        )
        return await self.fetch(key)

    async def delete(
        self,
        reference: ResourceReference,
        filters: Sequence[Predicate] = (),
    ) -> int:
        """Delete one record and return its key."""
        key = await self.resolve_key(reference, filters)
        await self.delete_key(key)
        return key

    async def delete_key(self, key: int) -> None:
        await self.transport.request("DELETE", f"{self.model.endpoint}/{key}")
        logger.info(
            f"Removed {self.model.label}",
            extra={"resource": self.model.endpoint, "key": key},
        )

    async def for_each(
        self,
        references: Sequence[ResourceReference],
        operation,
        filters: Sequence[Predicate] = (),
    ) -> BulkResult:
        """Apply ``operation(record)`` to every match, one target at a time.

        A failure on one target is recorded and the loop moves on; nothing
        already done is rolled back.
        """
        result = BulkResult()
        for reference in references:
            try:
                records = await self.find(reference, filters)
            except VergeError as e:
                result.errors.append(_bulk_error(reference, e))
                continue
            if not records:
                result.errors.append(
                    _bulk_error(reference, NotFoundError(self.model.label, reference))
                )
                continue
            for record in records:
                try:
                    result.succeeded.append(await operation(record))
                except VergeError as e:
                    logger.warning(
                        f"{self.model.label} operation failed",
                        extra={"target": record.name, "error": str(e)},
                    )
                    result.errors.append(_bulk_error(record.name or record.key, e))
        return result


def _bulk_error(target: Any, error: VergeError) -> dict[str, Any]:
    if hasattr(target, "name") and hasattr(target, "key"):
        target = target.name or target.key
    return {"target": target, "error": type(error).__name__, "message": str(error)}


class VergeClient:
    """Context object bound to one VergeOS connection.

    Attributes:
        connection: The underlying :class:`Connection`.
        vms, drives, nics, vm_snapshots: VM services.
        tenants, tenant_storage, tenant_layer2, tenant_network_blocks,
        tenant_snapshots, shared_objects: Tenant services.
        networks, network_rules: Network services.
        storage_tiers, nodes, clusters, files: Infrastructure services.
    """

    def __init__(
        self,
        connection: Connection,
        action_timeout: float = 60.0,
        poll_interval: float = 0.5,
    ) -> None:
        from .services import (
            ClusterService,
            DriveService,
            FileService,
            NetworkRuleService,
            NetworkService,
            NicService,
            NodeService,
            SharedObjectService,
            StorageTierService,
            TenantLayer2Service,
            TenantNetworkBlockService,
            TenantService,
            TenantSnapshotService,
            TenantStorageService,
            VmService,
            VmSnapshotService,
        )

        self.connection = connection
        self.action_timeout = action_timeout
        self.poll_interval = poll_interval
        self.resolver = ReferenceResolver(connection.transport)
        self.actions = ActionDispatcher(connection.transport)
        self._logger = LoggerAdapter(logger, {"host": connection.host})

        self.vms = VmService(self)
        self.drives = DriveService(self)
        self.nics = NicService(self)
        self.vm_snapshots = VmSnapshotService(self)
        self.tenants = TenantService(self)
        self.tenant_storage = TenantStorageService(self)
        self.tenant_layer2 = TenantLayer2Service(self)
        self.tenant_network_blocks = TenantNetworkBlockService(self)
        self.tenant_snapshots = TenantSnapshotService(self)
        self.shared_objects = SharedObjectService(self)
        self.networks = NetworkService(self)
        self.network_rules = NetworkRuleService(self)
        self.storage_tiers = StorageTierService(self)
        self.nodes = NodeService(self)
        self.clusters = ClusterService(self)
        self.files = FileService(self)

    @property
    def transport(self):
        return self.connection.transport

    @classmethod
    async def connect(
        cls,
        host: str,
        username: str | None = None,
        password: str | None = None,
        *,
        registry: ConnectionRegistry | None = None,
        action_timeout: float = 60.0,
        poll_interval: float = 0.5,
        **kwargs: Any,
    ) -> "VergeClient":
        """Open a connection and wrap it in a client."""
        connection = await connect(host, username, password, registry=registry, **kwargs)
        return cls(connection, action_timeout=action_timeout, poll_interval=poll_interval)

    async def close(self, registry: ConnectionRegistry | None = None) -> None:
        await disconnect(self.connection, registry)

    async def wait_until(self, fetch, predicate, description: str):
        """Bounded backoff poll using this client's wait settings."""
        return await wait_for(
            fetch,
            predicate,
            description=description,
            timeout=self.action_timeout,
            initial_delay=self.poll_interval,
        )

    async def __aenter__(self) -> "VergeClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
