"""MCP tool definitions generated from the operations registry.

Each exposed :class:`~vergeos_mcp.operations.Operation` becomes one tool
whose input schema is the JSON schema of its pydantic parameter model.
Only operations whose verb is in ``allowed_verbs`` are exposed, so the
default ``["Get"]`` gives a read-only server.

Example:
    >>> generator = ToolGenerator(allowed_verbs=["Get", "Start", "Stop"])
    >>> tools = generator.generate_tools()
    >>> sorted(t["_verb"] for t in tools if t["_noun"] == "VM")
    ['Get', 'Start', 'Stop']
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from .logging_config import get_logger
from .operations import OPERATIONS, Operation

logger = get_logger(__name__)


def input_schema(operation: Operation) -> dict[str, Any]:
    """JSON schema for an operation's parameters."""
    schema = operation.params_model.model_json_schema()
    schema.pop("title", None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    schema.setdefault("type", "object")
    schema.setdefault("properties", {})
    return schema


class ToolGenerator:
    """Builds MCP tool definitions for the allowed operation verbs.

    Args:
        operations: Operations to choose from.
        allowed_verbs: Verbs to expose (case-insensitive).
    """

    def __init__(
        self,
        operations: Iterable[Operation] = OPERATIONS,
        allowed_verbs: Sequence[str] = ("Get",),
    ) -> None:
        self.operations = tuple(operations)
        self.allowed_verbs = {v.lower() for v in allowed_verbs}

    def is_exposed(self, operation: Operation) -> bool:
        return operation.always_available or operation.verb.lower() in self.allowed_verbs

    def exposed_operations(self) -> list[Operation]:
        return [op for op in self.operations if self.is_exposed(op)]

    def generate_tools(self) -> list[dict[str, Any]]:
        """Generate tool definitions.

        Returns:
            Dicts with ``name``, ``description`` and ``inputSchema``, plus
            ``_verb`` and ``_noun`` for routing and filtering.
        """
        tools = [
            {
                "name": op.name,
                "description": op.description,
                "inputSchema": input_schema(op),
                "_verb": op.verb,
                "_noun": op.noun,
            }
            for op in self.exposed_operations()
        ]
        logger.info(
            f"Generated {len(tools)} tools",
            extra={"allowed_verbs": sorted(self.allowed_verbs), "total": len(self.operations)},
        )
        return tools
