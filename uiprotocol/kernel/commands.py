"""
uiprotocol Kernel — Command Construction

Factory functions for well-formed commands. Used by adapters to build
their output, by renderer bindings to write data back, and by tests to
build commands concisely.
"""

from __future__ import annotations

from typing import Any

from uiprotocol.kernel.types import (
    COMMAND_CLASSES,
    Command,
    DataRemove,
    DataSet,
    NodePatch,
    NodesRemove,
    NodesUpsert,
    SurfaceCreate,
    SurfaceDelete,
    now_ms,
)


def make_surface_create(
    surface_id: str,
    protocol: str = "core",
    *,
    catalog_id: str | None = None,
    theme: dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
    timestamp: int | None = None,
) -> SurfaceCreate:
    return SurfaceCreate(
        surface_id=surface_id,
        protocol=protocol,
        catalog_id=catalog_id,
        theme=theme,
        metadata=metadata,
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


def make_surface_delete(surface_id: str, *, timestamp: int | None = None) -> SurfaceDelete:
    return SurfaceDelete(surface_id=surface_id, timestamp=timestamp if timestamp is not None else now_ms())


def make_nodes_upsert(
    surface_id: str,
    nodes: list[NodePatch | dict[str, Any]],
    *,
    timestamp: int | None = None,
) -> NodesUpsert:
    """`nodes` may mix NodePatch objects and plain dicts ({"id", "type", "children", "checks", "props"})."""
    return NodesUpsert(
        surface_id=surface_id,
        nodes=tuple(nodes),
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


def make_nodes_remove(surface_id: str, node_ids: list[str], *, timestamp: int | None = None) -> NodesRemove:
    return NodesRemove(
        surface_id=surface_id,
        node_ids=tuple(node_ids),
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


def make_data_set(surface_id: str, path: str, value: Any, *, timestamp: int | None = None) -> DataSet:
    return DataSet(
        surface_id=surface_id,
        path=path,
        value=value,
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


def make_data_remove(surface_id: str, path: str, *, timestamp: int | None = None) -> DataRemove:
    return DataRemove(surface_id=surface_id, path=path, timestamp=timestamp if timestamp is not None else now_ms())


def command_from_dict(d: dict[str, Any]) -> Command:
    """
    Build a command from its wire dict (the inverse of Command.to_dict).
    Raises ValueError for an unknown type, KeyError for a missing field.
    """
    command_type = d.get("type")
    if command_type not in COMMAND_CLASSES:
        raise ValueError(f"Unknown command type: {command_type!r}")

    surface_id = d["surfaceId"]
    timestamp = d.get("timestamp")

    if command_type == "surface:create":
        return make_surface_create(
            surface_id,
            d["protocol"],
            catalog_id=d.get("catalogId"),
            theme=d.get("theme"),
            metadata=d.get("metadata"),
            timestamp=timestamp,
        )
    if command_type == "surface:delete":
        return make_surface_delete(surface_id, timestamp=timestamp)
    if command_type == "nodes:upsert":
        return make_nodes_upsert(surface_id, list(d.get("nodes", [])), timestamp=timestamp)
    if command_type == "nodes:remove":
        return make_nodes_remove(surface_id, list(d.get("nodeIds", [])), timestamp=timestamp)
    if command_type == "data:set":
        return make_data_set(surface_id, d.get("path", "/"), d.get("value"), timestamp=timestamp)
    return make_data_remove(surface_id, d.get("path", "/"), timestamp=timestamp)
