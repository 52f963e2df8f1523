"""
uiprotocol Kernel — Shared Types

Data classes used across the pointer document, resolver, trust engine,
runtime, and protocol adapters. These are the contracts that bind the
kernel together.

Commands are the only way surface state changes. Each command type is a
frozen dataclass carrying a `type` tag; the runtime dispatches on that tag.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ROOT_ID = "root"

SEVERITIES: set[str] = {"warning", "error"}

COMMAND_TYPES: set[str] = {
    "surface:create",
    "surface:delete",
    "nodes:upsert",
    "nodes:remove",
    "data:set",
    "data:remove",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def is_record(value: Any) -> bool:
    """True for plain mapping values (JSON objects)."""
    return isinstance(value, dict)


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


# ---------------------------------------------------------------------------
# Nodes & surfaces
# ---------------------------------------------------------------------------


@dataclass
class Node:
    """
    One entry in a surface's node table.

    `props` values may be literals, bound values ({"path": ...}) or
    function calls ({"call": ..., "args": ...}); they are resolved at
    render time, never at store time.
    """

    id: str
    type: str
    children: list[str] | None = None
    checks: list[dict[str, Any]] | None = None
    props: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "type": self.type, "props": self.props}
        if self.children is not None:
            d["children"] = self.children
        if self.checks is not None:
            d["checks"] = self.checks
        return d


@dataclass(frozen=True)
class NodePatch:
    """
    A partial node carried by `nodes:upsert`.
    Only `id` is required; absent fields are inherited from the stored node.
    """

    id: str
    type: str | None = None
    children: list[str] | None = None
    checks: list[dict[str, Any]] | None = None
    props: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "type": self.type,
                "children": self.children,
                "checks": self.checks,
                "props": self.props,
            }
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> NodePatch:
        return cls(
            id=d["id"],
            type=d.get("type"),
            children=d.get("children"),
            checks=d.get("checks"),
            props=d.get("props"),
        )


@dataclass
class Surface:
    """A named UI instance: a node table plus a data document."""

    id: str
    protocol: str
    catalog_id: str | None = None
    theme: dict[str, Any] | None = None
    nodes: dict[str, Node] = field(default_factory=dict)
    data: Any = field(default_factory=dict)
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "protocol": self.protocol,
            "catalogId": self.catalog_id,
            "theme": self.theme,
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
            "data": self.data,
            "metadata": self.metadata,
        }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class Command:
    """Base for every command. Immutable once built."""

    type: ClassVar[str] = ""

    surface_id: str
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "surfaceId": self.surface_id, "timestamp": self.timestamp}


@dataclass(frozen=True, kw_only=True)
class SurfaceCreate(Command):
    type: ClassVar[str] = "surface:create"

    protocol: str
    catalog_id: str | None = None
    theme: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["protocol"] = self.protocol
        d.update(_drop_none({"catalogId": self.catalog_id, "theme": self.theme, "metadata": self.metadata}))
        return d


@dataclass(frozen=True, kw_only=True)
class SurfaceDelete(Command):
    type: ClassVar[str] = "surface:delete"


@dataclass(frozen=True, kw_only=True)
class NodesUpsert(Command):
    type: ClassVar[str] = "nodes:upsert"

    nodes: tuple[NodePatch, ...] = ()

    def __post_init__(self) -> None:
        patches = tuple(n if isinstance(n, NodePatch) else NodePatch.from_dict(n) for n in self.nodes)
        object.__setattr__(self, "nodes", patches)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["nodes"] = [patch.to_dict() for patch in self.nodes]
        return d


@dataclass(frozen=True, kw_only=True)
class NodesRemove(Command):
    type: ClassVar[str] = "nodes:remove"

    node_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "node_ids", tuple(self.node_ids))

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["nodeIds"] = list(self.node_ids)
        return d


@dataclass(frozen=True, kw_only=True)
class DataSet(Command):
    type: ClassVar[str] = "data:set"

    path: str = "/"
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["path"] = self.path
        d["value"] = self.value
        return d


@dataclass(frozen=True, kw_only=True)
class DataRemove(Command):
    type: ClassVar[str] = "data:remove"

    path: str = "/"

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["path"] = self.path
        return d


COMMAND_CLASSES: dict[str, type[Command]] = {
    cls.type: cls for cls in (SurfaceCreate, SurfaceDelete, NodesUpsert, NodesRemove, DataSet, DataRemove)
}


# ---------------------------------------------------------------------------
# Diagnostics & results
# ---------------------------------------------------------------------------


@dataclass
class Diagnostic:
    """
    A structured report. Errors indicate a failed operation; warnings a
    recovered anomaly (pruned node, missing surface on delete, ...).
    """

    code: str
    message: str
    severity: str = "error"
    surface_id: str | None = None
    node_id: str | None = None
    path: str | None = None
    details: dict[str, Any] | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "code": self.code,
                "message": self.message,
                "severity": self.severity,
                "surfaceId": self.surface_id,
                "nodeId": self.node_id,
                "path": self.path,
                "details": self.details,
            }
        )


@dataclass(frozen=True)
class TrustVerdict:
    """Either allowed, or denied with a reason. Never partial."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> TrustVerdict:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> TrustVerdict:
        return cls(allowed=False, reason=reason)


@dataclass
class ParseResult:
    """
    Result of parsing one wire message.
    Adapters never throw on malformed input — they return one of these.
    """

    ok: bool
    value: list[Command] = field(default_factory=list)
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)


@dataclass
class ApplyResult:
    """Result of applying one command or a batch."""

    ok: bool
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]


@dataclass
class ProcessResult:
    """parse + apply of one wire message. `apply_result` is None when parsing failed."""

    parse_result: ParseResult
    apply_result: ApplyResult | None = None


@dataclass
class ValidationResult:
    ok: bool
    errors: list[Diagnostic] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Actions & host effects (renderer boundary)
# ---------------------------------------------------------------------------


@dataclass
class HostEffect:
    """A side effect the host must perform (currently only openUrl)."""

    type: str
    surface_id: str
    url: str
    action: dict[str, Any]
    node_id: str | None = None


@dataclass
class ActionPayload:
    """What the host receives when a user action is dispatched."""

    surface_id: str
    action: dict[str, Any]
    data: Any
    node_id: str | None = None


ChildRefCollector = Callable[[Node], list[str]]
