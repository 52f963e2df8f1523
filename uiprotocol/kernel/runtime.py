"""
uiprotocol Kernel — Runtime (State Engine)

Owns every surface. Commands are the only way surface state changes, and
every command goes through apply_single:

  command:before → trust verdict → command log → mutate → command → notify

A denied command is logged and reported but never mutates anything, and
does not bump the revision.

Node tables are pruned after every node command: once a command completes,
a surface's node table is exactly the set reachable from "root" through the
protocol's child-reference collector. Data documents are replaced, never
mutated in place, so holders of an older document keep their snapshot.

Batches (apply) are not transactional. Each command is attempted; the
diagnostics say which ones failed.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable

from uiprotocol.kernel.child_refs import default_child_refs, reachable_ids
from uiprotocol.kernel.command_log import CommandLog
from uiprotocol.kernel.diagnostics import CORE_CODES, DiagnosticError, diagnostic, warning
from uiprotocol.kernel.emitter import EventEmitter
from uiprotocol.kernel.functions import FunctionExecutor, FunctionRegistry
from uiprotocol.kernel.pointer import remove_pointer, set_pointer
from uiprotocol.kernel.protocol import ProtocolAdapter
from uiprotocol.kernel.trust import TrustEngine, TrustPolicy
from uiprotocol.kernel.types import (
    ROOT_ID,
    ApplyResult,
    ChildRefCollector,
    Command,
    DataRemove,
    DataSet,
    Diagnostic,
    Node,
    NodePatch,
    NodesRemove,
    NodesUpsert,
    ProcessResult,
    Surface,
    SurfaceCreate,
    SurfaceDelete,
)

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ok(diagnostics: list[Diagnostic] | None = None) -> ApplyResult:
    diagnostics = diagnostics or []
    return ApplyResult(ok=not any(d.is_error for d in diagnostics), diagnostics=diagnostics)


def _surface_not_found(surface_id: str) -> ApplyResult:
    return ApplyResult(
        ok=False,
        diagnostics=[
            diagnostic(
                CORE_CODES.surface_not_found,
                f"Surface '{surface_id}' does not exist.",
                surface_id=surface_id,
            )
        ],
    )


def merge_node(existing: Node | None, patch: NodePatch) -> Node | None:
    """
    Merge a patch onto the stored node.

    type      patch wins when non-empty, else inherited
    children  replaced wholesale when present in the patch, else inherited
    checks    replaced wholesale when present in the patch, else inherited
    props     shallow merge, patch keys overwrite

    Returns None when neither side carries a type.
    """
    node_type = patch.type or (existing.type if existing else None)
    if not node_type:
        return None

    props = dict(existing.props) if existing else {}
    props.update(patch.props or {})

    if patch.children is not None:
        children = list(patch.children)
    else:
        children = existing.children if existing else None

    if patch.checks is not None:
        checks = list(patch.checks)
    else:
        checks = existing.checks if existing else None

    return Node(id=patch.id, type=node_type, children=children, checks=checks, props=props)


def _prune(surface: Surface, collector: ChildRefCollector, diagnostics: list[Diagnostic]) -> None:
    """Delete every node not reachable from the root, one warning each."""
    if ROOT_ID not in surface.nodes:
        diagnostics.append(
            warning(
                CORE_CODES.root_missing,
                f"Surface '{surface.id}' has no root node (id: {ROOT_ID}).",
                surface_id=surface.id,
            )
        )

    keep = reachable_ids(surface.nodes, collector)
    for node_id in [n for n in surface.nodes if n not in keep]:
        del surface.nodes[node_id]
        logger.debug("runtime: pruned unreachable node %r from surface %r", node_id, surface.id)
        diagnostics.append(
            warning(
                CORE_CODES.node_pruned,
                f"Pruned unreachable node '{node_id}' from surface '{surface.id}'.",
                surface_id=surface.id,
                node_id=node_id,
            )
        )


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _handle_surface_create(rt: Runtime, command: SurfaceCreate) -> ApplyResult:
    rt._surfaces[command.surface_id] = Surface(
        id=command.surface_id,
        protocol=command.protocol,
        catalog_id=command.catalog_id,
        theme=command.theme,
        metadata=command.metadata,
    )
    return _ok()


def _handle_surface_delete(rt: Runtime, command: SurfaceDelete) -> ApplyResult:
    if command.surface_id not in rt._surfaces:
        return _ok(
            [
                warning(
                    CORE_CODES.surface_not_found,
                    f"Surface '{command.surface_id}' does not exist.",
                    surface_id=command.surface_id,
                )
            ]
        )
    del rt._surfaces[command.surface_id]
    return _ok()


def _handle_nodes_upsert(rt: Runtime, command: NodesUpsert) -> ApplyResult:
    surface = rt._surfaces.get(command.surface_id)
    if surface is None:
        return _surface_not_found(command.surface_id)

    diagnostics: list[Diagnostic] = []
    for patch in command.nodes:
        merged = merge_node(surface.nodes.get(patch.id), patch)
        if merged is None:
            logger.warning("runtime: node %r on surface %r has no type; not stored", patch.id, surface.id)
            diagnostics.append(
                diagnostic(
                    CORE_CODES.missing_node_type,
                    f"Node '{patch.id}' is missing a type.",
                    surface_id=surface.id,
                    node_id=patch.id,
                )
            )
            continue
        surface.nodes[patch.id] = merged

    _prune(surface, rt.collector_for(surface.protocol), diagnostics)
    return _ok(diagnostics)


def _handle_nodes_remove(rt: Runtime, command: NodesRemove) -> ApplyResult:
    surface = rt._surfaces.get(command.surface_id)
    if surface is None:
        return _surface_not_found(command.surface_id)

    for node_id in command.node_ids:
        surface.nodes.pop(node_id, None)

    diagnostics: list[Diagnostic] = []
    if surface.nodes:
        _prune(surface, rt.collector_for(surface.protocol), diagnostics)
    return _ok(diagnostics)


def _pointer_fault(surface: Surface, exc: DiagnosticError) -> ApplyResult:
    logger.warning("runtime: data write on surface %r failed: %s", surface.id, exc)
    return ApplyResult(ok=False, diagnostics=[dataclasses.replace(exc.diagnostic, surface_id=surface.id)])


def _handle_data_set(rt: Runtime, command: DataSet) -> ApplyResult:
    surface = rt._surfaces.get(command.surface_id)
    if surface is None:
        return _surface_not_found(command.surface_id)
    try:
        surface.data = set_pointer(surface.data, command.path, command.value)
    except DiagnosticError as exc:
        return _pointer_fault(surface, exc)
    return _ok()


def _handle_data_remove(rt: Runtime, command: DataRemove) -> ApplyResult:
    surface = rt._surfaces.get(command.surface_id)
    if surface is None:
        return _surface_not_found(command.surface_id)
    try:
        surface.data = remove_pointer(surface.data, command.path)
    except DiagnosticError as exc:
        return _pointer_fault(surface, exc)
    return _ok()


_HANDLERS: dict[str, Any] = {
    "surface:create": _handle_surface_create,
    "surface:delete": _handle_surface_delete,
    "nodes:upsert": _handle_nodes_upsert,
    "nodes:remove": _handle_nodes_remove,
    "data:set": _handle_data_set,
    "data:remove": _handle_data_remove,
}


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class Runtime:
    """
    The single owner of surface state.

    Readers get live references: treat surfaces and node tables as
    snapshots only until the next command. Data documents are safe to keep.
    """

    def __init__(
        self,
        trust_policy: TrustPolicy | dict[str, Any] | None = None,
        custom_functions: dict[str, FunctionExecutor] | None = None,
        *,
        on_builtin_override: Callable[[str], None] | None = None,
    ) -> None:
        self.events = EventEmitter()
        self.command_log = CommandLog()
        self.functions = FunctionRegistry(custom_functions, on_builtin_override=on_builtin_override)
        self._trust = TrustEngine(trust_policy)
        self._surfaces: dict[str, Surface] = {}
        self._listeners: list[Listener] = []
        self._collectors: dict[str, ChildRefCollector] = {}
        self._adapters: dict[str, ProtocolAdapter] = {}
        self._revision = 0

    # -- state access -------------------------------------------------------

    def get_surface(self, surface_id: str) -> Surface | None:
        return self._surfaces.get(surface_id)

    def get_surfaces(self) -> list[Surface]:
        return list(self._surfaces.values())

    def get_revision(self) -> int:
        return self._revision

    # -- command processing -------------------------------------------------

    def apply(self, commands: list[Command], agent_id: str | None = None) -> ApplyResult:
        diagnostics: list[Diagnostic] = []
        ok = True
        for command in commands:
            result = self.apply_single(command, agent_id)
            diagnostics.extend(result.diagnostics)
            if not result.ok:
                ok = False
        return ApplyResult(ok=ok, diagnostics=diagnostics)

    def apply_single(self, command: Command, agent_id: str | None = None) -> ApplyResult:
        self.events.emit("command:before", command)

        surface = self._surfaces.get(command.surface_id)
        verdict = self._trust.evaluate(command, surface, agent_id)
        self.command_log.append(command, verdict)

        if not verdict.allowed:
            logger.warning(
                "runtime: %s on surface %r blocked by trust policy: %s",
                command.type,
                command.surface_id,
                verdict.reason,
            )
            diag = diagnostic(
                CORE_CODES.trust_violation,
                verdict.reason or "Command denied by trust policy.",
                surface_id=command.surface_id,
                details={"commandType": command.type, "agentId": agent_id},
            )
            self.events.emit("trust:blocked", command, verdict.reason)
            self.events.emit("error", diag)
            return ApplyResult(ok=False, diagnostics=[diag])

        result = self._mutate(command)
        for diag in result.diagnostics:
            self.events.emit(diag.severity, diag)

        self.events.emit("command", command)
        self._notify()
        return result

    def process_message(
        self,
        adapter: ProtocolAdapter | str,
        raw: Any,
        agent_id: str | None = None,
    ) -> ProcessResult:
        """Parse one wire message with `adapter` (or a registered protocol name) and apply it."""
        if isinstance(adapter, str):
            if adapter not in self._adapters:
                raise ValueError(f"No adapter registered for protocol {adapter!r}")
            adapter = self._adapters[adapter]

        parse_result = adapter.parse(raw)
        if not parse_result.ok:
            return ProcessResult(parse_result=parse_result)
        return ProcessResult(parse_result=parse_result, apply_result=self.apply(parse_result.value, agent_id))

    # -- trust --------------------------------------------------------------

    @property
    def trust_policy(self) -> TrustPolicy:
        return self._trust.policy

    def set_trust_policy(self, policy: TrustPolicy | dict[str, Any] | None) -> None:
        self._trust.set_policy(policy)

    # -- protocols ----------------------------------------------------------

    def register_adapter(self, adapter: ProtocolAdapter) -> None:
        """Make `adapter` addressable by name and use its collector for pruning."""
        self._adapters[adapter.protocol] = adapter
        self.set_child_ref_collector(adapter.protocol, adapter.collect_child_ids)

    def get_adapter(self, protocol: str) -> ProtocolAdapter | None:
        return self._adapters.get(protocol)

    def set_child_ref_collector(self, protocol: str, collector: ChildRefCollector) -> None:
        self._collectors[protocol] = collector

    def collector_for(self, protocol: str | None) -> ChildRefCollector:
        if protocol and protocol in self._collectors:
            return self._collectors[protocol]
        return default_child_refs

    # -- subscription -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every applied command. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- internal -----------------------------------------------------------

    def _mutate(self, command: Command) -> ApplyResult:
        handler = _HANDLERS.get(command.type)
        if handler is None:
            return ApplyResult(
                ok=False,
                diagnostics=[
                    diagnostic(
                        CORE_CODES.unknown_message_type,
                        f"Unknown command type: {command.type!r}",
                        surface_id=command.surface_id,
                    )
                ],
            )
        return handler(self, command)

    def _notify(self) -> None:
        self._revision += 1
        for listener in list(self._listeners):
            listener()
