"""
json-render adapter — one-shot nested tree specs.

  {"surfaceId"?: str,
   "root": {"type", "id"?, "visible"?, "children"?: [element, ...], <prop>: ...},
   "state"?: {...}}

A spec flattens to: surface:create, one nodes:upsert carrying every element
in pre-order, then data:set of `state` at "/" when present. The top element
always becomes "root"; elements without an id get node-0, node-1, ... in
pre-order. Every other key on an element is a property.

Property values are translated to core dynamic values:
  {"$state": "/p"}              → {"path": "/p"}
  {"$cond": "fn", "args": {...}} → {"call": "fn", "args": {...}}
`visible` becomes the "__visible" property.
"""

from __future__ import annotations

import itertools
import json
from typing import Any, Callable, Iterator

from uiprotocol.kernel.bindings import VISIBILITY_PROP
from uiprotocol.kernel.diagnostics import DiagnosticCodes, diagnostic, parse_failure, parse_success
from uiprotocol.kernel.protocol import ProtocolAdapter
from uiprotocol.kernel.types import (
    ROOT_ID,
    Command,
    DataSet,
    Diagnostic,
    NodePatch,
    NodesUpsert,
    ParseResult,
    SurfaceCreate,
    now_ms,
)

JSON_RENDER_CODES = DiagnosticCodes.for_prefix("JSON_RENDER")

_ELEMENT_KEYS = frozenset({"type", "id", "children", "visible"})


# ---------------------------------------------------------------------------
# Value translation
# ---------------------------------------------------------------------------


def translate_value(value: Any) -> Any:
    if isinstance(value, dict):
        if isinstance(value.get("$state"), str):
            return {"path": value["$state"]}
        if isinstance(value.get("$cond"), str):
            call: dict[str, Any] = {"call": value["$cond"]}
            if "args" in value:
                call["args"] = translate_value(value["args"])
            return call
        return {key: translate_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [translate_value(item) for item in value]
    return value


def translate_props(props: dict[str, Any] | None) -> dict[str, Any]:
    return {key: translate_value(value) for key, value in (props or {}).items()}


# ---------------------------------------------------------------------------
# Structure checks
# ---------------------------------------------------------------------------


def _check_element(element: Any, where: str, errors: list[Diagnostic]) -> None:
    if not isinstance(element, dict):
        errors.append(diagnostic(JSON_RENDER_CODES.invalid_type, f"{where} must be an object.", path=where))
        return
    if not isinstance(element.get("type"), str) or not element["type"]:
        errors.append(diagnostic(JSON_RENDER_CODES.missing_field, f"{where}.type is required.", path=where))
    if "id" in element and (not isinstance(element["id"], str) or not element["id"]):
        errors.append(
            diagnostic(JSON_RENDER_CODES.invalid_type, f"{where}.id must be a non-empty string.", path=where)
        )

    children = element.get("children")
    if children is None:
        return
    if not isinstance(children, list):
        errors.append(diagnostic(JSON_RENDER_CODES.invalid_type, f"{where}.children must be an array.", path=where))
        return
    for index, child in enumerate(children):
        _check_element(child, f"{where}.children[{index}]", errors)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class JsonRenderAdapter(ProtocolAdapter):
    protocol = "json-render"

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock

    def parse(self, raw: Any) -> ParseResult:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return parse_failure([diagnostic(JSON_RENDER_CODES.invalid_json, "Spec is not valid JSON.")])

        if not isinstance(raw, dict):
            return parse_failure([diagnostic(JSON_RENDER_CODES.invalid_envelope, "Spec must be an object.")])

        if "root" not in raw:
            return parse_failure([diagnostic(JSON_RENDER_CODES.missing_field, "Spec requires a root element.")])

        errors: list[Diagnostic] = []
        surface_id = raw.get("surfaceId")
        if surface_id is not None and (not isinstance(surface_id, str) or not surface_id):
            errors.append(diagnostic(JSON_RENDER_CODES.invalid_type, "surfaceId must be a non-empty string."))
        state = raw.get("state")
        if state is not None and not isinstance(state, dict):
            errors.append(diagnostic(JSON_RENDER_CODES.invalid_type, "state must be an object."))
        _check_element(raw["root"], "root", errors)
        if errors:
            return parse_failure(errors)

        timestamp = self._clock()
        surface_id = surface_id or f"jr-{timestamp}"

        nodes: list[Any] = []
        self._flatten(raw["root"], nodes, itertools.count(), ROOT_ID)

        commands: list[Command] = [
            SurfaceCreate(surface_id=surface_id, protocol=self.protocol, timestamp=timestamp),
            NodesUpsert(surface_id=surface_id, nodes=tuple(nodes), timestamp=timestamp),
        ]
        if state is not None:
            commands.append(DataSet(surface_id=surface_id, path="/", value=state, timestamp=timestamp))
        return parse_success(commands)

    def _flatten(
        self,
        element: dict[str, Any],
        nodes: list[NodePatch | None],
        counter: Iterator[int],
        node_id: str | None = None,
    ) -> str:
        """Append `element` and its descendants in pre-order. Returns the element's id."""
        node_id = node_id or element.get("id") or f"node-{next(counter)}"
        slot = len(nodes)
        nodes.append(None)

        child_ids = [self._flatten(child, nodes, counter) for child in element.get("children") or []]

        props = translate_props({key: value for key, value in element.items() if key not in _ELEMENT_KEYS})
        if "visible" in element:
            props[VISIBILITY_PROP] = translate_value(element["visible"])

        nodes[slot] = NodePatch(
            id=node_id,
            type=element["type"],
            children=child_ids or None,
            props=props,
        )
        return node_id
