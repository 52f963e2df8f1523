"""
A2UI adapter — incremental agent messages.

Envelope:
  {"version": "v0.9", <exactly one of>:
     "createSurface":    {"surfaceId", "catalogId"?, "theme"?}
     "updateComponents": {"surfaceId", "components": [{"id", "component"?, ...}]}
     "updateDataModel":  {"surfaceId", "path"? = "/", "value"?}   (no value → removal)
     "deleteSurface":    {"surfaceId"}}

A component's `id`, `component`, `children` and `checks` become dedicated
NodePatch fields; everything else (including single child slots such as
`child` or `headerChild`) stays in the property mapping, where the A2UI
child collector finds it during pruning.
"""

from __future__ import annotations

import json
from typing import Any, Callable

from pydantic import BaseModel, Field, ValidationError

from uiprotocol.config import settings
from uiprotocol.kernel.diagnostics import DiagnosticCodes, diagnostic, parse_failure, parse_success, warning
from uiprotocol.kernel.protocol import ProtocolAdapter
from uiprotocol.kernel.types import (
    Command,
    DataRemove,
    DataSet,
    Diagnostic,
    Node,
    NodePatch,
    NodesUpsert,
    ParseResult,
    SurfaceCreate,
    SurfaceDelete,
    now_ms,
)

A2UI_CODES = DiagnosticCodes.for_prefix("A2UI")

MESSAGE_TYPES: tuple[str, ...] = ("createSurface", "updateComponents", "updateDataModel", "deleteSurface")

# Component metadata, never child references
_SKIP_KEYS = frozenset({"id", "component", "checks"})

# Keys (on a component or on objects inside it) that name one child component
CHILD_REF_KEYS: tuple[str, ...] = (
    "child",
    "panelChild",
    "contentChild",
    "entryPointChild",
    "headerChild",
    "footerChild",
    "leadingChild",
    "trailingChild",
)

_REQUIRED_STRING_KEYS = frozenset({"surfaceId", "id"})


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class CreateSurfacePayload(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}

    surface_id: str = Field(alias="surfaceId", min_length=1)
    catalog_id: str | None = Field(default=None, alias="catalogId")
    theme: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class ComponentPatch(BaseModel):
    """One component. Unknown keys are the component's properties."""

    model_config = {"extra": "allow"}

    id: str = Field(min_length=1)
    component: str | None = None
    children: list[str] | None = None
    checks: list[dict[str, Any]] | None = None


class UpdateComponentsPayload(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}

    surface_id: str = Field(alias="surfaceId", min_length=1)
    components: list[ComponentPatch]


class UpdateDataModelPayload(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}

    surface_id: str = Field(alias="surfaceId", min_length=1)
    path: str | None = Field(default=None, min_length=1)
    value: Any = None


class DeleteSurfacePayload(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}

    surface_id: str = Field(alias="surfaceId", min_length=1)


_PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    "createSurface": CreateSurfacePayload,
    "updateComponents": UpdateComponentsPayload,
    "updateDataModel": UpdateDataModelPayload,
    "deleteSurface": DeleteSurfacePayload,
}


def _format_loc(operation: str, loc: tuple[Any, ...]) -> str:
    where = operation
    for part in loc:
        where += f"[{part}]" if isinstance(part, int) else f".{part}"
    return where


def _validation_diagnostics(operation: str, exc: ValidationError) -> list[Diagnostic]:
    """pydantic errors → diagnostics: absent/empty required ids are missing fields, the rest invalid types."""
    diagnostics: list[Diagnostic] = []
    for error in exc.errors():
        loc = tuple(error.get("loc", ()))
        where = _format_loc(operation, loc)
        last = loc[-1] if loc else None
        if error["type"] == "missing" or (error["type"] == "string_too_short" and last in _REQUIRED_STRING_KEYS):
            diagnostics.append(diagnostic(A2UI_CODES.missing_field, f"{where} is required.", path=where))
        else:
            diagnostics.append(
                diagnostic(
                    A2UI_CODES.invalid_type,
                    f"{where}: {error['msg']}",
                    path=where,
                    details={"type": error["type"]},
                )
            )
    return diagnostics


# ---------------------------------------------------------------------------
# Child references
# ---------------------------------------------------------------------------


def _push_child(target: list[str], value: Any) -> None:
    if isinstance(value, str) and value:
        target.append(value)


def _scan_object(target: list[str], obj: dict[str, Any]) -> None:
    for key in CHILD_REF_KEYS:
        _push_child(target, obj.get(key))
    children = obj.get("children")
    if isinstance(children, list):
        for entry in children:
            _push_child(target, entry)


def collect_child_component_ids(component: dict[str, Any]) -> list[str]:
    """
    Child ids referenced by one flat A2UI component:
      child slots     "child": "a", "headerChild": "h", ...
      id lists        "children": ["a", "b"]
      object lists    "tabItems": [{"child": "t1"}, {"panelChild": "p"}]
      nested objects  "template": {"child": "row"}
    """
    child_ids: list[str] = []
    for key, value in component.items():
        if key in _SKIP_KEYS:
            continue
        if isinstance(value, str):
            if key in CHILD_REF_KEYS:
                _push_child(child_ids, value)
        elif isinstance(value, list):
            for entry in value:
                if isinstance(entry, str):
                    _push_child(child_ids, entry)
                elif isinstance(entry, dict):
                    _scan_object(child_ids, entry)
        elif isinstance(value, dict):
            _scan_object(child_ids, value)
    return child_ids


def a2ui_child_refs(node: Node) -> list[str]:
    """Rebuild the flat component shape from a stored node and scan it."""
    flat: dict[str, Any] = {"id": node.id, "component": node.type, **node.props}
    if node.children is not None:
        flat["children"] = node.children
    if node.checks is not None:
        flat["checks"] = node.checks
    return collect_child_component_ids(flat)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class A2UIAdapter(ProtocolAdapter):
    protocol = "a2ui"

    def __init__(self, version: str | None = None, clock: Callable[[], int] = now_ms) -> None:
        self.version = version or settings.A2UI_VERSION
        self._clock = clock

    def collect_child_ids(self, node: Node) -> list[str]:
        return a2ui_child_refs(node)

    def parse(self, raw: Any) -> ParseResult:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return parse_failure([diagnostic(A2UI_CODES.invalid_json, "Message is not valid JSON.")])

        if not isinstance(raw, dict):
            return parse_failure([diagnostic(A2UI_CODES.invalid_envelope, "Message must be an object.")])

        if raw.get("version") != self.version:
            return parse_failure(
                [
                    diagnostic(
                        A2UI_CODES.unsupported_version,
                        f"Only version {self.version} is supported in this runtime.",
                        details={"version": raw.get("version"), "supported": self.version},
                    )
                ]
            )

        present = [key for key in MESSAGE_TYPES if key in raw]
        if not present:
            unknown = sorted(key for key in raw if key != "version")
            if unknown:
                return parse_failure(
                    [
                        diagnostic(
                            A2UI_CODES.unknown_message_type,
                            f"Unknown message operation key: {', '.join(unknown)}.",
                            details={"keys": unknown},
                        )
                    ]
                )
        if len(present) != 1:
            return parse_failure(
                [diagnostic(A2UI_CODES.invalid_envelope, "Message envelope must include exactly one operation key.")]
            )

        operation = present[0]
        payload = raw[operation]
        if not isinstance(payload, dict):
            return parse_failure([diagnostic(A2UI_CODES.invalid_envelope, f"{operation} payload must be an object.")])

        try:
            model = _PAYLOAD_MODELS[operation].model_validate(payload)
        except ValidationError as exc:
            return parse_failure(_validation_diagnostics(operation, exc))

        return _OPERATIONS[operation](self, model, payload)

    # -- operations -----------------------------------------------------------

    def _create_surface(self, model: CreateSurfacePayload, payload: dict[str, Any]) -> ParseResult:
        command = SurfaceCreate(
            surface_id=model.surface_id,
            protocol=self.protocol,
            catalog_id=model.catalog_id,
            theme=model.theme,
            metadata=model.metadata,
            timestamp=self._clock(),
        )
        return parse_success([command])

    def _update_components(self, model: UpdateComponentsPayload, payload: dict[str, Any]) -> ParseResult:
        warnings: list[Diagnostic] = []
        patches: list[NodePatch] = []
        for index, component in enumerate(model.components):
            raw_component = payload["components"][index]
            if component.id in collect_child_component_ids(raw_component):
                warnings.append(
                    warning(
                        A2UI_CODES.invalid_envelope,
                        f"Component '{component.id}' references itself as a child.",
                        surface_id=model.surface_id,
                        node_id=component.id,
                    )
                )
            patches.append(
                NodePatch(
                    id=component.id,
                    type=component.component or None,
                    children=component.children,
                    checks=component.checks,
                    props=dict(component.model_extra or {}),
                )
            )
        command: Command = NodesUpsert(surface_id=model.surface_id, nodes=tuple(patches), timestamp=self._clock())
        return parse_success([command], warnings)

    def _update_data_model(self, model: UpdateDataModelPayload, payload: dict[str, Any]) -> ParseResult:
        path = model.path or "/"
        if "value" in payload:
            command: Command = DataSet(
                surface_id=model.surface_id, path=path, value=payload["value"], timestamp=self._clock()
            )
        else:
            command = DataRemove(surface_id=model.surface_id, path=path, timestamp=self._clock())
        return parse_success([command])

    def _delete_surface(self, model: DeleteSurfacePayload, payload: dict[str, Any]) -> ParseResult:
        return parse_success([SurfaceDelete(surface_id=model.surface_id, timestamp=self._clock())])


_OPERATIONS: dict[str, Any] = {
    "createSurface": A2UIAdapter._create_surface,
    "updateComponents": A2UIAdapter._update_components,
    "updateDataModel": A2UIAdapter._update_data_model,
    "deleteSurface": A2UIAdapter._delete_surface,
}
