"""
uiprotocol Kernel — Renderer Bindings

What the core hands a renderer for each visible node: a value resolver,
a property setter that issues data:set / data:remove, validation for form
inputs, and an action-dispatch entry point. Mapping node types to visuals
stays with the renderer; the binding only reports that a type is unmapped.

Host callbacks (all optional):
  on_action(ActionPayload)       a user action passed validation
  on_host_effect(HostEffect)     an action asked the host to open a URL
  on_warning(Diagnostic)         recoverable anomaly
  on_client_error(Diagnostic)    validation / dispatch failure
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from uiprotocol.kernel.commands import make_data_remove, make_data_set
from uiprotocol.kernel.diagnostics import CORE_CODES, diagnostic, warning
from uiprotocol.kernel.pointer import resolve_path, resolve_pointer
from uiprotocol.kernel.resolver import Resolver
from uiprotocol.kernel.runtime import Runtime
from uiprotocol.kernel.types import (
    ActionPayload,
    ApplyResult,
    Diagnostic,
    HostEffect,
    Node,
    Surface,
    ValidationResult,
)
from uiprotocol.kernel.validation import validate_value

logger = logging.getLogger(__name__)

VISIBILITY_PROP = "__visible"


@dataclass
class HostCallbacks:
    on_action: Callable[[ActionPayload], None] | None = None
    on_host_effect: Callable[[HostEffect], None] | None = None
    on_warning: Callable[[Diagnostic], None] | None = None
    on_client_error: Callable[[Diagnostic], None] | None = None

    def warn(self, diag: Diagnostic) -> None:
        if self.on_warning is not None:
            self.on_warning(diag)

    def error(self, diag: Diagnostic) -> None:
        if self.on_client_error is not None:
            self.on_client_error(diag)

    def report(self, diagnostics: list[Diagnostic]) -> None:
        """Route each diagnostic by severity."""
        for diag in diagnostics:
            if diag.severity == "warning":
                self.warn(diag)
            else:
                self.error(diag)


class SurfaceBinding:
    """
    Binds one surface (and a scope inside its data document) for a renderer.
    Create a nested binding with `scoped()` when rendering list templates.
    """

    def __init__(
        self,
        runtime: Runtime,
        surface_id: str,
        *,
        scope: str = "/",
        callbacks: HostCallbacks | None = None,
        known_types: set[str] | None = None,
    ) -> None:
        self.runtime = runtime
        self.surface_id = surface_id
        self.scope = resolve_path(scope or "/")
        self.callbacks = callbacks or HostCallbacks()
        self.known_types = known_types
        self._reported_types: set[str] = set()

    # -- reading ------------------------------------------------------------

    @property
    def surface(self) -> Surface | None:
        return self.runtime.get_surface(self.surface_id)

    def _document(self) -> Any:
        surface = self.surface
        return surface.data if surface is not None else {}

    def scoped(self, path: str) -> SurfaceBinding:
        """A binding whose relative paths resolve under `path`."""
        child = SurfaceBinding(
            self.runtime,
            self.surface_id,
            scope=resolve_path(path, self.scope),
            callbacks=self.callbacks,
            known_types=self.known_types,
        )
        child._reported_types = self._reported_types
        return child

    def resolve(self, value: Any) -> Any:
        """Resolve a literal, bound value or function call against the current data."""
        return Resolver(self._document(), self.scope, self.runtime.functions).resolve(value)

    def resolve_props(self, node: Node) -> dict[str, Any]:
        return {key: self.resolve(value) for key, value in node.props.items() if key != VISIBILITY_PROP}

    def value(self, path: str) -> Any:
        surface = self.surface
        absolute = resolve_path(path, self.scope)
        if surface is None:
            self.callbacks.warn(
                warning(
                    CORE_CODES.surface_not_found,
                    f"Surface '{self.surface_id}' not found while reading {absolute}.",
                    surface_id=self.surface_id,
                    path=absolute,
                )
            )
            return None
        return resolve_pointer(surface.data, absolute)

    def is_visible(self, node: Node) -> bool:
        condition = node.props.get(VISIBILITY_PROP)
        if condition is None:
            return True
        return bool(self.resolve(condition))

    # -- writing ------------------------------------------------------------

    def set_value(self, path: str, value: Any = None, *, remove: bool = False) -> ApplyResult:
        absolute = resolve_path(path, self.scope)
        if remove:
            return self.runtime.apply_single(make_data_remove(self.surface_id, absolute))
        return self.runtime.apply_single(make_data_set(self.surface_id, absolute, value))

    def validate(
        self,
        value: Any,
        *,
        checks: list[dict[str, Any]] | None = None,
        pattern: str | None = None,
        node_id: str | None = None,
        path: str | None = None,
    ) -> ValidationResult:
        result = validate_value(
            value,
            document=self._document(),
            pattern=pattern,
            checks=checks,
            scope=self.scope,
            registry=self.runtime.functions,
        )
        for error in result.errors:
            error.surface_id = self.surface_id
            error.node_id = node_id
            if path is not None:
                error.path = resolve_path(path, self.scope)
            self.callbacks.error(error)
        return result

    def change(
        self,
        path: str,
        value: Any,
        *,
        checks: list[dict[str, Any]] | None = None,
        pattern: str | None = None,
        node_id: str | None = None,
    ) -> ValidationResult:
        """Form input: validate, and write the value only if it passed."""
        result = self.validate(value, checks=checks, pattern=pattern, node_id=node_id, path=path)
        if result.ok:
            self.set_value(path, value)
        return result

    # -- actions ------------------------------------------------------------

    def dispatch_action(
        self,
        action: dict[str, Any] | None,
        *,
        node_id: str | None = None,
        checks: list[dict[str, Any]] | None = None,
        pattern: str | None = None,
        value: Any = None,
    ) -> bool:
        """
        Forward a user action to the host. Returns False when it was not
        forwarded: unknown surface, missing event name, or failed validation.
        """
        surface = self.surface
        if surface is None:
            self.callbacks.error(
                diagnostic(
                    CORE_CODES.surface_not_found,
                    f"Surface '{self.surface_id}' does not exist.",
                    surface_id=self.surface_id,
                    node_id=node_id,
                )
            )
            return False

        event = action.get("event") if isinstance(action, dict) else None
        if not isinstance(event, str) or not event:
            self.callbacks.error(
                diagnostic(
                    CORE_CODES.invalid_envelope,
                    "Action event is required.",
                    surface_id=self.surface_id,
                    node_id=node_id,
                )
            )
            return False

        if checks or pattern:
            if not self.validate(value, checks=checks, pattern=pattern, node_id=node_id).ok:
                return False

        url = action.get("openUrl")
        if url:
            effect = HostEffect(type="openUrl", surface_id=self.surface_id, node_id=node_id, url=url, action=action)
            if self.callbacks.on_host_effect is not None:
                self.callbacks.on_host_effect(effect)
            else:
                logger.info("bindings: openUrl %r dropped, no host effect handler", url)
                self.callbacks.warn(
                    warning(
                        CORE_CODES.host_effect_dropped,
                        "openUrl effect dropped because no host effect handler is configured.",
                        surface_id=self.surface_id,
                        node_id=node_id,
                    )
                )

        if self.callbacks.on_action is not None:
            self.callbacks.on_action(
                ActionPayload(surface_id=self.surface_id, node_id=node_id, action=action, data=surface.data)
            )
        return True

    # -- catalog ------------------------------------------------------------

    def check_component(self, node: Node) -> Diagnostic | None:
        """
        Report (once per type) a node whose type the renderer has no mapping for.
        Without a known-type catalog every type is accepted.
        """
        if self.known_types is None or node.type in self.known_types:
            return None
        diag = warning(
            CORE_CODES.unknown_component,
            f"Unknown component: {node.type}",
            surface_id=self.surface_id,
            node_id=node.id,
            details={"type": node.type},
        )
        if node.type not in self._reported_types:
            self._reported_types.add(node.type)
            self.callbacks.warn(diag)
        return diag
