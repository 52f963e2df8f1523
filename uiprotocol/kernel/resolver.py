"""
uiprotocol Kernel — Dynamic Value Resolver

A value is one of:
  literal        anything that is not one of the two shapes below
  bound value    {"path": "/user/name"}          → read from the data document
  function call  {"call": "concat", "args": {...}} → args resolved, then executed

Lists resolve element-wise and plain records field-wise. A record that
looks like a bound value or a function call is always interpreted as one.

Literal data may contain reference cycles (a dict that contains itself).
The resolver tracks the identities of containers currently being resolved
on the call chain and yields None on re-entry instead of recursing.
"""

from __future__ import annotations

from typing import Any

from uiprotocol.kernel.functions import FunctionRegistry
from uiprotocol.kernel.pointer import resolve_path, resolve_pointer


def is_bound_value(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("path"), str)


def is_function_call(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("call"), str)


def is_dynamic(value: Any) -> bool:
    return is_bound_value(value) or is_function_call(value)


class Resolver:
    """Binds a data document, a scope and a registry for repeated resolution."""

    def __init__(self, document: Any, scope: str = "/", registry: FunctionRegistry | None = None) -> None:
        self.document = document
        self.scope = scope or "/"
        self.registry = registry if registry is not None else FunctionRegistry()

    def resolve(self, value: Any) -> Any:
        """Deep-resolve `value`. Raises UnknownFunction / FunctionExecutionFailed / InvalidPointer."""
        return self._resolve(value, set())

    def resolve_args(self, args: dict[str, Any] | None) -> dict[str, Any]:
        return self._resolve_args(args, set())

    def _resolve(self, value: Any, visiting: set[int]) -> Any:
        if is_bound_value(value):
            return resolve_pointer(self.document, resolve_path(value["path"], self.scope))
        if is_function_call(value):
            args = self._resolve_args(value.get("args"), visiting)
            return self.registry.execute(value["call"], args)
        if not isinstance(value, (dict, list)):
            return value

        marker = id(value)
        if marker in visiting:
            return None
        visiting.add(marker)
        try:
            if isinstance(value, list):
                return [self._resolve(entry, visiting) for entry in value]
            return {key: self._resolve(entry, visiting) for key, entry in value.items()}
        finally:
            visiting.discard(marker)

    def _resolve_args(self, args: Any, visiting: set[int]) -> dict[str, Any]:
        if not isinstance(args, dict):
            return {}
        return {key: self._resolve(entry, visiting) for key, entry in args.items()}


def resolve_value(
    value: Any,
    *,
    document: Any,
    scope: str = "/",
    registry: FunctionRegistry | None = None,
) -> Any:
    """Resolve one value against `document`. See Resolver.resolve."""
    return Resolver(document, scope, registry).resolve(value)
