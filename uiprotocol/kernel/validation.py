"""
uiprotocol Kernel — Validation Engine

validate_value checks a candidate value against an optional regex pattern
and an optional list of function-call checks. Every check runs; failures
accumulate rather than short-circuit.
"""

from __future__ import annotations

import re
from typing import Any

from uiprotocol.kernel.diagnostics import CORE_CODES, DiagnosticError, diagnostic
from uiprotocol.kernel.functions import FunctionRegistry
from uiprotocol.kernel.resolver import Resolver
from uiprotocol.kernel.types import Diagnostic, ValidationResult


def _check_pattern(value: str, pattern: str) -> Diagnostic | None:
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        return diagnostic(
            CORE_CODES.validation_regex_failed,
            f"Invalid regex pattern: {pattern}",
            details={"pattern": pattern, "cause": str(exc)},
        )
    if compiled.search(value) is None:
        return diagnostic(
            CORE_CODES.validation_regex_failed,
            "Value does not match required pattern.",
            details={"pattern": pattern},
        )
    return None


def _run_check(check: dict[str, Any], value: Any, resolver: Resolver) -> Diagnostic | None:
    name = check.get("call") if isinstance(check, dict) else None
    if not isinstance(name, str) or not name:
        return diagnostic(
            CORE_CODES.validation_check_failed,
            "Validation check is missing a function name.",
            details={"check": check},
        )

    raw_args = check.get("args") if isinstance(check.get("args"), dict) else {}
    resolved_args: dict[str, Any] = {}
    try:
        resolved_args = resolver.resolve_args({**raw_args, "value": value})
        result = resolver.registry.execute(name, resolved_args)
    except DiagnosticError as exc:
        return diagnostic(
            exc.code,
            f"Validation check '{name}' threw an error.",
            details={"call": name, "resolvedArgs": resolved_args, "cause": str(exc)},
        )

    if not result:
        return diagnostic(
            CORE_CODES.validation_check_failed,
            f"Validation check '{name}' failed.",
            details={"call": name, "resolvedArgs": resolved_args},
        )
    return None


def validate_value(
    value: Any,
    *,
    document: Any = None,
    pattern: str | None = None,
    checks: list[dict[str, Any]] | None = None,
    scope: str = "/",
    registry: FunctionRegistry | None = None,
) -> ValidationResult:
    """
    Validate `value`.

    The pattern only applies to string values. Each check's args, plus an
    injected `value` key, are resolved against `document`/`scope` before
    the check's function is executed; a falsy result or a raised failure
    both count as an error.
    """
    errors: list[Diagnostic] = []

    if pattern and isinstance(value, str):
        error = _check_pattern(value, pattern)
        if error is not None:
            errors.append(error)

    if checks:
        resolver = Resolver(document if document is not None else {}, scope, registry)
        for check in checks:
            error = _run_check(check, value, resolver)
            if error is not None:
                errors.append(error)

    return ValidationResult(ok=not errors, errors=errors)
