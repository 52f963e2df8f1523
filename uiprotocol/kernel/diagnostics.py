"""
uiprotocol Kernel — Diagnostics

One shared failure taxonomy, namespaced per producer (core, each adapter).
Codes are stable strings like CORE_SURFACE_NOT_FOUND or A2UI_MISSING_FIELD.

Parse-time and apply-time problems are returned as Diagnostic values.
Only resolution-time faults (a pointer that is not a pointer, a function
that does not exist or blows up) are raised, as DiagnosticError subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from uiprotocol.kernel.types import Command, Diagnostic, ParseResult

# ---------------------------------------------------------------------------
# Code tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiagnosticCodes:
    invalid_json: str
    invalid_envelope: str
    unsupported_version: str
    missing_field: str
    invalid_type: str
    unknown_message_type: str
    surface_not_found: str
    missing_node_type: str
    root_missing: str
    node_pruned: str
    invalid_pointer: str
    unknown_function: str
    function_execution_failed: str
    validation_check_failed: str
    validation_regex_failed: str
    unknown_component: str
    host_effect_dropped: str
    render_failed: str
    trust_violation: str

    @classmethod
    def for_prefix(cls, prefix: str) -> DiagnosticCodes:
        """Build the code table for one namespace, e.g. "A2UI" → A2UI_MISSING_FIELD."""
        return cls(**{f.name: f"{prefix}_{f.name.upper()}" for f in fields(cls)})


CORE_CODES = DiagnosticCodes.for_prefix("CORE")


def diagnostic(
    code: str,
    message: str,
    *,
    severity: str = "error",
    surface_id: str | None = None,
    node_id: str | None = None,
    path: str | None = None,
    details: dict[str, Any] | None = None,
) -> Diagnostic:
    return Diagnostic(
        code=code,
        message=message,
        severity=severity,
        surface_id=surface_id,
        node_id=node_id,
        path=path,
        details=details,
    )


def warning(code: str, message: str, **context: Any) -> Diagnostic:
    return diagnostic(code, message, severity="warning", **context)


def parse_success(value: list[Command], warnings: list[Diagnostic] | None = None) -> ParseResult:
    return ParseResult(ok=True, value=value, warnings=list(warnings or []))


def parse_failure(errors: list[Diagnostic], warnings: list[Diagnostic] | None = None) -> ParseResult:
    return ParseResult(ok=False, errors=list(errors), warnings=list(warnings or []))


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DiagnosticError(Exception):
    """An exception carrying a Diagnostic, raised from deep inside resolution."""

    def __init__(self, diag: Diagnostic) -> None:
        super().__init__(diag.message)
        self.diagnostic = diag

    @property
    def code(self) -> str:
        return self.diagnostic.code


class InvalidPointer(DiagnosticError):
    """A pointer did not start with '/', indexed an array with a non-integer, or padded an array too far."""

    def __init__(self, message: str, pointer: str | None = None) -> None:
        super().__init__(diagnostic(CORE_CODES.invalid_pointer, message, path=pointer))


class UnknownFunction(DiagnosticError):
    """No executor is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(
            diagnostic(CORE_CODES.unknown_function, f"Unknown function: {name}", details={"call": name})
        )
        self.name = name


class FunctionExecutionFailed(DiagnosticError):
    """A registered executor raised. The original exception is chained as __cause__."""

    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(
            diagnostic(
                CORE_CODES.function_execution_failed,
                f"Function {name} failed to execute.",
                details={"call": name, "cause": str(cause)},
            )
        )
        self.name = name
