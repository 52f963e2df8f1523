"""
uiprotocol Kernel — the core.

Components:
  pointer     — immutable path-addressed get/set/remove over JSON-like data
  functions   — named executors for function-call values and checks
  resolver    — literal / bound value / function call resolution
  validation  — pattern + check validation built on the resolver
  trust       — per-command authorization verdicts
  command_log — append-only (command, verdict) record
  runtime     — surfaces, commands, pruning, notifications
  bindings    — what a renderer gets for each surface
"""

from uiprotocol.kernel.bindings import HostCallbacks, SurfaceBinding
from uiprotocol.kernel.command_log import CommandLog, CommandLogEntry
from uiprotocol.kernel.commands import (
    command_from_dict,
    make_data_remove,
    make_data_set,
    make_nodes_remove,
    make_nodes_upsert,
    make_surface_create,
    make_surface_delete,
)
from uiprotocol.kernel.diagnostics import (
    CORE_CODES,
    DiagnosticCodes,
    DiagnosticError,
    FunctionExecutionFailed,
    InvalidPointer,
    UnknownFunction,
)
from uiprotocol.kernel.functions import FunctionRegistry
from uiprotocol.kernel.pointer import remove_pointer, resolve_path, resolve_pointer, set_pointer
from uiprotocol.kernel.protocol import ProtocolAdapter
from uiprotocol.kernel.resolver import Resolver, is_bound_value, is_function_call, resolve_value
from uiprotocol.kernel.runtime import Runtime
from uiprotocol.kernel.trust import AgentPermissions, TrustEngine, TrustPolicy
from uiprotocol.kernel.types import (
    ApplyResult,
    Command,
    Diagnostic,
    Node,
    NodePatch,
    ParseResult,
    Surface,
    TrustVerdict,
)
from uiprotocol.kernel.validation import validate_value

__all__ = [
    "AgentPermissions",
    "ApplyResult",
    "CORE_CODES",
    "Command",
    "CommandLog",
    "CommandLogEntry",
    "Diagnostic",
    "DiagnosticCodes",
    "DiagnosticError",
    "FunctionExecutionFailed",
    "FunctionRegistry",
    "HostCallbacks",
    "InvalidPointer",
    "Node",
    "NodePatch",
    "ParseResult",
    "ProtocolAdapter",
    "Resolver",
    "Runtime",
    "Surface",
    "SurfaceBinding",
    "TrustEngine",
    "TrustPolicy",
    "TrustVerdict",
    "UnknownFunction",
    "command_from_dict",
    "is_bound_value",
    "is_function_call",
    "make_data_remove",
    "make_data_set",
    "make_nodes_remove",
    "make_nodes_upsert",
    "make_surface_create",
    "make_surface_delete",
    "remove_pointer",
    "resolve_path",
    "resolve_pointer",
    "resolve_value",
    "set_pointer",
    "validate_value",
]
