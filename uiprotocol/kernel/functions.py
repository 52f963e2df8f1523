"""
uiprotocol Kernel — Function Registry

Named, pure executors invoked by function-call values ({"call", "args"})
and by validation checks. Every executor takes one argument: the record of
already-resolved arguments.

Built-ins:
  presence   — required
  patterns   — regex, email
  logic      — and, or, not, equals, greaterThan, lessThan
  formatting — concat, formatString, formatNumber
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable

from uiprotocol.kernel.diagnostics import FunctionExecutionFailed, UnknownFunction

logger = logging.getLogger(__name__)

FunctionExecutor = Callable[[dict[str, Any]], Any]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_TEMPLATE_RE = re.compile(r"\{([^}]+)\}")

_REGEX_FLAGS: dict[str, int] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}

# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _to_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return math.nan
    return math.nan


def _to_text(value: Any) -> str:
    """String form matching what a JSON producer would expect ("true", "3", "")."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Built-in executors
# ---------------------------------------------------------------------------


def _required(args: dict[str, Any]) -> bool:
    value = args.get("value")
    if value is None:
        return False
    if isinstance(value, str):
        return len(value.strip()) > 0
    if isinstance(value, list):
        return len(value) > 0
    return True


def _regex(args: dict[str, Any]) -> bool:
    value = args.get("value")
    pattern = args.get("pattern")
    if not isinstance(value, str) or not isinstance(pattern, str):
        return False
    flags = 0
    for letter in args.get("flags") or "":
        flags |= _REGEX_FLAGS.get(letter, 0)
    try:
        return re.search(pattern, value, flags) is not None
    except re.error:
        return False


def _email(args: dict[str, Any]) -> bool:
    value = args.get("value")
    return isinstance(value, str) and _EMAIL_RE.match(value) is not None


def _concat(args: dict[str, Any]) -> str:
    separator = args.get("separator")
    glue = separator if isinstance(separator, str) else ""
    return glue.join(_to_text(entry) for entry in _to_list(args.get("values")))


def _format_string(args: dict[str, Any]) -> str:
    template = args.get("template")
    if not isinstance(template, str):
        return ""
    values = args.get("values")
    if not isinstance(values, dict):
        return template
    return _TEMPLATE_RE.sub(lambda m: _to_text(values.get(m.group(1).strip())), template)


def _format_number(args: dict[str, Any]) -> str:
    """
    Grouped decimal formatting. Supported options:
    minimumFractionDigits, maximumFractionDigits (default 3), useGrouping.
    """
    number = _to_number(args.get("value"))
    if math.isnan(number):
        return ""
    options = args.get("options") if isinstance(args.get("options"), dict) else {}
    min_digits = int(options.get("minimumFractionDigits", 0))
    max_digits = int(options.get("maximumFractionDigits", max(min_digits, 3)))
    max_digits = max(max_digits, min_digits)
    grouping = "," if options.get("useGrouping", True) else ""

    text = f"{number:{grouping}.{max_digits}f}"
    if max_digits > min_digits and "." in text:
        whole, frac = text.split(".")
        frac = frac.rstrip("0")
        if len(frac) < min_digits:
            frac = frac.ljust(min_digits, "0")
        text = f"{whole}.{frac}" if frac else whole
    return text


def _and(args: dict[str, Any]) -> bool:
    return all(bool(v) for v in _to_list(args.get("values")))


def _or(args: dict[str, Any]) -> bool:
    return any(bool(v) for v in _to_list(args.get("values")))


def _not(args: dict[str, Any]) -> bool:
    return not bool(args.get("value"))


def _equals(args: dict[str, Any]) -> bool:
    left, right = args.get("left"), args.get("right")
    # Booleans never equal numbers.
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _greater_than(args: dict[str, Any]) -> bool:
    return _to_number(args.get("left")) > _to_number(args.get("right"))


def _less_than(args: dict[str, Any]) -> bool:
    return _to_number(args.get("left")) < _to_number(args.get("right"))


BUILTIN_FUNCTIONS: dict[str, FunctionExecutor] = {
    "required": _required,
    "regex": _regex,
    "email": _email,
    "concat": _concat,
    "formatString": _format_string,
    "formatNumber": _format_number,
    "and": _and,
    "or": _or,
    "not": _not,
    "equals": _equals,
    "greaterThan": _greater_than,
    "lessThan": _less_than,
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class FunctionRegistry:
    """
    Mutable name → executor mapping, seeded with the built-ins.

    Overriding a built-in is allowed; `on_builtin_override` is told about it
    so the caller can decide whether that is fatal.
    """

    def __init__(
        self,
        entries: dict[str, FunctionExecutor] | None = None,
        *,
        on_builtin_override: Callable[[str], None] | None = None,
    ) -> None:
        self._handlers: dict[str, FunctionExecutor] = dict(BUILTIN_FUNCTIONS)
        self._builtin_names = frozenset(BUILTIN_FUNCTIONS)
        self._on_builtin_override = on_builtin_override
        for name, executor in (entries or {}).items():
            self.register(name, executor)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def has(self, name: str) -> bool:
        return name in self._handlers

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def register(self, name: str, executor: FunctionExecutor) -> None:
        if name in self._builtin_names:
            logger.info("FunctionRegistry: overriding built-in function %r", name)
            if self._on_builtin_override is not None:
                self._on_builtin_override(name)
        self._handlers[name] = executor

    def execute(self, name: str, args: dict[str, Any]) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownFunction(name)
        try:
            return handler(args)
        except Exception as exc:
            raise FunctionExecutionFailed(name, exc) from exc
