"""
uiprotocol Kernel — Pointer Document

Immutable, path-addressed read/write/remove over JSON-like values.

Pointers are slash-delimited with `~0` for `~` and `~1` for `/`.
A pointer starting with "/" is absolute; anything else is resolved
against a base ("scope") pointer:

  resolve_path("./name", "/items/0")   → "/items/0/name"
  resolve_path("../1/name", "/items/0") → "/items/1/name"

set_pointer / remove_pointer never touch their input. Only the containers
along the addressed path are copied; untouched branches are shared.
"""

from __future__ import annotations

import logging
from typing import Any

from uiprotocol.kernel.diagnostics import InvalidPointer

logger = logging.getLogger(__name__)

# Largest run of null slots a single write may pad onto an array.
MAX_ARRAY_GAP = 1024

# ---------------------------------------------------------------------------
# Token encoding
# ---------------------------------------------------------------------------


def decode_token(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def encode_token(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _is_index(token: str) -> bool:
    return token.isascii() and token.isdigit()


def _tokens(pointer: str) -> list[str]:
    """Split an absolute pointer into decoded tokens. "" and "/" are the root."""
    if not pointer or pointer == "/":
        return []
    if not pointer.startswith("/"):
        raise InvalidPointer(f"Pointer must start with '/': {pointer!r}", pointer)
    return [decode_token(t) for t in pointer[1:].split("/") if t]


def _join(tokens: list[str]) -> str:
    if not tokens:
        return "/"
    return "/" + "/".join(encode_token(t) for t in tokens)


# ---------------------------------------------------------------------------
# Path algebra
# ---------------------------------------------------------------------------


def resolve_path(path: str, base: str = "/") -> str:
    """
    Resolve `path` against `base` and return a normalized absolute pointer.

    "." segments are no-ops, ".." pops one base segment, anything else is
    appended. Popping past the document root clamps at the root.
    """
    if not path or path == "/":
        return "/"
    if path.startswith("/"):
        return _join(_tokens(path))

    tokens = _tokens(base or "/")
    for segment in path.split("/"):
        if not segment or segment == ".":
            continue
        if segment == "..":
            if tokens:
                tokens.pop()
            else:
                logger.debug("resolve_path: %r escapes above the root of %r; clamped", path, base)
            continue
        tokens.append(decode_token(segment))
    return _join(tokens)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


def resolve_pointer(document: Any, pointer: str, base: str = "/", default: Any = None) -> Any:
    """
    Return the value at `pointer`, or `default` when any step is missing.
    Missing intermediate keys are not an error.
    """
    current = document
    for token in _tokens(resolve_path(pointer, base)):
        if isinstance(current, list):
            if not _is_index(token):
                return default
            index = int(token)
            if index >= len(current):
                return default
            current = current[index]
        elif isinstance(current, dict):
            if token not in current:
                return default
            current = current[token]
        else:
            return default
    return current


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


def _clone_for(current: Any, token: str) -> dict | list:
    if isinstance(current, list):
        return list(current)
    if isinstance(current, dict):
        return dict(current)
    return [] if _is_index(token) else {}


def _set(current: Any, tokens: list[str], value: Any, pointer: str) -> Any:
    if not tokens:
        return value

    head, tail = tokens[0], tokens[1:]
    container = _clone_for(current, head)

    if isinstance(container, list):
        if not _is_index(head):
            raise InvalidPointer(f"Array index must be an integer, got {head!r}", pointer)
        index = int(head)
        if index > len(container) + MAX_ARRAY_GAP:
            raise InvalidPointer(
                f"Array index {index} is more than {MAX_ARRAY_GAP} past the end (length {len(container)})", pointer
            )
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = _set(container[index], tail, value, pointer)
        return container

    container[head] = _set(container.get(head), tail, value, pointer)
    return container


def set_pointer(document: Any, pointer: str, value: Any, base: str = "/") -> Any:
    """
    Return a new document with `value` placed at `pointer`.
    Setting the root replaces the whole document.
    """
    absolute = resolve_path(pointer, base)
    tokens = _tokens(absolute)
    if not tokens:
        return value
    return _set(document, tokens, value, absolute)


def _remove(current: Any, tokens: list[str]) -> Any:
    head, tail = tokens[0], tokens[1:]

    if isinstance(current, list):
        clone = list(current)
        if not _is_index(head):
            return clone
        index = int(head)
        if index >= len(clone):
            return clone
        if not tail:
            del clone[index]
        else:
            clone[index] = _remove(clone[index], tail)
        return clone

    if not isinstance(current, dict):
        return current

    clone = dict(current)
    if not tail:
        clone.pop(head, None)
    elif head in clone:
        clone[head] = _remove(clone[head], tail)
    return clone


def remove_pointer(document: Any, pointer: str, base: str = "/") -> Any:
    """
    Return a new document without the value at `pointer`.
    Array entries are spliced out. Removing the root yields an empty record.
    """
    tokens = _tokens(resolve_path(pointer, base))
    if not tokens:
        return {}
    return _remove(document, tokens)
