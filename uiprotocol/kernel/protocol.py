"""
uiprotocol Kernel — Protocol Adapter interface

One adapter per wire protocol. An adapter turns one raw message into an
ordered list of commands, and knows how its own nodes reference children.
"""

from __future__ import annotations

from typing import Any

from uiprotocol.kernel.child_refs import default_child_refs
from uiprotocol.kernel.types import Node, ParseResult


class ProtocolAdapter:
    """
    Abstract adapter.
    Subclasses set `protocol` and implement `parse`; they may override
    `collect_child_ids` when children live somewhere other than `children`.
    """

    protocol: str = ""

    def parse(self, raw: Any) -> ParseResult:
        """Translate one raw message. Never raises for malformed input."""
        raise NotImplementedError

    def collect_child_ids(self, node: Node) -> list[str]:
        return default_child_refs(node)
