"""
uiprotocol Kernel — Child Reference Collection

Pruning walks the node table from "root" using a collector: a function
node → child ids. Protocols with richer nesting (single child slots,
arrays of objects with child fields) register their own collector.
"""

from __future__ import annotations

from collections import deque

from uiprotocol.kernel.types import ROOT_ID, ChildRefCollector, Node


def default_child_refs(node: Node) -> list[str]:
    return list(node.children or [])


def reachable_ids(nodes: dict[str, Node], collector: ChildRefCollector = default_child_refs) -> set[str]:
    """Breadth-first reachable set from the root. Empty when there is no root."""
    if ROOT_ID not in nodes:
        return set()

    visited: set[str] = set()
    queue: deque[str] = deque([ROOT_ID])
    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        node = nodes.get(node_id)
        if node is None:
            continue
        for child_id in collector(node):
            if child_id not in visited:
                queue.append(child_id)
    return visited & nodes.keys()
