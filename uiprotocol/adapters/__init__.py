"""
uiprotocol Adapters — wire protocols on top of the kernel.

  a2ui         — incremental v0.9 agent messages
  json_render  — one-shot nested tree specs
  jsonl        — chunked JSONL message streams
"""

from uiprotocol.adapters.a2ui import A2UI_CODES, A2UIAdapter, collect_child_component_ids
from uiprotocol.adapters.json_render import JSON_RENDER_CODES, JsonRenderAdapter
from uiprotocol.adapters.jsonl import JSONLParser, MessageStream, process_messages
from uiprotocol.kernel.runtime import Runtime


def register_default_adapters(runtime: Runtime) -> Runtime:
    """Register the built-in A2UI and json-render adapters on `runtime`."""
    runtime.register_adapter(A2UIAdapter())
    runtime.register_adapter(JsonRenderAdapter())
    return runtime


__all__ = [
    "A2UIAdapter",
    "A2UI_CODES",
    "JSONLParser",
    "JSON_RENDER_CODES",
    "JsonRenderAdapter",
    "MessageStream",
    "collect_child_component_ids",
    "process_messages",
    "register_default_adapters",
]
