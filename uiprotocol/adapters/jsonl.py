"""
JSONL message streams.

Agents stream one protocol message per line. JSONLParser buffers partial
chunks until newlines and skips malformed lines with a warning.
MessageStream feeds each complete message through a runtime.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from uiprotocol.kernel.bindings import HostCallbacks
from uiprotocol.kernel.protocol import ProtocolAdapter
from uiprotocol.kernel.runtime import Runtime
from uiprotocol.kernel.types import ProcessResult

logger = logging.getLogger(__name__)


class JSONLParser:
    """
    Parses streaming JSONL.

    Accumulates partial chunks in a buffer, emits complete parsed lines
    as they become available. Skips malformed JSON with a warning log.
    """

    def __init__(self) -> None:
        self.buffer = ""
        self.skipped = 0

    def _decode(self, text: str, what: str) -> list[Any]:
        try:
            return [json.loads(text)]
        except json.JSONDecodeError:
            self.skipped += 1
            logger.warning("JSONLParser: skipping malformed %s: %r", what, text[:200])
            return []

    def feed(self, chunk: str) -> list[Any]:
        """
        Feed a text chunk (may be partial), return any complete parsed lines.

        Args:
            chunk: Raw text from the agent stream

        Returns:
            One decoded JSON value per complete, well-formed line
        """
        self.buffer += chunk
        messages: list[Any] = []
        while "\n" in self.buffer:
            line, self.buffer = self.buffer.split("\n", 1)
            stripped = line.strip()
            if stripped:
                messages.extend(self._decode(stripped, "line"))
        return messages

    def flush(self) -> list[Any]:
        """
        Flush any remaining content in the buffer as a final line.

        Call this after the stream ends to handle input with no trailing newline.
        """
        stripped = self.buffer.strip()
        self.buffer = ""
        if not stripped:
            return []
        return self._decode(stripped, "final chunk")


class MessageStream:
    """Parses a chunked JSONL stream and applies every message as it completes."""

    def __init__(self, runtime: Runtime, adapter: ProtocolAdapter | str, agent_id: str | None = None) -> None:
        self.runtime = runtime
        self.adapter = adapter
        self.agent_id = agent_id
        self.parser = JSONLParser()

    def _process(self, messages: list[Any]) -> list[ProcessResult]:
        return [self.runtime.process_message(self.adapter, message, self.agent_id) for message in messages]

    def feed(self, chunk: str) -> list[ProcessResult]:
        return self._process(self.parser.feed(chunk))

    def flush(self) -> list[ProcessResult]:
        return self._process(self.parser.flush())


def process_messages(
    runtime: Runtime,
    adapter: ProtocolAdapter | str,
    raw: list[Any] | str,
    *,
    agent_id: str | None = None,
    callbacks: HostCallbacks | None = None,
) -> list[ProcessResult]:
    """
    Apply a batch of messages in order.

    `raw` is either a list of messages or JSONL text. Text lines are handed
    to the adapter undecoded, so a malformed line comes back as that
    adapter's INVALID_JSON diagnostic instead of being skipped. Parse and
    apply diagnostics are routed to `callbacks` by severity.
    """
    if isinstance(raw, str):
        messages: list[Any] = [line for line in (line.strip() for line in raw.splitlines()) if line]
    else:
        messages = list(raw)

    results: list[ProcessResult] = []
    for message in messages:
        result = runtime.process_message(adapter, message, agent_id)
        if callbacks is not None:
            callbacks.report(result.parse_result.warnings)
            callbacks.report(result.parse_result.errors)
            if result.apply_result is not None:
                callbacks.report(result.apply_result.diagnostics)
        results.append(result)
    return results
