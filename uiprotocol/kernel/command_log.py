"""
uiprotocol Kernel — Command Log

Append-only record of every command the runtime saw, with the trust
verdict it received. Entries are never mutated or reordered.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from uiprotocol.kernel.types import Command, TrustVerdict, now_ms


@dataclass(frozen=True)
class CommandLogEntry:
    command: Command
    verdict: TrustVerdict
    timestamp: int = field(default_factory=now_ms)

    @property
    def applied(self) -> bool:
        return self.verdict.allowed


class CommandLog:
    def __init__(self) -> None:
        self._entries: list[CommandLogEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, command: Command, verdict: TrustVerdict) -> CommandLogEntry:
        entry = CommandLogEntry(command=command, verdict=verdict)
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> tuple[CommandLogEntry, ...]:
        return tuple(self._entries)

    def by_surface(self, surface_id: str) -> list[CommandLogEntry]:
        return [e for e in self._entries if e.command.surface_id == surface_id]

    def applied(self) -> list[CommandLogEntry]:
        return [e for e in self._entries if e.verdict.allowed]

    def rejected(self) -> list[CommandLogEntry]:
        return [e for e in self._entries if not e.verdict.allowed]

    def range(self, start: int, end: int | None = None) -> list[CommandLogEntry]:
        """Slice semantics: entries[start:end]."""
        return self._entries[start:end]
