"""
Drifters data models.

Defines the transient values passed between the resolver, collector,
merger and section codec.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MachineVersion:
    """One machine's pushed copy of one file."""

    content: str
    committed_at: int | None = None  # Unix seconds of the last commit touching the copy

    @property
    def effective_timestamp(self) -> int:
        # Copies without history count as the oldest possible.
        return self.committed_at or 0


@dataclass(frozen=True)
class SyncedSpan:
    """Text that replicates between machines."""

    text: str


@dataclass(frozen=True)
class LocalOnlySpan:
    """An exclude section, tag lines included.

    Owned by the local file: the codec only ever copies this text out of
    local content, never out of a replicated copy that has a local version.
    """

    text: str
    start_line: int
    stop_line: int

    @property
    def body(self) -> str:
        lines = self.text.splitlines(keepends=True)
        return "".join(lines[1:-1])


Span = SyncedSpan | LocalOnlySpan
