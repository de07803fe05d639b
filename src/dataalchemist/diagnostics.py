"""Lookup structures over a validation pass.

The index maps ``entity:id:field`` (or ``entity:id`` for findings without a
field) to every diagnostic sharing that key, so a grid can fetch the findings
for one cell without scanning the whole list.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

import dataalchemist.state as state

__all__ = ["diagnostic_key", "build_index", "lookup", "Summary", "summarize", "has_blocking"]

ErrorIndex = dict[str, list[state.Diagnostic]]


def diagnostic_key(entity: str, record_id: str, field_name: Optional[str] = None) -> str:
    key = f"{entity}:{record_id}"
    return f"{key}:{field_name}" if field_name else key


def build_index(diagnostics: Iterable[state.Diagnostic]) -> ErrorIndex:
    index: ErrorIndex = {}
    for diag in diagnostics:
        index.setdefault(diagnostic_key(diag.entity, diag.id, diag.field), []).append(diag)
    return index


def lookup(
    index: ErrorIndex, entity: str, record_id: str, field_name: Optional[str] = None
) -> list[state.Diagnostic]:
    return index.get(diagnostic_key(entity, record_id, field_name), [])


@dataclass(frozen=True, slots=True)
class Summary:
    """Counts of a validation pass, per severity and per subject entity."""

    total: int
    by_severity: dict[str, int] = field(default_factory=dict)
    by_entity: dict[str, int] = field(default_factory=dict)

    @property
    def errors(self) -> int:
        return self.by_severity.get("error", 0)

    @property
    def warnings(self) -> int:
        return self.by_severity.get("warning", 0)


def summarize(diagnostics: Iterable[state.Diagnostic]) -> Summary:
    diagnostics = list(diagnostics)
    return Summary(
        total=len(diagnostics),
        by_severity=dict(Counter(d.severity for d in diagnostics)),
        by_entity=dict(Counter(d.entity for d in diagnostics)),
    )


def has_blocking(diagnostics: Iterable[state.Diagnostic]) -> bool:
    """True when any finding is an error, which should prevent export."""
    return any(d.severity == "error" for d in diagnostics)
