"""Plain-English record search.

Recognized filters (case-insensitive), each applied only to its own entity:

- tasks:   ``duration > n``, ``duration < n``, ``preferred phases include n``
- clients: ``priority [level] [is|=|>=|>|<=|<] n``, kept when priority >= n
- workers: ``skill <word>`` or ``skills <word>``

Filters that do not apply leave the collection unchanged, so an empty or
unrelated query returns every record of the target entity.
"""

from __future__ import annotations

import re
from typing import Any

import dataalchemist.state as state

_DURATION_GT = re.compile(r"duration\s*>\s*(\d+)")
_DURATION_LT = re.compile(r"duration\s*<\s*(\d+)")
_PHASE_INCLUDES = re.compile(r"preferred\s*phases?.*?(?:include|has|having).*?(\d+)")
_PRIORITY = re.compile(r"priority\s*(?:level)?\s*(?:=|is|>=|>|<=|<)?\s*(\d+)")
_SKILL = re.compile(r"skills?\s+(\w+)")


def _num(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return float("nan")
    return float(value)


def filter_records(datasets: state.Datasets, target: state.EntityKind, query: str) -> list:
    """Return the records of `target` matching every filter found in `query`."""
    if target not in ("clients", "workers", "tasks"):
        raise ValueError(f"Unknown entity '{target}'")
    q = (query or "").lower()
    records = list(getattr(datasets, target))

    if target == "tasks":
        m = _DURATION_GT.search(q)
        if m:
            records = [t for t in records if _num(t.duration) > int(m.group(1))]
        m = _DURATION_LT.search(q)
        if m:
            records = [t for t in records if _num(t.duration) < int(m.group(1))]
        m = _PHASE_INCLUDES.search(q)
        if m:
            phase = int(m.group(1))
            records = [t for t in records if phase in (t.preferred_phases or ())]

    elif target == "clients":
        m = _PRIORITY.search(q)
        if m:
            records = [c for c in records if _num(c.priority_level) >= int(m.group(1))]

    else:
        m = _SKILL.search(q)
        if m:
            # the query is lower-cased, skills are compared the same way
            skill = m.group(1)
            records = [
                w for w in records if skill in {str(s).lower() for s in (w.skills or ())}
            ]

    return records
