from __future__ import annotations

from typing import Any, Optional

import dataalchemist.normalize as normalize
from dataalchemist.log import get_logger

from .base import (
    CoRun,
    GroupKind,
    GroupSelector,
    LoadLimit,
    PatternMatch,
    PhaseWindow,
    Precedence,
    SlotRestriction,
)

logger = get_logger(__name__)

# Structured construction of rules from form fields. Every builder returns None
# for input that cannot make a well-formed rule; nothing here raises.


def _count(value: Any) -> Optional[int]:
    number = normalize.to_number(value, default=None)
    if isinstance(number, int):
        return number
    return None


def build_co_run(task_ids: Any) -> Optional[CoRun]:
    """Task ids as a list or comma-separated text; at least two distinct ids."""
    tasks = tuple(dict.fromkeys(normalize.parse_list(task_ids)))
    if len(tasks) < 2:
        logger.debug("Co-run needs at least two task ids, got %r", task_ids)
        return None
    return CoRun(tasks=tasks)


def build_load_limit(group: Any, max_slots_per_phase: Any) -> Optional[LoadLimit]:
    name = normalize.to_text(group)
    limit = _count(max_slots_per_phase)
    if not name or limit is None or limit <= 0:
        return None
    return LoadLimit(
        target=GroupSelector(kind="WorkerGroup", value=name),
        max_slots_per_phase=limit,
    )


def build_phase_window(task_id: Any, phases: Any) -> Optional[PhaseWindow]:
    """Phases as ``1-3``, ``1,3,5`` or ``[1,3,5]``; stored deduplicated and sorted."""
    tid = normalize.to_text(task_id)
    allowed = sorted({p for p in normalize.parse_number_list(phases) if isinstance(p, int)})
    if not tid or not allowed:
        return None
    return PhaseWindow(task_id=tid, allowed_phases=tuple(allowed))


def build_slot_restriction(
    group: Any, min_common_slots: Any, kind: GroupKind = "WorkerGroup"
) -> Optional[SlotRestriction]:
    name = normalize.to_text(group)
    minimum = _count(min_common_slots)
    if not name or minimum is None or minimum < 0:
        return None
    if kind not in ("ClientGroup", "WorkerGroup"):
        return None
    return SlotRestriction(
        target=GroupSelector(kind=kind, value=name), min_common_slots=minimum
    )


def build_precedence(priority: Any, scope: str = "global") -> Optional[Precedence]:
    value = _count(priority)
    if value is None or scope not in ("global", "specific"):
        return None
    return Precedence(scope=scope, priority=value)


def build_pattern_match(
    regex: Any, template: Any, params: Any = None
) -> Optional[PatternMatch]:
    """`params` may be a mapping or JSON object text; invalid params yield no rule."""
    body = normalize.to_text(regex)
    if len(body) >= 2 and body.startswith("/") and body.endswith("/"):
        body = body[1:-1]
    name = normalize.to_text(template)
    if not body or not name:
        return None
    parsed = None
    if not normalize.is_blank(params):
        parsed = normalize.parse_attributes(params)
        if parsed is None:
            return None
    return PatternMatch(regex=body, template=name, params=parsed)
