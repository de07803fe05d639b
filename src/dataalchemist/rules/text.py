"""Plain-English rule statements -> typed rules.

The input is split into statements (newlines, semicolons, or whitespace after
sentence punctuation). Each statement is tried against the templates below in
a fixed order; the first template that recognizes it consumes it, producing
one rule, a note explaining why it was rejected, or both (advisory notes such
as an unknown group). A statement never yields more than one rule.

    1. co-run         "T1 and T2 run together"
    2. load-limit     "limit WorkerGroup ops to 3"
    3. slot-restrict  "ClientGroup vip needs at least 2 common slots"
                      "require 2 common slots for WorkerGroup ops"
    4. phase-window   "T3 only in phases 1-3"
    5. precedence     "global precedence 2"
    6. pattern-match  "pattern /^T-/ -> template batch params {"size": 2}"

Anything else is reported as an unrecognized statement.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Callable, Optional

import dataalchemist.normalize as normalize
import dataalchemist.state as state
from dataalchemist.log import get_logger

from .base import (
    CoRun,
    GroupSelector,
    LoadLimit,
    PatternMatch,
    PhaseWindow,
    Precedence,
    Rule,
    SlotRestriction,
)

__all__ = ["ParseResult", "split_statements", "parse_rules_from_text"]

logger = get_logger(__name__)

_SPLIT = re.compile(r"\n+|;|(?<=[.!?])\s+")
_TOKEN_EDGE = "A-Za-z0-9_%-"

_CO_RUN = re.compile(r"\b(co[-\s]?run|together|concurrently)\b", re.IGNORECASE)
_LOAD_LIMIT = re.compile(
    r"(?:limit|max)\s+WorkerGroup\s+([A-Za-z0-9_-]+)\s*(?:to|=)?\s*(-?\d+(?:\.\d+)?)",
    re.IGNORECASE,
)
_SLOT_GROUP_FIRST = re.compile(
    r"\b(ClientGroup|WorkerGroup)\s+([A-Za-z0-9_-]+).*?"
    r"(?:min(?:imum)?|at\s+least)\s*(-?\d+)\s*(?:common\s+slots?)",
    re.IGNORECASE,
)
_SLOT_NUMBER_FIRST = re.compile(
    r"(?:require|needs?)\s*(?:at\s+least\s*)?(-?\d+)\s*(?:common\s+slots?)"
    r".*\b(ClientGroup|WorkerGroup)\s+([A-Za-z0-9_-]+)",
    re.IGNORECASE,
)
_PHASES = re.compile(
    r"(?:only\s+in\s+phases|allowed\s+phases|phases)\s+([^.;]+)", re.IGNORECASE
)
_PRECEDENCE = re.compile(r"\bglobal\s+precedence\s+(\d+)", re.IGNORECASE)
_PATTERN = re.compile(
    r"pattern\s+/(.+?)/\s*->\s*template\s+([A-Za-z0-9_-]+)"
    r"(?:\s*params\s*(\{.*\}))?",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(frozen=True, slots=True)
class ParseResult:
    rules: tuple[Rule, ...]
    notes: tuple[str, ...]


@dataclass(slots=True)
class _Context:
    task_ids: list[str]
    worker_groups: frozenset[str]
    client_groups: frozenset[str]
    task_patterns: dict[str, re.Pattern]
    rules: list[Rule]
    notes: list[str]

    def mentioned_tasks(self, statement: str) -> list[str]:
        """Known task ids appearing as whole tokens, in task collection order."""
        return [tid for tid in self.task_ids if self.task_patterns[tid].search(statement)]

    def check_group(self, kind: str, group: str) -> None:
        known = self.client_groups if kind == "ClientGroup" else self.worker_groups
        if group not in known:
            self.notes.append(f'Unknown {kind} "{group}" referenced.')


def split_statements(text: str) -> list[str]:
    return [s.strip() for s in _SPLIT.split(text or "") if s and s.strip()]


def _token_pattern(task_id: str) -> re.Pattern:
    return re.compile(
        rf"(?<![{_TOKEN_EDGE}]){re.escape(task_id)}(?![{_TOKEN_EDGE}])"
    )


def _canonical_kind(kind: str) -> str:
    return "ClientGroup" if kind.lower() == "clientgroup" else "WorkerGroup"


def _as_int(text: str) -> Optional[int]:
    value = normalize.to_number(text, default=None)
    return value if isinstance(value, int) else None


# ---------- Templates ----------
# Each returns True when it consumed the statement.


def _co_run(s: str, ctx: _Context) -> bool:
    if not _CO_RUN.search(s):
        return False
    mentioned = ctx.mentioned_tasks(s)
    if len(mentioned) >= 2:
        ctx.rules.append(CoRun(tasks=tuple(mentioned)))
    else:
        ctx.notes.append(f'Co-run statement skipped (need >=2 known TaskIDs): "{s}"')
    return True


def _load_limit(s: str, ctx: _Context) -> bool:
    m = _LOAD_LIMIT.search(s)
    if not m:
        return False
    group, limit = m.group(1), _as_int(m.group(2))
    ctx.check_group("WorkerGroup", group)
    if limit is not None and limit > 0:
        ctx.rules.append(
            LoadLimit(
                target=GroupSelector(kind="WorkerGroup", value=group),
                max_slots_per_phase=limit,
            )
        )
    else:
        ctx.notes.append(f'Invalid number in load-limit: "{s}"')
    return True


def _slot_restriction(s: str, ctx: _Context) -> bool:
    m = _SLOT_GROUP_FIRST.search(s)
    if m:
        kind, group, number = m.group(1), m.group(2), m.group(3)
    else:
        m = _SLOT_NUMBER_FIRST.search(s)
        if not m:
            return False
        number, kind, group = m.group(1), m.group(2), m.group(3)
    kind = _canonical_kind(kind)
    minimum = _as_int(number)
    ctx.check_group(kind, group)
    if minimum is not None and minimum >= 0:
        ctx.rules.append(
            SlotRestriction(
                target=GroupSelector(kind=kind, value=group), min_common_slots=minimum
            )
        )
    else:
        ctx.notes.append(f'Invalid number in slot-restriction: "{s}"')
    return True


def _phase_window(s: str, ctx: _Context) -> bool:
    mentioned = ctx.mentioned_tasks(s)
    if not mentioned:
        return False
    m = _PHASES.search(s)
    if not m:
        return False
    phases = sorted(
        {p for p in normalize.parse_number_list(m.group(1)) if isinstance(p, int)}
    )
    if phases:
        ctx.rules.append(PhaseWindow(task_id=mentioned[0], allowed_phases=tuple(phases)))
    else:
        ctx.notes.append(f'No phases parsed for: "{s}"')
    return True


def _precedence(s: str, ctx: _Context) -> bool:
    m = _PRECEDENCE.search(s)
    if not m:
        return False
    ctx.rules.append(Precedence(scope="global", priority=int(m.group(1))))
    return True


def _pattern_match(s: str, ctx: _Context) -> bool:
    m = _PATTERN.search(s)
    if not m:
        return False
    params = None
    if m.group(3):
        try:
            parsed = json.loads(m.group(3))
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            params = parsed
        else:
            ctx.notes.append(f'Invalid JSON params in pattern: "{s}"')
    ctx.rules.append(PatternMatch(regex=m.group(1), template=m.group(2), params=params))
    return True


TEMPLATES: tuple[Callable[[str, _Context], bool], ...] = (
    _co_run,
    _load_limit,
    _slot_restriction,
    _phase_window,
    _precedence,
    _pattern_match,
)


def parse_rules_from_text(text: str, datasets: state.Datasets) -> ParseResult:
    """Translate free text into rules, given the current records (read-only)."""
    task_ids = datasets.task_ids()
    ctx = _Context(
        task_ids=task_ids,
        worker_groups=frozenset(datasets.worker_groups()),
        client_groups=frozenset(datasets.client_groups()),
        task_patterns={tid: _token_pattern(tid) for tid in task_ids},
        rules=[],
        notes=[],
    )

    for statement in split_statements(text):
        if not any(template(statement, ctx) for template in TEMPLATES):
            ctx.notes.append(f'Unrecognized statement: "{statement}"')

    logger.debug(
        "Parsed %d rule(s) with %d note(s) from text", len(ctx.rules), len(ctx.notes)
    )
    return ParseResult(rules=tuple(ctx.rules), notes=tuple(ctx.notes))
