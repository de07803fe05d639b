"""Validation engine.

`validate(datasets, rules)` runs the checks listed in `CHECKS`, in that order,
and concatenates what they report. Every check is a generator over the three
record collections and the rule list; within a check, findings follow input
order (clients, then workers, then tasks, then rules). The pass is pure and
total: records built by hand may hold any value in any field and are reported,
never rejected.

Severity policy: structural, range and reference problems are errors;
capacity, overload, feasibility and phase-window overlap are warnings.
"""

from __future__ import annotations

import json
import math
from collections import Counter
from numbers import Integral, Real
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

import dataalchemist.state as state
from dataalchemist.log import get_logger
from dataalchemist.rules.base import (
    CoRun,
    LoadLimit,
    PhaseWindow,
    Rule,
    SlotRestriction,
)

__all__ = ["CHECKS", "validate", "validate_field", "find_co_run_cycle"]

logger = get_logger(__name__)

Check = Callable[[state.Datasets, Sequence[Rule]], Iterator[state.Diagnostic]]


# ---------- Value helpers ----------


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, Real)
        and not isinstance(value, bool)
        and math.isfinite(float(value))
    )


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Integral):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def _int_in(value: Any, low: int, high: Optional[int] = None) -> bool:
    if not _is_int(value):
        return False
    return low <= value and (high is None or value <= high)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _seq(value: Any) -> Optional[Sequence[Any]]:
    return value if isinstance(value, (list, tuple)) else None


def _strings(value: Any) -> list[str]:
    return [v for v in (_seq(value) or ()) if isinstance(v, str)]


def _phases(value: Any) -> list[int]:
    """Positive integer phases of a list field, deduplicated, input order."""
    out = dict.fromkeys(int(v) for v in (_seq(value) or ()) if _int_in(v, 1))
    return list(out)


def _row_id(record_id: Any, index: int) -> str:
    return f"row-{index + 1}" if _blank(record_id) else str(record_id).strip()


def _rule_id(index: int) -> str:
    return f"rule-{index}"


def _err(entity, rid, field, message) -> state.Diagnostic:
    return state.Diagnostic(id=rid, entity=entity, field=field, message=message)


def _warn(entity, rid, field, message) -> state.Diagnostic:
    return state.Diagnostic(
        id=rid, entity=entity, field=field, message=message, severity="warning"
    )


# ---------- a. Required fields ----------


def required_fields(d: state.Datasets, rules: Sequence[Rule]):
    for i, c in enumerate(d.clients):
        rid = _row_id(c.client_id, i)
        if _blank(c.client_id):
            yield _err("clients", rid, "ClientID", "Missing required ClientID")
        if _blank(c.name):
            yield _err("clients", rid, "ClientName", "Missing required ClientName")
        if c.priority_level is None:
            yield _err("clients", rid, "PriorityLevel", "Missing required PriorityLevel")

    for i, w in enumerate(d.workers):
        rid = _row_id(w.worker_id, i)
        if _blank(w.worker_id):
            yield _err("workers", rid, "WorkerID", "Missing required WorkerID")
        if _blank(w.name):
            yield _err("workers", rid, "WorkerName", "Missing required WorkerName")
        if not w.skills:
            yield _err("workers", rid, "Skills", "Missing required Skills")
        if not w.available_slots:
            yield _err("workers", rid, "AvailableSlots", "Missing required AvailableSlots")
        if w.max_load_per_phase is None:
            yield _err(
                "workers", rid, "MaxLoadPerPhase", "Missing required MaxLoadPerPhase"
            )

    for i, t in enumerate(d.tasks):
        rid = _row_id(t.task_id, i)
        if _blank(t.task_id):
            yield _err("tasks", rid, "TaskID", "Missing required TaskID")
        if _blank(t.name):
            yield _err("tasks", rid, "TaskName", "Missing required TaskName")
        if t.duration is None:
            yield _err("tasks", rid, "Duration", "Missing required Duration")
        if not t.required_skills:
            yield _err("tasks", rid, "RequiredSkills", "Missing required RequiredSkills")
        if t.max_concurrent is None:
            yield _err("tasks", rid, "MaxConcurrent", "Missing required MaxConcurrent")


# ---------- b. Duplicate ids ----------


def duplicate_ids(d: state.Datasets, rules: Sequence[Rule]):
    collections = (
        ("clients", "ClientID", [c.client_id for c in d.clients]),
        ("workers", "WorkerID", [w.worker_id for w in d.workers]),
        ("tasks", "TaskID", [t.task_id for t in d.tasks]),
    )
    for entity, field, ids in collections:
        counts = Counter(str(rid).strip() for rid in ids if not _blank(rid))
        for rid, count in counts.items():
            if count > 1:
                yield _err(entity, rid, field, f"Duplicate ID found {count} times")


# ---------- c. Malformed lists ----------


def malformed_lists(d: state.Datasets, rules: Sequence[Rule]):
    for i, c in enumerate(d.clients):
        value = c.requested_task_ids
        if value and (_seq(value) is None or len(_strings(value)) != len(value)):
            yield _err(
                "clients",
                _row_id(c.client_id, i),
                "RequestedTaskIDs",
                "RequestedTaskIDs must be array of strings",
            )

    for i, w in enumerate(d.workers):
        rid = _row_id(w.worker_id, i)
        if w.skills and (_seq(w.skills) is None or len(_strings(w.skills)) != len(w.skills)):
            yield _err("workers", rid, "Skills", "Skills must be array of strings")
        slots = w.available_slots
        if slots and (_seq(slots) is None or not all(_int_in(p, 1) for p in slots)):
            yield _err(
                "workers",
                rid,
                "AvailableSlots",
                "AvailableSlots must be array of positive integers",
            )

    for i, t in enumerate(d.tasks):
        rid = _row_id(t.task_id, i)
        skills = t.required_skills
        if skills and (_seq(skills) is None or len(_strings(skills)) != len(skills)):
            yield _err(
                "tasks", rid, "RequiredSkills", "RequiredSkills must be array of strings"
            )
        phases = t.preferred_phases
        if phases and (_seq(phases) is None or not all(_int_in(p, 1) for p in phases)):
            yield _err(
                "tasks",
                rid,
                "PreferredPhases",
                "PreferredPhases must be array of positive integers",
            )


# ---------- d. Out-of-range values ----------


def out_of_range(d: state.Datasets, rules: Sequence[Rule]):
    for i, c in enumerate(d.clients):
        if c.priority_level is not None and not _int_in(c.priority_level, 1, 5):
            yield _err(
                "clients",
                _row_id(c.client_id, i),
                "PriorityLevel",
                "PriorityLevel must be integer between 1-5",
            )

    for i, w in enumerate(d.workers):
        rid = _row_id(w.worker_id, i)
        if w.max_load_per_phase is not None and not _int_in(w.max_load_per_phase, 1):
            yield _err(
                "workers", rid, "MaxLoadPerPhase", "MaxLoadPerPhase must be integer >= 1"
            )
        if w.qualification_level is not None and not _int_in(
            w.qualification_level, 1, 10
        ):
            yield _err(
                "workers",
                rid,
                "QualificationLevel",
                "QualificationLevel must be integer between 1-10",
            )

    for i, t in enumerate(d.tasks):
        rid = _row_id(t.task_id, i)
        if t.duration is not None and not _int_in(t.duration, 1):
            yield _err("tasks", rid, "Duration", "Duration must be integer >= 1")
        if t.max_concurrent is not None and not _int_in(t.max_concurrent, 1):
            yield _err(
                "tasks", rid, "MaxConcurrent", "MaxConcurrent must be integer >= 1"
            )


# ---------- e. Embedded JSON ----------


def _attributes_problem(value: Any, text: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        return None
    if value is None:
        if _blank(text):
            return None
        value = text
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return "AttributesJSON contains invalid JSON"
    if not isinstance(value, dict):
        return "AttributesJSON must be a JSON object"
    return None


def broken_json(d: state.Datasets, rules: Sequence[Rule]):
    for i, c in enumerate(d.clients):
        problem = _attributes_problem(c.attributes, c.attributes_text)
        if problem:
            yield _err("clients", _row_id(c.client_id, i), "AttributesJSON", problem)


# ---------- f. Unknown references ----------


def unknown_references(d: state.Datasets, rules: Sequence[Rule]):
    task_ids = set(d.task_ids())
    groups = {
        "WorkerGroup": set(d.worker_groups()),
        "ClientGroup": set(d.client_groups()),
    }

    for i, c in enumerate(d.clients):
        for tid in _strings(c.requested_task_ids):
            if tid and tid not in task_ids:
                yield _err(
                    "clients",
                    _row_id(c.client_id, i),
                    "RequestedTaskIDs",
                    f"Unknown TaskID reference: {tid}",
                )

    for idx, rule in enumerate(rules):
        rid = _rule_id(idx)
        if isinstance(rule, PhaseWindow):
            if rule.task_id not in task_ids:
                yield _err(
                    "rules",
                    rid,
                    "taskId",
                    f"Phase window rule references unknown TaskID: {rule.task_id}",
                )
        elif isinstance(rule, CoRun):
            for tid in _seq(rule.tasks) or ():
                if tid not in task_ids:
                    yield _err(
                        "rules",
                        rid,
                        "tasks",
                        f"Co-run rule references unknown TaskID: {tid}",
                    )
        elif isinstance(rule, (LoadLimit, SlotRestriction)):
            kind, value = rule.target.kind, rule.target.value
            if value not in groups.get(kind, ()):
                label = "Load-limit" if isinstance(rule, LoadLimit) else "Slot-restriction"
                yield _err(
                    "rules",
                    rid,
                    "target",
                    f"{label} rule references unknown {kind}: {value}",
                )


# ---------- g. Circular co-run groups ----------


def _co_run_graph(rules: Sequence[Rule]) -> dict[str, dict[str, list[int]]]:
    """Adjacency of the co-run graph: node -> neighbour -> rule indices.

    Every pair inside one CoRun rule is linked both ways. Nodes and neighbours
    keep the order in which task ids first appear across the rules.
    """
    graph: dict[str, dict[str, list[int]]] = {}
    for idx, rule in enumerate(rules):
        if not isinstance(rule, CoRun):
            continue
        members = list(dict.fromkeys(str(t) for t in (_seq(rule.tasks) or ()) if t))
        for a in members:
            edges = graph.setdefault(a, {})
            for b in members:
                if a != b:
                    edges.setdefault(b, []).append(idx)
    return graph


def _cycle_steps(graph, node, start, rank, on_path, used, path):
    """Edges leaving `node` that may extend the current path, by task rank."""
    for child, rule_ids in sorted(graph[node].items(), key=lambda kv: rank[kv[0]]):
        if rank[child] < rank[start]:
            continue
        for r in rule_ids:
            if r in used:
                continue
            if child == start:
                if len(path) >= 3:
                    yield child, r
            elif child not in on_path:
                yield child, r


def find_co_run_cycle(rules: Sequence[Rule]) -> Optional[list[str]]:
    """Return the first co-run cycle as a closed path, e.g. ``[A, B, C, A]``.

    A cycle visits at least three distinct tasks and links each consecutive
    pair through a different CoRun rule. Tasks listed together in one rule
    are one group, and two rules over the same pair add no cycle. Whether a
    cycle is found does not depend on rule order; the path reported starts at
    its task that appears first and prefers earlier tasks at every step.

    Depth-first search with an explicit stack, one search per start task,
    restricted to tasks that appear no earlier than the start.
    """
    graph = _co_run_graph(rules)
    rank = {node: i for i, node in enumerate(graph)}

    for start in graph:
        path = [start]
        via: list[int] = []
        on_path = {start}
        used: set[int] = set()
        frames = [_cycle_steps(graph, start, start, rank, on_path, used, path)]

        while frames:
            try:
                child, rule = next(frames[-1])
            except StopIteration:
                frames.pop()
                if via:
                    used.discard(via.pop())
                    on_path.discard(path.pop())
                continue

            if child == start:
                return path + [start]

            path.append(child)
            on_path.add(child)
            via.append(rule)
            used.add(rule)
            frames.append(_cycle_steps(graph, child, start, rank, on_path, used, path))

    return None


def circular_co_runs(d: state.Datasets, rules: Sequence[Rule]):
    cycle = find_co_run_cycle(rules)
    if cycle:
        yield _err(
            "rules",
            "→".join(cycle),
            None,
            f"Circular co-run dependency detected: {' → '.join(cycle)}",
        )


# ---------- h. Phase-window vs. preferred phases ----------


def phase_window_conflicts(d: state.Datasets, rules: Sequence[Rule]):
    tasks: dict[str, state.TaskRecord] = {}
    for t in d.tasks:
        tasks.setdefault(str(t.task_id), t)

    for idx, rule in enumerate(rules):
        if not isinstance(rule, PhaseWindow):
            continue
        task = tasks.get(rule.task_id)
        if task is None or _seq(task.preferred_phases) is None:
            continue
        if not set(_seq(rule.allowed_phases) or ()) & set(_phases(task.preferred_phases)):
            yield _warn(
                "rules",
                _rule_id(idx),
                "phaseWindow",
                f"Phase window rule for {rule.task_id} has no overlap "
                "with task's PreferredPhases",
            )


# ---------- i. Overloaded workers ----------


def overloaded_workers(d: state.Datasets, rules: Sequence[Rule]):
    for i, w in enumerate(d.workers):
        slots = _seq(w.available_slots)
        load = w.max_load_per_phase
        if slots is None or not _is_number(load):
            continue
        if load > len(slots):
            yield _warn(
                "workers",
                _row_id(w.worker_id, i),
                "MaxLoadPerPhase",
                f"MaxLoadPerPhase ({load}) exceeds available slots ({len(slots)})",
            )


# ---------- j. Phase-slot saturation ----------


def phase_saturation(d: state.Datasets, rules: Sequence[Rule]):
    capacity: dict[int, int] = {}
    for w in d.workers:
        load = int(w.max_load_per_phase) if _int_in(w.max_load_per_phase, 1) else 0
        for p in _phases(w.available_slots):
            capacity[p] = capacity.get(p, 0) + load

    demand: dict[int, int] = {p: 0 for p in capacity}
    for t in d.tasks:
        if not _int_in(t.duration, 1):
            continue
        for p in _phases(t.preferred_phases):
            if p in demand:
                demand[p] += int(t.duration)

    for phase in sorted(demand):
        if demand[phase] > capacity[phase]:
            yield _warn(
                "global",
                f"phase-{phase}",
                "Phase",
                f"Phase {phase}: total task demand ({demand[phase]}) "
                f"exceeds worker capacity ({capacity[phase]})",
            )


# ---------- k. Skill coverage ----------


def skill_coverage(d: state.Datasets, rules: Sequence[Rule]):
    offered = {s for w in d.workers for s in _strings(w.skills)}
    for i, t in enumerate(d.tasks):
        for skill in dict.fromkeys(_strings(t.required_skills)):
            if skill not in offered:
                yield _err(
                    "tasks",
                    _row_id(t.task_id, i),
                    "RequiredSkills",
                    f"No workers have required skill: {skill}",
                )


# ---------- l. Max-concurrency feasibility ----------


def concurrency_feasibility(d: state.Datasets, rules: Sequence[Rule]):
    worker_skills = [set(_strings(w.skills)) for w in d.workers if _seq(w.skills) is not None]
    for i, t in enumerate(d.tasks):
        if not _int_in(t.max_concurrent, 1) or _seq(t.required_skills) is None:
            continue
        required = set(_strings(t.required_skills))
        qualified = sum(1 for skills in worker_skills if required <= skills)
        if qualified < t.max_concurrent:
            yield _warn(
                "tasks",
                _row_id(t.task_id, i),
                "MaxConcurrent",
                f"MaxConcurrent ({int(t.max_concurrent)}) exceeds "
                f"qualified workers ({qualified})",
            )


CHECKS: tuple[Check, ...] = (
    required_fields,
    duplicate_ids,
    malformed_lists,
    out_of_range,
    broken_json,
    unknown_references,
    circular_co_runs,
    phase_window_conflicts,
    overloaded_workers,
    phase_saturation,
    skill_coverage,
    concurrency_feasibility,
)

assert len({fn.__name__ for fn in CHECKS}) == len(CHECKS), "Duplicate check in CHECKS"


def validate(
    datasets: state.Datasets, rules: Sequence[Rule] = ()
) -> list[state.Diagnostic]:
    """Run every check in order and return all findings."""
    diagnostics: list[state.Diagnostic] = []
    for check in CHECKS:
        diagnostics.extend(check(datasets, rules))
    logger.debug(
        "Validated %d clients, %d workers, %d tasks, %d rules: %d finding(s)",
        len(datasets.clients),
        len(datasets.workers),
        len(datasets.tasks),
        len(rules),
        len(diagnostics),
    )
    return diagnostics


# ---------- Single-field checks (live cell edits) ----------


def validate_field(entity: str, field: str, value: Any) -> list[state.Diagnostic]:
    """Check one edited cell before the full pass runs; subject id is ``temp``."""
    rid = "temp"
    out: list[state.Diagnostic] = []

    def flag(message: str) -> None:
        out.append(_err(entity, rid, field, message))

    def as_number(v: Any) -> Any:
        if isinstance(v, str):
            try:
                return float(v.strip())
            except ValueError:
                return v
        return v

    if entity == "clients":
        if field == "PriorityLevel" and value is not None:
            if not _int_in(as_number(value), 1, 5):
                flag("PriorityLevel must be integer between 1-5")
        if field == "AttributesJSON" and isinstance(value, str) and value.strip():
            problem = _attributes_problem(value, None)
            if problem:
                flag(problem)

    elif entity == "workers":
        if field == "MaxLoadPerPhase" and value is not None:
            if not _int_in(as_number(value), 1):
                flag("MaxLoadPerPhase must be integer >= 1")
        if field == "AvailableSlots" and value:
            if _seq(value) is None or not all(_int_in(p, 1) for p in value):
                flag("AvailableSlots must be array of positive integers")

    elif entity == "tasks":
        if field == "Duration" and value is not None:
            if not _int_in(as_number(value), 1):
                flag("Duration must be integer >= 1")
        if field == "MaxConcurrent" and value is not None:
            if not _int_in(as_number(value), 1):
                flag("MaxConcurrent must be integer >= 1")

    return out
