"""Module with dataclasses to hold the state for the main entities of the program"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Literal, Mapping, Optional, Union

__all__ = [
    "ClientRecord",
    "WorkerRecord",
    "TaskRecord",
    "Datasets",
    "Diagnostic",
    "Weights",
    "EntityKind",
    "Severity",
    "Number",
    "CLIENT_FIELDS",
    "WORKER_FIELDS",
    "TASK_FIELDS",
]

EntityKind = Literal["clients", "workers", "tasks"]
SubjectKind = Literal["clients", "workers", "tasks", "rules", "global"]
Severity = Literal["error", "warning", "info"]

Number = Union[int, float]

# Canonical column names, in export order. Diagnostics address fields by these.
CLIENT_FIELDS = (
    "ClientID",
    "ClientName",
    "PriorityLevel",
    "RequestedTaskIDs",
    "GroupTag",
    "AttributesJSON",
)
WORKER_FIELDS = (
    "WorkerID",
    "WorkerName",
    "Skills",
    "AvailableSlots",
    "MaxLoadPerPhase",
    "WorkerGroup",
    "QualificationLevel",
)
TASK_FIELDS = (
    "TaskID",
    "TaskName",
    "Category",
    "Duration",
    "RequiredSkills",
    "PreferredPhases",
    "MaxConcurrent",
)


@dataclass(frozen=True, slots=True)
class ClientRecord:
    """Class to represent a client row

    Attributes:
        client_id: Unique identifier of the client
        name: Display name
        priority_level: Expected integer between 1 and 5
        requested_task_ids: Task identifiers the client asks for
        group_tag: Optional ClientGroup label
        attributes: Key-value mapping parsed from the attributes JSON cell,
            None when absent or unparsable
        attributes_text: Raw text of the attributes cell, kept so that broken
            JSON can still be reported
        extra: Input columns that did not map to a known field
    """

    client_id: str
    name: str
    priority_level: Optional[Number] = 0
    requested_task_ids: tuple[str, ...] = ()
    group_tag: Optional[str] = None
    attributes: Any = None
    attributes_text: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class WorkerRecord:
    """Class to represent a worker row

    Attributes:
        worker_id: Unique identifier of the worker
        name: Display name
        skills: Skills offered by the worker
        available_slots: Phases in which the worker is available
        max_load_per_phase: Maximum number of slots the worker takes per phase
        worker_group: Optional WorkerGroup label
        qualification_level: Optional integer between 1 and 10
        extra: Input columns that did not map to a known field
    """

    worker_id: str
    name: str
    skills: tuple[str, ...] = ()
    available_slots: tuple[Number, ...] = ()
    max_load_per_phase: Optional[Number] = 0
    worker_group: Optional[str] = None
    qualification_level: Optional[Number] = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TaskRecord:
    """Class to represent a task row

    Attributes:
        task_id: Unique identifier of the task
        name: Display name
        category: Optional free-form category
        duration: Number of phases the task consumes
        required_skills: Skills a worker needs to run the task
        preferred_phases: Phases in which the task would rather run
        max_concurrent: Maximum number of parallel assignments
        extra: Input columns that did not map to a known field
    """

    task_id: str
    name: str
    category: Optional[str] = None
    duration: Optional[Number] = 0
    required_skills: tuple[str, ...] = ()
    preferred_phases: tuple[Number, ...] = ()
    max_concurrent: Optional[Number] = 0
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Datasets:
    """The three record collections, in input order."""

    clients: tuple[ClientRecord, ...] = ()
    workers: tuple[WorkerRecord, ...] = ()
    tasks: tuple[TaskRecord, ...] = ()

    def task_ids(self) -> list[str]:
        """Known task ids, first occurrence order, blanks skipped."""
        return _unique(str(t.task_id) for t in self.tasks if t.task_id)

    def worker_groups(self) -> list[str]:
        return _unique(str(w.worker_group) for w in self.workers if w.worker_group)

    def client_groups(self) -> list[str]:
        return _unique(str(c.group_tag) for c in self.clients if c.group_tag)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A single validation finding.

    Attributes:
        id: Record id, rule-derived id (``rule-<index>``, a cycle path) or a
            synthetic phase id (``phase-<n>``)
        entity: Kind of subject the finding is attached to
        message: Human-readable description
        severity: ``error`` blocks export, ``warning`` is advisory
        field: Canonical column name, when the finding concerns one field
    """

    id: str
    entity: SubjectKind
    message: str
    severity: Severity = "error"
    field: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "entity": self.entity,
            "message": self.message,
            "severity": self.severity,
        }
        if self.field is not None:
            out["field"] = self.field
        return out


@dataclass(frozen=True, slots=True)
class Weights:
    """Relative importance (0-100) of the allocation criteria.

    Attributes:
        priority_level: Favour high-priority clients
        requested_task_fulfillment: Favour fulfilling requested tasks
        fairness: Favour even distribution of load
        cost: Favour cheaper allocations
        speed: Favour faster completion
    """

    priority_level: int = 50
    requested_task_fulfillment: int = 50
    fairness: int = 50
    cost: int = 50
    speed: int = 50

    def __post_init__(self):
        for f in fields(self):
            name = f.name
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"Weight '{name}' must be an integer")
            if value < 0 or value > 100:
                raise ValueError(f"Weight '{name}' must be between 0 and 100")


def _unique(values) -> list:
    seen: dict = {}
    for v in values:
        seen.setdefault(v, None)
    return list(seen)
