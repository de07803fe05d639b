"""Normalization of spreadsheet rows into typed records.

A row is a mapping from a free-form header to a raw cell (string, number or
blank). Headers are matched against a per-entity synonym table; cells are
coerced with the helpers below. Nothing in this module raises on bad data:
unparsable numbers become 0, broken JSON becomes None, and the validation
pass reports what was degraded.
"""

from __future__ import annotations

import json
import math
import re
from numbers import Real
from typing import Any, Iterable, Mapping, Optional, Union

import pandas as pd

import dataalchemist.state as state
from dataalchemist.log import get_logger

__all__ = [
    "Cell",
    "CLIENT_HEADERS",
    "WORKER_HEADERS",
    "TASK_HEADERS",
    "header_key",
    "map_headers",
    "is_blank",
    "to_text",
    "to_optional_text",
    "to_number",
    "to_optional_number",
    "parse_list",
    "parse_number_list",
    "MAX_RANGE_SPAN",
    "parse_attributes",
    "rows_from_frame",
    "to_clients",
    "to_workers",
    "to_tasks",
    "normalize_rows",
]

logger = get_logger(__name__)

Cell = Union[str, int, float, None]
Synonyms = Optional[Mapping[str, str]]

# Keys are header_key() forms: lower case, no whitespace, "_" or "-".
CLIENT_HEADERS: dict[str, str] = {
    "clientid": "ClientID",
    "id": "ClientID",
    "clientname": "ClientName",
    "name": "ClientName",
    "prioritylevel": "PriorityLevel",
    "priority": "PriorityLevel",
    "requestedtaskids": "RequestedTaskIDs",
    "requestedtasks": "RequestedTaskIDs",
    "taskids": "RequestedTaskIDs",
    "grouptag": "GroupTag",
    "clientgroup": "GroupTag",
    "group": "GroupTag",
    "attributesjson": "AttributesJSON",
    "attributes": "AttributesJSON",
}

WORKER_HEADERS: dict[str, str] = {
    "workerid": "WorkerID",
    "id": "WorkerID",
    "workername": "WorkerName",
    "name": "WorkerName",
    "skills": "Skills",
    "skill": "Skills",
    "availableslots": "AvailableSlots",
    "availablephases": "AvailableSlots",
    "slots": "AvailableSlots",
    "maxloadperphase": "MaxLoadPerPhase",
    "maxload": "MaxLoadPerPhase",
    "workergroup": "WorkerGroup",
    "group": "WorkerGroup",
    "qualificationlevel": "QualificationLevel",
    "qualification": "QualificationLevel",
}

TASK_HEADERS: dict[str, str] = {
    "taskid": "TaskID",
    "id": "TaskID",
    "taskname": "TaskName",
    "name": "TaskName",
    "category": "Category",
    "duration": "Duration",
    "requiredskills": "RequiredSkills",
    "skills": "RequiredSkills",
    "preferredphases": "PreferredPhases",
    "phases": "PreferredPhases",
    "maxconcurrent": "MaxConcurrent",
    "maxconcurrency": "MaxConcurrent",
}

_HEADER_NOISE = re.compile(r"[\s_\-]+")
_RANGE = re.compile(r"^(\d+)\s*-\s*(\d+)$")
# Widest a-b range expanded; wider ranges are treated as unparsable.
MAX_RANGE_SPAN = 1000


# ---------- Header mapping ----------


def header_key(header: Any) -> str:
    return _HEADER_NOISE.sub("", str(header).lower())


def map_headers(
    row: Mapping[Any, Any], table: Mapping[str, str], synonyms: Synonyms = None
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a raw row into (canonical fields, unmapped columns).

    The first column mapping to a canonical name wins; later columns mapping
    to the same name are kept as unmapped so no data is dropped.
    """
    lookup = dict(table)
    if synonyms:
        lookup.update({header_key(k): v for k, v in synonyms.items()})

    mapped: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in row.items():
        canonical = lookup.get(header_key(key))
        if canonical is not None and canonical not in mapped:
            mapped[canonical] = value
        else:
            extra[str(key)] = value
    return mapped, extra


# ---------- Scalar coercion ----------


def is_blank(cell: Any) -> bool:
    if cell is None:
        return True
    if isinstance(cell, str):
        return cell.strip() == ""
    if isinstance(cell, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(cell))
    except (TypeError, ValueError):
        return False


def _as_number(cell: Any) -> Optional[state.Number]:
    """Finite number from a cell, or None. Integral floats come back as int."""
    if isinstance(cell, bool):
        return int(cell)
    if isinstance(cell, Real):
        value = float(cell)
    elif isinstance(cell, str):
        try:
            value = float(cell.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value):
        return None
    if value.is_integer():
        return int(value)
    return value


def to_text(cell: Any) -> str:
    if is_blank(cell):
        return ""
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell).strip()


def to_optional_text(cell: Any) -> Optional[str]:
    return to_text(cell) or None


def to_number(cell: Any, default: state.Number = 0) -> state.Number:
    """Best-effort numeric coercion; `default` when blank or unparsable."""
    if is_blank(cell):
        return default
    value = _as_number(cell)
    return default if value is None else value


def to_optional_number(cell: Any) -> Optional[state.Number]:
    """None for a blank cell, otherwise `to_number` (0 when unparsable)."""
    if is_blank(cell):
        return None
    return to_number(cell)


# ---------- List coercion ----------


def _bracketed_items(text: str) -> Optional[list]:
    if not (text.startswith("[") and text.endswith("]")):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


def parse_list(cell: Any) -> tuple[str, ...]:
    """Coerce a cell into a list of trimmed, non-empty strings.

    Accepts a sequence, a bracketed JSON array or comma-separated text.
    """
    if isinstance(cell, (list, tuple)):
        items: Iterable[Any] = cell
    else:
        text = to_text(cell)
        if not text:
            return ()
        items = _bracketed_items(text)
        if items is None:
            items = text.split(",")
    return tuple(t for t in (to_text(x) for x in items) if t)


def parse_number_list(cell: Any) -> tuple[state.Number, ...]:
    """Like `parse_list` but numeric, with ``a-b`` expanded inclusively.

    Tokens that are not finite numbers are dropped. A range covering
    `MAX_RANGE_SPAN` phases or more yields nothing.
    """
    if isinstance(cell, (list, tuple)):
        items: Iterable[Any] = cell
    else:
        text = to_text(cell)
        if not text:
            return ()
        m = _RANGE.match(text)
        if m:
            a, b = sorted((int(m.group(1)), int(m.group(2))))
            if b - a < MAX_RANGE_SPAN:
                return tuple(range(a, b + 1))
            return ()
        items = _bracketed_items(text)
        if items is None:
            items = text.split(",")
    numbers = (None if is_blank(x) else _as_number(x) for x in items)
    return tuple(n for n in numbers if n is not None)


def parse_attributes(cell: Any) -> Optional[dict[str, Any]]:
    """Parse the embedded attributes JSON; None when blank, broken or not an object."""
    if isinstance(cell, Mapping):
        return dict(cell)
    text = to_text(cell)
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


# ---------- Records ----------


def rows_from_frame(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame into row dicts with NaN cells as None."""
    clean = df.astype(object).where(pd.notna(df), None)
    return [
        {str(k): v for k, v in row.items()} for row in clean.to_dict(orient="records")
    ]


def _rows(rows) -> list[Mapping[Any, Any]]:
    if isinstance(rows, pd.DataFrame):
        return rows_from_frame(rows)
    return list(rows)


def to_clients(rows, synonyms: Synonyms = None) -> tuple[state.ClientRecord, ...]:
    out = []
    for raw in _rows(rows):
        r, extra = map_headers(raw, CLIENT_HEADERS, synonyms)
        attrs_raw = r.get("AttributesJSON")
        attrs_text = None
        if isinstance(attrs_raw, Mapping):
            attrs_text = json.dumps(dict(attrs_raw), separators=(",", ":"))
        elif not is_blank(attrs_raw):
            attrs_text = to_text(attrs_raw)
        out.append(
            state.ClientRecord(
                client_id=to_text(r.get("ClientID")),
                name=to_text(r.get("ClientName")),
                priority_level=to_number(r.get("PriorityLevel")),
                requested_task_ids=parse_list(r.get("RequestedTaskIDs")),
                group_tag=to_optional_text(r.get("GroupTag")),
                attributes=parse_attributes(attrs_raw),
                attributes_text=attrs_text,
                extra=extra,
            )
        )
    logger.debug("Normalized %d client rows", len(out))
    return tuple(out)


def to_workers(rows, synonyms: Synonyms = None) -> tuple[state.WorkerRecord, ...]:
    out = []
    for raw in _rows(rows):
        r, extra = map_headers(raw, WORKER_HEADERS, synonyms)
        out.append(
            state.WorkerRecord(
                worker_id=to_text(r.get("WorkerID")),
                name=to_text(r.get("WorkerName")),
                skills=parse_list(r.get("Skills")),
                available_slots=parse_number_list(r.get("AvailableSlots")),
                max_load_per_phase=to_number(r.get("MaxLoadPerPhase")),
                worker_group=to_optional_text(r.get("WorkerGroup")),
                qualification_level=to_optional_number(r.get("QualificationLevel")),
                extra=extra,
            )
        )
    logger.debug("Normalized %d worker rows", len(out))
    return tuple(out)


def to_tasks(rows, synonyms: Synonyms = None) -> tuple[state.TaskRecord, ...]:
    out = []
    for raw in _rows(rows):
        r, extra = map_headers(raw, TASK_HEADERS, synonyms)
        out.append(
            state.TaskRecord(
                task_id=to_text(r.get("TaskID")),
                name=to_text(r.get("TaskName")),
                category=to_optional_text(r.get("Category")),
                duration=to_number(r.get("Duration")),
                required_skills=parse_list(r.get("RequiredSkills")),
                preferred_phases=parse_number_list(r.get("PreferredPhases")),
                max_concurrent=to_number(r.get("MaxConcurrent")),
                extra=extra,
            )
        )
    logger.debug("Normalized %d task rows", len(out))
    return tuple(out)


_CONVERTERS = {
    "clients": to_clients,
    "workers": to_workers,
    "tasks": to_tasks,
}


def normalize_rows(entity: state.EntityKind, rows, synonyms: Synonyms = None):
    """Normalize `rows` (row dicts or a DataFrame) into records of `entity`."""
    try:
        convert = _CONVERTERS[entity]
    except KeyError:
        raise ValueError(
            f"Unknown entity '{entity}'; expected one of {sorted(_CONVERTERS)}"
        ) from None
    return convert(rows, synonyms)
