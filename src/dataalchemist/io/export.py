"""Module to write the cleaned package: three tables plus rules.json"""

import json
from pathlib import Path
from typing import Any, Iterable, Mapping, Union

import pandas as pd

import dataalchemist.state as state
from dataalchemist.log import get_logger
from dataalchemist.policy import Policy, policy_to_dict

logger = get_logger(__name__)

PACKAGE_FILES = {
    "clients": "clients.cleaned.csv",
    "workers": "workers.cleaned.csv",
    "tasks": "tasks.cleaned.csv",
    "rules": "rules.json",
}
WORKBOOK_FILE = "package.cleaned.xlsx"


def _cell(value: Any) -> Any:
    return "" if value is None else value


def _join(values: Iterable[Any]) -> str:
    return ",".join(str(v) for v in values)


def _bracketed(values: Iterable[Any]) -> str:
    return f"[{_join(values)}]"


def _with_extra(row: dict[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in extra.items():
        row.setdefault(key, _cell(value))
    return row


def _attributes_cell(client: state.ClientRecord) -> str:
    if isinstance(client.attributes, Mapping):
        return json.dumps(dict(client.attributes), separators=(",", ":"))
    # unparsable text is exported as-is rather than dropped
    return client.attributes_text or ""


def clients_frame(clients: Iterable[state.ClientRecord]) -> pd.DataFrame:
    rows = [
        _with_extra(
            {
                "ClientID": c.client_id,
                "ClientName": c.name,
                "PriorityLevel": _cell(c.priority_level),
                "RequestedTaskIDs": _join(c.requested_task_ids),
                "GroupTag": _cell(c.group_tag),
                "AttributesJSON": _attributes_cell(c),
            },
            c.extra,
        )
        for c in clients
    ]
    return pd.DataFrame(rows, columns=_columns(state.CLIENT_FIELDS, rows))


def workers_frame(workers: Iterable[state.WorkerRecord]) -> pd.DataFrame:
    rows = [
        _with_extra(
            {
                "WorkerID": w.worker_id,
                "WorkerName": w.name,
                "Skills": _join(w.skills),
                "AvailableSlots": _bracketed(w.available_slots),
                "MaxLoadPerPhase": _cell(w.max_load_per_phase),
                "WorkerGroup": _cell(w.worker_group),
                "QualificationLevel": _cell(w.qualification_level),
            },
            w.extra,
        )
        for w in workers
    ]
    return pd.DataFrame(rows, columns=_columns(state.WORKER_FIELDS, rows))


def tasks_frame(tasks: Iterable[state.TaskRecord]) -> pd.DataFrame:
    rows = [
        _with_extra(
            {
                "TaskID": t.task_id,
                "TaskName": t.name,
                "Category": _cell(t.category),
                "Duration": _cell(t.duration),
                "RequiredSkills": _join(t.required_skills),
                "PreferredPhases": _bracketed(t.preferred_phases),
                "MaxConcurrent": _cell(t.max_concurrent),
            },
            t.extra,
        )
        for t in tasks
    ]
    return pd.DataFrame(rows, columns=_columns(state.TASK_FIELDS, rows))


def _columns(canonical: tuple[str, ...], rows: list[dict[str, Any]]) -> list[str]:
    """Canonical columns first, then pass-through columns in first-seen order."""
    columns = dict.fromkeys(canonical)
    for row in rows:
        columns.update(dict.fromkeys(row))
    return list(columns)


def serialize_csv(frame: pd.DataFrame) -> str:
    return frame.to_csv(index=False)


def rules_json(policy: Policy) -> str:
    return json.dumps(policy_to_dict(policy), indent=2)


def write_package(
    datasets: state.Datasets,
    policy: Policy,
    out_dir: Union[str, Path],
    *,
    workbook: bool = False,
) -> dict[str, Path]:
    """Writes the cleaned tables and rules.json into `out_dir`.

    args:
        datasets: The records to export
        policy: Rules and weights for rules.json
        out_dir: Target directory, created if missing
        workbook: Also write the three tables as sheets of one .xlsx file

    returns:
        A mapping from package part to the written path
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    frames = {
        "clients": clients_frame(datasets.clients),
        "workers": workers_frame(datasets.workers),
        "tasks": tasks_frame(datasets.tasks),
    }

    written: dict[str, Path] = {}
    for name, frame in frames.items():
        path = out / PACKAGE_FILES[name]
        path.write_text(serialize_csv(frame), encoding="utf-8")
        written[name] = path

    rules_path = out / PACKAGE_FILES["rules"]
    rules_path.write_text(rules_json(policy), encoding="utf-8")
    written["rules"] = rules_path

    if workbook:
        book_path = out / WORKBOOK_FILE
        with pd.ExcelWriter(book_path, engine="openpyxl") as writer:
            for name, frame in frames.items():
                frame.to_excel(writer, sheet_name=name.capitalize(), index=False)
        written["workbook"] = book_path

    logger.info("Exported package to %s (%d file(s))", out, len(written))
    return written
