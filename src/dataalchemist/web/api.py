from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import dataalchemist.rules.builder as builder
import dataalchemist.state as state
from dataalchemist.diagnostics import build_index, summarize
from dataalchemist.normalize import normalize_rows
from dataalchemist.policy import weights_to_dict
from dataalchemist.query import filter_records
from dataalchemist.rules.registry import list_rule_types, rule_from_dict, rule_to_dict
from dataalchemist.rules.text import parse_rules_from_text
from dataalchemist.validation import validate, validate_field

app = FastAPI(title="dataalchemist")

Row = Dict[str, Any]


class DatasetsPayload(BaseModel):
    clients: List[Row] = Field(default_factory=list)
    workers: List[Row] = Field(default_factory=list)
    tasks: List[Row] = Field(default_factory=list)


class ValidateRequest(DatasetsPayload):
    rules: List[Row] = Field(default_factory=list)


class ParseRulesRequest(DatasetsPayload):
    text: str


class QueryRequest(DatasetsPayload):
    target: str
    query: str = ""


class FieldRequest(BaseModel):
    entity: str
    field: str
    value: Optional[Any] = None


class BuildRuleRequest(BaseModel):
    """Raw form fields of the rule builder; which ones are read depends on `type`."""

    type: str
    tasks: Optional[Any] = None
    group: Optional[str] = None
    kind: str = "WorkerGroup"
    max_slots_per_phase: Optional[Any] = None
    task_id: Optional[str] = None
    phases: Optional[Any] = None
    min_common_slots: Optional[Any] = None
    priority: Optional[Any] = None
    scope: str = "global"
    regex: Optional[str] = None
    template: Optional[str] = None
    params: Optional[Any] = None


_BUILDERS = {
    "coRun": lambda f: builder.build_co_run(f.tasks),
    "loadLimit": lambda f: builder.build_load_limit(f.group, f.max_slots_per_phase),
    "phaseWindow": lambda f: builder.build_phase_window(f.task_id, f.phases),
    "slotRestriction": lambda f: builder.build_slot_restriction(
        f.group, f.min_common_slots, kind=f.kind
    ),
    "precedence": lambda f: builder.build_precedence(f.priority, scope=f.scope),
    "patternMatch": lambda f: builder.build_pattern_match(f.regex, f.template, f.params),
}

assert set(_BUILDERS) == set(list_rule_types()), "Every rule type needs a builder"


def _datasets(payload: DatasetsPayload) -> state.Datasets:
    return state.Datasets(
        clients=normalize_rows("clients", payload.clients),
        workers=normalize_rows("workers", payload.workers),
        tasks=normalize_rows("tasks", payload.tasks),
    )


def _record_dict(record: Any) -> Dict[str, Any]:
    out = {}
    for name in record.__slots__:
        value = getattr(record, name)
        out[name] = list(value) if isinstance(value, tuple) else value
    return out


@app.get("/api/ping")
def ping() -> JSONResponse:
    """Simple health check endpoint."""
    return JSONResponse({"status": "ok"})


@app.post("/api/validate")
def validate_endpoint(payload: ValidateRequest) -> Dict[str, Any]:
    """Normalize the rows, validate them against the rules and index the findings."""
    try:
        rules = [rule_from_dict(r) for r in payload.rules]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    datasets = _datasets(payload)
    diagnostics = validate(datasets, rules)
    summary = summarize(diagnostics)
    return {
        "datasets": {
            "clients": [_record_dict(c) for c in datasets.clients],
            "workers": [_record_dict(w) for w in datasets.workers],
            "tasks": [_record_dict(t) for t in datasets.tasks],
        },
        "diagnostics": [d.as_dict() for d in diagnostics],
        "index": {k: len(v) for k, v in build_index(diagnostics).items()},
        "summary": {
            "total": summary.total,
            "bySeverity": summary.by_severity,
            "byEntity": summary.by_entity,
        },
    }


@app.post("/api/validate/field")
def validate_field_endpoint(payload: FieldRequest) -> Dict[str, Any]:
    found = validate_field(payload.entity, payload.field, payload.value)
    return {"diagnostics": [d.as_dict() for d in found]}


@app.post("/api/rules/parse")
def parse_rules_endpoint(payload: ParseRulesRequest) -> Dict[str, Any]:
    """Translate free text into candidate rules plus notes."""
    result = parse_rules_from_text(payload.text, _datasets(payload))
    return {
        "rules": [rule_to_dict(r) for r in result.rules],
        "notes": list(result.notes),
    }


@app.post("/api/rules/build")
def build_rule_endpoint(payload: BuildRuleRequest) -> Dict[str, Any]:
    """Turn rule builder form fields into one rule, ready to append to the rule list."""
    try:
        build = _BUILDERS[payload.type]
    except KeyError:
        raise HTTPException(
            status_code=400, detail=f"Unknown rule type '{payload.type}'"
        ) from None
    rule = build(payload)
    if rule is None:
        raise HTTPException(
            status_code=422, detail=f"Incomplete or invalid '{payload.type}' rule"
        )
    return {"rule": rule_to_dict(rule)}


@app.post("/api/query")
def query_endpoint(payload: QueryRequest) -> Dict[str, Any]:
    try:
        records = filter_records(_datasets(payload), payload.target, payload.query)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"records": [_record_dict(r) for r in records]}


@app.get("/api/weights/defaults")
def default_weights() -> Dict[str, int]:
    return weights_to_dict(state.Weights())
