from __future__ import annotations

from dataalchemist.diagnostics import (
    build_index,
    diagnostic_key,
    has_blocking,
    lookup,
    summarize,
)
from dataalchemist.state import Diagnostic


def test_index_is_keyed_by_entity_id_and_field() -> None:
    diag = Diagnostic(id="T9", entity="tasks", field="Duration", message="Duration must be integer >= 1")

    index = build_index([diag])

    assert index["tasks:T9:Duration"] == [diag]
    assert "tasks:T9:Category" not in index
    assert lookup(index, "tasks", "T9", "Duration") == [diag]
    assert lookup(index, "tasks", "T9", "Category") == []


def test_findings_without_field_use_the_short_key() -> None:
    diag = Diagnostic(id="T1→T2→T1", entity="rules", message="cycle")
    assert diagnostic_key("rules", "T1→T2→T1") == "rules:T1→T2→T1"
    assert build_index([diag]) == {"rules:T1→T2→T1": [diag]}


def test_same_cell_collects_every_finding() -> None:
    first = Diagnostic(id="C1", entity="clients", field="RequestedTaskIDs", message="Unknown TaskID reference: T8")
    second = Diagnostic(id="C1", entity="clients", field="RequestedTaskIDs", message="Unknown TaskID reference: T9")
    assert build_index([first, second])["clients:C1:RequestedTaskIDs"] == [first, second]


def test_summary_counts_and_blocking() -> None:
    diagnostics = [
        Diagnostic(id="C1", entity="clients", message="a"),
        Diagnostic(id="phase-1", entity="global", message="b", severity="warning"),
        Diagnostic(id="T1", entity="tasks", message="c", severity="warning"),
    ]

    summary = summarize(diagnostics)

    assert summary.total == 3
    assert (summary.errors, summary.warnings) == (1, 2)
    assert summary.by_entity == {"clients": 1, "global": 1, "tasks": 1}
    assert has_blocking(diagnostics)
    assert not has_blocking(diagnostics[1:])


def test_as_dict_omits_missing_field() -> None:
    assert Diagnostic(id="x", entity="rules", message="m").as_dict() == {
        "id": "x",
        "entity": "rules",
        "message": "m",
        "severity": "error",
    }
